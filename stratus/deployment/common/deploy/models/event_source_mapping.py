from dataclasses import dataclass
from typing import Any, Optional

from stratus.common.constants import EVENT_SOURCE_MAPPING_RESOURCE_TYPE
from stratus.common.utils import cloudformation_resource_name
from stratus.deployment.common.deploy.models.template import ref

# Actions a function role needs to poll the given event source
EVENT_SOURCE_PRIVILEGES: dict[str, list[str]] = {
    "dynamodb": [
        "dynamodb:DescribeStream",
        "dynamodb:GetRecords",
        "dynamodb:GetShardIterator",
        "dynamodb:ListStreams",
    ],
    "kinesis": [
        "kinesis:DescribeStream",
        "kinesis:GetRecords",
        "kinesis:GetShardIterator",
        "kinesis:ListStreams",
    ],
    "sqs": [
        "sqs:DeleteMessage",
        "sqs:GetQueueAttributes",
        "sqs:ReceiveMessage",
    ],
}


@dataclass
class EventSourceMapping:
    event_source_arn: Any
    starting_position: Optional[str] = None
    batch_size: Optional[int] = None
    enabled: bool = True

    def privileges(self) -> Optional[dict[str, Any]]:
        if not isinstance(self.event_source_arn, str):
            return None
        arn_parts = self.event_source_arn.split(":")
        if len(arn_parts) < 3 or arn_parts[2] not in EVENT_SOURCE_PRIVILEGES:
            return None
        return {
            "Effect": "Allow",
            "Action": EVENT_SOURCE_PRIVILEGES[arn_parts[2]],
            "Resource": self.event_source_arn,
        }

    def logical_name(self, function_logical_name: str) -> str:
        return cloudformation_resource_name("EventSourceMapping", function_logical_name, self.event_source_arn)

    def to_resource(self, function_logical_name: str) -> dict[str, Any]:
        properties: dict[str, Any] = {
            "EventSourceArn": self.event_source_arn,
            "FunctionName": ref(function_logical_name),
            "Enabled": self.enabled,
        }
        if self.starting_position is not None:
            properties["StartingPosition"] = self.starting_position
        if self.batch_size is not None:
            properties["BatchSize"] = self.batch_size
        return {"Type": EVENT_SOURCE_MAPPING_RESOURCE_TYPE, "Properties": properties}
