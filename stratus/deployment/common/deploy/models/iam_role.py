from __future__ import annotations

import json
from typing import Any, Optional, Sequence, Union

from stratus.common.constants import IAM_ROLE_RESOURCE_TYPE
from stratus.common.utils import cloudformation_resource_name
from stratus.deployment.common.deploy.models.event_source_mapping import EventSourceMapping
from stratus.deployment.common.deploy.models.template import sub

LAMBDA_TRUST_POLICY: dict[str, Any] = {
    "Version": "2012-10-17",
    "Statement": [
        {
            "Effect": "Allow",
            "Principal": {"Service": ["lambda.amazonaws.com"]},
            "Action": ["sts:AssumeRole"],
        }
    ],
}

# Every function may write its logs and discover the stack it belongs to
COMMON_PRIVILEGES: list[dict[str, Any]] = [
    {
        "Effect": "Allow",
        "Action": ["logs:CreateLogGroup", "logs:CreateLogStream", "logs:PutLogEvents"],
        "Resource": "arn:aws:logs:*:*:*",
    },
    {
        "Effect": "Allow",
        "Action": ["cloudformation:DescribeStacks", "cloudformation:DescribeStackResource"],
        "Resource": sub(
            "arn:${AWS::Partition}:cloudformation:${AWS::Region}:${AWS::AccountId}:stack/${AWS::StackName}/*"
        ),
    },
]


class IAMRoleDefinition:
    """
    Inline IAM role declared together with the service.

    The logical name is derived from the service name and the rendered role, so every function that
    needs an identical role shares one `AWS::IAM::Role` resource, and an unchanged role keeps its
    logical name across builds.

    :param privileges: IAM policy statements granted in addition to the common privileges.
    :param managed_policy_arns: Managed policies attached to the role.
    """

    def __init__(
        self,
        privileges: Optional[Sequence[dict[str, Any]]] = None,
        managed_policy_arns: Optional[Sequence[str]] = None,
    ) -> None:
        self.privileges: list[dict[str, Any]] = list(privileges) if privileges else []
        self.managed_policy_arns: list[str] = list(managed_policy_arns) if managed_policy_arns else []
        for privilege in self.privileges:
            if not isinstance(privilege, dict) or "Action" not in privilege:
                raise RuntimeError(f"Privilege is not a policy statement, check the privilege ({privilege})")

    def policy_statements(self, event_source_mappings: Optional[Sequence[EventSourceMapping]] = None) -> list[dict]:
        statements = [dict(statement) for statement in COMMON_PRIVILEGES]
        statements.extend(dict(privilege) for privilege in self.privileges)
        for event_source_mapping in event_source_mappings or []:
            event_source_privilege = event_source_mapping.privileges()
            if event_source_privilege is not None and event_source_privilege not in statements:
                statements.append(event_source_privilege)
        return statements

    def to_resource(self, event_source_mappings: Optional[Sequence[EventSourceMapping]] = None) -> dict[str, Any]:
        properties: dict[str, Any] = {
            "AssumeRolePolicyDocument": LAMBDA_TRUST_POLICY,
            "Policies": [
                {
                    "PolicyName": "LambdaPolicy",
                    "PolicyDocument": {
                        "Version": "2012-10-17",
                        "Statement": self.policy_statements(event_source_mappings),
                    },
                }
            ],
        }
        if self.managed_policy_arns:
            properties["ManagedPolicyArns"] = list(self.managed_policy_arns)
        return {"Type": IAM_ROLE_RESOURCE_TYPE, "Properties": properties}

    def logical_name(
        self, service_name: str, event_source_mappings: Optional[Sequence[EventSourceMapping]] = None
    ) -> str:
        return cloudformation_resource_name("IAMRole", service_name, self.to_resource(event_source_mappings))

    def to_json(self) -> dict[str, Any]:
        return {"privileges": self.privileges, "managed_policy_arns": self.managed_policy_arns}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IAMRoleDefinition):
            return NotImplemented
        return self.to_json() == other.to_json()

    def __hash__(self) -> int:
        return hash(json.dumps(self.to_json(), sort_keys=True, default=str))

    def __repr__(self) -> str:
        return f"IAMRoleDefinition(privileges={self.privileges}, managed_policy_arns={self.managed_policy_arns})"


RoleRequirement = Union[str, IAMRoleDefinition]


def role_map_key(
    role: RoleRequirement,
    service_name: str,
    event_source_mappings: Optional[Sequence[EventSourceMapping]] = None,
) -> str:
    if isinstance(role, IAMRoleDefinition):
        return role.logical_name(service_name, event_source_mappings)
    return role


def role_reference(
    role: RoleRequirement,
    service_name: str,
    role_map: dict[str, Any],
    event_source_mappings: Optional[Sequence[EventSourceMapping]] = None,
) -> Any:
    key = role_map_key(role, service_name, event_source_mappings)
    if key not in role_map:
        raise RuntimeError(f"IAM role {key} has not been resolved, was the role verified?")
    return role_map[key]
