from typing import Any, Optional

from stratus.common.constants import S3_BUCKET_RESOURCE_TYPE
from stratus.common.utils import sanitized_name
from stratus.deployment.common.deploy.models.template import Template, get_att


class S3Site:
    """
    Static website provisioned together with the service.

    :param resources: Local directory whose contents are archived during packaging.
    :param bucket_name: Optional physical bucket name, CloudFormation generates one otherwise.
    """

    def __init__(self, resources: str, bucket_name: Optional[str] = None, index_document: str = "index.html") -> None:
        self.resources = resources
        self.bucket_name = bucket_name
        self.index_document = index_document

    def logical_name(self, service_name: str) -> str:
        return f"{sanitized_name(service_name)}S3Site"

    def export(
        self,
        service_name: str,
        archive_key: Any,
        api_outputs: dict[str, Any],
        template: Template,
    ) -> None:
        bucket_logical_name = self.logical_name(service_name)
        properties: dict[str, Any] = {
            "WebsiteConfiguration": {"IndexDocument": self.index_document},
        }
        if self.bucket_name is not None:
            properties["BucketName"] = self.bucket_name
        template.add_resource(
            bucket_logical_name,
            S3_BUCKET_RESOURCE_TYPE,
            properties=properties,
            metadata={"SiteArchiveKey": archive_key, "APIGatewayOutputs": sorted(api_outputs.keys())},
        )
        template.add_output(
            "S3SiteURL",
            get_att(bucket_logical_name, "WebsiteURL"),
            description="S3 website URL",
        )
