import logging
from typing import Any, Optional

from boto3.session import Session
from botocore.exceptions import ClientError

from stratus.common.constants import STACK_WAIT_DELAY, STACK_WAIT_MAX_ATTEMPTS
from stratus.common.models.remote_client.remote_client import RemoteClient
from stratus.common.retry import NoRetryPolicy, RetryPolicy

# Set logging level for Boto3 to WARNING to suppress INFO messages
# Mainly to suppress 'Found credentials in environment variables.' message
logging.getLogger("botocore").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


class AWSRemoteClient(RemoteClient):
    CAPABILITIES = ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM", "CAPABILITY_AUTO_EXPAND"]

    def __init__(self, region: Optional[str] = None, retry_policy: Optional[RetryPolicy] = None) -> None:
        self._session = Session(region_name=region)
        self._client_cache: dict[str, Any] = {}
        self._retry_policy: RetryPolicy = retry_policy if retry_policy is not None else NoRetryPolicy()

    @property
    def session(self) -> Session:
        return self._session

    def _client(self, service_name: str) -> Any:
        if service_name not in self._client_cache:
            self._client_cache[service_name] = self._session.client(service_name)
        return self._client_cache[service_name]

    def get_iam_role(self, role_name: str) -> str:
        client = self._client("iam")
        response = self._retry_policy.execute("iam:GetRole", lambda: client.get_role(RoleName=role_name))
        return response["Role"]["Arn"]

    def describe_stack(self, stack_name: str) -> Optional[dict[str, Any]]:
        client = self._client("cloudformation")
        try:
            response = self._retry_policy.execute(
                "cloudformation:DescribeStacks", lambda: client.describe_stacks(StackName=stack_name)
            )
        except ClientError as e:
            if "does not exist" in str(e):
                return None
            raise
        stacks = response.get("Stacks", [])
        if len(stacks) > 1:
            raise RuntimeError(f"More than 1 stack returned for {stack_name}. Count: {len(stacks)}")
        return stacks[0] if stacks else None

    def get_caller_account(self) -> str:
        client = self._client("sts")
        response = self._retry_policy.execute("sts:GetCallerIdentity", client.get_caller_identity)
        return response["Account"]

    def upload_resource(self, bucket: str, key: str, filename: str) -> Optional[str]:
        client = self._client("s3")
        with open(filename, "rb") as f:
            body = f.read()
        response = self._retry_policy.execute(
            "s3:PutObject", lambda: client.put_object(Bucket=bucket, Key=key, Body=body)
        )
        logger.info("Uploaded %s to s3://%s/%s", filename, bucket, key)
        return response.get("VersionId")

    def create_or_update_stack(
        self,
        stack_name: str,
        template_url: str,
        parameters: dict[str, str],
        tags: dict[str, str],
    ) -> dict[str, Any]:
        client = self._client("cloudformation")
        kwargs = {
            "StackName": stack_name,
            "TemplateURL": template_url,
            "Parameters": [{"ParameterKey": key, "ParameterValue": value} for key, value in parameters.items()],
            "Tags": [{"Key": key, "Value": value} for key, value in tags.items()],
            "Capabilities": self.CAPABILITIES,
        }
        existing_stack = self.describe_stack(stack_name)
        if existing_stack is None:
            logger.info("Creating stack %s", stack_name)
            self._retry_policy.execute("cloudformation:CreateStack", lambda: client.create_stack(**kwargs))
            waiter_name = "stack_create_complete"
        else:
            logger.info("Updating stack %s", stack_name)
            try:
                self._retry_policy.execute("cloudformation:UpdateStack", lambda: client.update_stack(**kwargs))
            except ClientError as e:
                if "No updates are to be performed" in str(e):
                    logger.info("Stack %s is already up to date", stack_name)
                    return existing_stack
                raise
            waiter_name = "stack_update_complete"

        client.get_waiter(waiter_name).wait(
            StackName=stack_name,
            WaiterConfig={"Delay": STACK_WAIT_DELAY, "MaxAttempts": STACK_WAIT_MAX_ATTEMPTS},
        )
        stack = self.describe_stack(stack_name)
        if stack is None:
            raise RuntimeError(f"Stack {stack_name} could not be found after provisioning")
        return stack
