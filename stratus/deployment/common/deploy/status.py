import logging
from typing import Any, Optional

from stratus.common.constants import STATUS_DIVIDER_LENGTH, TIME_FORMAT
from stratus.common.models.remote_client.remote_client import RemoteClient
from stratus.deployment.common.deploy.pipeline import ExecutionContext

logger = logging.getLogger(__name__)


class StatusReporter:
    def __init__(self, remote_client: RemoteClient) -> None:
        self._remote_client = remote_client

    def report(self, service_name: str, redact: bool = False, ctx: Optional[ExecutionContext] = None) -> list[str]:
        """
        Describe the stack of the service as report lines.

        With `redact` every occurrence of the caller's account id is replaced with asterisks.
        """
        if ctx is None:
            ctx = ExecutionContext()
        ctx.raise_if_cancelled()
        stack = self._remote_client.describe_stack(service_name)
        if stack is None:
            return [f"Stack {service_name} does not exist"]

        lines = section_header(f"Stack: {service_name}")
        lines.append(f"Id: {stack.get('StackId', '')}")
        lines.append(f"Status: {stack.get('StackStatus', '')}")
        if stack.get("StackStatusReason"):
            lines.append(f"Reason: {stack['StackStatusReason']}")
        lines.append(f"Created: {_format_time(stack.get('CreationTime'))}")
        if stack.get("LastUpdatedTime") is not None:
            lines.append(f"Last update: {_format_time(stack['LastUpdatedTime'])}")

        if stack.get("Parameters"):
            lines.extend(section_header("Parameters"))
            for parameter in stack["Parameters"]:
                lines.append(f"{parameter.get('ParameterKey')}: {parameter.get('ParameterValue')}")
        if stack.get("Tags"):
            lines.extend(section_header("Tags"))
            for tag in stack["Tags"]:
                lines.append(f"{tag.get('Key')}: {tag.get('Value')}")
        if stack.get("Outputs"):
            lines.extend(section_header("Outputs"))
            for output in stack["Outputs"]:
                lines.append(f"{output.get('OutputKey')}: {output.get('OutputValue')}")

        if redact:
            ctx.raise_if_cancelled()
            account_id = self._remote_client.get_caller_account()
            lines = [redact_account(line, account_id) for line in lines]
        return lines


def section_header(title: str) -> list[str]:
    return ["", title, "-" * STATUS_DIVIDER_LENGTH]


def redact_account(line: str, account_id: str) -> str:
    if not account_id:
        return line
    return line.replace(account_id, "*" * len(account_id))


def _format_time(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "strftime"):
        return value.strftime(TIME_FORMAT)
    return str(value)
