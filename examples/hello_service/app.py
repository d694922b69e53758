import json
import logging
import os
import sys
from typing import Any

from stratus.deployment.client import StratusService
from stratus.deployment.common.deploy.hooks import context_with_value
from stratus.deployment.common.deploy.models.event_source_mapping import EventSourceMapping
from stratus.deployment.common.deploy.models.function_options import FunctionOptions
from stratus.deployment.common.deploy.models.iam_role import IAMRoleDefinition

logger = logging.getLogger(__name__)

service = StratusService(name="hello_service", description="Greets everyone who asks")

GREETINGS_QUEUE_ARN = "arn:aws:sqs:us-west-2:123456789012:greetings"


@service.serverless_function(
    role=IAMRoleDefinition(),
    options=FunctionOptions(memory_size=256, timeout=30),
)
def hello(event: dict[str, Any], context: Any) -> dict[str, Any]:
    name = event.get("name", "world")
    return {"message": f"Hello {name}", "build": os.environ.get("STRATUS_BUILD_ID", "")}


@service.serverless_function(
    role=IAMRoleDefinition(),
    event_source_mappings=[EventSourceMapping(GREETINGS_QUEUE_ARN, batch_size=10)],
)
def greet_queue(event: dict[str, Any], context: Any) -> None:
    for record in event.get("Records", []):
        logger.info("Greeting %s", json.loads(record["body"]).get("name", "world"))


def seed_greetings(event: dict[str, Any], context: Any) -> dict[str, Any]:
    return {"Status": "SUCCESS", "Data": {"Greetings": 0}}


greet_queue.stratus_function.require_custom_resource(IAMRoleDefinition(), seed_greetings)  # type: ignore


def record_build(hook_context, service_name, build_id, session, noop, logger):  # pylint: disable=unused-argument, redefined-outer-name
    logger.info("Building %s (%s)", service_name, build_id)
    return context_with_value(hook_context, "hello.startedBuild", build_id)


def add_readme(hook_context, service_name, archive, session, noop, logger):  # pylint: disable=unused-argument, redefined-outer-name
    archive.writestr("README", f"{service_name} built by {hook_context.get('hello.startedBuild')}")


service.add_hook("pre_builds", "record_build", record_build)
service.add_hook("archives", "add_readme", add_readme)


def main() -> None:
    # Local invocation: python bootstrap <function> < event.json
    handlers = {"hello": hello, "greet_queue": greet_queue, "seed_greetings": seed_greetings}
    function_name = sys.argv[1] if len(sys.argv) > 1 else "hello"
    if function_name not in handlers:
        raise SystemExit(f"Unknown function: {function_name}")
    event = json.load(sys.stdin) if not sys.stdin.isatty() else {}
    print(json.dumps(handlers[function_name](event, None)))
