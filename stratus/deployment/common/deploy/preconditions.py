import inspect
import logging
from collections import Counter
from typing import Any, Callable, Optional

from stratus.common.utils import get_handler_symbol
from stratus.deployment.common.deploy.build_state import BuildState
from stratus.deployment.common.deploy.pipeline import ExecutionContext, Operation

logger = logging.getLogger(__name__)


class VerifyAWSPreconditionsOperation(Operation):
    """
    Checks the build inputs that only matter once the template is provisioned.
    Problems found here are reported as warnings, the build continues.
    """

    def __init__(self, build_state: BuildState) -> None:
        self._build_state = build_state

    def invoke(self, ctx: ExecutionContext) -> None:
        pipeline_environments = self._build_state.userdata.pipeline_environments
        expected_keys: Optional[set[str]] = None
        for environment_name, variables in pipeline_environments.items():
            keys = set(variables.keys())
            if expected_keys is None:
                expected_keys = keys
            elif keys != expected_keys:
                logger.warning(
                    "Pipeline environment %s defines %s, other environments define %s",
                    environment_name,
                    sorted(keys),
                    sorted(expected_keys),
                )
        if pipeline_environments:
            logger.info("Verified %s pipeline environment(s)", len(pipeline_environments))


class ValidatePreconditionsOperation(Operation):
    """
    Validates the function definitions before anything is packaged.

    Every check runs before the operation fails, so that a single build reports all problems at once.
    """

    def __init__(self, build_state: BuildState) -> None:
        self._build_state = build_state

    def invoke(self, ctx: ExecutionContext) -> None:
        userdata = self._build_state.userdata
        errors: list[str] = []

        if len(userdata.functions) == 0:
            if userdata.workflow_hooks.has_hooks():
                logger.warning("No functions were provided to stratus build, the service is defined by its hooks")
            else:
                errors.append("No functions were provided to stratus build and WorkflowHooks are undefined")

        functions = []
        for index, function in enumerate(userdata.functions):
            if function is None:
                errors.append(f"Function at index {index} is undefined")
            else:
                functions.append(function)

        name_counts: Counter = Counter()
        custom_resources: dict[str, Any] = {}
        for function in functions:
            name_counts[function.name] += 1
            signature_error = ensure_valid_signature(f"Function {function.name}", function.handler)
            if signature_error is not None:
                errors.append(signature_error)
            for custom_resource in function.custom_resources:
                # A registration shared by several functions is exported once
                custom_resources.setdefault(custom_resource.logical_name(), custom_resource)

        for custom_resource in custom_resources.values():
            name_counts[custom_resource.user_function_name] += 1
            signature_error = ensure_valid_signature(
                f"Custom resource {custom_resource.user_function_name}", custom_resource.handler
            )
            if signature_error is not None:
                errors.append(signature_error)

        collisions = {name: count for name, count in name_counts.items() if count > 1}
        for name, count in collisions.items():
            errors.append(f"Multiple definitions of function: {name} (count: {count})")

        if errors:
            for error in errors:
                logger.error("Precondition failed: %s", error)
            raise PreconditionError(errors, collisions)
        logger.info("Validated %s function(s) and %s custom resource(s)", len(functions), len(custom_resources))


def ensure_valid_signature(description: str, handler: Callable[..., Any]) -> Optional[str]:
    """
    Return an error message unless `handler` can be called with `(event, context)`.
    """
    if not callable(handler):
        return f"{description} handler is not callable ({handler!r})"
    try:
        signature = inspect.signature(handler)
    except (TypeError, ValueError) as e:
        return f"{description} handler signature could not be inspected: {e}"
    try:
        signature.bind(None, None)
    except TypeError:
        return (
            f"{description} handler {get_handler_symbol(handler)} must accept (event, context), "
            f"found {signature}"
        )
    return None


class PreconditionError(Exception):
    def __init__(self, errors: list[str], collisions: Optional[dict[str, int]] = None) -> None:
        self.errors = errors
        self.collisions = collisions if collisions is not None else {}
        super().__init__("Precondition validation failed:\n" + "\n".join(f"  - {error}" for error in errors))
