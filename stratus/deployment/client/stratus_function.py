from typing import Any, Callable, Optional, Sequence

from stratus.common.constants import LAMBDA_FUNCTION_RESOURCE_TYPE
from stratus.common.utils import cloudformation_resource_name, get_handler_symbol, sanitized_name
from stratus.deployment.common.deploy.hooks import (
    PHASE_FUNCTION_DECORATOR,
    HookContext,
    HookError,
    HookRegistration,
)
from stratus.deployment.common.deploy.models.custom_resource import CustomResourceRegistration
from stratus.deployment.common.deploy.models.event_source_mapping import EventSourceMapping
from stratus.deployment.common.deploy.models.function_options import FunctionOptions
from stratus.deployment.common.deploy.models.iam_role import RoleRequirement, role_reference
from stratus.deployment.common.deploy.models.template import Template


class StratusFunction:  # pylint: disable=too-many-instance-attributes
    """
    Class that represents a serverless function of a service.

    :param handler: The callable invoked with `(event, context)`.
    :param role: Name or ARN of an existing IAM role, or an inline `IAMRoleDefinition`.
    :param name: The function name, defaults to the name of the handler.
    :param decorators: Per-function decorators, called with the exported resource after the function
        has been exported.
    """

    def __init__(
        self,
        handler: Callable[..., Any],
        role: RoleRequirement,
        name: Optional[str] = None,
        options: Optional[FunctionOptions] = None,
        event_source_mappings: Optional[Sequence[EventSourceMapping]] = None,
        decorators: Optional[Sequence[HookRegistration]] = None,
    ):
        self.handler = handler
        self.role = role
        self.name = name if name is not None else getattr(handler, "__name__", get_handler_symbol(handler))
        self.handler_symbol = get_handler_symbol(handler)
        self.options = options if options is not None else FunctionOptions()
        self.event_source_mappings: list[EventSourceMapping] = list(event_source_mappings or [])
        self.decorators: list[HookRegistration] = list(decorators or [])
        self.custom_resources: list[CustomResourceRegistration] = []

        self.validate_function_name()

    def validate_function_name(self) -> None:
        if not isinstance(self.name, str) or len(sanitized_name(self.name)) == 0:
            raise ValueError(f"Function name must contain at least one alphanumeric character ({self.name})")

    def logical_name(self) -> str:
        return cloudformation_resource_name(f"{sanitized_name(self.name)}Lambda", self.name)

    def require_custom_resource(
        self,
        role: RoleRequirement,
        handler: Callable[..., Any],
        properties: Optional[dict[str, Any]] = None,
        options: Optional[FunctionOptions] = None,
    ) -> str:
        """
        Attach a function-backed custom resource to this function and return its logical name, which
        the function can resolve at runtime through the discovery information.

        Registering the same handler again is only accepted with the same role, properties and options.
        """
        registration = CustomResourceRegistration(handler, role, properties=properties, options=options)
        for existing in self.custom_resources:
            if existing.logical_name() == registration.logical_name():
                return existing.logical_name()
            if existing.user_function_name == registration.user_function_name:
                raise ValueError(
                    f"Custom resource {registration.user_function_name} of function {self.name} is already "
                    f"registered with a different role, properties or options"
                )
        self.custom_resources.append(registration)
        return registration.logical_name()

    def export(  # pylint: disable=too-many-arguments
        self,
        service_name: str,
        code_location: dict[str, Any],
        role_map: dict[str, Any],
        hook_context: HookContext,
        build_id: str,
        fragment: Template,
        logger: Any,
    ) -> None:
        """
        Export the function, its event source mappings and its custom resources into `fragment`.
        """
        logical_name = self.logical_name()
        role = role_reference(self.role, service_name, role_map, self.event_source_mappings)
        definition: dict[str, Any] = {
            "Type": LAMBDA_FUNCTION_RESOURCE_TYPE,
            "Properties": self.options.function_properties(self.name, role, code_location),
        }
        if isinstance(role, dict) and "Fn::GetAtt" in role:
            definition["DependsOn"] = [role["Fn::GetAtt"][0]]

        resource_metadata: dict[str, Any] = {}
        for decorator in self.decorators:
            logger.info("Calling %s %s for %s", PHASE_FUNCTION_DECORATOR, decorator.name, self.name)
            try:
                decorator.handler(
                    hook_context,
                    service_name,
                    logical_name,
                    definition,
                    resource_metadata,
                    code_location,
                    build_id,
                    fragment,
                    logger,
                )
            except Exception as e:  # pylint: disable=broad-except
                raise HookError(PHASE_FUNCTION_DECORATOR, decorator.name, e) from e
        if resource_metadata:
            definition["Metadata"] = resource_metadata
        fragment.add_resource_definition(logical_name, definition)

        for event_source_mapping in self.event_source_mappings:
            fragment.add_resource_definition(
                event_source_mapping.logical_name(logical_name), event_source_mapping.to_resource(logical_name)
            )
        for custom_resource in self.custom_resources:
            custom_resource.export(service_name, code_location, role_map, None, fragment)

    def __repr__(self) -> str:
        return f"StratusFunction({self.name}): Handler: {self.handler_symbol}, Role: {self.role}"
