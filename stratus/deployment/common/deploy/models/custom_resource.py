from dataclasses import asdict
from typing import Any, Callable, Optional

from stratus.common.constants import CUSTOM_RESOURCE_RESOURCE_TYPE, LAMBDA_FUNCTION_RESOURCE_TYPE
from stratus.common.utils import cloudformation_resource_name, get_handler_symbol, sanitized_name
from stratus.deployment.common.deploy.models.function_options import FunctionOptions
from stratus.deployment.common.deploy.models.iam_role import IAMRoleDefinition, RoleRequirement, role_reference
from stratus.deployment.common.deploy.models.template import Template, get_att


class CustomResourceRegistration:  # pylint: disable=too-many-instance-attributes
    """
    A function-backed CloudFormation custom resource required by a function.

    The logical name is a digest of the handler, the role, the properties and the options. It is
    computed once and memoized, every reference to the same registration within a build resolves to
    the same resource.
    """

    def __init__(
        self,
        handler: Callable[..., Any],
        role: RoleRequirement,
        properties: Optional[dict[str, Any]] = None,
        options: Optional[FunctionOptions] = None,
        user_function_name: Optional[str] = None,
    ) -> None:
        self.handler = handler
        self.role = role
        self.properties = properties if properties is not None else {}
        self.options = options if options is not None else FunctionOptions()
        self.handler_symbol = get_handler_symbol(handler)
        self.user_function_name = (
            user_function_name if user_function_name is not None else getattr(handler, "__name__", self.handler_symbol)
        )
        self._logical_name: Optional[str] = None

    def logical_name(self) -> str:
        if self._logical_name is None:
            self._logical_name = cloudformation_resource_name(
                f"{sanitized_name(self.user_function_name)}CustomResource",
                self.user_function_name,
                self.handler_symbol,
                self.role_key(),
                self.properties,
                asdict(self.options),
            )
        return self._logical_name

    def role_key(self) -> Any:
        if isinstance(self.role, IAMRoleDefinition):
            return self.role.to_json()
        return self.role

    def handler_logical_name(self) -> str:
        return f"{self.logical_name()}Lambda"

    def export(
        self,
        service_name: str,
        code_location: dict[str, Any],
        role_map: dict[str, Any],
        depends_on: Optional[list[str]],
        template: Template,
    ) -> None:
        role = role_reference(self.role, service_name, role_map)
        handler_properties = self.options.function_properties(self.user_function_name, role, code_location)
        handler_definition: dict[str, Any] = {"Type": LAMBDA_FUNCTION_RESOURCE_TYPE, "Properties": handler_properties}
        if isinstance(role, dict) and "Fn::GetAtt" in role:
            handler_definition["DependsOn"] = [role["Fn::GetAtt"][0]]
        template.add_resource_definition(self.handler_logical_name(), handler_definition)

        custom_resource_properties = {"ServiceToken": get_att(self.handler_logical_name(), "Arn")}
        custom_resource_properties.update(self.properties)
        template.add_resource(
            self.logical_name(),
            CUSTOM_RESOURCE_RESOURCE_TYPE,
            properties=custom_resource_properties,
            depends_on=depends_on,
        )

    def __repr__(self) -> str:
        return f"CustomResourceRegistration({self.user_function_name}): Handler: {self.handler_symbol}, Role: {self.role}"
