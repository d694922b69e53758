from typing import Any, Callable, Optional, Sequence

from stratus.deployment.client.stratus_function import StratusFunction
from stratus.deployment.common.deploy.hooks import HookRegistration, WorkflowHooks
from stratus.deployment.common.deploy.models.api_gateway import APIGateway
from stratus.deployment.common.deploy.models.custom_resource import CustomResourceRegistration
from stratus.deployment.common.deploy.models.event_source_mapping import EventSourceMapping
from stratus.deployment.common.deploy.models.function_options import FunctionOptions
from stratus.deployment.common.deploy.models.iam_role import RoleRequirement
from stratus.deployment.common.deploy.models.s3_site import S3Site


class StratusService:  # pylint: disable=too-many-instance-attributes
    """
    StratusService class that is used to register functions as one provisioned service.

    Every project must expose an instance of this class as `service` in its `app.py`.
    The instance is used to register functions as serverless functions and to attach the workflow
    hooks, the API gateway and the S3 site that are provisioned together with them.

    :param name: The name of the service, also used as the stack name.
    :param description: The stack description.
    """

    def __init__(
        self,
        name: str,
        description: str = "",
        functions: Optional[Sequence[Optional[StratusFunction]]] = None,
        workflow_hooks: Optional[WorkflowHooks] = None,
        api: Optional[APIGateway] = None,
        site: Optional[S3Site] = None,
        profile_decorator: Optional[HookRegistration] = None,
    ):
        self.name = name
        self.description = description
        self.functions: list[Optional[StratusFunction]] = list(functions or [])
        self.workflow_hooks = workflow_hooks if workflow_hooks is not None else WorkflowHooks()
        self.api = api
        self.site = site
        self.profile_decorator = profile_decorator

    def register_function(self, function: Optional[StratusFunction]) -> Optional[StratusFunction]:
        self.functions.append(function)
        return function

    def serverless_function(
        self,
        role: RoleRequirement,
        name: Optional[str] = None,
        options: Optional[FunctionOptions] = None,
        event_source_mappings: Optional[Sequence[EventSourceMapping]] = None,
        custom_resources: Optional[Sequence[CustomResourceRegistration]] = None,
        decorators: Optional[Sequence[HookRegistration]] = None,
    ) -> Callable[..., Any]:
        """
        Decorator to register a function as a Lambda function of this service.

        :param role: Name or ARN of an existing IAM role, or an inline `IAMRoleDefinition`.
        :param name: The name of the Lambda function. Defaults to the name of the function being decorated.

        The decorated function is returned unchanged, the registered `StratusFunction` is available
        as its `stratus_function` attribute.
        """

        def _register_handler(func: Callable[..., Any]) -> Callable[..., Any]:
            function = StratusFunction(
                func,
                role,
                name=name,
                options=options,
                event_source_mappings=event_source_mappings,
                decorators=decorators,
            )
            for custom_resource in custom_resources or []:
                function.custom_resources.append(custom_resource)
            self.register_function(function)
            func.stratus_function = function  # type: ignore
            return func

        return _register_handler

    def add_hook(self, phase: str, name: str, handler: Callable[..., Any]) -> None:
        """
        Register a workflow hook, `phase` is the name of the `WorkflowHooks` list to append to.
        """
        if phase == "context" or not hasattr(self.workflow_hooks, phase):
            raise ValueError(f"Unknown workflow hook phase: {phase}")
        getattr(self.workflow_hooks, phase).append(HookRegistration(name, handler))
