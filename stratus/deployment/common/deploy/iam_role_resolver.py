import logging
from typing import Any, Optional, Sequence

from botocore.exceptions import ClientError

from stratus.deployment.common.deploy.build_state import BuildState
from stratus.deployment.common.deploy.hooks import HookError
from stratus.deployment.common.deploy.models.event_source_mapping import EventSourceMapping
from stratus.deployment.common.deploy.models.iam_role import IAMRoleDefinition, RoleRequirement, role_map_key
from stratus.deployment.common.deploy.models.template import Template, get_att
from stratus.deployment.common.deploy.pipeline import ExecutionContext, Operation

logger = logging.getLogger(__name__)

PHASE_PROFILE_DECORATOR = "ProfileDecorator"


class VerifyIAMRolesOperation(Operation):
    """
    Resolves the IAM role of every function and custom resource.

    Inline role definitions are declared once per logical name, literal role names are looked up once
    per distinct value. The declared roles are staged in a fragment and only merged into the service
    template, together with the resolved role map entries, once every role has been resolved.
    """

    def __init__(self, build_state: BuildState) -> None:
        self._build_state = build_state
        self._declared_resources: list[str] = []
        self._resolved_keys: list[str] = []

    def invoke(self, ctx: ExecutionContext) -> None:
        userdata = self._build_state.userdata
        context = self._build_state.context
        fragment = Template()
        resolved: dict[str, Any] = {}

        for function in userdata.functions:
            if function is None:
                continue
            self._resolve_role(ctx, function.role, function.event_source_mappings, fragment, resolved)
            for custom_resource in function.custom_resources:
                self._resolve_role(ctx, custom_resource.role, None, fragment, resolved)
            if userdata.profile_decorator is not None:
                self._call_profile_decorator(function, fragment)

        context.template.merge(fragment)
        context.role_map.update(resolved)
        self._declared_resources = list(fragment.resources.keys())
        self._resolved_keys = list(resolved.keys())
        logger.info(
            "Resolved %s IAM role(s), declared %s resource(s)", len(self._resolved_keys), len(self._declared_resources)
        )

    def rollback(self, ctx: ExecutionContext) -> None:
        context = self._build_state.context
        for logical_name in self._declared_resources:
            logger.debug("Removing %s from the template", logical_name)
            context.template.remove_resource(logical_name)
        for key in self._resolved_keys:
            context.role_map.pop(key, None)
        self._declared_resources = []
        self._resolved_keys = []

    def _resolve_role(
        self,
        ctx: ExecutionContext,
        role: RoleRequirement,
        event_source_mappings: Optional[Sequence[EventSourceMapping]],
        fragment: Template,
        resolved: dict[str, Any],
    ) -> None:
        userdata = self._build_state.userdata
        context = self._build_state.context
        key = role_map_key(role, userdata.service_name, event_source_mappings)
        if key in context.role_map or key in resolved:
            logger.debug("IAM role %s already resolved", key)
            return

        if isinstance(role, IAMRoleDefinition):
            fragment.add_resource_definition(key, role.to_resource(event_source_mappings))
            resolved[key] = get_att(key, "Arn")
            return

        if userdata.noop:
            logger.info("Skipping lookup of IAM role %s (noop)", role)
            resolved[key] = role
            return

        if context.remote_client is None:
            raise RuntimeError("A remote client is required to look up IAM roles")
        ctx.raise_if_cancelled()
        try:
            resolved[key] = context.remote_client.get_iam_role(iam_role_name(role))
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "NoSuchEntity":
                raise IAMRoleResolutionError(role, "the role does not exist") from e
            raise IAMRoleResolutionError(role, str(e)) from e
        logger.info("Resolved IAM role %s to %s", role, resolved[key])

    def _call_profile_decorator(self, function: Any, fragment: Template) -> None:
        userdata = self._build_state.userdata
        profile_decorator = userdata.profile_decorator
        assert profile_decorator is not None
        logger.info("Calling %s %s for %s", PHASE_PROFILE_DECORATOR, profile_decorator.name, function.name)
        try:
            profile_decorator.handler(
                userdata.service_name,
                function,
                fragment,
                userdata.build_id,
                logger,
            )
        except Exception as e:  # pylint: disable=broad-except
            raise HookError(PHASE_PROFILE_DECORATOR, profile_decorator.name, e) from e


def iam_role_name(role: str) -> str:
    # arn:aws:iam::<account>:role/<path>/<name>
    if role.startswith("arn:") and "/" in role:
        return role.rsplit("/", 1)[-1]
    return role


class IAMRoleResolutionError(Exception):
    def __init__(self, role: str, reason: str) -> None:
        self.role = role
        super().__init__(f"IAM role {role} could not be resolved: {reason}")
