from __future__ import annotations

import logging
import zipfile
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional

from stratus.deployment.common.deploy.models.template import Template

if TYPE_CHECKING:
    from stratus.deployment.common.deploy.build_state import BuildState

logger = logging.getLogger(__name__)

HookContext = Mapping[str, Any]

# Phase names used in logs and in HookError messages
PHASE_PRE_BUILD = "PreBuild"
PHASE_POST_BUILD = "PostBuild"
PHASE_ARCHIVE = "Archive"
PHASE_PRE_MARSHAL = "PreMarshal"
PHASE_POST_MARSHAL = "PostMarshal"
PHASE_SERVICE_DECORATOR = "ServiceDecorator"
PHASE_FUNCTION_DECORATOR = "FunctionDecorator"
PHASE_VALIDATION = "Validation"
PHASE_ROLLBACK = "Rollback"


@dataclass(frozen=True)
class HookRegistration:
    """
    A user callback together with the name it is reported under.

    :param name: Name used in log lines and error messages.
    :param handler: The callback, its signature depends on the phase it is registered for.
    """

    name: str
    handler: Callable[..., Any]


@dataclass
class WorkflowHooks:  # pylint: disable=too-many-instance-attributes
    context: dict[str, Any] = field(default_factory=dict)
    pre_builds: list[HookRegistration] = field(default_factory=list)
    post_builds: list[HookRegistration] = field(default_factory=list)
    archives: list[HookRegistration] = field(default_factory=list)
    pre_marshals: list[HookRegistration] = field(default_factory=list)
    post_marshals: list[HookRegistration] = field(default_factory=list)
    service_decorators: list[HookRegistration] = field(default_factory=list)
    validators: list[HookRegistration] = field(default_factory=list)
    rollbacks: list[HookRegistration] = field(default_factory=list)

    def has_hooks(self) -> bool:
        return any(
            (
                self.pre_builds,
                self.post_builds,
                self.archives,
                self.pre_marshals,
                self.post_marshals,
                self.service_decorators,
                self.validators,
                self.rollbacks,
            )
        )


def freeze_context(context: Optional[Mapping[str, Any]] = None) -> HookContext:
    return MappingProxyType(dict(context) if context else {})


def context_with_value(context: HookContext, key: str, value: Any) -> HookContext:
    """
    Return a new hook context with `key` set to `value`, the given context is not modified.
    """
    updated = dict(context)
    updated[key] = value
    return MappingProxyType(updated)


def _next_context(phase: str, hook: HookRegistration, current: HookContext, returned: Any) -> HookContext:
    if returned is None:
        return current
    if not isinstance(returned, Mapping):
        raise HookError(
            phase,
            hook.name,
            TypeError(f"hook returned {type(returned).__name__}, expected a mapping or None"),
        )
    return freeze_context(returned)


def call_workflow_hook(phase: str, hooks: list[HookRegistration], build_state: BuildState) -> None:
    """
    Run the pre/post build and pre/post marshal hooks of a phase in registration order, threading the
    hook context through every call.
    """
    userdata = build_state.userdata
    context = build_state.context
    for hook in hooks:
        logger.info("Calling %s hook: %s", phase, hook.name)
        try:
            returned = hook.handler(
                context.hook_context,
                userdata.service_name,
                userdata.build_id,
                context.session,
                userdata.noop,
                logger,
            )
        except Exception as e:  # pylint: disable=broad-except
            raise HookError(phase, hook.name, e) from e
        context.hook_context = _next_context(phase, hook, context.hook_context, returned)


def call_archive_hooks(archive: zipfile.ZipFile, build_state: BuildState) -> None:
    userdata = build_state.userdata
    context = build_state.context
    for hook in userdata.workflow_hooks.archives:
        logger.info("Calling %s hook: %s", PHASE_ARCHIVE, hook.name)
        try:
            returned = hook.handler(
                context.hook_context,
                userdata.service_name,
                archive,
                context.session,
                userdata.noop,
                logger,
            )
        except Exception as e:  # pylint: disable=broad-except
            raise HookError(PHASE_ARCHIVE, hook.name, e) from e
        context.hook_context = _next_context(PHASE_ARCHIVE, hook, context.hook_context, returned)


def call_service_decorator_hooks(code_location: dict[str, Any], build_state: BuildState) -> None:
    """
    Every decorator exports into its own empty fragment which is safe-merged into the shared template
    right after the call. A decorator never sees the fragments of the decorators before it.
    """
    userdata = build_state.userdata
    context = build_state.context
    for hook in userdata.workflow_hooks.service_decorators:
        logger.info("Calling %s hook: %s", PHASE_SERVICE_DECORATOR, hook.name)
        fragment = Template()
        try:
            returned = hook.handler(
                context.hook_context,
                userdata.service_name,
                fragment,
                code_location,
                userdata.build_id,
                context.session,
                userdata.noop,
                logger,
            )
        except Exception as e:  # pylint: disable=broad-except
            raise HookError(PHASE_SERVICE_DECORATOR, hook.name, e) from e
        context.hook_context = _next_context(PHASE_SERVICE_DECORATOR, hook, context.hook_context, returned)
        context.template.merge(fragment)


def call_validation_hooks(code_location: dict[str, Any], build_state: BuildState) -> None:
    userdata = build_state.userdata
    context = build_state.context
    serialized_template = context.template.to_json()
    for hook in userdata.workflow_hooks.validators:
        logger.info("Calling %s hook: %s", PHASE_VALIDATION, hook.name)
        # Validators get their own copy, they may only fail
        template_copy = Template.from_json(serialized_template)
        try:
            hook.handler(
                context.hook_context,
                userdata.service_name,
                template_copy,
                code_location,
                userdata.build_id,
                context.session,
                userdata.noop,
                logger,
            )
        except Exception as e:  # pylint: disable=broad-except
            raise HookError(PHASE_VALIDATION, hook.name, e) from e


def call_rollback_hooks(build_state: BuildState) -> list[Exception]:
    """
    Run the rollback hooks in reverse registration order.

    A failing rollback hook does not stop the remaining ones, the errors are returned so that the
    pipeline can report them next to the original failure.
    """
    userdata = build_state.userdata
    context = build_state.context
    errors: list[Exception] = []
    for hook in reversed(userdata.workflow_hooks.rollbacks):
        logger.info("Calling %s hook: %s", PHASE_ROLLBACK, hook.name)
        try:
            returned = hook.handler(
                context.hook_context,
                userdata.service_name,
                context.session,
                userdata.noop,
                logger,
            )
            context.hook_context = _next_context(PHASE_ROLLBACK, hook, context.hook_context, returned)
        except HookError as e:
            logger.warning("Rollback hook %s failed: %s", hook.name, e)
            errors.append(e)
        except Exception as e:  # pylint: disable=broad-except
            logger.warning("Rollback hook %s failed: %s", hook.name, e)
            errors.append(HookError(PHASE_ROLLBACK, hook.name, e))
    return errors


class HookError(Exception):
    def __init__(self, phase: str, hook_name: str, cause: Exception) -> None:
        self.phase = phase
        self.hook_name = hook_name
        self.cause = cause
        super().__init__(f"{phase} hook {hook_name} failed: {cause}")
