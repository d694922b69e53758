from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import IO, TYPE_CHECKING, Any, Optional

from stratus.common.constants import (
    BINARY_NAME,
    CONTEXT_KEY_BUILD_BINARY_NAME,
    CONTEXT_KEY_BUILD_ID,
    CONTEXT_KEY_BUILD_OUTPUT_DIR,
    DEFAULT_LOG_LEVEL,
    GLOBAL_TIME_ZONE,
)
from stratus.deployment.common.deploy.hooks import HookContext, HookRegistration, WorkflowHooks, freeze_context
from stratus.deployment.common.deploy.models.api_gateway import APIGateway
from stratus.deployment.common.deploy.models.s3_site import S3Site
from stratus.deployment.common.deploy.models.template import Template

if TYPE_CHECKING:
    from stratus.common.models.remote_client.remote_client import RemoteClient
    from stratus.deployment.client.stratus_function import StratusFunction
    from stratus.deployment.common.deploy.toolchain import Toolchain


@dataclass(frozen=True)
class UserData:  # pylint: disable=too-many-instance-attributes
    """
    Inputs of one build. Set once by the builder and never modified by an operation.
    """

    service_name: str
    service_description: str
    functions: tuple[Optional[StratusFunction], ...]
    build_id: str
    toolchain: Toolchain
    build_tags: dict[str, str] = field(default_factory=dict)
    link_flags: tuple[str, ...] = ()
    use_native_build: bool = False
    noop: bool = False
    s3_bucket: str = ""
    log_level: str = DEFAULT_LOG_LEVEL
    api: Optional[APIGateway] = None
    site: Optional[S3Site] = None
    workflow_hooks: WorkflowHooks = field(default_factory=WorkflowHooks)
    pipeline_environments: dict[str, dict[str, str]] = field(default_factory=dict)
    profile_decorator: Optional[HookRegistration] = None


@dataclass
class BuildContext:  # pylint: disable=too-many-instance-attributes
    """
    Outputs of one build, written by the operations in pipeline order.
    """

    output_directory: str
    template: Template = field(default_factory=Template)
    role_map: dict[str, Any] = field(default_factory=dict)
    hook_context: HookContext = field(default_factory=freeze_context)
    binary_path: str = ""
    code_archive_path: str = ""
    site_archive_path: str = ""
    session: Any = None
    remote_client: Optional[RemoteClient] = None
    template_writer: Optional[IO[str]] = None
    build_time: datetime = field(default_factory=lambda: datetime.now(GLOBAL_TIME_ZONE))


@dataclass
class BuildState:
    userdata: UserData
    context: BuildContext


def initial_hook_context(userdata: UserData, output_directory: str) -> HookContext:
    """
    The user supplied context seeded with the build values every hook can rely on.
    """
    context = dict(userdata.workflow_hooks.context)
    context[CONTEXT_KEY_BUILD_OUTPUT_DIR] = output_directory
    context[CONTEXT_KEY_BUILD_ID] = userdata.build_id
    context[CONTEXT_KEY_BUILD_BINARY_NAME] = BINARY_NAME
    return freeze_context(context)
