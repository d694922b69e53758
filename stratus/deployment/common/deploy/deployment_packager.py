from __future__ import annotations

import logging
import os
import time
import zipfile

from stratus.common.constants import (
    BINARY_NAME,
    EXECUTABLE_EXTERNAL_ATTR,
    METADATA_PARAM_CODE_ARCHIVE_PATH,
    METADATA_PARAM_S3_BUCKET,
    METADATA_PARAM_S3_SITE_ARCHIVE_PATH,
    METADATA_PARAM_SERVICE_NAME,
    STACK_PARAM_S3_SITE_ARCHIVE_KEY,
    STACK_PARAM_S3_SITE_ARCHIVE_VERSION,
    UNIX_CREATE_SYSTEM,
)
from stratus.common.utils import relative_path, sanitized_name
from stratus.deployment.common.deploy.build_state import BuildState
from stratus.deployment.common.deploy.hooks import (
    PHASE_POST_BUILD,
    PHASE_PRE_BUILD,
    call_archive_hooks,
    call_workflow_hook,
)
from stratus.deployment.common.deploy.models.template import new_stack_parameter
from stratus.deployment.common.deploy.pipeline import ExecutionContext, Operation

logger = logging.getLogger(__name__)


class CreatePackageOperation(Operation):
    """
    Builds the function binary and archives it, together with the optional S3 site, into the
    artifacts uploaded during provisioning.
    """

    def __init__(self, build_state: BuildState) -> None:
        self._build_state = build_state
        self._created_files: list[str] = []

    def invoke(self, ctx: ExecutionContext) -> None:
        userdata = self._build_state.userdata
        context = self._build_state.context
        self._created_files = []

        try:
            os.makedirs(context.output_directory, exist_ok=True)
        except OSError as e:
            raise PackagingError(f"creating output directory {context.output_directory}", e) from e

        call_workflow_hook(PHASE_PRE_BUILD, userdata.workflow_hooks.pre_builds, self._build_state)

        ctx.raise_if_cancelled()
        binary_path = os.path.join(context.output_directory, BINARY_NAME)
        userdata.toolchain.build(
            userdata.service_name,
            binary_path,
            userdata.use_native_build,
            userdata.build_id,
            userdata.build_tags,
            userdata.link_flags,
            userdata.noop,
        )
        self._created_files.append(binary_path)
        context.binary_path = binary_path

        if userdata.site is not None:
            self._create_site_archive()

        call_workflow_hook(PHASE_POST_BUILD, userdata.workflow_hooks.post_builds, self._build_state)

        self._create_code_archive()

    def rollback(self, ctx: ExecutionContext) -> None:
        context = self._build_state.context
        for filename in reversed(self._created_files):
            if os.path.exists(filename):
                logger.info("Removing %s", relative_path(filename))
                os.remove(filename)
        self._created_files = []
        context.binary_path = ""
        context.code_archive_path = ""
        context.site_archive_path = ""
        for key in (
            METADATA_PARAM_CODE_ARCHIVE_PATH,
            METADATA_PARAM_SERVICE_NAME,
            METADATA_PARAM_S3_BUCKET,
            METADATA_PARAM_S3_SITE_ARCHIVE_PATH,
        ):
            context.template.metadata.pop(key, None)
        context.template.parameters.pop(STACK_PARAM_S3_SITE_ARCHIVE_KEY, None)
        context.template.parameters.pop(STACK_PARAM_S3_SITE_ARCHIVE_VERSION, None)

    def _create_site_archive(self) -> None:
        userdata = self._build_state.userdata
        context = self._build_state.context
        site = userdata.site
        assert site is not None
        if not os.path.isdir(site.resources):
            raise PackagingError(
                f"archiving S3 site {site.resources}", FileNotFoundError(f"{site.resources} is not a directory")
            )
        archive_path = os.path.join(context.output_directory, f"{sanitized_name(userdata.service_name)}-S3Site.zip")
        try:
            with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as archive:
                self._created_files.append(archive_path)
                for root, _, files in os.walk(site.resources):
                    for filename in sorted(files):
                        full_path = os.path.join(root, filename)
                        archive.write(full_path, os.path.relpath(full_path, site.resources))
        except OSError as e:
            raise PackagingError(f"archiving S3 site {site.resources}", e) from e

        context.site_archive_path = archive_path
        context.template.metadata[METADATA_PARAM_S3_SITE_ARCHIVE_PATH] = archive_path
        context.template.add_parameter(
            STACK_PARAM_S3_SITE_ARCHIVE_KEY,
            new_stack_parameter("String", "Object key of the S3 site archive", "", "", 0),
        )
        context.template.add_parameter(
            STACK_PARAM_S3_SITE_ARCHIVE_VERSION,
            new_stack_parameter("String", "Object version of the S3 site archive", "", "", 0),
        )
        logger.info("Created S3 site archive %s", relative_path(archive_path))

    def _create_code_archive(self) -> None:
        userdata = self._build_state.userdata
        context = self._build_state.context
        archive_path = os.path.join(context.output_directory, f"{sanitized_name(userdata.service_name)}-code.zip")
        try:
            with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as archive:
                self._created_files.append(archive_path)
                call_archive_hooks(archive, self._build_state)
                add_executable(archive, context.binary_path, BINARY_NAME)
        except OSError as e:
            raise PackagingError(f"creating code archive {archive_path}", e) from e

        context.code_archive_path = archive_path
        context.template.metadata[METADATA_PARAM_CODE_ARCHIVE_PATH] = archive_path
        context.template.metadata[METADATA_PARAM_SERVICE_NAME] = userdata.service_name
        context.template.metadata[METADATA_PARAM_S3_BUCKET] = userdata.s3_bucket
        logger.info("Created code archive %s", relative_path(archive_path))


def add_executable(archive: zipfile.ZipFile, filename: str, archive_name: str) -> None:
    """
    Add `filename` as an executable entry. The permission bits are set on the entry itself, the
    host filesystem may not preserve them.
    """
    with open(filename, "rb") as f:
        content = f.read()
    zip_info = zipfile.ZipInfo(archive_name, date_time=time.localtime(os.path.getmtime(filename))[:6])
    zip_info.external_attr = EXECUTABLE_EXTERNAL_ATTR
    zip_info.create_system = UNIX_CREATE_SYSTEM
    zip_info.compress_type = zipfile.ZIP_DEFLATED
    archive.writestr(zip_info, content)


class PackagingError(Exception):
    def __init__(self, action: str, cause: Exception) -> None:
        self.action = action
        self.cause = cause
        super().__init__(f"Failed {action}: {cause}")
