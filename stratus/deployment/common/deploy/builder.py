import logging
import uuid
from typing import IO, Optional

import botocore.exceptions

from stratus.common.models.remote_client.aws_remote_client import AWSRemoteClient
from stratus.common.models.remote_client.remote_client import RemoteClient
from stratus.deployment.common.config.config import Config
from stratus.deployment.common.deploy.build_state import BuildContext, BuildState, UserData, initial_hook_context
from stratus.deployment.common.deploy.deployment_packager import CreatePackageOperation
from stratus.deployment.common.deploy.iam_role_resolver import VerifyIAMRolesOperation
from stratus.deployment.common.deploy.pipeline import ExecutionContext, Pipeline, PipelineError, Stage
from stratus.deployment.common.deploy.preconditions import (
    ValidatePreconditionsOperation,
    VerifyAWSPreconditionsOperation,
)
from stratus.deployment.common.deploy.template_builder import CreateTemplateOperation
from stratus.deployment.common.deploy.toolchain import Toolchain, ZipAppToolchain

logger = logging.getLogger(__name__)

BUILD_PIPELINE_NAME = "Build"


class Builder:
    def __init__(
        self,
        config: Config,
        toolchain: Toolchain,
        remote_client: Optional[RemoteClient],
    ) -> None:
        self._config = config
        self._toolchain = toolchain
        self._remote_client = remote_client

    def build(
        self,
        noop: bool = False,
        build_id: Optional[str] = None,
        template_writer: Optional[IO[str]] = None,
        ctx: Optional[ExecutionContext] = None,
    ) -> BuildState:
        try:
            return self._build(noop, build_id, template_writer, ctx if ctx is not None else ExecutionContext())
        except PipelineError as e:
            raise BuildError(str(e)) from e
        except botocore.exceptions.ClientError as e:
            raise BuildError(e) from e

    def _build(
        self,
        noop: bool,
        build_id: Optional[str],
        template_writer: Optional[IO[str]],
        ctx: ExecutionContext,
    ) -> BuildState:
        service = self._config.service_app
        if build_id is None:
            build_id = uuid.uuid4().hex
        logger.info("Building service %s (build id: %s, noop: %s)", service.name, build_id, noop)

        userdata = UserData(
            service_name=service.name,
            service_description=service.description or self._config.service_description,
            functions=tuple(service.functions),
            build_id=build_id,
            toolchain=self._toolchain,
            build_tags=dict(self._config.build_tags),
            link_flags=tuple(self._config.link_flags),
            use_native_build=self._config.use_native_build,
            noop=noop,
            s3_bucket=self._config.s3_bucket,
            log_level=self._config.log_level,
            api=service.api,
            site=service.site,
            workflow_hooks=service.workflow_hooks,
            pipeline_environments=self._config.pipeline_environments,
            profile_decorator=service.profile_decorator,
        )
        output_directory = self._config.output_directory
        context = BuildContext(
            output_directory=output_directory,
            hook_context=initial_hook_context(userdata, output_directory),
            session=self._remote_client.session if self._remote_client is not None else None,
            remote_client=self._remote_client,
            template_writer=template_writer,
        )
        build_state = BuildState(userdata, context)

        create_build_pipeline(build_state).run(ctx, BUILD_PIPELINE_NAME)

        logger.info("Service %s built, code archive: %s", service.name, context.code_archive_path)
        return build_state


def create_build_pipeline(build_state: BuildState) -> Pipeline:
    pipeline = Pipeline(build_state)
    pipeline.append(
        "validateAWSPreconditions",
        Stage().append("verifyAWSPreconditions", VerifyAWSPreconditionsOperation(build_state)),
    )
    pipeline.append(
        "validate",
        Stage()
        .append("validatePreconditions", ValidatePreconditionsOperation(build_state))
        .append("verifyIAMRoles", VerifyIAMRolesOperation(build_state)),
    )
    pipeline.append("package", Stage().append("createPackage", CreatePackageOperation(build_state)))
    pipeline.append("createTemplate", Stage().append("createTemplate", CreateTemplateOperation(build_state)))
    return pipeline


def create_default_builder(config: Config) -> Builder:
    toolchain_config = config.toolchain
    if config.project_dir is None:
        raise RuntimeError("project_dir must be defined")
    return Builder(
        config,
        ZipAppToolchain(
            config.project_dir,
            source_dir=toolchain_config.get("source_dir", "src"),
            main=toolchain_config.get("main", "app:main"),
            requirements_file=toolchain_config.get("requirements_file", "requirements.txt"),
            interpreter=toolchain_config.get("interpreter", "/usr/bin/env python3"),
        ),
        AWSRemoteClient(config.region, config.retry_policy),
    )


class BuildError(Exception):
    pass
