import io
import logging
import os
from typing import Any, Optional

import botocore.exceptions

from stratus.common.constants import (
    METADATA_PARAM_STACK_TAGS,
    STACK_PARAM_S3_CODE_BUCKET_NAME,
    STACK_PARAM_S3_CODE_KEY_NAME,
    STACK_PARAM_S3_CODE_VERSION,
    STACK_PARAM_S3_SITE_ARCHIVE_KEY,
    STACK_PARAM_S3_SITE_ARCHIVE_VERSION,
)
from stratus.common.models.remote_client.remote_client import RemoteClient
from stratus.common.utils import sanitized_name
from stratus.deployment.common.deploy.build_state import BuildState
from stratus.deployment.common.deploy.builder import Builder
from stratus.deployment.common.deploy.pipeline import ExecutionContext

logger = logging.getLogger(__name__)


class Provisioner:
    """
    Builds the service, uploads its artifacts and the template to S3 and creates or updates the stack.
    """

    def __init__(self, builder: Builder, remote_client: RemoteClient) -> None:
        self._builder = builder
        self._remote_client = remote_client

    def provision(
        self,
        s3_bucket: str,
        noop: bool = False,
        build_id: Optional[str] = None,
        pipeline_environment: Optional[str] = None,
        ctx: Optional[ExecutionContext] = None,
    ) -> Optional[dict[str, Any]]:
        if ctx is None:
            ctx = ExecutionContext()
        template_writer = io.StringIO()
        build_state = self._builder.build(noop=noop, build_id=build_id, template_writer=template_writer, ctx=ctx)
        if noop:
            logger.info("Skipping provisioning of %s (noop)", build_state.userdata.service_name)
            return None
        try:
            return self._provision(build_state, s3_bucket, template_writer.getvalue(), pipeline_environment, ctx)
        except botocore.exceptions.ClientError as e:
            raise ProvisionError(e) from e

    def _provision(
        self,
        build_state: BuildState,
        s3_bucket: str,
        template_body: str,
        pipeline_environment: Optional[str],
        ctx: ExecutionContext,
    ) -> dict[str, Any]:
        userdata = build_state.userdata
        context = build_state.context
        key_prefix = sanitized_name(userdata.service_name)

        parameters: dict[str, str] = {}
        if pipeline_environment is not None:
            if pipeline_environment not in userdata.pipeline_environments:
                raise ProvisionError(f"Unknown pipeline environment: {pipeline_environment}")
            parameters.update(userdata.pipeline_environments[pipeline_environment])

        ctx.raise_if_cancelled()
        code_key = f"{key_prefix}/{os.path.basename(context.code_archive_path)}"
        code_version = self._remote_client.upload_resource(s3_bucket, code_key, context.code_archive_path)
        parameters[STACK_PARAM_S3_CODE_BUCKET_NAME] = s3_bucket
        parameters[STACK_PARAM_S3_CODE_KEY_NAME] = code_key
        parameters[STACK_PARAM_S3_CODE_VERSION] = code_version or ""

        if context.site_archive_path:
            ctx.raise_if_cancelled()
            site_key = f"{key_prefix}/{os.path.basename(context.site_archive_path)}"
            site_version = self._remote_client.upload_resource(s3_bucket, site_key, context.site_archive_path)
            parameters[STACK_PARAM_S3_SITE_ARCHIVE_KEY] = site_key
            parameters[STACK_PARAM_S3_SITE_ARCHIVE_VERSION] = site_version or ""

        template_filename = os.path.join(context.output_directory, f"{key_prefix}-cftemplate.json")
        with open(template_filename, "w", encoding="utf-8") as f:
            f.write(template_body)
        ctx.raise_if_cancelled()
        template_key = f"{key_prefix}/{userdata.build_id}-cftemplate.json"
        self._remote_client.upload_resource(s3_bucket, template_key, template_filename)
        template_url = f"https://{s3_bucket}.s3.amazonaws.com/{template_key}"

        tags = dict(context.template.metadata.get(METADATA_PARAM_STACK_TAGS, {}))
        ctx.raise_if_cancelled()
        stack = self._remote_client.create_or_update_stack(userdata.service_name, template_url, parameters, tags)
        for output in stack.get("Outputs", []):
            logger.info("Stack output %s: %s", output.get("OutputKey"), output.get("OutputValue"))
        logger.info("Provisioned %s: %s", userdata.service_name, stack.get("StackStatus"))
        return stack


class ProvisionError(Exception):
    pass
