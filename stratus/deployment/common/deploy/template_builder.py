import copy
import logging
from typing import Any, Optional

from stratus.common.constants import (
    METADATA_PARAM_STACK_TAGS,
    STACK_PARAM_S3_SITE_ARCHIVE_KEY,
    STRATUS_TAG_BUILD_ID_KEY,
    STRATUS_TAG_BUILD_TAGS_KEY,
)
from stratus.deployment.common.deploy.annotations import (
    add_stack_parameters,
    annotate_discovery_info,
    annotate_materialized_template,
    ensure_discovery_info,
    function_code_location,
    pipeline_environment_keys,
)
from stratus.deployment.common.deploy.build_state import BuildState
from stratus.deployment.common.deploy.hooks import (
    PHASE_POST_MARSHAL,
    PHASE_PRE_MARSHAL,
    call_service_decorator_hooks,
    call_validation_hooks,
    call_workflow_hook,
)
from stratus.deployment.common.deploy.models.template import Template, ref
from stratus.deployment.common.deploy.pipeline import ExecutionContext, Operation

logger = logging.getLogger(__name__)


class CreateTemplateOperation(Operation):
    """
    Assembles the service template.

    Every function, the API gateway, every service decorator and the S3 site export into their own
    fragment, each fragment is safe-merged into the shared template. The annotation passes then
    complete the template, the validation hooks and the discovery check run on the result before it
    is written to the template writer.
    """

    def __init__(self, build_state: BuildState) -> None:
        self._build_state = build_state
        self._snapshot: Optional[dict[str, Any]] = None

    def invoke(self, ctx: ExecutionContext) -> None:
        userdata = self._build_state.userdata
        context = self._build_state.context
        self._snapshot = copy.deepcopy(context.template.to_dict())
        template = context.template
        template.description = userdata.service_description

        call_workflow_hook(PHASE_PRE_MARSHAL, userdata.workflow_hooks.pre_marshals, self._build_state)

        add_stack_parameters(template, userdata.pipeline_environments)
        code_location = function_code_location()

        for function in userdata.functions:
            if function is None:
                continue
            logger.debug("Exporting function %s", function.name)
            fragment = Template()
            function.export(
                userdata.service_name,
                code_location,
                context.role_map,
                context.hook_context,
                userdata.build_id,
                fragment,
                logger,
            )
            template.merge(fragment)

        api_outputs: dict[str, Any] = {}
        if userdata.api is not None:
            ctx.raise_if_cancelled()
            fragment = Template()
            userdata.api.marshal(
                userdata.service_name,
                context.session,
                code_location,
                context.role_map,
                fragment,
                userdata.noop,
            )
            api_outputs = dict(fragment.outputs)
            template.merge(fragment)

        call_service_decorator_hooks(code_location, self._build_state)

        annotate_discovery_info(
            template,
            userdata.log_level,
            userdata.build_id,
            pipeline_environment_keys(userdata.pipeline_environments),
        )

        if userdata.site is not None:
            fragment = Template()
            userdata.site.export(userdata.service_name, ref(STACK_PARAM_S3_SITE_ARCHIVE_KEY), api_outputs, fragment)
            template.merge(fragment)

        call_workflow_hook(PHASE_POST_MARSHAL, userdata.workflow_hooks.post_marshals, self._build_state)

        annotate_materialized_template(template, userdata.functions, userdata.build_id, context.build_time)
        template.metadata[METADATA_PARAM_STACK_TAGS] = stack_tags(userdata.build_id, userdata.build_tags)

        call_validation_hooks(code_location, self._build_state)
        ensure_discovery_info(template)

        template_body = template.to_json(indent=2)
        logger.debug("CloudFormation template:\n%s", template_body)
        if context.template_writer is not None:
            context.template_writer.write(template_body)
            context.template_writer.flush()
        logger.info("Created template with %s resource(s)", len(template.resources))

    def rollback(self, ctx: ExecutionContext) -> None:
        if self._snapshot is not None:
            self._build_state.context.template = Template.from_dict(self._snapshot)
            self._snapshot = None


def stack_tags(build_id: str, build_tags: dict[str, str]) -> dict[str, str]:
    tags = {STRATUS_TAG_BUILD_ID_KEY: build_id}
    if build_tags:
        tags[STRATUS_TAG_BUILD_TAGS_KEY] = ",".join(f"{key}={value}" for key, value in sorted(build_tags.items()))
    return tags
