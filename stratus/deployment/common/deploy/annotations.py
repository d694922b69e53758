"""
Annotation passes over the assembled service template.

The discovery pass injects the runtime environment every function relies on, the materialized pass
fixes the resource ordering and records the build outputs once every fragment has been merged.
"""
import json
from datetime import datetime
from typing import Any, Iterable, Optional, Sequence

from stratus.common.constants import (
    CUSTOM_RESOURCE_RESOURCE_TYPE,
    ENV_VAR_BUILD_ID,
    ENV_VAR_DISCOVERY_INFORMATION,
    ENV_VAR_LOG_LEVEL,
    LAMBDA_FUNCTION_RESOURCE_TYPE,
    REQUIRED_FUNCTION_ENVIRONMENT_KEYS,
    STACK_CONDITION_HAS_S3_CODE_VERSION,
    STACK_OUTPUT_BUILD_ID,
    STACK_OUTPUT_BUILD_TIME,
    STACK_PARAM_S3_CODE_BUCKET_NAME,
    STACK_PARAM_S3_CODE_KEY_NAME,
    STACK_PARAM_S3_CODE_VERSION,
    TIME_FORMAT,
)
from stratus.deployment.common.deploy.models.template import Template, base64, new_stack_parameter, ref, sub


def function_code_location() -> dict[str, Any]:
    """
    Code location shared by every function, resolved from the stack parameters at provisioning time.
    """
    return {
        "S3Bucket": ref(STACK_PARAM_S3_CODE_BUCKET_NAME),
        "S3Key": ref(STACK_PARAM_S3_CODE_KEY_NAME),
        "S3ObjectVersion": {
            "Fn::If": [STACK_CONDITION_HAS_S3_CODE_VERSION, ref(STACK_PARAM_S3_CODE_VERSION), ref("AWS::NoValue")]
        },
    }


def pipeline_environment_keys(pipeline_environments: dict[str, dict[str, str]]) -> list[str]:
    keys: set[str] = set()
    for variables in pipeline_environments.values():
        keys.update(variables.keys())
    return sorted(keys)


def add_stack_parameters(template: Template, pipeline_environments: dict[str, dict[str, str]]) -> None:
    template.add_parameter(
        STACK_PARAM_S3_CODE_BUCKET_NAME,
        new_stack_parameter("String", "S3 bucket holding the code archive", None, "", 3),
    )
    template.add_parameter(
        STACK_PARAM_S3_CODE_KEY_NAME,
        new_stack_parameter("String", "Object key of the code archive", None, "", 1),
    )
    template.add_parameter(
        STACK_PARAM_S3_CODE_VERSION,
        new_stack_parameter("String", "Object version of the code archive", "", "", 0),
    )
    template.add_condition(
        STACK_CONDITION_HAS_S3_CODE_VERSION,
        {"Fn::Not": [{"Fn::Equals": [ref(STACK_PARAM_S3_CODE_VERSION), ""]}]},
    )
    for key in pipeline_environment_keys(pipeline_environments):
        template.add_parameter(key, new_stack_parameter("String", f"Pipeline environment value {key}", "", "", 0))


def discovery_info(logical_name: str) -> dict[str, Any]:
    """
    Discovery information of a resource, resolved by CloudFormation when the stack is created.
    """
    discovery = {
        "ResourceID": logical_name,
        "StackID": "${AWS::StackId}",
        "StackName": "${AWS::StackName}",
        "Region": "${AWS::Region}",
    }
    return base64(sub(json.dumps(discovery, sort_keys=True)))


def function_environment(definition: dict[str, Any]) -> dict[str, Any]:
    properties = definition.setdefault("Properties", {})
    environment = properties.setdefault("Environment", {})
    return environment.setdefault("Variables", {})


def custom_resource_handlers(template: Template) -> dict[str, str]:
    """
    Map the logical name of every custom resource handler function to the custom resource it backs.
    """
    handlers: dict[str, str] = {}
    for logical_name, definition in template.resources_of_type(CUSTOM_RESOURCE_RESOURCE_TYPE):
        service_token = definition.get("Properties", {}).get("ServiceToken")
        if isinstance(service_token, dict) and "Fn::GetAtt" in service_token:
            handlers[service_token["Fn::GetAtt"][0]] = logical_name
    return handlers


def annotate_discovery_info(
    template: Template,
    log_level: str,
    build_id: str,
    pipeline_environment_names: Sequence[str] = (),
) -> None:
    # A custom resource handler discovers the custom resource, not itself
    handlers = custom_resource_handlers(template)
    for logical_name, definition in template.resources_of_type(LAMBDA_FUNCTION_RESOURCE_TYPE):
        variables = function_environment(definition)
        variables[ENV_VAR_DISCOVERY_INFORMATION] = discovery_info(handlers.get(logical_name, logical_name))
        variables[ENV_VAR_LOG_LEVEL] = log_level
        variables[ENV_VAR_BUILD_ID] = build_id
        for key in pipeline_environment_names:
            variables[key] = ref(key)


def _add_depends_on(definition: dict[str, Any], logical_names: Iterable[str]) -> None:
    depends_on = definition.get("DependsOn", [])
    if isinstance(depends_on, str):
        depends_on = [depends_on]
    for logical_name in logical_names:
        if logical_name not in depends_on:
            depends_on.append(logical_name)
    if depends_on:
        definition["DependsOn"] = sorted(depends_on)


def annotate_materialized_template(
    template: Template,
    functions: Iterable[Any],
    build_id: str,
    build_time: datetime,
) -> None:
    """
    Every function depends on the IAM role it assumes and on the custom resources it requires, so
    that both exist before the function is created.
    """
    for _, definition in template.resources_of_type(LAMBDA_FUNCTION_RESOURCE_TYPE):
        role = definition.get("Properties", {}).get("Role")
        if isinstance(role, dict) and "Fn::GetAtt" in role and role["Fn::GetAtt"][0] in template.resources:
            _add_depends_on(definition, [role["Fn::GetAtt"][0]])

    for function in functions:
        if function is None:
            continue
        definition = template.resources.get(function.logical_name())
        if definition is None:
            continue
        _add_depends_on(
            definition,
            [
                custom_resource.logical_name()
                for custom_resource in function.custom_resources
                if custom_resource.logical_name() in template.resources
            ],
        )

    template.add_output(STACK_OUTPUT_BUILD_ID, build_id, description="Stratus build identifier")
    template.add_output(
        STACK_OUTPUT_BUILD_TIME, build_time.strftime(TIME_FORMAT), description="Stratus template creation time"
    )


def ensure_discovery_info(template: Template) -> None:
    missing: dict[str, list[str]] = {}
    for logical_name, definition in template.resources_of_type(LAMBDA_FUNCTION_RESOURCE_TYPE):
        variables: Optional[dict[str, Any]] = definition.get("Properties", {}).get("Environment", {}).get("Variables")
        missing_keys = [key for key in REQUIRED_FUNCTION_ENVIRONMENT_KEYS if not variables or key not in variables]
        if missing_keys:
            missing[logical_name] = missing_keys
    if missing:
        raise TemplateValidationError(missing)


class TemplateValidationError(Exception):
    def __init__(self, missing: dict[str, list[str]]) -> None:
        self.missing = missing
        super().__init__(
            "Template validation failed: "
            + "; ".join(f"function {name} is missing {', '.join(keys)}" for name, keys in sorted(missing.items()))
        )
