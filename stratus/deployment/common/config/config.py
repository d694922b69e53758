import os
from typing import Any, Optional

from stratus.common.constants import DEFAULT_LOG_LEVEL, DEFAULT_OUTPUT_DIRECTORY
from stratus.common.retry import RetryPolicy, create_retry_policy
from stratus.deployment.client.stratus_service import StratusService


class Config:
    def __init__(self, project_config: dict, project_dir: Optional[str]) -> None:
        self.project_config = project_config
        self.project_dir = project_dir

    def __repr__(self) -> str:
        return f"Config(project_config={self.project_config}, project_dir={self.project_dir})"

    @property
    def service_app(self) -> StratusService:
        service = self._lookup("service_app")

        if not isinstance(service, StratusService):
            raise RuntimeError("service_app must be a StratusService instance")

        return service

    @property
    def service_name(self) -> str:
        return self._lookup("service_name")

    @property
    def service_description(self) -> str:
        return self.project_config.get("service_description") or ""

    def _lookup(self, key: str) -> Any:
        return self.project_config.get(key, {})

    @property
    def region(self) -> Optional[str]:
        return self.project_config.get("region")

    @property
    def s3_bucket(self) -> str:
        return self.project_config.get("s3_bucket") or ""

    @property
    def output_directory(self) -> str:
        output_directory = self.project_config.get("output_directory") or str(DEFAULT_OUTPUT_DIRECTORY)
        if os.path.isabs(output_directory) or self.project_dir is None:
            return output_directory
        return os.path.join(self.project_dir, output_directory)

    @property
    def build_tags(self) -> dict[str, str]:
        return self.project_config.get("build_tags") or {}

    @property
    def link_flags(self) -> list[str]:
        return self.project_config.get("link_flags") or []

    @property
    def use_native_build(self) -> bool:
        return bool(self.project_config.get("use_native_build", False))

    @property
    def log_level(self) -> str:
        return self.project_config.get("log_level") or DEFAULT_LOG_LEVEL

    @property
    def pipeline_environments(self) -> dict[str, dict[str, str]]:
        pipeline_environments = self.project_config.get("pipeline_environments") or {}
        for environment_name, variables in pipeline_environments.items():
            for key, value in variables.items():
                if not isinstance(value, str):
                    raise RuntimeError(f"Pipeline environment {environment_name} value of {key} needs to be a str")
        return pipeline_environments

    @property
    def toolchain(self) -> dict[str, Any]:
        return self.project_config.get("toolchain") or {}

    @property
    def retry_policy(self) -> RetryPolicy:
        retry = self.project_config.get("retry") or {}
        return create_retry_policy(retry.get("attempts", 1), retry.get("delay_seconds", 0.0))
