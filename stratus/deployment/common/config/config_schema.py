from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

LOG_LEVELS = ("debug", "info", "warning", "error")


class Toolchain(BaseModel):
    requirements_file: Optional[str] = Field("requirements.txt", title="Requirements installed into the binary")
    source_dir: Optional[str] = Field("src", title="Package directory shipped next to app.py")
    main: Optional[str] = Field("app:main", title="Entry point of the binary, as module:function")
    interpreter: str = Field("/usr/bin/env python3", title="Interpreter used to run the binary")


class Retry(BaseModel):
    attempts: int = Field(1, title="Number of attempts of a remote call, 1 disables retries")
    delay_seconds: float = Field(0.0, title="Delay between two attempts")

    @model_validator(mode="after")
    def validate_config(cls: Any, values: Any) -> Any:  # pylint: disable=no-self-argument, unused-argument
        if values.attempts < 1:
            raise ValueError("retry attempts must be at least 1")
        if values.delay_seconds < 0:
            raise ValueError("retry delay_seconds must not be negative")
        return values


class ConfigSchema(BaseModel):
    service_name: str = Field(..., title="The name of the service")
    service_description: str = Field("", title="The description of the service stack")
    region: Optional[str] = Field(None, title="The region the service is provisioned in")
    s3_bucket: Optional[str] = Field(None, title="The bucket the artifacts are uploaded to")
    output_directory: Optional[str] = Field(None, title="The build output directory")
    build_tags: Optional[Dict[str, str]] = Field(None, title="Tags recorded with the build")
    link_flags: Optional[List[str]] = Field(None, title="Additional toolchain arguments")
    use_native_build: bool = Field(False, title="Build dependencies for the host platform")
    log_level: str = Field("info", title="Log level of the deployed functions")
    pipeline_environments: Optional[Dict[str, Dict[str, str]]] = Field(None, title="Pipeline environment values")
    toolchain: Optional[Toolchain] = Field(None, title="Toolchain settings")
    retry: Optional[Retry] = Field(None, title="Retry policy of remote calls")

    @model_validator(mode="after")
    def validate_config(cls: Any, values: Any) -> Any:  # pylint: disable=no-self-argument, unused-argument
        if values.log_level not in LOG_LEVELS:
            raise ValueError(f"Log level {values.log_level} is not supported")
        if len(values.service_name.strip()) == 0:
            raise ValueError("service_name must not be empty")
        return values
