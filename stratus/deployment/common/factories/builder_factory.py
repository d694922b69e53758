import importlib
import os
import sys
from typing import Optional

import yaml
from pydantic import ValidationError

from stratus.common.constants import (
    PROJECT_CONFIG_DIRECTORY,
    PROJECT_CONFIG_FILENAME,
    SERVICE_APP_ATTRIBUTE,
    SERVICE_APP_MODULE,
)
from stratus.common.models.remote_client.aws_remote_client import AWSRemoteClient
from stratus.common.models.remote_client.remote_client import RemoteClient
from stratus.deployment.client.stratus_service import StratusService
from stratus.deployment.common.config.config import Config
from stratus.deployment.common.config.config_schema import ConfigSchema
from stratus.deployment.common.deploy.builder import Builder, create_default_builder


class BuilderFactory:
    def __init__(self, project_dir: Optional[str]) -> None:
        self.project_dir = project_dir

    def create_config_obj(self) -> Config:
        try:
            project_config = self.load_project_config()
        except (OSError, IOError) as exc:
            raise RuntimeError("Could not load project config") from exc
        except (ValueError, yaml.YAMLError) as exc:
            raise RuntimeError(f"Unable to parse project config: {exc}") from exc
        self._validate_config(project_config)
        service_app = self.load_service_app()
        if service_app.name != project_config["service_name"]:
            raise RuntimeError(
                f"Service name {service_app.name} in {SERVICE_APP_MODULE}.py does not match "
                f"service_name {project_config['service_name']} in the project config"
            )
        project_config["service_app"] = service_app
        return Config(project_config, self.project_dir)

    def create_config_obj_from_dict(self, project_config: dict) -> Config:
        self._validate_config(project_config)
        return Config(project_config, self.project_dir)

    def create_builder(self, config: Config) -> Builder:
        return create_default_builder(config)

    def create_remote_client(self, config: Config) -> RemoteClient:
        return AWSRemoteClient(config.region, config.retry_policy)

    def load_project_config(self) -> dict:
        if self.project_dir is None:
            raise RuntimeError("project_dir must be defined")
        config_file = os.path.join(self.project_dir, PROJECT_CONFIG_DIRECTORY, PROJECT_CONFIG_FILENAME)
        with open(config_file, encoding="utf-8") as f:
            return yaml.safe_load(f)

    def _validate_config(self, project_config: dict) -> None:
        if not isinstance(project_config, dict):
            raise RuntimeError("project config must be a dictionary")

        try:
            ConfigSchema(**project_config)
        except ValidationError as exc:
            raise RuntimeError(f"Invalid project config: {exc}") from exc

    def load_service_app(self) -> StratusService:
        if self.project_dir is None:
            raise RuntimeError("project_dir must be defined")
        if self.project_dir not in sys.path:
            sys.path.insert(0, self.project_dir)

        try:
            app_module = importlib.import_module(SERVICE_APP_MODULE)
            service_app = getattr(app_module, SERVICE_APP_ATTRIBUTE)
        except SyntaxError as e:
            raise RuntimeError(f"Unable to import {SERVICE_APP_MODULE}.py file: {e}") from e
        except ModuleNotFoundError as e:
            raise RuntimeError(f"Unable to import {SERVICE_APP_MODULE}.py file: {e}") from e
        except AttributeError as e:
            raise RuntimeError(f"{SERVICE_APP_MODULE}.py does not define `{SERVICE_APP_ATTRIBUTE}`") from e
        if not isinstance(service_app, StratusService):
            raise RuntimeError(f"`{SERVICE_APP_ATTRIBUTE}` in {SERVICE_APP_MODULE}.py must be a StratusService")
        return service_app
