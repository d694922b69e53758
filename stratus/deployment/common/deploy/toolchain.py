import json
import logging
import os
import shutil
import subprocess
import sys
import tempfile
import zipapp
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from stratus.common.constants import PROJECT_CONFIG_DIRECTORY, SERVICE_APP_MODULE

logger = logging.getLogger(__name__)

BUILD_INFO_FILENAME = "stratus_build_info.json"

# Platform used when dependencies are not built on the host
CROSS_BUILD_PLATFORM = "manylinux2014_x86_64"


class Toolchain(ABC):
    """
    Produces the executable that is shipped as the function binary.
    """

    @abstractmethod
    def build(  # pylint: disable=too-many-arguments
        self,
        service_name: str,
        output_path: str,
        use_native_build: bool,
        build_id: str,
        build_tags: dict[str, str],
        link_flags: Sequence[str],
        noop: bool,
    ) -> None:
        raise NotImplementedError()


class ZipAppToolchain(Toolchain):
    """
    Builds a self-contained Python zip application out of the project sources and its requirements.

    :param project_dir: The project directory containing `app.py`.
    :param source_dir: Optional package directory, relative to the project, copied next to `app.py`.
    :param main: Entry point of the application, as `module:function`.
    :param interpreter: Shebang interpreter written in front of the archive.
    """

    def __init__(
        self,
        project_dir: str,
        source_dir: Optional[str] = "src",
        main: Optional[str] = f"{SERVICE_APP_MODULE}:main",
        requirements_file: Optional[str] = "requirements.txt",
        interpreter: str = "/usr/bin/env python3",
    ) -> None:
        self._project_dir = project_dir
        self._source_dir = source_dir
        self._main = main
        self._requirements_file = requirements_file
        self._interpreter = interpreter

    def build(  # pylint: disable=too-many-arguments
        self,
        service_name: str,
        output_path: str,
        use_native_build: bool,
        build_id: str,
        build_tags: dict[str, str],
        link_flags: Sequence[str],
        noop: bool,
    ) -> None:
        if noop:
            logger.info("Building %s for a noop build", service_name)
        with tempfile.TemporaryDirectory() as staging_dir:
            self._copy_sources(staging_dir)
            requirements_filename = self._requirements_filename()
            if requirements_filename is not None:
                self._install_requirements(requirements_filename, staging_dir, use_native_build, link_flags)
            with open(os.path.join(staging_dir, BUILD_INFO_FILENAME), "w", encoding="utf-8") as f:
                json.dump({"service_name": service_name, "build_id": build_id, "build_tags": build_tags}, f)
            output_directory = os.path.dirname(output_path)
            if output_directory:
                os.makedirs(output_directory, exist_ok=True)
            try:
                zipapp.create_archive(staging_dir, output_path, interpreter=self._interpreter, main=self._main)
            except zipapp.ZipAppError as e:
                raise ToolchainError(f"Could not create the application archive: {e}") from e
        logger.info("Built %s (%s bytes)", output_path, os.path.getsize(output_path))

    def _copy_sources(self, staging_dir: str) -> None:
        app_filename = os.path.join(self._project_dir, f"{SERVICE_APP_MODULE}.py")
        if not os.path.exists(app_filename):
            raise ToolchainError(f"Could not find application file: {app_filename}")
        shutil.copy2(app_filename, staging_dir)

        if self._source_dir is None:
            return
        source_dir = os.path.join(self._project_dir, self._source_dir)
        if os.path.isdir(source_dir):
            shutil.copytree(
                source_dir,
                os.path.join(staging_dir, os.path.basename(source_dir)),
                ignore=shutil.ignore_patterns("__pycache__", "*.pyc", PROJECT_CONFIG_DIRECTORY),
            )

    def _requirements_filename(self) -> Optional[str]:
        if self._requirements_file is None:
            return None
        requirements_filename = os.path.join(self._project_dir, self._requirements_file)
        if not os.path.exists(requirements_filename):
            logger.info("No requirements file found at %s", requirements_filename)
            return None
        return requirements_filename

    def _install_requirements(
        self, requirements_filename: str, target_dir: str, use_native_build: bool, link_flags: Sequence[str]
    ) -> None:
        args = ["-r", requirements_filename, "--target", target_dir, "--quiet"]
        if not use_native_build:
            args.extend(["--only-binary=:all:", "--platform", CROSS_BUILD_PLATFORM])
        args.extend(link_flags)
        pip_execute("install", args)


def pip_execute(command: str, args: list[str]) -> tuple[bytes, bytes]:
    env_vars = os.environ.copy()
    with subprocess.Popen(
        [sys.executable, "-m", "pip", command] + args,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        env=env_vars,
    ) as process:
        out, err = process.communicate()
        if process.returncode != 0:
            raise ToolchainError(f"Error installing dependencies: {err.decode('utf-8')}")
    return out, err


class ToolchainError(Exception):
    pass
