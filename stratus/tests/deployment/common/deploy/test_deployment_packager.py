import os
import tempfile
import unittest
import zipfile
from unittest.mock import MagicMock

from stratus.common.constants import (
    BINARY_NAME,
    METADATA_PARAM_CODE_ARCHIVE_PATH,
    METADATA_PARAM_S3_SITE_ARCHIVE_PATH,
    STACK_PARAM_S3_SITE_ARCHIVE_KEY,
)
from stratus.deployment.common.deploy.build_state import BuildContext, BuildState, UserData
from stratus.deployment.common.deploy.deployment_packager import (
    CreatePackageOperation,
    PackagingError,
    add_executable,
)
from stratus.deployment.common.deploy.hooks import HookError, HookRegistration, WorkflowHooks
from stratus.deployment.common.deploy.models.s3_site import S3Site
from stratus.deployment.common.deploy.pipeline import ExecutionContext


def write_binary(service_name, output_path, *args):
    with open(output_path, "w", encoding="utf-8") as f:
        f.write("#!/bin/sh\n")


def _create_build_state(output_directory, workflow_hooks=None, site=None):
    toolchain = MagicMock()
    toolchain.build.side_effect = write_binary
    userdata = UserData(
        service_name="my service",
        service_description="",
        functions=(),
        build_id="build",
        toolchain=toolchain,
        s3_bucket="bucket",
        site=site,
        workflow_hooks=workflow_hooks if workflow_hooks is not None else WorkflowHooks(),
    )
    return BuildState(userdata, BuildContext(output_directory=output_directory))


class TestCreatePackageOperation(unittest.TestCase):
    def setUp(self):
        self.output_directory = os.path.join(tempfile.mkdtemp(), "build")

    def test_code_archive_contains_executable(self):
        build_state = _create_build_state(self.output_directory)

        CreatePackageOperation(build_state).invoke(ExecutionContext())

        context = build_state.context
        self.assertEqual(context.code_archive_path, os.path.join(self.output_directory, "myservice-code.zip"))
        self.assertEqual(context.template.metadata[METADATA_PARAM_CODE_ARCHIVE_PATH], context.code_archive_path)
        with zipfile.ZipFile(context.code_archive_path) as archive:
            info = archive.getinfo(BINARY_NAME)
        self.assertEqual(info.external_attr >> 16, 0o777)
        self.assertEqual(info.create_system, 3)

    def test_archive_hooks_add_entries(self):
        def add_readme(hook_context, service_name, archive, session, noop, logger):
            archive.writestr("README", service_name)

        hooks = WorkflowHooks(archives=[HookRegistration("readme", add_readme)])
        build_state = _create_build_state(self.output_directory, hooks)

        CreatePackageOperation(build_state).invoke(ExecutionContext())

        with zipfile.ZipFile(build_state.context.code_archive_path) as archive:
            self.assertEqual(archive.read("README"), b"my service")
            self.assertIn(BINARY_NAME, archive.namelist())

    def test_build_hooks_run_around_the_toolchain(self):
        calls = []
        hooks = WorkflowHooks(
            pre_builds=[HookRegistration("pre", lambda *args: calls.append("pre"))],
            post_builds=[HookRegistration("post", lambda *args: calls.append("post"))],
        )
        build_state = _create_build_state(self.output_directory, hooks)
        build_state.userdata.toolchain.build.side_effect = lambda *args: (calls.append("build"), write_binary(*args))

        CreatePackageOperation(build_state).invoke(ExecutionContext())

        self.assertEqual(calls, ["pre", "build", "post"])

    def test_failing_archive_hook(self):
        def broken(*args):
            raise ValueError("boom")

        hooks = WorkflowHooks(archives=[HookRegistration("broken", broken)])
        build_state = _create_build_state(self.output_directory, hooks)
        operation = CreatePackageOperation(build_state)

        with self.assertRaises(HookError):
            operation.invoke(ExecutionContext())
        operation.rollback(ExecutionContext())

        self.assertEqual(os.listdir(self.output_directory), [])
        self.assertEqual(build_state.context.binary_path, "")

    def test_site_archive(self):
        site_dir = tempfile.mkdtemp()
        with open(os.path.join(site_dir, "index.html"), "w", encoding="utf-8") as f:
            f.write("<html></html>")
        build_state = _create_build_state(self.output_directory, site=S3Site(site_dir))
        operation = CreatePackageOperation(build_state)

        operation.invoke(ExecutionContext())

        context = build_state.context
        self.assertEqual(context.template.metadata[METADATA_PARAM_S3_SITE_ARCHIVE_PATH], context.site_archive_path)
        self.assertIn(STACK_PARAM_S3_SITE_ARCHIVE_KEY, context.template.parameters)
        with zipfile.ZipFile(context.site_archive_path) as archive:
            self.assertEqual(archive.namelist(), ["index.html"])

        operation.rollback(ExecutionContext())
        self.assertNotIn(STACK_PARAM_S3_SITE_ARCHIVE_KEY, context.template.parameters)
        self.assertFalse(os.path.exists(os.path.join(self.output_directory, "myservice-S3Site.zip")))

    def test_missing_site_directory(self):
        build_state = _create_build_state(self.output_directory, site=S3Site(os.path.join(self.output_directory, "x")))
        with self.assertRaises(PackagingError) as context:
            CreatePackageOperation(build_state).invoke(ExecutionContext())
        self.assertIn("archiving S3 site", str(context.exception))

    def test_output_directory_cannot_be_created(self):
        blocker = os.path.join(tempfile.mkdtemp(), "file")
        with open(blocker, "w", encoding="utf-8") as f:
            f.write("")
        build_state = _create_build_state(os.path.join(blocker, "build"))

        with self.assertRaises(PackagingError) as context:
            CreatePackageOperation(build_state).invoke(ExecutionContext())
        self.assertTrue(str(context.exception).startswith("Failed creating output directory"))
        build_state.userdata.toolchain.build.assert_not_called()


class TestAddExecutable(unittest.TestCase):
    def test_permissions_are_set_on_the_entry(self):
        directory = tempfile.mkdtemp()
        filename = os.path.join(directory, "binary")
        with open(filename, "wb") as f:
            f.write(b"\x7fELF")
        archive_path = os.path.join(directory, "archive.zip")

        with zipfile.ZipFile(archive_path, "w") as archive:
            add_executable(archive, filename, "bootstrap")

        with zipfile.ZipFile(archive_path) as archive:
            info = archive.getinfo("bootstrap")
            self.assertEqual(archive.read("bootstrap"), b"\x7fELF")
        self.assertEqual(info.external_attr, 0o777 << 16)
        self.assertEqual(info.compress_type, zipfile.ZIP_DEFLATED)


if __name__ == "__main__":
    unittest.main()
