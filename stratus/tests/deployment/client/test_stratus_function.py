import logging
import unittest
from unittest.mock import Mock

from stratus.deployment.client.stratus_function import StratusFunction
from stratus.deployment.common.deploy.hooks import HookError, HookRegistration
from stratus.deployment.common.deploy.models.event_source_mapping import EventSourceMapping
from stratus.deployment.common.deploy.models.function_options import FunctionOptions
from stratus.deployment.common.deploy.models.iam_role import IAMRoleDefinition
from stratus.deployment.common.deploy.models.template import Template

QUEUE_ARN = "arn:aws:sqs:us-west-2:123456789012:queue"


def handler(event, context):
    return event


def provision_data(event, context):
    return {}


class TestStratusFunction(unittest.TestCase):
    def test_init(self):
        function = StratusFunction(handler, "role")

        self.assertEqual(function.name, "handler")
        self.assertEqual(function.handler_symbol, f"{__name__}.handler")
        self.assertEqual(function.options, FunctionOptions())
        self.assertEqual(function.custom_resources, [])

    def test_invalid_name(self):
        with self.assertRaises(ValueError):
            StratusFunction(handler, "role", name="---")

    def test_logical_name(self):
        function = StratusFunction(handler, "role", name="my-function")
        self.assertTrue(function.logical_name().startswith("myfunctionLambda"))
        self.assertEqual(function.logical_name(), StratusFunction(provision_data, "other", name="my-function").logical_name())

    def test_require_custom_resource_is_deduplicated(self):
        function = StratusFunction(handler, "role")

        first = function.require_custom_resource("role", provision_data, properties={"Size": 1})
        second = function.require_custom_resource("role", provision_data, properties={"Size": 1})

        self.assertEqual(first, second)
        self.assertEqual(len(function.custom_resources), 1)

    def test_require_custom_resource_with_different_properties(self):
        function = StratusFunction(handler, "role")
        function.require_custom_resource("role", provision_data, properties={"Size": 1})

        with self.assertRaises(ValueError):
            function.require_custom_resource("role-other", provision_data, properties={"Size": 2})
        self.assertEqual(len(function.custom_resources), 1)
        self.assertEqual(function.custom_resources[0].role, "role")
        self.assertEqual(function.custom_resources[0].properties, {"Size": 1})

    def test_export(self):
        role = IAMRoleDefinition()
        function = StratusFunction(
            handler,
            role,
            options=FunctionOptions(memory_size=256),
            event_source_mappings=[EventSourceMapping(QUEUE_ARN, batch_size=5)],
        )
        custom_resource_name = function.require_custom_resource("custom-role", provision_data)
        role_logical_name = role.logical_name("service", function.event_source_mappings)
        role_map = {role_logical_name: {"Fn::GetAtt": [role_logical_name, "Arn"]}, "custom-role": "arn:custom"}
        fragment = Template()

        function.export("service", {"S3Bucket": "bucket"}, role_map, {}, "build", fragment, logging.getLogger())

        definition = fragment.resources[function.logical_name()]
        self.assertEqual(definition["DependsOn"], [role_logical_name])
        self.assertEqual(definition["Properties"]["MemorySize"], 256)
        self.assertEqual(definition["Properties"]["Handler"], "handler")
        mappings = list(fragment.resources_of_type("AWS::Lambda::EventSourceMapping"))
        self.assertEqual(len(mappings), 1)
        self.assertEqual(mappings[0][1]["Properties"]["FunctionName"], {"Ref": function.logical_name()})
        self.assertIn(custom_resource_name, fragment.resources)

    def test_export_unresolved_role(self):
        function = StratusFunction(handler, "role")
        with self.assertRaises(RuntimeError):
            function.export("service", {}, {}, {}, "build", Template(), logging.getLogger())

    def test_export_calls_decorators(self):
        def decorator(hook_context, service_name, logical_name, definition, metadata, code_location, build_id, *args):
            definition["Properties"]["Timeout"] = 30
            metadata["BuildID"] = build_id

        mock_decorator = Mock(side_effect=decorator)
        function = StratusFunction(handler, "role", decorators=[HookRegistration("timeout", mock_decorator)])
        fragment = Template()

        function.export("service", {}, {"role": "arn:role"}, {}, "build-1", fragment, logging.getLogger())

        mock_decorator.assert_called_once()
        definition = fragment.resources[function.logical_name()]
        self.assertEqual(definition["Properties"]["Timeout"], 30)
        self.assertEqual(definition["Metadata"], {"BuildID": "build-1"})
        self.assertNotIn("DependsOn", definition)

    def test_failing_decorator_is_reported_with_its_phase(self):
        decorator = HookRegistration("broken", Mock(side_effect=KeyError("Timeout")))
        function = StratusFunction(handler, "role", decorators=[decorator])
        fragment = Template()

        with self.assertRaises(HookError) as context:
            function.export("service", {}, {"role": "arn:role"}, {}, "build-1", fragment, logging.getLogger())

        self.assertEqual(context.exception.phase, "FunctionDecorator")
        self.assertEqual(context.exception.hook_name, "broken")
        self.assertIsInstance(context.exception.__cause__, KeyError)
        self.assertEqual(fragment.resources, {})


if __name__ == "__main__":
    unittest.main()
