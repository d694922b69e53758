import unittest

from stratus.deployment.client.stratus_function import StratusFunction
from stratus.deployment.client.stratus_service import StratusService
from stratus.deployment.common.deploy.hooks import HookRegistration
from stratus.deployment.common.deploy.models.custom_resource import CustomResourceRegistration


def provision_data(event, context):
    return {}


class TestStratusService(unittest.TestCase):
    def setUp(self):
        self.service = StratusService("service", description="My service")

    def test_init(self):
        self.assertEqual(self.service.name, "service")
        self.assertEqual(self.service.description, "My service")
        self.assertEqual(self.service.functions, [])
        self.assertFalse(self.service.workflow_hooks.has_hooks())

    def test_serverless_function(self):
        custom_resource = CustomResourceRegistration(provision_data, "role")

        @self.service.serverless_function(role="role", name="Handler", custom_resources=[custom_resource])
        def handler(event, context):
            return event

        self.assertEqual(handler({"a": 1}, None), {"a": 1})
        self.assertEqual(len(self.service.functions), 1)
        function = handler.stratus_function  # pylint: disable=no-member
        self.assertIs(self.service.functions[0], function)
        self.assertEqual(function.name, "Handler")
        self.assertEqual(function.custom_resources, [custom_resource])

    def test_register_function(self):
        function = StratusFunction(provision_data, "role")
        self.assertIs(self.service.register_function(function), function)
        self.service.register_function(None)
        self.assertEqual(self.service.functions, [function, None])

    def test_add_hook(self):
        def hook(*args):
            return None

        self.service.add_hook("pre_builds", "prepare", hook)

        self.assertEqual(self.service.workflow_hooks.pre_builds, [HookRegistration("prepare", hook)])
        self.assertTrue(self.service.workflow_hooks.has_hooks())

    def test_add_hook_unknown_phase(self):
        with self.assertRaises(ValueError):
            self.service.add_hook("context", "prepare", lambda *args: None)
        with self.assertRaises(ValueError):
            self.service.add_hook("deploys", "prepare", lambda *args: None)


if __name__ == "__main__":
    unittest.main()
