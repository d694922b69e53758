import unittest

from stratus.common.utils import (
    cloudformation_resource_name,
    content_digest,
    get_handler_symbol,
    sanitized_name,
)


def handler(event, context):
    return event


class TestUtils(unittest.TestCase):
    def test_sanitized_name(self):
        self.assertEqual(sanitized_name("hello-world_service 1"), "helloworldservice1")

    def test_content_digest_ignores_key_order(self):
        self.assertEqual(content_digest({"a": 1, "b": 2}), content_digest({"b": 2, "a": 1}))
        self.assertNotEqual(content_digest({"a": 1}), content_digest({"a": 2}))

    def test_content_digest_separates_parts(self):
        self.assertNotEqual(content_digest("ab", "c"), content_digest("a", "bc"))

    def test_cloudformation_resource_name(self):
        name = cloudformation_resource_name("My-Role", "service", {"Type": "AWS::IAM::Role"})
        self.assertTrue(name.startswith("MyRole"))
        self.assertEqual(len(name), len("MyRole") + 16)
        self.assertEqual(name, cloudformation_resource_name("My-Role", "service", {"Type": "AWS::IAM::Role"}))
        self.assertEqual(cloudformation_resource_name("Plain"), "Plain")

    def test_get_handler_symbol(self):
        self.assertEqual(get_handler_symbol(handler), f"{__name__}.handler")


if __name__ == "__main__":
    unittest.main()
