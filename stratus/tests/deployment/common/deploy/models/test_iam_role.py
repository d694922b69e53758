import unittest

from stratus.deployment.common.deploy.models.event_source_mapping import EventSourceMapping
from stratus.deployment.common.deploy.models.iam_role import (
    IAMRoleDefinition,
    role_map_key,
    role_reference,
)

S3_READ = {"Effect": "Allow", "Action": ["s3:GetObject"], "Resource": "arn:aws:s3:::bucket/*"}


class TestIAMRoleDefinition(unittest.TestCase):
    def test_invalid_privilege(self):
        with self.assertRaises(RuntimeError):
            IAMRoleDefinition(privileges=[{"Effect": "Allow"}])

    def test_identical_definitions_share_logical_name(self):
        first = IAMRoleDefinition(privileges=[S3_READ])
        second = IAMRoleDefinition(privileges=[dict(S3_READ)])
        self.assertEqual(first.logical_name("service"), second.logical_name("service"))
        self.assertEqual(first, second)
        self.assertEqual(hash(first), hash(second))

    def test_different_definitions_have_different_logical_names(self):
        first = IAMRoleDefinition(privileges=[S3_READ])
        second = IAMRoleDefinition()
        self.assertNotEqual(first.logical_name("service"), second.logical_name("service"))
        self.assertNotEqual(first.logical_name("service"), first.logical_name("other"))

    def test_to_resource(self):
        role = IAMRoleDefinition(privileges=[S3_READ], managed_policy_arns=["arn:aws:iam::aws:policy/ReadOnly"])
        resource = role.to_resource()
        self.assertEqual(resource["Type"], "AWS::IAM::Role")
        statements = resource["Properties"]["Policies"][0]["PolicyDocument"]["Statement"]
        self.assertIn(S3_READ, statements)
        self.assertTrue(any("logs:PutLogEvents" in statement["Action"] for statement in statements))
        self.assertEqual(resource["Properties"]["ManagedPolicyArns"], ["arn:aws:iam::aws:policy/ReadOnly"])

    def test_event_source_privileges_are_added(self):
        role = IAMRoleDefinition()
        mappings = [EventSourceMapping("arn:aws:sqs:us-east-1:123456789012:queue")]
        statements = role.policy_statements(mappings)
        self.assertTrue(any("sqs:ReceiveMessage" in statement["Action"] for statement in statements))
        self.assertNotEqual(role.logical_name("service"), role.logical_name("service", mappings))

    def test_role_map_key_and_reference(self):
        inline = IAMRoleDefinition()
        self.assertEqual(role_map_key("existing-role", "service"), "existing-role")
        self.assertEqual(role_map_key(inline, "service"), inline.logical_name("service"))

        role_map = {"existing-role": "arn:aws:iam::123456789012:role/existing-role"}
        self.assertEqual(
            role_reference("existing-role", "service", role_map), "arn:aws:iam::123456789012:role/existing-role"
        )
        with self.assertRaises(RuntimeError):
            role_reference(inline, "service", role_map)


if __name__ == "__main__":
    unittest.main()
