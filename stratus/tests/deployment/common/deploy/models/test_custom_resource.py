import unittest

from stratus.deployment.common.deploy.models.custom_resource import CustomResourceRegistration
from stratus.deployment.common.deploy.models.iam_role import IAMRoleDefinition
from stratus.deployment.common.deploy.models.template import Template


def provision_data(event, context):
    return {}


class TestCustomResourceRegistration(unittest.TestCase):
    def test_logical_name_is_memoized(self):
        registration = CustomResourceRegistration(provision_data, "existing-role")
        first = registration.logical_name()
        registration.user_function_name = "renamed"
        self.assertEqual(registration.logical_name(), first)
        self.assertTrue(first.startswith("provisiondataCustomResource"))
        self.assertEqual(registration.handler_logical_name(), f"{first}Lambda")

    def test_equal_registrations_share_logical_name(self):
        self.assertEqual(
            CustomResourceRegistration(provision_data, "role", properties={"Size": 1, "Tier": "a"}).logical_name(),
            CustomResourceRegistration(provision_data, "role", properties={"Tier": "a", "Size": 1}).logical_name(),
        )

    def test_role_and_properties_are_part_of_the_logical_name(self):
        registration = CustomResourceRegistration(provision_data, "role", properties={"Size": 1})
        self.assertNotEqual(
            registration.logical_name(),
            CustomResourceRegistration(provision_data, "other-role", properties={"Size": 1}).logical_name(),
        )
        self.assertNotEqual(
            registration.logical_name(),
            CustomResourceRegistration(provision_data, "role", properties={"Size": 2}).logical_name(),
        )
        self.assertNotEqual(
            CustomResourceRegistration(provision_data, IAMRoleDefinition()).logical_name(),
            CustomResourceRegistration(
                provision_data, IAMRoleDefinition(managed_policy_arns=["arn:aws:iam::aws:policy/ReadOnlyAccess"])
            ).logical_name(),
        )

    def test_export(self):
        role = IAMRoleDefinition()
        role_logical_name = role.logical_name("service")
        registration = CustomResourceRegistration(provision_data, role, properties={"Size": 3})
        template = Template()

        role_map = {role_logical_name: {"Fn::GetAtt": [role_logical_name, "Arn"]}}
        registration.export("service", {"S3Bucket": "bucket"}, role_map, None, template)

        handler = template.resources[registration.handler_logical_name()]
        self.assertEqual(handler["Type"], "AWS::Lambda::Function")
        self.assertEqual(handler["DependsOn"], [role_logical_name])
        self.assertEqual(handler["Properties"]["Handler"], "provision_data")
        custom_resource = template.resources[registration.logical_name()]
        self.assertEqual(custom_resource["Type"], "AWS::CloudFormation::CustomResource")
        self.assertEqual(
            custom_resource["Properties"],
            {"ServiceToken": {"Fn::GetAtt": [registration.handler_logical_name(), "Arn"]}, "Size": 3},
        )


if __name__ == "__main__":
    unittest.main()
