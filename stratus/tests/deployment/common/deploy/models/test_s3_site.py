import unittest

from stratus.deployment.common.deploy.models.s3_site import S3Site
from stratus.deployment.common.deploy.models.template import Template


class TestS3Site(unittest.TestCase):
    def test_export(self):
        site = S3Site("site", bucket_name="my-site")
        template = Template()
        site.export("hello-service", {"Ref": "S3SiteArchiveKey"}, {"APIURL": {}}, template)

        bucket = template.resources["helloserviceS3Site"]
        self.assertEqual(bucket["Type"], "AWS::S3::Bucket")
        self.assertEqual(bucket["Properties"]["BucketName"], "my-site")
        self.assertEqual(bucket["Properties"]["WebsiteConfiguration"], {"IndexDocument": "index.html"})
        self.assertEqual(bucket["Metadata"]["APIGatewayOutputs"], ["APIURL"])
        self.assertEqual(template.outputs["S3SiteURL"]["Value"], {"Fn::GetAtt": ["helloserviceS3Site", "WebsiteURL"]})


if __name__ == "__main__":
    unittest.main()
