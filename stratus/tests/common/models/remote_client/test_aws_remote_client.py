import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock, Mock, patch

from botocore.exceptions import ClientError

from stratus.common.models.remote_client.aws_remote_client import AWSRemoteClient
from stratus.common.retry import FixedDelayRetryPolicy


class TestAWSRemoteClient(unittest.TestCase):
    @patch("stratus.common.models.remote_client.aws_remote_client.Session")
    def setUp(self, mock_session):
        self.region = "region1"
        self.aws_client = AWSRemoteClient(self.region)
        self.mock_session = mock_session
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir)

    def test_client_is_cached(self):
        self.aws_client._client("iam")
        self.aws_client._client("iam")
        self.mock_session.return_value.client.assert_called_once_with("iam")

    @patch.object(AWSRemoteClient, "_client")
    def test_get_iam_role(self, mock_client):
        role_name = "test_role"
        mock_client.return_value.get_role.return_value = {"Role": {"Arn": "arn:aws:iam::123456789012:role/test_role"}}
        result = self.aws_client.get_iam_role(role_name)
        mock_client.assert_called_once_with("iam")
        mock_client.return_value.get_role.assert_called_once_with(RoleName=role_name)
        self.assertEqual(result, "arn:aws:iam::123456789012:role/test_role")

    @patch.object(AWSRemoteClient, "_client")
    def test_get_iam_role_is_not_retried_by_default(self, mock_client):
        mock_client.return_value.get_role.side_effect = ClientError(
            {"Error": {"Code": "Throttling", "Message": "Rate exceeded"}}, "GetRole"
        )
        with self.assertRaises(ClientError):
            self.aws_client.get_iam_role("test_role")
        mock_client.return_value.get_role.assert_called_once()

    @patch("stratus.common.retry.time.sleep")
    @patch.object(AWSRemoteClient, "_client")
    def test_get_iam_role_with_retry_policy(self, mock_client, mock_sleep):
        self.aws_client._retry_policy = FixedDelayRetryPolicy(2, 0)
        mock_client.return_value.get_role.side_effect = [
            ClientError({"Error": {"Code": "Throttling", "Message": "Rate exceeded"}}, "GetRole"),
            {"Role": {"Arn": "arn"}},
        ]
        self.assertEqual(self.aws_client.get_iam_role("test_role"), "arn")

    @patch.object(AWSRemoteClient, "_client")
    def test_describe_stack(self, mock_client):
        mock_client.return_value.describe_stacks.return_value = {"Stacks": [{"StackName": "service"}]}
        self.assertEqual(self.aws_client.describe_stack("service"), {"StackName": "service"})

    @patch.object(AWSRemoteClient, "_client")
    def test_describe_stack_missing(self, mock_client):
        mock_client.return_value.describe_stacks.side_effect = ClientError(
            {"Error": {"Code": "ValidationError", "Message": "Stack with id service does not exist"}},
            "DescribeStacks",
        )
        self.assertIsNone(self.aws_client.describe_stack("service"))

    @patch.object(AWSRemoteClient, "_client")
    def test_describe_stack_more_than_one(self, mock_client):
        mock_client.return_value.describe_stacks.return_value = {"Stacks": [{}, {}]}
        with self.assertRaises(RuntimeError):
            self.aws_client.describe_stack("service")

    @patch.object(AWSRemoteClient, "_client")
    def test_get_caller_account(self, mock_client):
        mock_client.return_value.get_caller_identity.return_value = {"Account": "123456789012"}
        self.assertEqual(self.aws_client.get_caller_account(), "123456789012")
        mock_client.assert_called_once_with("sts")

    @patch.object(AWSRemoteClient, "_client")
    def test_upload_resource(self, mock_client):
        filename = os.path.join(self.test_dir, "archive.zip")
        with open(filename, "wb") as f:
            f.write(b"content")
        mock_client.return_value.put_object.return_value = {"VersionId": "v1"}
        self.assertEqual(self.aws_client.upload_resource("bucket", "key", filename), "v1")
        mock_client.return_value.put_object.assert_called_once_with(Bucket="bucket", Key="key", Body=b"content")

    @patch.object(AWSRemoteClient, "describe_stack")
    @patch.object(AWSRemoteClient, "_client")
    def test_create_stack(self, mock_client, mock_describe_stack):
        mock_describe_stack.side_effect = [None, {"StackName": "service", "StackStatus": "CREATE_COMPLETE"}]
        result = self.aws_client.create_or_update_stack("service", "https://url", {"Key": "Value"}, {"tag": "v"})
        client = mock_client.return_value
        client.create_stack.assert_called_once()
        kwargs = client.create_stack.call_args.kwargs
        self.assertEqual(kwargs["Parameters"], [{"ParameterKey": "Key", "ParameterValue": "Value"}])
        self.assertEqual(kwargs["Tags"], [{"Key": "tag", "Value": "v"}])
        client.get_waiter.assert_called_once_with("stack_create_complete")
        self.assertEqual(result["StackStatus"], "CREATE_COMPLETE")

    @patch.object(AWSRemoteClient, "describe_stack")
    @patch.object(AWSRemoteClient, "_client")
    def test_update_stack_without_changes(self, mock_client, mock_describe_stack):
        existing = {"StackName": "service", "StackStatus": "UPDATE_COMPLETE"}
        mock_describe_stack.return_value = existing
        mock_client.return_value.update_stack.side_effect = ClientError(
            {"Error": {"Code": "ValidationError", "Message": "No updates are to be performed."}}, "UpdateStack"
        )
        result = self.aws_client.create_or_update_stack("service", "https://url", {}, {})
        self.assertEqual(result, existing)
        mock_client.return_value.get_waiter.assert_not_called()


if __name__ == "__main__":
    unittest.main()
