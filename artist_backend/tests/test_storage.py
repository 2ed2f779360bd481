import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError
from google.api_core import exceptions

from artist_backend.config import Settings
from artist_backend.errors import UpstreamError
from artist_backend.firebase import get_firebase_app
from artist_backend.storage import (
    CosStorageClient,
    FirebaseStorageClient,
    InMemoryStorageClient,
    object_name_from_url,
)


class ObjectNameTests(unittest.TestCase):
    def test_last_path_segment(self):
        url = "https://storage.googleapis.com/bucket/1700000000000.png"
        self.assertEqual(object_name_from_url(url), "1700000000000.png")
        self.assertEqual(object_name_from_url(""), "")


class InMemoryStorageTests(unittest.TestCase):
    def test_upload_and_delete(self):
        storage = InMemoryStorageClient(bucket="b")
        url = storage.upload_bytes("a.png", b"img", "image/png")
        self.assertEqual(url, "https://storage.googleapis.com/b/a.png")
        storage.delete("a.png")
        with self.assertRaises(UpstreamError):
            storage.delete("a.png")


class FirebaseStorageClientTests(unittest.TestCase):
    @patch("firebase_admin.storage.bucket")
    def test_upload_returns_public_url(self, mock_bucket):
        client = FirebaseStorageClient(bucket_name="artists-bucket")
        url = client.upload_bytes("1.png", b"img", "image/png")

        self.assertEqual(url, "https://storage.googleapis.com/artists-bucket/1.png")
        blob = mock_bucket.return_value.blob.return_value
        blob.upload_from_string.assert_called_once_with(b"img", content_type="image/png")

    @patch("firebase_admin.storage.bucket")
    def test_upload_failure_is_upstream_error(self, mock_bucket):
        blob = mock_bucket.return_value.blob.return_value
        blob.upload_from_string.side_effect = exceptions.ServiceUnavailable("down")
        client = FirebaseStorageClient(bucket_name="artists-bucket")

        with self.assertRaises(UpstreamError) as ctx:
            client.upload_bytes("1.png", b"img", "image/png")
        self.assertIn("down", ctx.exception.detail)


class CosStorageClientTests(unittest.TestCase):
    def make_client(self):
        return CosStorageClient(
            bucket="artists",
            region="ap-guangzhou",
            endpoint="https://cos.ap-guangzhou.myqcloud.com",
            access_key_id="key",
            secret_access_key="secret",
        )

    @patch("artist_backend.storage.boto3.client")
    def test_upload_uses_path_style_url(self, mock_client):
        url = self.make_client().upload_bytes("1.png", b"img", "image/png")

        self.assertEqual(url, "https://cos.ap-guangzhou.myqcloud.com/artists/1.png")
        kwargs = mock_client.return_value.put_object.call_args.kwargs
        self.assertEqual(kwargs["Key"], "1.png")
        self.assertEqual(kwargs["ACL"], "public-read")

    @patch("artist_backend.storage.boto3.client")
    def test_delete_failure_is_upstream_error(self, mock_client):
        mock_client.return_value.delete_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "no"}}, "DeleteObject"
        )
        with self.assertRaises(UpstreamError):
            self.make_client().delete("1.png")


class FirebaseAppTests(unittest.TestCase):
    @patch("artist_backend.firebase.firebase_admin")
    def test_reuses_existing_app(self, mock_admin):
        existing = MagicMock()
        mock_admin.get_app.return_value = existing
        self.assertIs(get_firebase_app(Settings()), existing)
        mock_admin.initialize_app.assert_not_called()

    @patch("artist_backend.firebase.firebase_admin")
    def test_initializes_with_project_options(self, mock_admin):
        mock_admin.get_app.side_effect = ValueError("no app")
        settings = Settings(firebase_project_id="demo", storage_bucket="demo.appspot.com")

        get_firebase_app(settings)
        mock_admin.initialize_app.assert_called_once_with(
            None, {"projectId": "demo", "storageBucket": "demo.appspot.com"}
        )


if __name__ == "__main__":
    unittest.main()
