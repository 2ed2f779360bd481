"""
Blob storage abstraction for artist images.

Objects are addressed by name and published at
``https://<storage-host>/<bucket>/<object-name>``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from google.api_core import exceptions

from artist_backend.errors import UpstreamError

logger = logging.getLogger(__name__)


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(self, name: str, payload: bytes, content_type: str) -> str:
        """Store ``payload`` under ``name`` and return its public URL."""
        ...

    def delete(self, name: str) -> None:
        ...

    def public_url(self, name: str) -> str:
        ...


def object_name_from_url(url: str) -> str:
    """Return the object name, i.e. the last path segment of a public URL."""
    return urlparse(url).path.rstrip("/").split("/")[-1]


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    bucket: str = "local-bucket"
    host: str = "storage.googleapis.com"
    stored_objects: dict = field(default_factory=dict)

    def upload_bytes(self, name: str, payload: bytes, content_type: str) -> str:
        self.stored_objects[name] = (bytes(payload), content_type)
        return self.public_url(name)

    def delete(self, name: str) -> None:
        if name not in self.stored_objects:
            raise UpstreamError(detail=f"No such object: {name}")
        del self.stored_objects[name]

    def public_url(self, name: str) -> str:
        return f"https://{self.host}/{self.bucket}/{name}"

    def reset(self) -> None:
        self.stored_objects.clear()


@dataclass
class FirebaseStorageClient:
    """Cloud Storage bucket of the Firebase project."""

    bucket_name: str
    host: str = "storage.googleapis.com"
    app: object = None

    def __post_init__(self):
        from firebase_admin import storage

        self._bucket = storage.bucket(self.bucket_name, app=self.app)

    def upload_bytes(self, name: str, payload: bytes, content_type: str) -> str:
        blob = self._bucket.blob(name)
        try:
            blob.upload_from_string(payload, content_type=content_type)
        except exceptions.GoogleAPICallError as e:
            logger.error("Upload of %s failed: %s", name, e)
            raise UpstreamError("Failed to upload image", detail=str(e)) from e
        return self.public_url(name)

    def delete(self, name: str) -> None:
        try:
            self._bucket.blob(name).delete()
        except exceptions.GoogleAPICallError as e:
            raise UpstreamError("Failed to delete image", detail=str(e)) from e

    def public_url(self, name: str) -> str:
        return f"https://{self.host}/{self.bucket_name}/{name}"


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client (Tencent COS, MinIO, S3).
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        # Path-style addressing keeps public URLs in the host/bucket/name form.
        config = Config(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(self, name: str, payload: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=name,
                Body=payload,
                ContentType=content_type,
                ACL="public-read",
            )
        except (BotoCoreError, ClientError) as e:
            logger.error("Upload of %s failed: %s", name, e)
            raise UpstreamError("Failed to upload image", detail=str(e)) from e
        return self.public_url(name)

    def delete(self, name: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=name)
        except (BotoCoreError, ClientError) as e:
            raise UpstreamError("Failed to delete image", detail=str(e)) from e

    def public_url(self, name: str) -> str:
        host = urlparse(self.endpoint).netloc or self.endpoint
        return f"https://{host}/{self.bucket}/{name}"
