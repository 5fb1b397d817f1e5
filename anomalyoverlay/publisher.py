"""Persistence of overlay artifacts to S3.

``S3Adapter`` wraps the boto3 S3 client so tests can swap in a stubbed
client. ``ArtifactPublisher`` owns the key and URL contract:

    {prefix}/anomaly_overlay_{timestamp_ms}-{uuid4hex}.{ext}
    https://{bucket}.s3.{region}.amazonaws.com/{key}
"""
import logging
import mimetypes
import time
import uuid
from typing import Any, Dict, Optional
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from anomalyoverlay.aws import LazyClient
from anomalyoverlay.errors import StorageError
from anomalyoverlay.schemas import CompositeArtifact, StoredArtifactLocator

logger = logging.getLogger(__name__)

KEY_STEM = "anomaly_overlay_"
EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
}


class S3Adapter(LazyClient):
    """Thin S3 adapter used by the artifact publisher."""

    service_name = "s3"

    def put_object(self, bucket: str, key: str, body: bytes, extra_args: Dict[str, Any] | None = None) -> None:
        params = {"Bucket": bucket, "Key": key, "Body": body}
        if extra_args:
            params.update(extra_args)
        self.client.put_object(**params)


def extension_for(mime_type: str) -> str:
    """File extension (without dot) for a MIME type."""
    mime = (mime_type or "").split(";")[0].strip().lower()
    if mime in EXTENSIONS:
        return EXTENSIONS[mime]
    guessed = mimetypes.guess_extension(mime) if mime else None
    return guessed.lstrip(".") if guessed else "bin"


def unique_token() -> str:
    """Millisecond timestamp plus a random UUID; no shared counter."""
    return f"{time.time_ns() // 1_000_000}-{uuid.uuid4().hex}"


def build_object_key(prefix: str, mime_type: str, token: Optional[str] = None) -> str:
    name = f"{KEY_STEM}{token or unique_token()}.{extension_for(mime_type)}"
    prefix = (prefix or "").strip("/")
    return f"{prefix}/{name}" if prefix else name


def build_object_url(bucket: str, region: str, key: str) -> str:
    return f"https://{bucket}.s3.{region}.amazonaws.com/{quote(key, safe='/')}"


class ArtifactPublisher:
    """Writes composites to a bucket and returns their locators."""

    def __init__(self, adapter: S3Adapter, bucket: Optional[str], region: str):
        self.adapter = adapter
        self.bucket = bucket
        self.region = region

    def publish(self, buffer: bytes, mime_type: str, destination_prefix: str) -> StoredArtifactLocator:
        """Store ``buffer`` under a fresh key.

        Raises:
            StorageError: If no bucket is configured or S3 rejects the write.
        """
        if not self.bucket:
            raise StorageError("No S3 bucket configured for overlay artifacts")

        key = build_object_key(destination_prefix, mime_type)
        try:
            self.adapter.put_object(self.bucket, key, buffer, extra_args={"ContentType": mime_type})
        except (ClientError, BotoCoreError) as e:
            raise StorageError.from_boto(e) from e

        locator = StoredArtifactLocator(
            bucket=self.bucket,
            key=key,
            url=build_object_url(self.bucket, self.region, key),
        )
        logger.info(f"Published overlay s3://{self.bucket}/{key} ({len(buffer)} bytes)")
        return locator

    def publish_artifact(self, artifact: CompositeArtifact, destination_prefix: str) -> StoredArtifactLocator:
        return self.publish(artifact.data, artifact.mime_type, destination_prefix)
