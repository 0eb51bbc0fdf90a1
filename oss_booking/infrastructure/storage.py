# oss_booking/infrastructure/storage.py

import logging
from typing import Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from oss_booking.config import Settings
from oss_booking.domain.exceptions import StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    def upload(self, bucket: str, key: str, body: bytes, content_type: str) -> str:
        """Store the object and return its public URL."""
        ...


def get_s3_client(settings: Settings):
    """
    S3 client for the asset store. A custom endpoint covers S3-compatible
    providers (Supabase storage, MinIO) used outside AWS.
    """
    options = {
        "aws_access_key_id": settings.storage_access_key_id,
        "aws_secret_access_key": settings.storage_secret_access_key,
        "region_name": settings.storage_region,
    }
    if settings.storage_endpoint_url:
        options["endpoint_url"] = settings.storage_endpoint_url
    return boto3.client("s3", **options)


class S3ObjectStorage:

    def __init__(self, client, public_base_url: str | None = None):
        self._client = client
        self._public_base_url = public_base_url

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3ObjectStorage":
        return cls(get_s3_client(settings), settings.storage_public_base_url)

    def upload(self, bucket: str, key: str, body: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error("Object upload failed bucket=%s key=%s: %s", bucket, key, exc)
            raise StorageError("Failed to upload file") from exc
        return self.public_url(bucket, key)

    def public_url(self, bucket: str, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{bucket}/{key}"
        return f"https://{bucket}.s3.amazonaws.com/{key}"


def build_storage(settings: Settings) -> ObjectStorage | None:
    if not settings.storage_configured:
        return None
    return S3ObjectStorage.from_settings(settings)
