"""S3 blob storage for original upload files."""

from __future__ import annotations

import logging
from functools import lru_cache
from uuid import UUID

import boto3
from botocore.exceptions import ClientError

from bulk_upload.core.config import get_settings
from bulk_upload.core.exceptions import FileStorageError

logger = logging.getLogger(__name__)

_BUCKET_EXISTS_CODES = {"BucketAlreadyOwnedByYou", "BucketAlreadyExists"}


def build_storage_key(organization_id: UUID, job_id: UUID, extension: str) -> str:
    """Tenant- and job-scoped object key, e.g. '<org>/<job>.csv'."""
    return f"{organization_id}/{job_id}.{extension}"


class S3FileStore:
    """Private bucket holding the original file of every confirmed upload."""

    def __init__(self, bucket: str, region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._bucket = bucket
        self._region = region
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("s3", **kwargs)

    @property
    def bucket(self) -> str:
        return self._bucket

    def file_url(self, key: str) -> str:
        """Reference stored on the job record. Not a public URL."""
        return f"{self._bucket}/{key}"

    def ensure_bucket(self) -> None:
        """Create the bucket if needed. An existing bucket is not an error."""
        kwargs: dict = {"Bucket": self._bucket}
        if self._region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self._region}
        try:
            self._client.create_bucket(**kwargs)
            logger.info("Created storage bucket %s", self._bucket)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _BUCKET_EXISTS_CODES:
                return
            raise FileStorageError(f"Storage bucket creation failed: {exc}") from exc

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self._bucket, Key=key, Body=data, ContentType=content_type,
            )
            return key
        except ClientError as exc:
            raise FileStorageError(f"File upload failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            raise FileStorageError(f"File delete failed for {key!r}: {exc}") from exc

    def check_bucket(self) -> None:
        """Raise FileStorageError if the bucket is not reachable."""
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except ClientError as exc:
            raise FileStorageError(f"Storage bucket {self._bucket!r} unavailable: {exc}") from exc


@lru_cache
def get_file_store() -> S3FileStore:
    """Dependency that provides the configured file store."""
    settings = get_settings()
    return S3FileStore(
        bucket=settings.STORAGE_BUCKET,
        region=settings.STORAGE_REGION,
        endpoint_url=settings.STORAGE_ENDPOINT_URL,
    )
