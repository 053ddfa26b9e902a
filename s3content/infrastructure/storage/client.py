"""
Object storage client for linked S3 content.

Wraps the S3 multipart-upload lifecycle and prefix listings behind a small
protocol so the core never touches boto3 directly. Any S3-compatible store
works by setting an endpoint URL.

Mock mode keeps objects and uploads in memory, enabling API testing without
provisioning a bucket.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Protocol
from uuid import uuid4

from ...core.content.models import CompletedPart

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


@dataclass
class StorageConfig:
    """
    Configuration for S3 storage.

    Loaded once per process (see config.settings.get_storage_config) and
    passed to whatever needs it.
    """
    access_key_id: str
    secret_access_key: str
    bucket_name: str
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Results are plain dicts shaped like the S3 API responses so they can be
    returned to the browser uploader unchanged.
    """

    @property
    def bucket_name(self) -> str: ...

    async def create_multipart_upload(self, key: str, content_type: str) -> dict:
        """Start an upload and return Bucket, Key and UploadId."""
        ...

    async def abort_multipart_upload(self, key: str, upload_id: str) -> dict:
        """Abort an upload, discarding uploaded parts."""
        ...

    async def complete_multipart_upload(
        self,
        key: str,
        parts: list[CompletedPart],
        upload_id: str,
    ) -> dict:
        """Combine uploaded parts into the final object."""
        ...

    async def list_multipart_uploads(self) -> dict:
        """List uploads in progress for the bucket."""
        ...

    async def sign_upload_part(
        self,
        key: str,
        part_number: int,
        upload_id: str,
        expiry_seconds: int = 3600,
    ) -> dict:
        """Return a presigned URL the browser can PUT one part to."""
        ...

    async def delete_object(self, key: str) -> dict:
        """Delete one object."""
        ...

    async def list_objects(self, prefix: str) -> dict:
        """List all objects under prefix. Contents is absent when empty."""
        ...


def _strip_metadata(response: dict) -> dict:
    """Drop the SDK's transport metadata from a passthrough result."""
    return {k: v for k, v in response.items() if k != "ResponseMetadata"}


class S3StorageClient:
    """
    AWS S3 object storage client.

    boto3 is synchronous; methods are async to match the protocol and keep
    route handlers uniform. Construction makes no network calls.
    """

    def __init__(self, config: StorageConfig) -> None:
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        self._config = config

        # Presigned part URLs must use SigV4
        boto_config = Config(signature_version="s3v4")

        self._s3_client = boto3.client(
            "s3",
            endpoint_url=config.endpoint_url,
            aws_access_key_id=config.access_key_id,
            aws_secret_access_key=config.secret_access_key,
            region_name=config.region,
            config=boto_config,
        )

        logger.info(
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket_name,
                "region": config.region,
                "endpoint": config.endpoint_url,
            }
        )

    @property
    def bucket_name(self) -> str:
        return self._config.bucket_name

    async def create_multipart_upload(self, key: str, content_type: str) -> dict:
        try:
            response = self._s3_client.create_multipart_upload(
                Bucket=self._config.bucket_name,
                Key=key,
                ContentType=content_type,
            )
        except Exception as e:
            logger.error(
                "Failed to create multipart upload",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Create multipart upload failed: {e}") from e

        logger.info(
            "Created multipart upload",
            extra={"key": key, "upload_id": response.get("UploadId")}
        )
        return _strip_metadata(response)

    async def abort_multipart_upload(self, key: str, upload_id: str) -> dict:
        try:
            response = self._s3_client.abort_multipart_upload(
                Bucket=self._config.bucket_name,
                Key=key,
                UploadId=upload_id,
            )
        except Exception as e:
            logger.error(
                "Failed to abort multipart upload",
                extra={"key": key, "upload_id": upload_id, "error": str(e)}
            )
            raise StorageError(f"Abort multipart upload failed: {e}") from e

        logger.info(
            "Aborted multipart upload",
            extra={"key": key, "upload_id": upload_id}
        )
        return _strip_metadata(response)

    async def complete_multipart_upload(
        self,
        key: str,
        parts: list[CompletedPart],
        upload_id: str,
    ) -> dict:
        """
        Complete an upload.

        Parts are sent in the order given; S3 rejects out-of-order lists,
        which surfaces here as a StorageError.
        """
        try:
            response = self._s3_client.complete_multipart_upload(
                Bucket=self._config.bucket_name,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": [part.to_s3() for part in parts]},
            )
        except Exception as e:
            logger.error(
                "Failed to complete multipart upload",
                extra={
                    "key": key,
                    "upload_id": upload_id,
                    "part_count": len(parts),
                    "error": str(e),
                }
            )
            raise StorageError(f"Complete multipart upload failed: {e}") from e

        logger.info(
            "Completed multipart upload",
            extra={"key": key, "upload_id": upload_id, "part_count": len(parts)}
        )
        return _strip_metadata(response)

    async def list_multipart_uploads(self) -> dict:
        try:
            response = self._s3_client.list_multipart_uploads(
                Bucket=self._config.bucket_name,
            )
        except Exception as e:
            logger.error(
                "Failed to list multipart uploads",
                extra={"error": str(e)}
            )
            raise StorageError(f"List multipart uploads failed: {e}") from e

        return _strip_metadata(response)

    async def sign_upload_part(
        self,
        key: str,
        part_number: int,
        upload_id: str,
        expiry_seconds: int = 3600,
    ) -> dict:
        """
        Generate a presigned URL for uploading one part.

        Signing happens locally; nothing is sent to S3.
        """
        try:
            url = self._s3_client.generate_presigned_url(
                "upload_part",
                Params={
                    "Bucket": self._config.bucket_name,
                    "Key": key,
                    "PartNumber": part_number,
                    "UploadId": upload_id,
                },
                ExpiresIn=expiry_seconds,
            )
        except Exception as e:
            logger.error(
                "Failed to sign upload part",
                extra={"key": key, "part_number": part_number, "error": str(e)}
            )
            raise StorageError(f"Upload part signing failed: {e}") from e

        return {"url": url}

    async def delete_object(self, key: str) -> dict:
        try:
            response = self._s3_client.delete_object(
                Bucket=self._config.bucket_name,
                Key=key,
            )
        except Exception as e:
            logger.error(
                "Failed to delete object",
                extra={"key": key, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}") from e

        logger.info("Deleted object", extra={"key": key})
        return _strip_metadata(response)

    async def list_objects(self, prefix: str) -> dict:
        """
        List every object under prefix.

        Follows continuation tokens so folders with more than 1000 objects
        are listed completely. Contents is omitted when nothing matched,
        like a single S3 response.
        """
        contents: list[dict[str, Any]] = []

        try:
            paginator = self._s3_client.get_paginator("list_objects_v2")
            for page in paginator.paginate(
                Bucket=self._config.bucket_name,
                Prefix=prefix,
            ):
                contents.extend(page.get("Contents", []))
        except Exception as e:
            logger.error(
                "Failed to list objects",
                extra={"prefix": prefix, "error": str(e)}
            )
            raise StorageError(f"List objects failed: {e}") from e

        logger.debug(
            "Listed objects",
            extra={"prefix": prefix, "count": len(contents)}
        )

        response: dict[str, Any] = {
            "Name": self._config.bucket_name,
            "Prefix": prefix,
            "KeyCount": len(contents),
        }
        if contents:
            response["Contents"] = contents
        return response


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    Objects are stored as {key: bytes}; uploads as {upload_id: upload}.
    Parts are never transferred, so completing an upload creates an empty
    object. Presigned URLs are mock URIs.
    """

    def __init__(self, bucket_name: str = "mock-bucket") -> None:
        self._bucket_name = bucket_name
        self._objects: dict[str, bytes] = {}
        self._last_modified: dict[str, datetime] = {}
        self._uploads: dict[str, dict[str, Any]] = {}
        logger.info("Initialized mock storage client (in-memory)")

    @property
    def bucket_name(self) -> str:
        return self._bucket_name

    def put_object(self, key: str, data: bytes = b"") -> None:
        """Store an object directly (for dev seeding and tests)."""
        self._objects[key] = data
        self._last_modified[key] = datetime.now(timezone.utc)

    async def create_multipart_upload(self, key: str, content_type: str) -> dict:
        upload_id = uuid4().hex
        self._uploads[upload_id] = {
            "Key": key,
            "UploadId": upload_id,
            "ContentType": content_type,
            "Initiated": datetime.now(timezone.utc),
        }
        logger.debug(
            "Created upload in mock storage",
            extra={"key": key, "upload_id": upload_id}
        )
        return {"Bucket": self._bucket_name, "Key": key, "UploadId": upload_id}

    def _get_upload(self, key: str, upload_id: str) -> dict[str, Any]:
        upload = self._uploads.get(upload_id)
        if upload is None or upload["Key"] != key:
            raise StorageError(f"No such upload: {upload_id}")
        return upload

    async def abort_multipart_upload(self, key: str, upload_id: str) -> dict:
        self._get_upload(key, upload_id)
        del self._uploads[upload_id]
        return {}

    async def complete_multipart_upload(
        self,
        key: str,
        parts: list[CompletedPart],
        upload_id: str,
    ) -> dict:
        self._get_upload(key, upload_id)
        if not parts:
            raise StorageError("Complete multipart upload failed: no parts given")

        part_numbers = [part.part_number for part in parts]
        if part_numbers != sorted(part_numbers):
            raise StorageError("Complete multipart upload failed: parts out of order")

        del self._uploads[upload_id]
        self.put_object(key)
        return {
            "Bucket": self._bucket_name,
            "Key": key,
            "Location": f"mock://{self._bucket_name}/{key}",
            "ETag": f'"{uuid4().hex}-{len(parts)}"',
        }

    async def list_multipart_uploads(self) -> dict:
        return {
            "Bucket": self._bucket_name,
            "Uploads": [
                {
                    "Key": upload["Key"],
                    "UploadId": upload["UploadId"],
                    "Initiated": upload["Initiated"],
                }
                for upload in self._uploads.values()
            ],
        }

    async def sign_upload_part(
        self,
        key: str,
        part_number: int,
        upload_id: str,
        expiry_seconds: int = 3600,
    ) -> dict:
        return {
            "url": (
                f"mock://{self._bucket_name}/{key}"
                f"?partNumber={part_number}&uploadId={upload_id}&expires={expiry_seconds}"
            )
        }

    async def delete_object(self, key: str) -> dict:
        # S3 deletes are idempotent; a missing key is not an error
        self._objects.pop(key, None)
        self._last_modified.pop(key, None)
        return {}

    async def list_objects(self, prefix: str) -> dict:
        contents = [
            {
                "Key": key,
                "Size": len(data),
                "LastModified": self._last_modified[key],
            }
            for key, data in sorted(self._objects.items())
            if key.startswith(prefix)
        ]

        response: dict[str, Any] = {
            "Name": self._bucket_name,
            "Prefix": prefix,
            "KeyCount": len(contents),
        }
        if contents:
            response["Contents"] = contents
        return response


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        StorageClient implementation (S3 or Mock)
    """
    if mock_mode:
        bucket = config.bucket_name if config and config.bucket_name else "mock-bucket"
        return MockStorageClient(bucket_name=bucket)

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3StorageClient(config)
