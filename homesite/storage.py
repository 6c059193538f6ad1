"""
Object storage adapter for uploaded media (MinIO or any S3-compatible endpoint).

Uploads never pass through the API: clients receive a presigned PUT URL,
upload directly, then confirm the object key. Reads are proxied through
`GET /api/media/{key}` so the bucket can stay private.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterator

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .settings import (
    PRESIGN_EXPIRY_SECONDS,
    PUBLIC_MEDIA_BASE_URL,
    S3_ACCESS_KEY,
    S3_BUCKET,
    S3_ENDPOINT_URL,
    S3_REGION,
    S3_SECRET_KEY,
)

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound", "NoSuchBucket"}


class StorageError(Exception):
    """Raised when the object store cannot complete a request."""


class ObjectNotFound(StorageError):
    """Raised when a requested object does not exist."""


@dataclass
class StoredObject:
    body: Iterator[bytes]
    content_type: str
    content_length: int | None = None


@lru_cache(maxsize=1)
def get_client():
    return boto3.client(
        "s3",
        endpoint_url=S3_ENDPOINT_URL,
        region_name=S3_REGION,
        aws_access_key_id=S3_ACCESS_KEY or None,
        aws_secret_access_key=S3_SECRET_KEY or None,
        # MinIO serves buckets under the path, not as subdomains
        config=BotoConfig(signature_version="s3v4", s3={"addressing_style": "path"}),
    )


def _is_not_found(exc: ClientError) -> bool:
    return exc.response.get("Error", {}).get("Code") in _NOT_FOUND_CODES


def build_object_key(purpose: str, user_id: int, extension: str) -> str:
    """
    Build a unique object key: `{purpose}/{user_id}/{epoch_ms}-{random}.{ext}`.

    The `{purpose}/{user_id}/` prefix is what confirm checks ownership against.
    """
    epoch_ms = int(time.time() * 1000)
    return f"{purpose.lower()}/{user_id}/{epoch_ms}-{secrets.token_hex(6)}.{extension.lower()}"


def key_prefix(purpose: str, user_id: int) -> str:
    return f"{purpose.lower()}/{user_id}/"


def public_url(object_key: str) -> str:
    """Public URL under which an object is served."""
    return f"{PUBLIC_MEDIA_BASE_URL}/{object_key}"


def presign_upload(object_key: str, content_type: str, expires_in: int = PRESIGN_EXPIRY_SECONDS) -> str:
    """Return a presigned PUT URL for uploading one object."""
    try:
        return get_client().generate_presigned_url(
            ClientMethod="put_object",
            Params={"Bucket": S3_BUCKET, "Key": object_key, "ContentType": content_type},
            ExpiresIn=expires_in,
        )
    except (BotoCoreError, ClientError) as e:
        logger.error("Failed to presign upload for %s: %s", object_key, e)
        raise StorageError("Could not create upload URL") from e


def object_exists(object_key: str) -> bool:
    try:
        get_client().head_object(Bucket=S3_BUCKET, Key=object_key)
        return True
    except ClientError as e:
        if _is_not_found(e):
            return False
        logger.error("Failed to stat object %s: %s", object_key, e)
        raise StorageError("Could not check object") from e
    except BotoCoreError as e:
        logger.error("Failed to stat object %s: %s", object_key, e)
        raise StorageError("Could not check object") from e


def open_object(object_key: str) -> StoredObject:
    """Open an object for streaming. Raises ObjectNotFound when missing."""
    try:
        response = get_client().get_object(Bucket=S3_BUCKET, Key=object_key)
    except ClientError as e:
        if _is_not_found(e):
            raise ObjectNotFound(object_key) from e
        logger.error("Failed to read object %s: %s", object_key, e)
        raise StorageError("Could not read object") from e
    except BotoCoreError as e:
        logger.error("Failed to read object %s: %s", object_key, e)
        raise StorageError("Could not read object") from e

    return StoredObject(
        body=response["Body"].iter_chunks(),
        content_type=response.get("ContentType") or "application/octet-stream",
        content_length=response.get("ContentLength"),
    )


def delete_object(object_key: str) -> None:
    try:
        get_client().delete_object(Bucket=S3_BUCKET, Key=object_key)
    except (BotoCoreError, ClientError) as e:
        logger.error("Failed to delete object %s: %s", object_key, e)
        raise StorageError("Could not delete object") from e


def ensure_bucket() -> None:
    """Create the media bucket if it does not exist yet."""
    client = get_client()
    try:
        client.head_bucket(Bucket=S3_BUCKET)
        return
    except ClientError as e:
        if not _is_not_found(e):
            raise StorageError(f"Could not access bucket {S3_BUCKET}") from e
    except BotoCoreError as e:
        raise StorageError(f"Could not reach object storage at {S3_ENDPOINT_URL}") from e

    try:
        client.create_bucket(Bucket=S3_BUCKET)
        logger.info("Created bucket %s", S3_BUCKET)
    except (BotoCoreError, ClientError) as e:
        raise StorageError(f"Could not create bucket {S3_BUCKET}") from e
