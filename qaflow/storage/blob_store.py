"""
Blob store for uploaded audio, transcripts and QA-edited review text.
Two backends: a local filesystem root for dev/test and S3 for deployment.
"""

import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import boto3
import structlog
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from qaflow.config import settings
from qaflow.errors import BlobNotFoundError, BlobStoreError
from qaflow.observability.metrics import blob_store_failures_total
from qaflow.storage.keys import ensure_parent_dirs

logger = structlog.get_logger(__name__)


class BlobStore(ABC):
    """
    Opaque key/bytes store.

    Implementations must:
    1. Raise BlobStoreError when a write or read fails
    2. Raise BlobNotFoundError when a key does not exist
    3. Never raise from delete (cleanup is best-effort)
    """

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under key. Returns the key."""
        ...

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Load the bytes stored under key."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Failures are logged, never raised."""
        ...

    @abstractmethod
    def mint_download_url(self, key: str, ttl_seconds: int) -> str:
        """Time-limited URL a client can GET the blob from."""
        ...


class LocalBlobStore(BlobStore):
    """
    Filesystem-backed store.
    All keys are relative paths under BLOB_ROOT.
    """

    def __init__(self, root: Optional[str] = None, public_base_url: Optional[str] = None):
        self.root = Path(root or settings.BLOB_ROOT)
        self.root.mkdir(parents=True, exist_ok=True)
        self.public_base_url = (public_base_url or settings.BLOB_PUBLIC_BASE_URL).rstrip("/")

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            full_path = ensure_parent_dirs(str(self.root), key)
            full_path.write_bytes(data)
        except OSError as e:
            blob_store_failures_total.labels(operation="put").inc()
            raise BlobStoreError(f"Failed to store {key}: {e}") from e
        logger.info("blob_saved", key=key, size_bytes=len(data), content_type=content_type)
        return key

    def get(self, key: str) -> bytes:
        full_path = self.root / key
        if not full_path.is_file():
            raise BlobNotFoundError(f"Blob not found: {key}")
        try:
            return full_path.read_bytes()
        except OSError as e:
            blob_store_failures_total.labels(operation="get").inc()
            raise BlobStoreError(f"Failed to read {key}: {e}") from e

    def delete(self, key: str) -> None:
        full_path = self.root / key
        try:
            if full_path.exists():
                full_path.unlink()
                logger.info("blob_deleted", key=key)
        except OSError as e:
            blob_store_failures_total.labels(operation="delete").inc()
            logger.warning("blob_delete_failed", key=key, error=str(e))

    def mint_download_url(self, key: str, ttl_seconds: int) -> str:
        expires = int(time.time()) + ttl_seconds
        return f"{self.public_base_url}/{quote(key)}?expires={expires}"

    def exists(self, key: str) -> bool:
        return (self.root / key).is_file()


class S3BlobStore(BlobStore):
    """S3 (or S3-compatible) store using a single bucket."""

    def __init__(
        self,
        bucket: Optional[str] = None,
        region: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket or settings.S3_BUCKET
        if not self.bucket:
            raise ValueError("S3_BUCKET must be configured for the s3 blob backend")
        # Credentials come from the standard AWS environment/profile chain
        self._client = client or boto3.client(
            "s3",
            region_name=region or settings.S3_REGION,
            endpoint_url=endpoint_url or settings.S3_ENDPOINT_URL,
            config=Config(signature_version="s3v4"),
        )

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self._client.put_object(
                Bucket=self.bucket, Key=key, Body=data, ContentType=content_type
            )
        except (BotoCoreError, ClientError) as e:
            blob_store_failures_total.labels(operation="put").inc()
            logger.error("blob_upload_failed", key=key, error=str(e))
            raise BlobStoreError(f"Failed to upload {key} to S3: {e}") from e
        logger.info("blob_saved", key=key, size_bytes=len(data), content_type=content_type)
        return key

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                raise BlobNotFoundError(f"Blob not found: {key}") from e
            blob_store_failures_total.labels(operation="get").inc()
            raise BlobStoreError(f"Failed to download {key} from S3: {e}") from e
        except BotoCoreError as e:
            blob_store_failures_total.labels(operation="get").inc()
            raise BlobStoreError(f"Failed to download {key} from S3: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
            logger.info("blob_deleted", key=key)
        except (BotoCoreError, ClientError) as e:
            blob_store_failures_total.labels(operation="delete").inc()
            logger.warning("blob_delete_failed", key=key, error=str(e))

    def mint_download_url(self, key: str, ttl_seconds: int) -> str:
        try:
            return self._client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as e:
            blob_store_failures_total.labels(operation="presign").inc()
            raise BlobStoreError(f"Failed to generate download URL for {key}: {e}") from e


def create_blob_store() -> BlobStore:
    """Build the configured backend."""
    backend = settings.BLOB_BACKEND.lower()
    if backend == "s3":
        return S3BlobStore()
    if backend == "local":
        return LocalBlobStore()
    raise ValueError(f"Unknown BLOB_BACKEND: {settings.BLOB_BACKEND}")
