"""
Object storage with a provider abstraction.

Public buckets (NFT images, voice audio, report screenshots) are written over
the S3 API; readers fetch them through the configured public base URL.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import structlog

from xdrop.config import get_settings

logger = structlog.get_logger()


class StorageError(Exception):
    """An upload did not reach the object store."""


class BaseObjectStorage(ABC):
    """Abstract base class for object storage backends."""

    def __init__(self, public_base_url: str) -> None:
        self.public_base_url = public_base_url.rstrip("/")

    @abstractmethod
    async def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        """Store `body` under bucket/key, overwriting. Raises StorageError."""
        ...

    def public_url(self, bucket: str, key: str) -> str:
        """Public URL of a stored object."""
        return f"{self.public_base_url}/{bucket}/{key}"

    async def upload(self, bucket: str, key: str, body: bytes, content_type: str) -> str:
        """Store an object and return its public URL."""
        await self.put_object(bucket, key, body, content_type)
        logger.info("object_stored", bucket=bucket, key=key, size=len(body))
        return self.public_url(bucket, key)


class S3ObjectStorage(BaseObjectStorage):
    """S3-compatible storage via aioboto3."""

    def __init__(
        self,
        *,
        endpoint_url: str,
        region: str,
        access_key: str,
        secret_key: str,
        public_base_url: str,
    ) -> None:
        super().__init__(public_base_url)
        self.endpoint_url = endpoint_url or None
        self.region = region
        self.access_key = access_key or None
        self.secret_key = secret_key or None

    async def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        import aioboto3
        from botocore.exceptions import BotoCoreError, ClientError

        session = aioboto3.Session(
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
            region_name=self.region,
        )
        try:
            async with session.client("s3", endpoint_url=self.endpoint_url) as s3:
                await s3.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            logger.exception("object_store_failed", bucket=bucket, key=key)
            raise StorageError(str(e)) from e


def _create_storage() -> BaseObjectStorage:
    settings = get_settings()
    return S3ObjectStorage(
        endpoint_url=settings.storage_endpoint_url,
        region=settings.storage_region,
        access_key=settings.storage_access_key,
        secret_key=settings.storage_secret_key,
        public_base_url=settings.storage_public_url,
    )


# Module-level singleton
_storage: BaseObjectStorage | None = None


def get_storage() -> BaseObjectStorage:
    """Get or create the storage singleton (FastAPI dependency)."""
    global _storage  # noqa: PLW0603
    if _storage is None:
        _storage = _create_storage()
    return _storage


def reset_storage() -> None:
    """Drop the storage singleton (settings changed, or tests)."""
    global _storage  # noqa: PLW0603
    _storage = None
