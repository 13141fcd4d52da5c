"""Build the configured object store."""

from __future__ import annotations

from loguru import logger

from cloudsync.exceptions import ConfigurationError
from cloudsync.settings import StorageSettings
from cloudsync.storage import ObjectStore
from cloudsync.storage.local import LocalStorage
from cloudsync.storage.memory import MemoryStorage


def create_object_store(settings: StorageSettings) -> ObjectStore:
    if settings.backend == "memory":
        logger.warning("Using in-memory object store; objects are lost on restart")
        return MemoryStorage()
    if settings.backend == "local":
        logger.info("Using local object store at {root}", root=str(settings.root))
        return LocalStorage(settings.root)
    if settings.backend == "s3":
        if not settings.bucket:
            raise ConfigurationError("S3 storage requires a bucket", {"backend": "s3"})
        from cloudsync.storage.s3 import S3Storage

        logger.info("Using S3 object store bucket={bucket} prefix={prefix}", bucket=settings.bucket, prefix=settings.prefix)
        return S3Storage(
            settings.bucket,
            prefix=settings.prefix,
            region=settings.region,
            endpoint_url=settings.endpoint_url,
        )
    raise ConfigurationError(f"Unknown storage backend: {settings.backend}")


__all__ = ["create_object_store"]
