from loguru import logger

from src.core.config import Settings
from src.storage.base import StorageBackend
from src.storage.local import LocalStorage
from src.storage.s3 import S3Storage


def build_storage(settings: Settings) -> StorageBackend:
    """Create the storage backend selected by configuration."""
    if settings.backend == "s3":
        logger.info(f"Using S3 storage backend (bucket={settings.s3_bucket}, prefix={settings.s3_prefix})")
        return S3Storage(settings.s3_bucket, settings.s3_prefix, region=settings.aws_region)

    logger.info(f"Using local storage backend at {settings.local_path}")
    return LocalStorage(settings.local_path)
