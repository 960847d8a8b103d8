"""
Storage factory.

Selects the backend from settings:
- STORAGE_BACKEND=local: local filesystem at CONTENT_ROOT
- STORAGE_BACKEND=s3: S3-compatible bucket (S3_BUCKET required)
- STORAGE_BACKEND=auto: S3 when bucket and credentials are set, otherwise local.
  Missing cloud credentials are a valid configuration, not an error.
"""
import logging
from functools import lru_cache
from typing import Optional

from lumenpress.config import Settings, settings as default_settings
from lumenpress.errors import ConfigurationError
from lumenpress.storage.base import StorageAdapter
from lumenpress.storage.local_adapter import LocalStorageAdapter
from lumenpress.storage.s3_adapter import S3StorageAdapter

logger = logging.getLogger(__name__)

BACKENDS = ("auto", "local", "s3")


def create_storage_adapter(config: Optional[Settings] = None) -> StorageAdapter:
    """
    Build a storage adapter for the given settings.

    Raises:
        ConfigurationError: Unknown backend, or S3 forced without a bucket
    """
    config = config or default_settings
    backend = (config.STORAGE_BACKEND or "auto").strip().lower()

    if backend not in BACKENDS:
        raise ConfigurationError(
            f"Unknown STORAGE_BACKEND '{config.STORAGE_BACKEND}', expected one of {', '.join(BACKENDS)}"
        )

    if backend == "auto":
        backend = "s3" if config.s3_configured else "local"

    if backend == "s3":
        if not config.S3_BUCKET:
            raise ConfigurationError("STORAGE_BACKEND=s3 requires S3_BUCKET")
        adapter = S3StorageAdapter(
            bucket=config.S3_BUCKET,
            prefix=config.S3_PREFIX,
            endpoint_url=config.s3_endpoint,
            region_name=config.S3_REGION or None,
            access_key_id=config.S3_ACCESS_KEY_ID or None,
            secret_access_key=config.S3_SECRET_ACCESS_KEY or None,
        )
    else:
        adapter = LocalStorageAdapter(config.CONTENT_ROOT)

    logger.info(f"Using {adapter.backend_name} storage backend: {adapter.describe()}")
    return adapter


@lru_cache(maxsize=1)
def get_storage() -> StorageAdapter:
    """
    FastAPI dependency returning the process-wide adapter.
    The S3 client inside it is reused across requests; no content state is cached here.
    """
    return create_storage_adapter(default_settings)
