from __future__ import annotations

from ..config import ConfigError, StorageConfig
from .base import StorageUploader
from .http import HttpStorageUploader
from .local import LocalStorageUploader


def build_uploader(config: StorageConfig) -> StorageUploader:
    if config.backend == "local":
        return LocalStorageUploader(config.local.root, base_url=config.local.base_url)

    if config.backend == "http":
        if config.http is None:
            raise ConfigError(
                "Storage backend 'http' is not configured. Add a [storage.http] section."
            )
        return HttpStorageUploader(config.http)

    raise ConfigError(f"Unknown storage backend: '{config.backend}'. Available: ['http', 'local']")
