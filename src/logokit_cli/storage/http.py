from __future__ import annotations

import logging
import os
from typing import Optional

import httpx

from ..config import HttpStorageConfig
from ..errors import StorageError
from .base import StorageUploader

logger = logging.getLogger(__name__)


class HttpStorageUploader(StorageUploader):
    """PUTs each buffer to ``{endpoint}/{key}``.

    Works with presigned-style object stores and simple upload gateways.
    """

    def __init__(self, config: HttpStorageConfig, client: Optional[httpx.Client] = None):
        self.config = config
        self._endpoint = config.endpoint.rstrip("/")
        self._public_base = (config.public_base_url or config.endpoint).rstrip("/")
        self._auth = {}
        token = os.environ.get(config.token_env)
        if token:
            self._auth["Authorization"] = f"Bearer {token}"
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.timeout_sec)

    @property
    def backend_id(self) -> str:
        return "http"

    def upload_buffer(self, data: bytes, *, key: str, content_type: str) -> str:
        url = f"{self._endpoint}/{key.lstrip('/')}"
        try:
            response = self._client.put(
                url, content=data, headers={**self._auth, "Content-Type": content_type}
            )
        except httpx.HTTPError as e:
            raise StorageError(f"upload failed: {e}", key) from e
        if response.status_code >= 300:
            raise StorageError(
                f"upload rejected: {response.status_code} {response.reason_phrase}", key
            )
        logger.debug("Uploaded %s (%d bytes)", key, len(data))
        return f"{self._public_base}/{key.lstrip('/')}"

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
