from __future__ import annotations

import asyncio
import hashlib
import logging
from concurrent.futures import Executor
from typing import Optional

from ..errors import StorageError
from ..schema import GenerationRequest
from .base import StorageUploader

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "png": "image/png",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
    "eps": "application/postscript",
    "zip": "application/zip",
}


def content_key(prefix: str, request: GenerationRequest, identity: str, data: bytes, ext: str) -> str:
    """Storage key derived from content, so re-uploading the same bytes is idempotent."""
    digest = hashlib.sha256(data).hexdigest()[:12]
    name = identity.replace("/", "_")
    return f"{prefix}/{request.slug}/{name}-{digest}.{ext}"


def archive_key(prefix: str, request: GenerationRequest) -> str:
    return f"{prefix}/{request.slug}/{request.file_stem}_Complete_Logo_Package.zip"


class BoundedUploader:
    """Caps in-flight uploads; callers beyond the cap wait for a slot."""

    def __init__(
        self,
        uploader: StorageUploader,
        max_in_flight: int = 4,
        retries: int = 1,
        executor: Optional[Executor] = None,
    ):
        if max_in_flight < 1:
            raise ValueError("max_in_flight must be >= 1")
        self.uploader = uploader
        self.max_in_flight = max_in_flight
        self.retries = retries
        self._executor = executor
        self._semaphore = asyncio.Semaphore(max_in_flight)

    async def upload(self, data: bytes, *, key: str, ext: str, identity: Optional[str] = None) -> str:
        content_type = CONTENT_TYPES.get(ext, "application/octet-stream")
        loop = asyncio.get_running_loop()
        attempts = 1 + self.retries
        async with self._semaphore:
            for attempt in range(1, attempts + 1):
                try:
                    return await loop.run_in_executor(
                        self._executor,
                        lambda: self.uploader.upload_buffer(data, key=key, content_type=content_type),
                    )
                except StorageError as e:
                    if attempt >= attempts:
                        raise StorageError(
                            f"upload failed after {attempts} attempt(s): {e}", identity
                        ) from e
                    logger.warning("Upload of %s failed (attempt %d), retrying: %s", key, attempt, e)
        raise StorageError("upload not attempted", identity)
