from __future__ import annotations

import logging
import uuid
from pathlib import Path, PurePosixPath
from typing import Optional

from ..errors import StorageError
from .base import StorageUploader

logger = logging.getLogger(__name__)


def _safe_relpath(key: str) -> Path:
    parts = PurePosixPath(key).parts
    if not parts or any(p in ("..", "") for p in parts) or key.startswith("/"):
        raise StorageError(f"invalid storage key: {key!r}")
    return Path(*parts)


class LocalStorageUploader(StorageUploader):
    """Writes buffers below ``root``; URLs are ``file://`` unless ``base_url`` is set."""

    def __init__(self, root: Path, base_url: Optional[str] = None):
        self.root = root
        self.base_url = base_url.rstrip("/") if base_url else None

    @property
    def backend_id(self) -> str:
        return "local"

    def upload_buffer(self, data: bytes, *, key: str, content_type: str) -> str:
        rel = _safe_relpath(key)
        out_path = self.root / rel
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = out_path.with_name(f".{out_path.name}.{uuid.uuid4().hex[:8]}.part")
            tmp_path.write_bytes(data)
            tmp_path.replace(out_path)
        except OSError as e:
            raise StorageError(f"failed to write {out_path}: {e}", key) from e

        logger.debug("Stored %s (%s, %d bytes)", key, content_type, len(data))
        if self.base_url:
            return f"{self.base_url}/{rel.as_posix()}"
        return out_path.resolve().as_uri()
