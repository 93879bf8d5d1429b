from __future__ import annotations

from abc import ABC, abstractmethod


class StorageUploader(ABC):
    @property
    @abstractmethod
    def backend_id(self) -> str: ...

    @abstractmethod
    def upload_buffer(self, data: bytes, *, key: str, content_type: str) -> str:
        """Store ``data`` under ``key`` and return its public URL.

        Raises:
            StorageError: the backend rejected or could not receive the buffer.
        """
        raise NotImplementedError

    def close(self) -> None:
        pass
