from .base import StorageUploader
from .http import HttpStorageUploader
from .local import LocalStorageUploader
from .registry import build_uploader
from .upload import BoundedUploader, archive_key, content_key

__all__ = [
    "StorageUploader",
    "HttpStorageUploader",
    "LocalStorageUploader",
    "build_uploader",
    "BoundedUploader",
    "archive_key",
    "content_key",
]
