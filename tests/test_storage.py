from __future__ import annotations

import asyncio
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import httpx
import pytest

from logokit_cli.config import ConfigError, HttpStorageConfig, LocalStorageConfig, StorageConfig
from logokit_cli.errors import StorageError
from logokit_cli.schema import GenerationRequest
from logokit_cli.storage import (
    BoundedUploader,
    HttpStorageUploader,
    LocalStorageUploader,
    StorageUploader,
    archive_key,
    build_uploader,
    content_key,
)

REQUEST = GenerationRequest(brand_name="Tech Corp!")


class RecordingUploader(StorageUploader):
    """Fails the first ``fail_times`` calls, tracks peak concurrency."""

    def __init__(self, fail_times: int = 0, delay: float = 0.0):
        self.fail_times = fail_times
        self.delay = delay
        self.calls: list[str] = []
        self.in_flight = 0
        self.peak = 0
        self._lock = threading.Lock()

    @property
    def backend_id(self) -> str:
        return "recording"

    def upload_buffer(self, data: bytes, *, key: str, content_type: str) -> str:
        with self._lock:
            self.calls.append(key)
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            attempt = len(self.calls)
        try:
            if self.delay:
                time.sleep(self.delay)
            if attempt <= self.fail_times:
                raise StorageError("bucket unavailable", key)
            return f"mem://{key}"
        finally:
            with self._lock:
                self.in_flight -= 1


class TestKeys:
    def test_content_key_is_stable(self) -> None:
        a = content_key("complete-assets", REQUEST, "size/web/192x192", b"abc", "png")
        b = content_key("complete-assets", REQUEST, "size/web/192x192", b"abc", "png")
        assert a == b
        assert a.startswith("complete-assets/tech_corp/size_web_192x192-")
        assert a.endswith(".png")

    def test_content_key_changes_with_data(self) -> None:
        a = content_key("p", REQUEST, "color/white", b"abc", "png")
        b = content_key("p", REQUEST, "color/white", b"abd", "png")
        assert a != b

    def test_archive_key(self) -> None:
        key = archive_key("complete-assets", GenerationRequest(brand_name="TechCorp"))
        assert key == "complete-assets/techcorp/TechCorp_Complete_Logo_Package.zip"


class TestLocalStorage:
    def test_writes_file_and_returns_file_uri(self, tmp_path: Path) -> None:
        uploader = LocalStorageUploader(tmp_path / "store")
        url = uploader.upload_buffer(b"png-bytes", key="a/b/logo.png", content_type="image/png")
        out = tmp_path / "store" / "a" / "b" / "logo.png"
        assert out.read_bytes() == b"png-bytes"
        assert url == out.resolve().as_uri()
        assert not any(p.name.endswith(".part") for p in out.parent.iterdir())

    def test_base_url(self, tmp_path: Path) -> None:
        uploader = LocalStorageUploader(tmp_path, base_url="https://cdn.example.com/assets/")
        url = uploader.upload_buffer(b"x", key="brand/logo.svg", content_type="image/svg+xml")
        assert url == "https://cdn.example.com/assets/brand/logo.svg"

    @pytest.mark.parametrize("key", ["../escape.png", "/abs/logo.png", "", "a/../../b.png"])
    def test_rejects_unsafe_keys(self, tmp_path: Path, key: str) -> None:
        with pytest.raises(StorageError):
            LocalStorageUploader(tmp_path).upload_buffer(b"x", key=key, content_type="image/png")

    def test_overwrite_same_key(self, tmp_path: Path) -> None:
        uploader = LocalStorageUploader(tmp_path)
        uploader.upload_buffer(b"one", key="k.png", content_type="image/png")
        uploader.upload_buffer(b"two", key="k.png", content_type="image/png")
        assert (tmp_path / "k.png").read_bytes() == b"two"


class TestHttpStorage:
    def _uploader(self, handler, **overrides) -> HttpStorageUploader:
        config = HttpStorageConfig(endpoint="https://upload.example.com/bucket/", **overrides)
        client = httpx.Client(transport=httpx.MockTransport(handler))
        return HttpStorageUploader(config, client=client)

    def test_put_with_content_type_and_token(self, monkeypatch) -> None:
        monkeypatch.setenv("LOGOKIT_STORAGE_TOKEN", "s3cret")
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["type"] = request.headers["content-type"]
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = request.content
            return httpx.Response(201)

        uploader = self._uploader(handler, public_base_url="https://cdn.example.com")
        url = uploader.upload_buffer(b"svgdata", key="brand/logo.svg", content_type="image/svg+xml")
        assert url == "https://cdn.example.com/brand/logo.svg"
        assert seen == {
            "method": "PUT",
            "url": "https://upload.example.com/bucket/brand/logo.svg",
            "type": "image/svg+xml",
            "auth": "Bearer s3cret",
            "body": b"svgdata",
        }

    def test_no_token_no_auth_header(self, monkeypatch) -> None:
        monkeypatch.delenv("LOGOKIT_STORAGE_TOKEN", raising=False)
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200)

        url = self._uploader(handler).upload_buffer(b"x", key="k.png", content_type="image/png")
        assert seen["auth"] is None
        assert url == "https://upload.example.com/bucket/k.png"

    def test_rejected_status(self) -> None:
        uploader = self._uploader(lambda r: httpx.Response(403))
        with pytest.raises(StorageError) as exc_info:
            uploader.upload_buffer(b"x", key="k.png", content_type="image/png")
        assert "403" in str(exc_info.value)

    def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(StorageError):
            self._uploader(handler).upload_buffer(b"x", key="k.png", content_type="image/png")


class TestRegistry:
    def test_local_default(self, tmp_path: Path) -> None:
        uploader = build_uploader(StorageConfig(local=LocalStorageConfig(root=tmp_path)))
        assert uploader.backend_id == "local"

    def test_http(self) -> None:
        config = StorageConfig(backend="http", http=HttpStorageConfig(endpoint="https://u.example.com"))
        uploader = build_uploader(config)
        try:
            assert uploader.backend_id == "http"
        finally:
            uploader.close()

    def test_http_without_section(self) -> None:
        config = StorageConfig.model_construct(backend="http", local=LocalStorageConfig(), http=None)
        with pytest.raises(ConfigError):
            build_uploader(config)


class TestBoundedUploader:
    def test_retries_once_then_succeeds(self) -> None:
        inner = RecordingUploader(fail_times=1)

        async def run() -> str:
            return await BoundedUploader(inner, retries=1).upload(b"x", key="k.png", ext="png")

        assert asyncio.run(run()) == "mem://k.png"
        assert inner.calls == ["k.png", "k.png"]

    def test_gives_up_after_retry(self) -> None:
        inner = RecordingUploader(fail_times=5)

        async def run() -> str:
            return await BoundedUploader(inner, retries=1).upload(
                b"x", key="k.png", ext="png", identity="color/white"
            )

        with pytest.raises(StorageError) as exc_info:
            asyncio.run(run())
        assert "after 2 attempt(s)" in str(exc_info.value)
        assert str(exc_info.value).startswith("color/white: ")
        assert len(inner.calls) == 2

    def test_no_retry(self) -> None:
        inner = RecordingUploader(fail_times=1)

        async def run() -> str:
            return await BoundedUploader(inner, retries=0).upload(b"x", key="k.png", ext="png")

        with pytest.raises(StorageError):
            asyncio.run(run())
        assert len(inner.calls) == 1

    def test_caps_in_flight_uploads(self) -> None:
        inner = RecordingUploader(delay=0.05)
        executor = ThreadPoolExecutor(max_workers=8)

        async def run() -> list[str]:
            bounded = BoundedUploader(inner, max_in_flight=2, executor=executor)
            return await asyncio.gather(
                *(bounded.upload(b"x", key=f"k{i}.png", ext="png") for i in range(8))
            )

        try:
            urls = asyncio.run(run())
        finally:
            executor.shutdown()
        assert len(urls) == 8
        assert inner.peak <= 2

    def test_rejects_zero_cap(self) -> None:
        with pytest.raises(ValueError):
            BoundedUploader(RecordingUploader(), max_in_flight=0)
