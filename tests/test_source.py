from __future__ import annotations

import base64
import io
from pathlib import Path

import httpx
import pytest

pytest.importorskip("PIL", reason="Pillow required for source tests")

from PIL import Image, ImageDraw

from logokit_cli.config import SourceConfig
from logokit_cli.errors import FatalError, SourceError
from logokit_cli.gen.source import decode_source, download_source, load_source_bytes
from logokit_cli.schema import GenerationRequest


def _logo_png(size: tuple[int, int] = (64, 64), mode: str = "RGBA") -> bytes:
    img = Image.new("RGBA", size, (0, 0, 0, 0))
    d = ImageDraw.Draw(img)
    d.ellipse([size[0] // 4, size[1] // 4, size[0] * 3 // 4, size[1] * 3 // 4], fill=(220, 30, 30, 255))
    if mode != "RGBA":
        img = img.convert(mode)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


REQUEST = GenerationRequest(brand_name="TechCorp", seed=7)


class TestDecodeSource:
    def test_decodes_rgba(self) -> None:
        asset = decode_source(_logo_png((32, 32)), REQUEST)
        assert asset.image.mode == "RGBA"
        assert (asset.width, asset.height) == (32, 32)
        assert asset.request.brand_name == "TechCorp"
        assert asset.is_square

    def test_la_source_is_converted(self) -> None:
        asset = decode_source(_logo_png((16, 16), mode="LA"), REQUEST)
        assert asset.image.mode == "RGBA"

    def test_palette_with_transparency_accepted(self) -> None:
        img = Image.new("P", (16, 16), 0)
        img.putpalette([0, 0, 0, 255, 0, 0] + [0] * 762)
        img.info["transparency"] = 0
        buf = io.BytesIO()
        img.save(buf, format="PNG", transparency=0)
        asset = decode_source(buf.getvalue(), REQUEST)
        assert asset.image.mode == "RGBA"

    def test_rgb_without_alpha_is_fatal(self) -> None:
        with pytest.raises(FatalError) as exc_info:
            decode_source(_logo_png((16, 16), mode="RGB"), REQUEST)
        assert "alpha" in str(exc_info.value)

    def test_corrupt_buffer_is_fatal(self) -> None:
        with pytest.raises(SourceError) as exc_info:
            decode_source(b"\x89PNG\r\n\x1a\nnot really a png", REQUEST)
        assert "decoded" in str(exc_info.value)

    def test_empty_buffer_is_fatal(self) -> None:
        with pytest.raises(SourceError):
            decode_source(b"", REQUEST)

    def test_oversized_buffer_is_fatal(self) -> None:
        data = _logo_png((16, 16))
        with pytest.raises(SourceError) as exc_info:
            decode_source(data, REQUEST, SourceConfig(max_bytes=len(data) - 1))
        assert "too large" in str(exc_info.value)

    def test_non_square_source_accepted(self) -> None:
        asset = decode_source(_logo_png((40, 20)), REQUEST)
        assert not asset.is_square


class TestLoadSourceBytes:
    def test_reads_path(self, tmp_path: Path) -> None:
        path = tmp_path / "logo.png"
        path.write_bytes(b"abc")
        assert load_source_bytes(path) == b"abc"
        assert load_source_bytes(str(path)) == b"abc"

    def test_missing_path(self, tmp_path: Path) -> None:
        with pytest.raises(SourceError):
            load_source_bytes(tmp_path / "nope.png")

    def test_data_url(self) -> None:
        payload = _logo_png((8, 8))
        url = "data:image/png;base64," + base64.b64encode(payload).decode("ascii")
        assert load_source_bytes(url) == payload

    def test_data_url_without_base64(self) -> None:
        with pytest.raises(SourceError):
            load_source_bytes("data:image/png,rawbytes")

    def test_data_url_with_bad_base64(self) -> None:
        with pytest.raises(SourceError):
            load_source_bytes("data:image/png;base64,@@@not base64@@@")


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestDownloadSource:
    def test_downloads_with_user_agent(self) -> None:
        payload = b"x" * 2048
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["ua"] = request.headers.get("user-agent")
            return httpx.Response(200, content=payload)

        data = load_source_bytes("https://img.example.com/logo.png", client=_client(handler))
        assert data == payload
        assert "Mozilla" in seen["ua"]

    def test_http_error_status(self) -> None:
        with pytest.raises(SourceError) as exc_info:
            download_source(
                "https://img.example.com/logo.png",
                SourceConfig(),
                client=_client(lambda r: httpx.Response(404)),
            )
        assert "404" in str(exc_info.value)

    def test_too_small_download(self) -> None:
        with pytest.raises(SourceError) as exc_info:
            download_source(
                "https://img.example.com/logo.png",
                SourceConfig(),
                client=_client(lambda r: httpx.Response(200, content=b"tiny")),
            )
        assert "too small" in str(exc_info.value)

    def test_too_large_download(self) -> None:
        with pytest.raises(SourceError) as exc_info:
            download_source(
                "https://img.example.com/logo.png",
                SourceConfig(max_bytes=2000, min_download_bytes=10),
                client=_client(lambda r: httpx.Response(200, content=b"x" * 4000)),
            )
        assert "too large" in str(exc_info.value)

    def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(SourceError) as exc_info:
            download_source("https://img.example.com/logo.png", SourceConfig(), client=_client(handler))
        assert "timed out" in str(exc_info.value)
