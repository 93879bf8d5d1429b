"""Source image intake: fetch, decode and validate the synthesized logo."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from pathlib import Path
from typing import Optional

import httpx
from PIL import Image, UnidentifiedImageError

from ..config import SourceConfig
from ..errors import SourceError
from ..schema import GenerationRequest
from .types import SourceAsset

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

# Pillow modes that carry an alpha channel without palette tricks.
_ALPHA_MODES = {"RGBA", "LA", "RGBa", "La", "PA"}


def _decode_data_url(location: str) -> bytes:
    header, _, payload = location.partition(",")
    if not payload or ";base64" not in header:
        raise SourceError("data URL must be base64 encoded")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise SourceError(f"invalid base64 payload in data URL: {e}") from e


def download_source(
    url: str,
    config: SourceConfig,
    client: Optional[httpx.Client] = None,
) -> bytes:
    """Download the source image, enforcing the configured size window."""
    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=config.download_timeout_sec, follow_redirects=True)
    try:
        response = client.get(url, headers={"User-Agent": USER_AGENT})
    except httpx.TimeoutException as e:
        raise SourceError(
            f"download timed out after {config.download_timeout_sec:g}s: {url}"
        ) from e
    except httpx.HTTPError as e:
        raise SourceError(f"failed to download source {url}: {e}") from e
    finally:
        if owns_client:
            client.close()

    if response.status_code >= 300:
        raise SourceError(
            f"failed to download source {url}: {response.status_code} {response.reason_phrase}"
        )

    data = response.content
    if not data:
        raise SourceError(f"downloaded source is empty: {url}")
    if len(data) < config.min_download_bytes:
        raise SourceError(f"downloaded source is too small to be a valid logo ({len(data)} bytes)")
    if len(data) > config.max_bytes:
        raise SourceError(f"downloaded source is too large ({len(data)} bytes)")

    logger.info("Downloaded source %s (%d bytes)", url, len(data))
    return data


def load_source_bytes(
    location: str | Path,
    config: Optional[SourceConfig] = None,
    client: Optional[httpx.Client] = None,
) -> bytes:
    """Read source bytes from a path, a base64 data URL or an http(s) URL."""
    config = config or SourceConfig()
    if isinstance(location, str):
        if location.startswith("data:"):
            return _decode_data_url(location)
        if location.startswith(("http://", "https://")):
            return download_source(location, config, client=client)
        location = Path(location)

    if not location.exists():
        raise SourceError(f"source file not found: {location}")
    try:
        return location.read_bytes()
    except OSError as e:
        raise SourceError(f"cannot read source file {location}: {e}") from e


def _has_alpha(img: Image.Image) -> bool:
    if img.mode in _ALPHA_MODES:
        return True
    return img.mode == "P" and "transparency" in img.info


def decode_source(
    data: bytes,
    request: GenerationRequest,
    config: Optional[SourceConfig] = None,
) -> SourceAsset:
    """Decode and validate the source once for the whole call.

    Raises:
        SourceError: empty, oversized, undecodable, or without an alpha channel.
    """
    config = config or SourceConfig()
    if not data:
        raise SourceError("source buffer is empty")
    if len(data) > config.max_bytes:
        raise SourceError(f"source is too large ({len(data)} bytes, limit {config.max_bytes})")

    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise SourceError(f"source image cannot be decoded: {e}") from e

    if img.width < 1 or img.height < 1:
        raise SourceError("source image has no pixels")
    if not _has_alpha(img):
        raise SourceError(f"source image has no alpha channel (mode {img.mode})")

    rgba = img.convert("RGBA")
    if rgba.width != rgba.height:
        logger.warning(
            "Source for %s is not square (%dx%d); size variants will be padded",
            request.brand_name,
            rgba.width,
            rgba.height,
        )
    logger.debug("Decoded source %dx%d for %s", rgba.width, rgba.height, request.brand_name)
    return SourceAsset(image=rgba, request=request, byte_size=len(data))
