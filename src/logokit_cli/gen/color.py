from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING

from PIL import Image

from ..errors import PartialFailure
from ..schema import ColorTag
from .types import ColorVariant, SourceAsset, color_identity

if TYPE_CHECKING:
    from PIL.Image import Image as PILImage

logger = logging.getLogger(__name__)

BACKGROUND_COLORS: dict[ColorTag, tuple[int, int, int, int]] = {
    ColorTag.white: (255, 255, 255, 255),
    ColorTag.black: (0, 0, 0, 255),
}


def encode_png(img: "PILImage") -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG", optimize=False)
    return buf.getvalue()


class ColorVariantGenerator:
    """Renders the source over each supported background."""

    def render(self, source: SourceAsset, tag: ColorTag) -> ColorVariant:
        try:
            if tag == ColorTag.transparent:
                img = source.image
            else:
                canvas = Image.new("RGBA", source.image.size, BACKGROUND_COLORS[tag])
                img = Image.alpha_composite(canvas, source.image).convert("RGB")
            data = encode_png(img)
        except (OSError, ValueError, KeyError) as e:
            raise PartialFailure(f"composite failed: {e}", color_identity(tag)) from e
        logger.debug("Rendered %s variant (%d bytes)", tag.value, len(data))
        return ColorVariant(tag=tag, data=data)
