from __future__ import annotations

import logging
from typing import Iterator

from PIL import Image

from ..errors import PartialFailure
from ..schema import SIZE_TABLE, SizeCategory
from .color import encode_png
from .types import SizeVariant, SourceAsset, size_identity

logger = logging.getLogger(__name__)

TRANSPARENT = (0, 0, 0, 0)


def iter_size_matrix() -> Iterator[tuple[SizeCategory, int]]:
    """Yield (category, dimension) pairs in archive order: category order, then ascending size."""
    for category in SizeCategory:
        for dim in sorted(SIZE_TABLE[category]):
            yield category, dim


def contain_size(width: int, height: int, box: int) -> tuple[int, int]:
    """Largest (w, h) with the source aspect ratio that fits in a box x box square."""
    scale = min(box / width, box / height)
    return max(1, min(box, round(width * scale))), max(1, min(box, round(height * scale)))


class SizeVariantGenerator:
    def matrix(self) -> list[tuple[SizeCategory, int]]:
        return list(iter_size_matrix())

    def render(self, source: SourceAsset, category: SizeCategory, dimension: int) -> SizeVariant:
        identity = size_identity(category, dimension)
        if dimension < 1:
            raise PartialFailure(f"invalid dimension {dimension}", identity)
        try:
            w, h = contain_size(source.width, source.height, dimension)
            resized = source.image.resize((w, h), Image.Resampling.LANCZOS)
            canvas = Image.new("RGBA", (dimension, dimension), TRANSPARENT)
            canvas.paste(resized, ((dimension - w) // 2, (dimension - h) // 2))
            data = encode_png(canvas)
        except (OSError, ValueError, MemoryError) as e:
            raise PartialFailure(f"resize failed: {e}", identity) from e
        logger.debug("Rendered %s (%d bytes)", identity, len(data))
        return SizeVariant(category=category, dimension=dimension, data=data)
