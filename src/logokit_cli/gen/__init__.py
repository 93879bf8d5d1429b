from .color import ColorVariantGenerator
from .sizes import SizeVariantGenerator, iter_size_matrix
from .source import decode_source, load_source_bytes
from .types import (
    ArtifactResult,
    ArtifactStatus,
    AssetPackage,
    ColorVariant,
    SizeVariant,
    SourceAsset,
    VectorArtifact,
)
from .vector import VectorConverter

__all__ = [
    "ColorVariantGenerator",
    "SizeVariantGenerator",
    "iter_size_matrix",
    "decode_source",
    "load_source_bytes",
    "ArtifactResult",
    "ArtifactStatus",
    "AssetPackage",
    "ColorVariant",
    "SizeVariant",
    "SourceAsset",
    "VectorArtifact",
    "VectorConverter",
]
