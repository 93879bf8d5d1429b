from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..schema import ColorTag, GenerationRequest, SizeCategory, VectorFormat

if TYPE_CHECKING:
    from PIL.Image import Image as PILImage

    from ..provenance.manifest import Manifest


class ArtifactStatus(str, Enum):
    ok = "ok"
    failed = "failed"
    skipped = "skipped"


@dataclass(frozen=True)
class SourceAsset:
    """Decoded RGBA source plus the request it was generated for.

    ``image`` must not be mutated; generators work on copies.
    """

    image: "PILImage"
    request: GenerationRequest
    byte_size: int

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def is_square(self) -> bool:
        return self.image.width == self.image.height


@dataclass(frozen=True)
class ColorVariant:
    tag: ColorTag
    data: bytes

    @property
    def identity(self) -> str:
        return color_identity(self.tag)


@dataclass(frozen=True)
class SizeVariant:
    category: SizeCategory
    dimension: int
    data: bytes

    @property
    def identity(self) -> str:
        return size_identity(self.category, self.dimension)


@dataclass(frozen=True)
class VectorArtifact:
    format: VectorFormat
    data: Optional[bytes] = None
    failure_reason: Optional[str] = None
    status: ArtifactStatus = ArtifactStatus.ok

    @property
    def identity(self) -> str:
        return vector_identity(self.format)

    @property
    def ok(self) -> bool:
        return self.status == ArtifactStatus.ok and self.data is not None


@dataclass(frozen=True)
class ArtifactResult:
    identity: str
    status: ArtifactStatus
    url: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ArtifactStatus.ok

    def to_dict(self) -> dict:
        payload: dict = {"identity": self.identity, "status": self.status.value}
        if self.url is not None:
            payload["url"] = self.url
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass
class AssetPackage:
    brand_name: str
    transparent_png: Optional[str] = None
    white_background_png: Optional[str] = None
    black_background_png: Optional[str] = None
    svg: Optional[str] = None
    pdf: Optional[str] = None
    eps: Optional[str] = None
    sizes: dict[str, list[str]] = field(default_factory=dict)
    zip_url: Optional[str] = None
    manifest: list[ArtifactResult] = field(default_factory=list)
    manifest_info: Optional["Manifest"] = None
    archive_entries: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> list[ArtifactResult]:
        return [r for r in self.manifest if r.ok]

    @property
    def is_near_empty(self) -> bool:
        """True when a caller should treat the package like an outright failure."""
        return len(self.succeeded) <= 1

    def to_dict(self) -> dict:
        payload = {
            "brand_name": self.brand_name,
            "transparent_png": self.transparent_png,
            "white_background_png": self.white_background_png,
            "black_background_png": self.black_background_png,
            "svg": self.svg,
            "pdf": self.pdf,
            "eps": self.eps,
            "sizes": self.sizes,
            "zip_url": self.zip_url,
            "manifest": [r.to_dict() for r in self.manifest],
            "warnings": self.warnings,
        }
        if self.manifest_info is not None:
            info = self.manifest_info.to_dict()
            payload.update(
                manifest_version=info["version"],
                pipeline_version=info["pipeline_version"],
                build_timestamp=info["build_timestamp"],
                seed=info["seed"],
                counts=info["counts"],
            )
        return payload


def color_identity(tag: ColorTag) -> str:
    return f"color/{tag.value}"


def size_identity(category: SizeCategory, dimension: int) -> str:
    return f"size/{category.value}/{dimension}x{dimension}"


def vector_identity(fmt: VectorFormat) -> str:
    return f"vector/{fmt.value}"
