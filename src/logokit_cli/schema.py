from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class SizeCategory(str, Enum):
    favicon = "favicon"
    web = "web"
    social = "social"
    print = "print"


# Category order here is the archive and manifest order.
SIZE_TABLE: dict[SizeCategory, tuple[int, ...]] = {
    SizeCategory.favicon: (16, 32, 48, 64),
    SizeCategory.web: (192, 512),
    SizeCategory.social: (400, 800, 1080),
    SizeCategory.print: (1000, 2000, 3000),
}


class ColorTag(str, Enum):
    transparent = "transparent"
    white = "white"
    black = "black"


COLOR_ORDER: tuple[ColorTag, ...] = (ColorTag.transparent, ColorTag.white, ColorTag.black)


class VectorFormat(str, Enum):
    svg = "svg"
    pdf = "pdf"
    eps = "eps"


VECTOR_ORDER: tuple[VectorFormat, ...] = (VectorFormat.svg, VectorFormat.pdf, VectorFormat.eps)


class GenerationRequest(BaseModel):
    """Who asked for the package and what the source logo was made from."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    brand_name: str = Field(min_length=1, max_length=120)
    industry: Optional[str] = None
    style: Optional[str] = None
    prompt: Optional[str] = None
    seed: Optional[int] = None
    user_id: Optional[str] = None
    session_id: Optional[str] = None

    @field_validator("brand_name")
    @classmethod
    def strip_brand_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("brand_name cannot be blank")
        return v

    @property
    def slug(self) -> str:
        slug = "".join(ch.lower() if ch.isalnum() else "_" for ch in self.brand_name)
        slug = "_".join(s for s in slug.split("_") if s)[:64]
        return slug or "brand"

    @property
    def file_stem(self) -> str:
        stem = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in self.brand_name)
        return stem.strip("_") or "Logo"


class RequestError(Exception):
    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


def load_request(path: Path) -> GenerationRequest:
    """Load a generation request from a YAML file."""
    if not path.exists():
        raise RequestError("request file not found", path=path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise RequestError(f"Failed to parse YAML: {e}", path=path) from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise RequestError("YAML root must be a mapping", path=path)
    try:
        return GenerationRequest.model_validate(data)
    except ValidationError as e:
        raise RequestError(f"Invalid request: {e}", path=path) from e
