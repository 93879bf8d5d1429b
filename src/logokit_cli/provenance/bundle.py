from __future__ import annotations

import io
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping, Optional

from jinja2 import Environment, FileSystemLoader, PackageLoader, StrictUndefined

from ..gen.types import ArtifactResult
from ..schema import GenerationRequest
from .manifest import Manifest, canonical_identities, create_manifest

logger = logging.getLogger(__name__)

README_NAME = "README.txt"
README_TEMPLATE = "README.txt.j2"

# Fixed timestamp so identical inputs give byte-identical archives.
ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def archive_path(identity: str) -> str:
    """Map an artifact identity to its path inside the archive."""
    kind, _, rest = identity.partition("/")
    if kind == "color":
        return f"Color_Variants/{rest}.png"
    if kind == "size":
        category, _, dims = rest.partition("/")
        return f"Size_Variants/{category}/logo_{dims}.png"
    if kind == "vector":
        return f"Vector_Formats/logo.{rest}"
    raise ValueError(f"unknown artifact identity: {identity}")


@dataclass
class AssembledPackage:
    archive: bytes
    entries: list[str]
    manifest: Manifest
    readme: str
    omitted: list[str] = field(default_factory=list)


def _create_template_env(template_dir: Optional[Path] = None) -> Environment:
    if template_dir:
        loader = FileSystemLoader(str(template_dir))
    else:
        loader = PackageLoader("logokit_cli", "templates")
    return Environment(
        loader=loader,
        undefined=StrictUndefined,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )


class PackageAssembler:
    """Lays out successful artifacts in a zip with a fixed entry order."""

    def __init__(self, template_dir: Optional[Path] = None):
        self.env = _create_template_env(template_dir)

    def layout(
        self,
        results: Iterable[ArtifactResult],
        buffers: Mapping[str, bytes],
    ) -> list[tuple[str, bytes]]:
        """Ordered (archive path, data) pairs for every successful artifact with a buffer."""
        ok = {r.identity for r in results if r.ok}
        entries = []
        for identity in canonical_identities():
            if identity in ok and identity in buffers:
                entries.append((archive_path(identity), buffers[identity]))
        return entries

    def render_readme(
        self,
        request: GenerationRequest,
        entries: list[tuple[str, bytes]],
        omitted: list[str],
    ) -> str:
        paths = [p for p, _ in entries]
        colors = [Path(p).stem for p in paths if p.startswith("Color_Variants/")]
        sizes: list[str] = []
        for p in paths:
            if p.startswith("Size_Variants/"):
                category = p.split("/")[1]
                if category not in sizes:
                    sizes.append(category)
        vectors = [Path(p).suffix.lstrip(".") for p in paths if p.startswith("Vector_Formats/")]
        tpl = self.env.get_template(README_TEMPLATE)
        return tpl.render(
            brand_name=request.brand_name,
            industry=request.industry,
            style=request.style,
            colors=colors,
            sizes=sizes,
            vectors=vectors,
            missing=omitted,
        ).strip() + "\n"

    def assemble(
        self,
        request: GenerationRequest,
        results: Iterable[ArtifactResult],
        buffers: Mapping[str, bytes],
    ) -> AssembledPackage:
        results = list(results)
        manifest = create_manifest(request, results)
        entries = self.layout(manifest.entries, buffers)
        included = {p for p, _ in entries}
        omitted = [
            r.identity for r in manifest.entries if archive_path(r.identity) not in included
        ]
        readme = self.render_readme(request, entries, omitted)

        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
            _write_entry(zf, README_NAME, readme.encode("utf-8"))
            for path, data in entries:
                _write_entry(zf, path, data)

        names = [README_NAME] + [p for p, _ in entries]
        logger.info(
            "Assembled package for %s: %d entries, %d omitted",
            request.brand_name,
            len(names),
            len(omitted),
        )
        return AssembledPackage(
            archive=buf.getvalue(),
            entries=names,
            manifest=manifest,
            readme=readme,
            omitted=omitted,
        )


def _write_entry(zf: zipfile.ZipFile, name: str, data: bytes) -> None:
    info = zipfile.ZipInfo(name, date_time=ZIP_DATE_TIME)
    info.compress_type = zipfile.ZIP_DEFLATED
    info.external_attr = 0o644 << 16
    zf.writestr(info, data)
