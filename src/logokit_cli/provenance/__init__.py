from __future__ import annotations

from .bundle import AssembledPackage, PackageAssembler, archive_path
from .manifest import Manifest, canonical_identities, create_manifest

__all__ = [
    "AssembledPackage",
    "PackageAssembler",
    "archive_path",
    "Manifest",
    "canonical_identities",
    "create_manifest",
]
