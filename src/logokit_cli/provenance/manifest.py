from __future__ import annotations

import json
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..gen.sizes import iter_size_matrix
from ..gen.types import ArtifactResult, ArtifactStatus, color_identity, size_identity, vector_identity
from ..reproducibility import get_pipeline_version
from ..schema import COLOR_ORDER, VECTOR_ORDER, GenerationRequest

MANIFEST_VERSION = "1.0"


def canonical_identities() -> list[str]:
    """Every artifact the pipeline attempts, in manifest and archive order."""
    ids = [color_identity(tag) for tag in COLOR_ORDER]
    ids.extend(size_identity(cat, dim) for cat, dim in iter_size_matrix())
    ids.extend(vector_identity(fmt) for fmt in VECTOR_ORDER)
    return ids


def order_results(results: Iterable[ArtifactResult]) -> list[ArtifactResult]:
    """Sort into canonical order; unknown identities go last, by name."""
    rank = {identity: i for i, identity in enumerate(canonical_identities())}
    return sorted(results, key=lambda r: (rank.get(r.identity, len(rank)), r.identity))


@dataclass
class Manifest:
    version: str
    pipeline_version: str
    build_timestamp: str
    brand_name: str
    seed: Optional[int] = None
    entries: list[ArtifactResult] = field(default_factory=list)

    @property
    def counts(self) -> dict[str, int]:
        counter = Counter(e.status.value for e in self.entries)
        return {status.value: counter.get(status.value, 0) for status in ArtifactStatus}

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "pipeline_version": self.pipeline_version,
            "build_timestamp": self.build_timestamp,
            "brand_name": self.brand_name,
            "seed": self.seed,
            "counts": self.counts,
            "entries": [e.to_dict() for e in self.entries],
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


def create_manifest(request: GenerationRequest, results: Iterable[ArtifactResult]) -> Manifest:
    entries = order_results(results)
    seen: set[str] = set()
    for entry in entries:
        if entry.identity in seen:
            raise ValueError(f"duplicate manifest entry: {entry.identity}")
        seen.add(entry.identity)

    return Manifest(
        version=MANIFEST_VERSION,
        pipeline_version=get_pipeline_version(),
        build_timestamp=datetime.now(timezone.utc).isoformat(),
        brand_name=request.brand_name,
        seed=request.seed,
        entries=entries,
    )
