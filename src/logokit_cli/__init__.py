from __future__ import annotations

from .errors import FatalError
from .pipeline import AssetGenerationOrchestrator, generate_complete_package
from .schema import GenerationRequest

__all__ = [
    "AssetGenerationOrchestrator",
    "FatalError",
    "GenerationRequest",
    "generate_complete_package",
]
