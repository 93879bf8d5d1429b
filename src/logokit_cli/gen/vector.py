"""Vector conversion through the external tool: raster -> SVG -> {PDF, EPS}."""

from __future__ import annotations

import asyncio
import logging
import tempfile
from pathlib import Path
from typing import Awaitable, Callable, Optional

from ..config import VectorConfig
from ..errors import AssetError, DependencyError, ToolError
from ..schema import VECTOR_ORDER, VectorFormat
from .inkscape import export_command, run_tool, trace_command
from .types import ArtifactStatus, VectorArtifact, vector_identity

logger = logging.getLogger(__name__)

ArtifactCallback = Callable[[VectorArtifact], Awaitable[None]]

WORKSPACE_PREFIX = "logokit-vec-"


class VectorConverter:
    """Drives the vector tool with one throwaway workspace per invocation.

    PDF and EPS are exported from the SVG produced in the first step and are
    never attempted when that step fails.
    """

    def __init__(self, config: Optional[VectorConfig] = None, workspace_root: Optional[Path] = None):
        self.config = config or VectorConfig()
        self.workspace_root = workspace_root

    async def _invoke(
        self,
        input_data: bytes,
        input_name: str,
        fmt: VectorFormat,
    ) -> bytes:
        identity = vector_identity(fmt)
        with tempfile.TemporaryDirectory(prefix=WORKSPACE_PREFIX, dir=self.workspace_root) as tmp:
            workspace = Path(tmp)
            src = workspace / input_name
            dst = workspace / f"logo.{fmt.value}"
            src.write_bytes(input_data)

            if fmt == VectorFormat.svg:
                cmd = trace_command(self.config.command, src, dst, simplify=self.config.simplify)
            else:
                cmd = export_command(self.config.command, src, dst, fmt)

            await run_tool(cmd, self.config.timeout_sec, identity)

            if not dst.exists() or dst.stat().st_size == 0:
                raise ToolError("tool exited cleanly but wrote no output", identity)
            return dst.read_bytes()

    async def _attempt(
        self,
        input_data: bytes,
        input_name: str,
        fmt: VectorFormat,
        on_artifact: Optional[ArtifactCallback],
    ) -> VectorArtifact:
        try:
            data = await self._invoke(input_data, input_name, fmt)
            artifact = VectorArtifact(format=fmt, data=data)
            logger.info("Converted %s (%d bytes)", vector_identity(fmt), len(data))
        except ToolError as e:
            logger.warning("Vector conversion failed: %s", e)
            artifact = VectorArtifact(
                format=fmt, failure_reason=str(e), status=ArtifactStatus.failed
            )
        if on_artifact is not None:
            await on_artifact(artifact)
        return artifact

    async def _skip(
        self,
        fmt: VectorFormat,
        reason: str,
        on_artifact: Optional[ArtifactCallback],
        dependency: bool = True,
    ) -> VectorArtifact:
        error = DependencyError if dependency else AssetError
        artifact = VectorArtifact(
            format=fmt,
            failure_reason=str(error(reason, vector_identity(fmt))),
            status=ArtifactStatus.skipped,
        )
        if on_artifact is not None:
            await on_artifact(artifact)
        return artifact

    async def convert(
        self,
        png_data: bytes,
        on_artifact: Optional[ArtifactCallback] = None,
    ) -> dict[VectorFormat, VectorArtifact]:
        """Run the dependency chain and report each artifact as it settles."""
        results: dict[VectorFormat, VectorArtifact] = {}

        if not self.config.enabled:
            for fmt in VECTOR_ORDER:
                results[fmt] = await self._skip(
                    fmt, "vector conversion disabled", on_artifact, dependency=False
                )
            return results

        svg = await self._attempt(png_data, "source.png", VectorFormat.svg, on_artifact)
        results[VectorFormat.svg] = svg

        derived = [f for f in VECTOR_ORDER if f != VectorFormat.svg]
        if not svg.ok:
            for fmt in derived:
                results[fmt] = await self._skip(fmt, "requires svg, which did not succeed", on_artifact)
            return results

        settled = await asyncio.gather(
            *(self._attempt(svg.data, "logo.svg", fmt, on_artifact) for fmt in derived)
        )
        for artifact in settled:
            results[artifact.format] = artifact
        return results
