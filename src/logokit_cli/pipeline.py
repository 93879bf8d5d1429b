"""Complete asset package generation.

One call decodes the source once, runs the color, size and vector branches
concurrently, uploads every artifact as soon as it exists, then zips the
survivors and uploads the archive. Only ``FatalError`` escapes; every other
problem ends up in the manifest.
"""

from __future__ import annotations

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Optional, Union

from .config import LogoKitConfig
from .errors import DependencyError, FatalError, PartialFailure, StorageError
from .gen.color import ColorVariantGenerator, encode_png
from .gen.sizes import SizeVariantGenerator
from .gen.source import decode_source
from .gen.types import (
    ArtifactResult,
    ArtifactStatus,
    AssetPackage,
    SourceAsset,
    VectorArtifact,
    color_identity,
    size_identity,
    vector_identity,
)
from .gen.vector import VectorConverter
from .provenance.bundle import PackageAssembler
from .provenance.manifest import canonical_identities
from .schema import COLOR_ORDER, ColorTag, GenerationRequest, SizeCategory, VectorFormat
from .storage.base import StorageUploader
from .storage.upload import BoundedUploader, archive_key, content_key

logger = logging.getLogger(__name__)

SVG_ID = vector_identity(VectorFormat.svg)
DERIVED_VECTOR_IDS = (vector_identity(VectorFormat.pdf), vector_identity(VectorFormat.eps))


@dataclass(frozen=True)
class _Collected:
    result: ArtifactResult
    data: Optional[bytes] = None


class ResultCollector:
    """Append-only, lock-guarded store shared by all branch tasks of one call."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._items: dict[str, _Collected] = {}
        self._converted: set[str] = set()

    async def add(self, result: ArtifactResult, data: Optional[bytes] = None) -> None:
        async with self._lock:
            if result.identity in self._items:
                logger.warning("Ignoring duplicate result for %s", result.identity)
                return
            self._items[result.identity] = _Collected(result, data if result.ok else None)

    def mark_converted(self, identity: str) -> None:
        """Record that an artifact was produced, before its upload settles."""
        self._converted.add(identity)

    def converted(self, identity: str) -> bool:
        return identity in self._converted

    def get(self, identity: str) -> Optional[ArtifactResult]:
        item = self._items.get(identity)
        return item.result if item else None

    def results(self) -> list[ArtifactResult]:
        return [item.result for item in self._items.values()]

    def buffers(self) -> dict[str, bytes]:
        return {k: v.data for k, v in self._items.items() if v.data is not None}


@dataclass
class _CallContext:
    source: SourceAsset
    collector: ResultCollector
    uploader: BoundedUploader
    executor: ThreadPoolExecutor
    key_prefix: str

    async def run(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor, partial(func, *args))


class AssetGenerationOrchestrator:
    def __init__(
        self,
        uploader: StorageUploader,
        config: Optional[LogoKitConfig] = None,
        color_generator: Optional[ColorVariantGenerator] = None,
        size_generator: Optional[SizeVariantGenerator] = None,
        vector_converter: Optional[VectorConverter] = None,
        assembler: Optional[PackageAssembler] = None,
        max_workers: Optional[int] = None,
    ):
        self.uploader = uploader
        self.config = config or LogoKitConfig()
        self.color_generator = color_generator or ColorVariantGenerator()
        self.size_generator = size_generator or SizeVariantGenerator()
        self.vector_converter = vector_converter or VectorConverter(self.config.vector)
        self.assembler = assembler or PackageAssembler()
        self.max_workers = max_workers

    async def generate_complete_package(
        self,
        source: Union[bytes, SourceAsset],
        metadata: GenerationRequest,
        timeout: Optional[float] = None,
    ) -> AssetPackage:
        """Build, upload and package every derived asset for one source logo.

        Args:
            source: encoded image bytes or an already decoded SourceAsset
            metadata: the request the source was generated for
            timeout: deadline in seconds for the whole call (config default if None)

        Returns:
            AssetPackage with a manifest entry for every attempted artifact

        Raises:
            FatalError: the source is invalid, or no artifact succeeded
        """
        timeout = self.config.pipeline.timeout_sec if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        started = time.monotonic()
        logger.info("Generating package for %s (timeout %gs)", metadata.brand_name, timeout)

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="logokit")
        try:
            asset = await self._decode(source, metadata, executor, deadline)
            ctx = _CallContext(
                source=asset,
                collector=ResultCollector(),
                uploader=BoundedUploader(
                    self.uploader,
                    max_in_flight=self.config.pipeline.upload_concurrency,
                    retries=self.config.pipeline.upload_retries,
                    executor=executor,
                ),
                executor=executor,
                key_prefix=self.config.pipeline.key_prefix,
            )

            timed_out = await self._fan_out(ctx, deadline)
            results = self._complete_results(ctx.collector, timed_out, timeout)

            if not any(r.ok for r in results):
                logger.error("Every artifact failed for %s", metadata.brand_name)
                raise FatalError("every artifact failed; nothing to package")

            package = await self._package(ctx, metadata, results)
            if timed_out:
                package.warnings.append(f"deadline of {timeout:g}s exceeded; unfinished artifacts marked failed")
            logger.info(
                "Package for %s ready in %.2fs: %d ok, %d failed, %d skipped",
                metadata.brand_name,
                time.monotonic() - started,
                sum(1 for r in package.manifest if r.status == ArtifactStatus.ok),
                sum(1 for r in package.manifest if r.status == ArtifactStatus.failed),
                sum(1 for r in package.manifest if r.status == ArtifactStatus.skipped),
            )
            return package
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    async def _decode(
        self,
        source: Union[bytes, SourceAsset],
        metadata: GenerationRequest,
        executor: ThreadPoolExecutor,
        deadline: float,
    ) -> SourceAsset:
        if isinstance(source, SourceAsset):
            if source.image.mode != "RGBA":
                raise FatalError(f"source asset must be RGBA, got {source.image.mode}")
            return source
        loop = asyncio.get_running_loop()
        remaining = max(0.0, deadline - loop.time())
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(
                    executor, partial(decode_source, source, metadata, self.config.source)
                ),
                timeout=remaining,
            )
        except asyncio.TimeoutError:
            raise FatalError("source decode did not finish before the deadline") from None

    async def _fan_out(self, ctx: _CallContext, deadline: float) -> bool:
        """Run the three branches until done or the deadline; True if the deadline hit."""
        loop = asyncio.get_running_loop()
        branches = {
            asyncio.create_task(self._color_branch(ctx), name="color"),
            asyncio.create_task(self._size_branch(ctx), name="size"),
            asyncio.create_task(self._vector_branch(ctx), name="vector"),
        }
        done, pending = await asyncio.wait(branches, timeout=max(0.0, deadline - loop.time()))

        for task in pending:
            logger.warning("Branch %s still running at deadline, cancelling", task.get_name())
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            exc = task.exception()
            if exc is not None:
                logger.error("Branch %s crashed: %s", task.get_name(), exc, exc_info=exc)
        return bool(pending)

    def _complete_results(
        self,
        collector: ResultCollector,
        timed_out: bool,
        timeout: float,
    ) -> list[ArtifactResult]:
        """Give every expected artifact exactly one result, filling unfinished ones."""
        # PDF and EPS are attempted as soon as the SVG exists, even if its upload never finished.
        svg = collector.get(SVG_ID)
        svg_converted = collector.converted(SVG_ID) or (svg is not None and svg.ok)
        results = []
        for identity in canonical_identities():
            existing = collector.get(identity)
            if existing is not None:
                results.append(existing)
                continue
            if identity in DERIVED_VECTOR_IDS and not svg_converted:
                error = str(DependencyError("requires svg, which did not succeed", identity))
                results.append(ArtifactResult(identity, ArtifactStatus.skipped, error=error))
            elif timed_out:
                results.append(
                    ArtifactResult(
                        identity,
                        ArtifactStatus.failed,
                        error=f"{identity}: deadline of {timeout:g}s exceeded",
                    )
                )
            else:
                results.append(
                    ArtifactResult(identity, ArtifactStatus.failed, error=f"{identity}: not produced")
                )
        return results

    async def _publish(self, ctx: _CallContext, identity: str, data: bytes, ext: str) -> None:
        key = content_key(ctx.key_prefix, ctx.source.request, identity, data, ext)
        try:
            url = await ctx.uploader.upload(data, key=key, ext=ext, identity=identity)
        except StorageError as e:
            logger.warning("Upload failed: %s", e)
            await ctx.collector.add(ArtifactResult(identity, ArtifactStatus.failed, error=str(e)))
            return
        await ctx.collector.add(ArtifactResult(identity, ArtifactStatus.ok, url=url), data)

    async def _guarded(self, ctx: _CallContext, identity: str, work: Callable[[], Any]) -> None:
        """Run one artifact's work; any failure is recorded against that artifact only."""
        try:
            await work()
        except PartialFailure as e:
            logger.warning("Artifact failed: %s", e)
            await ctx.collector.add(ArtifactResult(identity, ArtifactStatus.failed, error=str(e)))
        except Exception as e:
            logger.exception("Unexpected error producing %s", identity)
            await ctx.collector.add(
                ArtifactResult(identity, ArtifactStatus.failed, error=f"{identity}: {e}")
            )

    async def _color_unit(self, ctx: _CallContext, tag: ColorTag) -> None:
        variant = await ctx.run(self.color_generator.render, ctx.source, tag)
        await self._publish(ctx, variant.identity, variant.data, "png")

    async def _size_unit(self, ctx: _CallContext, category: SizeCategory, dim: int) -> None:
        variant = await ctx.run(self.size_generator.render, ctx.source, category, dim)
        await self._publish(ctx, variant.identity, variant.data, "png")

    async def _color_branch(self, ctx: _CallContext) -> None:
        async with asyncio.TaskGroup() as tg:
            for tag in COLOR_ORDER:
                tg.create_task(
                    self._guarded(ctx, color_identity(tag), partial(self._color_unit, ctx, tag))
                )

    async def _size_branch(self, ctx: _CallContext) -> None:
        async with asyncio.TaskGroup() as tg:
            for category, dim in self.size_generator.matrix():
                tg.create_task(
                    self._guarded(
                        ctx,
                        size_identity(category, dim),
                        partial(self._size_unit, ctx, category, dim),
                    )
                )

    async def _settle_vector(self, ctx: _CallContext, artifact: VectorArtifact) -> None:
        if artifact.ok:
            await self._publish(ctx, artifact.identity, artifact.data, artifact.format.value)
        else:
            await ctx.collector.add(
                ArtifactResult(artifact.identity, artifact.status, error=artifact.failure_reason)
            )

    async def _vector_branch(self, ctx: _CallContext) -> None:
        png = await ctx.run(encode_png, ctx.source.image)
        async with asyncio.TaskGroup() as tg:

            async def on_artifact(artifact: VectorArtifact) -> None:
                if artifact.ok:
                    ctx.collector.mark_converted(artifact.identity)
                tg.create_task(
                    self._guarded(ctx, artifact.identity, partial(self._settle_vector, ctx, artifact))
                )

            await self.vector_converter.convert(png, on_artifact=on_artifact)

    async def _package(
        self,
        ctx: _CallContext,
        metadata: GenerationRequest,
        results: list[ArtifactResult],
    ) -> AssetPackage:
        assembled = await ctx.run(
            self.assembler.assemble, metadata, results, ctx.collector.buffers()
        )
        package = build_asset_package(metadata, assembled.manifest.entries)
        package.manifest_info = assembled.manifest
        package.archive_entries = assembled.entries

        key = archive_key(ctx.key_prefix, metadata)
        try:
            package.zip_url = await ctx.uploader.upload(
                assembled.archive, key=key, ext="zip", identity="archive"
            )
        except StorageError as e:
            logger.error("Archive upload failed: %s", e)
            package.warnings.append(str(e))
        return package


def build_asset_package(request: GenerationRequest, manifest: list[ArtifactResult]) -> AssetPackage:
    by_id = {r.identity: r for r in manifest}

    def url_of(identity: str) -> Optional[str]:
        r = by_id.get(identity)
        return r.url if r is not None and r.ok else None

    sizes: dict[str, list[str]] = {}
    for category, dim in SizeVariantGenerator().matrix():
        urls = sizes.setdefault(category.value, [])
        url = url_of(size_identity(category, dim))
        if url:
            urls.append(url)

    return AssetPackage(
        brand_name=request.brand_name,
        transparent_png=url_of(color_identity(ColorTag.transparent)),
        white_background_png=url_of(color_identity(ColorTag.white)),
        black_background_png=url_of(color_identity(ColorTag.black)),
        svg=url_of(vector_identity(VectorFormat.svg)),
        pdf=url_of(vector_identity(VectorFormat.pdf)),
        eps=url_of(vector_identity(VectorFormat.eps)),
        sizes=sizes,
        manifest=list(manifest),
    )


def generate_complete_package(
    source: Union[bytes, SourceAsset],
    metadata: GenerationRequest,
    uploader: StorageUploader,
    config: Optional[LogoKitConfig] = None,
    timeout: Optional[float] = None,
) -> AssetPackage:
    """Blocking entry point for callers without an event loop."""
    orchestrator = AssetGenerationOrchestrator(uploader, config)
    return asyncio.run(orchestrator.generate_complete_package(source, metadata, timeout))
