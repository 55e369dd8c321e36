"""End-to-end run: reconcile duplicates, scan, transcode, write the manifest."""
from __future__ import annotations

import concurrent.futures
import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger
from tqdm import tqdm

from .config import AppConfig
from .io import CodecUnavailableError, probe_codec
from .manifest import ManifestWriteError, build_manifest, write_manifest
from .naming import ArtifactKind
from .reconcile import ReconcileResult, reconcile
from .scanner import SourceImage, derived_collisions, scan_sources
from .transcode import DerivedVariant, Transcoder
from .utils import format_bytes


class PipelineState(str, Enum):
    IDLE = "idle"
    RECONCILING = "reconciling"
    SCANNING = "scanning"
    TRANSCODING = "transcoding"
    MANIFEST_WRITING = "manifest_writing"
    DONE = "done"
    FAILED = "failed"


_ORDER = [
    PipelineState.IDLE,
    PipelineState.RECONCILING,
    PipelineState.SCANNING,
    PipelineState.TRANSCODING,
    PipelineState.MANIFEST_WRITING,
    PipelineState.DONE,
]


@dataclass
class VariantStats:
    attempted: int = 0
    succeeded: int = 0
    cached: int = 0
    failed: int = 0
    bytes: int = 0


def variant_stats(results: Sequence[DerivedVariant]) -> VariantStats:
    stats = VariantStats(attempted=len(results))
    for r in results:
        if r.success:
            stats.succeeded += 1
            stats.bytes += r.size
            if r.cached:
                stats.cached += 1
        else:
            stats.failed += 1
    return stats


@dataclass
class PipelineResult:
    state: PipelineState = PipelineState.IDLE
    reason: Optional[str] = None
    history: List[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])
    reconcile: ReconcileResult = field(default_factory=ReconcileResult)
    discovered: int = 0
    sources: List[SourceImage] = field(default_factory=list)
    thumbnails: List[DerivedVariant] = field(default_factory=list)
    fulls: List[DerivedVariant] = field(default_factory=list)
    interrupted: bool = False
    manifest_path: Optional[Path] = None

    @property
    def ok(self) -> bool:
        return self.state is PipelineState.DONE

    @property
    def transcoded(self) -> int:
        """Variants freshly encoded during this run (cache hits excluded)."""
        return sum(1 for r in [*self.thumbnails, *self.fulls] if r.success and not r.cached)

    def summary_lines(self) -> List[str]:
        thumbs = variant_stats(self.thumbnails)
        fulls = variant_stats(self.fulls)
        lines = [
            f"Sources: {self.discovered} discovered, {len(self.sources)} processed",
            f"Thumbnails: {thumbs.succeeded}/{thumbs.attempted} ok "
            f"({thumbs.cached} up to date, {thumbs.failed} failed), {format_bytes(thumbs.bytes)}",
            f"Full size: {fulls.succeeded}/{fulls.attempted} ok "
            f"({fulls.cached} up to date, {fulls.failed} failed), {format_bytes(fulls.bytes)}",
            f"Duplicates: {self.reconcile.deleted}/{self.reconcile.found} removed, "
            f"{format_bytes(self.reconcile.bytes_reclaimed)} reclaimed",
            f"Derived total: {format_bytes(thumbs.bytes + fulls.bytes)}",
        ]
        if self.interrupted:
            lines.append("Run was interrupted before every source was processed")
        if self.manifest_path is not None:
            lines.append(f"Manifest: {self.manifest_path}")
        if self.ok:
            lines.append("Result: done")
        else:
            lines.append(f"Result: {self.state.value}" + (f" ({self.reason})" if self.reason else ""))
        return lines


class Pipeline:
    """Runs one build over the configured asset root.

    Per-image failures are recorded in the result; only a missing root, a
    missing encoder or a manifest that cannot be written end the run in
    ``FAILED``. Setting ``stop_event`` stops new images from being dispatched;
    images already in progress finish and the manifest covers what completed.
    """

    def __init__(
        self,
        config: AppConfig,
        transcoder: Optional[Transcoder] = None,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        self.config = config
        self.transcoder = transcoder or Transcoder(config.codec)
        self.stop_event = stop_event or threading.Event()

    def _advance(self, result: PipelineResult, state: PipelineState) -> None:
        if _ORDER.index(state) != _ORDER.index(result.state) + 1:
            raise RuntimeError(f"Illegal pipeline transition {result.state.value} -> {state.value}")
        logger.debug("Pipeline state: {} -> {}", result.state.value, state.value)
        result.state = state
        result.history.append(state)

    def _fail(self, result: PipelineResult, reason: str) -> PipelineResult:
        logger.error(reason)
        result.state = PipelineState.FAILED
        result.reason = reason
        result.history.append(PipelineState.FAILED)
        return result

    def check_preconditions(self) -> Optional[str]:
        root = self.config.root
        if not root.is_dir():
            return f"Asset root does not exist or is not a directory: {root}"
        try:
            version = probe_codec(self.config.codec)
        except CodecUnavailableError as exc:
            return str(exc)
        logger.debug("Using {} {}", self.config.codec.binary, version)
        return None

    def _process(self, source: SourceImage) -> Tuple[DerivedVariant, DerivedVariant]:
        # Both variants of one source stay in one worker, thumbnail first.
        thumb = self.transcoder.produce(source, self.config.thumbnail, ArtifactKind.THUMBNAIL)
        full = self.transcoder.produce(source, self.config.full, ArtifactKind.FULL)
        return thumb, full

    def _failed(self, source: SourceImage, reason: str) -> Tuple[DerivedVariant, DerivedVariant]:
        return (
            DerivedVariant(
                kind=ArtifactKind.THUMBNAIL,
                path=self.transcoder.target_path(source, self.config.thumbnail),
                success=False,
                error=reason,
            ),
            DerivedVariant(
                kind=ArtifactKind.FULL,
                path=self.transcoder.target_path(source, self.config.full),
                success=False,
                error=reason,
            ),
        )

    def _collect(self, future: concurrent.futures.Future, source: SourceImage) -> Tuple[DerivedVariant, DerivedVariant]:
        try:
            return future.result()
        except Exception as exc:
            logger.error("Processing {} failed: {}", source.relative_path, exc)
            return self._failed(source, f"unexpected error: {exc}")

    def _transcode_all(self, sources: Sequence[SourceImage], result: PipelineResult) -> None:
        workers = self.config.run.workers
        pending = iter(enumerate(sources))
        in_flight: Dict[concurrent.futures.Future, int] = {}
        outcomes: Dict[int, Tuple[DerivedVariant, DerivedVariant]] = {}
        collisions = derived_collisions(list(sources), self.config)

        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor, tqdm(
            total=len(sources), desc="images", unit="img", leave=False
        ) as bar:

            def dispatch() -> None:
                while len(in_flight) < workers and not self.stop_event.is_set():
                    item = next(pending, None)
                    if item is None:
                        return
                    idx, source = item
                    owner = collisions.get(idx)
                    if owner is not None:
                        # Never encoded: the target belongs to an earlier source.
                        outcomes[idx] = self._failed(source, f"derived name collides with {owner.relative_path}")
                        bar.update(1)
                        continue
                    in_flight[executor.submit(self._process, source)] = idx

            try:
                dispatch()
                while in_flight:
                    done, _ = concurrent.futures.wait(in_flight, return_when=concurrent.futures.FIRST_COMPLETED)
                    for future in done:
                        idx = in_flight.pop(future)
                        outcomes[idx] = self._collect(future, sources[idx])
                        bar.update(1)
                    dispatch()
            except KeyboardInterrupt:
                logger.warning("Interrupted; finishing {} image(s) already in progress", len(in_flight))
                self.stop_event.set()
                for future, idx in list(in_flight.items()):
                    outcomes[idx] = self._collect(future, sources[idx])
                in_flight.clear()

        for idx in sorted(outcomes):
            thumb, full = outcomes[idx]
            result.sources.append(sources[idx])
            result.thumbnails.append(thumb)
            result.fulls.append(full)
        if len(outcomes) < len(sources):
            result.interrupted = True
            logger.warning("Stopped early: {} of {} image(s) processed", len(outcomes), len(sources))

    def run(self) -> PipelineResult:
        result = PipelineResult()
        reason = self.check_preconditions()
        if reason:
            return self._fail(result, reason)
        root = self.config.root

        self._advance(result, PipelineState.RECONCILING)
        result.reconcile = reconcile(root, self.config)

        self._advance(result, PipelineState.SCANNING)
        sources = scan_sources(root, self.config)
        result.discovered = len(sources)
        logger.info("Found {} source image(s) under {}", len(sources), root)

        self._advance(result, PipelineState.TRANSCODING)
        if sources:
            self._transcode_all(sources, result)

        self._advance(result, PipelineState.MANIFEST_WRITING)
        manifest = build_manifest(root, result.sources, result.thumbnails, result.fulls)
        try:
            result.manifest_path = write_manifest(self.config.manifest_path, manifest)
        except ManifestWriteError as exc:
            return self._fail(result, str(exc))

        self._advance(result, PipelineState.DONE)
        return result


def run_build(config: AppConfig, stop_event: Optional[threading.Event] = None) -> PipelineResult:
    return Pipeline(config, stop_event=stop_event).run()
