"""Produce thumbnail and full variants of a source image with cwebp."""
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import CodecConfig, VariantProfile
from .io import CodecError, encode_command, image_width, run_command
from .naming import ArtifactKind, derived_name
from .scanner import SourceImage
from .staleness import current_stat
from .utils import safe_remove, to_kb


@dataclass(frozen=True)
class DerivedVariant:
    kind: ArtifactKind
    path: Path
    size: int = 0
    success: bool = True
    error: Optional[str] = None
    cached: bool = False

    @property
    def size_kb(self) -> int:
        return to_kb(self.size)


def _tail(text: str, limit: int = 300) -> str:
    text = (text or "").strip()
    return text[-limit:]


class Transcoder:
    """Encodes one variant of one source per call.

    Holds only the immutable codec settings, so one instance can be shared by
    pool workers.
    """

    def __init__(self, codec: CodecConfig) -> None:
        self.codec = codec

    def target_path(self, source: SourceImage, profile: VariantProfile) -> Path:
        return source.path.with_name(derived_name(source.name, profile.suffix, self.codec.extension))

    def _resize_width(self, source: SourceImage, profile: VariantProfile) -> Optional[int]:
        if not profile.downscale_only:
            return profile.width
        width = image_width(source.path)
        if width is not None and width <= profile.width:
            return None
        return profile.width

    def produce(self, source: SourceImage, profile: VariantProfile, kind: ArtifactKind) -> DerivedVariant:
        target = self.target_path(source, profile)
        cached = current_stat(target, source.mtime)
        if cached is not None:
            size = cached.st_size
            logger.debug("Up to date: {} ({}KB)", target.name, to_kb(size))
            return DerivedVariant(kind=kind, path=target, size=size, cached=True)

        partial = target.with_name(target.name + ".part")
        cmd = encode_command(self.codec, source.path, partial, profile.quality, self._resize_width(source, profile))
        error: Optional[str] = None
        try:
            run_command(cmd, timeout=self.codec.timeout)
        except subprocess.TimeoutExpired:
            error = f"encoder timed out after {self.codec.timeout:g}s"
        except FileNotFoundError:
            error = f"encoder '{self.codec.binary}' not found"
        except CodecError as exc:
            error = f"encoder failed: {_tail(str(exc))}"
        except OSError as exc:
            error = f"encoder could not run: {exc}"
        if error is None and not partial.exists():
            error = "encoder produced no output file"
        size = 0
        if error is None:
            try:
                size = partial.stat().st_size
                os.replace(partial, target)
            except OSError as exc:
                error = f"could not move output into place: {exc}"

        if error is not None:
            if partial.exists():
                safe_remove(partial)
            logger.error("Failed {} for {}: {}", kind.value, source.relative_path, error)
            return DerivedVariant(kind=kind, path=target, success=False, error=error)

        logger.info("{}: {} -> {} ({}KB)", kind.value, source.relative_path, target.name, to_kb(size))
        if to_kb(size) > profile.max_size_kb:
            logger.warning("{} is {}KB, above the {}KB budget", target.name, to_kb(size), profile.max_size_kb)
        return DerivedVariant(kind=kind, path=target, size=size)
