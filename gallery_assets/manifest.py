"""JSON manifest describing a run's sources and their variants.

The page generators read ``images[*].thumbnail.path`` / ``fullSize.path``
(relative to the asset root) and the sizes, so field names here are a
contract and stay camelCase.
"""
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from .io import ensure_dir
from .scanner import SourceImage
from .transcode import DerivedVariant
from .utils import posix_relative, safe_remove, to_kb


class ManifestWriteError(OSError):
    pass


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _variant_entry(root: Path, variant: Optional[DerivedVariant]) -> Optional[Dict[str, Any]]:
    if variant is None or not variant.success:
        return None
    return {
        "path": posix_relative(variant.path, root),
        "size": variant.size,
        "sizeKB": variant.size_kb,
    }


@dataclass
class Manifest:
    generated_at: str
    entries: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total_images(self) -> int:
        return len(self.entries)

    @property
    def thumbnails(self) -> int:
        return sum(1 for e in self.entries if e["thumbnail"] is not None)

    @property
    def full_size(self) -> int:
        return sum(1 for e in self.entries if e["fullSize"] is not None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generatedAt": self.generated_at,
            "totalImages": self.total_images,
            "thumbnails": self.thumbnails,
            "fullSize": self.full_size,
            "images": self.entries,
        }


def build_manifest(
    root: Path,
    sources: Sequence[SourceImage],
    thumb_results: Sequence[Optional[DerivedVariant]],
    full_results: Sequence[Optional[DerivedVariant]],
    generated_at: Optional[datetime] = None,
) -> Manifest:
    """Zip sources with their variant outcomes in scan order."""
    if not len(sources) == len(thumb_results) == len(full_results):
        raise ValueError(
            f"mismatched result lists: {len(sources)} sources, "
            f"{len(thumb_results)} thumbnails, {len(full_results)} full"
        )
    stamp = (generated_at or datetime.now(timezone.utc)).isoformat().replace("+00:00", "Z")
    entries = []
    for source, thumb, full in zip(sources, thumb_results, full_results):
        entries.append(
            {
                "original": {
                    "name": source.name,
                    "path": source.relative_path,
                    "size": source.size,
                    "sizeKB": to_kb(source.size),
                    "mediaType": source.media_type,
                    "modified": _iso(source.mtime),
                },
                "thumbnail": _variant_entry(root, thumb),
                "fullSize": _variant_entry(root, full),
            }
        )
    return Manifest(generated_at=stamp, entries=entries)


def write_manifest(path: Path, manifest: Manifest) -> Path:
    """Replace ``path`` with the serialised manifest.

    Written to a sibling temp file first so readers never see half a file.
    """
    path = Path(path)
    tmp = path.with_name(path.name + ".tmp")
    text = json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False) + "\n"
    try:
        ensure_dir(path.parent)
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    except OSError as exc:
        if tmp.exists():
            safe_remove(tmp)
        raise ManifestWriteError(f"Could not write manifest {path}: {exc}") from exc
    logger.info("Manifest written: {} ({} images)", path, manifest.total_images)
    return path


def load_manifest(path: Path) -> Dict[str, Any]:
    return json.loads(Path(path).read_text(encoding="utf-8"))
