"""Remove derived files produced by overlapping earlier runs.

A file such as ``sunset_thumb_thumb.webp`` or ``sunset_thumb_full.webp`` comes
from a run that fed a derived file back in as a source. The pass works on
names only, so a source a user literally named with a repeated token is
removed too; use ``dry_run`` to review the list first.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from loguru import logger

from .config import AppConfig
from .naming import is_duplicate
from .scanner import scan
from .utils import format_bytes, safe_remove, to_kb


@dataclass(frozen=True)
class DuplicateArtifact:
    relative_path: str
    path: Path
    size: int


@dataclass
class ReconcileResult:
    found: int = 0
    deleted: int = 0
    bytes_reclaimed: int = 0
    failed: List[Path] = field(default_factory=list)
    artifacts: List[DuplicateArtifact] = field(default_factory=list)


def find_duplicates(root: Path, config: AppConfig) -> List[DuplicateArtifact]:
    duplicates: List[DuplicateArtifact] = []
    for record in scan(root, config.exclude):
        if record.is_dir:
            continue
        if is_duplicate(record.name, config.thumbnail.suffix, config.full.suffix):
            duplicates.append(DuplicateArtifact(relative_path=record.relative_path, path=record.path, size=record.size))
    return duplicates


def reconcile(root: Path, config: AppConfig, dry_run: bool = False) -> ReconcileResult:
    """Delete every duplicate artifact under ``root``.

    Totals only count deletions that actually happened; a file that cannot be
    removed is logged and listed in ``failed``.
    """
    duplicates = find_duplicates(root, config)
    result = ReconcileResult(found=len(duplicates), artifacts=duplicates)
    if not duplicates:
        logger.info("No duplicate artifacts found")
        return result

    logger.info("Found {} duplicate artifact(s)", len(duplicates))
    for artifact in duplicates:
        if dry_run:
            logger.info("Would delete {} ({}KB)", artifact.relative_path, to_kb(artifact.size))
            continue
        if safe_remove(artifact.path):
            result.deleted += 1
            result.bytes_reclaimed += artifact.size
            logger.info("Deleted {} ({}KB)", artifact.relative_path, to_kb(artifact.size))
        else:
            result.failed.append(artifact.path)

    if not dry_run:
        logger.info(
            "Removed {}/{} duplicate(s), reclaimed {}",
            result.deleted,
            result.found,
            format_bytes(result.bytes_reclaimed),
        )
    return result
