"""Rewrite JPEG sources as same-stem encoded files (``beach.jpg`` -> ``beach.webp``)."""
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger
from tqdm import tqdm

from .config import AppConfig
from .io import CodecError, encode_command, run_command
from .naming import ArtifactKind, classify
from .scanner import FileRecord, scan
from .staleness import is_current
from .utils import format_bytes, safe_remove


@dataclass
class ConvertResult:
    examined: int = 0
    converted: int = 0
    skipped: int = 0
    failed: List[Path] = field(default_factory=list)
    original_bytes: int = 0
    new_bytes: int = 0

    @property
    def bytes_saved(self) -> int:
        return self.original_bytes - self.new_bytes

    @property
    def percent_saved(self) -> float:
        if not self.original_bytes:
            return 0.0
        return self.bytes_saved / self.original_bytes * 100


def converted_path(path: Path, extension: str) -> Path:
    return path.with_suffix(f".{extension}")


def convertible_files(root: Path, config: AppConfig) -> List[FileRecord]:
    """Source images whose extension is listed under ``convert.extensions``."""
    encoded = f".{config.codec.extension}"
    records = []
    for record in scan(root, config.exclude):
        if record.is_dir or record.path.suffix.lower() == encoded:
            continue
        kind = classify(record.name, config.thumbnail.suffix, config.full.suffix, config.convert.extensions)
        if kind is ArtifactKind.SOURCE:
            records.append(record)
    return records


def _convert_one(record: FileRecord, config: AppConfig) -> Optional[int]:
    """Encode one file next to itself; return the new size, or None when already done."""
    target = converted_path(record.path, config.codec.extension)
    if is_current(target, record.mtime):
        logger.debug("Already converted: {}", target.name)
        return None
    partial = target.with_name(target.name + ".part")
    cmd = encode_command(config.codec, record.path, partial, config.convert.quality)
    try:
        run_command(cmd, timeout=config.codec.timeout)
        new_size = partial.stat().st_size
        os.replace(partial, target)
    except BaseException:
        if partial.exists():
            safe_remove(partial)
        raise
    return new_size


def convert_sources(root: Path, config: AppConfig) -> ConvertResult:
    """Encode every matching source to ``<stem>.<codec.extension>`` at ``convert.quality``.

    With ``convert.delete_originals`` the source is removed once its encoded
    copy is in place. A kept original shares its stem with the new file, so a
    later build transcodes only the one that sorts first.
    """
    candidates = convertible_files(root, config)
    result = ConvertResult(examined=len(candidates))
    if not candidates:
        logger.info("No files to convert under {}", root)
        return result
    for record in tqdm(candidates, desc="convert", unit="file", leave=False):
        try:
            new_size = _convert_one(record, config)
        except (CodecError, OSError, subprocess.SubprocessError) as exc:
            logger.error("Converting {} failed: {}", record.relative_path, exc)
            result.failed.append(record.path)
            continue
        if new_size is None:
            result.skipped += 1
            continue
        result.converted += 1
        result.original_bytes += record.size
        result.new_bytes += new_size
        ratio = (record.size - new_size) / record.size * 100 if record.size else 0.0
        logger.info(
            "{} -> {} ({} -> {}, {:.1f}% smaller)",
            record.relative_path,
            converted_path(record.path, config.codec.extension).name,
            format_bytes(record.size),
            format_bytes(new_size),
            ratio,
        )
        if config.convert.delete_originals and safe_remove(record.path):
            logger.info("Removed original {}", record.relative_path)
    logger.info(
        "Converted {}/{} file(s): {} -> {}, saved {} ({:.1f}%)",
        result.converted,
        result.examined,
        format_bytes(result.original_bytes),
        format_bytes(result.new_bytes),
        format_bytes(result.bytes_saved),
        result.percent_saved,
    )
    return result
