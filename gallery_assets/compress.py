"""Recompress encoded files that came out larger than the size threshold."""
from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from loguru import logger
from tqdm import tqdm

from .config import AppConfig
from .io import CodecError, encode_command, run_command
from .scanner import FileRecord, scan
from .utils import format_bytes, safe_remove, to_kb


@dataclass
class CompressResult:
    examined: int = 0
    compressed: int = 0
    kept: int = 0
    failed: List[Path] = field(default_factory=list)
    bytes_saved: int = 0


def oversized_files(root: Path, config: AppConfig) -> List[FileRecord]:
    ext = f".{config.codec.extension}"
    limit = config.compress.threshold_kb * 1024
    return [
        record
        for record in scan(root, config.exclude)
        if not record.is_dir and record.path.suffix.lower() == ext and record.size > limit
    ]


def _recompress_one(record: FileRecord, config: AppConfig) -> int:
    """Re-encode one file in place; return bytes saved (0 when kept)."""
    tmp = record.path.with_name(record.path.name + ".part")
    cmd = encode_command(config.codec, record.path, tmp, config.compress.quality)
    try:
        run_command(cmd, timeout=config.codec.timeout)
        new_size = tmp.stat().st_size
        if new_size >= record.size:
            logger.debug("Keeping {}: recompressed copy is not smaller", record.relative_path)
            safe_remove(tmp)
            return 0
        os.replace(tmp, record.path)
    except BaseException:
        if tmp.exists():
            safe_remove(tmp)
        raise
    logger.info("Compressed {}: {}KB -> {}KB", record.relative_path, to_kb(record.size), to_kb(new_size))
    return record.size - new_size


def compress_oversized(root: Path, config: AppConfig) -> CompressResult:
    """Shrink every encoded file above ``compress.threshold_kb`` at ``compress.quality``."""
    candidates = oversized_files(root, config)
    result = CompressResult(examined=len(candidates))
    if not candidates:
        logger.info("No files above {}KB", config.compress.threshold_kb)
        return result
    for record in tqdm(candidates, desc="compress", unit="file", leave=False):
        try:
            saved = _recompress_one(record, config)
        except (CodecError, OSError, subprocess.SubprocessError) as exc:
            logger.error("Compressing {} failed: {}", record.relative_path, exc)
            result.failed.append(record.path)
            continue
        if saved:
            result.compressed += 1
            result.bytes_saved += saved
        else:
            result.kept += 1
    logger.info(
        "Compressed {}/{} file(s), saved {}",
        result.compressed,
        result.examined,
        format_bytes(result.bytes_saved),
    )
    return result
