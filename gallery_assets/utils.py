"""Utility helpers used across pipeline stages."""
from __future__ import annotations

import os
from pathlib import Path

from loguru import logger

_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


def to_kb(size: int) -> int:
    return round(size / 1024)


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    value = float(size)
    idx = 0
    while value >= 1024 and idx < len(_UNITS) - 1:
        value /= 1024
        idx += 1
    return f"{round(value, 2):g} {_UNITS[idx]}"


def posix_relative(path: Path, root: Path) -> str:
    """``path`` relative to ``root`` with forward slashes."""
    return Path(os.path.relpath(Path(path).absolute(), Path(root).absolute())).as_posix()


def safe_remove(path: Path) -> bool:
    """Delete ``path``; return False (and log) instead of raising on failure."""
    try:
        path.unlink()
    except FileNotFoundError:
        logger.warning("Already removed: {}", path)
        return False
    except OSError as exc:
        logger.warning("Failed to remove {}: {}", path, exc)
        return False
    return True
