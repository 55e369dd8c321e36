"""Timestamp-based cache validity for derived files."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional


def derived_stat(path: Path) -> Optional[os.stat_result]:
    try:
        return path.stat()
    except FileNotFoundError:
        return None


def derived_mtime(path: Path) -> Optional[float]:
    st = derived_stat(path)
    return st.st_mtime if st is not None else None


def current_stat(derived_path: Path, source_mtime: float) -> Optional[os.stat_result]:
    """Stat of ``derived_path`` when it is strictly newer than the source, else None.

    The returned stat is the one the decision was made on, so callers can
    report the cached size without touching the file again.
    """
    st = derived_stat(derived_path)
    if st is not None and st.st_mtime > source_mtime:
        return st
    return None


def is_current(derived_path: Path, source_mtime: float) -> bool:
    """Return True when ``derived_path`` exists and is strictly newer than the source.

    Only modification times are compared. A derived file written with other
    encoder settings but a newer timestamp still counts as current.
    """
    return current_stat(derived_path, source_mtime) is not None
