"""Directory walking and source discovery."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Collection, Dict, Iterator, List, Tuple

from loguru import logger

from .config import AppConfig
from .naming import ArtifactKind, classify, derived_name, media_type


@dataclass(frozen=True)
class FileRecord:
    relative_path: str
    path: Path
    size: int
    mtime: float
    is_dir: bool = False

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class SourceImage:
    name: str
    relative_path: str
    path: Path
    size: int
    mtime: float
    media_type: str

    @classmethod
    def from_record(cls, record: FileRecord) -> "SourceImage":
        return cls(
            name=record.name,
            relative_path=record.relative_path,
            path=record.path,
            size=record.size,
            mtime=record.mtime,
            media_type=media_type(record.name),
        )


def _list_dir(directory: Path) -> List[os.DirEntry]:
    with os.scandir(directory) as it:
        return sorted(it, key=lambda entry: entry.name)


def scan(root: Path, exclude: Collection[str] = ()) -> Iterator[FileRecord]:
    """Yield every file and directory under ``root`` depth-first.

    Directories named in ``exclude`` are dropped before they are queued, so
    nothing beneath them is ever listed. A directory that cannot be read is
    logged and skipped; its siblings are still visited. Entries of one
    directory come out in name order.
    """
    root = Path(root).absolute()
    stack: List[Path] = [root]
    while stack:
        current = stack.pop()
        try:
            entries = _list_dir(current)
        except OSError as exc:
            logger.warning("Skipping unreadable directory {}: {}", current, exc)
            continue
        subdirs: List[Path] = []
        for entry in entries:
            path = Path(entry.path)
            try:
                is_dir = entry.is_dir()
                if is_dir and entry.name in exclude:
                    logger.debug("Excluded directory {}", path)
                    continue
                st = entry.stat()
            except OSError as exc:
                logger.warning("Skipping unreadable entry {}: {}", path, exc)
                continue
            rel = path.relative_to(root).as_posix()
            yield FileRecord(relative_path=rel, path=path, size=st.st_size, mtime=st.st_mtime, is_dir=is_dir)
            if is_dir:
                subdirs.append(path)
        stack.extend(reversed(subdirs))


def scan_sources(root: Path, config: AppConfig) -> List[SourceImage]:
    """Collect source images under ``root`` in scan order."""
    sources: List[SourceImage] = []
    for record in scan(root, config.exclude):
        if record.is_dir:
            continue
        kind = classify(record.name, config.thumbnail.suffix, config.full.suffix, config.scan.extensions)
        if kind is ArtifactKind.SOURCE:
            sources.append(SourceImage.from_record(record))
    return sources


def derived_collisions(sources: List[SourceImage], config: AppConfig) -> Dict[int, SourceImage]:
    """Map the index of every source whose derived files are already claimed.

    Sources sharing a directory and a stem (``beach.jpg``, ``beach.png``)
    would write the same ``beach_thumb.webp``. The first one in scan order
    keeps the name; each later one maps to that first source.
    """
    owners: Dict[Tuple[Path, str], SourceImage] = {}
    collisions: Dict[int, SourceImage] = {}
    for idx, source in enumerate(sources):
        key = (source.path.parent, derived_name(source.name, config.thumbnail.suffix, config.codec.extension))
        owner = owners.setdefault(key, source)
        if owner is not source:
            logger.warning(
                "{} shares derived names with {}; it will not be transcoded",
                source.relative_path,
                owner.relative_path,
            )
            collisions[idx] = owner
    return collisions
