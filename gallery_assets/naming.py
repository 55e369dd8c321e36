"""Filename conventions for sources and their derived variants.

Everything here is string logic over a file *name*; nothing opens or stats a
file. A derived file is ``<stem><suffix>.<ext>`` where the stem always comes
from the source name, so repeated runs never stack suffixes. Names carrying a
suffix token more than once (or both tokens) are the signature of an earlier
run that treated a derived file as a source.
"""
from __future__ import annotations

import re
from enum import Enum
from pathlib import PurePath
from typing import Iterable

# A token only counts when it ends at a delimiter or at the end of the name,
# so "_fullmoon" carries no "_full" token.
_TOKEN_END = r"(?=[_.]|$)"

_MEDIA_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
}


class ArtifactKind(str, Enum):
    SOURCE = "source"
    THUMBNAIL = "thumbnail"
    FULL = "full"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"


def token_count(filename: str, token: str) -> int:
    """Number of delimited occurrences of ``token`` in ``filename``."""
    return len(re.findall(re.escape(token) + _TOKEN_END, filename))


def _split(filename: str) -> tuple[str, str]:
    path = PurePath(filename)
    return path.stem, path.suffix.lower()


def is_duplicate(filename: str, thumb_suffix: str, full_suffix: str) -> bool:
    thumbs = token_count(filename, thumb_suffix)
    fulls = token_count(filename, full_suffix)
    return thumbs > 1 or fulls > 1 or (thumbs > 0 and fulls > 0)


def classify(
    filename: str,
    thumb_suffix: str = "_thumb",
    full_suffix: str = "_full",
    extensions: Iterable[str] = (".jpg", ".jpeg", ".png", ".webp"),
) -> ArtifactKind:
    """Classify a bare file name by its suffix tokens and extension."""
    if is_duplicate(filename, thumb_suffix, full_suffix):
        return ArtifactKind.DUPLICATE
    stem, ext = _split(filename)
    if stem.endswith(thumb_suffix):
        return ArtifactKind.THUMBNAIL
    if stem.endswith(full_suffix):
        return ArtifactKind.FULL
    if ext and ext in {e.lower() for e in extensions}:
        return ArtifactKind.SOURCE
    return ArtifactKind.IGNORED


def derived_name(source_name: str, suffix: str, extension: str) -> str:
    stem, _ = _split(source_name)
    return f"{stem}{suffix}.{extension.lstrip('.')}"


def media_type(filename: str) -> str:
    _, ext = _split(filename)
    return _MEDIA_TYPES.get(ext, "application/octet-stream")
