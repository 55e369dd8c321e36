"""Encoder process helpers built on cwebp, plus image header probing."""
from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger
from PIL import Image, UnidentifiedImageError

from .config import CodecConfig


class CodecError(RuntimeError):
    pass


class CodecUnavailableError(CodecError):
    pass


def run_command(cmd: Sequence[str], *, check: bool = True, timeout: Optional[float] = None) -> subprocess.CompletedProcess:
    """Run a subprocess command logging the invocation.

    ``subprocess.TimeoutExpired`` and ``FileNotFoundError`` propagate to the
    caller unchanged.
    """

    logger.debug("Running command: {}", " ".join(cmd))
    result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    if check and result.returncode != 0:
        raise CodecError(f"Command failed with code {result.returncode}: {' '.join(cmd)}\n{result.stderr}")
    if result.stderr:
        logger.debug(result.stderr.strip())
    return result


def probe_codec(codec: CodecConfig) -> str:
    """Return the encoder's version string or raise CodecUnavailableError."""
    if shutil.which(codec.binary) is None:
        raise CodecUnavailableError(
            f"Encoder '{codec.binary}' not found on PATH. Install the WebP tools "
            "(macOS: brew install webp, Debian/Ubuntu: sudo apt-get install webp) "
            "or set codec.binary in the config."
        )
    try:
        result = run_command([codec.binary, "-version"], timeout=min(codec.timeout, 30.0))
    except (CodecError, OSError, subprocess.SubprocessError) as exc:
        raise CodecUnavailableError(f"Encoder '{codec.binary}' is not usable: {exc}") from exc
    return (result.stdout or result.stderr).strip()


def encode_command(
    codec: CodecConfig,
    input_path: Path,
    output_path: Path,
    quality: int,
    resize_width: Optional[int] = None,
) -> List[str]:
    cmd: List[str] = [codec.binary, "-quiet", "-q", str(quality)]
    if resize_width:
        # A height of 0 keeps the aspect ratio.
        cmd += ["-resize", str(resize_width), "0"]
    cmd += [str(input_path), "-o", str(output_path)]
    return cmd


def image_width(path: Path) -> Optional[int]:
    """Pixel width read from the image header, or None when unreadable."""
    try:
        with Image.open(path) as img:
            return img.size[0]
    except (OSError, UnidentifiedImageError, ValueError) as exc:
        logger.debug("Could not read dimensions of {}: {}", path, exc)
        return None


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
