"""Shared fixtures for the gallery asset test suite."""
from __future__ import annotations

import os
import subprocess
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

import pytest
from PIL import Image

from gallery_assets.config import AppConfig

PAST = time.time() - 3600


def make_image(path: Path, width: int = 64, height: int = 48, mtime: Optional[float] = PAST) -> Path:
    """Write a small real JPEG/PNG and backdate it so derived files look newer."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (width, height), (200, 120, 40)).save(path)
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


class FakeCodec:
    """Stands in for ``subprocess.run`` when the command is the encoder.

    Writes ``output_size`` bytes to the ``-o`` target. ``fail_when`` /
    ``timeout_when`` take a predicate over the argument list.
    """

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.fail_when: Callable[[Sequence[str]], bool] = lambda cmd: False
        self.timeout_when: Callable[[Sequence[str]], bool] = lambda cmd: False
        self.skip_output_when: Callable[[Sequence[str]], bool] = lambda cmd: False
        self.output_size = 2048

    @property
    def encode_calls(self) -> List[List[str]]:
        return [c for c in self.calls if "-version" not in c]

    def __call__(self, cmd, capture_output=True, text=True, timeout=None):
        cmd = list(cmd)
        self.calls.append(cmd)
        if "-version" in cmd:
            return subprocess.CompletedProcess(args=cmd, returncode=0, stdout="1.3.2\n", stderr="")
        if self.timeout_when(cmd):
            raise subprocess.TimeoutExpired(cmd, timeout)
        if self.fail_when(cmd):
            return subprocess.CompletedProcess(args=cmd, returncode=1, stdout="", stderr="Could not process file")
        if not self.skip_output_when(cmd):
            out = Path(cmd[cmd.index("-o") + 1])
            out.write_bytes(b"RIFF" + b"\0" * (self.output_size - 4))
        return subprocess.CompletedProcess(args=cmd, returncode=0, stdout="", stderr="")


@pytest.fixture
def fake_codec(monkeypatch) -> FakeCodec:
    codec = FakeCodec()
    monkeypatch.setattr("gallery_assets.io.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr("gallery_assets.io.subprocess.run", codec)
    return codec


@pytest.fixture
def image_factory() -> Callable[..., Path]:
    return make_image


@pytest.fixture
def asset_root(tmp_path: Path) -> Path:
    root = tmp_path / "assets"
    root.mkdir()
    return root


@pytest.fixture
def config(asset_root: Path) -> AppConfig:
    cfg = AppConfig()
    cfg.paths.root = asset_root
    return cfg


@pytest.fixture
def sample_yaml(tmp_path: Path) -> Path:
    """Write a minimal gallery.yaml and return its path."""
    cfg = tmp_path / "gallery.yaml"
    cfg.write_text(
        "paths:\n"
        "  root: public/img\n"
        "codec:\n"
        "  timeout: 45\n"
        "thumbnail:\n"
        "  width: 400\n"
        "  quality: 70\n"
        "  max_size_kb: 80\n"
        "  suffix: _small\n"
        "run:\n"
        "  workers: 3\n"
    )
    return cfg
