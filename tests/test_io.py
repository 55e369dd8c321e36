"""Tests for gallery_assets.io."""
from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from gallery_assets.config import CodecConfig
from gallery_assets.io import (
    CodecError,
    CodecUnavailableError,
    encode_command,
    ensure_dir,
    image_width,
    probe_codec,
    run_command,
)


# --- run_command ----------------------------------------------------------

class TestRunCommand:
    def test_success(self):
        with patch("gallery_assets.io.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(
                args=["echo", "hi"], returncode=0, stdout="hi\n", stderr=""
            )
            result = run_command(["echo", "hi"])
            assert result.returncode == 0

    def test_failure_raises(self):
        with patch("gallery_assets.io.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(
                args=["bad"], returncode=1, stdout="", stderr="error"
            )
            with pytest.raises(CodecError, match="Command failed"):
                run_command(["bad"])

    def test_check_false_no_raise(self):
        with patch("gallery_assets.io.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(
                args=["bad"], returncode=1, stdout="", stderr=""
            )
            result = run_command(["bad"], check=False)
            assert result.returncode == 1

    def test_timeout_forwarded(self):
        with patch("gallery_assets.io.subprocess.run") as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(args=["x"], returncode=0, stdout="", stderr="")
            run_command(["x"], timeout=12.5)
            assert mock_run.call_args.kwargs["timeout"] == 12.5

    def test_timeout_propagates(self):
        with patch("gallery_assets.io.subprocess.run", side_effect=subprocess.TimeoutExpired(["x"], 1)):
            with pytest.raises(subprocess.TimeoutExpired):
                run_command(["x"], timeout=1)


# --- probe_codec ----------------------------------------------------------

class TestProbeCodec:
    def test_missing_binary(self):
        with patch("gallery_assets.io.shutil.which", return_value=None):
            with pytest.raises(CodecUnavailableError, match="not found"):
                probe_codec(CodecConfig())

    def test_version(self, fake_codec):
        assert probe_codec(CodecConfig()) == "1.3.2"
        assert fake_codec.calls == [["cwebp", "-version"]]

    def test_broken_binary(self):
        with patch("gallery_assets.io.shutil.which", return_value="/usr/bin/cwebp"), patch(
            "gallery_assets.io.subprocess.run"
        ) as mock_run:
            mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=127, stdout="", stderr="bad")
            with pytest.raises(CodecUnavailableError, match="not usable"):
                probe_codec(CodecConfig())


# --- encode_command -------------------------------------------------------

class TestEncodeCommand:
    def test_with_resize(self):
        cmd = encode_command(CodecConfig(), Path("in.jpg"), Path("out.webp"), 75, 600)
        assert cmd[0] == "cwebp"
        q = cmd.index("-q")
        assert cmd[q + 1] == "75"
        r = cmd.index("-resize")
        assert cmd[r + 1 : r + 3] == ["600", "0"]
        assert cmd[-2:] == ["-o", "out.webp"]
        assert "in.jpg" in cmd

    def test_without_resize(self):
        cmd = encode_command(CodecConfig(), Path("in.jpg"), Path("out.webp"), 85)
        assert "-resize" not in cmd

    def test_custom_binary(self):
        cmd = encode_command(CodecConfig(binary="/opt/webp/bin/cwebp"), Path("a"), Path("b"), 50)
        assert cmd[0] == "/opt/webp/bin/cwebp"


# --- image_width / ensure_dir ---------------------------------------------

class TestImageWidth:
    def test_reads_header(self, tmp_path, image_factory):
        img = image_factory(tmp_path / "w.png", width=321, height=10)
        assert image_width(img) == 321

    def test_unreadable(self, tmp_path):
        bogus = tmp_path / "bogus.jpg"
        bogus.write_bytes(b"not an image")
        assert image_width(bogus) is None

    def test_missing(self, tmp_path):
        assert image_width(tmp_path / "missing.jpg") is None


class TestEnsureDir:
    def test_creates_dir(self, tmp_path):
        d = tmp_path / "a" / "b" / "c"
        ensure_dir(d)
        assert d.is_dir()
