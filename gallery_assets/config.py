"""Configuration models and loader for the gallery asset pipeline."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _normalize_extensions(value: List[str]) -> List[str]:
    normalized = []
    for ext in value:
        ext = ext.strip().lower()
        if not ext:
            continue
        normalized.append(ext if ext.startswith(".") else f".{ext}")
    if not normalized:
        raise ValueError("extensions must list at least one file extension")
    return normalized


class PathsConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    root: Path = Field(Path("dist/assets"), description="Root asset directory that is scanned and written into.")
    manifest: Optional[Path] = Field(None, description="Manifest output path; defaults to <root>/image-info.json.")


class ScanConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    extensions: List[str] = Field(
        default_factory=lambda: [".jpg", ".jpeg", ".png", ".webp"],
        description="File extensions treated as candidate sources.",
    )
    exclude_dirs: List[str] = Field(
        default_factory=lambda: ["__MACOSX", ".DS_Store", "node_modules", "raw", "thumbs", "fullsize"],
        description="Directory names never descended into, at any depth.",
    )

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, value: List[str]) -> List[str]:
        return _normalize_extensions(value)


class CodecConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    binary: str = Field("cwebp", description="Encoder executable name or path.")
    extension: str = Field("webp", description="Canonical extension of encoded files.")
    timeout: float = Field(300.0, gt=0, description="Seconds before a hung encoder invocation is abandoned.")

    @field_validator("extension")
    @classmethod
    def strip_dot(cls, value: str) -> str:
        value = value.strip().lstrip(".").lower()
        if not value:
            raise ValueError("extension must not be empty")
        return value


class VariantProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    width: int = Field(..., gt=0, description="Target width, or maximum width when downscale_only is set.")
    quality: int = Field(..., ge=1, le=100, description="Encoder quality (1-100).")
    max_size_kb: int = Field(..., gt=0, description="Expected upper bound on output size; exceeding it only warns.")
    suffix: str = Field(..., description="Token inserted between the source stem and the extension.")
    downscale_only: bool = Field(False, description="Never enlarge sources narrower than width.")

    @field_validator("suffix")
    @classmethod
    def validate_suffix(cls, value: str) -> str:
        if len(value) < 2 or not value.startswith("_"):
            raise ValueError("suffix must start with '_' followed by a name, e.g. '_thumb'")
        if "." in value:
            raise ValueError("suffix must not contain '.'")
        return value


def _default_thumbnail() -> VariantProfile:
    return VariantProfile(width=600, quality=75, max_size_kb=100, suffix="_thumb")


def _default_full() -> VariantProfile:
    return VariantProfile(width=2400, quality=85, max_size_kb=1000, suffix="_full", downscale_only=True)


class RunConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    workers: int = Field(1, ge=1, description="Sources transcoded in parallel; 1 keeps the run sequential.")


class CompressConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    threshold_kb: int = Field(1024, gt=0, description="Encoded files above this size are recompressed.")
    quality: int = Field(70, ge=1, le=100)


class ConvertConfig(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    extensions: List[str] = Field(
        default_factory=lambda: [".jpg", ".jpeg"],
        description="Source extensions rewritten to a same-stem encoded file.",
    )
    quality: int = Field(85, ge=1, le=100)
    delete_originals: bool = Field(True, description="Remove each source once its encoded copy is in place.")

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, value: List[str]) -> List[str]:
        return _normalize_extensions(value)


class AppConfig(BaseModel):
    paths: PathsConfig = Field(default_factory=PathsConfig)
    scan: ScanConfig = Field(default_factory=ScanConfig)
    codec: CodecConfig = Field(default_factory=CodecConfig)
    thumbnail: VariantProfile = Field(default_factory=_default_thumbnail)
    full: VariantProfile = Field(default_factory=_default_full)
    run: RunConfig = Field(default_factory=RunConfig)
    compress: CompressConfig = Field(default_factory=CompressConfig)
    convert: ConvertConfig = Field(default_factory=ConvertConfig)

    @model_validator(mode="after")
    def distinct_suffixes(self) -> "AppConfig":
        if self.thumbnail.suffix == self.full.suffix:
            raise ValueError("thumbnail and full suffix tokens must differ")
        return self

    @property
    def root(self) -> Path:
        return self.paths.root

    @property
    def manifest_path(self) -> Path:
        return self.paths.manifest or self.paths.root / "image-info.json"

    @property
    def profiles(self) -> Tuple[VariantProfile, VariantProfile]:
        return self.thumbnail, self.full

    @property
    def exclude(self) -> frozenset[str]:
        return frozenset(self.scan.exclude_dirs)


def load_config(path: Path | str) -> AppConfig:
    """Load configuration from YAML, falling back to defaults when missing."""

    cfg_path = Path(path)
    if not cfg_path.exists():
        return AppConfig()
    data = yaml.safe_load(cfg_path.read_text()) or {}
    return AppConfig.model_validate(data)
