"""Console entry point for the gallery asset pipeline."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List

from loguru import logger
from pydantic import ValidationError

from .compress import compress_oversized
from .config import AppConfig, load_config
from .convert import convert_sources
from .io import CodecUnavailableError, probe_codec
from .pipeline import Pipeline
from .reconcile import reconcile
from .utils import format_bytes


def _configure_logging(verbose: bool) -> None:
    logger.remove()
    level = "DEBUG" if verbose else "INFO"
    logger.add(sys.stderr, level=level)


def _load_config(path: Path) -> AppConfig:
    if not path.exists():
        logger.info("Using default configuration; no {} found", path)
    return load_config(path)


def _apply_root(config: AppConfig, args: argparse.Namespace) -> Path:
    if args.root:
        config.paths.root = Path(args.root)
    return config.root


def cmd_build(config: AppConfig, args: argparse.Namespace) -> int:
    _apply_root(config, args)
    if args.manifest:
        config.paths.manifest = Path(args.manifest)
    if args.workers is not None:
        config.run.workers = args.workers
    if args.timeout is not None:
        config.codec.timeout = args.timeout
    result = Pipeline(config).run()
    print()
    for line in result.summary_lines():
        print(line)
    return 0 if result.ok else 1


def cmd_cleanup(config: AppConfig, args: argparse.Namespace) -> int:
    root = _apply_root(config, args)
    if not root.is_dir():
        logger.error("Asset root does not exist or is not a directory: {}", root)
        return 1
    result = reconcile(root, config, dry_run=args.dry_run)
    if args.dry_run:
        for artifact in result.artifacts:
            print(f"{artifact.relative_path} ({format_bytes(artifact.size)})")
        print(f"{result.found} duplicate artifact(s); rerun without --dry-run to delete")
    else:
        print(
            f"Deleted {result.deleted}/{result.found} duplicate artifact(s), "
            f"reclaimed {format_bytes(result.bytes_reclaimed)}"
        )
    return 0


def cmd_compress(config: AppConfig, args: argparse.Namespace) -> int:
    root = _apply_root(config, args)
    if args.threshold_kb is not None:
        config.compress.threshold_kb = args.threshold_kb
    if args.quality is not None:
        config.compress.quality = args.quality
    if not root.is_dir():
        logger.error("Asset root does not exist or is not a directory: {}", root)
        return 1
    try:
        probe_codec(config.codec)
    except CodecUnavailableError as exc:
        logger.error(str(exc))
        return 1
    result = compress_oversized(root, config)
    print(
        f"Compressed {result.compressed}/{result.examined} file(s) "
        f"({result.kept} kept, {len(result.failed)} failed), saved {format_bytes(result.bytes_saved)}"
    )
    return 0


def cmd_convert(config: AppConfig, args: argparse.Namespace) -> int:
    root = _apply_root(config, args)
    if args.quality is not None:
        config.convert.quality = args.quality
    if args.keep_originals:
        config.convert.delete_originals = False
    if not root.is_dir():
        logger.error("Asset root does not exist or is not a directory: {}", root)
        return 1
    try:
        probe_codec(config.codec)
    except CodecUnavailableError as exc:
        logger.error(str(exc))
        return 1
    result = convert_sources(root, config)
    print(
        f"Converted {result.converted}/{result.examined} file(s) "
        f"({result.skipped} up to date, {len(result.failed)} failed)"
    )
    if result.converted:
        print(
            f"Total size: {format_bytes(result.original_bytes)} -> {format_bytes(result.new_bytes)}, "
            f"saved {format_bytes(result.bytes_saved)} ({result.percent_saved:.1f}%)"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="gallery-assets", description="Photo portfolio asset pipeline")
    parser.add_argument("--config", default="gallery.yaml", help="Path to YAML configuration file")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    build_p = sub.add_parser("build", help="Generate thumbnails, full-size images and the manifest")
    build_p.add_argument("--root")
    build_p.add_argument("--manifest")
    build_p.add_argument("--workers", type=int)
    build_p.add_argument("--timeout", type=float, help="Seconds allowed per encoder invocation")
    build_p.set_defaults(func=cmd_build)

    cleanup_p = sub.add_parser("cleanup", help="Delete duplicate derived files from earlier runs")
    cleanup_p.add_argument("--root")
    cleanup_p.add_argument("--dry-run", action="store_true", help="List duplicates without deleting them")
    cleanup_p.set_defaults(func=cmd_cleanup)

    compress_p = sub.add_parser("compress", help="Recompress oversized encoded files")
    compress_p.add_argument("--root")
    compress_p.add_argument("--threshold-kb", type=int)
    compress_p.add_argument("--quality", type=int, choices=range(1, 101), metavar="1-100")
    compress_p.set_defaults(func=cmd_compress)

    convert_p = sub.add_parser("convert", help="Rewrite JPEG sources as same-stem encoded files")
    convert_p.add_argument("--root")
    convert_p.add_argument("--quality", type=int, choices=range(1, 101), metavar="1-100")
    convert_p.add_argument("--keep-originals", action="store_true", help="Leave the source files in place")
    convert_p.set_defaults(func=cmd_convert)

    return parser


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    config = _load_config(Path(args.config))
    try:
        return args.func(config, args)
    except ValidationError as exc:
        logger.error("Invalid option: {}", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
