"""Command line entry point.

Usage:
    python -m comicpanels PAGE [PAGE ...] [--out DIR] [--config FILE.yaml]

Examples:
    python -m comicpanels chapter01/ --out panels --workers 4
    python -m comicpanels page_003.png --preset manga --json
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from . import __version__
from .batch import BatchRunner, DetectionTask
from .config import SegmenterConfig, PRESETS, get_preset, load_config
from .exceptions import ConfigError
from .extract import PageResult

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".tif", ".tiff"}

logger = logging.getLogger(__name__)


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="comicpanels",
        description="Split comic pages into panel images in reading order",
    )
    parser.add_argument("pages", nargs="+", help="Page images or directories of pages")
    parser.add_argument("--out", type=str, default=None,
                        help="Output directory (default: next to each page)")
    parser.add_argument("--config", type=str, default=None,
                        help="Path to a YAML configuration file")
    parser.add_argument("--preset", type=str, default=os.environ.get("COMICPANELS_PRESET"),
                        help=f"Style preset: {', '.join(PRESETS)}")
    parser.add_argument("--processing-width", type=int,
                        default=_env_int("COMICPANELS_PROCESSING_WIDTH"),
                        help="Width cap used for detection (default 1500)")
    parser.add_argument("--sigma", type=float, default=None, help="Gaussian blur sigma")
    parser.add_argument("--dilate", type=int, default=None, help="Dilation iterations")
    parser.add_argument("--rtl", action="store_true", help="Right-to-left reading order")
    parser.add_argument("--format", dest="panel_format", type=str, default=None,
                        help="Panel file extension (default: same as the page)")
    parser.add_argument("--workers", type=int, default=_env_int("COMICPANELS_WORKERS"),
                        help="Parallel page workers (default: CPU count)")
    parser.add_argument("--no-annotate", action="store_true", help="Skip the overlay image")
    parser.add_argument("--delete-original", action="store_true",
                        help="Delete each page after its panels were written")
    parser.add_argument("--debug", action="store_true",
                        help="Dump intermediate stage images to debug_output/")
    parser.add_argument("--json", action="store_true", help="Print results as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, value)
        return None


def build_config(args: argparse.Namespace) -> SegmenterConfig:
    """Merge preset, YAML file and command line flags, in that order."""
    config = get_preset(args.preset) if args.preset else SegmenterConfig()
    if args.config:
        config = load_config(args.config, base=config)
    config = config.updated(
        processing_width=args.processing_width,
        blur_sigma=args.sigma,
        dilate_iterations=args.dilate,
        panel_format=args.panel_format,
        reading_rtl=True if args.rtl else None,
        annotate=False if args.no_annotate else None,
        delete_original=True if args.delete_original else None,
        debug=True if args.debug else None,
    )
    return config.validate()


def collect_pages(inputs: Sequence[str]) -> List[Path]:
    """Expand directories into their image files, sorted by name."""
    pages: List[Path] = []
    for item in inputs:
        path = Path(item)
        if path.is_dir():
            pages.extend(sorted(
                p for p in path.iterdir()
                if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
            ))
        else:
            pages.append(path)
    return pages


def _print_result(result: PageResult) -> None:
    name = Path(result.page).name
    if result.success:
        print(f"{name}: {result.panels} panels")
    else:
        print(f"{name}: FAILED ({result.error})")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Application entry point."""
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = build_config(args)
    except ConfigError as e:
        print(f"comicpanels: error: {e}", file=sys.stderr)
        return 2

    pages = collect_pages(args.pages)
    if not pages:
        print("comicpanels: error: no page images found", file=sys.stderr)
        return 2

    tasks = [DetectionTask(str(p), args.out) for p in pages]
    runner = BatchRunner(config, workers=args.workers,
                         progress=None if args.json else _print_result)
    try:
        results = runner.run(tasks)
    except KeyboardInterrupt:
        runner.cancel()
        print("comicpanels: interrupted", file=sys.stderr)
        return 130

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))

    return 0 if all(r.success for r in results) else 1


if __name__ == "__main__":
    sys.exit(main())
