"""Panel extraction: crop files, annotated overlay and page manifest.

extract_panels() is the per-page failure boundary. Whatever goes wrong on a
page is logged and reported in its PageResult; it never propagates.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import time
import traceback
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import List, Optional, Sequence, Union

import cv2
import numpy as np
from numpy.typing import NDArray

from .config import SegmenterConfig
from .detector import PanelSegmenter, OutputPanel
from .exceptions import OutputConflictError
from .image_utils import RasterBuffer, load_raster, to_bgr, write_image

logger = logging.getLogger(__name__)

MANIFEST_NAME = "page_manifest.json"

# Overlay colours (BGR)
OUTLINE_COLOR = (102, 51, 255)   # #ff3366
ACCENT_COLOR = (0, 221, 255)     # #ffdd00
LABEL_FILL = (0, 0, 0)
LABEL_TEXT = (255, 255, 255)


@dataclass
class PageResult:
    """Outcome of processing one page."""
    page: str
    panels: int
    success: bool
    error: Optional[str] = None
    panels_dir: Optional[str] = None
    annotated: Optional[str] = None
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def crop_panels(
    raster: RasterBuffer,
    panels: Sequence[OutputPanel],
    panels_dir: Union[str, Path],
    ext: str,
) -> List[Path]:
    """Write each panel as <n><ext>, numbered from 1 in reading order.

    Panels left with no area after clamping are skipped and do not use up
    a number.
    """
    panels_dir = Path(panels_dir)
    written: List[Path] = []
    for panel in panels:
        region = panel.clamp(raster.width, raster.height)
        if region.is_empty:
            logger.debug("Skipping empty crop %s", panel.to_dict())
            continue
        crop = raster.pixels[region.top:region.bottom, region.left:region.right]
        out = panels_dir / f"{len(written) + 1}{ext}"
        write_image(out, crop)
        written.append(out)
    return written


def draw_overlay(raster: RasterBuffer, panels: Sequence[OutputPanel]) -> NDArray:
    """Return a BGR copy of the page with numbered panel outlines."""
    pixels = raster.pixels
    if pixels.ndim == 3 and pixels.shape[2] == 4:
        pixels = pixels[:, :, :3]
    img = to_bgr(pixels)
    if img.ndim == 2:
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    img = np.ascontiguousarray(img).copy()

    for i, p in enumerate(panels):
        x1, y1, x2, y2 = p.left, p.top, p.right, p.bottom
        cv2.rectangle(img, (x1, y1), (x2, y2), OUTLINE_COLOR, 3)

        corner = int(min(20, p.width / 6, p.height / 6))
        for (cx, cy), (dx, dy) in (
            ((x1, y1), (1, 1)),
            ((x2, y1), (-1, 1)),
            ((x1, y2), (1, -1)),
            ((x2, y2), (-1, -1)),
        ):
            cv2.line(img, (cx, cy), (cx + dx * corner, cy), ACCENT_COLOR, 5)
            cv2.line(img, (cx, cy), (cx, cy + dy * corner), ACCENT_COLOR, 5)

        label = f"Panel {i + 1}"
        box_w = 130 + (12 if i >= 9 else 0)
        bx, by = x1 + 8, y2 - 62
        cv2.rectangle(img, (bx, by), (bx + box_w, by + 54), LABEL_FILL, -1)
        cv2.rectangle(img, (bx, by), (bx + box_w, by + 54), OUTLINE_COLOR, 2)
        cv2.putText(img, label, (x1 + 16, y2 - 17), cv2.FONT_HERSHEY_SIMPLEX,
                    0.9, LABEL_TEXT, 2, cv2.LINE_AA)
    return img


def check_output_owner(panels_dir: Path, page_name: str) -> None:
    """Make sure panels_dir is free or holds an earlier run for the same page.

    Raises:
        OutputConflictError: the directory belongs to someone else
    """
    if not panels_dir.exists():
        return
    manifest = panels_dir / MANIFEST_NAME
    if not panels_dir.is_dir() or not manifest.is_file():
        raise OutputConflictError(
            f"{panels_dir} already exists and was not written by comicpanels", str(panels_dir))
    try:
        with open(manifest, "r", encoding="utf-8") as f:
            owner = json.load(f).get("page")
    except (OSError, ValueError, AttributeError) as e:
        raise OutputConflictError(f"Unreadable manifest in {panels_dir}: {e}", str(panels_dir)) from e
    if owner != page_name:
        raise OutputConflictError(
            f"{panels_dir} holds the panels of {owner}, not {page_name}", str(panels_dir))


def _write_manifest(path: Path, page: str, files: Sequence[Path], panels: Sequence[OutputPanel]) -> None:
    data = {
        "page": page,
        "panel_count": len(files),
        "panels": [
            {"index": i + 1, "file": f.name, **p.to_dict()}
            for i, (f, p) in enumerate(zip(files, panels))
        ],
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def extract_panels(
    image_path: Union[str, Path],
    out_dir: Optional[Union[str, Path]] = None,
    config: Optional[SegmenterConfig] = None,
) -> PageResult:
    """Segment one page and write its panels.

    Panels go to <out_dir>/<stem>/<n><ext> and the overlay to
    <out_dir>/<stem>_annotated.png. out_dir defaults to the page's directory.
    Crops are written to a temporary directory first and moved into place
    only when the whole page succeeded.
    An existing <stem> directory is replaced only when its manifest names
    this page; anything else fails the page and is left untouched.

    Returns:
        PageResult; success is False only when the page itself failed
    """
    start = time.time()
    config = config or SegmenterConfig()
    image_path = Path(image_path)
    page = str(image_path)
    tmp_dir: Optional[str] = None

    try:
        segmenter = PanelSegmenter(config)
        raster = load_raster(image_path)
        result = segmenter.segment(raster, page_name=image_path.stem)

        if not result.panels:
            logger.info("%s: 0 panels", image_path.name)
            return PageResult(page=page, panels=0, success=True,
                              elapsed_ms=(time.time() - start) * 1000)

        target_root = Path(out_dir) if out_dir is not None else image_path.parent
        target_root.mkdir(parents=True, exist_ok=True)
        panels_dir = target_root / image_path.stem
        ext = config.panel_format or image_path.suffix or ".png"
        check_output_owner(panels_dir, image_path.name)

        tmp_dir = tempfile.mkdtemp(prefix=f".{image_path.stem}_", dir=str(target_root))
        files = crop_panels(raster, result.panels, tmp_dir, ext)
        written = [p for p in result.panels if not p.clamp(raster.width, raster.height).is_empty]
        _write_manifest(Path(tmp_dir) / MANIFEST_NAME, image_path.name, files, written)

        if panels_dir.exists():
            check_output_owner(panels_dir, image_path.name)
            shutil.rmtree(panels_dir)
        os.replace(tmp_dir, panels_dir)
        tmp_dir = None

        annotated = None
        if config.annotate:
            annotated = target_root / f"{image_path.stem}_annotated.png"
            ok, encoded = cv2.imencode(".png", draw_overlay(raster, result.panels))
            if not ok:
                raise OSError(f"Could not encode overlay for {image_path.name}")
            encoded.tofile(str(annotated))

        if config.delete_original:
            image_path.unlink()

        logger.info("%s: %d panels", image_path.name, len(files))
        return PageResult(
            page=page,
            panels=len(files),
            success=True,
            panels_dir=str(panels_dir),
            annotated=str(annotated) if annotated else None,
            elapsed_ms=(time.time() - start) * 1000,
        )

    except Exception as e:
        logger.error("%s: detection failed: %s\n%s", image_path.name, e, traceback.format_exc())
        return PageResult(page=page, panels=0, success=False, error=str(e),
                          elapsed_ms=(time.time() - start) * 1000)

    finally:
        if tmp_dir is not None:
            shutil.rmtree(tmp_dir, ignore_errors=True)
