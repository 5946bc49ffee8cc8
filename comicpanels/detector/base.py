"""Core PanelSegmenter class with the main detection flow.

This is the main entry point for panel segmentation, chaining:
- Grayscale reduction
- Gaussian blur
- Canny edge detection
- Dilation
- Hole filling
- Connected-component labeling
- Overlap merging and area filtering
- Reading-order clustering

Every page allocates its own buffers, so one segmenter can serve several
threads or be pickled to worker processes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import numpy as np
from numpy.typing import NDArray

from ..config import SegmenterConfig
from ..image_utils import RasterBuffer, drop_alpha, resize_to_width, write_image
from .components import region_boxes
from .edges import to_grayscale, gaussian_blur, canny_edges
from .filters import merge_overlapping, filter_by_area
from .morphology import dilate, fill_holes
from .reading_order import sort_reading_order
from .utils import BoundingBox, OutputPanel, pdebug


@dataclass
class SegmentationResult:
    """Panels of one page, in reading order."""
    panels: List[OutputPanel]
    boxes: List[BoundingBox]           # Same panels in processing space
    image_size: tuple                  # (width, height) of the original page
    processing_size: tuple             # (width, height) used for detection
    scale: float                       # original width / processing width
    stage_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return len(self.panels)


class PanelSegmenter:
    """Geometric comic panel segmenter.

    Finds closed panel borders with Canny edges, fills their interiors,
    extracts one box per enclosed region and orders the boxes the way a
    page is read.
    """

    def __init__(self, config: Optional[SegmenterConfig] = None):
        """Initialize segmenter with configuration.

        Args:
            config: Segmentation parameters. Uses defaults if None.
        """
        self.config = (config or SegmenterConfig()).validate()

    def detect_boxes(
        self,
        pixels: NDArray,
        stage_counts: Optional[Dict[str, int]] = None,
        debug_dir: Optional[str] = None,
    ) -> List[BoundingBox]:
        """Run stages 1-8 on a processing-resolution buffer.

        Args:
            pixels: (H, W) or (H, W, C) pixel array
            stage_counts: Optional dict receiving per-stage region counts
            debug_dir: Optional directory receiving intermediate buffers

        Returns:
            Panel boxes in reading order, in the buffer's coordinates
        """
        c = self.config
        h, w = pixels.shape[:2]

        gray = to_grayscale(pixels)
        blurred = gaussian_blur(gray, c.blur_sigma)
        edges = canny_edges(blurred, c.canny_high_ratio, c.canny_low_ratio)
        dilated = dilate(edges, c.dilate_iterations)
        filled = fill_holes(dilated)

        if debug_dir:
            self._export_stages(debug_dir, {
                "1_gray": gray,
                "2_blurred": blurred,
                "3_edges": edges,
                "4_dilated": dilated,
                "5_filled": filled,
            })

        regions = region_boxes(filled)
        merged = merge_overlapping(regions)
        kept = filter_by_area(merged, w, h, c.min_area_ratio)
        ordered = sort_reading_order(kept, rtl=c.reading_rtl, max_depth=c.max_cluster_depth)

        counts = {
            "edge_pixels": int(np.count_nonzero(edges)),
            "regions": len(regions),
            "merged": len(merged),
            "kept": len(kept),
        }
        pdebug("stages:", " ".join(f"{k}={v}" for k, v in counts.items()))
        if stage_counts is not None:
            stage_counts.update(counts)
        return ordered

    def processing_width(self, image_width: int) -> int:
        """Detection width for a page of the given width."""
        return min(self.config.processing_width, image_width)

    def segment(self, raster: RasterBuffer, page_name: Optional[str] = None) -> SegmentationResult:
        """Detect panels on a full-resolution page.

        The page is downscaled to the processing width, segmented, and the
        boxes are mapped back and clamped to the original image bounds.
        """
        width = self.processing_width(raster.width)
        scale = raster.width / width

        work = resize_to_width(drop_alpha(raster), width)
        debug_dir = self._setup_debug_directory(page_name) if self.config.debug else None

        counts: Dict[str, int] = {}
        boxes = self.detect_boxes(work.pixels, stage_counts=counts, debug_dir=debug_dir)

        panels: List[OutputPanel] = []
        kept_boxes: List[BoundingBox] = []
        for box in boxes:
            panel = OutputPanel.from_box(box, scale).clamp(raster.width, raster.height)
            if panel.is_empty:
                pdebug(f"Skipped degenerate panel {box.as_tuple()}")
                continue
            panels.append(panel)
            kept_boxes.append(box)

        pdebug(f"Final: {len(panels)} panels, RTL={self.config.reading_rtl}, scale={scale:.3f}")
        return SegmentationResult(
            panels=panels,
            boxes=kept_boxes,
            image_size=(raster.width, raster.height),
            processing_size=(work.width, work.height),
            scale=scale,
            stage_counts=counts,
        )

    def _setup_debug_directory(self, page_name: Optional[str]) -> str:
        """Create debug directory for this page."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        debug_dir = os.path.join("debug_output", f"{page_name or 'page'}_{timestamp}")
        os.makedirs(debug_dir, exist_ok=True)
        pdebug(f"[Debug] Created: {debug_dir}")
        return debug_dir

    def _export_stages(self, debug_dir: str, stages: Dict[str, NDArray]) -> None:
        """Write intermediate buffers as 8-bit PNGs."""
        for name, buf in stages.items():
            img = np.clip(buf, 0, 255).astype(np.uint8)
            try:
                write_image(os.path.join(debug_dir, f"{name}.png"), img)
            except OSError as e:
                pdebug(f"[Debug] Stage export error: {e}")
