"""Panel segmentation engine for comicpanels.

Geometric comic panel segmentation on raw pixel buffers.

This package provides a staged pipeline:
- edges.py: Grayscale, Gaussian blur and Canny edge detection
- morphology.py: Dilation and border flood fill
- components.py: Connected-component labeling
- filters.py: Overlap merging and area filtering
- reading_order.py: Recursive row/column clustering
- base.py: PanelSegmenter chaining the stages
- utils.py: Shared data structures and helpers
"""

from __future__ import annotations

from .base import PanelSegmenter, SegmentationResult
from .utils import BoundingBox, OutputPanel

__all__ = ["PanelSegmenter", "SegmentationResult", "BoundingBox", "OutputPanel"]
