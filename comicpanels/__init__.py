"""comicpanels - geometric panel segmentation for comic and manga pages.

Splits a scanned page into panel crops in reading order, plus a numbered
overlay image, using a hand-written Canny / flood-fill pipeline on NumPy
buffers.
"""

__version__ = "1.0.0"
__author__ = "comicpanels Contributors"

from .config import SegmenterConfig, PRESETS, load_config
from .detector import PanelSegmenter, SegmentationResult, BoundingBox, OutputPanel
from .extract import PageResult, extract_panels
from .batch import BatchRunner, DetectionTask, process_pages

__all__ = [
    "SegmenterConfig",
    "PRESETS",
    "load_config",
    "PanelSegmenter",
    "SegmentationResult",
    "BoundingBox",
    "OutputPanel",
    "PageResult",
    "extract_panels",
    "BatchRunner",
    "DetectionTask",
    "process_pages",
]
