"""Shared utilities and data structures for panel segmentation.

Contains:
- BoundingBox: region extent in processing-resolution pixels
- OutputPanel: final panel rectangle in original-resolution pixels
- flat_index: the row-major index used by every flat-buffer walk
- pdebug: debug logger for the detector stages
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Tuple

log = logging.getLogger("Panels")


def pdebug(*parts: object) -> None:
    """Debug logger for panel segmentation."""
    if log.isEnabledFor(logging.DEBUG):
        log.debug("[Panels] " + " ".join(map(str, parts)))


def flat_index(row: int, col: int, width: int) -> int:
    """Row-major offset of (row, col) in a buffer of the given width."""
    return row * width + col


def neighbour_offsets(width: int) -> Tuple[int, ...]:
    """Flat offsets of the 8 neighbours of an interior pixel."""
    return (-width - 1, -width, -width + 1, -1, 1, width - 1, width, width + 1)


@dataclass(frozen=True)
class BoundingBox:
    """Inclusive pixel extent of a region in processing space."""
    min_row: int
    min_col: int
    max_row: int
    max_col: int

    def __post_init__(self) -> None:
        if self.min_row > self.max_row or self.min_col > self.max_col:
            raise ValueError(f"Inverted bounding box: {self.as_tuple()}")

    @property
    def height(self) -> int:
        return self.max_row - self.min_row

    @property
    def width(self) -> int:
        return self.max_col - self.min_col

    @property
    def area(self) -> int:
        """Extent area, (maxRow - minRow) * (maxCol - minCol)."""
        return self.height * self.width

    def intersects(self, other: "BoundingBox") -> bool:
        """Strict rectangle intersection; boxes that only touch do not intersect."""
        return (
            self.min_row < other.max_row
            and self.max_row > other.min_row
            and self.min_col < other.max_col
            and self.max_col > other.min_col
        )

    def union(self, other: "BoundingBox") -> "BoundingBox":
        """Smallest box enclosing both boxes."""
        return BoundingBox(
            min(self.min_row, other.min_row),
            min(self.min_col, other.min_col),
            max(self.max_row, other.max_row),
            max(self.max_col, other.max_col),
        )

    def as_tuple(self) -> Tuple[int, int, int, int]:
        return (self.min_row, self.min_col, self.max_row, self.max_col)


@dataclass(frozen=True)
class OutputPanel:
    """Panel rectangle in original image pixels."""
    left: int
    top: int
    width: int
    height: int

    @classmethod
    def from_box(cls, box: BoundingBox, scale: float) -> "OutputPanel":
        """Rescale a processing-space box to the original resolution."""
        return cls(
            left=int(math.floor(box.min_col * scale)),
            top=int(math.floor(box.min_row * scale)),
            width=int(math.ceil(box.width * scale)),
            height=int(math.ceil(box.height * scale)),
        )

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def clamp(self, image_width: int, image_height: int) -> "OutputPanel":
        """Clip the panel to [0, image_width) x [0, image_height)."""
        left = max(0, self.left)
        top = max(0, self.top)
        return OutputPanel(
            left=left,
            top=top,
            width=min(image_width - left, self.right - left),
            height=min(image_height - top, self.bottom - top),
        )

    def to_dict(self) -> Dict[str, int]:
        return {"left": self.left, "top": self.top, "width": self.width, "height": self.height}
