"""Connected-component labeling of hole-filled masks."""

from __future__ import annotations

from array import array
from typing import List, Tuple

import numpy as np
from numpy.typing import NDArray

from .morphology import EXTERIOR
from .utils import BoundingBox, pdebug


def label_components(filled: NDArray) -> Tuple[NDArray, List[BoundingBox]]:
    """Label 4-connected foreground islands of a hole-filled mask.

    Foreground is every pixel that is not EXTERIOR. Labels start at 1 and
    follow row-major discovery order; 0 means background. Each island's
    bounding box is grown while its pixels are visited.

    Returns:
        (label map as int32 array, bounding boxes indexed by label - 1)
    """
    if filled.ndim != 2:
        raise ValueError("label_components expects a single-channel buffer")

    h, w = filled.shape
    n = h * w
    mask = filled != EXTERIOR
    foreground = mask.tobytes()
    labels = array("i", [0]) * n
    boxes: List[BoundingBox] = []
    last_row = n - w

    current = 0
    for start in np.flatnonzero(mask).tolist():
        if labels[start]:
            continue

        current += 1
        min_row, min_col = h, w
        max_row, max_col = 0, 0
        labels[start] = current
        stack = [start]

        while stack:
            idx = stack.pop()
            row, col = divmod(idx, w)
            if row < min_row:
                min_row = row
            if row > max_row:
                max_row = row
            if col < min_col:
                min_col = col
            if col > max_col:
                max_col = col

            if col > 0 and foreground[idx - 1] and not labels[idx - 1]:
                labels[idx - 1] = current
                stack.append(idx - 1)
            if col < w - 1 and foreground[idx + 1] and not labels[idx + 1]:
                labels[idx + 1] = current
                stack.append(idx + 1)
            if idx >= w and foreground[idx - w] and not labels[idx - w]:
                labels[idx - w] = current
                stack.append(idx - w)
            if idx < last_row and foreground[idx + w] and not labels[idx + w]:
                labels[idx + w] = current
                stack.append(idx + w)

        boxes.append(BoundingBox(min_row, min_col, max_row, max_col))

    label_map = np.frombuffer(labels.tobytes(), dtype=np.dtype(f"i{labels.itemsize}"))
    pdebug(f"label_components: {current} regions")
    return label_map.reshape(h, w).astype(np.int32), boxes


def region_boxes(filled: NDArray) -> List[BoundingBox]:
    """Bounding boxes of the foreground islands, in label order."""
    _, boxes = label_components(filled)
    return boxes
