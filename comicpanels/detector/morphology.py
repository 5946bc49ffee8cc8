"""Morphology stages: edge dilation and border flood fill."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from .utils import pdebug, flat_index

# Hole-fill output values
EXTERIOR = 255
ENCLOSED = 0


def dilate(edges: NDArray, iterations: int = 2) -> NDArray:
    """3x3 max filter applied `iterations` times to interior pixels.

    Two buffers are swapped between passes so every pass reads the previous
    state only. Border pixels keep their input value.
    """
    if edges.ndim != 2:
        raise ValueError("dilate expects a single-channel buffer")
    if iterations < 0:
        raise ValueError(f"iterations must be >= 0, got {iterations}")

    h, w = edges.shape
    current = edges.copy()
    if h < 3 or w < 3 or iterations == 0:
        return current

    scratch = edges.copy()
    for _ in range(iterations):
        np.copyto(scratch, current)
        scratch[1:-1, 1:-1] = np.maximum.reduce([
            current[dy:dy + h - 2, dx:dx + w - 2]
            for dy in (0, 1, 2)
            for dx in (0, 1, 2)
        ])
        current, scratch = scratch, current

    return current


def fill_holes(edges: NDArray) -> NDArray:
    """Mark everything reachable from the image border without crossing an edge.

    Returns a buffer where EXTERIOR (255) is background connected to the
    border and ENCLOSED (0) is an edge pixel or a region the edges enclose.
    The flood fill is 4-connected and uses an explicit stack.
    """
    if edges.ndim != 2:
        raise ValueError("fill_holes expects a single-channel buffer")

    h, w = edges.shape
    barrier = edges.astype(bool).tobytes()
    result = bytearray(h * w)

    stack = []
    for x in range(w):
        top = flat_index(0, x, w)
        bottom = flat_index(h - 1, x, w)
        if not barrier[top]:
            stack.append(top)
        if not barrier[bottom]:
            stack.append(bottom)
    for y in range(h):
        left = flat_index(y, 0, w)
        right = flat_index(y, w - 1, w)
        if not barrier[left]:
            stack.append(left)
        if not barrier[right]:
            stack.append(right)

    last_row = (h - 1) * w
    while stack:
        idx = stack.pop()
        if result[idx]:
            continue
        result[idx] = EXTERIOR

        x = idx % w
        if x > 0 and not result[idx - 1] and not barrier[idx - 1]:
            stack.append(idx - 1)
        if x < w - 1 and not result[idx + 1] and not barrier[idx + 1]:
            stack.append(idx + 1)
        if idx >= w and not result[idx - w] and not barrier[idx - w]:
            stack.append(idx - w)
        if idx < last_row and not result[idx + w] and not barrier[idx + w]:
            stack.append(idx + w)

    filled = np.frombuffer(bytes(result), dtype=np.uint8).reshape(h, w).copy()
    pdebug(f"fill_holes: exterior={int(np.count_nonzero(filled))} of {h * w}")
    return filled
