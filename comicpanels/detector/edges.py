"""Edge detection stages.

Grayscale reduction, separable Gaussian blur and Canny edge detection
(Sobel gradients, non-maximum suppression, double threshold, hysteresis).
All stages return new buffers and never modify their input.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from .utils import pdebug, neighbour_offsets

STRONG = 255
WEAK = 128

# Luma weights for R, G, B
LUMA = (0.299, 0.587, 0.114)


def to_grayscale(pixels: NDArray) -> NDArray:
    """Collapse an (H, W) or (H, W, C) buffer to float32 luminance.

    Single-channel input is copied verbatim; three or more channels are
    combined with the standard luma weights, ignoring alpha.
    """
    if pixels.ndim == 2:
        return pixels.astype(np.float32, copy=True)
    if pixels.ndim != 3:
        raise ValueError(f"Expected a 2-D or 3-D buffer, got ndim={pixels.ndim}")

    channels = pixels.shape[2]
    if channels == 1:
        return pixels[:, :, 0].astype(np.float32, copy=True)
    if channels < 3:
        raise ValueError(f"Unsupported channel count: {channels}")

    rgb = pixels[:, :, :3].astype(np.float32)
    gray = LUMA[0] * rgb[:, :, 0] + LUMA[1] * rgb[:, :, 1] + LUMA[2] * rgb[:, :, 2]
    return gray.astype(np.float32)


def gaussian_kernel(sigma: float) -> NDArray:
    """1-D Gaussian of odd length ceil(6 * sigma), normalised to sum 1."""
    if sigma <= 0:
        raise ValueError(f"sigma must be positive, got {sigma}")
    size = int(math.ceil(sigma * 6)) | 1
    center = size // 2
    x = np.arange(size, dtype=np.float64) - center
    kernel = np.exp(-(x * x) / (2.0 * sigma * sigma))
    return kernel / kernel.sum()


def gaussian_blur(image: NDArray, sigma: float = 1.4) -> NDArray:
    """Separable Gaussian blur with edge-replicate borders.

    Rows are convolved first, then columns. Out-of-range taps read the
    nearest valid pixel.
    """
    if image.ndim != 2:
        raise ValueError("gaussian_blur expects a single-channel buffer")

    kernel = gaussian_kernel(sigma)
    half = len(kernel) // 2
    h, w = image.shape
    src = image.astype(np.float64)

    padded = np.pad(src, ((0, 0), (half, half)), mode="edge")
    rows = np.zeros((h, w), dtype=np.float64)
    for k, weight in enumerate(kernel):
        rows += weight * padded[:, k:k + w]

    padded = np.pad(rows, ((half, half), (0, 0)), mode="edge")
    out = np.zeros((h, w), dtype=np.float64)
    for k, weight in enumerate(kernel):
        out += weight * padded[k:k + h, :]

    return out.astype(np.float32)


def sobel_gradients(image: NDArray) -> tuple[NDArray, NDArray]:
    """3x3 Sobel gradients (gx, gy); the 1-pixel border is left at zero."""
    h, w = image.shape
    gx = np.zeros((h, w), dtype=np.float64)
    gy = np.zeros((h, w), dtype=np.float64)
    if h < 3 or w < 3:
        return gx, gy

    p = image.astype(np.float64)
    tl, tc, tr = p[:-2, :-2], p[:-2, 1:-1], p[:-2, 2:]
    ml, mr = p[1:-1, :-2], p[1:-1, 2:]
    bl, bc, br = p[2:, :-2], p[2:, 1:-1], p[2:, 2:]

    gx[1:-1, 1:-1] = (tr + 2 * mr + br) - (tl + 2 * ml + bl)
    gy[1:-1, 1:-1] = (bl + 2 * bc + br) - (tl + 2 * tc + tr)
    return gx, gy


def non_maximum_suppression(magnitude: NDArray, gx: NDArray, gy: NDArray) -> NDArray:
    """Keep interior pixels whose magnitude is >= both neighbours along the gradient.

    Direction is folded into [0, 180) and quantised to 0/45/90/135 degrees.
    """
    h, w = magnitude.shape
    suppressed = np.zeros((h, w), dtype=np.float64)
    if h < 3 or w < 3:
        return suppressed

    m = magnitude
    center = m[1:-1, 1:-1]
    angle = (np.degrees(np.arctan2(gy[1:-1, 1:-1], gx[1:-1, 1:-1])) + 180.0) % 180.0

    horizontal = (angle < 22.5) | (angle >= 157.5)
    diag_up = (angle >= 22.5) & (angle < 67.5)
    vertical = (angle >= 67.5) & (angle < 112.5)

    n1 = np.select(
        [horizontal, diag_up, vertical],
        [m[1:-1, :-2], m[:-2, 2:], m[:-2, 1:-1]],
        default=m[:-2, :-2],
    )
    n2 = np.select(
        [horizontal, diag_up, vertical],
        [m[1:-1, 2:], m[2:, :-2], m[2:, 1:-1]],
        default=m[2:, 2:],
    )

    keep = (center >= n1) & (center >= n2)
    suppressed[1:-1, 1:-1] = np.where(keep, center, 0.0)
    return suppressed


def double_threshold(suppressed: NDArray, high_ratio: float, low_ratio: float) -> NDArray:
    """Classify pixels as strong (255), weak (128) or none (0).

    Thresholds are fractions of the buffer's own maximum. A buffer with no
    gradient at all yields no edges.
    """
    peak = float(suppressed.max()) if suppressed.size else 0.0
    edges = np.zeros(suppressed.shape, dtype=np.uint8)
    if peak <= 0.0:
        return edges

    high = peak * high_ratio
    low = peak * low_ratio
    edges[suppressed >= low] = WEAK
    edges[suppressed >= high] = STRONG
    return edges


def hysteresis(edges: NDArray) -> NDArray:
    """Promote weak pixels 8-connected to strong ones, then drop the rest.

    Walks outward from strong pixels with an explicit stack, which reaches
    the same fixed point as rescanning the whole buffer until nothing changes.
    """
    h, w = edges.shape
    result = edges.copy()
    if h < 3 or w < 3:
        result[result == WEAK] = 0
        return result

    # Only interior pixels take part in linking
    border = np.ones((h, w), dtype=bool)
    border[1:-1, 1:-1] = False
    result[border & (result == WEAK)] = 0

    # Seed only strong pixels that actually touch a weak one
    weak = np.zeros((h + 2, w + 2), dtype=bool)
    weak[1:-1, 1:-1] = result == WEAK
    touches_weak = np.zeros((h, w), dtype=bool)
    for dy in (0, 1, 2):
        for dx in (0, 1, 2):
            if dy == 1 and dx == 1:
                continue
            touches_weak |= weak[dy:dy + h, dx:dx + w]
    seeds = np.flatnonzero((result == STRONG) & touches_weak & ~border)

    buf = bytearray(result.tobytes())
    offsets = neighbour_offsets(w)
    stack = seeds.tolist()
    promoted = 0
    while stack:
        idx = stack.pop()
        for off in offsets:
            n = idx + off
            if buf[n] == WEAK:
                buf[n] = STRONG
                promoted += 1
                stack.append(n)

    result = np.frombuffer(bytes(buf), dtype=np.uint8).reshape(h, w).copy()
    result[result == WEAK] = 0
    pdebug(f"hysteresis: seeds={len(seeds)} promoted={promoted}")
    return result


def canny_edges(
    blurred: NDArray,
    high_ratio: float = 0.15,
    low_ratio: float = 0.05,
) -> NDArray:
    """Binary (0/255) Canny edge map of an already blurred buffer."""
    if blurred.ndim != 2:
        raise ValueError("canny_edges expects a single-channel buffer")

    gx, gy = sobel_gradients(blurred)
    magnitude = np.hypot(gx, gy)
    suppressed = non_maximum_suppression(magnitude, gx, gy)
    edges = double_threshold(suppressed, high_ratio, low_ratio)
    return hysteresis(edges)
