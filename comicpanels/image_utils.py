"""Raster decoding and conversion utilities for comicpanels.

Pages are held as RasterBuffer values: an immutable NumPy array in RGB(A)
channel order. OpenCV is used only at the I/O boundary (decoding, resizing,
encoding); the segmentation stages work on the raw arrays.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import cv2
import numpy as np
from numpy.typing import NDArray

from .exceptions import ImageDecodeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RasterBuffer:
    """Decoded page pixels.

    pixels has shape (H, W) or (H, W, C) with C in {1, 3, 4}, dtype uint8,
    channels in RGB(A) order. The array is read-only.
    """
    pixels: NDArray

    @classmethod
    def from_array(cls, arr: NDArray) -> "RasterBuffer":
        """Validate and freeze a copy of arr."""
        arr = np.asarray(arr)
        if arr.ndim not in (2, 3):
            raise ValueError(f"Expected a 2-D or 3-D pixel array, got ndim={arr.ndim}")
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            raise ValueError(f"Empty raster: {arr.shape}")
        if arr.ndim == 3 and arr.shape[2] not in (1, 3, 4):
            raise ValueError(f"Unsupported channel count: {arr.shape[2]}")
        if arr.dtype != np.uint8:
            arr = np.clip(arr, 0, 255).astype(np.uint8)
        pixels = np.array(arr, dtype=np.uint8, copy=True, order="C")
        pixels.setflags(write=False)
        return cls(pixels=pixels)

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def channels(self) -> int:
        return 1 if self.pixels.ndim == 2 else int(self.pixels.shape[2])

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4


def _writable(arr: NDArray) -> NDArray:
    """OpenCV bindings reject read-only arrays in some builds."""
    return arr if arr.flags.writeable else arr.copy()


def load_raster(path: Union[str, Path]) -> RasterBuffer:
    """Decode an image file into a RasterBuffer.

    Raises:
        ImageDecodeError: the file is missing, unreadable or has no pixels
    """
    path = Path(path)
    if not path.is_file():
        raise ImageDecodeError(f"Image not found: {path}", page=str(path))

    # imread does not understand non-ASCII paths on every platform
    data = np.fromfile(str(path), dtype=np.uint8)
    img = cv2.imdecode(data, cv2.IMREAD_UNCHANGED) if data.size else None
    if img is None or img.ndim < 2 or img.shape[0] == 0 or img.shape[1] == 0:
        raise ImageDecodeError(f"Could not read image dimensions: {path}", page=str(path))

    if img.dtype == np.uint16:
        img = (img // 257).astype(np.uint8)

    if img.ndim == 3:
        if img.shape[2] == 3:
            img = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        elif img.shape[2] == 4:
            img = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)

    logger.debug("Loaded %s: %dx%d", path.name, img.shape[1], img.shape[0])
    return RasterBuffer.from_array(img)


def drop_alpha(raster: RasterBuffer) -> RasterBuffer:
    """Return the raster without its alpha channel."""
    if not raster.has_alpha:
        return raster
    return RasterBuffer.from_array(raster.pixels[:, :, :3])


def resize_to_width(raster: RasterBuffer, width: int) -> RasterBuffer:
    """Resize keeping the aspect ratio; a no-op when the width already matches."""
    if width == raster.width:
        return raster
    height = max(1, int(round(raster.height * width / raster.width)))
    interpolation = cv2.INTER_AREA if width < raster.width else cv2.INTER_LINEAR
    resized = cv2.resize(_writable(raster.pixels), (width, height), interpolation=interpolation)
    logger.debug("Scaling: %dx%d -> %dx%d", raster.width, raster.height, width, height)
    return RasterBuffer.from_array(resized)


def to_bgr(pixels: NDArray) -> NDArray:
    """Convert an RGB(A) or gray array to OpenCV's BGR(A) order for encoding."""
    if pixels.ndim == 2:
        return np.ascontiguousarray(pixels)
    if pixels.shape[2] == 1:
        return np.ascontiguousarray(pixels[:, :, 0])
    if pixels.shape[2] == 4:
        return cv2.cvtColor(_writable(pixels), cv2.COLOR_RGBA2BGRA)
    return cv2.cvtColor(_writable(pixels), cv2.COLOR_RGB2BGR)


def write_image(path: Union[str, Path], pixels: NDArray) -> None:
    """Encode an RGB(A) array to disk, format chosen from the suffix.

    Raises:
        OSError: the image could not be encoded or written
    """
    path = Path(path)
    suffix = path.suffix.lower() or ".png"
    if suffix in (".jpg", ".jpeg") and pixels.ndim == 3 and pixels.shape[2] == 4:
        pixels = pixels[:, :, :3]
    ok, encoded = cv2.imencode(suffix, to_bgr(pixels))
    if not ok:
        raise OSError(f"Could not encode image as {suffix}: {path}")
    encoded.tofile(str(path))
