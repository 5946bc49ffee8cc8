"""
comicpanels - pytest configuration and fixtures

Synthetic pages shared by all tests: white pages with black panel borders.
"""

from pathlib import Path

import cv2
import numpy as np
import pytest


def draw_page(width, height, rects, thickness=4, channels=3):
    """White page with black rectangle outlines.

    rects: iterable of (x1, y1, x2, y2) inclusive corners.
    """
    page = np.full((height, width, 3), 255, dtype=np.uint8)
    for x1, y1, x2, y2 in rects:
        cv2.rectangle(page, (x1, y1), (x2, y2), (0, 0, 0), thickness)
    if channels == 1:
        return page[:, :, 0].copy()
    if channels == 4:
        alpha = np.full((height, width, 1), 255, dtype=np.uint8)
        return np.concatenate([page, alpha], axis=2)
    return page


# 2x2 grid on a 400x400 page, 20px gutters, listed row-major
GRID_RECTS = [
    (20, 20, 190, 190),
    (210, 20, 380, 190),
    (20, 210, 190, 380),
    (210, 210, 380, 380),
]


@pytest.fixture
def page_factory():
    """Returns draw_page(width, height, rects, thickness=4, channels=3)."""
    return draw_page


@pytest.fixture
def grid_rects():
    return list(GRID_RECTS)


@pytest.fixture
def grid_page():
    """400x400 RGB page with a 2x2 panel grid."""
    return draw_page(400, 400, GRID_RECTS)


@pytest.fixture
def white_page():
    """300x200 blank RGB page."""
    return np.full((200, 300, 3), 255, dtype=np.uint8)


@pytest.fixture
def write_page(tmp_path):
    """Writes an RGB array as an image file and returns its path."""
    def _write(pixels, name="page.png", directory=None):
        directory = Path(directory) if directory else tmp_path / "pages"
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        if pixels.ndim == 2:
            img = pixels
        elif pixels.shape[2] == 4:
            img = cv2.cvtColor(pixels, cv2.COLOR_RGBA2BGRA)
        else:
            img = cv2.cvtColor(pixels, cv2.COLOR_RGB2BGR)
        assert cv2.imwrite(str(path), img)
        return path
    return _write
