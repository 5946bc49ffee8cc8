"""Exceptions raised by comicpanels.

All errors derive from ComicPanelsError so callers can catch the whole
family at the page boundary.
"""

from typing import Optional


class ComicPanelsError(Exception):
    """Base exception for the comicpanels package."""
    pass


class ImageDecodeError(ComicPanelsError):
    """The page image could not be read or has no usable dimensions."""
    def __init__(self, message: str, page: Optional[str] = None):
        super().__init__(message)
        self.page = page


class ConfigError(ComicPanelsError):
    """Invalid segmentation configuration."""
    def __init__(self, message: str, field_name: Optional[str] = None):
        super().__init__(message)
        self.field_name = field_name


class OutputConflictError(ComicPanelsError):
    """The page's output location is taken by something comicpanels did not write."""
    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path
