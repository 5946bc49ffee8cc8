"""Configuration dataclasses for comicpanels.

Using a dataclass provides:
- Type safety and IDE autocompletion
- Easy serialization to and from dicts / YAML
- Immutable defaults with mutable instances
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Any, Optional, Union
import copy

import yaml

from .exceptions import ConfigError


@dataclass
class SegmenterConfig:
    """Parameters of the panel segmentation pipeline.

    Canny thresholds and the area filter are relative to the page itself,
    so they do not depend on scan resolution.
    """

    # Detection resolution
    processing_width: int = 1500   # Pages wider than this are downscaled before detection

    # Edge detection
    blur_sigma: float = 1.4        # Gaussian sigma applied before Sobel
    canny_high_ratio: float = 0.15  # Strong edge threshold, fraction of max gradient
    canny_low_ratio: float = 0.05   # Weak edge threshold, fraction of max gradient

    # Morphology
    dilate_iterations: int = 2     # 3x3 dilation passes to close border gaps

    # Filtering and ordering
    min_area_ratio: float = 0.01   # Minimum panel area as fraction of page area
    max_cluster_depth: int = 10    # Recursion limit of the reading-order clustering
    reading_rtl: bool = False      # Right-to-left reading order (manga)

    # Output
    panel_format: str = ""         # Crop file extension, "" keeps the source extension
    annotate: bool = True          # Write the numbered overlay image
    delete_original: bool = False  # Remove the source page after a successful run
    debug: bool = False            # Dump intermediate stage buffers

    def copy(self) -> "SegmenterConfig":
        """Return a deep copy of this configuration."""
        return copy.deepcopy(self)

    def validate(self) -> "SegmenterConfig":
        """Check types and value ranges; returns self for chaining.

        Raises:
            ConfigError: a parameter has the wrong type or is out of range
        """
        self._check_types()
        if self.processing_width < 1:
            raise ConfigError(f"processing_width must be >= 1, got {self.processing_width}",
                              "processing_width")
        if self.blur_sigma <= 0:
            raise ConfigError(f"blur_sigma must be > 0, got {self.blur_sigma}", "blur_sigma")
        if self.dilate_iterations < 0:
            raise ConfigError(f"dilate_iterations must be >= 0, got {self.dilate_iterations}",
                              "dilate_iterations")
        for name in ("canny_high_ratio", "canny_low_ratio"):
            value = getattr(self, name)
            if not 0.0 < value <= 1.0:
                raise ConfigError(f"{name} must be in (0, 1], got {value}", name)
        if self.canny_low_ratio > self.canny_high_ratio:
            raise ConfigError("canny_low_ratio must not exceed canny_high_ratio", "canny_low_ratio")
        if not 0.0 <= self.min_area_ratio <= 1.0:
            raise ConfigError(f"min_area_ratio must be in [0, 1], got {self.min_area_ratio}",
                              "min_area_ratio")
        if self.max_cluster_depth < 0:
            raise ConfigError(f"max_cluster_depth must be >= 0, got {self.max_cluster_depth}",
                              "max_cluster_depth")
        if self.panel_format and not self.panel_format.startswith("."):
            self.panel_format = "." + self.panel_format
        return self

    def _check_types(self) -> None:
        """Reject values of the wrong type; ints are accepted for float fields."""
        for f in fields(self):
            value = getattr(self, f.name)
            if f.type is float and isinstance(value, int) and not isinstance(value, bool):
                setattr(self, f.name, float(value))
                continue
            if f.type in (int, float) and isinstance(value, bool):
                ok = False
            else:
                ok = isinstance(value, f.type)
            if not ok:
                raise ConfigError(
                    f"{f.name} must be {f.type.__name__}, got {type(value).__name__} {value!r}",
                    f.name,
                )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SegmenterConfig":
        """Create from dictionary, ignoring unknown keys."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

    def updated(self, **overrides: Any) -> "SegmenterConfig":
        """Copy with the given non-None fields replaced."""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return SegmenterConfig.from_dict(data)


# Preset configurations for different comic styles
PRESETS: Dict[str, SegmenterConfig] = {
    "Western": SegmenterConfig(),
    "Manga": SegmenterConfig(
        reading_rtl=True,
        dilate_iterations=2,
        min_area_ratio=0.008,
    ),
    "Fast": SegmenterConfig(
        processing_width=1000,
        blur_sigma=1.0,
        dilate_iterations=1,
    ),
}


def get_preset(name: str) -> SegmenterConfig:
    """Look up a preset by name, case-insensitively.

    Raises:
        ConfigError: no preset has that name
    """
    for key, preset in PRESETS.items():
        if key.lower() == name.lower():
            return preset.copy()
    raise ConfigError(f"Unknown preset {name!r}; choose from {', '.join(PRESETS)}", "preset")


def load_config(path: Union[str, Path], base: Optional[SegmenterConfig] = None) -> SegmenterConfig:
    """Load a configuration from a YAML file.

    An optional top-level `preset:` key selects the starting point; the
    remaining keys override it.

    Raises:
        ConfigError: the file is unreadable, not a mapping, or holds bad values
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Could not load config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {path} must be a mapping, got {type(data).__name__}")

    preset = data.pop("preset", None)
    if preset is not None and not isinstance(preset, str):
        raise ConfigError(f"preset in {path} must be a name, got {preset!r}", "preset")
    config = get_preset(preset) if preset else (base.copy() if base else SegmenterConfig())

    unknown = sorted(str(k) for k in data if k not in SegmenterConfig.__dataclass_fields__)
    if unknown:
        raise ConfigError(f"Unknown config keys in {path}: {unknown}")

    return config.updated(**data).validate()
