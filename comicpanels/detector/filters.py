"""Post-processing of candidate regions.

Filters:
- Overlap merging (single pass, order dependent)
- Area filtering against the page area
"""

from __future__ import annotations

from typing import List, Sequence

from .utils import BoundingBox, pdebug


def merge_overlapping(regions: Sequence[BoundingBox]) -> List[BoundingBox]:
    """Merge each region into the first already-merged box it intersects.

    This is one pass in input order: after a region is absorbed the grown
    box is not re-checked against the other merged boxes. With A-B and B-C
    overlapping but A-C disjoint, input A, B, C yields one box while input
    A, C, B yields two.

    Args:
        regions: Candidate boxes in label order

    Returns:
        Merged boxes in order of first appearance
    """
    merged: List[BoundingBox] = []
    for region in regions:
        for i, panel in enumerate(merged):
            if region.intersects(panel):
                merged[i] = region.union(panel)
                break
        else:
            merged.append(region)

    pdebug(f"merge_overlapping: {len(regions)} -> {len(merged)}")
    return merged


def filter_by_area(
    boxes: Sequence[BoundingBox],
    width: int,
    height: int,
    min_area_ratio: float = 0.01,
) -> List[BoundingBox]:
    """Drop boxes smaller than min_area_ratio of the width x height page."""
    min_area = min_area_ratio * width * height
    kept = [b for b in boxes if b.area >= min_area]
    if len(kept) < len(boxes):
        pdebug(f"filter_by_area: dropped {len(boxes) - len(kept)} below {min_area:.0f}px")
    return kept
