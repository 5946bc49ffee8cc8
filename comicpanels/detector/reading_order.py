"""Reading-order reconstruction.

Panels are grouped recursively, alternating between row and column passes,
into a PanelTree that is flattened into the final reading sequence.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple, Union

from .utils import BoundingBox

ROW = "row"
COL = "col"


@dataclass(frozen=True)
class Leaf:
    box: BoundingBox


@dataclass(frozen=True)
class Cluster:
    children: Tuple["PanelTree", ...]


PanelTree = Union[Leaf, Cluster]


def _other(axis: str) -> str:
    return COL if axis == ROW else ROW


def _aligned(a: BoundingBox, b: BoundingBox, axis: str) -> bool:
    """Whether the two boxes' projections overlap on the given axis."""
    if axis == ROW:
        return a.min_row < b.max_row and b.min_row < a.max_row
    return a.min_col < b.max_col and b.min_col < a.max_col


def _position(box: BoundingBox, axis: str, rtl: bool) -> int:
    """Sort key along an axis; right-to-left pages read columns from the right edge."""
    if axis == ROW:
        return box.min_row
    return -box.max_col if rtl else box.min_col


def _sorted_leaves(boxes: Sequence[BoundingBox], axis: str, rtl: bool) -> Cluster:
    ordered = sorted(boxes, key=lambda b: _position(b, axis, rtl))
    return Cluster(tuple(Leaf(b) for b in ordered))


def cluster_panels(
    boxes: Sequence[BoundingBox],
    axis: str = ROW,
    depth: int = 0,
    max_depth: int = 10,
    rtl: bool = False,
) -> Cluster:
    """Build the nested row/column grouping of the boxes.

    A box joins the first cluster holding any box aligned with it on the
    current axis. When nothing separates the boxes (a single cluster), or
    past max_depth, they are sorted along the axis instead. Multi-box
    clusters recurse on the other axis.
    """
    if axis not in (ROW, COL):
        raise ValueError(f"Unknown axis: {axis!r}")
    if depth > max_depth or len(boxes) <= 1:
        return _sorted_leaves(boxes, axis, rtl)

    clusters: List[List[BoundingBox]] = []
    for box in boxes:
        for cluster in clusters:
            if any(_aligned(member, box, axis) for member in cluster):
                cluster.append(box)
                break
        else:
            clusters.append([box])

    if len(clusters) == 1:
        return _sorted_leaves(boxes, axis, rtl)

    clusters.sort(key=lambda c: _position(c[0], axis, rtl))

    children: List[PanelTree] = []
    for cluster in clusters:
        if len(cluster) > 1:
            children.append(cluster_panels(cluster, _other(axis), depth + 1, max_depth, rtl))
        else:
            children.append(Leaf(cluster[0]))
    return Cluster(tuple(children))


def flatten(tree: PanelTree) -> List[BoundingBox]:
    """In-order traversal of a PanelTree into a flat box sequence."""
    ordered: List[BoundingBox] = []
    stack: List[PanelTree] = [tree]
    while stack:
        node = stack.pop()
        if isinstance(node, Leaf):
            ordered.append(node.box)
        else:
            stack.extend(reversed(node.children))
    return ordered


def sort_reading_order(
    boxes: Sequence[BoundingBox],
    rtl: bool = False,
    max_depth: int = 10,
) -> List[BoundingBox]:
    """Return the boxes in reading order (rows top to bottom, then across).

    Args:
        boxes: Panel boxes
        rtl: Right-to-left reading order (manga)
        max_depth: Recursion limit of the clustering

    Returns:
        Sorted list of boxes
    """
    if not boxes:
        return []
    return flatten(cluster_panels(list(boxes), ROW, 0, max_depth, rtl))
