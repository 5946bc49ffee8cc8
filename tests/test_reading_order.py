"""Tests for reading-order clustering."""

import pytest

from comicpanels.detector.reading_order import (
    COL,
    Cluster,
    Leaf,
    cluster_panels,
    flatten,
    sort_reading_order,
)
from comicpanels.detector.utils import BoundingBox

TL = BoundingBox(20, 20, 190, 190)
TR = BoundingBox(20, 210, 190, 380)
BL = BoundingBox(210, 20, 380, 190)
BR = BoundingBox(210, 210, 380, 380)


def test_grid_is_row_major():
    assert sort_reading_order([BR, TL, BL, TR]) == [TL, TR, BL, BR]


def test_grid_right_to_left():
    assert sort_reading_order([BR, TL, BL, TR], rtl=True) == [TR, TL, BR, BL]


def test_grid_tree_shape():
    tree = cluster_panels([BR, TL, BL, TR])
    assert isinstance(tree, Cluster)
    assert len(tree.children) == 2
    assert all(isinstance(child, Cluster) for child in tree.children)


def test_three_tier_page():
    wide = BoundingBox(0, 0, 100, 400)
    left = BoundingBox(110, 0, 200, 190)
    right = BoundingBox(110, 210, 200, 400)
    bottom = BoundingBox(210, 0, 300, 400)
    assert sort_reading_order([bottom, right, wide, left]) == [wide, left, right, bottom]


def test_column_nested_in_row():
    # Row of two: a tall left panel and a right column of two stacked panels
    tall = BoundingBox(0, 0, 200, 100)
    upper = BoundingBox(0, 110, 95, 200)
    lower = BoundingBox(105, 110, 200, 200)
    footer = BoundingBox(220, 0, 300, 200)
    # Row pass: tall/upper/lower share rows, footer is separate
    assert sort_reading_order([footer, lower, tall, upper]) == [tall, upper, lower, footer]


def test_single_cluster_falls_back_to_row_sort():
    # all three share rows, so the row pass finds one cluster
    a = BoundingBox(0, 0, 100, 50)
    b = BoundingBox(50, 100, 150, 150)
    c = BoundingBox(20, 200, 120, 250)
    assert sort_reading_order([c, a, b]) == [a, c, b]


def test_single_and_empty():
    assert sort_reading_order([]) == []
    assert sort_reading_order([TL]) == [TL]


def test_flatten_in_order():
    tree = Cluster((Leaf(TL), Cluster((Leaf(TR), Leaf(BL))), Leaf(BR)))
    assert flatten(tree) == [TL, TR, BL, BR]
    assert flatten(Leaf(TL)) == [TL]


def test_depth_limit_sorts_on_current_axis():
    tree = cluster_panels([TR, TL], axis=COL, depth=11, max_depth=10)
    assert flatten(tree) == [TL, TR]


def test_unknown_axis_rejected():
    with pytest.raises(ValueError):
        cluster_panels([TL, TR], axis="diagonal")


def test_deterministic():
    boxes = [BR, TL, BL, TR]
    assert sort_reading_order(boxes) == sort_reading_order(list(boxes))
