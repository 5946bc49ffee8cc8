"""Tests for region merging, area filtering and box geometry."""

import pytest

from comicpanels.detector.filters import filter_by_area, merge_overlapping
from comicpanels.detector.utils import BoundingBox, OutputPanel, flat_index, neighbour_offsets

# A-B overlap, B-C overlap, A-C disjoint
A = BoundingBox(0, 0, 10, 10)
B = BoundingBox(5, 5, 15, 15)
C = BoundingBox(12, 12, 20, 20)


def test_chain_fixture_geometry():
    assert A.intersects(B)
    assert B.intersects(C)
    assert not A.intersects(C)


def test_merge_chain_in_order_abc():
    assert merge_overlapping([A, B, C]) == [BoundingBox(0, 0, 20, 20)]


def test_merge_is_single_pass_not_transitive():
    # B joins A first; the grown box is not re-checked against C
    merged = merge_overlapping([A, C, B])
    assert merged == [BoundingBox(0, 0, 15, 15), C]
    assert merged[0].intersects(merged[1])


def test_merge_absorbs_into_first_match_only():
    left = BoundingBox(0, 0, 10, 10)
    right = BoundingBox(0, 20, 10, 30)
    bridge = BoundingBox(2, 5, 8, 25)
    merged = merge_overlapping([left, right, bridge])
    assert merged == [BoundingBox(0, 0, 10, 25), right]


def test_touching_boxes_do_not_merge():
    top = BoundingBox(0, 0, 10, 10)
    bottom = BoundingBox(10, 0, 20, 10)
    assert merge_overlapping([top, bottom]) == [top, bottom]


def test_merge_does_not_mutate_input():
    regions = [A, B]
    merge_overlapping(regions)
    assert regions == [A, B]


def test_filter_by_area_threshold():
    kept = BoundingBox(0, 0, 10, 10)      # area 100 == 1% of 100x100
    dropped = BoundingBox(0, 0, 9, 10)    # area 90
    assert filter_by_area([kept, dropped], 100, 100, 0.01) == [kept]


def test_bounding_box_invariants():
    with pytest.raises(ValueError):
        BoundingBox(5, 0, 4, 10)
    box = BoundingBox(2, 3, 12, 8)
    assert (box.height, box.width, box.area) == (10, 5, 50)
    assert box.union(BoundingBox(0, 9, 1, 10)) == BoundingBox(0, 3, 12, 10)


def test_output_panel_rescale_and_clamp():
    panel = OutputPanel.from_box(BoundingBox(10, 20, 30, 50), 2.0)
    assert panel.to_dict() == {"left": 40, "top": 20, "width": 60, "height": 40}

    odd = OutputPanel.from_box(BoundingBox(1, 3, 2, 4), 1.5)
    assert (odd.left, odd.top, odd.width, odd.height) == (4, 1, 2, 2)

    clamped = OutputPanel(90, 5, 30, 10).clamp(100, 100)
    assert (clamped.left, clamped.width) == (90, 10)
    assert OutputPanel(100, 0, 10, 10).clamp(100, 100).is_empty


def test_flat_index():
    assert flat_index(0, 0, 7) == 0
    assert flat_index(2, 3, 7) == 17


def test_neighbour_offsets_cover_the_3x3_ring():
    width = 7
    center = flat_index(2, 3, width)
    around = sorted(center + off for off in neighbour_offsets(width))
    expected = sorted(
        flat_index(2 + dy, 3 + dx, width)
        for dy in (-1, 0, 1) for dx in (-1, 0, 1)
        if (dy, dx) != (0, 0)
    )
    assert around == expected
