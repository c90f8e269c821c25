"""Test rectangles, tiling and loop counts.

Tests for src.utils.compute:
    - Rect edges, emptiness and intersection
    - tile_rects covers bounds exactly with disjoint tiles (ragged edges too)
    - ceil_loops matches ceil(span / pitch) and rejects bad pitches

Run:
    pytest tests/test_compute.py -v
"""

import math

import numpy as np
import pytest

from src.utils.compute import Rect, ceil_loops, tile_rects


# ============================================================================
# RECT
# ============================================================================

def test_rect_edges():
    r = Rect(3, 4, 10, 5)
    assert (r.right, r.bottom) == (13, 9)
    assert not r.is_empty()
    assert Rect(0, 0, 0, 5).is_empty()
    assert Rect.from_size(7, 2) == Rect(0, 0, 7, 2)


def test_rect_rejects_negative_size():
    with pytest.raises(ValueError, match="non-negative"):
        Rect(0, 0, -1, 3)


def test_rect_intersect():
    a = Rect(0, 0, 10, 10)
    assert a.intersect(Rect(5, 5, 10, 10)) == Rect(5, 5, 5, 5)
    assert a.intersect(Rect(-3, 2, 5, 100)) == Rect(0, 2, 2, 8)
    assert a.intersect(Rect(20, 20, 5, 5)).is_empty()


# ============================================================================
# TILING
# ============================================================================

@pytest.mark.parametrize("bounds,tile_size", [
    (Rect(0, 0, 64, 64), 16),
    (Rect(5, 7, 70, 33), 16),
    (Rect(0, 0, 3, 100), 256),
    (Rect(2, 2, 1, 1), 1),
])
def test_tiles_cover_bounds_exactly(bounds, tile_size):
    tiles = tile_rects(bounds, tile_size)
    hits = np.zeros((bounds.bottom, bounds.right), dtype=np.int32)
    for t in tiles:
        assert t.width <= tile_size and t.height <= tile_size
        hits[t.top:t.bottom, t.left:t.right] += 1
    covered = hits[bounds.top:bounds.bottom, bounds.left:bounds.right]
    assert np.all(covered == 1)
    assert hits.sum() == bounds.width * bounds.height


def test_tiles_row_major():
    tiles = tile_rects(Rect(0, 0, 20, 20), 10)
    assert [(t.left, t.top) for t in tiles] == [(0, 0), (10, 0), (0, 10), (10, 10)]


def test_tiles_empty_bounds():
    assert tile_rects(Rect(0, 0, 0, 10), 8) == []


def test_tiles_reject_bad_size():
    with pytest.raises(ValueError, match="tile_size must be positive"):
        tile_rects(Rect(0, 0, 10, 10), 0)


# ============================================================================
# LOOP COUNTS
# ============================================================================

@pytest.mark.parametrize("span,pitch,expected", [
    (50.0, 10.0, 5),
    (50.5, 10.0, 6),
    (0.0, 10.0, 0),
    (200.0, 20 * math.sqrt(3), 6),
])
def test_ceil_loops(span, pitch, expected):
    assert ceil_loops(span, pitch) == expected


@pytest.mark.parametrize("pitch", [0.0, -2.0, math.inf, math.nan])
def test_ceil_loops_rejects_bad_pitch(pitch):
    with pytest.raises(ValueError, match="pitch must be positive"):
        ceil_loops(10.0, pitch)


def test_ceil_loops_rejects_non_finite_span():
    with pytest.raises(ValueError, match="span must be finite"):
        ceil_loops(math.inf, 1.0)
