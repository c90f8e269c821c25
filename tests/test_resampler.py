"""Tests for bilinear sampling and tile painting.

Tests for src.graph_paper.resampler:
    - Zero offset over the full bounds reproduces the composed buffer
    - Offsets translate the grid; samples outside the buffer clamp to edges
    - Midpoint sampling blends neighbours
    - Transparent neighbours don't darken colors (premultiplied blending)
    - Cancellation before and during a tile
    - Destination validation and tile clipping
    - Wide rows split across remap calls
    - Buffers wider than OpenCV's remap limit paint through source windows

Run:
    pytest tests/test_resampler.py -v
"""

import threading

import numpy as np
import pytest

from src.graph_paper import resampler
from src.graph_paper.composer import ComposedBuffer, compose
from src.graph_paper.resampler import bilinear_sample, paint, sample_row
from src.utils.color import TRANSPARENT
from src.utils.compute import Rect
from src.utils.validators import make_grid_config


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(scope="module")
def grid_buffer():
    """64x48 orthogonal grid on opaque white (every pixel has alpha 255)."""
    config = make_grid_config(
        cell_size_px=6,
        cells_per_group=2,
        groups_per_cluster=2,
        cell_color=(200, 40, 40, 255),
        group_color=(40, 200, 40, 255),
        cluster_color=(40, 40, 200, 255),
        output_width=64,
        output_height=48,
    )
    return compose(config)


@pytest.fixture(scope="module")
def transparent_buffer():
    config = make_grid_config(
        cell_size_px=5,
        background_color=TRANSPARENT,
        output_width=30,
        output_height=20,
    )
    return compose(config)


def make_buffer(rows):
    return ComposedBuffer(np.array(rows, dtype=np.uint8))


# ============================================================================
# PAINT
# ============================================================================

def test_identity_paint_reproduces_buffer(grid_buffer):
    dst = np.zeros((48, 64, 4), dtype=np.uint8)
    assert paint(dst, grid_buffer, (0, 0), Rect(0, 0, 64, 48)) is True
    np.testing.assert_array_equal(dst, grid_buffer.pixels)


def test_identity_paint_keeps_transparent_pixels(transparent_buffer):
    dst = np.zeros((20, 30, 4), dtype=np.uint8)
    assert paint(dst, transparent_buffer, (0, 0), Rect(0, 0, 30, 20))
    np.testing.assert_array_equal(dst, transparent_buffer.pixels)


def test_offset_paint_translates_and_clamps(grid_buffer):
    dst = np.zeros((60, 80, 4), dtype=np.uint8)
    assert paint(dst, grid_buffer, (10, 5), Rect(0, 0, 80, 60))
    src = grid_buffer.pixels
    np.testing.assert_array_equal(dst[5:53, 10:74], src)
    # Outside the buffer: nearest edge pixel
    np.testing.assert_array_equal(dst[0, 0], src[0, 0])
    np.testing.assert_array_equal(dst[59, 79], src[47, 63])
    np.testing.assert_array_equal(dst[20, 0], src[15, 0])


def test_paint_only_writes_tile(grid_buffer):
    dst = np.zeros((48, 64, 4), dtype=np.uint8)
    assert paint(dst, grid_buffer, (0, 0), Rect(8, 4, 10, 6))
    np.testing.assert_array_equal(dst[4:10, 8:18], grid_buffer.pixels[4:10, 8:18])
    assert not dst[:4].any()
    assert not dst[10:].any()
    assert not dst[:, :8].any()
    assert not dst[:, 18:].any()


def test_paint_clips_tile_to_destination(grid_buffer):
    dst = np.zeros((48, 64, 4), dtype=np.uint8)
    assert paint(dst, grid_buffer, (0, 0), Rect(60, 40, 100, 100))
    np.testing.assert_array_equal(dst[40:, 60:], grid_buffer.pixels[40:, 60:])
    assert paint(dst, grid_buffer, (0, 0), Rect(500, 500, 10, 10))


def test_paint_rejects_bad_destination(grid_buffer):
    with pytest.raises(ValueError, match="uint8"):
        paint(np.zeros((4, 4, 4), dtype=np.float32), grid_buffer, (0, 0), Rect(0, 0, 4, 4))
    with pytest.raises(ValueError, match="uint8"):
        paint(np.zeros((4, 4, 3), dtype=np.uint8), grid_buffer, (0, 0), Rect(0, 0, 4, 4))
    dst = np.zeros((4, 4, 4), dtype=np.uint8)
    dst.flags.writeable = False
    with pytest.raises(ValueError, match="read-only"):
        paint(dst, grid_buffer, (0, 0), Rect(0, 0, 4, 4))


def test_paint_rejects_bad_cancel_token(grid_buffer):
    dst = np.zeros((4, 4, 4), dtype=np.uint8)
    with pytest.raises(TypeError, match="cancel must be"):
        paint(dst, grid_buffer, (0, 0), Rect(0, 0, 4, 4), cancel=1)


# ============================================================================
# CANCELLATION
# ============================================================================

def test_cancel_event_set_before_paint(grid_buffer):
    dst = np.zeros((48, 64, 4), dtype=np.uint8)
    cancel = threading.Event()
    cancel.set()
    assert paint(dst, grid_buffer, (0, 0), Rect(0, 0, 64, 48), cancel=cancel) is False
    assert not dst.any()


def test_cancel_mid_tile_keeps_finished_rows(grid_buffer):
    dst = np.zeros((48, 64, 4), dtype=np.uint8)
    calls = []

    def cancel():
        calls.append(1)
        return len(calls) > 3

    assert paint(dst, grid_buffer, (0, 0), Rect(0, 0, 64, 48), cancel=cancel) is False
    np.testing.assert_array_equal(dst[:3], grid_buffer.pixels[:3])
    assert not dst[3:].any()
    assert len(calls) == 4


# ============================================================================
# SAMPLING
# ============================================================================

def test_bilinear_midpoint():
    buffer = make_buffer([[(0, 0, 0, 255), (200, 100, 50, 255)]])
    assert bilinear_sample(buffer, 0.5, 0.0) == (100, 50, 25, 255)
    assert bilinear_sample(buffer, 0.0, 0.0) == (0, 0, 0, 255)
    assert bilinear_sample(buffer, 1.0, 0.0) == (200, 100, 50, 255)


def test_bilinear_vertical_midpoint():
    buffer = make_buffer([[(0, 0, 0, 255)], [(100, 200, 40, 255)]])
    assert bilinear_sample(buffer, 0.0, 0.5) == (50, 100, 20, 255)


def test_transparent_neighbour_does_not_bleed():
    buffer = make_buffer([[(255, 0, 0, 255), (0, 0, 255, 0)]])
    r, g, b, a = bilinear_sample(buffer, 0.5, 0.0)
    assert (r, g, b) == (255, 0, 0)
    assert a in (127, 128)


def test_out_of_bounds_clamps_to_edge():
    buffer = make_buffer([
        [(10, 20, 30, 255), (40, 50, 60, 255)],
        [(70, 80, 90, 255), (100, 110, 120, 255)],
    ])
    assert bilinear_sample(buffer, -10.0, -10.0) == (10, 20, 30, 255)
    assert bilinear_sample(buffer, 1000.0, 1000.0) == (100, 110, 120, 255)
    assert bilinear_sample(buffer, -3.0, 1.0) == (70, 80, 90, 255)


def test_sample_row_splits_wide_rows(grid_buffer, monkeypatch):
    monkeypatch.setattr(resampler, "MAX_ROW_SAMPLES", 7)
    xs = np.arange(64, dtype=np.float32)
    row = sample_row(grid_buffer, xs, 12.0)
    np.testing.assert_array_equal(row, grid_buffer.pixels[12])


def test_sample_row_splits_wide_source_windows(grid_buffer, monkeypatch):
    monkeypatch.setattr(resampler, "MAX_WINDOW_COLS", 5)
    xs = np.array([0.0, 63.0, 31.5, -4.0, 70.0], dtype=np.float64)
    row = sample_row(grid_buffer, xs, 47.0)
    src = grid_buffer.pixels[47]
    np.testing.assert_array_equal(row[0], src[0])
    np.testing.assert_array_equal(row[1], src[63])
    np.testing.assert_array_equal(row[3], src[0])
    np.testing.assert_array_equal(row[4], src[63])


# ============================================================================
# LARGE BUFFERS
# ============================================================================

@pytest.fixture(scope="module")
def wide_buffer():
    """33000x2 buffer, wider than OpenCV's per-side remap limit."""
    config = make_grid_config(cell_size_px=100, output_width=33000, output_height=2)
    return compose(config)


def test_paint_tile_from_wide_buffer(wide_buffer):
    dst = np.zeros((2, 10, 4), dtype=np.uint8)
    assert paint(dst, wide_buffer, (0, 0), Rect(0, 0, 10, 2))
    np.testing.assert_array_equal(dst, wide_buffer.pixels[:, :10])


def test_paint_far_edge_of_wide_buffer(wide_buffer):
    dst = np.zeros((2, 33000, 4), dtype=np.uint8)
    assert paint(dst, wide_buffer, (0, 0), Rect(32990, 0, 10, 2))
    np.testing.assert_array_equal(dst[:, 32990:], wide_buffer.pixels[:, 32990:])
    assert not dst[:, :32990].any()


def test_wide_buffer_samples_clamp_to_edges(wide_buffer):
    src = wide_buffer.pixels
    assert bilinear_sample(wide_buffer, 40000.0, 5.0) == tuple(int(v) for v in src[1, -1])
    assert bilinear_sample(wide_buffer, -1.0, -1.0) == tuple(int(v) for v in src[0, 0])
    row = sample_row(wide_buffer, np.array([0.0, 32999.0]), 0.0)
    np.testing.assert_array_equal(row, src[0, [0, 32999]])
