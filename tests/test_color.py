"""Test RGBA parsing and alpha premultiplication.

Tests for src.utils.color:
    - parse_rgba accepts hex (with/without alpha, with/without '#') and tuples
    - Out-of-range, non-integer and malformed inputs are rejected
    - mix_colors truncates per channel
    - scale_alpha rounds to the nearest integer
    - premultiply → unpremultiply is exact for opaque and transparent pixels

Run:
    pytest tests/test_color.py -v
"""

import numpy as np
import pytest

from src.utils import color


@pytest.mark.parametrize("value,expected", [
    ("#FF8000", (255, 128, 0, 255)),
    ("ff800080", (255, 128, 0, 128)),
    ((1, 2, 3), (1, 2, 3, 255)),
    ([1, 2, 3, 4], (1, 2, 3, 4)),
    (np.array([5, 6, 7, 8]), (5, 6, 7, 8)),
])
def test_parse_rgba(value, expected):
    assert color.parse_rgba(value) == expected


@pytest.mark.parametrize("value,match", [
    ("#FFF", "RRGGBB"),
    ("#GGHHII", "Invalid hex"),
    ((0, 0, 256), "out of range"),
    ((0, 0, -1, 0), "out of range"),
    ((0.5, 0, 0), "integers"),
    ((True, 0, 0), "integers"),
    ((1, 2), "3 or 4 components"),
])
def test_parse_rgba_rejects(value, match):
    with pytest.raises(ValueError, match=match):
        color.parse_rgba(value)


def test_to_hex():
    assert color.to_hex((255, 128, 0, 16)) == "#FF800010"
    assert color.parse_rgba(color.to_hex((1, 2, 3, 4))) == (1, 2, 3, 4)


def test_mix_colors():
    assert color.mix_colors(color.BLACK, color.WHITE) == (127, 127, 127, 255)
    assert color.mix_colors((10, 11, 0, 0), (20, 20, 1, 255)) == (15, 15, 0, 127)


def test_scale_alpha():
    assert color.scale_alpha((1, 2, 3, 255), 85) == (1, 2, 3, 85)
    assert color.scale_alpha((1, 2, 3, 128), 85) == (1, 2, 3, 43)
    assert color.scale_alpha((1, 2, 3, 0), 85) == (1, 2, 3, 0)


def test_premultiply_values():
    px = np.array([[[200, 100, 50, 128]]], dtype=np.uint8)
    premul = color.premultiply(px)
    assert premul.dtype == np.float32
    np.testing.assert_array_equal(premul[0, 0], [200 * 128, 100 * 128, 50 * 128, 128])


def test_unpremultiply_roundtrip_uses_fallback_for_transparent():
    px = np.array([
        [[255, 0, 0, 255], [12, 34, 56, 7]],
        [[255, 255, 255, 0], [0, 0, 0, 0]],
    ], dtype=np.uint8)
    back = color.unpremultiply(color.premultiply(px), px.astype(np.float32))
    assert back.dtype == np.uint8
    np.testing.assert_array_equal(back, px)
