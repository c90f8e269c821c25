"""Tests for stroke descriptors and dash patterns.

Test cases:
    - SOLID has no pattern; DASHED is 3:1 and DOTTED 1:1 in pen widths
    - Pattern units never drop below one pixel
    - dash_mask measures from the stroke start
    - LineStyle rejects non-positive or non-finite widths
    - Fully transparent styles are invisible
"""

import math

import numpy as np
import pytest

from src.graph_paper.line_styles import LineStyle, dash_mask, dash_pattern
from src.utils.validators import DashStyle


def test_dash_patterns_scale_with_width():
    assert dash_pattern(DashStyle.SOLID, 2.0) is None
    assert dash_pattern(DashStyle.DASHED, 2.0) == (6.0, 2.0)
    assert dash_pattern(DashStyle.DOTTED, 2.0) == (2.0, 2.0)
    assert dash_pattern("dotted", 1.6) == pytest.approx((1.6, 1.6))


def test_dash_pattern_minimum_unit():
    assert dash_pattern(DashStyle.DASHED, 0.5) == (3.0, 1.0)


def test_dash_mask():
    t = np.arange(8, dtype=np.float64)
    np.testing.assert_array_equal(
        dash_mask(t, (3.0, 1.0)),
        [True, True, True, False, True, True, True, False]
    )
    np.testing.assert_array_equal(dash_mask(t, (1.0, 1.0)), t % 2 == 0)
    assert dash_mask(t, None).all()


@pytest.mark.parametrize("width", [0.0, -1.0, math.inf, math.nan])
def test_line_style_rejects_bad_width(width):
    with pytest.raises(ValueError, match="Line width must be positive"):
        LineStyle(width, (0, 0, 0, 255))


def test_line_style_visibility_and_pattern():
    assert LineStyle(1.0, (0, 0, 0, 1)).visible
    assert not LineStyle(1.0, (0, 0, 0, 0)).visible
    assert LineStyle(1.0, (0, 0, 0, 255), DashStyle.DOTTED).pattern() == (1.0, 1.0)


def test_line_style_is_immutable():
    style = LineStyle(1.0, (0, 0, 0, 255))
    with pytest.raises(AttributeError):
        style.width = 2.0
