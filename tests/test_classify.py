"""Tests for line index classification and loop counts.

Test cases:
    - Cell 10, 5 cells per group, 2 groups per cluster: 0 → CLUSTER,
      1-4 → CELL, 5 → GROUP, 10 → CLUSTER
    - Every index maps to exactly one level (partition)
    - Multiples of the cluster period are always CLUSTER
    - Period of 1 makes every line a cluster line
    - Invalid inputs raise ValueError
    - Orthogonal and isometric loop counts

Run:
    pytest tests/test_classify.py -v
"""

import math

import pytest

from src.graph_paper.composer import (
    SINE_HELPER,
    classify,
    isometric_loop_counts,
    orthogonal_loop_counts,
)
from src.utils.validators import Level


# ============================================================================
# CLASSIFICATION
# ============================================================================

def test_classify_default_hierarchy():
    """Indices 0..5 with 5 cells per group and 2 groups per cluster."""
    levels = [classify(i, 5, 2) for i in range(6)]
    assert levels == [
        Level.CLUSTER, Level.CELL, Level.CELL, Level.CELL, Level.CELL, Level.GROUP
    ]
    assert classify(10, 5, 2) == Level.CLUSTER
    assert classify(15, 5, 2) == Level.GROUP
    assert classify(20, 5, 2) == Level.CLUSTER


@pytest.mark.parametrize("cpg,gpc", [(1, 1), (2, 3), (5, 2), (7, 10), (10, 10)])
def test_classify_is_partition(cpg, gpc):
    """Each index gets one level, and cluster multiples win over group multiples."""
    period = cpg * gpc
    for i in range(0, 3 * period + 1):
        level = classify(i, cpg, gpc)
        assert level in (Level.CELL, Level.GROUP, Level.CLUSTER)
        if i % period == 0:
            assert level == Level.CLUSTER
        elif i % cpg == 0:
            assert level == Level.GROUP
        else:
            assert level == Level.CELL


def test_classify_unit_periods_all_cluster():
    assert all(classify(i, 1, 1) == Level.CLUSTER for i in range(20))


def test_classify_group_equals_cluster_when_one_group():
    """One group per cluster: every group line is promoted to cluster."""
    assert classify(3, 3, 1) == Level.CLUSTER
    assert classify(4, 3, 1) == Level.CELL


def test_classify_rejects_negative_index():
    with pytest.raises(ValueError, match="non-negative"):
        classify(-1, 5, 2)


@pytest.mark.parametrize("cpg,gpc", [(0, 2), (5, 0), (-1, 1)])
def test_classify_rejects_bad_periods(cpg, gpc):
    with pytest.raises(ValueError, match="Periods must be >= 1"):
        classify(3, cpg, gpc)


# ============================================================================
# LOOP COUNTS
# ============================================================================

def test_orthogonal_loop_counts_use_own_axis():
    """Vertical count follows width, horizontal count follows height."""
    assert orthogonal_loop_counts(100, 100, 10) == (5, 5)
    assert orthogonal_loop_counts(200, 60, 10) == (10, 3)
    assert orthogonal_loop_counts(101, 21, 10) == (6, 2)


def test_isometric_loop_counts_200_square():
    """Cell 20 on 200x200: six reference-line iterations (i = 0..5)."""
    assert SINE_HELPER == pytest.approx(1.7320508, abs=1e-7)
    vertical, diagonal = isometric_loop_counts(200, 200, 20)
    assert vertical == 6
    expected_diagonal = math.ceil((200 + 200 * 0.5 / math.sin(math.radians(60))) / 20)
    assert diagonal == expected_diagonal == 16


def test_loop_counts_reject_zero_cell():
    with pytest.raises(ValueError, match="pitch must be positive"):
        orthogonal_loop_counts(100, 100, 0)
    with pytest.raises(ValueError, match="pitch must be positive"):
        isometric_loop_counts(100, 100, 0.0)
