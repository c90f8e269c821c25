"""Rectangles, tiling and loop-count numerics.

Core utilities:
    - Rect: Integer pixel rectangle (left, top, width, height)
    - tile_rects(): Split a rectangle into non-overlapping tiles
    - ceil_loops(): Number of line iterations that fit a span

Invariants:
    - Rectangles are half-open: columns [left, right), rows [top, bottom)
    - Tiles produced by tile_rects() never overlap and cover the bounds exactly
"""

import math
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class Rect:
    """Integer pixel rectangle, half-open on right/bottom."""

    left: int
    top: int
    width: int
    height: int

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Rect size must be non-negative, got {self.width}x{self.height}")

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height

    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def intersect(self, other: 'Rect') -> 'Rect':
        """Return the overlap of two rectangles (possibly empty)."""
        left = max(self.left, other.left)
        top = max(self.top, other.top)
        right = min(self.right, other.right)
        bottom = min(self.bottom, other.bottom)
        return Rect(left, top, max(0, right - left), max(0, bottom - top))

    @classmethod
    def from_size(cls, width: int, height: int) -> 'Rect':
        return cls(0, 0, width, height)


def tile_rects(bounds: Rect, tile_size: int) -> List[Rect]:
    """Split bounds into square tiles, row-major.

    Parameters
    ----------
    bounds : Rect
        Region to cover
    tile_size : int
        Tile edge in pixels (edge tiles are clipped to bounds)

    Returns
    -------
    list[Rect]
        Disjoint tiles covering bounds; empty for empty bounds

    Notes
    -----
    Unlike overlapping blend tiles, these are meant for independent
    workers writing disjoint destination pixels.
    """
    if tile_size <= 0:
        raise ValueError(f"tile_size must be positive, got {tile_size}")

    tiles = []
    for y in range(bounds.top, bounds.bottom, tile_size):
        for x in range(bounds.left, bounds.right, tile_size):
            w = min(tile_size, bounds.right - x)
            h = min(tile_size, bounds.bottom - y)
            tiles.append(Rect(x, y, w, h))
    return tiles


def ceil_loops(span: float, pitch: float) -> int:
    """Number of pitch steps needed to reach span: ceil(span / pitch).

    Raises
    ------
    ValueError
        If pitch is not a positive finite number or span is not finite
    """
    if not math.isfinite(pitch) or pitch <= 0:
        raise ValueError(f"pitch must be positive and finite, got {pitch}")
    if not math.isfinite(span):
        raise ValueError(f"span must be finite, got {span}")
    return int(math.ceil(span / pitch))
