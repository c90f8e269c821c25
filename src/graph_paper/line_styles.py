"""Immutable stroke descriptors and dash patterns.

A LineStyle is built once per draw call and handed to the rasterizer, so no
pen state carries over from one level to the next.

Dash patterns (on, off) are expressed in units of pen width, like GDI pens:
    - SOLID: continuous
    - DASHED: 3 on / 1 off
    - DOTTED: 1 on / 1 off
Lengths never drop below one pixel, and every pattern restarts at the
stroke's own start point.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from src.utils.color import RGBA
from src.utils.validators import DashStyle

DASH_UNITS = {
    DashStyle.SOLID: None,
    DashStyle.DASHED: (3.0, 1.0),
    DashStyle.DOTTED: (1.0, 1.0),
}


@dataclass(frozen=True)
class LineStyle:
    """Stroke descriptor: width (px), straight RGBA color, dash, smoothing."""

    width: float
    color: RGBA
    dash: DashStyle = DashStyle.SOLID
    antialias: bool = False

    def __post_init__(self):
        if not np.isfinite(self.width) or self.width <= 0:
            raise ValueError(f"Line width must be positive, got {self.width}")

    @property
    def visible(self) -> bool:
        return self.color[3] > 0

    def pattern(self) -> Optional[Tuple[float, float]]:
        """Dash (on, off) lengths in pixels, or None for a solid stroke."""
        return dash_pattern(self.dash, self.width)


def dash_pattern(dash: DashStyle, width: float) -> Optional[Tuple[float, float]]:
    """Scale a dash style to pixel lengths for the given pen width."""
    units = DASH_UNITS[DashStyle(dash)]
    if units is None:
        return None
    unit = max(1.0, float(width))
    return units[0] * unit, units[1] * unit


def dash_mask(t: np.ndarray, pattern: Optional[Tuple[float, float]]) -> np.ndarray:
    """Boolean mask of positions ``t`` (px from stroke start) inside a dash."""
    if pattern is None:
        return np.ones(t.shape, dtype=bool)
    on, off = pattern
    return np.mod(t, on + off) < on
