"""Grid composer: plans classified grid lines and rasterizes them.

This is a deterministic, pure-CPU implementation: one GridConfig in, one
read-only RGBA buffer out. Nothing is read from or written to disk.

Architecture:
    - classify(): three-way partition of line indices (cell/group/cluster)
    - plan_grid_lines(): GridConfig → ordered list of styled GridLine segments
    - GridRasterizer: float32 working canvas, per-stroke coverage masks
      computed in row bands around each segment, source-over compositing
    - compose(): plan + rasterize → ComposedBuffer

Invariants:
    - Pixel (col, row) has its center at integer coordinate (col, row)
    - Draw order is bottom to top: cell, group, cluster (isometric reference
      lines come before all diagonals)
    - Every line index maps to exactly one level; nothing is drawn twice
    - Straight alpha in and out; float32 only inside the rasterizer
    - Deterministic: identical configs give bit-identical buffers

Geometry:
    Orthogonal lines sit at center ± cell_size·i (a single line at i = 0).
    Isometric reference lines sit at center ± (cell_size/2)·√3·i, and the two
    diagonal families run from (0, cell_size·i) to (cell_size·i·√3, 0) and
    from (width, cell_size·i) to (width - cell_size·i·√3, 0).
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np

from src.utils import compute, hashing
from src.utils.color import RGBA, premultiply, scale_alpha
from src.utils.validators import (
    GridConfig,
    GridConfigError,
    Level,
    Projection,
    grid_config_from_dict,
)

from .line_styles import LineStyle, dash_mask

logger = logging.getLogger(__name__)

Point = Tuple[float, float]

RAD30 = math.radians(30.0)
RAD60 = math.radians(60.0)
SINE_HELPER = math.sin(RAD60) / math.sin(RAD30)

LEVEL_ORDER = (Level.CELL, Level.GROUP, Level.CLUSTER)

ORTHOGONAL_PEN_WIDTHS = {Level.CELL: 1.0, Level.GROUP: 1.0, Level.CLUSTER: 2.0}
ISOMETRIC_PEN_WIDTHS = {Level.CELL: 1.0, Level.GROUP: 1.0, Level.CLUSTER: 1.6}
REFERENCE_PEN_WIDTHS = {Level.CELL: 1.0, Level.GROUP: 1.0, Level.CLUSTER: 2.0}

# Alpha fraction (of 255) applied to reference lines between group lines
FAINT_REFERENCE_ALPHA = 85

# Rows per coverage band; keeps diagonal strokes from allocating full-canvas masks
BAND_ROWS = 32


class LineFamily(str, Enum):
    """Which sweep produced a line."""
    VERTICAL = "vertical"
    HORIZONTAL = "horizontal"
    ISO_REFERENCE = "iso_reference"
    ISO_DIAGONAL = "iso_diagonal"


@dataclass(frozen=True)
class GridLine:
    """One stroke to draw: segment, classification and style."""

    start: Point
    end: Point
    level: Level
    family: LineFamily
    index: int
    style: LineStyle


def classify(index: int, cells_per_group: int, groups_per_cluster: int) -> Level:
    """Assign a line index to exactly one level.

    Parameters
    ----------
    index : int
        Non-negative line index (0 is the center/origin line)
    cells_per_group : int
        Cell lines between group lines (>= 1)
    groups_per_cluster : int
        Group lines between cluster lines (>= 1)

    Returns
    -------
    Level
        CLUSTER for multiples of cells_per_group·groups_per_cluster,
        else GROUP for multiples of cells_per_group, else CELL

    Raises
    ------
    ValueError
        On a negative index or a period below 1
    """
    if index < 0:
        raise ValueError(f"Line index must be non-negative, got {index}")
    if cells_per_group < 1 or groups_per_cluster < 1:
        raise ValueError(
            f"Periods must be >= 1, got cells_per_group={cells_per_group}, "
            f"groups_per_cluster={groups_per_cluster}"
        )
    if index % (cells_per_group * groups_per_cluster) == 0:
        return Level.CLUSTER
    if index % cells_per_group == 0:
        return Level.GROUP
    return Level.CELL


def orthogonal_loop_counts(width: float, height: float, cell_size: float) -> Tuple[int, int]:
    """(vertical_loops, horizontal_loops) for the orthogonal sweeps.

    Vertical lines sweep across the width, horizontal lines across the
    height; each count covers half the span since lines are mirrored.
    """
    return (
        compute.ceil_loops(width / 2.0, cell_size),
        compute.ceil_loops(height / 2.0, cell_size),
    )


def isometric_loop_counts(width: float, height: float, cell_size: float) -> Tuple[int, int]:
    """(vertical_loops, diagonal_loops) for the isometric sweeps."""
    adjusted_height = height + width * math.sin(RAD30) / math.sin(RAD60)
    return (
        compute.ceil_loops(width, cell_size * SINE_HELPER),
        compute.ceil_loops(adjusted_height, cell_size),
    )


def _mirrored(center: float, step: float, index: int) -> List[float]:
    if index == 0:
        return [center]
    return [center + step * index, center - step * index]


def _ensure_config(config: Union[GridConfig, Dict[str, Any]]) -> GridConfig:
    """Accept a GridConfig or mapping; re-check geometry on the model."""
    if isinstance(config, dict):
        return grid_config_from_dict(config)
    if not isinstance(config, GridConfig):
        raise TypeError(f"Expected GridConfig or dict, got {type(config).__name__}")

    # model_construct() skips validation, so geometry is re-checked here
    cell = config.cell_size_px
    if not isinstance(cell, (int, float)) or not math.isfinite(cell) or cell <= 0:
        raise GridConfigError(f"cell_size_px must be positive and finite, got {cell}")
    if config.output_width <= 0 or config.output_height <= 0:
        raise GridConfigError(
            f"Output size must be positive, got {config.output_width}x{config.output_height}"
        )
    if config.cells_per_group < 1 or config.groups_per_cluster < 1:
        raise GridConfigError("cells_per_group and groups_per_cluster must be >= 1")
    return config


# ============================================================================
# LINE PLANNING
# ============================================================================

def plan_grid_lines(config: Union[GridConfig, Dict[str, Any]]) -> List[GridLine]:
    """Compute every segment to draw, in draw order.

    Parameters
    ----------
    config : GridConfig or dict
        Resolved configuration

    Returns
    -------
    list[GridLine]
        Segments in compositing order (first drawn first)

    Raises
    ------
    GridConfigError
        If the configuration is invalid
    """
    config = _ensure_config(config)
    if config.projection == Projection.ISOMETRIC:
        return _plan_isometric(config)
    return _plan_orthogonal(config)


def _plan_orthogonal(config: GridConfig) -> List[GridLine]:
    width = float(config.output_width)
    height = float(config.output_height)
    cell = config.cell_size_px
    center_x, center_y = width / 2.0, height / 2.0
    vertical_loops, horizontal_loops = orthogonal_loop_counts(width, height, cell)

    def levels_for(n: int) -> List[Level]:
        return [classify(i, config.cells_per_group, config.groups_per_cluster) for i in range(n)]

    vertical_levels = levels_for(vertical_loops)
    horizontal_levels = levels_for(horizontal_loops)

    lines = []
    for level in LEVEL_ORDER:
        style = LineStyle(
            width=ORTHOGONAL_PEN_WIDTHS[level],
            color=config.line_color(level),
            dash=config.line_style(level),
        )
        for i, line_level in enumerate(vertical_levels):
            if line_level is not level:
                continue
            for x in _mirrored(center_x, cell, i):
                lines.append(GridLine((x, 0.0), (x, height), level, LineFamily.VERTICAL, i, style))
        for i, line_level in enumerate(horizontal_levels):
            if line_level is not level:
                continue
            for y in _mirrored(center_y, cell, i):
                lines.append(GridLine((0.0, y), (width, y), level, LineFamily.HORIZONTAL, i, style))
    return lines


def _plan_isometric(config: GridConfig) -> List[GridLine]:
    width = float(config.output_width)
    height = float(config.output_height)
    cell = config.cell_size_px
    center_x = width / 2.0
    vertical_loops, diagonal_loops = isometric_loop_counts(width, height, cell)

    ref_color = config.iso_vertical_color
    reference_styles = {
        Level.CLUSTER: LineStyle(REFERENCE_PEN_WIDTHS[Level.CLUSTER], ref_color),
        Level.GROUP: LineStyle(REFERENCE_PEN_WIDTHS[Level.GROUP], ref_color),
        Level.CELL: LineStyle(REFERENCE_PEN_WIDTHS[Level.CELL],
                              scale_alpha(ref_color, FAINT_REFERENCE_ALPHA)),
    }

    lines = []
    ref_step = cell / 2.0 * SINE_HELPER
    for i in range(vertical_loops):
        level = classify(i, config.cells_per_group, config.groups_per_cluster)
        for x in _mirrored(center_x, ref_step, i):
            lines.append(GridLine(
                (x, 0.0), (x, height), level, LineFamily.ISO_REFERENCE, i, reference_styles[level]
            ))

    # i = 0 would be a zero-length diagonal through the corner
    diagonal_levels = {
        i: classify(i, config.cells_per_group, config.groups_per_cluster)
        for i in range(1, diagonal_loops)
    }
    for level in LEVEL_ORDER:
        style = LineStyle(
            width=ISOMETRIC_PEN_WIDTHS[level],
            color=config.line_color(level),
            dash=config.line_style(level),
            antialias=True,
        )
        for i, line_level in diagonal_levels.items():
            if line_level is not level:
                continue
            rise = cell * i
            run = cell * i * SINE_HELPER
            lines.append(GridLine((0.0, rise), (run, 0.0), level, LineFamily.ISO_DIAGONAL, i, style))
            lines.append(GridLine((width, rise), (width - run, 0.0), level, LineFamily.ISO_DIAGONAL, i, style))
    return lines


# ============================================================================
# RASTERIZATION
# ============================================================================

class GridRasterizer:
    """Float32 RGBA working canvas with source-over stroke compositing.

    Attributes
    ----------
    width, height : int
        Canvas size in pixels
    """

    def __init__(self, width: int, height: int, background: RGBA):
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas size must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self._rgb = np.empty((height, width, 3), dtype=np.float32)
        self._rgb[...] = np.asarray(background[:3], dtype=np.float32)
        self._alpha = np.full((height, width), background[3] / 255.0, dtype=np.float32)

    def draw(self, line: GridLine) -> int:
        """Composite one GridLine; returns the number of pixels touched."""
        return self.draw_segment(line.start, line.end, line.style)

    def draw_segment(self, start: Point, end: Point, style: LineStyle) -> int:
        """Composite a straight stroke from start to end.

        Coverage: binary (-w/2 <= s < w/2 on the signed perpendicular offset)
        without antialiasing, clip(w/2 + 0.5 - |s|, 0, 1) with it. The offset
        is measured along a normal pointing to +x (+y for horizontal strokes),
        so ties land on the lower pixel on both axes and reversing a stroke
        covers the same pixels. Caps are flat at both endpoints; dashes are
        measured from ``start``.
        """
        if not style.visible:
            return 0

        x0, y0 = start
        x1, y1 = end
        dx, dy = x1 - x0, y1 - y0
        length = math.hypot(dx, dy)
        if length == 0.0:
            return 0
        ux, uy = dx / length, dy / length
        # Normal points toward +x (+y for horizontals) whatever the stroke direction
        nx, ny = uy, -ux
        if nx < 0.0 or (nx == 0.0 and ny < 0.0):
            nx, ny = -nx, -ny

        half = style.width / 2.0
        pad = half + 1.0
        pattern = style.pattern()

        row_lo = max(0, int(math.floor(min(y0, y1) - pad)))
        row_hi = min(self.height, int(math.ceil(max(y0, y1) + pad)) + 1)

        touched = 0
        for band_top in range(row_lo, row_hi, BAND_ROWS):
            band_bottom = min(band_top + BAND_ROWS, row_hi)
            span = _x_span_in_rows(x0, y0, dx, dy, band_top - pad, band_bottom - 1 + pad)
            if span is None:
                continue
            col_lo = max(0, int(math.floor(span[0] - pad)))
            col_hi = min(self.width, int(math.ceil(span[1] + pad)) + 1)
            if col_lo >= col_hi:
                continue

            ys, xs = np.meshgrid(
                np.arange(band_top, band_bottom, dtype=np.float64),
                np.arange(col_lo, col_hi, dtype=np.float64),
                indexing='ij'
            )
            rx = xs - x0
            ry = ys - y0
            t = rx * ux + ry * uy
            s = rx * nx + ry * ny

            if style.antialias:
                coverage = np.clip(half + 0.5 - np.abs(s), 0.0, 1.0)
            else:
                coverage = ((s >= -half) & (s < half)).astype(np.float64)
            coverage *= (t >= 0.0) & (t <= length) & dash_mask(t, pattern)

            touched += self._composite(
                slice(band_top, band_bottom), slice(col_lo, col_hi), coverage, style.color
            )
        return touched

    def _composite(self, rows: slice, cols: slice, coverage: np.ndarray, color: RGBA) -> int:
        """Source-over in straight alpha on the pixels with coverage > 0."""
        hit = coverage > 0.0
        n = int(np.count_nonzero(hit))
        if n == 0:
            return 0

        rgb = self._rgb[rows, cols]
        alpha = self._alpha[rows, cols]

        src_a = coverage[hit] * (color[3] / 255.0)
        dst_a = alpha[hit].astype(np.float64)
        dst_rgb = rgb[hit].astype(np.float64)
        src_rgb = np.asarray(color[:3], dtype=np.float64)

        keep = dst_a * (1.0 - src_a)
        out_a = src_a + keep
        num = src_rgb[np.newaxis, :] * src_a[:, np.newaxis] + dst_rgb * keep[:, np.newaxis]
        safe_a = np.where(out_a > 0.0, out_a, 1.0)
        out_rgb = np.where(out_a[:, np.newaxis] > 0.0, num / safe_a[:, np.newaxis], dst_rgb)

        rgb[hit] = out_rgb
        alpha[hit] = out_a
        return n

    def to_pixels(self) -> np.ndarray:
        """Quantize to (H, W, 4) uint8 straight RGBA (round half to even)."""
        out = np.empty((self.height, self.width, 4), dtype=np.uint8)
        out[..., :3] = np.clip(np.rint(self._rgb), 0, 255)
        out[..., 3] = np.clip(np.rint(self._alpha * 255.0), 0, 255)
        return out


def _x_span_in_rows(
    x0: float, y0: float, dx: float, dy: float, y_lo: float, y_hi: float
) -> Optional[Tuple[float, float]]:
    """x extent of segment (x0, y0) + u·(dx, dy), u in [0, 1], within y in [y_lo, y_hi]."""
    if dy == 0.0:
        if y_lo <= y0 <= y_hi:
            return min(x0, x0 + dx), max(x0, x0 + dx)
        return None
    ua = (y_lo - y0) / dy
    ub = (y_hi - y0) / dy
    lo = max(min(ua, ub), 0.0)
    hi = min(max(ua, ub), 1.0)
    if lo > hi:
        return None
    xa = x0 + dx * lo
    xb = x0 + dx * hi
    return min(xa, xb), max(xa, xb)


# ============================================================================
# COMPOSED BUFFER
# ============================================================================

@dataclass(frozen=True, eq=False)
class ComposedBuffer:
    """Read-only composed grid image.

    Attributes
    ----------
    pixels : np.ndarray
        (H, W, 4) uint8 straight RGBA; flagged non-writeable on construction
        (ownership of the array passes to the buffer)
    generation : int
        Configuration generation that produced this buffer
    premultiplied : np.ndarray
        (H, W, 4) float32 premultiplied copy used for bilinear sampling
    straight : np.ndarray
        (H, W, 4) float32 copy of pixels, used for the color of fully
        transparent samples
    """

    pixels: np.ndarray
    generation: int = 0
    premultiplied: np.ndarray = field(init=False, repr=False)
    straight: np.ndarray = field(init=False, repr=False)

    def __post_init__(self):
        px = self.pixels
        if not isinstance(px, np.ndarray) or px.dtype != np.uint8 or px.ndim != 3 or px.shape[2] != 4:
            raise ValueError(f"Composed pixels must be (H, W, 4) uint8, got {getattr(px, 'shape', None)}")
        if px.shape[0] == 0 or px.shape[1] == 0:
            raise ValueError(f"Composed buffer must be non-empty, got {px.shape[:2]}")
        px.flags.writeable = False

        premul = premultiply(px)
        premul.flags.writeable = False
        straight = px.astype(np.float32)
        straight.flags.writeable = False
        object.__setattr__(self, 'premultiplied', premul)
        object.__setattr__(self, 'straight', straight)

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    def digest(self) -> str:
        """SHA-256 of the pixel contents."""
        return hashing.sha256_array(self.pixels)


def rasterize_lines(lines: List[GridLine], width: int, height: int, background: RGBA) -> np.ndarray:
    """Fill background, composite lines in order, return (H, W, 4) uint8."""
    raster = GridRasterizer(width, height, background)
    for line in lines:
        raster.draw(line)
    return raster.to_pixels()


def compose(config: Union[GridConfig, Dict[str, Any]], generation: int = 0) -> ComposedBuffer:
    """Render the full grid image for a configuration.

    Parameters
    ----------
    config : GridConfig or dict
        Resolved configuration
    generation : int
        Generation tag stored on the result (the session's counter)

    Returns
    -------
    ComposedBuffer
        Read-only (output_height, output_width, 4) RGBA buffer

    Raises
    ------
    GridConfigError
        If the configuration is invalid; no buffer is produced

    Notes
    -----
    Deterministic, no side effects besides logging.
    """
    config = _ensure_config(config)
    lines = plan_grid_lines(config)
    pixels = rasterize_lines(lines, config.output_width, config.output_height, config.background_color)
    buffer = ComposedBuffer(pixels, generation=generation)

    logger.info(
        f"Composed {config.output_width}x{config.output_height} {config.projection.value} grid: "
        f"{len(lines)} lines, cell={config.cell_size_px:g}px, "
        f"period={config.cells_per_group}x{config.groups_per_cluster}"
    )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Composed buffer generation={generation} sha256={buffer.digest()[:12]}")
    return buffer
