"""Tiled bilinear resampling of a composed grid into destination images.

The composed buffer is rendered once in local selection coordinates; paint()
stamps it into any destination rectangle, translated by the selection origin:

    dst[y, x] = bilinear_sample(composed, x - dx, y - dy)

Sampling runs through OpenCV remap (INTER_LINEAR, BORDER_REPLICATE) on the
buffer's premultiplied float32 copy, one destination row at a time:
    - Integer coordinates return the exact source pixel
    - Out-of-bounds coordinates clamp to the nearest edge pixel
    - Colors are alpha-weighted, so transparent neighbours don't bleed
    - A row whose every sample is transparent keeps the straight-interpolated
      color instead of collapsing to black

Concurrency:
    paint() only reads the composed buffer and writes the rows of its own
    tile, so disjoint tiles may be painted from several threads at once.
    Cancellation is polled at the start of every destination row.
"""

import logging
import threading
from typing import Callable, Tuple, Union

import cv2
import numpy as np

from src.utils.color import RGBA, unpremultiply
from src.utils.compute import Rect

from .composer import ComposedBuffer

logger = logging.getLogger(__name__)

CancelToken = Union[Callable[[], bool], threading.Event, None]

# cv2.remap requires every side of the source and the output below SHRT_MAX
MAX_ROW_SAMPLES = 16384
MAX_WINDOW_COLS = 16384


def _cancel_check(cancel: CancelToken) -> Callable[[], bool]:
    if cancel is None:
        return lambda: False
    if isinstance(cancel, threading.Event):
        return cancel.is_set
    if callable(cancel):
        return cancel
    raise TypeError(f"cancel must be a callable or threading.Event, got {type(cancel).__name__}")


def _remap(src: np.ndarray, map_x: np.ndarray, map_y: np.ndarray) -> np.ndarray:
    return cv2.remap(
        src, map_x, map_y,
        interpolation=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_REPLICATE
    )


def _source_window(lo: float, hi: float, size: int) -> Tuple[int, int]:
    """[start, stop) of the source indices bilinear taps in [lo, hi] can reach.

    Both ends are clamped into the buffer, so coordinates past an edge map
    to a window holding that edge and BORDER_REPLICATE still clamps them.
    """
    start = min(max(int(np.floor(lo)), 0), size - 1)
    stop = min(max(int(np.floor(hi)) + 1, 0), size - 1) + 1
    return start, stop


def _sample_window(
    composed: ComposedBuffer, xs: np.ndarray, y: float, rows: Tuple[int, int]
) -> np.ndarray:
    cols = _source_window(float(xs.min()), float(xs.max()), composed.width)
    if cols[1] - cols[0] > MAX_WINDOW_COLS and xs.shape[0] > 1:
        half = xs.shape[0] // 2
        return np.concatenate([
            _sample_window(composed, xs[:half], y, rows),
            _sample_window(composed, xs[half:], y, rows),
        ])

    window = (slice(rows[0], rows[1]), slice(cols[0], cols[1]))
    map_x = (xs - cols[0]).astype(np.float32).reshape(1, -1)
    map_y = np.full_like(map_x, np.float32(y - rows[0]))
    premul = _remap(np.ascontiguousarray(composed.premultiplied[window]), map_x, map_y)
    straight = _remap(np.ascontiguousarray(composed.straight[window]), map_x, map_y)
    return unpremultiply(premul.reshape(-1, 4), straight.reshape(-1, 4))


def sample_row(composed: ComposedBuffer, xs: np.ndarray, y: float) -> np.ndarray:
    """Bilinearly sample composed at (xs[k], y) for every k.

    Each remap call reads only the (at most two) source rows around y and
    the columns its chunk of xs can reach, so buffers of any size stay
    within OpenCV's limits.

    Parameters
    ----------
    composed : ComposedBuffer
        Source buffer
    xs : np.ndarray
        Source x coordinates, shape (N,)
    y : float
        Source y coordinate shared by the row

    Returns
    -------
    np.ndarray
        (N, 4) uint8 straight RGBA
    """
    xs = np.asarray(xs, dtype=np.float64).reshape(-1)
    out = np.empty((xs.shape[0], 4), dtype=np.uint8)
    if xs.shape[0] == 0:
        return out

    rows = _source_window(y, y, composed.height)
    for start in range(0, xs.shape[0], MAX_ROW_SAMPLES):
        chunk = xs[start:start + MAX_ROW_SAMPLES]
        out[start:start + chunk.shape[0]] = _sample_window(composed, chunk, y, rows)
    return out


def bilinear_sample(composed: ComposedBuffer, x: float, y: float) -> RGBA:
    """Sample a single point; out-of-bounds coordinates clamp to the edge."""
    px = sample_row(composed, np.array([x], dtype=np.float32), y)[0]
    return (int(px[0]), int(px[1]), int(px[2]), int(px[3]))


def paint(
    dst: np.ndarray,
    composed: ComposedBuffer,
    origin_offset: Tuple[float, float],
    tile: Rect,
    cancel: CancelToken = None
) -> bool:
    """Paint one destination tile from the composed buffer.

    Parameters
    ----------
    dst : np.ndarray
        Destination image, (H, W, 4) uint8, written in place
    composed : ComposedBuffer
        Source buffer (read-only, may be shared across threads)
    origin_offset : (dx, dy)
        Selection origin in destination coordinates
    tile : Rect
        Destination rectangle; clipped to dst bounds
    cancel : callable or threading.Event, optional
        Polled at the start of each row; truthy aborts

    Returns
    -------
    bool
        True if every row was written, False if cancelled (rows already
        written stay written and should be discarded or re-rendered)

    Raises
    ------
    ValueError
        If dst is not a writeable (H, W, 4) uint8 array
    """
    if not isinstance(dst, np.ndarray) or dst.dtype != np.uint8 or dst.ndim != 3 or dst.shape[2] != 4:
        raise ValueError(f"Destination must be (H, W, 4) uint8, got {getattr(dst, 'shape', None)}")
    if not dst.flags.writeable:
        raise ValueError("Destination array is read-only")

    is_cancelled = _cancel_check(cancel)
    region = tile.intersect(Rect.from_size(dst.shape[1], dst.shape[0]))
    if region.is_empty():
        return True

    dx, dy = origin_offset
    xs = np.arange(region.left, region.right, dtype=np.float64) - dx

    for y in range(region.top, region.bottom):
        if is_cancelled():
            logger.debug(f"Paint cancelled at row {y} of tile {region}")
            return False
        dst[y, region.left:region.right] = sample_row(composed, xs, y - dy)
    return True
