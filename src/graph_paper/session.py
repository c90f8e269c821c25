"""Render session: one composed grid shared by many tile painters.

A session owns the current snapshot (generation, composed buffer, selection)
and hands it to concurrent tile workers:

    session = GraphPaperSession()
    session.configure(config, selection=Rect(40, 30, 800, 600))
    result = session.render(canvas, workers=4)

Invariants:
    - Generations increase monotonically; a snapshot is never mutated,
      configure() replaces it with a single reference swap under a lock
    - Every tile of one render() reads the same snapshot, even if
      configure() runs concurrently
    - Tiles are disjoint, so workers never write the same destination pixel
    - cancel() is sticky until the next configure()
"""

import contextvars
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

import numpy as np

from src.utils import hashing
from src.utils.compute import Rect, tile_rects
from src.utils.logging_config import push_context
from src.utils.profiler import TimerAccumulator
from src.utils.validators import GridConfig, grid_config_from_dict

from .composer import ComposedBuffer, compose
from .resampler import paint

logger = logging.getLogger(__name__)

DEFAULT_TILE_SIZE = 256


@dataclass(frozen=True, eq=False)
class SessionSnapshot:
    """Immutable state shared by the tiles of one render."""

    generation: int
    buffer: ComposedBuffer
    selection: Rect
    config_digest: str


@dataclass(frozen=True)
class RenderResult:
    """Outcome of one render() call."""

    generation: int
    tiles_total: int
    tiles_completed: int
    cancelled: bool


class GraphPaperSession:
    """Compose once, paint many tiles concurrently.

    Parameters
    ----------
    tile_size : int
        Edge length of the default tiles generated by render()
    """

    def __init__(self, tile_size: int = DEFAULT_TILE_SIZE):
        if tile_size <= 0:
            raise ValueError(f"tile_size must be positive, got {tile_size}")
        self.tile_size = tile_size
        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._next_generation = 0
        self._snapshot: Optional[SessionSnapshot] = None
        self.tile_timer = TimerAccumulator("paint_tile")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def configure(
        self,
        config: Union[GridConfig, Dict[str, Any]],
        selection: Optional[Rect] = None
    ) -> int:
        """Compose the grid for config and make it the current snapshot.

        Parameters
        ----------
        config : GridConfig or dict
            Resolved configuration
        selection : Rect, optional
            Where the composed grid lands in destination coordinates; its
            size must equal the configured output size. Defaults to a
            rectangle at the origin.

        Returns
        -------
        int
            Generation of the snapshot now current

        Raises
        ------
        GridConfigError
            If config is invalid (the previous snapshot stays current)
        ValueError
            If the selection size doesn't match the output size
        """
        if isinstance(config, dict):
            config = grid_config_from_dict(config)

        if selection is None:
            selection = Rect(0, 0, config.output_width, config.output_height)
        if (selection.width, selection.height) != (config.output_width, config.output_height):
            raise ValueError(
                f"Selection {selection.width}x{selection.height} does not match output size "
                f"{config.output_width}x{config.output_height}"
            )

        digest = hashing.hash_dict(config.model_dump(mode='json'))

        with self._lock:
            self._next_generation += 1
            generation = self._next_generation
            current = self._snapshot

        if current is not None and current.config_digest == digest:
            buffer = current.buffer
            logger.debug(f"Config unchanged (sha256={digest[:12]}), reusing composed buffer")
        else:
            buffer = compose(config, generation=generation)

        snapshot = SessionSnapshot(generation, buffer, selection, digest)
        with self._lock:
            # A later configure() may have finished first
            if self._snapshot is None or self._snapshot.generation < generation:
                self._snapshot = snapshot
                self._cancel.clear()
                logger.info(f"Session generation {generation} current (selection={selection})")
            else:
                logger.debug(f"Discarding stale generation {generation}")
            return self._snapshot.generation

    @property
    def snapshot(self) -> Optional[SessionSnapshot]:
        with self._lock:
            return self._snapshot

    @property
    def current_buffer(self) -> Optional[ComposedBuffer]:
        snapshot = self.snapshot
        return snapshot.buffer if snapshot is not None else None

    @property
    def generation(self) -> int:
        snapshot = self.snapshot
        return snapshot.generation if snapshot is not None else 0

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Ask in-flight and future renders to stop (until next configure)."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def render(
        self,
        dst: np.ndarray,
        tiles: Optional[Sequence[Rect]] = None,
        workers: Optional[int] = None
    ) -> RenderResult:
        """Paint the current snapshot into dst.

        Parameters
        ----------
        dst : np.ndarray
            Destination (H, W, 4) uint8 array, written in place
        tiles : sequence of Rect, optional
            Destination rectangles to paint; defaults to tiles of
            ``tile_size`` covering the selection clipped to dst
        workers : int, optional
            Thread pool size (ThreadPoolExecutor default when None)

        Returns
        -------
        RenderResult
            Generation painted and how many tiles completed

        Raises
        ------
        RuntimeError
            If configure() was never called successfully
        ValueError
            If dst is not a writeable (H, W, 4) uint8 array
        """
        snapshot = self.snapshot
        if snapshot is None:
            raise RuntimeError("Session is not configured; call configure() first")
        if not isinstance(dst, np.ndarray) or dst.dtype != np.uint8 or dst.ndim != 3 or dst.shape[2] != 4:
            raise ValueError(f"Destination must be (H, W, 4) uint8, got {getattr(dst, 'shape', None)}")

        if tiles is None:
            region = snapshot.selection.intersect(Rect.from_size(dst.shape[1], dst.shape[0]))
            tiles = tile_rects(region, self.tile_size)
        tiles = list(tiles)

        completed = self._paint_tiles(dst, snapshot, tiles, workers)
        cancelled = completed < len(tiles)

        if cancelled:
            logger.info(
                f"Render of generation {snapshot.generation} cancelled: "
                f"{completed}/{len(tiles)} tiles"
            )
        else:
            logger.debug(
                f"Rendered generation {snapshot.generation}: {len(tiles)} tiles, "
                f"mean {self.tile_timer.mean() * 1000:.2f} ms/tile"
            )
        return RenderResult(snapshot.generation, len(tiles), completed, cancelled)

    def _paint_tiles(
        self,
        dst: np.ndarray,
        snapshot: SessionSnapshot,
        tiles: List[Rect],
        workers: Optional[int]
    ) -> int:
        if not tiles:
            return 0
        if self._cancel.is_set():
            return 0

        completed = 0
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [
                pool.submit(contextvars.copy_context().run, self._paint_tile, dst, snapshot, tile)
                for tile in tiles
            ]
            for future in as_completed(futures):
                if future.result():
                    completed += 1
        return completed

    def _paint_tile(self, dst: np.ndarray, snapshot: SessionSnapshot, tile: Rect) -> bool:
        push_context(generation=snapshot.generation)
        offset = (snapshot.selection.left, snapshot.selection.top)
        with self.tile_timer.measure():
            return paint(dst, snapshot.buffer, offset, tile, cancel=self._cancel)
