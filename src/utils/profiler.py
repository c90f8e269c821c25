"""Lightweight wall-clock profiling.

Provides:
    - timer(): Context manager for one timed block with optional sink
    - TimerAccumulator: Accumulate repeated measurements (e.g., per tile)

Used to measure:
    - Grid composition (line planning + rasterization)
    - Tile painting (bilinear resampling per destination tile)

No heavy dependencies (no cProfile overhead during rendering).
"""

import threading
import time
from contextlib import contextmanager
from typing import Callable, Optional


@contextmanager
def timer(name: str, sink: Optional[Callable[[str, float], None]] = None):
    """Context manager for wall-clock timing.

    Parameters
    ----------
    name : str
        Timer name (for logging/display)
    sink : Optional[Callable[[str, float], None]]
        Optional callback(name, elapsed_seconds); prints to stdout if None

    Examples
    --------
    >>> with timer("compose", sink=lambda n, s: logger.info("%s: %.3f s", n, s)):
    ...     buffer = compose(config)
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if sink is not None:
            sink(name, elapsed)
        else:
            print(f"{name}: {elapsed:.3f} s")


class TimerAccumulator:
    """Accumulate timing measurements for averaging.

    Thread-safe: tiles painted on worker threads may share one accumulator.

    Examples
    --------
    >>> tile_timer = TimerAccumulator("paint_tile")
    >>> for tile in tiles:
    ...     with tile_timer.measure():
    ...         paint(dst, buffer, offset, tile)
    >>> print(f"Mean: {tile_timer.mean():.4f} s")
    """

    def __init__(self, name: str):
        self.name = name
        self.total_time = 0.0
        self.count = 0
        self._lock = threading.Lock()

    @contextmanager
    def measure(self):
        """Context manager to measure and accumulate time."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            with self._lock:
                self.total_time += elapsed
                self.count += 1

    def mean(self) -> float:
        """Mean time per measurement in seconds (0.0 when empty)."""
        with self._lock:
            return self.total_time / self.count if self.count > 0 else 0.0

    def reset(self) -> None:
        with self._lock:
            self.total_time = 0.0
            self.count = 0

    def __repr__(self) -> str:
        return f"TimerAccumulator({self.name}, mean={self.mean():.4f}s, count={self.count})"
