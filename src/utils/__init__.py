"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Config schemas and validation (validators)
    - Rectangles, tiling and loop counts (compute)
    - RGBA colors and alpha premultiplication (color)
    - Atomic I/O, YAML and images (fs)
    - Buffer and config digests (hashing)
    - Wall-clock timers (profiler)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (graph_paper, scripts).

Convenience imports:
    from src.utils import fs, compute, color, validators
    from src.utils.logging_config import setup_logging, get_logger
"""

from . import color
from . import compute
from . import fs
from . import hashing
from . import logging_config
from . import profiler
from . import validators

from .logging_config import get_logger, push_context, setup_logging

__all__ = [
    # Modules
    'color',
    'compute',
    'fs',
    'hashing',
    'logging_config',
    'profiler',
    'validators',
    # Direct exports
    'setup_logging',
    'get_logger',
    'push_context',
]
