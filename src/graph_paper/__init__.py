"""Graph paper rendering: grid composition and tiled resampling.

Modules:
    - line_styles: Immutable stroke descriptors and dash patterns
    - composer: Line classification, planning and rasterization
    - resampler: Bilinear tile painting with cancellation
    - options: Host option surface resolved into a GridConfig
    - session: Generation-tracked compose-once / paint-many orchestration

Usage:
    from src.graph_paper import GraphPaperSession, compose, paint
    from src.utils.validators import make_grid_config

    config = make_grid_config(output_width=800, output_height=600)
    buffer = compose(config)
"""

from .composer import (
    ComposedBuffer,
    GridLine,
    GridRasterizer,
    LineFamily,
    classify,
    compose,
    plan_grid_lines,
)
from .line_styles import LineStyle, dash_pattern
from .options import (
    BackgroundColorSource,
    CellColorSource,
    GraphPaperOptions,
    LineColorSource,
    Palette,
    load_graph_paper_options,
    read_only_fields,
    resolve_grid_config,
)
from .resampler import bilinear_sample, paint
from .session import GraphPaperSession, RenderResult

__all__ = [
    'BackgroundColorSource',
    'CellColorSource',
    'ComposedBuffer',
    'GraphPaperOptions',
    'GraphPaperSession',
    'GridLine',
    'GridRasterizer',
    'LineColorSource',
    'LineFamily',
    'LineStyle',
    'Palette',
    'RenderResult',
    'bilinear_sample',
    'classify',
    'compose',
    'dash_pattern',
    'load_graph_paper_options',
    'paint',
    'plan_grid_lines',
    'read_only_fields',
    'resolve_grid_config',
]
