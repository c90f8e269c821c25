#!/usr/bin/env python3
"""Render graph paper to a PNG.

Loads host options from YAML (or uses defaults), applies command-line
overrides, resolves them against a primary/secondary palette, composes the
grid and paints it into a destination canvas in parallel tiles.

Usage:
    # Defaults: 800x600 orthogonal grid, black lines on white
    python scripts/render_graph_paper.py --width 800 --height 600 --output outputs/grid.png

    # Isometric from a config file, placed at (40, 30) on a larger canvas
    python scripts/render_graph_paper.py --config configs/graph_paper.v1.yaml \
        --projection isometric --cell-size 20 \
        --canvas-size 1024 768 --offset 40 30 --output outputs/iso.png

Outputs:
    - <output>.png: rendered RGBA image
    - <output>.yaml: resolved grid config (grid_config.v1) plus render metadata

Exit codes:
    0: success
    1: cancelled or invalid configuration
"""

import argparse
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent))

from src.graph_paper.options import (
    GraphPaperOptions,
    Palette,
    load_graph_paper_options,
    resolve_grid_config,
)
from src.graph_paper.session import DEFAULT_TILE_SIZE, GraphPaperSession
from src.utils import fs, logging_config
from src.utils.color import TRANSPARENT, parse_rgba, to_hex
from src.utils.compute import Rect
from src.utils.profiler import timer
from src.utils.validators import GridConfigError, grid_config_to_dict

logger = logging_config.get_logger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render hierarchical graph paper (orthogonal or isometric)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    parser.add_argument('--config', type=str, default=None,
                        help='graph_paper.v1 YAML options file (defaults if omitted)')
    parser.add_argument('--width', type=int, default=800, help='Grid width (px), default: 800')
    parser.add_argument('--height', type=int, default=600, help='Grid height (px), default: 600')

    # Option overrides
    parser.add_argument('--projection', choices=['orthogonal', 'isometric'], default=None)
    parser.add_argument('--cell-size', type=float, default=None, help='Cell size (px), 2-100')
    parser.add_argument('--cells-per-group', type=int, default=None, help='1-10')
    parser.add_argument('--groups-per-cluster', type=int, default=None, help='1-10')
    parser.add_argument('--primary', type=str, default=None,
                        help='Primary color, hex #RRGGBB[AA] (overrides config palette)')
    parser.add_argument('--secondary', type=str, default=None,
                        help='Secondary color, hex #RRGGBB[AA] (overrides config palette)')

    # Placement
    parser.add_argument('--canvas-size', type=int, nargs=2, metavar=('W', 'H'), default=None,
                        help='Destination canvas size (default: grid size plus offset)')
    parser.add_argument('--offset', type=int, nargs=2, metavar=('X', 'Y'), default=(0, 0),
                        help='Selection origin on the canvas, default: 0 0')

    # Output and execution
    parser.add_argument('--output', type=str, default='outputs/graph_paper.png', help='Output PNG path')
    parser.add_argument('--workers', type=int, default=None, help='Tile painter threads')
    parser.add_argument('--tile-size', type=int, default=DEFAULT_TILE_SIZE,
                        help=f'Tile edge (px), default: {DEFAULT_TILE_SIZE}')

    # Logging
    parser.add_argument('--log-level', type=str, default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'])
    parser.add_argument('--json-logs', action='store_true', help='Emit JSON-lines logs')

    return parser.parse_args(argv)


def apply_overrides(
    options: GraphPaperOptions,
    palette: Palette,
    args: argparse.Namespace
) -> tuple:
    """Apply CLI overrides on top of loaded options and palette."""
    updates: Dict[str, Any] = {}
    if args.projection is not None:
        updates['projection'] = args.projection
    if args.cell_size is not None:
        updates['cell_size_px'] = args.cell_size
    if args.cells_per_group is not None:
        updates['cells_per_group'] = args.cells_per_group
    if args.groups_per_cluster is not None:
        updates['groups_per_cluster'] = args.groups_per_cluster

    if updates:
        # Re-validate: model_copy(update=...) skips validators
        data = options.model_dump(by_alias=True)
        data.update(updates)
        options = GraphPaperOptions(**data)

    palette = Palette(
        primary=parse_rgba(args.primary) if args.primary else palette.primary,
        secondary=parse_rgba(args.secondary) if args.secondary else palette.secondary,
    )
    return options, palette


def render_main(
    options: GraphPaperOptions,
    palette: Palette,
    width: int,
    height: int,
    output_path: str,
    offset: tuple = (0, 0),
    canvas_size: Optional[tuple] = None,
    workers: Optional[int] = None,
    tile_size: int = DEFAULT_TILE_SIZE,
) -> Dict[str, Any]:
    """Resolve, compose and paint one image; write PNG and metadata.

    Parameters
    ----------
    options : GraphPaperOptions
        Host options
    palette : Palette
        Primary/secondary colors
    width, height : int
        Grid (selection) size in pixels
    output_path : str
        PNG path; metadata goes next to it with a .yaml suffix
    offset : tuple
        Selection origin (x, y) on the canvas
    canvas_size : tuple, optional
        Canvas (W, H); defaults to offset + grid size
    workers : int, optional
        Tile painter threads
    tile_size : int
        Tile edge in pixels

    Returns
    -------
    dict
        image_path, metadata_path, generation, cancelled, compose_s, paint_s

    Raises
    ------
    GridConfigError
        If the resolved configuration is invalid
    """
    config = resolve_grid_config(options, palette, width, height)

    dx, dy = int(offset[0]), int(offset[1])
    if canvas_size is None:
        canvas_size = (dx + width, dy + height)
    canvas_w, canvas_h = int(canvas_size[0]), int(canvas_size[1])
    if canvas_w <= 0 or canvas_h <= 0:
        raise ValueError(f"Canvas size must be positive, got {canvas_w}x{canvas_h}")

    timings: Dict[str, float] = {}

    def record(name: str, seconds: float) -> None:
        timings[name] = seconds
        logger.info(f"{name}: {seconds:.3f} s")

    session = GraphPaperSession(tile_size=tile_size)
    with timer("compose", sink=record):
        session.configure(config, selection=Rect(dx, dy, width, height))

    canvas = np.empty((canvas_h, canvas_w, 4), dtype=np.uint8)
    canvas[...] = TRANSPARENT
    with timer("paint", sink=record):
        result = session.render(canvas, workers=workers)

    output_path = Path(output_path)
    fs.ensure_dir(output_path.parent)
    fs.atomic_save_image(canvas, output_path)
    logger.info(f"Saved image: {output_path}")

    metadata = {
        **grid_config_to_dict(config),
        'render': {
            'generation': result.generation,
            'canvas_size_px': [canvas_w, canvas_h],
            'offset_px': [dx, dy],
            'tiles_total': result.tiles_total,
            'tiles_completed': result.tiles_completed,
            'cancelled': result.cancelled,
            'palette': {'primary': to_hex(palette.primary), 'secondary': to_hex(palette.secondary)},
            'sha256': session.current_buffer.digest(),
            'rendered_at': time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime()),
        },
    }
    metadata_path = output_path.with_suffix('.yaml')
    fs.atomic_yaml_dump(metadata, metadata_path)
    logger.info(f"Saved metadata: {metadata_path}")

    return {
        'image_path': str(output_path),
        'metadata_path': str(metadata_path),
        'generation': result.generation,
        'cancelled': result.cancelled,
        'compose_s': timings.get('compose', 0.0),
        'paint_s': timings.get('paint', 0.0),
    }


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    logging_config.setup_logging(
        log_level=args.log_level,
        json=args.json_logs,
        context={'app': 'render_graph_paper'},
    )
    logging_config.install_excepthook()

    try:
        if args.config:
            logger.info(f"Loading options from: {args.config}")
            options, palette = load_graph_paper_options(args.config)
        else:
            options, palette = GraphPaperOptions(), Palette()
        options, palette = apply_overrides(options, palette, args)

        result = render_main(
            options,
            palette,
            width=args.width,
            height=args.height,
            output_path=args.output,
            offset=tuple(args.offset),
            canvas_size=tuple(args.canvas_size) if args.canvas_size else None,
            workers=args.workers,
            tile_size=args.tile_size,
        )
    except (GridConfigError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 1
    finally:
        logging_config.shutdown()

    if result['cancelled']:
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
