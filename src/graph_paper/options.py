"""Host-side option model and resolution into a GridConfig.

The renderer only ever sees final RGBA values. This module models the option
surface a host exposes (color sources such as "primary color" or "same as
cell") and turns it, together with the host palette and the selection size,
into a validated GridConfig.

Color sources:
    - cell:         PRIMARY | CUSTOM
    - group:        CELL | PRIMARY | CUSTOM
    - cluster:      CELL | PRIMARY | CUSTOM
    - iso vertical: CELL | PRIMARY | CUSTOM
    - background:   NONE | SECONDARY | CUSTOM   (NONE is fully transparent)

A CUSTOM source without an explicit color falls back to the palette default
for that field: primary for line colors, secondary for the background, and
the per-channel mean of primary and secondary for iso vertical lines.

READ_ONLY_RULES declares which custom-color fields a host should lock for the
current option values, as (field, predicate) pairs instead of event handlers.

File format (graph_paper.v1.yaml):
    schema: graph_paper.v1
    projection: isometric
    cell_size_px: 12
    cell_color_source: custom
    cell_color: "#3050A0FF"
    palette: {primary: "#000000", secondary: "#FFFFFF"}
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.utils import fs
from src.utils.color import BLACK, RGBA, TRANSPARENT, WHITE, mix_colors, parse_rgba
from src.utils.validators import (
    DashStyle,
    GridConfig,
    GridConfigError,
    Projection,
    make_grid_config,
)

logger = logging.getLogger(__name__)


class CellColorSource(str, Enum):
    PRIMARY = "primary"
    CUSTOM = "custom"


class LineColorSource(str, Enum):
    CELL = "cell"
    PRIMARY = "primary"
    CUSTOM = "custom"


class BackgroundColorSource(str, Enum):
    NONE = "none"
    SECONDARY = "secondary"
    CUSTOM = "custom"


@dataclass(frozen=True)
class Palette:
    """Host palette: the user's current primary and secondary colors."""

    primary: RGBA = BLACK
    secondary: RGBA = WHITE

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Palette':
        data = data or {}
        return cls(
            primary=parse_rgba(data.get('primary', BLACK)),
            secondary=parse_rgba(data.get('secondary', WHITE)),
        )


def _optional_rgba(v: Any) -> Optional[RGBA]:
    if v is None:
        return None
    try:
        return parse_rgba(v)
    except (TypeError, ValueError) as e:
        raise ValueError(str(e)) from e


class GraphPaperOptions(BaseModel):
    """Unresolved options as a host presents them.

    Defaults reproduce a fresh dialog: 10 px cells, 5 cells per group,
    2 groups per cluster, dotted cells, dashed groups, solid clusters.
    """
    model_config = ConfigDict(frozen=True, extra='forbid', populate_by_name=True)

    schema_version: str = Field("graph_paper.v1", alias="schema")
    projection: Projection = Projection.ORTHOGONAL
    cell_size_px: float = Field(10.0, ge=2.0, le=100.0, allow_inf_nan=False)
    cells_per_group: int = Field(5, ge=1, le=10)
    groups_per_cluster: int = Field(2, ge=1, le=10)

    cell_line_style: DashStyle = DashStyle.DOTTED
    group_line_style: DashStyle = DashStyle.DASHED
    cluster_line_style: DashStyle = DashStyle.SOLID

    cell_color_source: CellColorSource = CellColorSource.CUSTOM
    group_color_source: LineColorSource = LineColorSource.CELL
    cluster_color_source: LineColorSource = LineColorSource.CELL
    iso_vertical_color_source: LineColorSource = LineColorSource.CUSTOM
    background_color_source: BackgroundColorSource = BackgroundColorSource.CUSTOM

    cell_color: Optional[Tuple[int, int, int, int]] = None
    group_color: Optional[Tuple[int, int, int, int]] = None
    cluster_color: Optional[Tuple[int, int, int, int]] = None
    iso_vertical_color: Optional[Tuple[int, int, int, int]] = None
    background_color: Optional[Tuple[int, int, int, int]] = None

    @field_validator(
        'cell_color', 'group_color', 'cluster_color',
        'iso_vertical_color', 'background_color',
        mode='before'
    )
    @classmethod
    def validate_color(cls, v: Any) -> Optional[RGBA]:
        return _optional_rgba(v)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "graph_paper.v1":
            raise ValueError(f"Expected schema 'graph_paper.v1', got '{v}'")
        return v


# ============================================================================
# RESOLUTION
# ============================================================================

def _line_color(source: LineColorSource, custom: Optional[RGBA], cell: RGBA, palette: Palette) -> RGBA:
    if source == LineColorSource.CELL:
        return cell
    if source == LineColorSource.PRIMARY:
        return palette.primary
    return custom if custom is not None else palette.primary


def resolve_colors(options: GraphPaperOptions, palette: Palette) -> Dict[str, RGBA]:
    """Resolve every color source to final RGBA values.

    Returns
    -------
    dict
        Keys: cell_color, group_color, cluster_color, iso_vertical_color,
        background_color
    """
    if options.cell_color_source == CellColorSource.PRIMARY or options.cell_color is None:
        cell = palette.primary
    else:
        cell = options.cell_color

    iso_custom = options.iso_vertical_color
    if iso_custom is None:
        iso_custom = mix_colors(palette.primary, palette.secondary)

    if options.background_color_source == BackgroundColorSource.NONE:
        background = TRANSPARENT
    elif options.background_color_source == BackgroundColorSource.SECONDARY:
        background = palette.secondary
    else:
        background = options.background_color if options.background_color is not None else palette.secondary

    return {
        'cell_color': cell,
        'group_color': _line_color(options.group_color_source, options.group_color, cell, palette),
        'cluster_color': _line_color(options.cluster_color_source, options.cluster_color, cell, palette),
        'iso_vertical_color': _line_color(options.iso_vertical_color_source, iso_custom, cell, palette),
        'background_color': background,
    }


def resolve_grid_config(
    options: GraphPaperOptions,
    palette: Palette,
    width: int,
    height: int
) -> GridConfig:
    """Turn host options into the immutable GridConfig the renderer consumes.

    Parameters
    ----------
    options : GraphPaperOptions
        Option values
    palette : Palette
        Host primary/secondary colors
    width, height : int
        Selection size in pixels

    Raises
    ------
    GridConfigError
        If the combined values are invalid (e.g., non-positive size)
    """
    config = make_grid_config(
        cell_size_px=options.cell_size_px,
        cells_per_group=options.cells_per_group,
        groups_per_cluster=options.groups_per_cluster,
        projection=options.projection,
        cell_line_style=options.cell_line_style,
        group_line_style=options.group_line_style,
        cluster_line_style=options.cluster_line_style,
        output_width=width,
        output_height=height,
        **resolve_colors(options, palette),
    )
    logger.debug(f"Resolved options into grid config: {config.model_dump(mode='json')}")
    return config


# ============================================================================
# READ-ONLY RULES
# ============================================================================

def _not_custom(source_field: str) -> Callable[[GraphPaperOptions], bool]:
    return lambda o: getattr(o, source_field).value != "custom"


def _not_isometric(o: GraphPaperOptions) -> bool:
    return o.projection != Projection.ISOMETRIC


READ_ONLY_RULES: Tuple[Tuple[str, Callable[[GraphPaperOptions], bool]], ...] = (
    ('cell_color', _not_custom('cell_color_source')),
    ('group_color', _not_custom('group_color_source')),
    ('cluster_color', _not_custom('cluster_color_source')),
    ('iso_vertical_color', lambda o: _not_custom('iso_vertical_color_source')(o) or _not_isometric(o)),
    ('iso_vertical_color_source', _not_isometric),
    ('background_color', _not_custom('background_color_source')),
)


def read_only_fields(options: GraphPaperOptions) -> FrozenSet[str]:
    """Fields a host should present as read-only for these option values."""
    return frozenset(name for name, predicate in READ_ONLY_RULES if predicate(options))


# ============================================================================
# LOADING
# ============================================================================

def options_from_dict(data: Dict[str, Any]) -> Tuple[GraphPaperOptions, Palette]:
    """Validate a mapping into options plus the (optional) palette section."""
    if not isinstance(data, dict):
        raise GridConfigError(f"Options must be a mapping, got {type(data).__name__}")
    data = dict(data)
    try:
        palette = Palette.from_dict(data.pop('palette', None))
    except (TypeError, ValueError) as e:
        raise GridConfigError(f"Invalid palette: {e}") from e
    try:
        return GraphPaperOptions(**data), palette
    except ValidationError as e:
        raise GridConfigError(f"Invalid graph paper options: {e}") from e


def load_graph_paper_options(path: Union[str, Path]) -> Tuple[GraphPaperOptions, Palette]:
    """Load and validate a graph_paper.v1 options file.

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    GridConfigError
        If validation fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Options file not found: {path}")
    try:
        return options_from_dict(fs.load_yaml(path))
    except GridConfigError as e:
        raise GridConfigError(f"Options validation failed at {path}: {e}") from e
