"""Config schemas and validation for grid rendering.

Provides centralized validation using pydantic:
    - Enums shared by every layer: Projection, Level, DashStyle
    - GridConfig: fully resolved, immutable rendering configuration
    - GridConfigError: the single error type for rejected configurations

All modules must build GridConfig through these validators for fail-fast
error detection with actionable messages (offending field, expected range).

Units:
    - Geometry: pixels (px)
    - Color: (r, g, b, a) ints in [0, 255]; hex strings accepted on input

Usage:
    from src.utils import validators

    cfg = validators.make_grid_config(output_width=800, output_height=600)
    cfg = validators.load_grid_config("configs/grid_config.yaml")
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .color import BLACK, RGBA, WHITE, parse_rgba


class GridConfigError(ValueError):
    """Raised when a grid configuration is rejected."""


class Projection(str, Enum):
    """Grid projection."""
    ORTHOGONAL = "orthogonal"
    ISOMETRIC = "isometric"


class Level(str, Enum):
    """Line hierarchy level, finest to coarsest."""
    CELL = "cell"
    GROUP = "group"
    CLUSTER = "cluster"


class DashStyle(str, Enum):
    """Stroke dash pattern."""
    SOLID = "solid"
    DASHED = "dashed"
    DOTTED = "dotted"


def _coerce_rgba(v: Any) -> RGBA:
    try:
        return parse_rgba(v)
    except (TypeError, ValueError) as e:
        raise ValueError(str(e)) from e


# ============================================================================
# GRID CONFIG
# ============================================================================

class GridConfig(BaseModel):
    """Fully resolved grid rendering configuration.

    Every color is final RGBA; choosing between primary/secondary/inherited
    colors happens before this model is built (see graph_paper.options).
    """
    model_config = ConfigDict(frozen=True, extra='forbid')

    cell_size_px: float = Field(10.0, ge=2.0, le=100.0, allow_inf_nan=False,
                                description="Pixel pitch of the finest grid")
    cells_per_group: int = Field(5, ge=1, le=10, description="Cell lines between group lines")
    groups_per_cluster: int = Field(2, ge=1, le=10, description="Group lines between cluster lines")
    projection: Projection = Projection.ORTHOGONAL

    cell_line_style: DashStyle = DashStyle.DOTTED
    group_line_style: DashStyle = DashStyle.DASHED
    cluster_line_style: DashStyle = DashStyle.SOLID

    cell_color: Tuple[int, int, int, int] = BLACK
    group_color: Tuple[int, int, int, int] = BLACK
    cluster_color: Tuple[int, int, int, int] = BLACK
    iso_vertical_color: Tuple[int, int, int, int] = (127, 127, 127, 255)
    background_color: Tuple[int, int, int, int] = WHITE

    output_width: int = Field(..., gt=0, description="Raster width (px)")
    output_height: int = Field(..., gt=0, description="Raster height (px)")

    @field_validator(
        'cell_color', 'group_color', 'cluster_color',
        'iso_vertical_color', 'background_color',
        mode='before'
    )
    @classmethod
    def validate_color(cls, v: Any) -> RGBA:
        return _coerce_rgba(v)

    def line_style(self, level: Level) -> DashStyle:
        return {
            Level.CELL: self.cell_line_style,
            Level.GROUP: self.group_line_style,
            Level.CLUSTER: self.cluster_line_style,
        }[Level(level)]

    def line_color(self, level: Level) -> RGBA:
        return {
            Level.CELL: self.cell_color,
            Level.GROUP: self.group_color,
            Level.CLUSTER: self.cluster_color,
        }[Level(level)]


# ============================================================================
# PUBLIC API
# ============================================================================

def make_grid_config(**fields: Any) -> GridConfig:
    """Build a GridConfig, raising GridConfigError on invalid input.

    Raises
    ------
    GridConfigError
        With the pydantic error list in the message
    """
    try:
        return GridConfig(**fields)
    except ValidationError as e:
        raise GridConfigError(f"Invalid grid config: {e}") from e


def grid_config_from_dict(data: Dict[str, Any]) -> GridConfig:
    """Validate a mapping (e.g., parsed YAML) into a GridConfig.

    The optional ``schema`` key must be "grid_config.v1" when present.
    """
    if not isinstance(data, dict):
        raise GridConfigError(f"Grid config must be a mapping, got {type(data).__name__}")
    data = dict(data)
    schema = data.pop('schema', 'grid_config.v1')
    if schema != 'grid_config.v1':
        raise GridConfigError(f"Expected schema 'grid_config.v1', got '{schema}'")
    return make_grid_config(**data)


def grid_config_to_dict(config: GridConfig) -> Dict[str, Any]:
    """Serialize to a YAML/JSON-friendly dict (inverse of grid_config_from_dict)."""
    return {'schema': 'grid_config.v1', **config.model_dump(mode='json')}


def load_grid_config(path: Union[str, Path]) -> GridConfig:
    """Load and validate a resolved grid config from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to a grid_config.v1 YAML file

    Returns
    -------
    GridConfig
        Validated configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    GridConfigError
        If validation fails
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Grid config not found: {path}")

    data = fs.load_yaml(path)
    try:
        return grid_config_from_dict(data)
    except GridConfigError as e:
        raise GridConfigError(f"Grid config validation failed at {path}: {e}") from e
