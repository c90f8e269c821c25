"""Graph Paper: parametric grid rendering onto pixel regions.

This package renders "graph paper" patterns (cell, group and cluster grids,
orthogonal or isometric) into RGBA buffers and resamples them into
destination images tile by tile.

Architecture layers (strict one-way dependency):
    scripts/ → src/graph_paper/ → src/utils/

Key invariants:
    - Pixel (col, row) has its center at integer coordinate (col, row)
    - Images are (H, W, 4) uint8 RGBA with straight (non-premultiplied) alpha
    - A composed buffer is read-only once produced; new configs replace it
    - YAML-only configs, validated with pydantic before any rendering
"""

__version__ = "1.2.0"
