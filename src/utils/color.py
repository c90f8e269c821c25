"""RGBA color helpers and alpha (pre)multiplication.

Provides:
    - parse_rgba(): Normalize tuples, lists and hex strings to an RGBA tuple
    - to_hex(): Format an RGBA tuple as "#RRGGBBAA"
    - mix_colors(): Per-channel integer mean of two colors
    - scale_alpha(): Scale a color's alpha by a fraction of 255
    - premultiply() / unpremultiply(): Convert (H, W, 4) buffers for filtering

Conventions:
    - Colors are (r, g, b, a) tuples of ints in [0, 255]
    - Buffers are (..., 4) arrays; uint8 straight alpha at I/O boundaries
    - Premultiplied buffers are float32 with rgb in [0, 255*255] (rgb * a)
      and alpha in [0, 255], so integer inputs stay exact in float32
"""

from typing import Sequence, Tuple, Union

import numpy as np

RGBA = Tuple[int, int, int, int]

TRANSPARENT: RGBA = (255, 255, 255, 0)
BLACK: RGBA = (0, 0, 0, 255)
WHITE: RGBA = (255, 255, 255, 255)


def parse_rgba(value: Union[str, Sequence[int]]) -> RGBA:
    """Normalize a color specification to an (r, g, b, a) tuple.

    Parameters
    ----------
    value : str or sequence of int
        "#RRGGBB", "#RRGGBBAA" (leading '#' optional), or 3/4 integers.
        Three components imply alpha 255.

    Returns
    -------
    RGBA
        Tuple of four ints in [0, 255]

    Raises
    ------
    ValueError
        If the format is unknown or a component is out of range
    """
    if isinstance(value, str):
        text = value.strip().lstrip('#')
        if len(text) not in (6, 8):
            raise ValueError(f"Hex color must be #RRGGBB or #RRGGBBAA, got {value!r}")
        try:
            channels = [int(text[k:k + 2], 16) for k in range(0, len(text), 2)]
        except ValueError as e:
            raise ValueError(f"Invalid hex color {value!r}") from e
    else:
        channels = list(value)

    if len(channels) == 3:
        channels.append(255)
    if len(channels) != 4:
        raise ValueError(f"Color needs 3 or 4 components, got {len(channels)}: {value!r}")

    out = []
    for c in channels:
        if isinstance(c, bool) or int(c) != c:
            raise ValueError(f"Color components must be integers, got {c!r}")
        c = int(c)
        if not 0 <= c <= 255:
            raise ValueError(f"Color component {c} out of range [0, 255]")
        out.append(c)
    return (out[0], out[1], out[2], out[3])


def to_hex(color: RGBA) -> str:
    """Format color as "#RRGGBBAA"."""
    return '#' + ''.join(f"{c:02X}" for c in color)


def mix_colors(a: RGBA, b: RGBA) -> RGBA:
    """Per-channel integer mean (truncating), alpha included."""
    return (
        (a[0] + b[0]) // 2,
        (a[1] + b[1]) // 2,
        (a[2] + b[2]) // 2,
        (a[3] + b[3]) // 2,
    )


def scale_alpha(color: RGBA, fraction_255: int) -> RGBA:
    """Scale alpha to ``fraction_255 / 255`` of its current value (rounded)."""
    alpha = int(round(color[3] * fraction_255 / 255.0))
    return (color[0], color[1], color[2], alpha)


def premultiply(pixels: np.ndarray) -> np.ndarray:
    """Convert straight-alpha uint8 RGBA to premultiplied float32.

    Parameters
    ----------
    pixels : np.ndarray
        Shape (..., 4), uint8

    Returns
    -------
    np.ndarray
        Shape (..., 4), float32: rgb * a in [0, 65025], alpha in [0, 255]
    """
    out = pixels.astype(np.float32)
    out[..., :3] *= out[..., 3:4]
    return out


def unpremultiply(premul: np.ndarray, fallback: np.ndarray) -> np.ndarray:
    """Convert premultiplied float32 RGBA back to straight uint8.

    Parameters
    ----------
    premul : np.ndarray
        Shape (..., 4), float32 as produced by premultiply()
    fallback : np.ndarray
        Shape (..., 4), straight-alpha float values used for the rgb of
        pixels whose alpha is zero (their color is not recoverable)

    Returns
    -------
    np.ndarray
        Shape (..., 4), uint8 straight alpha
    """
    alpha = premul[..., 3:4]
    safe = np.where(alpha > 0, alpha, 1.0)
    rgb = np.where(alpha > 0, premul[..., :3] / safe, fallback[..., :3])
    out = np.concatenate([rgb, alpha], axis=-1)
    return np.clip(np.rint(out), 0, 255).astype(np.uint8)
