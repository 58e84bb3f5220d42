"""Raster to color processing for the heatmap overlay."""
from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import Any

from PIL import Image

from .errors import InvalidGeometry
from .types import ColorStop, Raster

DEFAULT_OPACITY = 160


def value_to_color(t: float) -> tuple[int, int, int]:
    """
    Map a normalized value to the default blue-cyan-green-yellow-red ramp.

    Args:
        t: Normalized value, clamped to [0, 1]

    Returns:
        RGB color tuple like (255, 0, 0)
    """
    t = max(0.0, min(1.0, t))

    # Blue (0, 0, 255) to cyan (0, 255, 255)
    if t < 0.25:
        f = t / 0.25
        return (0, round(255 * f), 255)

    # Cyan to green (0, 255, 0)
    if t < 0.5:
        f = (t - 0.25) / 0.25
        return (0, 255, round(255 * (1 - f)))

    # Green to yellow (255, 255, 0)
    if t < 0.75:
        f = (t - 0.5) / 0.25
        return (round(255 * f), 255, 0)

    # Yellow to red (255, 0, 0)
    f = (t - 0.75) / 0.25
    return (255, round(255 * (1 - f)), 0)


def parse_hex_color(value: str) -> tuple[int, int, int]:
    """Parse '#rrggbb' (or '#rgb') into an RGB tuple."""
    text = value.strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise ValueError(f"Invalid color: {value}")
    return (int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16))


def parse_color_stops(stops: Iterable[Any]) -> tuple[ColorStop, ...]:
    """
    Build an ordered gradient from user supplied stops.

    Each stop is either a color string, a (position, color) pair, or a
    mapping with "color" and an optional "position". Stops without a
    position are spread evenly over [0, 1].

    Returns:
        Stops sorted by position, or an empty tuple when fewer than two
    """
    raw: list[tuple[float | None, tuple[int, int, int]]] = []
    for stop in stops:
        if isinstance(stop, ColorStop):
            raw.append((stop.position, stop.color))
        elif isinstance(stop, str):
            raw.append((None, parse_hex_color(stop)))
        elif isinstance(stop, dict):
            position = stop.get("position")
            raw.append(
                (None if position is None else float(position), parse_hex_color(stop["color"]))
            )
        else:
            position, color = stop
            raw.append((None if position is None else float(position), parse_hex_color(color)))

    if len(raw) < 2:
        return ()

    count = len(raw)
    result = []
    for index, (position, color) in enumerate(raw):
        if position is None:
            position = index / (count - 1)
        result.append(ColorStop(position=max(0.0, min(1.0, position)), color=color))

    result.sort(key=lambda s: s.position)
    return tuple(result)


def gradient_color(t: float, stops: Sequence[ColorStop]) -> tuple[int, int, int]:
    """Linear interpolation through ordered color stops."""
    if len(stops) < 2:
        raise InvalidGeometry("A gradient needs at least two color stops")
    t = max(0.0, min(1.0, t))

    if t <= stops[0].position:
        return stops[0].color
    if t >= stops[-1].position:
        return stops[-1].color

    for lower, upper in zip(stops, stops[1:]):
        if lower.position <= t <= upper.position:
            span = upper.position - lower.position
            f = 0.0 if span == 0 else (t - lower.position) / span
            return (
                round(lower.color[0] + (upper.color[0] - lower.color[0]) * f),
                round(lower.color[1] + (upper.color[1] - lower.color[1]) * f),
                round(lower.color[2] + (upper.color[2] - lower.color[2]) * f),
            )
    return stops[-1].color


def normalize(value: float, vmin: float, vmax: float) -> float:
    """Map a value to [0, 1]; an empty range counts as a range of 1."""
    span = vmax - vmin
    if span == 0:
        span = 1.0
    return max(0.0, min(1.0, (value - vmin) / span))


def raster_to_rgba(
    raster: Raster,
    vmin: float,
    vmax: float,
    opacity: int = DEFAULT_OPACITY,
    stops: Sequence[ColorStop] | None = None,
) -> bytes:
    """
    Convert a scalar raster into RGBA pixel bytes.

    Missing cells become fully transparent pixels; defined cells use the
    custom gradient when at least two stops are given, otherwise the default
    ramp, at the given global alpha.

    Args:
        raster: Interpolated values
        vmin: Value mapped to the start of the ramp
        vmax: Value mapped to the end of the ramp
        opacity: Alpha for defined pixels (0-255)
        stops: Optional custom gradient

    Returns:
        Row-major RGBA bytes, 4 per cell
    """
    alpha = max(0, min(255, int(opacity)))
    use_stops = stops is not None and len(stops) >= 2
    data = bytearray(raster.width * raster.height * 4)

    offset = 0
    for row in raster.cells:
        for value in row:
            if not math.isnan(value):
                t = normalize(value, vmin, vmax)
                r, g, b = gradient_color(t, stops) if use_stops else value_to_color(t)
                data[offset] = r
                data[offset + 1] = g
                data[offset + 2] = b
                data[offset + 3] = alpha
            offset += 4

    return bytes(data)


def raster_to_image(
    raster: Raster,
    vmin: float,
    vmax: float,
    opacity: int = DEFAULT_OPACITY,
    stops: Sequence[ColorStop] | None = None,
) -> Image.Image:
    """Convert a scalar raster into a Pillow RGBA image of the same size."""
    return Image.frombytes(
        "RGBA",
        (raster.width, raster.height),
        raster_to_rgba(raster, vmin, vmax, opacity, stops),
    )
