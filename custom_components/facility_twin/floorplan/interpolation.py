"""Visibility-aware inverse distance weighting over the floor plan grid."""
from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping

from .geometry import is_occluded
from .types import (
    HeatmapConfig,
    HeatSource,
    Raster,
    SensorChannel,
    SensorNode,
    Wall,
)

_LOGGER = logging.getLogger(__name__)

# Keeps the weight finite at the source location
WEIGHT_EPSILON = 0.01


def build_sources(
    nodes: Iterable[SensorNode],
    readings: Mapping[str, Mapping[str, float]],
    channel: str,
) -> list[HeatSource]:
    """
    Join placed, active nodes with their latest reading on one channel.

    Args:
        nodes: Sensor nodes in store order
        readings: Latest reading per node id, channel key -> value
        channel: Channel key to interpolate

    Returns:
        Heat sources with a finite value
    """
    sources = []
    for node in nodes:
        if not node.active or not node.is_placed:
            continue
        value = readings.get(node.id, {}).get(channel)
        if value is None:
            continue
        try:
            value = float(value)
        except (TypeError, ValueError):
            _LOGGER.debug("Ignoring non-numeric %s reading for node %s", channel, node.id)
            continue
        if not math.isfinite(value):
            continue
        sources.append(HeatSource(x=node.x, y=node.y, value=value, radius=node.radius))
    return sources


def _valid_sources(sources: Iterable[HeatSource]) -> list[HeatSource]:
    return [
        s
        for s in sources
        if math.isfinite(s.x)
        and math.isfinite(s.y)
        and math.isfinite(s.value)
        and math.isfinite(s.radius)
        and s.radius >= 0
    ]


def compute_raster(
    sources: Iterable[HeatSource],
    walls: Iterable[Wall],
    width: int,
    height: int,
    power: float = 2.0,
    radius_multiplier: float = 1.0,
) -> Raster:
    """
    Interpolate scattered source values onto a one-cell-per-meter grid.

    Each integer cell (gx, gy) takes the weighted average of every source that
    is within its scaled influence radius and not hidden behind a wall. The
    weight is 1 / (distance ** power + 0.01). Cells without any contributing
    source stay nan.

    Args:
        sources: Heat sources with position, value and influence radius
        walls: Occluding wall segments
        width: Raster width in cells
        height: Raster height in cells
        power: Distance exponent, at least 1
        radius_multiplier: Scale applied to every source radius

    Returns:
        Raster of interpolated values
    """
    if power < 1:
        raise ValueError("power must be at least 1")
    if radius_multiplier <= 0:
        raise ValueError("radius_multiplier must be positive")

    raster = Raster.empty(width, height)
    valid = _valid_sources(sources)
    if not valid:
        _LOGGER.debug("No heat sources, raster is empty")
        return raster

    occluders = [w for w in walls if not w.is_degenerate]
    reaches = [(source, source.radius * radius_multiplier) for source in valid]

    for gy in range(height):
        row = raster.cells[gy]
        for gx in range(width):
            weight_sum = 0.0
            value_sum = 0.0

            for source, reach in reaches:
                dx = gx - source.x
                dy = gy - source.y
                dist = math.sqrt(dx * dx + dy * dy)

                if dist > reach:
                    continue
                if dist > 0 and is_occluded(gx, gy, source.x, source.y, occluders):
                    continue

                weight = 1 / (dist**power + WEIGHT_EPSILON)
                weight_sum += weight
                value_sum += weight * source.value

            if weight_sum > 0:
                row[gx] = value_sum / weight_sum

    _LOGGER.debug(
        "Computed %dx%d raster from %d sources and %d walls (%d cells defined)",
        width,
        height,
        len(valid),
        len(occluders),
        raster.defined_count(),
    )
    return raster


def compute_heatmap(
    sources: Iterable[HeatSource],
    walls: Iterable[Wall],
    floor_width: float,
    floor_height: float,
    config: HeatmapConfig,
) -> Raster:
    """Compute the raster for a floor plan using the heatmap configuration."""
    return compute_raster(
        sources,
        walls,
        round(floor_width),
        round(floor_height),
        power=config.power,
        radius_multiplier=config.radius_multiplier,
    )


def sample_region(
    raster: Raster, x1: float, y1: float, x2: float, y2: float
) -> tuple[float, int] | None:
    """
    Average the defined cells covered by a rectangle.

    Corners may be given in any order and are clamped to the raster.

    Returns:
        (average, sample_count), or None when every covered cell is missing
    """
    if raster.width == 0 or raster.height == 0:
        return None

    def clamp_x(v: float) -> int:
        return max(0, min(math.floor(v), raster.width - 1))

    def clamp_y(v: float) -> int:
        return max(0, min(math.floor(v), raster.height - 1))

    left = clamp_x(min(x1, x2))
    right = clamp_x(max(x1, x2))
    top = clamp_y(min(y1, y2))
    bottom = clamp_y(max(y1, y2))

    total = 0.0
    count = 0
    for gy in range(top, bottom + 1):
        for gx in range(left, right + 1):
            value = raster.cells[gy][gx]
            if not math.isnan(value):
                total += value
                count += 1

    if count == 0:
        return None
    return total / count, count


def value_range(channel: SensorChannel | None, config: HeatmapConfig) -> tuple[float, float]:
    """Color scale bounds: explicit overrides first, then the channel defaults."""
    default_min = channel.min if channel else 0.0
    default_max = channel.max if channel else 1.0
    vmin = config.min_override if config.min_override is not None else default_min
    vmax = config.max_override if config.max_override is not None else default_max
    return float(vmin), float(vmax)
