"""Geometric calculations for the floor plan."""

from __future__ import annotations

import math
from collections.abc import Iterable

from .types import Point, Wall

PARALLEL_EPSILON = 1e-10


def _cross(ax: float, ay: float, bx: float, by: float) -> float:
    return ax * by - ay * bx


def segments_intersect(
    x1: float, y1: float, x2: float, y2: float, x3: float, y3: float, x4: float, y4: float
) -> bool:
    """
    Check whether two line segments cross.

    The test is open: segments that only share an endpoint, or touch at an
    endpoint, do not intersect. Parallel and collinear segments never do.

    Args:
        x1, y1: Start point of first segment
        x2, y2: End point of first segment
        x3, y3: Start point of second segment
        x4, y4: End point of second segment

    Returns:
        True if the open segments intersect
    """
    dx1 = x2 - x1
    dy1 = y2 - y1
    dx2 = x4 - x3
    dy2 = y4 - y3

    denom = _cross(dx1, dy1, dx2, dy2)
    if abs(denom) < PARALLEL_EPSILON:
        return False

    t = _cross(x3 - x1, y3 - y1, dx2, dy2) / denom
    u = _cross(x3 - x1, y3 - y1, dx1, dy1) / denom

    return 0 < t < 1 and 0 < u < 1


def is_occluded(ax: float, ay: float, bx: float, by: float, walls: Iterable[Wall]) -> bool:
    """
    Check if any wall blocks the line of sight between two points.

    Degenerate (zero-length) walls never occlude.

    Args:
        ax, ay: First point
        bx, by: Second point
        walls: Walls to test against

    Returns:
        True if the segment from a to b crosses a wall
    """
    if ax == bx and ay == by:
        return False
    for wall in walls:
        if wall.is_degenerate:
            continue
        if segments_intersect(ax, ay, bx, by, wall.x1, wall.y1, wall.x2, wall.y2):
            return True
    return False


def point_to_segment_distance(
    px: float, py: float, x1: float, y1: float, x2: float, y2: float
) -> float:
    """Distance from a point to the closest point of a segment."""
    c = x2 - x1
    d = y2 - y1
    len_sq = c * c + d * d

    if len_sq == 0:
        # Segment is a point
        return math.hypot(px - x1, py - y1)

    param = ((px - x1) * c + (py - y1) * d) / len_sq
    param = max(0.0, min(1.0, param))

    return math.hypot(px - (x1 + param * c), py - (y1 + param * d))


def segment_midpoint(x1: float, y1: float, x2: float, y2: float) -> Point:
    return Point(x=(x1 + x2) / 2, y=(y1 + y2) / 2)


def segment_length(x1: float, y1: float, x2: float, y2: float) -> float:
    return math.hypot(x2 - x1, y2 - y1)


def normalize_angle(degrees: float) -> float:
    """Wrap an angle in degrees into [0, 360)."""
    result = degrees % 360.0
    # -1e-15 % 360 rounds to 360.0
    if result >= 360.0:
        result = 0.0
    return result


def angle_of(dx: float, dy: float) -> float:
    """Direction of a vector in degrees, normalized to [0, 360)."""
    return normalize_angle(math.degrees(math.atan2(dy, dx)))


def snap_angle(degrees: float, step: float = 15.0, tolerance: float = 3.0) -> float:
    """
    Snap an angle to the nearest multiple of step when within tolerance.

    Args:
        degrees: Raw angle
        step: Snap increment in degrees
        tolerance: Maximum distance from a multiple that still snaps

    Returns:
        The snapped angle, or the raw angle when no multiple is close enough
    """
    snapped = round(degrees / step) * step
    if abs(degrees - snapped) < tolerance:
        return snapped
    return degrees


def rotate_point(x: float, y: float, cx: float, cy: float, degrees: float) -> Point:
    """Rotate (x, y) around (cx, cy) by the given angle (clockwise on screen)."""
    rad = math.radians(degrees)
    cos_a = math.cos(rad)
    sin_a = math.sin(rad)
    dx = x - cx
    dy = y - cy
    return Point(x=cx + dx * cos_a - dy * sin_a, y=cy + dx * sin_a + dy * cos_a)


def is_finite_point(*coords: float | None) -> bool:
    """True when every coordinate is a finite number."""
    for value in coords:
        if value is None or not math.isfinite(value):
            return False
    return True
