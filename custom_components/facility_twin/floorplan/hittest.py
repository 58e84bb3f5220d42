"""Resolve a pointer position to the entity it refers to."""
from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from .elements import (
    CircleElement,
    Element,
    IconElement,
    RectElement,
    TextElement,
    TriangleElement,
    bounding_box,
    has_rotation_handle,
)
from .geometry import point_to_segment_distance, rotate_point
from .transform import ViewTransform
from .types import Point, SensorNode, Wall

# Screen pixels between an element's edge and its rotation handle
ROTATE_HANDLE_DISTANCE = 20.0
ELEMENT_HANDLE_TOLERANCE = 12.0
WALL_HANDLE_TOLERANCE = 14.0

# World tolerances in meters
NODE_HIT_RADIUS = 6.0
ELEMENT_HIT_MARGIN = 6.0
WALL_HIT_DISTANCE = 4.0
TEXT_HIT_HALF_WIDTH = 20.0
TEXT_HIT_HALF_HEIGHT = 10.0

MIN_ICON_PIXELS = 10.0


class HitKind(str, Enum):
    """What a hit refers to."""

    ELEMENT_HANDLE = "element_handle"
    WALL_HANDLE = "wall_handle"
    NODE = "node"
    ELEMENT = "element"
    WALL = "wall"


class SelectionKind(str, Enum):
    NODE = "node"
    WALL = "wall"
    ELEMENT = "element"


@dataclass(frozen=True)
class Selection:
    """The single selected entity."""
    kind: SelectionKind
    id: str


@dataclass(frozen=True)
class Hit:
    kind: HitKind
    id: str


def element_handle_position(element: Element, transform: ViewTransform) -> Point | None:
    """Screen position of an element's rotation handle, or None if it has none."""
    if not has_rotation_handle(element):
        return None
    center = transform.world_to_screen(element.x, element.y)

    if isinstance(element, RectElement):
        offset = element.height * transform.scale_y / 2 + ROTATE_HANDLE_DISTANCE
        return rotate_point(center.x, center.y - offset, center.x, center.y, element.rotation)
    if isinstance(element, IconElement):
        size = max(element.width * transform.scale_x, MIN_ICON_PIXELS)
        offset = size / 2 + ROTATE_HANDLE_DISTANCE
        return rotate_point(center.x, center.y - offset, center.x, center.y, element.rotation)
    if isinstance(element, TextElement):
        font_px = element.font_size * transform.font_scale
        return Point(x=center.x, y=center.y - font_px - ROTATE_HANDLE_DISTANCE)
    raise TypeError(f"Unhandled element {element!r}")


def wall_handle_position(wall: Wall, transform: ViewTransform) -> Point:
    """Walls rotate from a handle on their second endpoint."""
    return transform.world_to_screen(wall.x2, wall.y2)


def find_node_at(nodes: Sequence[SensorNode], x: float, y: float) -> SensorNode | None:
    """Nearest placed node within the hit radius."""
    closest = None
    closest_dist = math.inf
    for node in nodes:
        if not node.is_placed:
            continue
        dist = math.hypot(node.x - x, node.y - y)
        if dist < NODE_HIT_RADIUS and dist < closest_dist:
            closest = node
            closest_dist = dist
    return closest


def element_contains(element: Element, x: float, y: float) -> bool:
    """Shape-specific hit test with a fixed margin."""
    margin = ELEMENT_HIT_MARGIN
    if isinstance(element, (RectElement, IconElement)):
        return (
            abs(x - element.x) < element.width / 2 + margin
            and abs(y - element.y) < element.height / 2 + margin
        )
    if isinstance(element, CircleElement):
        return math.hypot(x - element.x, y - element.y) < element.radius + margin
    if isinstance(element, TriangleElement):
        min_x, min_y, max_x, max_y = bounding_box(element)
        return min_x - margin <= x <= max_x + margin and min_y - margin <= y <= max_y + margin
    if isinstance(element, TextElement):
        return abs(x - element.x) < TEXT_HIT_HALF_WIDTH and abs(y - element.y) < TEXT_HIT_HALF_HEIGHT
    raise TypeError(f"Unhandled element {element!r}")


def find_element_at(elements: Sequence[Element], x: float, y: float) -> Element | None:
    """Topmost element under the point; later elements are drawn on top."""
    for element in reversed(elements):
        if element.id is None:
            continue
        if element_contains(element, x, y):
            return element
    return None


def find_wall_at(walls: Sequence[Wall], x: float, y: float) -> Wall | None:
    """Nearest non-degenerate wall within the hit distance."""
    closest = None
    closest_dist = math.inf
    for wall in walls:
        if wall.is_degenerate:
            continue
        dist = point_to_segment_distance(x, y, wall.x1, wall.y1, wall.x2, wall.y2)
        if dist < WALL_HIT_DISTANCE and dist < closest_dist:
            closest = wall
            closest_dist = dist
    return closest


def hit_test(
    sx: float,
    sy: float,
    transform: ViewTransform,
    nodes: Sequence[SensorNode],
    walls: Sequence[Wall],
    elements: Sequence[Element],
    selection: Selection | None = None,
    include_handles: bool = True,
) -> Hit | None:
    """
    Resolve a screen point to an entity.

    Precedence: the selected element's or wall's rotation handle, then
    nodes, then elements (topmost first), then walls. The first match wins.

    Args:
        sx, sy: Pointer position in display pixels
        transform: Current view transform
        nodes: Sensor nodes
        walls: Wall segments
        elements: Decorative elements in drawing order
        selection: Current selection, whose handle is tested first
        include_handles: False when the canvas is locked

    Returns:
        The hit entity, or None
    """
    if include_handles and selection is not None:
        if selection.kind is SelectionKind.ELEMENT:
            element = next((e for e in elements if e.id == selection.id), None)
            if element is not None:
                handle = element_handle_position(element, transform)
                if handle is not None and math.hypot(sx - handle.x, sy - handle.y) < ELEMENT_HANDLE_TOLERANCE:
                    return Hit(HitKind.ELEMENT_HANDLE, element.id)
        elif selection.kind is SelectionKind.WALL:
            wall = next((w for w in walls if w.id == selection.id), None)
            if wall is not None and not wall.is_degenerate:
                handle = wall_handle_position(wall, transform)
                if math.hypot(sx - handle.x, sy - handle.y) < WALL_HANDLE_TOLERANCE:
                    return Hit(HitKind.WALL_HANDLE, wall.id)

    world = transform.screen_to_world(sx, sy)

    node = find_node_at(nodes, world.x, world.y)
    if node is not None:
        return Hit(HitKind.NODE, node.id)

    element = find_element_at(elements, world.x, world.y)
    if element is not None:
        return Hit(HitKind.ELEMENT, element.id)

    wall = find_wall_at(walls, world.x, world.y)
    if wall is not None and wall.id is not None:
        return Hit(HitKind.WALL, wall.id)

    return None
