"""Decorative canvas elements: one frozen dataclass per shape kind."""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Union

from .errors import InvalidGeometry
from .geometry import is_finite_point, normalize_angle
from .types import Point

DEFAULT_FILL = "#3b82f6"
DEFAULT_STROKE = "#1e3a5f"
DEFAULT_STROKE_WIDTH = 2.0
DEFAULT_FONT_SIZE = 14.0

ICON_NAMES = ("door", "window", "desk", "chair", "stairs", "elevator")


@dataclass(frozen=True)
class RectElement:
    """Rectangle centered on (x, y)."""
    id: str | None
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0
    fill_color: str = DEFAULT_FILL
    stroke_color: str = DEFAULT_STROKE
    stroke_width: float = DEFAULT_STROKE_WIDTH
    kind = "rect"


@dataclass(frozen=True)
class CircleElement:
    id: str | None
    x: float
    y: float
    radius: float
    rotation: float = 0.0
    fill_color: str = DEFAULT_FILL
    stroke_color: str = DEFAULT_STROKE
    stroke_width: float = DEFAULT_STROKE_WIDTH
    kind = "circle"


@dataclass(frozen=True)
class TriangleElement:
    """Triangle anchored at its first vertex."""
    id: str | None
    points: tuple[Point, Point, Point]
    rotation: float = 0.0
    fill_color: str = DEFAULT_FILL
    stroke_color: str = DEFAULT_STROKE
    stroke_width: float = DEFAULT_STROKE_WIDTH
    kind = "triangle"

    @property
    def x(self) -> float:
        return self.points[0].x

    @property
    def y(self) -> float:
        return self.points[0].y


@dataclass(frozen=True)
class TextElement:
    id: str | None
    x: float
    y: float
    text: str
    font_size: float = DEFAULT_FONT_SIZE
    rotation: float = 0.0
    fill_color: str = DEFAULT_FILL
    stroke_color: str = DEFAULT_STROKE
    stroke_width: float = DEFAULT_STROKE_WIDTH
    kind = "text"


@dataclass(frozen=True)
class IconElement:
    """Floor plan symbol centered on (x, y)."""
    id: str | None
    x: float
    y: float
    icon: str
    width: float = 10.0
    height: float = 10.0
    rotation: float = 0.0
    fill_color: str = DEFAULT_FILL
    stroke_color: str = DEFAULT_STROKE
    stroke_width: float = DEFAULT_STROKE_WIDTH
    kind = "icon"


Element = Union[RectElement, CircleElement, TriangleElement, TextElement, IconElement]

ELEMENT_TYPES = ("rect", "circle", "triangle", "text", "icon")


def _number(data: dict[str, Any], key: str, default: float | None = None) -> float:
    value = data.get(key, default)
    if value is None:
        raise InvalidGeometry(f"Missing '{key}'")
    try:
        value = float(value)
    except (TypeError, ValueError) as err:
        raise InvalidGeometry(f"'{key}' must be a number") from err
    if not math.isfinite(value):
        raise InvalidGeometry(f"'{key}' must be finite")
    return value


def _style(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "rotation": normalize_angle(_number(data, "rotation", 0.0)),
        "fill_color": data.get("fill_color") or DEFAULT_FILL,
        "stroke_color": data.get("stroke_color") or DEFAULT_STROKE,
        "stroke_width": _number(data, "stroke_width", DEFAULT_STROKE_WIDTH),
    }


def element_from_dict(data: dict[str, Any]) -> Element:
    """
    Build an element from its stored dict form.

    Raises:
        InvalidGeometry: unknown type, missing or non-finite fields
    """
    kind = data.get("type")
    element_id = data.get("id")
    if element_id is not None:
        element_id = str(element_id)

    if kind == "rect":
        return RectElement(
            id=element_id,
            x=_number(data, "x"),
            y=_number(data, "y"),
            width=_number(data, "width", 10.0),
            height=_number(data, "height", 10.0),
            **_style(data),
        )
    if kind == "circle":
        return CircleElement(
            id=element_id,
            x=_number(data, "x"),
            y=_number(data, "y"),
            radius=_number(data, "radius", 5.0),
            **_style(data),
        )
    if kind == "triangle":
        raw_points = data.get("points") or []
        if len(raw_points) != 3:
            raise InvalidGeometry("A triangle needs exactly three points")
        points = tuple(Point(x=_number(p, "x"), y=_number(p, "y")) for p in raw_points)
        return TriangleElement(id=element_id, points=points, **_style(data))
    if kind == "text":
        return TextElement(
            id=element_id,
            x=_number(data, "x"),
            y=_number(data, "y"),
            text=str(data.get("text") or ""),
            font_size=_number(data, "font_size", DEFAULT_FONT_SIZE),
            **_style(data),
        )
    if kind == "icon":
        icon = data.get("icon") or ICON_NAMES[0]
        if icon not in ICON_NAMES:
            raise InvalidGeometry(f"Unknown icon: {icon}")
        return IconElement(
            id=element_id,
            x=_number(data, "x"),
            y=_number(data, "y"),
            icon=icon,
            width=_number(data, "width", 10.0),
            height=_number(data, "height", 10.0),
            **_style(data),
        )
    raise InvalidGeometry(f"Unknown element type: {kind}")


def element_to_dict(element: Element) -> dict[str, Any]:
    """Serialize an element into its stored dict form."""
    data: dict[str, Any] = {
        "type": element.kind,
        "x": element.x,
        "y": element.y,
        "rotation": element.rotation,
        "fill_color": element.fill_color,
        "stroke_color": element.stroke_color,
        "stroke_width": element.stroke_width,
    }
    if element.id is not None:
        data["id"] = element.id

    if isinstance(element, RectElement):
        data.update(width=element.width, height=element.height)
    elif isinstance(element, CircleElement):
        data.update(radius=element.radius)
    elif isinstance(element, TriangleElement):
        data["points"] = [{"x": p.x, "y": p.y} for p in element.points]
    elif isinstance(element, TextElement):
        data.update(text=element.text, font_size=element.font_size)
    elif isinstance(element, IconElement):
        data.update(icon=element.icon, width=element.width, height=element.height)
    else:
        raise TypeError(f"Unhandled element {element!r}")
    return data


def validate_element(element: Element) -> Element:
    """
    Reject elements that cannot be drawn.

    Raises:
        InvalidGeometry: non-finite coordinates, non-positive size or
            a zero-area triangle
    """
    if isinstance(element, TriangleElement):
        coords = [c for p in element.points for c in (p.x, p.y)]
        if not is_finite_point(*coords):
            raise InvalidGeometry("Triangle vertices must be finite")
        a, b, c = element.points
        area = (b.x - a.x) * (c.y - a.y) - (c.x - a.x) * (b.y - a.y)
        if abs(area) < 1e-9:
            raise InvalidGeometry("Triangle vertices are collinear")
        return element

    if not is_finite_point(element.x, element.y):
        raise InvalidGeometry("Element position must be finite")

    if isinstance(element, (RectElement, IconElement)):
        if not (element.width > 0 and element.height > 0):
            raise InvalidGeometry("Element size must be positive")
    elif isinstance(element, CircleElement):
        if not element.radius > 0:
            raise InvalidGeometry("Circle radius must be positive")
    elif isinstance(element, TextElement):
        if not element.text:
            raise InvalidGeometry("Text must not be empty")
    else:
        raise TypeError(f"Unhandled element {element!r}")
    return element


def move_element(element: Element, x: float, y: float) -> Element:
    """Return a copy anchored at (x, y); triangles translate every vertex."""
    if isinstance(element, TriangleElement):
        dx = x - element.x
        dy = y - element.y
        return replace(
            element, points=tuple(Point(x=p.x + dx, y=p.y + dy) for p in element.points)
        )
    return replace(element, x=x, y=y)


def rotate_element(element: Element, degrees: float) -> Element:
    return replace(element, rotation=normalize_angle(degrees))


def has_rotation_handle(element: Element) -> bool:
    """Rects, text and icons rotate by handle; circles and triangles do not."""
    if isinstance(element, (RectElement, TextElement, IconElement)):
        return True
    if isinstance(element, (CircleElement, TriangleElement)):
        return False
    raise TypeError(f"Unhandled element {element!r}")


def bounding_box(element: Element) -> tuple[float, float, float, float]:
    """Axis-aligned (min_x, min_y, max_x, max_y) of the unrotated shape."""
    if isinstance(element, (RectElement, IconElement)):
        hw = element.width / 2
        hh = element.height / 2
        return (element.x - hw, element.y - hh, element.x + hw, element.y + hh)
    if isinstance(element, CircleElement):
        r = element.radius
        return (element.x - r, element.y - r, element.x + r, element.y + r)
    if isinstance(element, TriangleElement):
        xs = [p.x for p in element.points]
        ys = [p.y for p in element.points]
        return (min(xs), min(ys), max(xs), max(ys))
    if isinstance(element, TextElement):
        return (element.x, element.y - element.font_size, element.x, element.y)
    raise TypeError(f"Unhandled element {element!r}")
