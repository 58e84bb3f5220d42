"""Mapping between floor plan meters and display pixels."""
from __future__ import annotations

from .types import Point

MIN_ZOOM = 0.5
MAX_ZOOM = 5.0
WHEEL_ZOOM_RATE = 0.002
WHEEL_PAN_RATE = 0.5


def clamp_zoom(zoom: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))


class ViewTransform:
    """
    Zoom and pan state of a floor plan view.

    Screen points are first scaled to "base" units, which are floor meters at
    zoom 1 with no pan. The pan offset lives in base units, so
    world = (base - pan) / zoom.
    """

    def __init__(
        self,
        floor_width: float,
        floor_height: float,
        display_width: float,
        display_height: float,
        zoom: float = 1.0,
        pan_x: float = 0.0,
        pan_y: float = 0.0,
    ) -> None:
        if display_width <= 0 or display_height <= 0:
            raise ValueError("Display size must be positive")
        self.floor_width = floor_width
        self.floor_height = floor_height
        self.display_width = display_width
        self.display_height = display_height
        self.zoom = clamp_zoom(zoom)
        self.pan_x = pan_x
        self.pan_y = pan_y

    @property
    def base_scale_x(self) -> float:
        """Display pixels per base unit along x."""
        return self.display_width / self.floor_width

    @property
    def base_scale_y(self) -> float:
        return self.display_height / self.floor_height

    @property
    def scale_x(self) -> float:
        """Display pixels per meter at the current zoom."""
        return self.base_scale_x * self.zoom

    @property
    def scale_y(self) -> float:
        return self.base_scale_y * self.zoom

    @property
    def font_scale(self) -> float:
        """Label scale factor; labels stop growing beyond 2 pixels per meter."""
        sx = self.scale_x
        return 1.0 if sx > 2 else sx / 2 + 0.5

    def to_base(self, sx: float, sy: float) -> Point:
        return Point(x=sx / self.base_scale_x, y=sy / self.base_scale_y)

    def screen_to_world(self, sx: float, sy: float) -> Point:
        base = self.to_base(sx, sy)
        return Point(x=(base.x - self.pan_x) / self.zoom, y=(base.y - self.pan_y) / self.zoom)

    def world_to_screen(self, x: float, y: float) -> Point:
        return Point(
            x=(x * self.zoom + self.pan_x) * self.base_scale_x,
            y=(y * self.zoom + self.pan_y) * self.base_scale_y,
        )

    def zoom_at(self, sx: float, sy: float, factor: float) -> None:
        """Zoom by factor while keeping the world point under (sx, sy) fixed."""
        base = self.to_base(sx, sy)
        world = self.screen_to_world(sx, sy)
        new_zoom = clamp_zoom(self.zoom * factor)
        self.pan_x = base.x - world.x * new_zoom
        self.pan_y = base.y - world.y * new_zoom
        self.zoom = new_zoom

    def pan_by(self, dx: float, dy: float) -> None:
        """Shift the view by a raw delta without touching zoom."""
        self.pan_x += dx
        self.pan_y += dy

    def wheel(self, delta_x: float, delta_y: float, zoom_modifier: bool, sx: float = 0.0, sy: float = 0.0) -> None:
        """Wheel input: zoom around the cursor with the modifier held, pan otherwise."""
        if zoom_modifier:
            self.zoom_at(sx, sy, 1 - delta_y * WHEEL_ZOOM_RATE)
        else:
            self.pan_by(-delta_x * WHEEL_PAN_RATE, -delta_y * WHEEL_PAN_RATE)

    def resize(self, display_width: float, display_height: float) -> None:
        if display_width <= 0 or display_height <= 0:
            raise ValueError("Display size must be positive")
        self.display_width = display_width
        self.display_height = display_height

    def reset(self) -> None:
        self.zoom = 1.0
        self.pan_x = 0.0
        self.pan_y = 0.0

    def as_dict(self) -> dict[str, float]:
        return {"zoom": self.zoom, "pan_x": self.pan_x, "pan_y": self.pan_y}
