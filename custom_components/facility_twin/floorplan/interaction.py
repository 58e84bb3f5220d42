"""Tool modes and pointer gestures of the floor plan editor."""
from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Union

from .elements import (
    CircleElement,
    Element,
    IconElement,
    RectElement,
    TextElement,
    TriangleElement,
    move_element,
    rotate_element,
    validate_element,
)
from .errors import InvalidGeometry
from .geometry import is_finite_point, normalize_angle, segment_midpoint, snap_angle
from .hittest import HitKind, Selection, SelectionKind, hit_test
from .interpolation import sample_region
from .scene import (
    CreateElement,
    CreateWall,
    DeleteElement,
    DeleteWall,
    MoveNode,
    Mutation,
    Scene,
    UpdateElement,
    UpdateWall,
)
from .transform import ViewTransform
from .types import FloorPlan, InspectResult, Point, Raster, SensorNode, Wall

_LOGGER = logging.getLogger(__name__)

# Shapes smaller than this (meters) are discarded on release
MIN_SHAPE_SIZE = 1.0
ROTATION_SNAP_STEP = 15.0
ROTATION_SNAP_TOLERANCE = 3.0


class ToolMode(str, Enum):
    """Editor tools."""

    SELECT = "select"
    WALL = "wall"
    RECT = "rect"
    CIRCLE = "circle"
    TRIANGLE = "triangle"
    TEXT = "text"
    ICON = "icon"
    PLACE = "place"
    INSPECT = "inspect"


@dataclass(frozen=True)
class DragNode:
    node_id: str
    original: SensorNode
    working: SensorNode


@dataclass(frozen=True)
class DragElement:
    element_id: str
    original: Element
    working: Element
    offset_x: float
    offset_y: float


@dataclass(frozen=True)
class DragWall:
    wall_id: str
    original: Wall
    working: Wall
    start_x: float
    start_y: float


@dataclass(frozen=True)
class RotateElement:
    element_id: str
    original: Element
    working: Element


@dataclass(frozen=True)
class RotateWall:
    wall_id: str
    original: Wall
    working: Wall
    mid_x: float
    mid_y: float
    half_length: float


@dataclass(frozen=True)
class DrawWallPreview:
    start: Point
    cursor: Point | None = None


@dataclass(frozen=True)
class DrawShapePreview:
    mode: ToolMode
    anchor: Point
    cursor: Point


@dataclass(frozen=True)
class CollectTrianglePoints:
    points: tuple[Point, ...]
    cursor: Point | None = None


@dataclass(frozen=True)
class InspectRubberBand:
    start: Point
    end: Point
    active: bool = True


@dataclass(frozen=True)
class Pan:
    last_sx: float
    last_sy: float
    # Pending gesture restored when the pan ends
    resume: Gesture | None = None


Gesture = Union[
    DragNode,
    DragElement,
    DragWall,
    RotateElement,
    RotateWall,
    DrawWallPreview,
    DrawShapePreview,
    CollectTrianglePoints,
    InspectRubberBand,
    Pan,
]

# Gestures that commit when the pointer is released, even outside the canvas
COMMITTING_GESTURES = (DragNode, DragElement, DragWall, RotateElement, RotateWall)
# Gestures that Escape abandons
PENDING_GESTURES = (DrawWallPreview, DrawShapePreview, CollectTrianglePoints, InspectRubberBand)


@dataclass
class PointerResult:
    """Outcome of one input event."""
    mutation: Mutation | None = None
    inspect: InspectResult | None = None
    error: str | None = None


@dataclass
class ToolOptions:
    """Styling applied to newly drawn elements."""
    fill_color: str = "#3b82f6"
    stroke_color: str = "#1e3a5f"
    icon: str = "door"
    text: str = ""
    font_size: float = 14.0


class InteractionController:
    """
    Turns pointer and keyboard events into geometry mutations.

    Pointer coordinates are display pixels. Intermediate moves only touch the
    gesture's working copy; a completed gesture returns at most one mutation,
    already applied to the local scene.
    """

    def __init__(
        self,
        floor: FloorPlan,
        transform: ViewTransform,
        scene: Scene | None = None,
        on_change: Callable[[], None] | None = None,
    ) -> None:
        self.floor = floor
        self.transform = transform
        self.scene = scene or Scene()
        self.mode = ToolMode.SELECT
        self.gesture: Gesture | None = None
        self.selection: Selection | None = None
        self.placing_node_id: str | None = None
        self.locked = False
        self.options = ToolOptions()
        self.cursor: Point | None = None
        self.raster: Raster | None = None
        self.unit = ""
        self._on_change = on_change

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    # --- Views used by rendering ---

    def visible_nodes(self) -> list[SensorNode]:
        gesture = self.gesture
        if isinstance(gesture, DragNode):
            return [gesture.working if n.id == gesture.node_id else n for n in self.scene.nodes]
        return list(self.scene.nodes)

    def visible_walls(self) -> list[Wall]:
        gesture = self.gesture
        if isinstance(gesture, (DragWall, RotateWall)):
            return [gesture.working if w.id == gesture.wall_id else w for w in self.scene.walls]
        return list(self.scene.walls)

    def visible_elements(self) -> list[Element]:
        gesture = self.gesture
        if isinstance(gesture, (DragElement, RotateElement)):
            return [
                gesture.working if e.id == gesture.element_id else e for e in self.scene.elements
            ]
        return list(self.scene.elements)

    # --- Tool state ---

    def set_mode(self, mode: ToolMode | str, placing_node_id: str | None = None) -> None:
        """Switch tools, abandoning any gesture in progress."""
        mode = ToolMode(mode)
        self.mode = mode
        self.gesture = None
        if mode is not ToolMode.SELECT:
            self.selection = None
        self.placing_node_id = placing_node_id if mode is ToolMode.PLACE else None
        self._changed()

    def start_placing(self, node_id: str) -> None:
        """Enter place mode for an unplaced node."""
        node = self.scene.get_node(node_id)
        if node is None:
            raise InvalidGeometry(f"Unknown node: {node_id}")
        self.set_mode(ToolMode.PLACE, placing_node_id=node_id)

    def set_locked(self, locked: bool) -> None:
        self.locked = locked
        if locked and isinstance(self.gesture, COMMITTING_GESTURES):
            self.gesture = None
        self._changed()

    def set_raster(self, raster: Raster | None, unit: str = "") -> None:
        self.raster = raster
        self.unit = unit

    def select(self, selection: Selection | None) -> None:
        self.selection = selection
        self._changed()

    # --- Pointer events ---

    def _world(self, sx: float, sy: float) -> Point:
        return self.transform.screen_to_world(sx, sy)

    def pointer_down(self, sx: float, sy: float, button: str = "primary") -> PointerResult:
        if not is_finite_point(sx, sy):
            return PointerResult(error="Pointer position must be finite")

        if button == "secondary":
            return self._start_pan(sx, sy)

        point = self._world(sx, sy)
        self.cursor = point

        if self.mode is ToolMode.INSPECT:
            self.gesture = InspectRubberBand(start=point, end=point)
            self._changed()
            return PointerResult()

        if self.mode is ToolMode.SELECT:
            return self._select_down(sx, sy, point)

        if self.locked:
            return PointerResult()

        handler = {
            ToolMode.WALL: self._wall_click,
            ToolMode.RECT: self._shape_down,
            ToolMode.CIRCLE: self._shape_down,
            ToolMode.TRIANGLE: self._triangle_click,
            ToolMode.TEXT: self._text_click,
            ToolMode.ICON: self._icon_click,
            ToolMode.PLACE: self._place_click,
        }[self.mode]
        result = handler(point)
        self._changed()
        return result

    def _start_pan(self, sx: float, sy: float) -> PointerResult:
        """Pan without losing work: drags commit first, pending gestures resume after."""
        gesture = self.gesture
        result = PointerResult()
        if isinstance(gesture, Pan):
            gesture = gesture.resume
        elif isinstance(gesture, COMMITTING_GESTURES):
            self.gesture = None
            result = self._finish_edit(gesture)
            gesture = None
        self.gesture = Pan(last_sx=sx, last_sy=sy, resume=gesture)
        self._changed()
        return result

    def _end_pan(self, gesture: Pan) -> None:
        self.gesture = gesture.resume
        self._changed()

    def _select_down(self, sx: float, sy: float, point: Point) -> PointerResult:
        hit = hit_test(
            sx,
            sy,
            self.transform,
            self.scene.nodes,
            self.scene.walls,
            self.scene.elements,
            selection=self.selection,
            include_handles=not self.locked,
        )
        self._changed()

        if hit is None:
            self.selection = None
            return PointerResult()

        if hit.kind is HitKind.ELEMENT_HANDLE:
            element = self.scene.get_element(hit.id)
            self.gesture = RotateElement(element_id=hit.id, original=element, working=element)
            return PointerResult()

        if hit.kind is HitKind.WALL_HANDLE:
            wall = self.scene.get_wall(hit.id)
            mid = segment_midpoint(wall.x1, wall.y1, wall.x2, wall.y2)
            self.gesture = RotateWall(
                wall_id=hit.id,
                original=wall,
                working=wall,
                mid_x=mid.x,
                mid_y=mid.y,
                half_length=wall.length / 2,
            )
            return PointerResult()

        if hit.kind is HitKind.NODE:
            self.selection = Selection(SelectionKind.NODE, hit.id)
            if not self.locked:
                node = self.scene.get_node(hit.id)
                self.gesture = DragNode(node_id=hit.id, original=node, working=node)
        elif hit.kind is HitKind.ELEMENT:
            self.selection = Selection(SelectionKind.ELEMENT, hit.id)
            if not self.locked:
                element = self.scene.get_element(hit.id)
                self.gesture = DragElement(
                    element_id=hit.id,
                    original=element,
                    working=element,
                    offset_x=point.x - element.x,
                    offset_y=point.y - element.y,
                )
        elif hit.kind is HitKind.WALL:
            self.selection = Selection(SelectionKind.WALL, hit.id)
            if not self.locked:
                wall = self.scene.get_wall(hit.id)
                self.gesture = DragWall(
                    wall_id=hit.id, original=wall, working=wall, start_x=point.x, start_y=point.y
                )
        return PointerResult()

    def _wall_click(self, point: Point) -> PointerResult:
        point = self.floor.clamp(point.x, point.y)
        gesture = self.gesture
        if not isinstance(gesture, DrawWallPreview):
            self.gesture = DrawWallPreview(start=point, cursor=point)
            return PointerResult()

        self.gesture = None
        wall = Wall(id=None, x1=gesture.start.x, y1=gesture.start.y, x2=point.x, y2=point.y)
        if wall.is_degenerate:
            return PointerResult(error="Wall has zero length")
        return PointerResult(mutation=CreateWall(wall))

    def _shape_down(self, point: Point) -> PointerResult:
        point = self.floor.clamp(point.x, point.y)
        self.gesture = DrawShapePreview(mode=self.mode, anchor=point, cursor=point)
        return PointerResult()

    def _triangle_click(self, point: Point) -> PointerResult:
        point = self.floor.clamp(point.x, point.y)
        gesture = self.gesture
        points = gesture.points if isinstance(gesture, CollectTrianglePoints) else ()
        points = points + (point,)

        if len(points) < 3:
            self.gesture = CollectTrianglePoints(points=points, cursor=point)
            return PointerResult()

        self.gesture = None
        return self._create(
            TriangleElement(
                id=None,
                points=points,
                fill_color=self.options.fill_color,
                stroke_color=self.options.stroke_color,
            )
        )

    def _text_click(self, point: Point) -> PointerResult:
        if not self.options.text:
            return PointerResult()
        point = self.floor.clamp(point.x, point.y)
        return self._create(
            TextElement(
                id=None,
                x=point.x,
                y=point.y,
                text=self.options.text,
                font_size=self.options.font_size,
                fill_color=self.options.fill_color,
            )
        )

    def _icon_click(self, point: Point) -> PointerResult:
        point = self.floor.clamp(point.x, point.y)
        return self._create(
            IconElement(
                id=None,
                x=point.x,
                y=point.y,
                icon=self.options.icon,
                fill_color=self.options.fill_color,
                stroke_color=self.options.stroke_color,
            )
        )

    def _place_click(self, point: Point) -> PointerResult:
        node_id = self.placing_node_id
        if node_id is None or self.scene.get_node(node_id) is None:
            return PointerResult()

        point = self.floor.clamp(point.x, point.y)
        mutation = MoveNode(node_id=node_id, x=point.x, y=point.y)
        self.scene.apply(mutation)
        self.set_mode(ToolMode.SELECT)
        self.selection = Selection(SelectionKind.NODE, node_id)
        return PointerResult(mutation=mutation)

    def _create(self, element: Element) -> PointerResult:
        try:
            validate_element(element)
        except InvalidGeometry as err:
            _LOGGER.debug("Discarding %s: %s", element.kind, err)
            return PointerResult(error=str(err))
        return PointerResult(mutation=CreateElement(element))

    def pointer_move(self, sx: float, sy: float) -> PointerResult:
        if not is_finite_point(sx, sy):
            return PointerResult(error="Pointer position must be finite")

        gesture = self.gesture
        if isinstance(gesture, Pan):
            self.transform.pan_by(
                (sx - gesture.last_sx) / self.transform.base_scale_x,
                (sy - gesture.last_sy) / self.transform.base_scale_y,
            )
            self.gesture = replace(gesture, last_sx=sx, last_sy=sy)
            self._changed()
            return PointerResult()

        point = self._world(sx, sy)
        self.cursor = point
        self._changed()

        if gesture is None:
            return PointerResult()

        if isinstance(gesture, InspectRubberBand):
            if gesture.active:
                self.gesture = replace(gesture, end=point)
        elif isinstance(gesture, DragNode):
            clamped = self.floor.clamp(point.x, point.y)
            self.gesture = replace(
                gesture, working=replace(gesture.original, x=clamped.x, y=clamped.y)
            )
        elif isinstance(gesture, DragElement):
            clamped = self.floor.clamp(point.x - gesture.offset_x, point.y - gesture.offset_y)
            self.gesture = replace(
                gesture, working=move_element(gesture.original, clamped.x, clamped.y)
            )
        elif isinstance(gesture, DragWall):
            dx = point.x - gesture.start_x
            dy = point.y - gesture.start_y
            original = gesture.original
            self.gesture = replace(
                gesture,
                working=replace(
                    original,
                    x1=original.x1 + dx,
                    y1=original.y1 + dy,
                    x2=original.x2 + dx,
                    y2=original.y2 + dy,
                ),
            )
        elif isinstance(gesture, RotateElement):
            center_x, center_y = gesture.original.x, gesture.original.y
            # The handle sits above the center, so straight up is 0 degrees
            raw = math.degrees(math.atan2(point.y - center_y, point.x - center_x)) + 90
            angle = normalize_angle(snap_angle(raw, ROTATION_SNAP_STEP, ROTATION_SNAP_TOLERANCE))
            self.gesture = replace(gesture, working=rotate_element(gesture.original, angle))
        elif isinstance(gesture, RotateWall):
            raw = math.degrees(math.atan2(point.y - gesture.mid_y, point.x - gesture.mid_x))
            rad = math.radians(snap_angle(raw, ROTATION_SNAP_STEP, ROTATION_SNAP_TOLERANCE))
            dx = math.cos(rad) * gesture.half_length
            dy = math.sin(rad) * gesture.half_length
            self.gesture = replace(
                gesture,
                working=replace(
                    gesture.original,
                    x1=gesture.mid_x - dx,
                    y1=gesture.mid_y - dy,
                    x2=gesture.mid_x + dx,
                    y2=gesture.mid_y + dy,
                ),
            )
        elif isinstance(gesture, DrawWallPreview):
            self.gesture = replace(gesture, cursor=self.floor.clamp(point.x, point.y))
        elif isinstance(gesture, DrawShapePreview):
            self.gesture = replace(gesture, cursor=self.floor.clamp(point.x, point.y))
        elif isinstance(gesture, CollectTrianglePoints):
            self.gesture = replace(gesture, cursor=point)
        return PointerResult()

    def pointer_up(self, sx: float | None = None, sy: float | None = None) -> PointerResult:
        """Finish the gesture; without a position the last cursor position is used."""
        tracked = COMMITTING_GESTURES + (DrawShapePreview, InspectRubberBand)
        if sx is not None and sy is not None and isinstance(self.gesture, tracked):
            self.pointer_move(sx, sy)

        gesture = self.gesture
        if gesture is None:
            return PointerResult()

        if isinstance(gesture, Pan):
            self._end_pan(gesture)
            return PointerResult()

        if isinstance(gesture, InspectRubberBand):
            return self._finish_inspect(gesture)

        if isinstance(gesture, DrawShapePreview):
            self.gesture = None
            self._changed()
            return self._finish_shape(gesture)

        if isinstance(gesture, COMMITTING_GESTURES):
            self.gesture = None
            self._changed()
            return self._finish_edit(gesture)

        # Wall previews and triangle points advance on clicks, not releases
        return PointerResult()

    def _finish_edit(self, gesture: Gesture) -> PointerResult:
        if gesture.working == gesture.original:
            return PointerResult()

        if isinstance(gesture, DragNode):
            mutation = MoveNode(node_id=gesture.node_id, x=gesture.working.x, y=gesture.working.y)
        elif isinstance(gesture, (DragWall, RotateWall)):
            mutation = UpdateWall(gesture.working)
        elif isinstance(gesture, (DragElement, RotateElement)):
            mutation = UpdateElement(gesture.working)
        else:
            raise TypeError(f"Unhandled gesture {gesture!r}")

        self.scene.apply(mutation)
        return PointerResult(mutation=mutation)

    def _finish_shape(self, gesture: DrawShapePreview) -> PointerResult:
        anchor = gesture.anchor
        cursor = gesture.cursor
        if gesture.mode is ToolMode.RECT:
            width = abs(cursor.x - anchor.x)
            height = abs(cursor.y - anchor.y)
            if width <= MIN_SHAPE_SIZE or height <= MIN_SHAPE_SIZE:
                return PointerResult()
            return self._create(
                RectElement(
                    id=None,
                    x=(anchor.x + cursor.x) / 2,
                    y=(anchor.y + cursor.y) / 2,
                    width=width,
                    height=height,
                    fill_color=self.options.fill_color,
                    stroke_color=self.options.stroke_color,
                )
            )

        radius = math.hypot(cursor.x - anchor.x, cursor.y - anchor.y)
        if radius <= MIN_SHAPE_SIZE:
            return PointerResult()
        return self._create(
            CircleElement(
                id=None,
                x=anchor.x,
                y=anchor.y,
                radius=radius,
                fill_color=self.options.fill_color,
                stroke_color=self.options.stroke_color,
            )
        )

    def _finish_inspect(self, gesture: InspectRubberBand) -> PointerResult:
        if not gesture.active:
            return PointerResult()
        # Keep the rectangle on screen after release
        self.gesture = replace(gesture, active=False)
        self._changed()

        if self.raster is None:
            return PointerResult()
        sampled = sample_region(
            self.raster, gesture.start.x, gesture.start.y, gesture.end.x, gesture.end.y
        )
        if sampled is None:
            return PointerResult()
        average, count = sampled
        return PointerResult(inspect=InspectResult(average=average, unit=self.unit, sample_count=count))

    def pointer_leave(self) -> PointerResult:
        """Pointer left the canvas: drags and rotations commit, previews stay pending."""
        self.cursor = None
        gesture = self.gesture
        if isinstance(gesture, COMMITTING_GESTURES):
            return self.pointer_up()
        if isinstance(gesture, Pan):
            self._end_pan(gesture)
            return PointerResult()
        self._changed()
        return PointerResult()

    # --- Keyboard and commands ---

    def key_down(self, key: str) -> PointerResult:
        if key == "Escape":
            self.cancel()
            return PointerResult()
        if key in ("Delete", "Backspace"):
            return self.delete_selected()
        return PointerResult()

    def cancel(self) -> None:
        """Abandon a pending multi-step gesture without committing."""
        gesture = self.gesture
        if isinstance(gesture, PENDING_GESTURES):
            self.gesture = None
            self._changed()
        elif isinstance(gesture, Pan) and gesture.resume is not None:
            self.gesture = replace(gesture, resume=None)
            self._changed()

    def delete_selected(self) -> PointerResult:
        """Delete the selected wall or element, or unplace the selected node."""
        selection = self.selection
        if selection is None or self.locked:
            return PointerResult()

        if selection.kind is SelectionKind.WALL:
            mutation = DeleteWall(selection.id)
        elif selection.kind is SelectionKind.ELEMENT:
            mutation = DeleteElement(selection.id)
        elif selection.kind is SelectionKind.NODE:
            mutation = MoveNode(node_id=selection.id, x=None, y=None)
        else:
            raise TypeError(f"Unhandled selection {selection!r}")

        self.scene.apply(mutation)
        self.selection = None
        self._changed()
        return PointerResult(mutation=mutation)

    def wheel(self, sx: float, sy: float, delta_x: float, delta_y: float, zoom_modifier: bool) -> None:
        self.transform.wheel(delta_x, delta_y, zoom_modifier, sx, sy)
        self._changed()

    def apply_committed(self, mutation: Mutation) -> None:
        """Record a stored create; updates and deletes were already applied locally."""
        if isinstance(mutation, (CreateWall, CreateElement)):
            self.scene.apply(mutation)
            self._changed()

    def sync_scene(self, scene: Scene) -> None:
        """Replace the working copy with fresh store data, keeping a valid selection."""
        self.scene = scene
        selection = self.selection
        if selection is not None:
            lookup = {
                SelectionKind.NODE: scene.get_node,
                SelectionKind.WALL: scene.get_wall,
                SelectionKind.ELEMENT: scene.get_element,
            }[selection.kind]
            if lookup(selection.id) is None:
                self.selection = None
        self._changed()

    def state(self) -> dict:
        """Serializable snapshot of the view state."""
        gesture = self.gesture
        return {
            "mode": self.mode.value,
            "locked": self.locked,
            "selection": None
            if self.selection is None
            else {"kind": self.selection.kind.value, "id": self.selection.id},
            "placing_node_id": self.placing_node_id,
            "gesture": None if gesture is None else type(gesture).__name__,
            "pending_points": [
                {"x": p.x, "y": p.y} for p in gesture.points
            ]
            if isinstance(gesture, CollectTrianglePoints)
            else [],
            **self.transform.as_dict(),
        }
