"""Image rendering for the floor plan using Pillow."""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from io import BytesIO

from PIL import Image, ImageDraw, ImageFont

from .colors import parse_hex_color, raster_to_image
from .elements import (
    CircleElement,
    Element,
    IconElement,
    RectElement,
    TextElement,
    TriangleElement,
)
from .geometry import rotate_point, segment_midpoint
from .hittest import Selection, SelectionKind
from .interaction import (
    CollectTrianglePoints,
    DrawShapePreview,
    DrawWallPreview,
    InspectRubberBand,
    Pan,
)
from .types import FloorPlan, HeatmapConfig, Point, Raster, SensorNode, Wall

_LOGGER = logging.getLogger(__name__)

DEFAULT_PIXELS_PER_METER = 4
GRID_STEP = 10
MIN_LABELED_WALL = 0.5

BACKGROUND = (255, 255, 255, 255)
GRID_COLOR = (229, 231, 235, 255)
GRID_LABEL_COLOR = (156, 163, 175, 255)
WALL_COLOR = (51, 51, 51, 255)
WALL_LABEL_COLOR = (75, 85, 99, 255)
SELECTION_COLOR = (245, 158, 11, 255)
NODE_FILL = (255, 255, 255, 255)
INACTIVE_NODE_FILL = (209, 213, 219, 255)
COVERAGE_COLOR = (59, 130, 246, 255)
INSPECT_FILL = (59, 130, 246, 48)
PREVIEW_COLOR = (107, 114, 128, 255)
LABEL_COLOR = (51, 51, 51, 255)

FONT_PATH = "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"


@dataclass(frozen=True)
class Overlay:
    """In-progress gesture shapes drawn above the scene, in meters."""
    wall: tuple[Point, Point] | None = None
    shape: tuple[str, Point, Point] | None = None
    points: tuple[Point, ...] = ()
    inspect: tuple[Point, Point] | None = None


def _load_font(size: int) -> ImageFont.ImageFont:
    try:
        return ImageFont.truetype(FONT_PATH, size)
    except OSError:
        _LOGGER.debug("DejaVu font not found, using default font")
        return ImageFont.load_default()


def _rgba(color: str, alpha: int = 255) -> tuple[int, int, int, int]:
    try:
        return (*parse_hex_color(color), alpha)
    except ValueError:
        _LOGGER.debug("Invalid color %s, using black", color)
        return (0, 0, 0, alpha)


class _Canvas:
    """Drawing helpers that take meter coordinates."""

    def __init__(self, img: Image.Image, ppm: float) -> None:
        self.img = img
        self.draw = ImageDraw.Draw(img, "RGBA")
        self.ppm = ppm
        self.font = _load_font(max(10, int(ppm * 3)))

    def px(self, x: float, y: float) -> tuple[float, float]:
        return (x * self.ppm, y * self.ppm)

    def width(self, meters: float) -> int:
        return max(1, round(meters * self.ppm / 4))

    def polygon(self, points: Sequence[Point], fill, outline, width: int) -> None:
        self.draw.polygon([self.px(p.x, p.y) for p in points], fill=fill, outline=outline)
        if width > 1:
            closed = [self.px(p.x, p.y) for p in points] + [self.px(points[0].x, points[0].y)]
            self.draw.line(closed, fill=outline, width=width)

    def label(self, x: float, y: float, text: str, fill=LABEL_COLOR) -> None:
        cx, cy = self.px(x, y)
        bbox = self.draw.textbbox((0, 0), text, font=self.font)
        self.draw.text(
            (cx - (bbox[2] - bbox[0]) / 2, cy - (bbox[3] - bbox[1]) / 2),
            text,
            fill=fill,
            font=self.font,
        )


def _box_corners(x: float, y: float, width: float, height: float, rotation: float) -> list[Point]:
    hw = width / 2
    hh = height / 2
    return [
        rotate_point(x + dx, y + dy, x, y, rotation)
        for dx, dy in ((-hw, -hh), (hw, -hh), (hw, hh), (-hw, hh))
    ]


def _local(element: IconElement, u: float, v: float) -> tuple[float, float]:
    """Icon-local coordinates in [-0.5, 0.5] to meters."""
    point = rotate_point(
        element.x + u * element.width,
        element.y + v * element.height,
        element.x,
        element.y,
        element.rotation,
    )
    return (point.x, point.y)


def _draw_icon_glyph(canvas: _Canvas, element: IconElement, color) -> None:
    width = canvas.width(element.stroke_width / 2)

    def line(*coords: tuple[float, float]) -> None:
        canvas.draw.line(
            [canvas.px(*_local(element, u, v)) for u, v in coords], fill=color, width=width
        )

    icon = element.icon
    if icon == "door":
        # Leaf plus the swing arc
        line((-0.5, 0.5), (-0.5, -0.5))
        steps = 8
        line(*[
            (-0.5 + math.sin(math.pi / 2 * i / steps), 0.5 - math.cos(math.pi / 2 * i / steps))
            for i in range(steps + 1)
        ])
    elif icon == "window":
        line((-0.5, 0.0), (0.5, 0.0))
        line((0.0, -0.5), (0.0, 0.5))
    elif icon == "desk":
        line((-0.35, 0.2), (0.35, 0.2))
        line((-0.35, -0.2), (-0.35, 0.5))
        line((0.35, -0.2), (0.35, 0.5))
    elif icon == "chair":
        line((-0.3, -0.4), (0.3, -0.4))
        line((-0.3, 0.1), (0.3, 0.1))
        line((-0.3, -0.4), (-0.3, 0.4))
        line((0.3, -0.4), (0.3, 0.4))
    elif icon == "stairs":
        for v in (-0.25, 0.0, 0.25):
            line((-0.5, v), (0.5, v))
    elif icon == "elevator":
        line((-0.5, -0.5), (0.5, 0.5))
        line((-0.5, 0.5), (0.5, -0.5))


def _draw_text(canvas: _Canvas, element: TextElement, fill) -> None:
    font = _load_font(max(8, round(element.font_size)))
    bbox = canvas.draw.textbbox((0, 0), element.text, font=font)
    text_w = max(1, bbox[2] - bbox[0])
    text_h = max(1, bbox[3] - bbox[1])

    layer = Image.new("RGBA", (text_w + 4, text_h + 4), (0, 0, 0, 0))
    ImageDraw.Draw(layer).text((2 - bbox[0], 2 - bbox[1]), element.text, fill=fill, font=font)
    if element.rotation:
        # Pillow rotates counter-clockwise, screen rotation is clockwise
        layer = layer.rotate(-element.rotation, expand=True, resample=Image.Resampling.BICUBIC)

    # Text is anchored at its baseline start
    cx, cy = canvas.px(element.x, element.y)
    origin = (round(cx), round(cy - layer.height))
    canvas.img.alpha_composite(layer, dest=(max(0, origin[0]), max(0, origin[1])))


def draw_element(canvas: _Canvas, element: Element, selected: bool = False) -> None:
    """Draw one element; exhaustive over element kinds."""
    fill = _rgba(element.fill_color)
    outline = SELECTION_COLOR if selected else _rgba(element.stroke_color)
    width = canvas.width(element.stroke_width) + (1 if selected else 0)

    if isinstance(element, RectElement):
        corners = _box_corners(element.x, element.y, element.width, element.height, element.rotation)
        canvas.polygon(corners, fill, outline, width)
    elif isinstance(element, CircleElement):
        x, y = canvas.px(element.x, element.y)
        r = element.radius * canvas.ppm
        canvas.draw.ellipse([x - r, y - r, x + r, y + r], fill=fill, outline=outline, width=width)
    elif isinstance(element, TriangleElement):
        canvas.polygon(list(element.points), fill, outline, width)
    elif isinstance(element, TextElement):
        _draw_text(canvas, element, fill)
        if selected:
            x, y = canvas.px(element.x, element.y)
            canvas.draw.rectangle([x - 3, y - 3, x + 3, y + 3], outline=SELECTION_COLOR)
    elif isinstance(element, IconElement):
        corners = _box_corners(element.x, element.y, element.width, element.height, element.rotation)
        canvas.polygon(corners, (255, 255, 255, 255), outline, width)
        _draw_icon_glyph(canvas, element, _rgba(element.fill_color))
    else:
        raise TypeError(f"Unhandled element {element!r}")


def _draw_grid(canvas: _Canvas, floor: FloorPlan) -> None:
    step = GRID_STEP
    for x in range(0, int(floor.width) + 1, step):
        canvas.draw.line([canvas.px(x, 0), canvas.px(x, floor.height)], fill=GRID_COLOR)
        canvas.draw.text((x * canvas.ppm + 2, 2), str(x), fill=GRID_LABEL_COLOR, font=canvas.font)
    for y in range(0, int(floor.height) + 1, step):
        canvas.draw.line([canvas.px(0, y), canvas.px(floor.width, y)], fill=GRID_COLOR)
        if y:
            canvas.draw.text((2, y * canvas.ppm + 2), str(y), fill=GRID_LABEL_COLOR, font=canvas.font)


def _draw_walls(canvas: _Canvas, walls: Sequence[Wall], selection: Selection | None) -> None:
    for wall in walls:
        if wall.is_degenerate:
            continue
        selected = (
            selection is not None
            and selection.kind is SelectionKind.WALL
            and selection.id == wall.id
        )
        canvas.draw.line(
            [canvas.px(wall.x1, wall.y1), canvas.px(wall.x2, wall.y2)],
            fill=SELECTION_COLOR if selected else WALL_COLOR,
            width=4 if selected else 3,
        )
        if selected:
            # Rotation handle on the second endpoint
            hx, hy = canvas.px(wall.x2, wall.y2)
            canvas.draw.ellipse([hx - 5, hy - 5, hx + 5, hy + 5], fill=SELECTION_COLOR)
        if wall.length > MIN_LABELED_WALL:
            mid = segment_midpoint(wall.x1, wall.y1, wall.x2, wall.y2)
            canvas.label(mid.x, mid.y, f"{wall.length:.1f}m", fill=WALL_LABEL_COLOR)


def _draw_nodes(
    canvas: _Canvas,
    nodes: Sequence[SensorNode],
    values: Mapping[str, float],
    unit: str,
    selection: Selection | None,
    show_names: bool,
) -> None:
    for node in nodes:
        if not node.is_placed:
            continue
        x, y = canvas.px(node.x, node.y)
        selected = (
            selection is not None
            and selection.kind is SelectionKind.NODE
            and selection.id == node.id
        )
        if selected:
            r = node.radius * canvas.ppm
            canvas.draw.ellipse(
                [x - r, y - r, x + r, y + r], fill=(*COVERAGE_COLOR[:3], 24), outline=COVERAGE_COLOR
            )

        size = node.point_size * canvas.ppm / 4 + 2
        canvas.draw.ellipse(
            [x - size, y - size, x + size, y + size],
            fill=NODE_FILL if node.active else INACTIVE_NODE_FILL,
            outline=SELECTION_COLOR if selected else WALL_COLOR,
            width=3 if selected else 2,
        )

        labels = []
        if show_names and node.name:
            labels.append(node.name)
        value = values.get(node.id)
        if value is not None:
            labels.append(f"{value:.1f}{unit}")
        if labels:
            text = "\n".join(labels)
            bbox = canvas.draw.textbbox((0, 0), text, font=canvas.font, align="center")
            canvas.draw.text(
                (x - (bbox[2] - bbox[0]) / 2, y + size + 3),
                text,
                fill=LABEL_COLOR,
                font=canvas.font,
                align="center",
            )


def _draw_overlay(canvas: _Canvas, overlay: Overlay) -> None:
    if overlay.inspect is not None:
        start, end = overlay.inspect
        x1, y1 = canvas.px(min(start.x, end.x), min(start.y, end.y))
        x2, y2 = canvas.px(max(start.x, end.x), max(start.y, end.y))
        canvas.draw.rectangle([x1, y1, x2, y2], fill=INSPECT_FILL, outline=COVERAGE_COLOR, width=2)
    if overlay.wall is not None:
        start, end = overlay.wall
        canvas.draw.line([canvas.px(start.x, start.y), canvas.px(end.x, end.y)], fill=PREVIEW_COLOR, width=2)
    if overlay.shape is not None:
        kind, anchor, cursor = overlay.shape
        if kind == "circle":
            x, y = canvas.px(anchor.x, anchor.y)
            r = math.hypot(cursor.x - anchor.x, cursor.y - anchor.y) * canvas.ppm
            canvas.draw.ellipse([x - r, y - r, x + r, y + r], outline=PREVIEW_COLOR, width=2)
        else:
            x1, y1 = canvas.px(min(anchor.x, cursor.x), min(anchor.y, cursor.y))
            x2, y2 = canvas.px(max(anchor.x, cursor.x), max(anchor.y, cursor.y))
            canvas.draw.rectangle([x1, y1, x2, y2], outline=PREVIEW_COLOR, width=2)
    if overlay.points:
        coords = [canvas.px(p.x, p.y) for p in overlay.points]
        if len(coords) > 1:
            canvas.draw.line(coords, fill=PREVIEW_COLOR, width=2)
        for x, y in coords:
            canvas.draw.ellipse([x - 3, y - 3, x + 3, y + 3], fill=PREVIEW_COLOR)


def render_floorplan(
    floor: FloorPlan,
    nodes: Sequence[SensorNode],
    walls: Sequence[Wall],
    elements: Sequence[Element],
    raster: Raster | None = None,
    heatmap: HeatmapConfig | None = None,
    value_range: tuple[float, float] = (0.0, 1.0),
    values: Mapping[str, float] | None = None,
    unit: str = "",
    selection: Selection | None = None,
    overlay: Overlay | None = None,
    show_names: bool = True,
    pixels_per_meter: float = DEFAULT_PIXELS_PER_METER,
) -> bytes:
    """
    Composite the floor plan into a PNG.

    Layers, bottom to top: grid, heatmap, elements, walls, nodes, overlay.

    Args:
        floor: Floor plan bounds
        nodes: Sensor nodes; unplaced ones are skipped
        walls: Wall segments
        elements: Decorative elements in drawing order
        raster: Interpolated values, or None to skip the heatmap
        heatmap: Heatmap options (opacity, color stops, enabled)
        value_range: Values mapped to the ends of the color ramp
        values: Latest reading per node id, shown under the node
        unit: Unit appended to node values
        selection: Highlighted entity
        overlay: In-progress gesture shapes
        show_names: Whether to label nodes with their names
        pixels_per_meter: Output scale

    Returns:
        PNG image as bytes
    """
    heatmap = heatmap or HeatmapConfig()
    width = max(1, round(floor.width * pixels_per_meter))
    height = max(1, round(floor.height * pixels_per_meter))

    _LOGGER.debug(
        "Rendering floor plan: %dx%d pixels, %d walls, %d nodes, %d elements",
        width,
        height,
        len(walls),
        len(nodes),
        len(elements),
    )

    img = Image.new("RGBA", (width, height), BACKGROUND)
    canvas = _Canvas(img, pixels_per_meter)
    _draw_grid(canvas, floor)

    if heatmap.enabled and raster is not None and raster.width > 0 and raster.height > 0:
        vmin, vmax = value_range
        layer = raster_to_image(raster, vmin, vmax, heatmap.opacity, heatmap.color_stops)
        # Cell (gx, gy) covers the meter starting at (gx, gy)
        layer = layer.resize(
            (max(1, round(raster.width * pixels_per_meter)), max(1, round(raster.height * pixels_per_meter))),
            Image.Resampling.BILINEAR,
        )
        img.alpha_composite(layer.crop((0, 0, width, height)))

    selected_element = (
        selection.id if selection is not None and selection.kind is SelectionKind.ELEMENT else None
    )
    for element in elements:
        draw_element(canvas, element, selected=element.id is not None and element.id == selected_element)

    _draw_walls(canvas, walls, selection)
    _draw_nodes(canvas, nodes, values or {}, unit, selection, show_names)
    if overlay is not None:
        _draw_overlay(canvas, overlay)

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    image_bytes = buffer.getvalue()
    _LOGGER.debug("Image rendering complete: %d bytes", len(image_bytes))
    return image_bytes


def overlay_for(gesture) -> Overlay | None:
    """Overlay shapes for an in-progress gesture, if it has any."""
    if isinstance(gesture, Pan):
        gesture = gesture.resume
    if isinstance(gesture, DrawWallPreview):
        return Overlay(wall=(gesture.start, gesture.cursor or gesture.start))
    if isinstance(gesture, DrawShapePreview):
        return Overlay(shape=(gesture.mode.value, gesture.anchor, gesture.cursor))
    if isinstance(gesture, CollectTrianglePoints):
        points = gesture.points + ((gesture.cursor,) if gesture.cursor is not None else ())
        return Overlay(points=points)
    if isinstance(gesture, InspectRubberBand):
        return Overlay(inspect=(gesture.start, gesture.end))
    return None
