"""Tests for floor plan rendering."""
from io import BytesIO

from PIL import Image

from custom_components.facility_twin.floorplan.elements import (
    CircleElement,
    IconElement,
    RectElement,
    TextElement,
    TriangleElement,
)
from custom_components.facility_twin.floorplan.hittest import Selection, SelectionKind
from custom_components.facility_twin.floorplan.interaction import (
    CollectTrianglePoints,
    DragNode,
    DrawShapePreview,
    DrawWallPreview,
    InspectRubberBand,
    Pan,
    ToolMode,
)
from custom_components.facility_twin.floorplan.renderer import (
    BACKGROUND,
    Overlay,
    overlay_for,
    render_floorplan,
)
from custom_components.facility_twin.floorplan.types import (
    FloorPlan,
    HeatmapConfig,
    Point,
    Raster,
    SensorNode,
    Wall,
)

FLOOR = FloorPlan(20, 10)


def _open(data: bytes) -> Image.Image:
    return Image.open(BytesIO(data))


def test_render_empty_floor():
    img = _open(render_floorplan(FLOOR, [], [], []))

    assert img.format == "PNG"
    assert img.size == (80, 40)
    assert img.convert("RGBA").getpixel((22, 13)) == BACKGROUND


def test_render_heatmap_layer():
    raster = Raster(width=20, height=10, cells=[[1.0] * 20 for _ in range(10)])

    img = _open(
        render_floorplan(
            FLOOR, [], [], [], raster=raster, heatmap=HeatmapConfig(opacity=255), value_range=(0, 1)
        )
    ).convert("RGBA")

    assert img.getpixel((22, 13)) == (255, 0, 0, 255)


def test_disabled_heatmap_not_drawn():
    raster = Raster(width=20, height=10, cells=[[1.0] * 20 for _ in range(10)])

    img = _open(
        render_floorplan(FLOOR, [], [], [], raster=raster, heatmap=HeatmapConfig(enabled=False))
    ).convert("RGBA")

    assert img.getpixel((22, 13)) == BACKGROUND


def test_render_full_scene():
    """Every element kind, walls, nodes and an overlay render without error."""
    nodes = [
        SensorNode(id="n1", name="Lab", x=5, y=5),
        SensorNode(id="n2", name="Store", x=12, y=5, active=False),
        SensorNode(id="n3", name="Unplaced"),
    ]
    walls = [Wall(id="w1", x1=0, y1=8, x2=20, y2=8), Wall(id="w2", x1=3, y1=3, x2=3.2, y2=3)]
    elements = [
        RectElement(id="e1", x=4, y=4, width=3, height=2, rotation=30),
        CircleElement(id="e2", x=15, y=3, radius=2),
        TriangleElement(id="e3", points=(Point(1, 1), Point(3, 1), Point(2, 3))),
        TextElement(id="e4", x=10, y=9, text="Lab", rotation=45),
        IconElement(id="e5", x=17, y=7, icon="stairs", width=2, height=2),
        IconElement(id="e6", x=8, y=2, icon="door", width=2, height=2, fill_color="bad"),
    ]

    data = render_floorplan(
        FLOOR,
        nodes,
        walls,
        elements,
        values={"n1": 21.5},
        unit="°C",
        selection=Selection(SelectionKind.NODE, "n1"),
        overlay=Overlay(
            wall=(Point(1, 1), Point(5, 1)),
            shape=("rect", Point(2, 2), Point(4, 4)),
            points=(Point(1, 1), Point(2, 2)),
            inspect=(Point(0, 0), Point(3, 3)),
        ),
    )

    assert _open(data).size == (80, 40)
    assert data != render_floorplan(FLOOR, [], [], [])


def test_overlay_for_gestures():
    assert overlay_for(None) is None
    assert overlay_for(
        DragNode(node_id="n1", original=SensorNode(id="n1"), working=SensorNode(id="n1"))
    ) is None
    assert overlay_for(DrawWallPreview(start=Point(1, 1))) == Overlay(wall=(Point(1, 1), Point(1, 1)))
    assert overlay_for(
        DrawShapePreview(mode=ToolMode.CIRCLE, anchor=Point(0, 0), cursor=Point(2, 0))
    ) == Overlay(shape=("circle", Point(0, 0), Point(2, 0)))
    assert overlay_for(
        CollectTrianglePoints(points=(Point(0, 0),), cursor=Point(1, 1))
    ) == Overlay(points=(Point(0, 0), Point(1, 1)))
    assert overlay_for(InspectRubberBand(Point(0, 0), Point(4, 4))) == Overlay(
        inspect=(Point(0, 0), Point(4, 4))
    )
    assert overlay_for(Pan(0, 0)) is None
    # A wall preview paused by a pan stays visible
    assert overlay_for(Pan(0, 0, resume=DrawWallPreview(start=Point(1, 1)))) == Overlay(
        wall=(Point(1, 1), Point(1, 1))
    )
