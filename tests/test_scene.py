"""Tests for the scene working copy."""
import pytest

from custom_components.facility_twin.floorplan.elements import CircleElement, RectElement
from custom_components.facility_twin.floorplan.errors import InvalidGeometry
from custom_components.facility_twin.floorplan.scene import (
    CreateElement,
    CreateWall,
    DeleteElement,
    DeleteWall,
    MoveNode,
    Scene,
    UpdateElement,
    UpdateWall,
    node_from_dict,
    wall_from_dict,
    wall_to_dict,
)
from custom_components.facility_twin.floorplan.types import SensorNode, Wall


@pytest.fixture
def scene():
    return Scene(
        nodes=[SensorNode(id="n1", x=10, y=10), SensorNode(id="n2")],
        walls=[Wall(id="w1", x1=0, y1=0, x2=10, y2=0)],
        elements=[RectElement(id="e1", x=5, y=5, width=2, height=2)],
    )


def test_from_dicts_skips_malformed(caplog):
    scene = Scene.from_dicts(
        nodes=[{"id": "n1", "x": 1, "y": 2}, {"name": "no id"}],
        walls=[{"id": "w1", "x1": 0, "y1": 0, "x2": 5, "y2": 0}, {"id": "w2", "x1": "a"}],
        elements=[{"id": "e1", "type": "circle", "x": 1, "y": 1}, {"type": "blob"}],
    )

    assert [n.id for n in scene.nodes] == ["n1"]
    assert [w.id for w in scene.walls] == ["w1"]
    assert [e.id for e in scene.elements] == ["e1"]
    assert "Skipping malformed" in caplog.text


def test_node_from_dict_non_finite_position_is_unplaced():
    node = node_from_dict({"id": "n1", "x": float("nan"), "y": 4, "entities": {"temperature_c": "sensor.t"}})

    assert node.name == "n1"
    assert not node.is_placed
    assert node.entities == {"temperature_c": "sensor.t"}


def test_wall_from_dict_rejects_infinite():
    with pytest.raises(InvalidGeometry):
        wall_from_dict({"x1": 0, "y1": 0, "x2": float("inf"), "y2": 0})


def test_wall_to_dict_omits_missing_id():
    assert wall_to_dict(Wall(id=None, x1=1, y1=2, x2=3, y2=4)) == {
        "x1": 1,
        "y1": 2,
        "x2": 3,
        "y2": 4,
    }


def test_placed_and_unplaced(scene):
    assert [n.id for n in scene.placed_nodes] == ["n1"]
    assert [n.id for n in scene.unplaced_nodes] == ["n2"]


def test_move_and_unplace_node(scene):
    scene.apply(MoveNode("n2", 3, 4))
    assert scene.get_node("n2").is_placed

    scene.apply(MoveNode("n1", None, None))
    assert not scene.get_node("n1").is_placed


def test_wall_mutations(scene):
    scene.apply(CreateWall(Wall(id="w2", x1=0, y1=0, x2=0, y2=5)))
    scene.apply(UpdateWall(Wall(id="w1", x1=1, y1=1, x2=9, y2=1)))
    scene.apply(DeleteWall("w2"))

    assert scene.walls == [Wall(id="w1", x1=1, y1=1, x2=9, y2=1)]


def test_element_mutations(scene):
    circle = CircleElement(id="e2", x=1, y=1, radius=3)
    scene.apply(CreateElement(circle))
    scene.apply(UpdateElement(RectElement(id="e1", x=6, y=6, width=2, height=2)))
    scene.apply(DeleteElement("e2"))

    assert scene.elements == [RectElement(id="e1", x=6, y=6, width=2, height=2)]


def test_apply_does_not_alias_input_lists():
    walls = [Wall(id="w1", x1=0, y1=0, x2=1, y2=0)]
    scene = Scene(walls=walls)

    scene.apply(CreateWall(Wall(id="w2", x1=0, y1=0, x2=0, y2=1)))

    assert len(walls) == 1


def test_unknown_mutation_rejected(scene):
    with pytest.raises(TypeError):
        scene.apply("bogus")
