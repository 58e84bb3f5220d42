"""Local working copy of floor plan entities and the mutations that change them."""
from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Any, Protocol, Union

from .elements import Element, element_from_dict
from .errors import InvalidGeometry
from .types import SensorNode, Wall

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoveNode:
    """Place, move or (with x and y None) unplace a node."""
    node_id: str
    x: float | None
    y: float | None


@dataclass(frozen=True)
class CreateWall:
    wall: Wall


@dataclass(frozen=True)
class UpdateWall:
    wall: Wall


@dataclass(frozen=True)
class DeleteWall:
    wall_id: str


@dataclass(frozen=True)
class CreateElement:
    element: Element


@dataclass(frozen=True)
class UpdateElement:
    element: Element


@dataclass(frozen=True)
class DeleteElement:
    element_id: str


Mutation = Union[
    MoveNode, CreateWall, UpdateWall, DeleteWall, CreateElement, UpdateElement, DeleteElement
]


class SceneStore(Protocol):
    """Persistence collaborator that owns the canonical entities."""

    async def async_apply(self, mutation: Mutation) -> Mutation:
        """
        Commit a mutation.

        Returns the mutation as stored (created entities carry their new id).

        Raises:
            PersistenceFailure: the store rejected or failed the request
        """


def _float_or_none(value: Any) -> float | None:
    if value is None:
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def node_from_dict(data: dict[str, Any]) -> SensorNode:
    """Build a node from its stored dict form; non-finite positions mean unplaced."""
    try:
        return SensorNode(
            id=str(data["id"]),
            name=str(data.get("name") or data["id"]),
            x=_float_or_none(data.get("x")),
            y=_float_or_none(data.get("y")),
            radius=float(data.get("radius", 15.0)),
            point_size=float(data.get("point_size", 6.0)),
            active=bool(data.get("active", True)),
            entities=dict(data.get("entities") or {}),
        )
    except (KeyError, TypeError, ValueError) as err:
        raise InvalidGeometry(f"Invalid node: {err}") from err


def wall_from_dict(data: dict[str, Any]) -> Wall:
    try:
        wall = Wall(
            id=None if data.get("id") is None else str(data["id"]),
            x1=float(data["x1"]),
            y1=float(data["y1"]),
            x2=float(data["x2"]),
            y2=float(data["y2"]),
        )
    except (KeyError, TypeError, ValueError) as err:
        raise InvalidGeometry(f"Invalid wall: {err}") from err
    if not all(math.isfinite(v) for v in (wall.x1, wall.y1, wall.x2, wall.y2)):
        raise InvalidGeometry("Wall coordinates must be finite")
    return wall


def wall_to_dict(wall: Wall) -> dict[str, Any]:
    data: dict[str, Any] = {"x1": wall.x1, "y1": wall.y1, "x2": wall.x2, "y2": wall.y2}
    if wall.id is not None:
        data["id"] = wall.id
    return data


def _parse_all(items: Iterable[dict[str, Any]], parse, label: str) -> list:
    result = []
    for item in items:
        try:
            result.append(parse(item))
        except InvalidGeometry as err:
            _LOGGER.warning("Skipping malformed %s %s: %s", label, item, err)
    return result


class Scene:
    """
    Working copies of nodes, walls and elements for one floor plan.

    The scene never aliases the store's objects: entities are frozen and
    every change replaces the entry in the scene's own lists.
    """

    def __init__(
        self,
        nodes: Iterable[SensorNode] = (),
        walls: Iterable[Wall] = (),
        elements: Iterable[Element] = (),
    ) -> None:
        self.nodes: list[SensorNode] = list(nodes)
        self.walls: list[Wall] = list(walls)
        self.elements: list[Element] = list(elements)

    @classmethod
    def from_dicts(
        cls,
        nodes: Iterable[dict[str, Any]],
        walls: Iterable[dict[str, Any]],
        elements: Iterable[dict[str, Any]],
    ) -> Scene:
        """Parse stored records, skipping malformed ones with a warning."""
        return cls(
            nodes=_parse_all(nodes, node_from_dict, "node"),
            walls=_parse_all(walls, wall_from_dict, "wall"),
            elements=_parse_all(elements, element_from_dict, "element"),
        )

    def get_node(self, node_id: str) -> SensorNode | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def get_wall(self, wall_id: str) -> Wall | None:
        return next((w for w in self.walls if w.id == wall_id), None)

    def get_element(self, element_id: str) -> Element | None:
        return next((e for e in self.elements if e.id == element_id), None)

    @property
    def placed_nodes(self) -> list[SensorNode]:
        return [n for n in self.nodes if n.is_placed]

    @property
    def unplaced_nodes(self) -> list[SensorNode]:
        return [n for n in self.nodes if not n.is_placed]

    def apply(self, mutation: Mutation) -> None:
        """Apply a mutation to the working copy."""
        if isinstance(mutation, MoveNode):
            self.nodes = [
                replace(n, x=mutation.x, y=mutation.y) if n.id == mutation.node_id else n
                for n in self.nodes
            ]
        elif isinstance(mutation, CreateWall):
            self.walls.append(mutation.wall)
        elif isinstance(mutation, UpdateWall):
            self.walls = [mutation.wall if w.id == mutation.wall.id else w for w in self.walls]
        elif isinstance(mutation, DeleteWall):
            self.walls = [w for w in self.walls if w.id != mutation.wall_id]
        elif isinstance(mutation, CreateElement):
            self.elements.append(mutation.element)
        elif isinstance(mutation, UpdateElement):
            self.elements = [
                mutation.element if e.id == mutation.element.id else e for e in self.elements
            ]
        elif isinstance(mutation, DeleteElement):
            self.elements = [e for e in self.elements if e.id != mutation.element_id]
        else:
            raise TypeError(f"Unhandled mutation {mutation!r}")
