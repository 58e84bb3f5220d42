"""Config entry backed persistence for floor plan edits."""

from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .const import CONF_ELEMENTS, CONF_NODES, CONF_WALLS
from .floorplan.elements import element_to_dict
from .floorplan.errors import PersistenceFailure
from .floorplan.scene import (
    CreateElement,
    CreateWall,
    DeleteElement,
    DeleteWall,
    MoveNode,
    Mutation,
    UpdateElement,
    UpdateWall,
    wall_to_dict,
)

_LOGGER = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def _replace_by_id(items: list[dict[str, Any]], item_id: str, new: dict[str, Any], label: str) -> list[dict[str, Any]]:
    if not any(item.get("id") == item_id for item in items):
        raise PersistenceFailure(f"Unknown {label}: {item_id}")
    return [new if item.get("id") == item_id else item for item in items]


def _remove_by_id(items: list[dict[str, Any]], item_id: str, label: str) -> list[dict[str, Any]]:
    remaining = [item for item in items if item.get("id") != item_id]
    if len(remaining) == len(items):
        raise PersistenceFailure(f"Unknown {label}: {item_id}")
    return remaining


def apply_to_options(options: dict[str, Any], mutation: Mutation) -> tuple[dict[str, Any], Mutation]:
    """
    Apply a mutation to stored options.

    Args:
        options: Current config entry options
        mutation: Change to apply

    Returns:
        Tuple of (new options, stored mutation with assigned ids)

    Raises:
        PersistenceFailure: the mutation refers to an unknown entity
    """
    options = dict(options)
    walls = list(options.get(CONF_WALLS, []))
    elements = list(options.get(CONF_ELEMENTS, []))
    nodes = list(options.get(CONF_NODES, []))

    if isinstance(mutation, MoveNode):
        if not any(node.get("id") == mutation.node_id for node in nodes):
            raise PersistenceFailure(f"Unknown node: {mutation.node_id}")
        options[CONF_NODES] = [
            {**node, "x": mutation.x, "y": mutation.y} if node.get("id") == mutation.node_id else node
            for node in nodes
        ]
    elif isinstance(mutation, CreateWall):
        mutation = CreateWall(replace(mutation.wall, id=mutation.wall.id or new_id()))
        options[CONF_WALLS] = [*walls, wall_to_dict(mutation.wall)]
    elif isinstance(mutation, UpdateWall):
        options[CONF_WALLS] = _replace_by_id(
            walls, mutation.wall.id, wall_to_dict(mutation.wall), "wall"
        )
    elif isinstance(mutation, DeleteWall):
        options[CONF_WALLS] = _remove_by_id(walls, mutation.wall_id, "wall")
    elif isinstance(mutation, CreateElement):
        mutation = CreateElement(replace(mutation.element, id=mutation.element.id or new_id()))
        options[CONF_ELEMENTS] = [*elements, element_to_dict(mutation.element)]
    elif isinstance(mutation, UpdateElement):
        options[CONF_ELEMENTS] = _replace_by_id(
            elements, mutation.element.id, element_to_dict(mutation.element), "element"
        )
    elif isinstance(mutation, DeleteElement):
        options[CONF_ELEMENTS] = _remove_by_id(elements, mutation.element_id, "element")
    else:
        raise TypeError(f"Unhandled mutation {mutation!r}")

    return options, mutation


class ConfigEntryStore:
    """Commits editor mutations to a config entry's options."""

    def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        self.hass = hass
        self.entry = entry

    async def async_apply(self, mutation: Mutation) -> Mutation:
        """
        Commit a mutation; created walls and elements get their id here.

        Raises:
            PersistenceFailure: the entity is unknown or the update failed
        """
        options, stored = apply_to_options(self.entry.options, mutation)
        try:
            self.hass.config_entries.async_update_entry(self.entry, options=options)
        except Exception as err:
            _LOGGER.exception("Error saving %s", type(mutation).__name__)
            raise PersistenceFailure(f"Error saving changes: {err}") from err

        _LOGGER.debug("Stored %s for %s", type(stored).__name__, self.entry.title)
        return stored
