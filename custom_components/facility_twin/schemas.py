"""Voluptuous schemas for stored floor plan entities."""

from __future__ import annotations

import json
import math
from typing import Any

import voluptuous as vol
from homeassistant.helpers import config_validation as cv

from .floorplan.colors import parse_hex_color
from .floorplan.elements import element_from_dict, element_to_dict, validate_element
from .floorplan.errors import InvalidGeometry
from .floorplan.types import SENSOR_CHANNELS
from .store import new_id

CHANNEL_KEYS = [channel.key for channel in SENSOR_CHANNELS]


def _finite(value: Any) -> float:
    value = vol.Coerce(float)(value)
    if not math.isfinite(value):
        raise vol.Invalid("Value must be finite")
    return value


def _hex_color(value: Any) -> str:
    value = cv.string(value)
    try:
        parse_hex_color(value)
    except ValueError as err:
        raise vol.Invalid(f"Invalid color: {value}") from err
    return value


def _element(value: Any) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise vol.Invalid("Element must be an object")
    try:
        element = validate_element(element_from_dict(value))
    except InvalidGeometry as err:
        raise vol.Invalid(str(err)) from err
    return element_to_dict(element)


def _wall(value: dict[str, Any]) -> dict[str, Any]:
    if value["x1"] == value["x2"] and value["y1"] == value["y2"]:
        raise vol.Invalid("Wall has zero length")
    return value


WALL_SCHEMA = vol.All(
    vol.Schema(
        {
            vol.Optional("id"): cv.string,
            vol.Required("x1"): _finite,
            vol.Required("y1"): _finite,
            vol.Required("x2"): _finite,
            vol.Required("y2"): _finite,
        }
    ),
    _wall,
)

NODE_SCHEMA = vol.Schema(
    {
        vol.Required("id"): cv.string,
        vol.Optional("name"): cv.string,
        vol.Optional("x"): vol.Any(None, _finite),
        vol.Optional("y"): vol.Any(None, _finite),
        vol.Optional("radius", default=15.0): vol.All(_finite, vol.Range(min=0)),
        vol.Optional("point_size", default=6.0): vol.All(_finite, vol.Range(min=0)),
        vol.Optional("active", default=True): cv.boolean,
        vol.Optional("entities", default=dict): {vol.In(CHANNEL_KEYS): cv.entity_id},
    }
)

ELEMENT_SCHEMA = _element

COLOR_STOP_SCHEMA = vol.Any(
    _hex_color,
    vol.Schema(
        {
            vol.Optional("position"): vol.All(vol.Coerce(float), vol.Range(min=0, max=1)),
            vol.Required("color"): _hex_color,
        }
    ),
)


def ensure_ids(items: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Give every wall or element without an id a fresh one."""
    return [item if item.get("id") else {**item, "id": new_id()} for item in items]


def parse_json_list(text: str, item_schema: Any, label: str) -> list[Any]:
    """
    Parse a JSON array and validate every item.

    Raises:
        vol.Invalid: invalid JSON, not an array, or an invalid item
    """
    try:
        items = json.loads(text)
    except json.JSONDecodeError as err:
        raise vol.Invalid(f"Invalid JSON: {err}") from err
    if not isinstance(items, list):
        raise vol.Invalid(f"{label} must be a JSON array")

    result = []
    for index, item in enumerate(items):
        try:
            result.append(item_schema(item))
        except vol.Invalid as err:
            raise vol.Invalid(f"{label} item {index + 1}: {err}") from err
    return result
