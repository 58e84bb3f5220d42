"""Config flow for Facility Twin integration."""

from __future__ import annotations

import json
import logging
from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.const import CONF_NAME
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers import config_validation as cv

from .const import (
    CONF_CHANNEL,
    CONF_COLOR_STOPS,
    CONF_ELEMENTS,
    CONF_FLOOR_HEIGHT,
    CONF_FLOOR_WIDTH,
    CONF_HEATMAP_ENABLED,
    CONF_HEATMAP_OPACITY,
    CONF_IDW_POWER,
    CONF_LOCKED,
    CONF_MAX_OVERRIDE,
    CONF_MIN_OVERRIDE,
    CONF_NODES,
    CONF_RADIUS_MULTIPLIER,
    CONF_SHOW_NODE_NAMES,
    CONF_UPDATE_INTERVAL,
    CONF_WALLS,
    DEFAULT_CHANNEL,
    DEFAULT_FLOOR_HEIGHT,
    DEFAULT_FLOOR_WIDTH,
    DEFAULT_HEATMAP_ENABLED,
    DEFAULT_HEATMAP_OPACITY,
    DEFAULT_IDW_POWER,
    DEFAULT_LOCKED,
    DEFAULT_RADIUS_MULTIPLIER,
    DEFAULT_SHOW_NODE_NAMES,
    DEFAULT_UPDATE_INTERVAL,
    DOMAIN,
)
from .schemas import (
    CHANNEL_KEYS,
    ELEMENT_SCHEMA,
    NODE_SCHEMA,
    WALL_SCHEMA,
    ensure_ids,
    parse_json_list,
)

_LOGGER = logging.getLogger(__name__)


def validate_walls_json(walls_json: str) -> list[dict]:
    """Validate and parse walls JSON."""
    return ensure_ids(parse_json_list(walls_json, WALL_SCHEMA, "Walls"))


def validate_nodes_json(nodes_json: str) -> list[dict]:
    """Validate and parse sensor nodes JSON."""
    nodes = parse_json_list(nodes_json, NODE_SCHEMA, "Nodes")
    if not nodes:
        raise vol.Invalid("At least one sensor node is required")
    ids = [node["id"] for node in nodes]
    if len(set(ids)) != len(ids):
        raise vol.Invalid("Node ids must be unique")
    return nodes


def validate_elements_json(elements_json: str) -> list[dict]:
    """Validate and parse decorative elements JSON."""
    return ensure_ids(parse_json_list(elements_json, ELEMENT_SCHEMA, "Elements"))


def validate_range(options: dict[str, Any]) -> None:
    """Reject a color range whose minimum is not below its maximum."""
    vmin = options.get(CONF_MIN_OVERRIDE)
    vmax = options.get(CONF_MAX_OVERRIDE)
    if vmin is not None and vmax is not None and vmin >= vmax:
        raise vol.Invalid("Minimum must be below maximum")


def _settings_schema(current: dict[str, Any]) -> dict:
    """Floor and heatmap settings, pre-filled with current values."""
    schema = {
        vol.Optional(
            CONF_FLOOR_WIDTH, default=current.get(CONF_FLOOR_WIDTH, DEFAULT_FLOOR_WIDTH)
        ): cv.positive_float,
        vol.Optional(
            CONF_FLOOR_HEIGHT, default=current.get(CONF_FLOOR_HEIGHT, DEFAULT_FLOOR_HEIGHT)
        ): cv.positive_float,
        vol.Optional(CONF_CHANNEL, default=current.get(CONF_CHANNEL, DEFAULT_CHANNEL)): vol.In(
            CHANNEL_KEYS
        ),
        vol.Optional(
            CONF_UPDATE_INTERVAL,
            default=current.get(CONF_UPDATE_INTERVAL, DEFAULT_UPDATE_INTERVAL),
        ): cv.positive_int,
        vol.Optional(
            CONF_HEATMAP_ENABLED,
            default=current.get(CONF_HEATMAP_ENABLED, DEFAULT_HEATMAP_ENABLED),
        ): cv.boolean,
        vol.Optional(
            CONF_HEATMAP_OPACITY,
            default=current.get(CONF_HEATMAP_OPACITY, DEFAULT_HEATMAP_OPACITY),
        ): vol.All(vol.Coerce(int), vol.Range(min=0, max=255)),
        vol.Optional(
            CONF_IDW_POWER, default=current.get(CONF_IDW_POWER, DEFAULT_IDW_POWER)
        ): vol.All(vol.Coerce(float), vol.Range(min=1)),
        vol.Optional(
            CONF_RADIUS_MULTIPLIER,
            default=current.get(CONF_RADIUS_MULTIPLIER, DEFAULT_RADIUS_MULTIPLIER),
        ): vol.All(vol.Coerce(float), vol.Range(min=0, min_included=False)),
    }

    # Overrides are optional; only pre-fill them when set
    for key in (CONF_MIN_OVERRIDE, CONF_MAX_OVERRIDE):
        if current.get(key) is not None:
            schema[vol.Optional(key, default=current[key])] = vol.Coerce(float)
        else:
            schema[vol.Optional(key)] = vol.Coerce(float)

    schema[
        vol.Optional(
            CONF_SHOW_NODE_NAMES,
            default=current.get(CONF_SHOW_NODE_NAMES, DEFAULT_SHOW_NODE_NAMES),
        )
    ] = cv.boolean
    schema[vol.Optional(CONF_LOCKED, default=current.get(CONF_LOCKED, DEFAULT_LOCKED))] = (
        cv.boolean
    )
    return schema


class FacilityTwinConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for Facility Twin."""

    VERSION = 1

    def __init__(self) -> None:
        """Initialize the config flow."""
        self._config: dict[str, Any] = {}

    async def async_step_user(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Handle the initial step - name, floor size and heatmap settings."""
        errors: dict[str, str] = {}

        if user_input is not None:
            try:
                validate_range(user_input)
            except vol.Invalid as err:
                errors["base"] = str(err)
            else:
                self._config = user_input

                # Check if name is unique
                await self.async_set_unique_id(user_input[CONF_NAME].lower().replace(" ", "_"))
                self._abort_if_unique_id_configured()

                # Move to geometry configuration step
                return await self.async_step_geometry()

        data_schema = vol.Schema({vol.Required(CONF_NAME): cv.string, **_settings_schema({})})

        return self.async_show_form(
            step_id="user",
            data_schema=data_schema,
            errors=errors,
            description_placeholders={
                "name": "Facility Twin configuration",
            },
        )

    async def async_step_geometry(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Handle the geometry step - walls, sensor nodes and elements."""
        errors: dict[str, str] = {}

        if user_input is not None:
            try:
                walls = validate_walls_json(user_input.get(CONF_WALLS, "[]"))
                nodes = validate_nodes_json(user_input[CONF_NODES])
                elements = validate_elements_json(user_input.get(CONF_ELEMENTS, "[]"))

                name = self._config.pop(CONF_NAME)

                # Store name in data, everything else in options
                return self.async_create_entry(
                    title=name,
                    data={CONF_NAME: name},
                    options={
                        **self._config,
                        CONF_WALLS: walls,
                        CONF_NODES: nodes,
                        CONF_ELEMENTS: elements,
                    },
                )

            except vol.Invalid as err:
                errors["base"] = str(err)

        example_walls = json.dumps(
            [
                {"x1": 40, "y1": 50, "x2": 60, "y2": 50},
                {"x1": 60, "y1": 50, "x2": 60, "y2": 90},
            ],
            indent=2,
        )

        example_nodes = json.dumps(
            [
                {
                    "id": "node-1",
                    "name": "Lobby",
                    "x": 50,
                    "y": 40,
                    "radius": 15,
                    "entities": {"temperature_c": "sensor.lobby_temperature"},
                },
                {"id": "node-2", "name": "Storage", "entities": {}},
            ],
            indent=2,
        )

        example_elements = json.dumps(
            [
                {"type": "rect", "x": 20, "y": 20, "width": 10, "height": 6},
                {"type": "icon", "icon": "door", "x": 60, "y": 70},
            ],
            indent=2,
        )

        data_schema = vol.Schema(
            {
                vol.Optional(CONF_WALLS, default="[]"): cv.string,
                vol.Required(CONF_NODES): cv.string,
                vol.Optional(CONF_ELEMENTS, default="[]"): cv.string,
            }
        )

        return self.async_show_form(
            step_id="geometry",
            data_schema=data_schema,
            errors=errors,
            description_placeholders={
                "example_walls": example_walls,
                "example_nodes": example_nodes,
                "example_elements": example_elements,
            },
        )

    async def async_step_import(self, import_config: dict[str, Any]) -> FlowResult:
        """Import a config entry from YAML configuration."""
        name = import_config[CONF_NAME]

        await self.async_set_unique_id(name.lower().replace(" ", "_"))
        self._abort_if_unique_id_configured()

        options = {key: value for key, value in import_config.items() if key != CONF_NAME}
        options[CONF_WALLS] = ensure_ids(options.get(CONF_WALLS, []))
        options[CONF_ELEMENTS] = ensure_ids(options.get(CONF_ELEMENTS, []))
        options.setdefault(CONF_NODES, [])

        # Store name in data, rest in options
        return self.async_create_entry(
            title=name,
            data={CONF_NAME: name},
            options=options,
        )

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,
    ) -> FacilityTwinOptionsFlow:
        """Get the options flow for this handler."""
        return FacilityTwinOptionsFlow()


class FacilityTwinOptionsFlow(config_entries.OptionsFlow):
    """Handle options flow for Facility Twin."""

    def __init__(self) -> None:
        """Initialize options flow."""
        self._basic_options: dict[str, Any] = {}

    async def async_step_init(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Manage the options - floor and heatmap settings."""
        errors: dict[str, str] = {}

        if user_input is not None:
            try:
                validate_range(user_input)
            except vol.Invalid as err:
                errors["base"] = str(err)
            else:
                self._basic_options = user_input
                return await self.async_step_geometry()

        data_schema = vol.Schema(_settings_schema(dict(self.config_entry.options)))

        return self.async_show_form(
            step_id="init",
            data_schema=data_schema,
            errors=errors,
        )

    async def async_step_geometry(self, user_input: dict[str, Any] | None = None) -> FlowResult:
        """Handle geometry options - walls, sensor nodes and elements."""
        errors: dict[str, str] = {}
        current = self.config_entry.options

        if user_input is not None:
            try:
                if CONF_WALLS in user_input:
                    walls = validate_walls_json(user_input[CONF_WALLS])
                else:
                    walls = current.get(CONF_WALLS, [])

                if CONF_NODES in user_input:
                    nodes = validate_nodes_json(user_input[CONF_NODES])
                else:
                    nodes = current.get(CONF_NODES, [])

                if CONF_ELEMENTS in user_input:
                    elements = validate_elements_json(user_input[CONF_ELEMENTS])
                else:
                    elements = current.get(CONF_ELEMENTS, [])

                # Merge settings from step 1 with geometry from step 2
                all_options = {
                    **self._basic_options,
                    CONF_WALLS: walls,
                    CONF_NODES: nodes,
                    CONF_ELEMENTS: elements,
                }
                # Color stops are only configurable from YAML
                if CONF_COLOR_STOPS in current:
                    all_options[CONF_COLOR_STOPS] = current[CONF_COLOR_STOPS]

                return self.async_create_entry(title="", data=all_options)

            except vol.Invalid as err:
                errors["base"] = str(err)

        data_schema = vol.Schema(
            {
                vol.Optional(
                    CONF_WALLS, default=json.dumps(current.get(CONF_WALLS, []), indent=2)
                ): cv.string,
                vol.Optional(
                    CONF_NODES, default=json.dumps(current.get(CONF_NODES, []), indent=2)
                ): cv.string,
                vol.Optional(
                    CONF_ELEMENTS, default=json.dumps(current.get(CONF_ELEMENTS, []), indent=2)
                ): cv.string,
            }
        )

        return self.async_show_form(
            step_id="geometry",
            data_schema=data_schema,
            errors=errors,
            description_placeholders={
                "info": "Edit the JSON below to modify walls, nodes and elements. Leave unchanged to keep current values.",
            },
        )
