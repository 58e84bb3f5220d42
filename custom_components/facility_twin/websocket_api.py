"""Websocket commands for the floor plan editor."""

from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol
from homeassistant.components import websocket_api
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers import config_validation as cv

from .const import ATTR_ENTRY_ID, DOMAIN
from .editor import EVENT_TYPES, EditorSession
from .floorplan.errors import FloorplanError
from .floorplan.interaction import ToolMode

_LOGGER = logging.getLogger(__name__)

DATA_EDITORS = "editors"


def get_editor(hass: HomeAssistant, entry_id: str) -> EditorSession | None:
    return hass.data.get(DOMAIN, {}).get(DATA_EDITORS, {}).get(entry_id)


@callback
def async_register_commands(hass: HomeAssistant) -> None:
    """Register the editor commands once per Home Assistant instance."""
    websocket_api.async_register_command(hass, ws_editor_event)
    websocket_api.async_register_command(hass, ws_editor_state)


@websocket_api.websocket_command(
    {
        vol.Required("type"): f"{DOMAIN}/editor/event",
        vol.Required(ATTR_ENTRY_ID): cv.string,
        vol.Required("event"): vol.In(EVENT_TYPES),
        vol.Optional("x"): vol.Coerce(float),
        vol.Optional("y"): vol.Coerce(float),
        vol.Optional("button"): vol.In(["primary", "secondary"]),
        vol.Optional("key"): cv.string,
        vol.Optional("delta_x"): vol.Coerce(float),
        vol.Optional("delta_y"): vol.Coerce(float),
        vol.Optional("zoom"): cv.boolean,
        vol.Optional("mode"): vol.In([mode.value for mode in ToolMode]),
        vol.Optional("node_id"): cv.string,
        vol.Optional("locked"): cv.boolean,
        vol.Optional("options"): dict,
        vol.Optional("width"): vol.All(vol.Coerce(float), vol.Range(min=1)),
        vol.Optional("height"): vol.All(vol.Coerce(float), vol.Range(min=1)),
    }
)
@websocket_api.async_response
async def ws_editor_event(
    hass: HomeAssistant, connection: websocket_api.ActiveConnection, msg: dict[str, Any]
) -> None:
    """Apply one pointer, keyboard or tool event to an editor session."""
    editor = get_editor(hass, msg[ATTR_ENTRY_ID])
    if editor is None:
        connection.send_error(msg["id"], websocket_api.ERR_NOT_FOUND, "Floor plan not found")
        return

    try:
        result = await editor.async_handle_event(msg)
    except (FloorplanError, KeyError, ValueError) as err:
        _LOGGER.debug("Rejected editor event %s: %s", msg["event"], err)
        connection.send_error(msg["id"], websocket_api.ERR_INVALID_FORMAT, str(err))
        return

    connection.send_result(msg["id"], result)


@websocket_api.websocket_command(
    {
        vol.Required("type"): f"{DOMAIN}/editor/state",
        vol.Required(ATTR_ENTRY_ID): cv.string,
    }
)
@callback
def ws_editor_state(
    hass: HomeAssistant, connection: websocket_api.ActiveConnection, msg: dict[str, Any]
) -> None:
    """Return the editor's view state and last error."""
    editor = get_editor(hass, msg[ATTR_ENTRY_ID])
    if editor is None:
        connection.send_error(msg["id"], websocket_api.ERR_NOT_FOUND, "Floor plan not found")
        return

    connection.send_result(
        msg["id"],
        {**editor.controller.state(), "last_error": editor.last_error},
    )
