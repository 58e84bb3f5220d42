"""Test setting up Facility Twin, its services and websocket commands."""

import pytest

# Try to import homeassistant, skip all tests if not available
try:
    from homeassistant.config_entries import ConfigEntryState
    from homeassistant.core import HomeAssistant
    from homeassistant.exceptions import ServiceValidationError
    from pytest_homeassistant_custom_component.common import MockConfigEntry
    from custom_components.facility_twin.const import (
        CONF_FLOOR_HEIGHT,
        CONF_FLOOR_WIDTH,
        CONF_NODES,
        CONF_WALLS,
        DOMAIN,
        SERVICE_INSPECT,
        SERVICE_REFRESH,
    )

    HA_AVAILABLE = True
except ImportError:
    HA_AVAILABLE = False
    CONF_FLOOR_HEIGHT = None
    CONF_FLOOR_WIDTH = None
    CONF_NODES = None
    CONF_WALLS = None
    DOMAIN = None

pytestmark = [
    pytest.mark.asyncio,
    pytest.mark.skipif(not HA_AVAILABLE, reason="Home Assistant not installed"),
]

OPTIONS = {
    CONF_FLOOR_WIDTH: 40.0,
    CONF_FLOOR_HEIGHT: 30.0,
    CONF_WALLS: [{"id": "w1", "x1": 0, "y1": 20, "x2": 40, "y2": 20}],
    CONF_NODES: [
        {"id": "lab", "name": "Lab", "x": 10, "y": 10, "entities": {"temperature_c": "sensor.lab"}},
    ],
}


@pytest.fixture
async def loaded_entry(hass: HomeAssistant):
    hass.states.async_set("sensor.lab", "21.0")
    entry = MockConfigEntry(
        domain=DOMAIN,
        title="Main Floor",
        data={"name": "Main Floor"},
        options=OPTIONS,
        unique_id="main_floor",
    )
    entry.add_to_hass(hass)
    assert await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()
    yield entry
    await hass.config_entries.async_unload(entry.entry_id)
    await hass.async_block_till_done()


async def test_setup_creates_image(hass: HomeAssistant, loaded_entry):
    assert loaded_entry.state is ConfigEntryState.LOADED

    state = hass.states.get("image.facility_twin_main_floor")
    assert state is not None
    assert state.attributes["floor_width"] == 40.0
    assert state.attributes["unit"] == "°C"
    assert state.attributes["values"] == {"lab": 21.0}
    assert state.attributes["unplaced_nodes"] == []


async def test_unload(hass: HomeAssistant, loaded_entry):
    assert await hass.config_entries.async_unload(loaded_entry.entry_id)

    assert loaded_entry.state is ConfigEntryState.NOT_LOADED
    assert loaded_entry.entry_id not in hass.data[DOMAIN]
    assert loaded_entry.entry_id not in hass.data[DOMAIN]["editors"]


async def test_inspect_service(hass: HomeAssistant, loaded_entry):
    response = await hass.services.async_call(
        DOMAIN,
        SERVICE_INSPECT,
        {"entry_id": loaded_entry.entry_id, "x1": 8, "y1": 8, "x2": 12, "y2": 12},
        blocking=True,
        return_response=True,
    )

    assert response == {"average": pytest.approx(21.0), "unit": "°C", "sample_count": 25}


async def test_inspect_service_no_data(hass: HomeAssistant, loaded_entry):
    """A region without defined cells returns an empty response."""
    response = await hass.services.async_call(
        DOMAIN,
        SERVICE_INSPECT,
        {"entry_id": loaded_entry.entry_id, "x1": 5, "y1": 25, "x2": 10, "y2": 29},
        blocking=True,
        return_response=True,
    )

    assert response == {}


async def test_inspect_service_unknown_entry(hass: HomeAssistant, loaded_entry):
    with pytest.raises(ServiceValidationError):
        await hass.services.async_call(
            DOMAIN,
            SERVICE_INSPECT,
            {"entry_id": "missing", "x1": 0, "y1": 0, "x2": 1, "y2": 1},
            blocking=True,
            return_response=True,
        )


async def test_refresh_service(hass: HomeAssistant, loaded_entry):
    hass.states.async_set("sensor.lab", "25.0")

    await hass.services.async_call(DOMAIN, SERVICE_REFRESH, {}, blocking=True)
    await hass.async_block_till_done()

    coordinator = hass.data[DOMAIN][loaded_entry.entry_id]
    assert coordinator.data.values == {"lab": 25.0}


async def test_websocket_editor(hass: HomeAssistant, loaded_entry, hass_ws_client):
    client = await hass_ws_client(hass)

    await client.send_json_auto_id(
        {
            "type": "facility_twin/editor/event",
            "entry_id": loaded_entry.entry_id,
            "event": "set_mode",
            "mode": "triangle",
        }
    )
    msg = await client.receive_json()
    assert msg["success"]
    assert msg["result"]["state"]["mode"] == "triangle"

    await client.send_json_auto_id(
        {"type": "facility_twin/editor/state", "entry_id": loaded_entry.entry_id}
    )
    msg = await client.receive_json()
    assert msg["success"]
    assert msg["result"]["mode"] == "triangle"
    assert msg["result"]["last_error"] is None


async def test_websocket_errors(hass: HomeAssistant, loaded_entry, hass_ws_client):
    client = await hass_ws_client(hass)

    await client.send_json_auto_id(
        {"type": "facility_twin/editor/state", "entry_id": "missing"}
    )
    msg = await client.receive_json()
    assert not msg["success"]
    assert msg["error"]["code"] == "not_found"

    await client.send_json_auto_id(
        {
            "type": "facility_twin/editor/event",
            "entry_id": loaded_entry.entry_id,
            "event": "start_placing",
            "node_id": "ghost",
        }
    )
    msg = await client.receive_json()
    assert not msg["success"]
    assert msg["error"]["code"] == "invalid_format"
