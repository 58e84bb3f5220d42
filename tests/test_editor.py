"""Test the editor session."""

from unittest.mock import AsyncMock, Mock

import pytest

# Try to import homeassistant, skip all tests if not available
try:
    from homeassistant.core import HomeAssistant
    from pytest_homeassistant_custom_component.common import MockConfigEntry
    from custom_components.facility_twin.const import (
        CONF_FLOOR_HEIGHT,
        CONF_FLOOR_WIDTH,
        CONF_LOCKED,
        CONF_NODES,
        CONF_WALLS,
        DOMAIN,
    )
    from custom_components.facility_twin.coordinator import FacilityTwinCoordinator
    from custom_components.facility_twin.editor import EditorSession
    from custom_components.facility_twin.floorplan.errors import (
        InvalidGeometry,
        PersistenceFailure,
    )
    from custom_components.facility_twin.store import ConfigEntryStore

    HA_AVAILABLE = True
except ImportError:
    HA_AVAILABLE = False
    CONF_FLOOR_HEIGHT = None
    CONF_FLOOR_WIDTH = None
    CONF_LOCKED = None
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
        {"id": "store", "name": "Store", "entities": {}},
    ],
}


@pytest.fixture
def config_entry(hass: HomeAssistant):
    entry = MockConfigEntry(
        domain=DOMAIN,
        title="Main Floor",
        data={"name": "Main Floor"},
        options=OPTIONS,
        unique_id="main_floor",
    )
    entry.add_to_hass(hass)
    return entry


@pytest.fixture
async def coordinator(hass: HomeAssistant, config_entry):
    hass.states.async_set("sensor.lab", "22.0")
    coordinator = FacilityTwinCoordinator(hass, config_entry)
    coordinator.data = await coordinator._async_update_data()
    coordinator.async_schedule_recompute = Mock(return_value=1)
    return coordinator


async def _editor(hass, coordinator, store=None) -> EditorSession:
    """Editor with one display pixel per meter."""
    editor = EditorSession(
        hass, coordinator, store or ConfigEntryStore(hass, coordinator.config_entry)
    )
    editor.async_sync()
    await editor.async_handle_event({"event": "resize", "width": 40, "height": 30})
    return editor


async def test_drag_node_commits(hass: HomeAssistant, coordinator, config_entry):
    editor = await _editor(hass, coordinator)

    await editor.async_handle_event({"event": "pointer_down", "x": 10, "y": 10})
    moved = await editor.async_handle_event({"event": "pointer_move", "x": 15, "y": 12})
    assert moved["mutation"] is None
    assert config_entry.options[CONF_NODES][0]["x"] == 10

    response = await editor.async_handle_event({"event": "pointer_up", "x": 16, "y": 12})

    assert response["mutation"] == "MoveNode"
    assert response["error"] is None
    assert response["state"]["selection"] == {"kind": "node", "id": "lab"}
    assert config_entry.options[CONF_NODES][0]["x"] == 16
    coordinator.async_schedule_recompute.assert_called_once()


async def test_create_wall_gets_stored_id(hass: HomeAssistant, coordinator, config_entry):
    editor = await _editor(hass, coordinator)
    await editor.async_handle_event({"event": "set_mode", "mode": "wall"})

    await editor.async_handle_event({"event": "pointer_down", "x": 5, "y": 5})
    response = await editor.async_handle_event({"event": "pointer_down", "x": 5, "y": 15})

    assert response["mutation"] == "CreateWall"
    stored = config_entry.options[CONF_WALLS][-1]
    assert stored["id"]
    assert [w.id for w in editor.controller.scene.walls] == ["w1", stored["id"]]


async def test_persistence_failure_keeps_local_state(hass: HomeAssistant, coordinator):
    store = Mock()
    store.async_apply = AsyncMock(side_effect=PersistenceFailure("read-only"))
    editor = await _editor(hass, coordinator, store)

    await editor.async_handle_event({"event": "pointer_down", "x": 10, "y": 10})
    response = await editor.async_handle_event({"event": "pointer_up", "x": 30, "y": 10})

    assert response["error"] == "read-only"
    assert editor.last_error == "read-only"
    assert editor.controller.scene.get_node("lab").x == 30
    coordinator.async_schedule_recompute.assert_not_called()

    # Unrelated coordinator updates do not undo the local change
    editor.async_sync()
    assert editor.controller.scene.get_node("lab").x == 30


async def test_options_change_resyncs_scene(hass: HomeAssistant, coordinator, config_entry):
    editor = await _editor(hass, coordinator)
    hass.config_entries.async_update_entry(
        config_entry, options={**OPTIONS, CONF_WALLS: [], CONF_LOCKED: True}
    )

    editor.async_sync()

    assert editor.controller.scene.walls == []
    assert editor.controller.locked is True


async def test_resync_waits_for_drag(hass: HomeAssistant, coordinator, config_entry):
    editor = await _editor(hass, coordinator)
    await editor.async_handle_event({"event": "pointer_down", "x": 10, "y": 10})
    hass.config_entries.async_update_entry(config_entry, options={**OPTIONS, CONF_WALLS: []})

    editor.async_sync()
    assert len(editor.controller.scene.walls) == 1

    await editor.async_handle_event({"event": "pointer_leave"})
    editor.async_sync()
    assert editor.controller.scene.walls == []


async def test_place_unplaced_node(hass: HomeAssistant, coordinator, config_entry):
    editor = await _editor(hass, coordinator)

    await editor.async_handle_event({"event": "start_placing", "node_id": "store"})
    response = await editor.async_handle_event({"event": "pointer_down", "x": 30, "y": 25})

    assert response["mutation"] == "MoveNode"
    assert response["state"]["mode"] == "select"
    assert config_entry.options[CONF_NODES][1]["x"] == 30


async def test_inspect_event(hass: HomeAssistant, coordinator):
    editor = await _editor(hass, coordinator)
    await editor.async_handle_event({"event": "set_mode", "mode": "inspect"})

    await editor.async_handle_event({"event": "pointer_down", "x": 8, "y": 8})
    response = await editor.async_handle_event({"event": "pointer_up", "x": 12, "y": 12})

    assert response["inspect"]["unit"] == "°C"
    assert response["inspect"]["average"] == pytest.approx(22.0)
    assert response["inspect"]["sample_count"] == 25


async def test_text_tool_uses_options(hass: HomeAssistant, coordinator, config_entry):
    editor = await _editor(hass, coordinator)
    await editor.async_handle_event(
        {"event": "set_tool_options", "options": {"text": "Server room", "font_size": 18}}
    )
    await editor.async_handle_event({"event": "set_mode", "mode": "text"})

    response = await editor.async_handle_event({"event": "pointer_down", "x": 20, "y": 5})

    assert response["mutation"] == "CreateElement"
    assert config_entry.options["elements"][-1]["text"] == "Server room"


async def test_invalid_events(hass: HomeAssistant, coordinator):
    editor = await _editor(hass, coordinator)

    with pytest.raises(InvalidGeometry):
        await editor.async_handle_event({"event": "bogus"})
    with pytest.raises(InvalidGeometry):
        await editor.async_handle_event(
            {"event": "set_tool_options", "options": {"icon": "sofa"}}
        )
    with pytest.raises(InvalidGeometry):
        await editor.async_handle_event({"event": "start_placing", "node_id": "ghost"})


async def test_render_only_when_dirty(hass: HomeAssistant, coordinator):
    editor = await _editor(hass, coordinator)

    first = editor.render()
    assert editor.render() is first
    assert editor.frame.render_count == 1

    await editor.async_handle_event({"event": "wheel", "x": 20, "y": 15, "delta_y": -50, "zoom": True})
    assert editor.frame.dirty
    editor.render()
    assert editor.frame.render_count == 2


async def test_listeners_notified(hass: HomeAssistant, coordinator):
    editor = await _editor(hass, coordinator)
    calls = []
    remove = editor.async_add_listener(lambda: calls.append(True))

    await editor.async_handle_event({"event": "reset_view"})
    remove()
    await editor.async_handle_event({"event": "reset_view"})

    assert calls == [True]
