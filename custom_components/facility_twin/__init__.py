"""The Facility Twin integration."""

from __future__ import annotations

import logging

import voluptuous as vol
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_NAME, Platform
from homeassistant.core import (
    HomeAssistant,
    ServiceCall,
    ServiceResponse,
    SupportsResponse,
)
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers import config_validation as cv
from homeassistant.helpers.typing import ConfigType

from .const import (
    ATTR_ENTRY_ID,
    ATTR_X1,
    ATTR_X2,
    ATTR_Y1,
    ATTR_Y2,
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
    SERVICE_INSPECT,
    SERVICE_REFRESH,
)
from .coordinator import FacilityTwinCoordinator
from .editor import EditorSession
from .floorplan.interpolation import sample_region
from .floorplan.types import SENSOR_CHANNELS
from .schemas import COLOR_STOP_SCHEMA, ELEMENT_SCHEMA, NODE_SCHEMA, WALL_SCHEMA
from .store import ConfigEntryStore
from .websocket_api import DATA_EDITORS, async_register_commands

_LOGGER = logging.getLogger(__name__)

# Platforms this integration provides
PLATFORMS: list[Platform] = [Platform.IMAGE]

CHANNEL_KEYS = [channel.key for channel in SENSOR_CHANNELS]

FLOOR_PLAN_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_NAME): cv.string,
        vol.Optional(CONF_FLOOR_WIDTH, default=DEFAULT_FLOOR_WIDTH): cv.positive_float,
        vol.Optional(CONF_FLOOR_HEIGHT, default=DEFAULT_FLOOR_HEIGHT): cv.positive_float,
        vol.Optional(CONF_CHANNEL, default=DEFAULT_CHANNEL): vol.In(CHANNEL_KEYS),
        vol.Optional(CONF_UPDATE_INTERVAL, default=DEFAULT_UPDATE_INTERVAL): cv.positive_int,
        vol.Optional(CONF_HEATMAP_ENABLED, default=DEFAULT_HEATMAP_ENABLED): cv.boolean,
        vol.Optional(CONF_HEATMAP_OPACITY, default=DEFAULT_HEATMAP_OPACITY): vol.All(
            vol.Coerce(int), vol.Range(min=0, max=255)
        ),
        vol.Optional(CONF_IDW_POWER, default=DEFAULT_IDW_POWER): vol.All(
            vol.Coerce(float), vol.Range(min=1)
        ),
        vol.Optional(CONF_RADIUS_MULTIPLIER, default=DEFAULT_RADIUS_MULTIPLIER): vol.All(
            vol.Coerce(float), vol.Range(min=0, min_included=False)
        ),
        vol.Optional(CONF_MIN_OVERRIDE): vol.Coerce(float),
        vol.Optional(CONF_MAX_OVERRIDE): vol.Coerce(float),
        vol.Optional(CONF_COLOR_STOPS): vol.All(cv.ensure_list, [COLOR_STOP_SCHEMA]),
        vol.Optional(CONF_SHOW_NODE_NAMES, default=DEFAULT_SHOW_NODE_NAMES): cv.boolean,
        vol.Optional(CONF_LOCKED, default=DEFAULT_LOCKED): cv.boolean,
        vol.Optional(CONF_WALLS, default=[]): vol.All(cv.ensure_list, [WALL_SCHEMA]),
        vol.Required(CONF_NODES): vol.All(cv.ensure_list, [NODE_SCHEMA]),
        vol.Optional(CONF_ELEMENTS, default=[]): vol.All(cv.ensure_list, [ELEMENT_SCHEMA]),
    }
)

# YAML configuration schema, imported into config entries
CONFIG_SCHEMA = vol.Schema(
    {DOMAIN: vol.All(cv.ensure_list, [FLOOR_PLAN_SCHEMA])},
    extra=vol.ALLOW_EXTRA,
)

INSPECT_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_ENTRY_ID): cv.string,
        vol.Required(ATTR_X1): vol.Coerce(float),
        vol.Required(ATTR_Y1): vol.Coerce(float),
        vol.Required(ATTR_X2): vol.Coerce(float),
        vol.Required(ATTR_Y2): vol.Coerce(float),
    }
)


async def async_setup(hass: HomeAssistant, config: ConfigType) -> bool:
    """Set up the Facility Twin integration from YAML."""
    hass.data.setdefault(DOMAIN, {DATA_EDITORS: {}})

    async_register_commands(hass)
    _register_services(hass)

    # Handle YAML configuration by importing to config entries
    if DOMAIN in config:
        for yaml_config in config[DOMAIN]:
            hass.async_create_task(
                hass.config_entries.flow.async_init(
                    DOMAIN,
                    context={"source": "import"},
                    data=yaml_config,
                )
            )

    return True


def _register_services(hass: HomeAssistant) -> None:
    """Register the domain services (only once)."""
    if hass.services.has_service(DOMAIN, SERVICE_REFRESH):
        return

    async def handle_refresh(call: ServiceCall) -> None:
        """Handle the refresh service call."""
        for coordinator in list(hass.data[DOMAIN].values()):
            if isinstance(coordinator, FacilityTwinCoordinator):
                await coordinator.async_request_refresh()

    async def handle_inspect(call: ServiceCall) -> ServiceResponse:
        """Average the heatmap over a rectangle in meters."""
        coordinator = hass.data[DOMAIN].get(call.data[ATTR_ENTRY_ID])
        if not isinstance(coordinator, FacilityTwinCoordinator):
            raise ServiceValidationError(f"Unknown floor plan: {call.data[ATTR_ENTRY_ID]}")

        data = coordinator.data
        if data is None or data.raster is None:
            return {}
        sampled = sample_region(
            data.raster,
            call.data[ATTR_X1],
            call.data[ATTR_Y1],
            call.data[ATTR_X2],
            call.data[ATTR_Y2],
        )
        if sampled is None:
            return {}
        average, count = sampled
        return {"average": average, "unit": data.unit, "sample_count": count}

    hass.services.async_register(DOMAIN, SERVICE_REFRESH, handle_refresh)
    hass.services.async_register(
        DOMAIN,
        SERVICE_INSPECT,
        handle_inspect,
        schema=INSPECT_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Facility Twin from a config entry."""
    hass.data.setdefault(DOMAIN, {DATA_EDITORS: {}})
    hass.data[DOMAIN].setdefault(DATA_EDITORS, {})
    _register_services(hass)

    coordinator = FacilityTwinCoordinator(hass, entry)
    hass.data[DOMAIN][entry.entry_id] = coordinator

    await coordinator.async_config_entry_first_refresh()

    editor = EditorSession(hass, coordinator, ConfigEntryStore(hass, entry))
    editor.async_sync()
    hass.data[DOMAIN][DATA_EDITORS][entry.entry_id] = editor

    coordinator.async_start_tracking()
    entry.async_on_unload(coordinator.async_stop_tracking)
    entry.async_on_unload(coordinator.async_add_listener(editor.async_sync))

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    # Register update listener for options changes
    entry.async_on_unload(entry.add_update_listener(async_update_options))

    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    if unload_ok:
        coordinator = hass.data[DOMAIN].pop(entry.entry_id)
        await coordinator.async_shutdown()
        hass.data[DOMAIN][DATA_EDITORS].pop(entry.entry_id, None)

    return unload_ok


async def async_update_options(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle options update."""
    coordinator = hass.data[DOMAIN][entry.entry_id]

    # Notify coordinator of config update
    await coordinator.async_config_entry_updated(hass, entry)
