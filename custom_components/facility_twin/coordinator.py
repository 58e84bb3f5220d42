"""DataUpdateCoordinator for Facility Twin."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import STATE_UNAVAILABLE, STATE_UNKNOWN
from homeassistant.core import Event, EventStateChangedData, HomeAssistant, callback
from homeassistant.helpers.event import async_track_state_change_event
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed

from .const import (
    CONF_CHANNEL,
    CONF_COLOR_STOPS,
    CONF_ELEMENTS,
    CONF_FLOOR_HEIGHT,
    CONF_FLOOR_WIDTH,
    CONF_HEATMAP_ENABLED,
    CONF_HEATMAP_OPACITY,
    CONF_IDW_POWER,
    CONF_MAX_OVERRIDE,
    CONF_MIN_OVERRIDE,
    CONF_NODES,
    CONF_RADIUS_MULTIPLIER,
    CONF_UPDATE_INTERVAL,
    CONF_WALLS,
    DEFAULT_CHANNEL,
    DEFAULT_FLOOR_HEIGHT,
    DEFAULT_FLOOR_WIDTH,
    DEFAULT_HEATMAP_ENABLED,
    DEFAULT_HEATMAP_OPACITY,
    DEFAULT_IDW_POWER,
    DEFAULT_RADIUS_MULTIPLIER,
    DEFAULT_UPDATE_INTERVAL,
    DOMAIN,
    RECOMPUTE_DEBOUNCE,
)
from .floorplan.colors import parse_color_stops
from .floorplan.interpolation import build_sources, compute_heatmap, value_range
from .floorplan.scene import Scene
from .floorplan.scheduler import RecomputeScheduler
from .floorplan.types import (
    FloorPlan,
    HeatmapConfig,
    Raster,
    SensorChannel,
    get_channel,
)

_LOGGER = logging.getLogger(__name__)


@dataclass
class TwinData:
    """Snapshot published to entities and the editor after each recompute."""
    floor: FloorPlan
    scene: Scene
    heatmap: HeatmapConfig
    channel: SensorChannel | None
    readings: dict[str, dict[str, float]] = field(default_factory=dict)
    raster: Raster | None = None
    value_range: tuple[float, float] = (0.0, 1.0)
    generation: int = 0

    @property
    def unit(self) -> str:
        return self.channel.unit if self.channel else ""

    @property
    def values(self) -> dict[str, float]:
        """Latest reading per node on the displayed channel."""
        key = self.heatmap.channel
        return {
            node_id: channels[key] for node_id, channels in self.readings.items() if key in channels
        }


def heatmap_config_from_options(options: dict[str, Any]) -> HeatmapConfig:
    """Build heatmap options from config entry options."""
    try:
        stops = parse_color_stops(options.get(CONF_COLOR_STOPS) or [])
    except (KeyError, TypeError, ValueError) as err:
        _LOGGER.warning("Ignoring invalid color stops: %s", err)
        stops = ()

    return HeatmapConfig(
        enabled=options.get(CONF_HEATMAP_ENABLED, DEFAULT_HEATMAP_ENABLED),
        opacity=int(options.get(CONF_HEATMAP_OPACITY, DEFAULT_HEATMAP_OPACITY)),
        power=float(options.get(CONF_IDW_POWER, DEFAULT_IDW_POWER)),
        radius_multiplier=float(options.get(CONF_RADIUS_MULTIPLIER, DEFAULT_RADIUS_MULTIPLIER)),
        min_override=options.get(CONF_MIN_OVERRIDE),
        max_override=options.get(CONF_MAX_OVERRIDE),
        color_stops=stops,
        channel=options.get(CONF_CHANNEL, DEFAULT_CHANNEL),
    )


def floor_from_options(options: dict[str, Any]) -> FloorPlan:
    return FloorPlan(
        width=float(options.get(CONF_FLOOR_WIDTH, DEFAULT_FLOOR_WIDTH)),
        height=float(options.get(CONF_FLOOR_HEIGHT, DEFAULT_FLOOR_HEIGHT)),
    )


def scene_from_options(options: dict[str, Any]) -> Scene:
    return Scene.from_dicts(
        options.get(CONF_NODES, []),
        options.get(CONF_WALLS, []),
        options.get(CONF_ELEMENTS, []),
    )


class FacilityTwinCoordinator(DataUpdateCoordinator[TwinData]):
    """Coordinator to manage heatmap updates for one floor plan."""

    def __init__(
        self,
        hass: HomeAssistant,
        config_entry: ConfigEntry,
    ) -> None:
        """Initialize the coordinator."""
        update_interval_minutes = config_entry.options.get(
            CONF_UPDATE_INTERVAL, DEFAULT_UPDATE_INTERVAL
        )

        super().__init__(
            hass,
            _LOGGER,
            config_entry=config_entry,
            name=f"{DOMAIN}_{config_entry.data['name']}",
            update_interval=timedelta(minutes=update_interval_minutes),
        )

        self.recompute: RecomputeScheduler[TwinData] = RecomputeScheduler(
            self._async_build_data,
            self.async_set_updated_data,
            delay=RECOMPUTE_DEBOUNCE,
            on_error=self._handle_recompute_error,
            name=self.name,
        )
        self._unsub_state: Callable[[], None] | None = None
        self._tracked_entities: list[str] = []

    @property
    def _config(self) -> dict[str, Any]:
        """Get the current configuration from config entry options."""
        return self.config_entry.options

    @property
    def floor(self) -> FloorPlan:
        return floor_from_options(self._config)

    @property
    def heatmap_config(self) -> HeatmapConfig:
        return heatmap_config_from_options(self._config)

    def scene(self) -> Scene:
        """Fresh working copy of the stored entities."""
        return scene_from_options(self._config)

    def tracked_entity_ids(self, scene: Scene | None = None) -> list[str]:
        """Entity ids feeding any node channel."""
        scene = scene or self.scene()
        return sorted({entity_id for node in scene.nodes for entity_id in node.entities.values()})

    @callback
    def async_start_tracking(self) -> None:
        """Recompute whenever a node's source entity changes state."""
        entity_ids = self.tracked_entity_ids()
        if entity_ids == self._tracked_entities and self._unsub_state is not None:
            return
        self.async_stop_tracking()
        self._tracked_entities = entity_ids
        if entity_ids:
            self._unsub_state = async_track_state_change_event(
                self.hass, entity_ids, self._handle_state_change
            )
        _LOGGER.debug("%s tracking %d entities", self.name, len(entity_ids))

    @callback
    def async_stop_tracking(self) -> None:
        if self._unsub_state is not None:
            self._unsub_state()
            self._unsub_state = None

    @callback
    def _handle_state_change(self, event: Event[EventStateChangedData]) -> None:
        _LOGGER.debug("%s changed, scheduling recompute", event.data["entity_id"])
        self.async_schedule_recompute()

    @callback
    def async_schedule_recompute(self) -> int:
        """Debounced recompute; a newer trigger supersedes a pending one."""
        return self.recompute.trigger()

    @callback
    def _handle_recompute_error(self, err: Exception) -> None:
        _LOGGER.error("Error recomputing heatmap for %s: %s", self.name, err)
        self.async_set_update_error(err)

    async def async_config_entry_updated(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
        """Handle options update."""
        _LOGGER.debug("Configuration updated for %s", self.name)

        new_interval_minutes = entry.options.get(CONF_UPDATE_INTERVAL, DEFAULT_UPDATE_INTERVAL)
        new_interval = timedelta(minutes=new_interval_minutes)

        if self.update_interval != new_interval:
            _LOGGER.info(
                "Update interval changed from %s to %s minutes for %s",
                self.update_interval.total_seconds() / 60,
                new_interval_minutes,
                self.name,
            )
            self.update_interval = new_interval

        self.async_start_tracking()
        self.async_schedule_recompute()

    async def async_shutdown(self) -> None:
        """Cancel pending recomputes and listeners."""
        self.recompute.cancel()
        self.async_stop_tracking()
        await super().async_shutdown()

    def _collect_readings(self, scene: Scene) -> dict[str, dict[str, float]]:
        """Latest numeric state for every node channel; missing sensors are skipped."""
        readings: dict[str, dict[str, float]] = {}
        for node in scene.nodes:
            for channel, entity_id in node.entities.items():
                state = self.hass.states.get(entity_id)
                if state is None:
                    _LOGGER.warning("Sensor %s not found in Home Assistant", entity_id)
                    continue
                if state.state in (STATE_UNKNOWN, STATE_UNAVAILABLE):
                    _LOGGER.debug(
                        "Sensor %s is unavailable (state: %s), skipping", entity_id, state.state
                    )
                    continue
                try:
                    value = float(state.state)
                except ValueError:
                    _LOGGER.warning("Invalid %s value for %s: %s", channel, entity_id, state.state)
                    continue
                readings.setdefault(node.id, {})[channel] = value
        return readings

    async def _async_build_data(self) -> TwinData:
        """Gather readings and compute the raster in the executor."""
        floor = self.floor
        heatmap = self.heatmap_config
        scene = self.scene()
        channel = get_channel(heatmap.channel)
        readings = self._collect_readings(scene)
        sources = build_sources(scene.nodes, readings, heatmap.channel)

        if not sources:
            _LOGGER.warning(
                "No %s readings available for %s (%d nodes). Rendering floor plan only.",
                heatmap.channel,
                self.name,
                len(scene.nodes),
            )
        else:
            _LOGGER.debug("Computing heatmap with %d sources", len(sources))

        raster = None
        if heatmap.enabled:
            raster = await self.hass.async_add_executor_job(
                compute_heatmap, sources, scene.walls, floor.width, floor.height, heatmap
            )

        return TwinData(
            floor=floor,
            scene=scene,
            heatmap=heatmap,
            channel=channel,
            readings=readings,
            raster=raster,
            value_range=value_range(channel, heatmap),
            generation=self.recompute.generation,
        )

    async def _async_update_data(self) -> TwinData:
        """Fetch sensor data and compute the heatmap."""
        try:
            return await self._async_build_data()
        except Exception as err:
            _LOGGER.exception("Error computing heatmap")
            raise UpdateFailed(f"Error computing heatmap: {err}") from err
