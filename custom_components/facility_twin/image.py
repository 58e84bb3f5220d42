"""Image platform for Facility Twin."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.image import ImageEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity
from homeassistant.util import dt as dt_util

from .const import DOMAIN
from .coordinator import FacilityTwinCoordinator
from .editor import EditorSession
from .websocket_api import get_editor

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    config_entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the Facility Twin image platform from a config entry."""
    coordinator: FacilityTwinCoordinator = hass.data[DOMAIN][config_entry.entry_id]
    editor = get_editor(hass, config_entry.entry_id)

    name = config_entry.data["name"]

    async_add_entities([FacilityTwinImage(coordinator, editor, name)])
    _LOGGER.info("Added Facility Twin entity for %s", name)


class FacilityTwinImage(CoordinatorEntity[FacilityTwinCoordinator], ImageEntity):
    """Composited floor plan with the live heatmap."""

    _attr_content_type = "image/png"

    def __init__(
        self,
        coordinator: FacilityTwinCoordinator,
        editor: EditorSession,
        name: str,
    ) -> None:
        """Initialize the image entity."""
        CoordinatorEntity.__init__(self, coordinator)
        ImageEntity.__init__(self, coordinator.hass)

        self.editor = editor
        self._attr_name = f"Facility Twin {name}"
        self._attr_unique_id = f"facility_twin_{name.lower().replace(' ', '_')}"

    async def async_added_to_hass(self) -> None:
        """Also refresh when the editor changes the view."""
        await super().async_added_to_hass()
        self.async_on_remove(self.editor.async_add_listener(self._handle_editor_update))

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return entity specific state attributes."""
        data = self.coordinator.data
        floor = self.editor.controller.floor
        attributes: dict[str, Any] = {
            "floor_width": floor.width,
            "floor_height": floor.height,
        }
        if data is not None:
            attributes.update(
                channel=data.heatmap.channel,
                unit=data.unit,
                value_min=data.value_range[0],
                value_max=data.value_range[1],
                values=data.values,
                unplaced_nodes=[node.id for node in data.scene.unplaced_nodes],
            )
        return attributes

    @callback
    def _handle_coordinator_update(self) -> None:
        """Handle updated data from the coordinator."""
        if self.coordinator.data is not None:
            self._attr_image_last_updated = dt_util.utcnow()
        self.async_write_ha_state()

    @callback
    def _handle_editor_update(self) -> None:
        if self.editor.frame.dirty:
            self._attr_image_last_updated = dt_util.utcnow()
            self.async_write_ha_state()

    async def async_image(self) -> bytes | None:
        """Return bytes of image, re-rendered only when something changed."""
        if self.coordinator.data is None:
            _LOGGER.debug("No data available yet for %s", self._attr_name)
            return None
        return await self.hass.async_add_executor_job(self.editor.render)
