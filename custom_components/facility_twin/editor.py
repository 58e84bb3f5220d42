"""Editor session binding the interaction engine to Home Assistant."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from homeassistant.core import CALLBACK_TYPE, HomeAssistant, callback

from .const import (
    CONF_LOCKED,
    CONF_SHOW_NODE_NAMES,
    DEFAULT_DISPLAY_HEIGHT,
    DEFAULT_DISPLAY_WIDTH,
    DEFAULT_LOCKED,
    DEFAULT_SHOW_NODE_NAMES,
)
from .coordinator import FacilityTwinCoordinator
from .floorplan.elements import ICON_NAMES
from .floorplan.errors import InvalidGeometry, PersistenceFailure
from .floorplan.frame import FrameClock
from .floorplan.interaction import COMMITTING_GESTURES, InteractionController, PointerResult
from .floorplan.renderer import overlay_for, render_floorplan
from .floorplan.scene import Mutation
from .floorplan.transform import ViewTransform
from .store import ConfigEntryStore

_LOGGER = logging.getLogger(__name__)

EVENT_TYPES = (
    "pointer_down",
    "pointer_move",
    "pointer_up",
    "pointer_leave",
    "key",
    "wheel",
    "set_mode",
    "start_placing",
    "delete",
    "set_locked",
    "set_tool_options",
    "resize",
    "reset_view",
)


class EditorSession:
    """
    One editing view of a floor plan.

    Pointer and keyboard events are applied to the controller synchronously.
    A completed gesture's mutation is committed to the store afterwards; if
    that fails, the error is reported and the optimistic local state stays.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        coordinator: FacilityTwinCoordinator,
        store: ConfigEntryStore,
    ) -> None:
        self.hass = hass
        self.coordinator = coordinator
        self.store = store
        self.frame: FrameClock[bytes] = FrameClock()
        self.last_error: str | None = None
        self._listeners: list[Callable[[], None]] = []

        floor = coordinator.floor
        self.controller = InteractionController(
            floor,
            ViewTransform(floor.width, floor.height, DEFAULT_DISPLAY_WIDTH, DEFAULT_DISPLAY_HEIGHT),
            coordinator.scene(),
            on_change=self.frame.mark_dirty,
        )
        self.controller.locked = self._options.get(CONF_LOCKED, DEFAULT_LOCKED)
        self._synced_options = dict(self._options)

    @property
    def _options(self) -> dict[str, Any]:
        return self.coordinator.config_entry.options

    @callback
    def async_add_listener(self, update_callback: Callable[[], None]) -> CALLBACK_TYPE:
        """Listen for visual changes; returns a function that removes the listener."""
        self._listeners.append(update_callback)

        @callback
        def remove_listener() -> None:
            self._listeners.remove(update_callback)

        return remove_listener

    @callback
    def _notify(self) -> None:
        for update_callback in list(self._listeners):
            update_callback()

    @callback
    def async_sync(self) -> None:
        """Pick up new coordinator data and, when the stored entities changed, a fresh scene."""
        controller = self.controller
        data = self.coordinator.data
        if data is not None:
            controller.set_raster(data.raster, data.unit)

        options = dict(self._options)
        if options != self._synced_options and not isinstance(
            controller.gesture, COMMITTING_GESTURES
        ):
            floor = self.coordinator.floor
            if floor != controller.floor:
                controller.floor = floor
                controller.transform.floor_width = floor.width
                controller.transform.floor_height = floor.height
            controller.locked = options.get(CONF_LOCKED, DEFAULT_LOCKED)
            controller.sync_scene(self.coordinator.scene())
            self._synced_options = options

        self.frame.mark_dirty()
        self._notify()

    async def async_commit(self, mutation: Mutation) -> str | None:
        """Store a mutation; returns an error message instead of raising."""
        try:
            stored = await self.store.async_apply(mutation)
        except PersistenceFailure as err:
            _LOGGER.warning("Could not save %s: %s", type(mutation).__name__, err)
            self.last_error = str(err)
            return self.last_error

        self.last_error = None
        self.controller.apply_committed(stored)
        self._synced_options = dict(self._options)
        self.coordinator.async_schedule_recompute()
        return None

    def _dispatch(self, event: dict[str, Any]) -> PointerResult:
        controller = self.controller
        kind = event["event"]

        if kind == "pointer_down":
            return controller.pointer_down(event["x"], event["y"], event.get("button", "primary"))
        if kind == "pointer_move":
            return controller.pointer_move(event["x"], event["y"])
        if kind == "pointer_up":
            return controller.pointer_up(event.get("x"), event.get("y"))
        if kind == "pointer_leave":
            return controller.pointer_leave()
        if kind == "key":
            return controller.key_down(event["key"])
        if kind == "wheel":
            controller.wheel(
                event.get("x", 0.0),
                event.get("y", 0.0),
                event.get("delta_x", 0.0),
                event.get("delta_y", 0.0),
                event.get("zoom", False),
            )
        elif kind == "set_mode":
            controller.set_mode(event["mode"])
        elif kind == "start_placing":
            controller.start_placing(event["node_id"])
        elif kind == "delete":
            return controller.delete_selected()
        elif kind == "set_locked":
            controller.set_locked(event["locked"])
        elif kind == "set_tool_options":
            self._set_tool_options(event.get("options", {}))
        elif kind == "resize":
            controller.transform.resize(event["width"], event["height"])
            self.frame.mark_dirty()
        elif kind == "reset_view":
            controller.transform.reset()
            self.frame.mark_dirty()
        else:
            raise InvalidGeometry(f"Unknown editor event: {kind}")
        return PointerResult()

    def _set_tool_options(self, options: dict[str, Any]) -> None:
        tool = self.controller.options
        if "icon" in options:
            if options["icon"] not in ICON_NAMES:
                raise InvalidGeometry(f"Unknown icon: {options['icon']}")
            tool.icon = options["icon"]
        if "text" in options:
            tool.text = str(options["text"])
        if "font_size" in options:
            tool.font_size = float(options["font_size"])
        if "fill_color" in options:
            tool.fill_color = options["fill_color"]
        if "stroke_color" in options:
            tool.stroke_color = options["stroke_color"]

    async def async_handle_event(self, event: dict[str, Any]) -> dict[str, Any]:
        """
        Apply one editor event.

        Args:
            event: Event dict with an "event" type and its arguments

        Returns:
            Response with the committed mutation type, any inspect result,
            any error and the resulting view state

        Raises:
            InvalidGeometry: unknown event type or invalid arguments
        """
        result = self._dispatch(event)
        error = result.error

        if result.mutation is not None:
            commit_error = await self.async_commit(result.mutation)
            error = commit_error or error

        self._notify()

        inspect = None
        if result.inspect is not None:
            inspect = {
                "average": result.inspect.average,
                "unit": result.inspect.unit,
                "sample_count": result.inspect.sample_count,
            }

        return {
            "mutation": None if result.mutation is None else type(result.mutation).__name__,
            "inspect": inspect,
            "error": error,
            "state": self.controller.state(),
        }

    def render(self) -> bytes:
        """Current frame; only re-rendered when something changed."""
        return self.frame.tick(self._render)

    def _render(self) -> bytes:
        controller = self.controller
        data = self.coordinator.data
        return render_floorplan(
            controller.floor,
            controller.visible_nodes(),
            controller.visible_walls(),
            controller.visible_elements(),
            raster=data.raster if data else None,
            heatmap=data.heatmap if data else self.coordinator.heatmap_config,
            value_range=data.value_range if data else (0.0, 1.0),
            values=data.values if data else {},
            unit=data.unit if data else "",
            selection=controller.selection,
            overlay=overlay_for(controller.gesture),
            show_names=self._options.get(CONF_SHOW_NODE_NAMES, DEFAULT_SHOW_NODE_NAMES),
        )
