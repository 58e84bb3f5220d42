"""Dirty-flag frame tick."""
from __future__ import annotations

from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class FrameClock(Generic[T]):
    """
    Caches the last rendered frame until something visual changes.

    Callers mark the clock dirty on any change to view state, geometry or the
    raster, and call tick() from whatever redraw hook they have.
    """

    def __init__(self) -> None:
        self._dirty = True
        self._frame: T | None = None
        self.render_count = 0

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def frame(self) -> T | None:
        return self._frame

    def mark_dirty(self) -> None:
        self._dirty = True

    def tick(self, render: Callable[[], T]) -> T:
        """Render if dirty, otherwise return the cached frame."""
        if not self._dirty and self._frame is not None:
            return self._frame
        # Cleared first so a change that lands mid-render forces another pass
        self._dirty = False
        try:
            frame = render()
        except Exception:
            self._dirty = True
            raise
        self._frame = frame
        self.render_count += 1
        return frame
