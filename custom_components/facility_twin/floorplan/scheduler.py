"""Debounced, superseding recomputation of the heatmap raster."""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DEBOUNCE = 0.25


class RecomputeScheduler(Generic[T]):
    """
    Run an expensive job once per burst of triggers.

    Every trigger bumps the generation and cancels the pending step. The step
    waits for the debounce delay, runs the job and publishes the result only
    if no newer trigger arrived in the meantime.
    """

    def __init__(
        self,
        job: Callable[[], Awaitable[T]],
        publish: Callable[[T], None],
        delay: float = DEFAULT_DEBOUNCE,
        on_error: Callable[[Exception], None] | None = None,
        name: str = "recompute",
    ) -> None:
        self._job = job
        self._publish = publish
        self._on_error = on_error
        self.delay = delay
        self.name = name
        self.generation = 0
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger(self) -> int:
        """
        Schedule a recompute, superseding any pending one.

        Must be called from the event loop.

        Returns:
            The generation the new step belongs to
        """
        self.generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run(self.generation))
        return self.generation

    async def _run(self, generation: int) -> None:
        await asyncio.sleep(self.delay)
        if generation != self.generation:
            return

        _LOGGER.debug("%s: running generation %d", self.name, generation)
        try:
            result = await self._job()
        except Exception as err:
            if generation != self.generation:
                return
            if self._on_error is None:
                _LOGGER.exception("%s: generation %d failed", self.name, generation)
            else:
                self._on_error(err)
            return

        if generation != self.generation:
            _LOGGER.debug(
                "%s: discarding generation %d, current is %d",
                self.name,
                generation,
                self.generation,
            )
            return
        self._publish(result)

    async def async_wait(self) -> None:
        """Wait for the current step to finish, if any."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def cancel(self) -> None:
        """Drop any pending step; results of running jobs are discarded."""
        self.generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
