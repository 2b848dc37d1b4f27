# housecall/utils/debounce.py
"""
Latest-only debounced lookups.

Every call to `schedule` bumps a generation counter and cancels whatever was
pending or in flight. A lookup runs after the quiet period and may only hand
its result over while its generation is still the current one, so a stale
answer for an address the user has since edited is dropped.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional

from housecall.core.logging import get_logger

logger = get_logger(__name__)


class LatestOnlyDebouncer:
    def __init__(self, delay_seconds: float, name: str = "lookup"):
        self.delay_seconds = delay_seconds
        self.name = name
        self.generation = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def is_current(self, generation: int) -> bool:
        return generation == self.generation

    def schedule(
        self,
        lookup: Callable[[], Awaitable[Any]],
        on_result: Callable[[Any], None],
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> int:
        """Cancel the previous lookup and start a new one; returns its generation."""
        self.cancel()
        generation = self.generation
        self._task = asyncio.create_task(self._run(generation, lookup, on_result, on_error))
        return generation

    def cancel(self) -> None:
        self.generation += 1
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug("debounced_lookup_cancelled", lookup=self.name, generation=self.generation)
        self._task = None

    async def wait_idle(self) -> None:
        """Wait until no lookup is pending (including ones scheduled while waiting)."""
        while self._task is not None and not self._task.done():
            task = self._task
            await asyncio.gather(task, return_exceptions=True)

    async def _run(self, generation, lookup, on_result, on_error) -> None:
        if self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        if not self.is_current(generation):
            return

        try:
            result = await lookup()
        except Exception as e:
            if not self.is_current(generation):
                return
            if on_error is None:
                raise
            on_error(e)
            return

        if not self.is_current(generation):
            logger.debug("debounced_lookup_stale", lookup=self.name, generation=generation)
            return
        on_result(result)
