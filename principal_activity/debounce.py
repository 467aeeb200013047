"""
Cancellable last-write-wins debouncer.

Each call() bumps a generation counter and reschedules the pending timer. A
timer only fires its callback if its generation is still the newest, so a
stale timer that slips past cancellation can never overwrite newer input.
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class Debouncer:
    """Delay a callback until input has been quiet for ``delay`` seconds."""

    def __init__(self, delay: float, callback: Callable[..., Any]):
        self.delay = delay
        self._callback = callback
        self._generation = 0
        self._handle: asyncio.TimerHandle | None = None
        self._pending_args: tuple = ()
        self._fired = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def fire_count(self) -> int:
        return self._fired

    def call(self, *args: Any) -> int:
        """
        Schedule the callback with args, superseding any pending call.

        Must be called from a running event loop. Returns the generation
        assigned to this call.
        """
        loop = asyncio.get_running_loop()
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
        self._pending_args = args
        self._handle = loop.call_later(self.delay, self._fire, self._generation, args)
        return self._generation

    def _fire(self, generation: int, args: tuple) -> None:
        if generation != self._generation:
            logger.debug(f"Dropping superseded debounced call {generation}")
            return
        self._handle = None
        self._pending_args = ()
        self._fired += 1
        self._callback(*args)

    def flush(self) -> bool:
        """Run the pending call now. Returns False if nothing was pending."""
        if self._handle is None:
            return False
        self._handle.cancel()
        self._fire(self._generation, self._pending_args)
        return True

    def cancel(self) -> None:
        """Drop any pending call. Later timers from older calls stay inert."""
        self._generation += 1
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            self._pending_args = ()
