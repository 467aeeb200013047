"""
Single-flight registry for collaborator fetches.

A second request for a key whose fetch is still pending attaches to the
existing task instead of calling the provider again.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class InFlightRegistry:
    """Tracks at most one pending fetch per cache key."""

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    async def run(self, key: str, factory: Callable[[], Awaitable[Any]]) -> Any:
        """
        Await the fetch for key, starting it only if none is pending.

        Args:
            key: Canonical cache key
            factory: Zero-argument callable returning the fetch coroutine

        Returns:
            The fetch result. Exceptions propagate to every waiter.
        """
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            task.add_done_callback(lambda done, k=key: self._release(k, done))
        else:
            logger.debug(f"Joining in-flight fetch: {key}")
        # shield: one waiter being cancelled must not cancel the shared fetch
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled() and task.exception() is not None:
            # Retrieved here so an unawaited failure is not reported as lost
            logger.debug(f"In-flight fetch failed: {key}: {task.exception()}")

    def cancel_all(self) -> None:
        for task in self._pending.values():
            task.cancel()
        self._pending.clear()
