"""Per-key in-flight registry that collapses concurrent misses into one computation."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InFlightRegistry(Generic[T]):
    """Maps a cache key to the task currently computing it.

    The first caller for a key starts the computation; callers arriving
    before it finishes await the same task. The task is shielded, so a
    cancelled waiter does not cancel the work for the others.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[T]] = {}
        self._coalesced = 0

    @property
    def coalesced(self) -> int:
        """Number of callers that joined an existing computation."""
        return self._coalesced

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._pending.get(key)
        if task is not None:
            self._coalesced += 1
            logger.debug("Joining in-flight computation for %s", key)
        else:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            task.add_done_callback(lambda t, k=key: self._finish(k, t))
        return await asyncio.shield(task)

    def _finish(self, key: str, task: asyncio.Task[T]) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        # Mark the exception retrieved; every waiter already re-raises it.
        if not task.cancelled():
            task.exception()
