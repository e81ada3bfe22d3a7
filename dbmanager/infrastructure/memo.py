"""Async Memo — collapse-on-first-call memoization for coroutine results.

Invariants:
    - At most one computation in flight: concurrent get() calls await the same task
    - A successful result is reused until reset()
    - A failed or cancelled computation is forgotten, so the next get() retries it
    - A waiter being cancelled never cancels the shared computation (asyncio.shield)

Design Decisions:
    - Memoize the task, not the value: the handle exists before the first await,
      so no lock is needed in a single event loop
    - reset() hands back the old task so owners can clean up what it produced
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AsyncMemo(Generic[T]):
    """Memoized, shared result of an async factory."""

    def __init__(self, factory: Callable[[], Awaitable[T]], name: str):
        self._factory = factory
        self.name = name
        self._task: asyncio.Future[T] | None = None
        self.computations = 0

    @property
    def is_set(self) -> bool:
        return self._task is not None

    async def get(self) -> T:
        if self._task is None:
            logger.debug(f"{self.name}: computing")
            self.computations += 1
            task = asyncio.ensure_future(self._factory())
            task.add_done_callback(self._forget_on_failure)
            self._task = task
        else:
            logger.debug(f"{self.name}: cache hit")
        return await asyncio.shield(self._task)

    def holds(self, value: object) -> bool:
        """True when the memoized task has completed with exactly this value."""
        task = self._task
        return (
            task is not None and task.done() and not task.cancelled()
            and task.exception() is None and task.result() is value
        )

    def reset(self) -> "asyncio.Future[T] | None":
        """Forget the memoized task and return it (None if nothing was memoized)."""
        task, self._task = self._task, None
        return task

    def _forget_on_failure(self, task: "asyncio.Future[T]") -> None:
        if task.cancelled() or task.exception() is not None:
            if self._task is task:
                logger.debug(f"{self.name}: computation failed, forgetting it")
                self._task = None
