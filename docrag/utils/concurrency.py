"""Shared concurrency primitives for provider-bound work.

Two helpers live here:

1. **throttled_gather** -- ``asyncio.gather`` with every awaitable wrapped
   in a semaphore acquire/release.  The embedding gateway passes its own
   semaphore, which acts as the worker pool shared by every in-flight
   ingestion in the process.

2. **BackgroundTasks** -- keeps strong references to fire-and-forget
   ``asyncio.Task`` objects until they finish, so background ingestions
   are not garbage-collected mid-flight, and lets shutdown wait for them.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Coroutine
from typing import Any, TypeVar

import structlog

from docrag.utils.logging import get_logger

_T = TypeVar("_T")

_logger: structlog.BoundLogger = get_logger(__name__)


async def throttled_gather(
    coros: list[Awaitable[_T]],
    semaphore: asyncio.Semaphore,
    return_exceptions: bool = True,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``semaphore`` slots at a time.

    Results come back in input order, mirroring ``asyncio.gather``.
    """

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    return await asyncio.gather(
        *(_wrapped(c) for c in coros),
        return_exceptions=return_exceptions,
    )


class BackgroundTasks:
    """A registry of running background tasks.

    Tasks are dropped from the registry when they complete.  A task that
    ends with an exception is logged; the exception stays on the task for
    whoever awaits it.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, _T], *, name: str | None = None) -> asyncio.Task[_T]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(exc),
            )

    def __len__(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every task currently registered to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
