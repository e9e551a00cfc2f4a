"""Supervised set of fire-and-forget tasks."""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Keeps fire-and-forget work alive until it finishes.

    Tasks are strongly referenced until done, their failures are logged, and
    ``drain`` lets application shutdown wait for pending work.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("Background task %s was cancelled", task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "Background task %s failed", task.get_name(), exc_info=(type(exc), exc, exc.__traceback__)
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for pending tasks, cancelling whatever outlives ``timeout``."""

        if not self._tasks:
            return
        tasks = list(self._tasks)
        logger.info("Waiting for %d background task(s) to finish", len(tasks))
        _, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("Cancelled %d background task(s) after %.1fs", len(still_running), timeout or 0)
            await asyncio.gather(*still_running, return_exceptions=True)


@lru_cache
def get_background_tasks() -> BackgroundTasks:
    return BackgroundTasks()
