"""Ownership of detached background tasks."""
import asyncio
import contextlib
from collections.abc import Coroutine
from typing import Any

import structlog

logger = structlog.get_logger()


class TaskTracker:
    """Keeps strong references to fire-and-forget tasks.

    Tasks spawned here are not awaited by their caller. The tracker holds a
    reference until they finish, logs any exception they raise, and lets the
    application wait for quiescence or cancel everything on shutdown.
    """

    def __init__(self) -> None:
        """Initialize an empty tracker."""
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        """Number of tasks that have not finished yet."""
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any]:
        """Schedule a coroutine as a detached task.

        Args:
            coro: Coroutine to run.
            name: Task name used in log events.

        Returns:
            The created task.
        """
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
            logger.error(
                "background_task_failed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    async def drain(self) -> None:
        """Wait until no tracked task is pending.

        Tasks may spawn further tasks while running, so the set is polled
        until it stays empty.
        """
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel every pending task and wait for them to unwind."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        if tasks:
            logger.info("background_tasks_cancelled", count=len(tasks))
