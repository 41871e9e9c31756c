"""Detached in-process task runner.

Request handlers hand post-commit side effects to :class:`DetachedTaskRunner`
instead of awaiting them.  Spawned tasks are not children of the request, so a
client disconnect or request timeout never cancels them; their exceptions are
logged here and never reach the caller.
"""

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class DetachedTaskRunner:

    def __init__(self) -> None:
        # The event loop only keeps weak references to tasks.
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str = "background") -> asyncio.Task:
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
                "Background task %s failed: %s",
                task.get_name(), exc, exc_info=(type(exc), exc, exc.__traceback__),
            )

    async def drain(self, timeout: float = 10.0) -> None:
        """Wait for in-flight tasks (used at shutdown); cancel stragglers."""
        if not self._tasks:
            return
        tasks = list(self._tasks)
        logger.info("Draining %d background task(s)", len(tasks))
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("%d background task(s) cancelled after %.1fs drain timeout", len(pending), timeout)
