# giftrecs/utils/tasks.py
from __future__ import annotations
from typing import Awaitable, Set
import asyncio
import logging

logger = logging.getLogger(__name__)


class BackgroundRunner:
    """
    Fire-and-forget execution for best-effort writes (seen ids, events).
    Callers never await the work; failures are logged here and go nowhere
    else. Tasks are tracked so they are not garbage collected mid-flight and
    so shutdown can drain them.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, *, name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task {task.get_name()} cancelled")
            return
        if exc := task.exception():
            logger.error(f"Background task {task.get_name()} failed: {exc!r}")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight tasks (shutdown, tests). Errors are already logged."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} background tasks still running after drain timeout")
