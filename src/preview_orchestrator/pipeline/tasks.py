"""Strong references for background pipeline and build tasks."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildHandle:
    project_id: str
    port: int
    preview_url: str
    task: asyncio.Task[Any]

    @property
    def done(self) -> bool:
        return self.task.done()

    async def wait(self) -> None:
        await asyncio.shield(self.task)


class TaskRegistry:
    """Keeps fire-and-forget tasks alive and logs failures that escape them."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    async def join(self) -> None:
        """Wait until every tracked task, including ones spawned while waiting, has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "tasks event=unhandled_error task=%s error=%s",
                task.get_name(),
                exc,
                exc_info=exc,
            )
