"""Owned background tasks.

Work that runs detached from its caller (backlink scans, focus-triggered
syncs, trash cleanup) is started through :class:`TaskGroup` so that it
can be awaited, inspected for errors and cancelled as a group when the owning
workspace is closed.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, TypeVar

from loguru import logger

T = TypeVar("T")


class TaskGroup:
    def __init__(self, name: str = "workspace") -> None:
        self.name = name
        self.errors: list[BaseException] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @property
    def closed(self) -> bool:
        return self._closed

    def spawn(self, coro: Coroutine[Any, Any, T], *, name: str | None = None) -> asyncio.Task[T]:
        """Schedule *coro* and keep a handle to it until it finishes."""
        if self._closed:
            coro.close()
            raise RuntimeError(f"Task group {self.name!r} is closed")
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            self.errors.append(exc)
            logger.warning(f"Background task {task.get_name()!r} failed: {exc!r}")

    async def wait(self) -> None:
        """Wait until every task (including ones spawned meanwhile) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        """Cancel outstanding tasks and refuse new ones."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
