"""Deferred one-shot tasks keyed by marketplace order id."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

TaskFactory = Callable[[], Awaitable[object]]


class DeferredTask:
    """Handle for a task that runs once after a delay and can be cancelled."""

    def __init__(self, key: str, delay: float, factory: TaskFactory) -> None:
        self.key = key
        self.delay = delay
        self._factory = factory
        self._task: asyncio.Task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        try:
            await self._factory()
        except Exception:
            logger.exception(f"Deferred task '{self.key}' failed")

    def cancel(self) -> bool:
        """Cancel the task if it has not finished; returns True when it was pending."""
        if self._task.done():
            return False
        self._task.cancel()
        return True

    def add_done_callback(self, callback: Callable[["DeferredTask"], None]) -> None:
        self._task.add_done_callback(lambda _: callback(self))

    @property
    def done(self) -> bool:
        return self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()

    async def wait(self) -> None:
        """Wait for completion; a cancelled task counts as completed."""
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise


class TaskScheduler:
    """At most one pending task per key; scheduling again replaces the previous one."""

    def __init__(self) -> None:
        self._tasks: dict[str, DeferredTask] = {}

    def schedule(self, key: str, delay: float, factory: TaskFactory) -> DeferredTask:
        previous = self._tasks.get(key)
        if previous is not None and previous.cancel():
            logger.info(f"Replaced pending task '{key}'")
        task = DeferredTask(key, delay, factory)
        self._tasks[key] = task
        task.add_done_callback(lambda finished: self._forget(key, finished))
        return task

    def _forget(self, key: str, task: DeferredTask) -> None:
        if self._tasks.get(key) is task:
            del self._tasks[key]

    def cancel(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task.cancel() if task else False

    def pending(self, key: str) -> DeferredTask | None:
        return self._tasks.get(key)

    def __len__(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        for task in tasks:
            await task.wait()
