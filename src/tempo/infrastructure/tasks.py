"""
In-process deferred task queue backed by asyncio tasks.

Submitting a task that is identical to one still waiting for its delay is a
no-op, which is what debounces bursts of fold requests. Handler failures are
logged and the task is dropped.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from tempo.domain.exceptions import ValidationError
from tempo.domain.ports import TaskQueue
from tempo.domain.realtime.models import DeferredTask, TaskKind

logger = logging.getLogger(__name__)

TaskHandler = Callable[[DeferredTask], Awaitable[Any]]


class AsyncioTaskQueue(TaskQueue):
    def __init__(self):
        self._handlers: dict[TaskKind, TaskHandler] = {}
        self._waiting: set[DeferredTask] = set()
        self._running: set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0

    def register(self, kind: TaskKind, handler: TaskHandler) -> None:
        self._handlers[kind] = handler

    @property
    def pending(self) -> int:
        return len(self._running)

    async def submit(self, task: DeferredTask, delay_ms: int = 0) -> None:
        if delay_ms < 0:
            raise ValidationError(f"delay_ms must be >= 0, got {delay_ms}")
        if task in self._waiting:
            logger.debug(f"Coalesced {task.kind.value} for {task.user_id}")
            return

        self._waiting.add(task)
        runner = asyncio.create_task(self._run(task, delay_ms))
        self._running.add(runner)
        runner.add_done_callback(self._running.discard)

    async def _run(self, task: DeferredTask, delay_ms: int) -> None:
        try:
            if delay_ms:
                await asyncio.sleep(delay_ms / 1000)
        finally:
            self._waiting.discard(task)

        handler = self._handlers.get(task.kind)
        if handler is None:
            logger.warning(f"No handler registered for {task.kind.value}; dropping task")
            self.failed += 1
            return

        try:
            result = await handler(task)
        except Exception as e:
            self.failed += 1
            logger.error(f"Task {task.kind.value} for {task.user_id} failed: {e}", exc_info=True)
            return

        self.completed += 1
        logger.debug(f"Task {task.kind.value} for {task.user_id} finished: {result}")

    async def drain(self) -> None:
        """Wait until no task is pending, including tasks submitted by handlers."""
        while self._running:
            await asyncio.gather(*list(self._running), return_exceptions=True)

    async def close(self) -> None:
        for runner in list(self._running):
            runner.cancel()
        await asyncio.gather(*list(self._running), return_exceptions=True)
        self._waiting.clear()
