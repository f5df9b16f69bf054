"""
Cancellable delayed task for "run once things go quiet" behavior.

Each schedule() call cancels whatever is still pending, so only the last call
within the quiet window actually runs. Exceptions raised by the scheduled
coroutine are logged instead of disappearing with the task.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    def __init__(self, delay_seconds: float, name: str = "debounced_task"):
        self.delay_seconds = delay_seconds
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def cancel(self) -> bool:
        """
        Cancel the pending call, if any. Returns True when something was cancelled.
        """
        if not self.pending:
            return False
        assert self._task is not None
        self._task.cancel()
        return True

    def schedule(self, fn: Callable[[], Awaitable[Any]]) -> asyncio.Task:
        """
        Run fn() after delay_seconds of quiet. Must be called from a running loop.
        """
        if self.cancel():
            logger.debug("Debouncer '%s' superseded a pending call", self.name)

        task = asyncio.get_running_loop().create_task(self._run(fn))
        task.add_done_callback(self._on_done)
        self._task = task
        return task

    async def _run(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        await asyncio.sleep(self.delay_seconds)
        return await fn()

    def _on_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Exception in debounced task '%s': %s", self.name, exc, exc_info=exc)
