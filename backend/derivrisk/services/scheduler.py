"""
Cancellable periodic tasks.

Each subscription owns exactly one ScheduledTask; cancelling the handle
stops the loop and releases the underlying asyncio.Task.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ScheduledTask:
    """
    Runs an async callback every interval_ms until cancelled.

    Usage:
        task = schedule_periodic(1000, recompute)
        ...
        await task.stop()
    """

    def __init__(
        self,
        interval_ms: int,
        callback: Callable[[], Awaitable[None]],
        name: Optional[str] = None,
    ):
        self.interval_ms = interval_ms
        self.name = name or getattr(callback, "__name__", "scheduled-task")
        self._callback = callback
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "ScheduledTask":
        if not self.running:
            self._task = asyncio.create_task(self._loop(), name=self.name)
        return self

    def cancel(self) -> None:
        """Request cancellation without waiting for the loop to exit."""
        if self._task is not None:
            self._task.cancel()

    async def stop(self) -> None:
        """Cancel and wait for the loop to exit."""
        task = self._task
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _loop(self) -> None:
        interval = self.interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            try:
                await self._callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Scheduled task {self.name} failed: {e}")


def schedule_periodic(
    interval_ms: int,
    callback: Callable[[], Awaitable[None]],
    name: Optional[str] = None,
) -> ScheduledTask:
    """Create and start a periodic task."""
    return ScheduledTask(interval_ms, callback, name=name).start()
