"""Cooperative periodic background tasks.

``PeriodicTask`` drives both the recurring session backup and the
connection health check. Each tick runs to completion before the next
interval starts counting, so ticks never overlap.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from sessionvault.observability.logging import get_logger

log = get_logger(__name__)


class PeriodicTask:
    """Background asyncio task that awaits a callback at a fixed interval.

    Usage:
        async def backup() -> None:
            await store.save("default")

        task = PeriodicTask(backup, interval=300, name="session.backup")
        await task.start()
        ...
        await task.stop()  # waits for an in-flight backup, never cancels it
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[object]],
        interval: float,
        *,
        name: str = "periodic",
    ) -> None:
        """Initialize the task.

        Args:
            callback: Async function called once per tick.
            interval: Seconds between the end of one tick and the start of the next.
            name: Label used in log events.
        """
        if interval <= 0:
            msg = f"interval must be positive, got {interval}"
            raise ValueError(msg)
        self._callback = callback
        self._interval = interval
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start ticking. Calling start() on a running task is a no-op."""
        if self.is_running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(self._stop_event), name=self._name)
        log.debug("scheduler.task.started", task=self._name, interval=self._interval)

    async def restart(self, interval: float | None = None) -> None:
        """Replace the current schedule, optionally with a new interval."""
        await self.stop()
        if interval is not None:
            if interval <= 0:
                msg = f"interval must be positive, got {interval}"
                raise ValueError(msg)
            self._interval = interval
        await self.start()

    async def stop(self) -> None:
        """Stop ticking, waiting for an in-flight tick to finish."""
        task = self._task
        if task is None:
            return
        self._stop_event.set()
        self._task = None
        if task is asyncio.current_task():
            # Stopped from inside its own tick: the loop exits after this tick.
            return
        if not task.done():
            await task
        log.debug("scheduler.task.stopped", task=self._name)

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
                break
            except TimeoutError:
                pass
            try:
                await self._callback()
            except Exception as e:
                log.error("scheduler.tick.failed", task=self._name, error=str(e))
