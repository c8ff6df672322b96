#!/usr/bin/env python3
"""
Periodic background tasks driven by the asyncio event loop
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from infrascaler.core import instrumentation

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Runs an async action every ``interval`` seconds until stopped"""

    def __init__(
        self,
        name: str,
        interval: float,
        action: Callable[[], Awaitable[None]],
        run_immediately: bool = False
    ):
        """
        Initialize the periodic task

        Args:
            name: Task name used in logs and error metrics
            interval: Seconds between the end of one tick and the start of the next
            action: Coroutine function executed on every tick
            run_immediately: Run the first tick on start instead of after one interval
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.action = action
        self.run_immediately = run_immediately
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Schedule the loop on the running event loop"""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name=f"periodic-{self.name}")
        logger.info(f"Started {self.name} loop (every {self.interval}s)")

    async def _run(self):
        if not self.run_immediately and await self._wait_interval():
            return
        while not self._stop_event.is_set():
            try:
                await self.action()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                instrumentation.ERRORS.labels(type=f"{self.name}_loop").inc()
                logger.error(f"Error in {self.name} loop: {e}", exc_info=True)
            self.ticks += 1
            if await self._wait_interval():
                return

    async def _wait_interval(self) -> bool:
        """Sleep one interval; True when a stop was requested meanwhile"""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            return True
        except asyncio.TimeoutError:
            return False

    async def stop(self, grace: Optional[float] = 0):
        """
        Stop the loop

        Args:
            grace: Seconds an in-progress tick may take to finish before it is
                cancelled; None waits for it without limit
        """
        if self._task is None:
            return
        self._stop_event.set()
        task = self._task
        if not task.done():
            if grace is None:
                await asyncio.gather(task, return_exceptions=True)
            else:
                done, _ = await asyncio.wait({task}, timeout=grace) if grace > 0 else (set(), None)
                if task not in done:
                    task.cancel()
                    await asyncio.gather(task, return_exceptions=True)
        self._task = None
        logger.info(f"Stopped {self.name} loop after {self.ticks} ticks")
