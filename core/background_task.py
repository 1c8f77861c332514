"""
Abstract base class for background tasks.

Provides the shared while/try/sleep loop: execute one iteration, log any
failure, wait for the next tick. A failing iteration never ends the loop.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable


class BackgroundTask(ABC):
    """Base class for periodic background tasks.

    Subclasses implement ``execute()`` with their single-iteration logic.
    The shared ``run()`` method handles the while/sleep/error loop.
    """

    def __init__(
        self,
        *,
        name: str,
        interval: float,
        stop_event: asyncio.Event,
        executor: ThreadPoolExecutor,
    ) -> None:
        self.name = name
        self.interval = interval
        self.stop_event = stop_event
        self.executor = executor
        self.iterations = 0

    # ── helpers available to subclasses ──────────────────────────────────

    async def run_blocking(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking function in the thread-pool executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor,
            lambda: func(*args, **kwargs),
        )

    # ── lifecycle ────────────────────────────────────────────────────────

    @abstractmethod
    async def execute(self) -> None:
        """Single iteration of the task, implemented by subclasses."""

    async def _wait_next_tick(self) -> None:
        """Sleep one interval, waking early only when the task is stopped."""
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass

    async def run(self) -> None:
        """Main loop: (execute → sleep) until stopped."""
        while not self.stop_event.is_set():
            try:
                await self.execute()
            except Exception as exc:
                logging.error(f"{self.name} failed: {exc}")
            self.iterations += 1
            await self._wait_next_tick()
