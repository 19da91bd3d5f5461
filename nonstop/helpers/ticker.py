"""Periodic task helper: a cancellable ticker on the engine's event loop."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from nonstop.constants import VERBOSE_LOG_LEVEL

if TYPE_CHECKING:
    from nonstop.engine import PlaybackEngine


class PeriodicTask:
    """
    Run a coroutine function at a fixed interval until cancelled.

    Ticks of a single PeriodicTask never overlap: the runner awaits each tick before
    sleeping again. Exceptions raised by a tick are logged and do not stop the ticker.
    Cancellation is synchronous and idempotent, but a tick that is already running
    may still be mid-flight, so tick bodies must re-check their own enabled flag.
    """

    def __init__(
        self,
        engine: PlaybackEngine,
        task_id: str,
        interval: float,
        target: Callable[[], Awaitable[None]],
        logger: logging.Logger,
    ) -> None:
        """Initialize the PeriodicTask."""
        self.engine = engine
        self.task_id = task_id
        self.interval = interval
        self.target = target
        self.logger = logger
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        """Return if the ticker is currently scheduled."""
        return self._task is not None and not self._task.done()

    def start(self, run_immediately: bool = False) -> None:
        """Start the ticker (no-op if already running)."""
        if self.running:
            return
        self._task = self.engine.create_task(self._runner(run_immediately), task_id=self.task_id)

    def cancel(self) -> None:
        """Cancel the ticker (no-op if not running)."""
        if self._task is None:
            return
        task = self._task
        self._task = None
        self.engine.cancel_task(self.task_id)
        if not task.done():
            task.cancel()

    async def _runner(self, run_immediately: bool) -> None:
        if run_immediately:
            await self._run_once()
        while True:
            await asyncio.sleep(self.interval)
            await self._run_once()

    async def _run_once(self) -> None:
        self.logger.log(VERBOSE_LOG_LEVEL, "tick %s", self.task_id)
        try:
            await self.target()
        except Exception as err:
            self.logger.warning(
                "Error in %s: %s",
                self.task_id,
                str(err),
                exc_info=err if self.logger.isEnabledFor(logging.DEBUG) else None,
            )
