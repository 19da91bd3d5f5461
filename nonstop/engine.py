"""Main NonStop (playback engine) class."""

from __future__ import annotations

import asyncio
import inspect
import logging
import os
from collections.abc import Awaitable, Callable, Coroutine
from typing import TYPE_CHECKING, Any, Self, TypeVar, cast
from uuid import uuid4

from aiofiles.os import wrap

from nonstop.constants import APPLICATION_NAME, LOGGER_NAME
from nonstop.controllers.ai_queue import AIQueueController
from nonstop.controllers.autoplay import AutoplayController
from nonstop.controllers.config import SettingsController
from nonstop.controllers.keep_alive import KeepAliveController
from nonstop.controllers.playback_queue import PlaybackQueueController
from nonstop.controllers.providers import ProviderRegistry
from nonstop.helpers.aiohttp_client import create_clientsession
from nonstop.helpers.util import get_package_version
from nonstop.providers import register_builtin_providers

if TYPE_CHECKING:
    from types import TracebackType

    from aiohttp import ClientSession

LOGGER = logging.getLogger(LOGGER_NAME)

isdir = wrap(os.path.isdir)
mkdirs = wrap(os.makedirs)

_R = TypeVar("_R")


class PlaybackEngine:
    """Main NonStop (playback engine) object."""

    loop: asyncio.AbstractEventLoop
    settings: SettingsController
    providers: ProviderRegistry
    playback_queue: PlaybackQueueController
    autoplay: AutoplayController
    ai_queue: AIQueueController
    keep_alive: KeepAliveController

    def __init__(self, storage_path: str) -> None:
        """Initialize the PlaybackEngine."""
        self.storage_path = storage_path
        self._tracked_tasks: dict[str, asyncio.Task[Any]] = {}
        self._tracked_timers: dict[str, asyncio.TimerHandle] = {}
        self.closing = False
        self.version: str = "0.0.0"
        # mood/genre the user asked for in the current AI queue session (never persisted)
        self.mood: str | None = None
        self._http_session: ClientSession | None = None

    async def start(self) -> None:
        """Start running the playback engine."""
        self.loop = asyncio.get_running_loop()
        self.closing = False
        self.version = await get_package_version("nonstop") or "0.0.0"
        if not await isdir(self.storage_path):
            await mkdirs(self.storage_path)
        # setup settings controller first
        self.settings = SettingsController(self)
        await self.settings.setup()
        LOGGER.info("Starting %s version %s", APPLICATION_NAME, self.version)
        self.providers = ProviderRegistry(self)
        register_builtin_providers(self.providers)
        await self.providers.setup()
        self.playback_queue = PlaybackQueueController(self)
        self.ai_queue = AIQueueController(self)
        self.autoplay = AutoplayController(self)
        self.keep_alive = KeepAliveController(self)
        await self.playback_queue.setup()
        await self.ai_queue.setup()
        await self.autoplay.setup()
        await self.keep_alive.setup()

    async def stop(self) -> None:
        """Stop running the playback engine."""
        LOGGER.info("Stop called, cleaning up...")
        self.closing = True
        # stop core controllers (cancels their monitors)
        await self.keep_alive.close()
        await self.autoplay.close()
        await self.ai_queue.close()
        await self.playback_queue.close()
        # cancel all (remaining) running tasks
        for task in list(self._tracked_tasks.values()):
            task.cancel()
        for timer in list(self._tracked_timers.values()):
            timer.cancel()
        self._tracked_timers = {}
        await self.providers.close()
        await self.settings.close()
        self.mood = None
        # close/cleanup shared http session
        if self._http_session:
            await self._http_session.close()
            self._http_session = None

    @property
    def http_session(self) -> ClientSession:
        """
        Return the shared HTTP Client session.

        NOTE: May only be called from the event loop.
        """
        if self._http_session is None:
            self._http_session = create_clientsession(self)
        return self._http_session

    def create_task(
        self,
        target: Callable[..., Coroutine[Any, Any, _R]] | Awaitable[_R],
        *args: Any,
        task_id: str | None = None,
        abort_existing: bool = False,
        **kwargs: Any,
    ) -> asyncio.Task[_R]:
        """Create Task on (main) event loop from Coroutine(function).

        Tasks created by this helper will be properly cancelled on stop.
        """
        if task_id and (existing := self._tracked_tasks.get(task_id)) and not existing.done():
            # prevent duplicate tasks if task_id is given and already present
            if abort_existing:
                existing.cancel()
            else:
                if asyncio.iscoroutine(target):
                    # the coroutine will never be awaited, close it to prevent a warning
                    target.close()
                return cast("asyncio.Task[_R]", existing)

        if inspect.iscoroutinefunction(target):
            # coroutine function
            task = self.loop.create_task(target(*args, **kwargs))
        elif asyncio.iscoroutine(target):
            # coroutine
            task = self.loop.create_task(target)
        elif callable(target):
            raise RuntimeError("Function is not a coroutine or coroutine function")
        else:
            raise RuntimeError("Target is missing")

        if task_id is None:
            task_id = uuid4().hex

        def task_done_callback(_task: asyncio.Task[Any]) -> None:
            if self._tracked_tasks.get(task_id) is _task:
                self._tracked_tasks.pop(task_id)
            # log unhandled exceptions
            if not _task.cancelled() and (err := _task.exception()):
                LOGGER.warning(
                    "Exception in task %s - target: %s: %s",
                    task_id,
                    str(target),
                    str(err),
                    exc_info=err if LOGGER.isEnabledFor(logging.DEBUG) else None,
                )

        self._tracked_tasks[task_id] = task
        task.add_done_callback(task_done_callback)
        return task

    def call_later(
        self,
        delay: float,
        target: Callable[..., Coroutine[Any, Any, _R]],
        *args: Any,
        task_id: str | None = None,
        **kwargs: Any,
    ) -> asyncio.TimerHandle:
        """
        Run coroutine function after given delay.

        Use task_id for debouncing.
        """
        if not task_id:
            task_id = uuid4().hex

        if existing := self._tracked_timers.get(task_id):
            existing.cancel()

        def _create_task() -> None:
            self._tracked_timers.pop(task_id, None)
            self.create_task(target, *args, task_id=task_id, abort_existing=True, **kwargs)

        handle = self.loop.call_later(delay, _create_task)
        self._tracked_timers[task_id] = handle
        return handle

    def get_task(self, task_id: str) -> asyncio.Task[Any] | None:
        """Get existing scheduled task."""
        return self._tracked_tasks.get(task_id)

    def cancel_task(self, task_id: str) -> None:
        """Cancel existing scheduled task."""
        if existing := self._tracked_tasks.pop(task_id, None):
            existing.cancel()

    def cancel_timer(self, task_id: str) -> None:
        """Cancel existing scheduled timer."""
        if existing := self._tracked_timers.pop(task_id, None):
            existing.cancel()

    async def __aenter__(self) -> Self:
        """Return Context manager."""
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        """Exit context manager."""
        await self.stop()
        return None
