"""Rate limiting (Throttler) and retry helpers for the provider HTTP clients."""

from __future__ import annotations

import asyncio
import functools
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable, Coroutine
from types import TracebackType
from typing import Any, Concatenate, ParamSpec, Protocol, TypeVar

from nonstop.errors import RetriesExhausted, TransientNetworkFailure

_R = TypeVar("_R")
_P = ParamSpec("_P")


class Throttler:
    """Sliding-window rate limiter (based on asyncio-throttle)."""

    def __init__(self, rate_limit: int, period: float = 1.0, retry_interval: float = 0.01) -> None:
        """Initialize the Throttler."""
        self.rate_limit = rate_limit
        self.period = period
        self.retry_interval = retry_interval
        self._task_logs: deque[float] = deque()

    def flush(self) -> None:
        """Remove all expired entries."""
        now = time.monotonic()
        while self._task_logs:
            if now - self._task_logs[0] > self.period:
                self._task_logs.popleft()
            else:
                break

    async def acquire(self) -> float:
        """Acquire a free slot from the Throttler, returns the throttled time."""
        cur_time = time.monotonic()
        start_time = cur_time
        while True:
            self.flush()
            if len(self._task_logs) < self.rate_limit:
                break
            await asyncio.sleep(self.retry_interval)
        self._task_logs.append(time.monotonic())
        return time.monotonic() - start_time

    async def __aenter__(self) -> float:
        """Wait until the lock is acquired, return the time delay."""
        return await self.acquire()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        """Nothing to do on exit."""
        return None


class ThrottlerManager:
    """Throttler manager that extends asyncio Throttle by retrying."""

    def __init__(
        self,
        rate_limit: int,
        period: float = 1,
        retry_attempts: int = 5,
        initial_backoff: int = 5,
    ) -> None:
        """Initialize the AsyncThrottledContextManager."""
        self.retry_attempts = retry_attempts
        self.initial_backoff = initial_backoff
        self.throttler = Throttler(rate_limit, period)

    async def acquire(self) -> float:
        """Acquire a free slot from the Throttler, returns the throttled time."""
        return await self.throttler.acquire()

    async def __aenter__(self) -> float:
        """Wait until the lock is acquired, return the time delay."""
        return await self.throttler.acquire()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> bool | None:
        """Exit the context manager."""
        return None


class _ThrottledProvider(Protocol):
    throttler: ThrottlerManager
    logger: logging.Logger


_ProviderT = TypeVar("_ProviderT", bound=_ThrottledProvider)


def throttle_with_retries(
    func: Callable[Concatenate[_ProviderT, _P], Awaitable[_R]],
) -> Callable[Concatenate[_ProviderT, _P], Coroutine[Any, Any, _R]]:
    """Call async function using the throttler with retries."""

    @functools.wraps(func)
    async def wrapper(self: _ProviderT, *args: _P.args, **kwargs: _P.kwargs) -> _R:
        """Call async function using the throttler with retries."""
        # the throttler attribute must be present on the class
        throttler = self.throttler
        backoff_time = throttler.initial_backoff
        last_error: TransientNetworkFailure | None = None
        for attempt in range(throttler.retry_attempts):
            try:
                async with throttler:
                    return await func(self, *args, **kwargs)
            except TransientNetworkFailure as err:
                last_error = err
                backoff_time = err.backoff_time or backoff_time
                self.logger.info(
                    "Attempt %s/%s failed: %s", attempt + 1, throttler.retry_attempts, err
                )
                if attempt < throttler.retry_attempts - 1:
                    self.logger.info("Retrying in %s seconds...", backoff_time)
                    await asyncio.sleep(backoff_time)
                    backoff_time *= 2
        msg = f"Retries exhausted, failed after {throttler.retry_attempts} attempts"
        raise RetriesExhausted(msg) from last_error

    return wrapper
