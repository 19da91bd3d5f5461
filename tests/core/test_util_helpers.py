"""Tests for utility/helper functions."""

import asyncio
import logging
from unittest.mock import AsyncMock, patch

import pytest

from nonstop.engine import PlaybackEngine
from nonstop.errors import RetriesExhausted, TransientNetworkFailure
from nonstop.helpers import uri as uri_helpers
from nonstop.helpers import util
from nonstop.helpers.throttle_retry import Throttler, ThrottlerManager, throttle_with_retries
from nonstop.helpers.ticker import PeriodicTask
from nonstop.models.enums import ProviderTag


def test_overlaps() -> None:
    """Test the (case-insensitive) substring overlap check."""
    assert util.overlaps("Daft Punk", "daft punk")
    assert util.overlaps("Daft Punk, Pharrell Williams", "Pharrell Williams")
    assert util.overlaps("Get Lucky", "Get Lucky (Radio Edit)")
    assert not util.overlaps("Daft Punk", "Justice")
    assert not util.overlaps("", "Justice")
    assert not util.overlaps("Justice", "  ")


def test_shuffled() -> None:
    """Test shuffled returns a new list with the same items."""
    items = (1, 2, 3, 4, 5)
    result = util.shuffled(items)
    assert isinstance(result, list)
    assert sorted(result) == list(items)


def test_random_tag() -> None:
    """Test the random seed tag."""
    tag = util.random_tag()
    assert len(tag) == 6
    assert tag.isalnum()
    assert tag == tag.lower()


async def test_lock() -> None:
    """Test the lock decorator serializes calls per instance."""
    running = []
    overlapped = []

    class Worker:
        @util.lock
        async def work(self) -> None:
            if running:
                overlapped.append(True)
            running.append(True)
            await asyncio.sleep(0)
            running.pop()

    worker = Worker()
    await asyncio.gather(worker.work(), worker.work(), worker.work())
    assert not overlapped


def test_uri_helpers() -> None:
    """Test creating and parsing backend uri's."""
    assert uri_helpers.create_uri(ProviderTag.SPOTIFY, "abc") == "spotify:track:abc"
    assert uri_helpers.create_uri("youtube", "dQw4w9WgXcQ") == "youtube:video:dQw4w9WgXcQ"
    assert uri_helpers.parse_uri("spotify:track:abc") == (ProviderTag.SPOTIFY, "abc")
    assert uri_helpers.parse_uri("spotify:track:") is None
    assert uri_helpers.get_provider_from_uri("youtube:video:xyz") == ProviderTag.YOUTUBE
    assert uri_helpers.get_provider_from_uri("deezer:track:1") is None
    assert uri_helpers.get_item_id("youtube:video:xyz") == "xyz"
    assert uri_helpers.get_item_id("xyz") == "xyz"


async def test_throttler() -> None:
    """Test the throttler blocks once the rate limit is reached."""
    throttler = Throttler(rate_limit=2, period=60)
    await throttler.acquire()
    await throttler.acquire()

    with pytest.raises(TimeoutError):
        await asyncio.wait_for(throttler.acquire(), 0.1)


class _ThrottledClient:
    """Client with a throttled (and failing) call."""

    def __init__(self, failures: int) -> None:
        """Initialize the client."""
        self.throttler = ThrottlerManager(rate_limit=10, retry_attempts=3, initial_backoff=1)
        self.logger = logging.getLogger("test")
        self.calls = 0
        self.failures = failures

    @throttle_with_retries
    async def fetch(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise TransientNetworkFailure("busy", backoff_time=self.calls)
        return "ok"


async def test_throttle_with_retries() -> None:
    """Test transient failures are retried with backoff."""
    client = _ThrottledClient(failures=2)
    with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        assert await client.fetch() == "ok"

    assert client.calls == 3
    assert [x.args[0] for x in mock_sleep.await_args_list] == [1, 2]


async def test_throttle_with_retries_exhausted() -> None:
    """Test RetriesExhausted is raised after the last attempt."""
    client = _ThrottledClient(failures=10)
    with (
        patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep,
        pytest.raises(RetriesExhausted) as exc_info,
    ):
        await client.fetch()

    assert client.calls == 3
    assert mock_sleep.await_count == 2
    assert isinstance(exc_info.value.__cause__, TransientNetworkFailure)


async def test_periodic_task(engine: PlaybackEngine) -> None:
    """Test the periodic task ticks, survives errors and cancels."""
    ticks = []

    async def target() -> None:
        ticks.append(True)
        if len(ticks) == 1:
            raise RuntimeError("first tick fails")

    ticker = PeriodicTask(engine, "test_ticker", 0.01, target, logging.getLogger("test"))
    ticker.start(run_immediately=True)
    ticker.start()
    assert ticker.running

    while len(ticks) < 3:
        await asyncio.sleep(0.01)

    ticker.cancel()
    ticker.cancel()
    assert not ticker.running
    assert engine.get_task("test_ticker") is None
    count = len(ticks)
    await asyncio.sleep(0.05)
    assert len(ticks) == count


async def test_create_task_deduplicates(engine: PlaybackEngine) -> None:
    """Test a running task with the same id is reused (or aborted)."""
    event = asyncio.Event()

    async def wait_for_event() -> str:
        await event.wait()
        return "done"

    first = engine.create_task(wait_for_event, task_id="dedup")
    second = engine.create_task(wait_for_event(), task_id="dedup")
    assert second is first

    third = engine.create_task(wait_for_event, task_id="dedup", abort_existing=True)
    assert third is not first
    await asyncio.sleep(0.01)
    assert first.cancelled()

    event.set()
    assert await third == "done"
    assert engine.get_task("dedup") is None


async def test_create_task_invalid_target(engine: PlaybackEngine) -> None:
    """Test non-coroutine targets are rejected."""
    with pytest.raises(RuntimeError):
        engine.create_task(lambda: None)  # type: ignore[arg-type]


async def test_call_later(engine: PlaybackEngine) -> None:
    """Test delayed tasks are debounced by task id."""
    calls = []

    async def target(value: int) -> None:
        calls.append(value)

    engine.call_later(0.01, target, 1, task_id="later")
    engine.call_later(0.01, target, 2, task_id="later")
    engine.call_later(0.01, target, 3, task_id="cancelled")
    engine.cancel_timer("cancelled")

    await asyncio.sleep(0.05)
    assert calls == [2]
