"""Fixtures for testing NonStop."""

import json
import logging
import pathlib
from collections.abc import AsyncGenerator, Callable
from typing import Any

import aiofiles
import pytest

from nonstop.engine import PlaybackEngine
from nonstop.models.enums import ProviderFeature, ProviderTag
from nonstop.models.media import (
    Album,
    Artist,
    ArtistProfile,
    Device,
    PlaybackState,
    Track,
)
from nonstop.models.provider import MusicProvider

TrackFactory = Callable[..., Track]


def make_track(
    track_id: str,
    name: str | None = None,
    artist: str = "Some Artist",
    duration_ms: int = 200_000,
    provider: ProviderTag = ProviderTag.SPOTIFY,
) -> Track:
    """Create a (minimal) Track for testing."""
    prefix = "spotify:track:" if provider == ProviderTag.SPOTIFY else "youtube:video:"
    return Track(
        id=track_id,
        name=name or f"Track {track_id}",
        duration_ms=duration_ms,
        artists=(Artist(id=f"artist-{artist}", name=artist),),
        album=Album(id="album", name="Album"),
        uri=f"{prefix}{track_id}",
        provider=provider,
    )


class FakeProvider(MusicProvider):
    """In-memory music provider that records all calls."""

    def __init__(
        self,
        engine: PlaybackEngine,
        domain: ProviderTag = ProviderTag.SPOTIFY,
        supported_features: set[ProviderFeature] | None = None,
    ) -> None:
        """Initialize the fake provider."""
        self.domain = domain
        super().__init__(engine, supported_features or set())
        self.authenticated = True
        self.playback_state: PlaybackState | None = None
        self.queue: list[Track] = []
        self.similar: list[Track] = []
        self.recent: list[Track] = []
        self.top_artists: list[ArtistProfile] = []
        self.devices: list[Device] = []
        self.active_device: Device | None = None
        self.search_results: dict[str, list[Track]] = {}
        self.searches: list[str] = []
        self.played: list[str] = []
        self.play_requests: list[list[str]] = []
        self.queued: list[str] = []
        self.transfers: list[tuple[str, bool]] = []
        self.play_calls = 0
        self.closed = False

    async def is_authenticated(self) -> bool:
        return self.authenticated

    async def close(self) -> None:
        self.closed = True

    async def get_playback_state(self) -> PlaybackState | None:
        return self.playback_state

    def play(self) -> None:
        self.play_calls += 1

    def pause(self) -> None:
        pass

    def next_track(self) -> None:
        pass

    def previous_track(self) -> None:
        pass

    def seek(self, position_ms: int) -> None:
        pass

    def set_volume(self, volume_percent: int) -> None:
        pass

    async def search_tracks(self, query: str, limit: int = 20) -> list[Track]:
        self.searches.append(query)
        return self.search_results.get(query, [])[:limit]

    async def play_track(self, uri: str, start_position_ms: int | None = None) -> None:
        self.played.append(uri)

    async def play_tracks(self, uris: list[str]) -> None:
        self.play_requests.append(list(uris))

    async def add_to_queue(self, uri: str) -> None:
        self.queued.append(uri)

    async def get_recently_played(self, limit: int = 20) -> list[Track]:
        return self.recent[:limit]

    async def get_queue(self) -> list[Track]:
        return self.queue

    async def get_similar_tracks(self, track_id: str, limit: int = 25) -> list[Track]:
        return self.similar[:limit]

    async def get_top_artists(self, limit: int = 10) -> list[ArtistProfile]:
        return self.top_artists[:limit]

    async def get_devices(self) -> list[Device]:
        return self.devices

    async def get_active_device(self) -> Device | None:
        return self.active_device

    async def transfer_playback(self, device_id: str, play: bool = False) -> None:
        self.transfers.append((device_id, play))


@pytest.fixture(name="caplog")
def caplog_fixture(caplog: pytest.LogCaptureFixture) -> pytest.LogCaptureFixture:
    """Set log level to debug for tests using the caplog fixture."""
    caplog.set_level(logging.DEBUG)
    return caplog


@pytest.fixture
def track_factory() -> TrackFactory:
    """Return a factory to create tracks."""
    return make_track


@pytest.fixture
def settings_data() -> dict[str, Any]:
    """Return the initial settings for the engine (monitors disabled)."""
    return {
        "autoplay_enabled": False,
        "keep_alive_enabled": False,
        "active_music_provider": "spotify",
    }


@pytest.fixture
async def engine(
    tmp_path: pathlib.Path, settings_data: dict[str, Any]
) -> AsyncGenerator[PlaybackEngine, None]:
    """Start a PlaybackEngine in test mode.

    :param tmp_path: Temporary directory for test data.
    """
    storage_path = tmp_path / "data"
    storage_path.mkdir(parents=True)
    async with aiofiles.open(storage_path / "settings.json", "w") as f:
        await f.write(json.dumps(settings_data))

    engine_instance = PlaybackEngine(str(storage_path))
    await engine_instance.start()

    try:
        yield engine_instance
    finally:
        await engine_instance.stop()


@pytest.fixture
def provider_factory(engine: PlaybackEngine) -> Callable[..., FakeProvider]:
    """Return a factory that registers (and activates) a FakeProvider."""

    def _create(
        domain: ProviderTag = ProviderTag.SPOTIFY,
        features: set[ProviderFeature] | None = None,
    ) -> FakeProvider:
        provider = FakeProvider(engine, domain, features)
        engine.providers.register(domain, lambda _engine: provider)
        if engine.providers.active_tag() != domain:
            engine.providers.set_active(domain)
        return provider

    return _create


@pytest.fixture
def native_provider(provider_factory: Callable[..., FakeProvider]) -> FakeProvider:
    """Return an (active) fake provider that behaves like a remote playback backend."""
    return provider_factory(
        ProviderTag.SPOTIFY,
        {
            ProviderFeature.NATIVE_QUEUE,
            ProviderFeature.PLAYBACK_POSITION,
            ProviderFeature.DEVICES,
            ProviderFeature.TOP_ARTISTS,
            ProviderFeature.SIMILAR_TRACKS,
        },
    )


@pytest.fixture
def embedded_provider(provider_factory: Callable[..., FakeProvider]) -> FakeProvider:
    """Return an (active) fake provider that behaves like an embedded player backend."""
    return provider_factory(ProviderTag.YOUTUBE, {ProviderFeature.SIMILAR_TRACKS})
