"""Tests for the provider registry."""

import asyncio
from typing import Any

import pytest

from nonstop.engine import PlaybackEngine
from nonstop.errors import UnknownProvider
from nonstop.providers.spotify import SpotifyProvider
from nonstop.providers.youtube import YouTubeProvider


async def test_builtin_providers_registered(engine: PlaybackEngine) -> None:
    """Test the builtin providers are registered on start."""
    assert engine.providers.registered() == ["spotify", "youtube"]
    assert isinstance(engine.providers.get("spotify"), SpotifyProvider)
    assert isinstance(engine.providers.get("youtube"), YouTubeProvider)


async def test_get_constructs_once(engine: PlaybackEngine) -> None:
    """Test a provider is constructed only once."""
    calls = []

    def factory(_engine: PlaybackEngine) -> Any:
        calls.append(_engine)
        return SpotifyProvider(_engine, set())

    engine.providers.register("spotify", factory)

    first = engine.providers.get("spotify")
    second = engine.providers.get("spotify")

    assert first is second
    assert len(calls) == 1


async def test_unknown_provider(engine: PlaybackEngine) -> None:
    """Test requesting an unregistered provider."""
    with pytest.raises(UnknownProvider):
        engine.providers.get("deezer")
    with pytest.raises(UnknownProvider):
        engine.providers.set_active("deezer")
    assert not engine.providers.has("deezer")
    assert await engine.providers.is_authenticated("deezer") is False


async def test_active_follows_setting(engine: PlaybackEngine) -> None:
    """Test the active provider follows the persisted preference."""
    assert engine.providers.active_tag() == "spotify"
    assert isinstance(engine.providers.active(), SpotifyProvider)

    engine.providers.set_active("youtube")

    assert engine.settings.get("active_music_provider") == "youtube"
    assert isinstance(engine.providers.active(), YouTubeProvider)

    # an external change of the setting is picked up as well
    engine.settings.set("active_music_provider", "spotify")
    assert isinstance(engine.providers.active(), SpotifyProvider)


async def test_is_authenticated_never_raises(
    engine: PlaybackEngine, native_provider: Any
) -> None:
    """Test the authentication check swallows provider errors."""
    assert await engine.providers.is_authenticated("spotify") is True

    native_provider.authenticated = False
    assert await engine.providers.is_authenticated("spotify") is False

    async def _raise() -> bool:
        raise RuntimeError("boom")

    native_provider.is_authenticated = _raise
    assert await engine.providers.is_authenticated("spotify") is False


async def test_register_replacement_closes_existing(
    engine: PlaybackEngine, native_provider: Any
) -> None:
    """Test replacing a factory closes the provider constructed by the old one."""
    assert engine.providers.active() is native_provider

    engine.providers.register("spotify", lambda _engine: SpotifyProvider(_engine, set()))
    await asyncio.sleep(0.01)

    assert native_provider.closed
    replacement = engine.providers.active()
    assert isinstance(replacement, SpotifyProvider)
    assert replacement is not native_provider


async def test_close_closes_providers(engine: PlaybackEngine, native_provider: Any) -> None:
    """Test closing the registry closes (and forgets) constructed providers."""
    assert engine.providers.active() is native_provider

    await engine.providers.close()

    assert native_provider.closed
    assert await engine.providers.is_authenticated("spotify")
