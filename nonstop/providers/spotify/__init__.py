"""Spotify music provider support for NonStop."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nonstop.models.enums import ProviderFeature

from .provider import SpotifyProvider

if TYPE_CHECKING:
    from nonstop.engine import PlaybackEngine
    from nonstop.models.provider import MusicProvider

SUPPORTED_FEATURES = {
    ProviderFeature.NATIVE_QUEUE,
    ProviderFeature.PLAYBACK_POSITION,
    ProviderFeature.DEVICES,
    ProviderFeature.TOP_ARTISTS,
    ProviderFeature.SIMILAR_TRACKS,
}


def setup(engine: PlaybackEngine) -> MusicProvider:
    """Initialize provider(instance)."""
    return SpotifyProvider(engine, SUPPORTED_FEATURES)
