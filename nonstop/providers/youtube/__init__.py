"""YouTube music provider support for NonStop."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nonstop.models.enums import ProviderFeature

from .provider import YouTubePlayerBridge, YouTubeProvider

if TYPE_CHECKING:
    from nonstop.engine import PlaybackEngine
    from nonstop.models.provider import MusicProvider

__all__ = ["SUPPORTED_FEATURES", "YouTubePlayerBridge", "YouTubeProvider", "setup"]

SUPPORTED_FEATURES = {
    ProviderFeature.SIMILAR_TRACKS,
}


def setup(engine: PlaybackEngine) -> MusicProvider:
    """Initialize provider(instance)."""
    return YouTubeProvider(engine, SUPPORTED_FEATURES)
