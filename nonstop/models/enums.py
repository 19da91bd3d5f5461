"""All enums used by NonStop."""

from __future__ import annotations

from enum import StrEnum


class ProviderTag(StrEnum):
    """Enum with the (builtin) streaming backends."""

    SPOTIFY = "spotify"
    YOUTUBE = "youtube"


class ProviderFeature(StrEnum):
    """Enum with optional capabilities a streaming backend may support."""

    # the backend maintains its own upcoming queue we can push tracks onto
    NATIVE_QUEUE = "native_queue"
    # the backend reports a reliable live playback position
    PLAYBACK_POSITION = "playback_position"
    # the backend has explicit (remote) playback devices/sessions
    DEVICES = "devices"
    # the backend can report the user's top artists
    TOP_ARTISTS = "top_artists"
    # the backend can return similar/related tracks for a seed track
    SIMILAR_TRACKS = "similar_tracks"


class AIProviderType(StrEnum):
    """Enum with the supported (OpenAI-compatible) suggestion model providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    GROQ = "groq"
