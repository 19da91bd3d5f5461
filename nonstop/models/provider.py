"""Model/base for a (streaming) Music Provider implementation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from nonstop.constants import LOGGER_NAME
from nonstop.errors import UnsupportedFeature

if TYPE_CHECKING:
    from nonstop.engine import PlaybackEngine

    from .enums import ProviderFeature, ProviderTag
    from .media import ArtistProfile, Device, PlaybackState, Track


class MusicProvider:
    """
    Base representation of a Music Provider (streaming backend).

    Music Provider implementations should inherit from this base model.
    Optional capabilities are declared in `supported_features` and the feature gated
    methods are only called by the core controllers if the matching feature is set.
    """

    domain: ProviderTag

    def __init__(self, engine: PlaybackEngine, supported_features: set[ProviderFeature]) -> None:
        """Initialize MusicProvider."""
        self.engine = engine
        self._supported_features = supported_features
        self.logger = logging.getLogger(f"{LOGGER_NAME}.providers.{self.domain}")

    @property
    def supported_features(self) -> set[ProviderFeature]:
        """Return the features supported by this Provider."""
        return self._supported_features

    @property
    def name(self) -> str:
        """Return (custom) friendly name for this provider."""
        return str(self.domain).title()

    async def is_authenticated(self) -> bool:
        """Return if the provider holds (usable) credentials."""
        raise NotImplementedError

    async def connect(self) -> None:
        """Handle async initialization of the provider (e.g. login)."""

    async def disconnect(self) -> None:
        """Handle disconnect of the provider (e.g. on unload)."""

    async def close(self) -> None:
        """Handle close/cleanup of the provider."""
        await self.disconnect()

    async def get_current_track(self) -> Track | None:
        """Return the currently playing track (None if nothing is playing)."""
        if state := await self.get_playback_state():
            return state.track
        return None

    async def get_playback_state(self) -> PlaybackState | None:
        """Return the current playback state (None if there is no playback session)."""
        raise NotImplementedError

    # transport controls: fire-and-forget, never block the caller

    def play(self) -> None:
        """Resume playback."""
        raise NotImplementedError

    def pause(self) -> None:
        """Pause playback."""
        raise NotImplementedError

    def next_track(self) -> None:
        """Skip to the next track."""
        raise NotImplementedError

    def previous_track(self) -> None:
        """Skip to the previous track."""
        raise NotImplementedError

    def seek(self, position_ms: int) -> None:
        """Seek to the given position (in milliseconds)."""
        raise NotImplementedError

    def set_volume(self, volume_percent: int) -> None:
        """Set the playback volume (0..100)."""
        raise NotImplementedError

    async def search_tracks(self, query: str, limit: int = 20) -> list[Track]:
        """Perform a track search on the backend."""
        raise NotImplementedError

    async def play_track(self, uri: str, start_position_ms: int | None = None) -> None:
        """Start playback of a single track."""
        raise NotImplementedError

    async def play_tracks(self, uris: list[str]) -> None:
        """
        Start playback of a list of tracks.

        Backends without a native queue only play the first track.
        """
        if uris:
            await self.play_track(uris[0])

    async def add_to_queue(self, uri: str) -> None:
        """Add a track to the (backend) queue."""
        raise NotImplementedError

    async def get_recently_played(self, limit: int = 20) -> list[Track]:
        """Return the most recently played tracks."""
        raise NotImplementedError

    async def get_queue(self) -> list[Track]:
        """Return the upcoming tracks of the backend queue."""
        # Will only be called if provider supports the NATIVE_QUEUE feature
        raise UnsupportedFeature(f"{self.name} has no native queue")

    async def get_similar_tracks(self, track_id: str, limit: int = 25) -> list[Track]:
        """Retrieve a dynamic list of tracks similar to the given (bare) track id."""
        # Will only be called if provider supports the SIMILAR_TRACKS feature
        raise UnsupportedFeature(f"{self.name} does not support similar tracks")

    async def get_top_artists(self, limit: int = 10) -> list[ArtistProfile]:
        """Return the (short term) top artists of the user."""
        # Will only be called if provider supports the TOP_ARTISTS feature
        raise UnsupportedFeature(f"{self.name} does not support top artists")

    async def get_devices(self) -> list[Device]:
        """Return all playback devices known to the backend."""
        # Will only be called if provider supports the DEVICES feature
        raise UnsupportedFeature(f"{self.name} has no playback devices")

    async def get_active_device(self) -> Device | None:
        """Return the device of the current playback session (None if no session)."""
        # Will only be called if provider supports the DEVICES feature
        raise UnsupportedFeature(f"{self.name} has no playback devices")

    async def transfer_playback(self, device_id: str, play: bool = False) -> None:
        """Transfer the playback session to the given device."""
        # Will only be called if provider supports the DEVICES feature
        raise UnsupportedFeature(f"{self.name} has no playback devices")

    def __repr__(self) -> str:
        """Return the string representation of this provider."""
        return f"<{self.__class__.__name__} {self.domain}>"
