"""(Immutable) state snapshots owned by the core controllers."""

from __future__ import annotations

from dataclasses import dataclass

from mashumaro import DataClassDictMixin

from .enums import ProviderTag
from .media import QueuedTrack, Track


@dataclass(frozen=True, kw_only=True)
class PlaybackQueueState(DataClassDictMixin):
    """State of the local playback queue."""

    tracks: tuple[Track, ...] = ()
    current_index: int = -1
    playlist_id: str | None = None
    provider: ProviderTag | None = None
    is_playlist_mode: bool = False

    @property
    def remaining_count(self) -> int:
        """Return the number of tracks after the cursor."""
        return max(0, len(self.tracks) - self.current_index - 1)

    @property
    def current_track(self) -> Track | None:
        """Return the track under the cursor."""
        if 0 <= self.current_index < len(self.tracks):
            return self.tracks[self.current_index]
        return None

    @property
    def next_track(self) -> Track | None:
        """Return the track after the cursor."""
        next_index = self.current_index + 1
        if 0 <= next_index < len(self.tracks):
            return self.tracks[next_index]
        return None


@dataclass(frozen=True, kw_only=True)
class AIQueueState(DataClassDictMixin):
    """State of the AI generated queue session."""

    is_active: bool = False
    is_loading: bool = False
    queue: tuple[QueuedTrack, ...] = ()
    current_index: int = 0
    error: str | None = None
    cached_user_profile: str | None = None
    last_fetch_time: float = 0
    played_uris: frozenset[str] = frozenset()

    @property
    def remaining_count(self) -> int:
        """Return the number of queued tracks after the cursor."""
        return max(0, len(self.queue) - self.current_index - 1)

    def index_of(self, uri: str) -> int:
        """Return the queue index of the given uri, -1 if not queued."""
        for index, item in enumerate(self.queue):
            if item.uri == uri:
                return index
        return -1


@dataclass(frozen=True, kw_only=True)
class KeepAliveState(DataClassDictMixin):
    """State of the session keep-alive monitor."""

    enabled: bool = False
    last_active_device_id: str | None = None
    last_successful_ping: float = 0
    consecutive_failures: int = 0
