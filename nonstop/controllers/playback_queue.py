"""
PlaybackQueueController: the local (cursor based) playback queue.

For backends with a native queue this is just bookkeeping of what the user started.
For backends without a native queue (e.g. an embedded player) a local queue monitor
advances the queue whenever the current track ended.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING, Any

from nonstop.constants import AUTOPLAY_STOPPED_WINDOW_MS, PLAYBACK_QUEUE_MONITOR_INTERVAL
from nonstop.helpers.ticker import PeriodicTask
from nonstop.models.core_controller import CoreController
from nonstop.models.enums import ProviderFeature, ProviderTag
from nonstop.models.state import PlaybackQueueState

if TYPE_CHECKING:
    from collections.abc import Iterable

    from nonstop.engine import PlaybackEngine
    from nonstop.models.media import Track


class PlaybackQueueController(CoreController):
    """Controller that owns the local playback queue state."""

    domain: str = "playback_queue"

    def __init__(self, engine: PlaybackEngine) -> None:
        """Initialize class."""
        super().__init__(engine)
        self._state = PlaybackQueueState()
        self._last_tracked_id: str | None = None
        self._monitor = PeriodicTask(
            engine,
            "playback_queue_monitor",
            PLAYBACK_QUEUE_MONITOR_INTERVAL,
            self._monitor_tick,
            self.logger,
        )

    async def close(self) -> None:
        """Cleanup on exit."""
        self.clear_playback_queue()

    @property
    def state(self) -> PlaybackQueueState:
        """Return the current (immutable) queue state."""
        return self._state

    @property
    def monitor_running(self) -> bool:
        """Return if the local queue monitor is running."""
        return self._monitor.running

    # state operations

    def set_playlist_queue(
        self,
        playlist_id: str,
        tracks: Iterable[Track],
        start_index: int,
        provider: ProviderTag | str,
    ) -> None:
        """Replace the queue with the tracks of a playlist (playlist mode)."""
        tracks = tuple(tracks)
        if tracks:
            current_index = min(max(start_index, 0), len(tracks) - 1)
        else:
            current_index = -1
        self._state = PlaybackQueueState(
            tracks=tracks,
            current_index=current_index,
            playlist_id=playlist_id,
            provider=ProviderTag(provider),
            is_playlist_mode=True,
        )

    def set_single_track(self, track: Track, provider: ProviderTag | str) -> None:
        """Replace the queue with a single track (non playlist mode)."""
        self._state = PlaybackQueueState(
            tracks=(track,),
            current_index=0,
            playlist_id=None,
            provider=ProviderTag(provider),
            is_playlist_mode=False,
        )

    def advance_to_next(self) -> Track | None:
        """Move the cursor to the next track, returns None (and stays put) at the end."""
        next_index = self._state.current_index + 1
        if next_index >= len(self._state.tracks):
            return None
        self._state = replace(self._state, current_index=next_index)
        return self._state.tracks[next_index]

    def append_tracks(self, tracks: Iterable[Track]) -> None:
        """Append tracks to the tail of the queue (the cursor is untouched)."""
        tracks = tuple(tracks)
        if not tracks:
            return
        if not self._state.tracks:
            # appending to an empty queue puts the cursor on the first track
            self._state = replace(self._state, tracks=tracks, current_index=0)
            return
        self._state = replace(self._state, tracks=self._state.tracks + tracks)

    def remaining_count(self) -> int:
        """Return the number of tracks after the cursor."""
        return self._state.remaining_count

    def current_track(self) -> Track | None:
        """Return the track under the cursor."""
        return self._state.current_track

    def next_track(self) -> Track | None:
        """Return the track after the cursor."""
        return self._state.next_track

    def set_current_index(self, index: int) -> None:
        """Move the cursor to the given index (ignored when out of range)."""
        if 0 <= index < len(self._state.tracks):
            self._state = replace(self._state, current_index=index)

    def index_of(self, track_id: str) -> int:
        """Return the queue index of the given track id, -1 if not queued."""
        for index, track in enumerate(self._state.tracks):
            if track.id == track_id:
                return index
        return -1

    def clear(self) -> None:
        """Reset the queue to the empty state."""
        self._state = PlaybackQueueState()

    # playback operations

    async def start_playlist_playback(
        self, playlist_id: str, tracks: Iterable[Track], start_index: int = 0
    ) -> None:
        """Start playback of a playlist on the active provider."""
        provider = self.engine.providers.active()
        self.set_playlist_queue(playlist_id, tracks, start_index, provider.domain)
        if ProviderFeature.NATIVE_QUEUE in provider.supported_features:
            # the backend takes care of advancing its own queue
            return
        if not (start_track := self.current_track()):
            return
        await provider.play_track(start_track.uri)
        self._last_tracked_id = start_track.id
        self._monitor.start()

    async def play_single_track(self, track: Track) -> None:
        """Play a single track on the active provider."""
        provider = self.engine.providers.active()
        self.set_single_track(track, provider.domain)
        await provider.play_track(track.uri)
        if ProviderFeature.NATIVE_QUEUE not in provider.supported_features:
            self._last_tracked_id = track.id

    def clear_playback_queue(self) -> None:
        """Stop the local queue monitor and clear the queue."""
        self._monitor.cancel()
        self.clear()
        self._last_tracked_id = None

    def status(self) -> dict[str, Any]:
        """Return a (serializable) summary of the queue."""
        return {
            "is_active": bool(self._state.tracks),
            "is_playlist_mode": self._state.is_playlist_mode,
            "current_index": self._state.current_index,
            "total_tracks": len(self._state.tracks),
            "provider": self._state.provider,
        }

    async def _monitor_tick(self) -> None:
        """Advance the local queue when the current track ended."""
        if self.engine.ai_queue.state.is_active:
            # the AI queue takes care of its own continuation
            return
        provider = self.engine.providers.active()
        if ProviderFeature.NATIVE_QUEUE in provider.supported_features:
            self.logger.debug("Active provider has a native queue, stopping local queue monitor")
            self._monitor.cancel()
            return
        if not (playback_state := await provider.get_playback_state()):
            return
        track = playback_state.track
        remaining = playback_state.remaining_ms
        has_ended = (
            not playback_state.is_playing
            and remaining is not None
            and remaining <= AUTOPLAY_STOPPED_WINDOW_MS
        )
        if has_ended and self.remaining_count() > 0:
            if next_track := self.advance_to_next():
                self.logger.debug("Track ended, playing next queue item %s", next_track.name)
                self._last_tracked_id = next_track.id
                await provider.play_track(next_track.uri)
        elif track and track.id != self._last_tracked_id:
            # the user started another track, follow it if it is part of the queue
            self._last_tracked_id = track.id
            index = self.index_of(track.id)
            if index != -1 and index != self._state.current_index:
                self.set_current_index(index)
