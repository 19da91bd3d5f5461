"""
AutoplayController: extends playback when the current track is about to end.

Backends with a native queue get a handful of similar tracks pushed onto their
own queue when it runs dry. Backends without one get a single related track
appended to the local playback queue, which is then played directly.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING, Any

from nonstop.constants import (
    AUTOPLAY_CANDIDATE_LIMIT,
    AUTOPLAY_ENQUEUE_COUNT,
    AUTOPLAY_INTERVAL,
    AUTOPLAY_PENDING_LIMIT,
    AUTOPLAY_STOPPED_WINDOW_MS,
    AUTOPLAY_WINDOW_MS,
    CONF_AUTOPLAY_ENABLED,
)
from nonstop.errors import AuthenticationFailure
from nonstop.helpers.ticker import PeriodicTask
from nonstop.models.core_controller import CoreController
from nonstop.models.enums import ProviderFeature

if TYPE_CHECKING:
    from nonstop.engine import PlaybackEngine
    from nonstop.models.media import PlaybackState, Track
    from nonstop.models.provider import MusicProvider


class AutoplayController(CoreController):
    """Controller that (periodically) extends the playback queue."""

    domain: str = "autoplay"

    def __init__(self, engine: PlaybackEngine) -> None:
        """Initialize class."""
        super().__init__(engine)
        self._enabled = False
        self.last_processed_track_id: str | None = None
        self.pending_autoplay_tracks: deque[str] = deque(maxlen=AUTOPLAY_PENDING_LIMIT)
        self._monitor = PeriodicTask(
            engine, "autoplay_monitor", AUTOPLAY_INTERVAL, self._monitor_tick, self.logger
        )

    async def setup(self) -> None:
        """Async initialize of module."""
        if self.engine.settings.get(CONF_AUTOPLAY_ENABLED, True):
            self.enable()

    async def close(self) -> None:
        """Cleanup on exit."""
        self._monitor.cancel()
        self._enabled = False

    @property
    def enabled(self) -> bool:
        """Return if autoplay is enabled."""
        return self._enabled

    def enable(self) -> None:
        """Enable autoplay (and persist the preference)."""
        self._set_enabled(True)
        self._monitor.start()

    def disable(self) -> None:
        """Disable autoplay (and persist the preference)."""
        self._monitor.cancel()
        self._set_enabled(False)

    def reset(self) -> None:
        """Clear the autoplay bookkeeping."""
        self.last_processed_track_id = None
        self.pending_autoplay_tracks = deque(maxlen=AUTOPLAY_PENDING_LIMIT)

    def status(self) -> dict[str, Any]:
        """Return a (serializable) summary of the autoplay state."""
        return {
            "enabled": self._enabled,
            "last_processed_track_id": self.last_processed_track_id,
            "pending_autoplay_tracks": list(self.pending_autoplay_tracks),
        }

    def _set_enabled(self, enabled: bool) -> None:
        if self._enabled == enabled:
            return
        self._enabled = enabled
        if self.engine.settings.get(CONF_AUTOPLAY_ENABLED, True) != enabled:
            self.engine.settings.set(CONF_AUTOPLAY_ENABLED, enabled)
        self.logger.info("Autoplay %s", "enabled" if enabled else "disabled")

    async def _monitor_tick(self) -> None:
        if not self._enabled:
            return
        try:
            await self.check_and_trigger()
        except AuthenticationFailure as err:
            self.logger.warning("Disabling autoplay: %s", err)
            self.disable()

    async def check_and_trigger(self) -> None:
        """Check the playback state and extend the queue if the track is about to end."""
        if self.engine.ai_queue.state.is_active:
            # the AI queue takes care of its own continuation
            return
        provider = self.engine.providers.active()
        playback_state = await provider.get_playback_state()
        if not playback_state or not (track := playback_state.track):
            return
        if track.id == self.last_processed_track_id:
            return
        if not self._in_autoplay_window(provider, playback_state):
            return
        if ProviderFeature.NATIVE_QUEUE in provider.supported_features:
            await self._extend_native_queue(provider, track)
        else:
            await self._extend_local_queue(provider, track)
        self.last_processed_track_id = track.id

    def _in_autoplay_window(self, provider: MusicProvider, playback_state: PlaybackState) -> bool:
        remaining = playback_state.remaining_ms
        if remaining is None:
            return False
        if ProviderFeature.PLAYBACK_POSITION in provider.supported_features:
            return remaining <= AUTOPLAY_WINDOW_MS
        # without a reliable position we only act once playback actually stopped
        return remaining <= AUTOPLAY_STOPPED_WINDOW_MS and not playback_state.is_playing

    async def _get_candidates(self, provider: MusicProvider, track: Track) -> list[Track]:
        if ProviderFeature.SIMILAR_TRACKS not in provider.supported_features:
            return []
        try:
            return await provider.get_similar_tracks(track.id, AUTOPLAY_CANDIDATE_LIMIT)
        except AuthenticationFailure:
            raise
        except Exception as err:
            self.logger.warning("Unable to fetch autoplay candidates for %s: %s", track.name, err)
            return []

    async def _extend_native_queue(self, provider: MusicProvider, track: Track) -> None:
        if await provider.get_queue():
            self.logger.debug("Backend queue is not empty, deferring autoplay")
            return
        candidates = await self._get_candidates(provider, track)
        for candidate in candidates[:AUTOPLAY_ENQUEUE_COUNT]:
            await provider.add_to_queue(candidate.uri)
            self.pending_autoplay_tracks.append(candidate.id)
        if candidates:
            self.logger.info(
                "Autoplay enqueued %s tracks similar to %s",
                min(len(candidates), AUTOPLAY_ENQUEUE_COUNT),
                track.name,
            )

    async def _extend_local_queue(self, provider: MusicProvider, track: Track) -> None:
        playback_queue = self.engine.playback_queue
        if playback_queue.remaining_count() > 0:
            self.logger.debug("Local queue has unplayed tracks, deferring autoplay")
            return
        candidates = await self._get_candidates(provider, track)
        if not candidates:
            return
        next_track = candidates[0]
        playback_queue.append_tracks([next_track])
        if playback_queue.current_track() != next_track:
            playback_queue.advance_to_next()
        self.pending_autoplay_tracks.append(next_track.id)
        self.logger.info("Autoplay continues with %s", next_track.name)
        await provider.play_track(next_track.uri)
