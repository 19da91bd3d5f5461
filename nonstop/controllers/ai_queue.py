"""
AIQueueController: a continuous, mood driven queue of model suggested tracks.

A session starts with a first batch of suggestions which is played right away.
A drift monitor then follows the playback: it marks tracks as played, refills the
queue when it runs low and stops the session as soon as the user starts playing
something that did not come from the AI queue (manual override).
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import TYPE_CHECKING

from nonstop.constants import (
    AI_BATCH_SIZE,
    AI_FALLBACK_QUERIES,
    AI_FALLBACK_SEARCH_LIMIT,
    AI_QUEUE_INTERVAL,
    AI_RECENT_TRACKS_LIMIT,
    AI_RECENT_TRACKS_SAMPLE,
    AI_REFILL_THRESHOLD,
    AI_TASTE_CACHE_TTL,
    AI_TOP_ARTISTS_LIMIT,
    AUTOPLAY_STOPPED_WINDOW_MS,
)
from nonstop.errors import AuthenticationFailure, NoSuggestionsResolved
from nonstop.helpers.suggestion_model import (
    OpenAICompatibleModel,
    SuggestionRequest,
    create_suggestion_model,
)
from nonstop.helpers.suggestions import (
    GENERIC_TASTE_SUMMARY,
    build_mood_directive,
    encode_artists,
    encode_recent_tracks,
    extract_suggestions,
)
from nonstop.helpers.ticker import PeriodicTask
from nonstop.helpers.util import overlaps, random_tag, shuffled
from nonstop.models.core_controller import CoreController
from nonstop.models.enums import ProviderFeature
from nonstop.models.media import QueuedTrack
from nonstop.models.state import AIQueueState

if TYPE_CHECKING:
    from collections.abc import Callable

    from nonstop.engine import PlaybackEngine
    from nonstop.helpers.suggestion_model import SuggestionModel
    from nonstop.models.media import PlaybackState, Suggestion, Track
    from nonstop.models.provider import MusicProvider

REFILL_TASK_ID = "ai_queue_refill"


class AIQueueController(CoreController):
    """Controller that runs the AI generated (continuous) queue."""

    domain: str = "ai_queue"

    def __init__(self, engine: PlaybackEngine) -> None:
        """Initialize class."""
        super().__init__(engine)
        self._state = AIQueueState()
        self._model: SuggestionModel | None = None
        self._owned_model: OpenAICompatibleModel | None = None
        self._last_seen_uri: str | None = None
        self._refill_task: asyncio.Task[None] | None = None
        self._monitor = PeriodicTask(
            engine, "ai_queue_monitor", AI_QUEUE_INTERVAL, self._monitor_tick, self.logger
        )

    async def close(self) -> None:
        """Cleanup on exit."""
        self.stop()
        if self._owned_model:
            await self._owned_model.close()
            self._owned_model = None

    @property
    def state(self) -> AIQueueState:
        """Return the current (immutable) AI queue state."""
        return self._state

    def status(self) -> AIQueueState:
        """Return the current (immutable) AI queue state."""
        return self._state

    def set_suggestion_model(self, model: SuggestionModel | None) -> None:
        """Set the suggestion model to use (None to use the one from the settings)."""
        self._model = model

    async def start(self, mood: str | None = None) -> None:
        """
        Start an AI queue session (no-op if one is active already).

        :param mood: Optional mood/genre the user asked for.
        """
        if self._state.is_active:
            return
        if mood:
            self.engine.mood = mood
        self._state = replace(self._state, is_active=True, error=None)
        self.logger.info("Starting AI queue (mood: %s)", self.engine.mood or "none")
        try:
            batch = await self.fetch_next_batch()
            if not self._state.is_active:
                # stopped while we were fetching
                return
            self._state = replace(
                self._state,
                queue=tuple(batch),
                current_index=0,
                played_uris=self._state.played_uris | {x.uri for x in batch},
            )
            provider = self.engine.providers.active()
            if ProviderFeature.NATIVE_QUEUE in provider.supported_features:
                await provider.play_tracks([x.uri for x in batch])
            else:
                await provider.play_track(batch[0].uri)
            self._last_seen_uri = batch[0].uri
            self._monitor.start()
        except Exception as err:
            self.logger.warning("Unable to start AI queue: %s", err)
            self._monitor.cancel()
            self._last_seen_uri = None
            self._state = AIQueueState(
                error=str(err) or err.__class__.__name__,
                cached_user_profile=self._state.cached_user_profile,
                last_fetch_time=self._state.last_fetch_time,
            )
            self.engine.mood = None

    def stop(self) -> None:
        """Stop the AI queue session (safe to call when inactive)."""
        refill_running = self._refill_task is not None and not self._refill_task.done()
        if not (self._state.is_active or self._monitor.running or refill_running):
            return
        self._monitor.cancel()
        if self._refill_task is not None:
            self._refill_task.cancel()
            self._refill_task = None
        self.engine.cancel_task(REFILL_TASK_ID)
        self._last_seen_uri = None
        self.engine.mood = None
        self._state = AIQueueState()
        self.logger.info("AI queue stopped")

    async def fetch_next_batch(self) -> list[QueuedTrack]:
        """
        Fetch the next batch of (new, playable) tracks from the suggestion model.

        Raises MalformedSuggestion if the model response holds no suggestions and
        NoSuggestionsResolved if nothing new could be found on the backend.
        """
        model = self._get_model()
        provider = self.engine.providers.active()
        self._state = replace(self._state, is_loading=True)
        try:
            recent_tracks = await self._get_recent_tracks(provider)
            recent_uris = {x.uri for x in recent_tracks}
            request = SuggestionRequest(
                taste_summary=await self._get_taste_summary(provider),
                recent_summary=encode_recent_tracks(
                    shuffled(recent_tracks)[:AI_RECENT_TRACKS_SAMPLE]
                ),
                mood_directive=build_mood_directive(self.engine.mood),
                seed=random_tag(),
            )
            suggestions = extract_suggestions(await model.generate(request))
            self.logger.debug("Model suggested %s tracks", len(suggestions))

            batch: list[QueuedTrack] = []
            batch_uris: set[str] = set()

            def is_new(uri: str) -> bool:
                return (
                    uri not in self._state.played_uris
                    and uri not in batch_uris
                    and uri not in recent_uris
                )

            for suggestion in shuffled(suggestions):
                if len(batch) >= AI_BATCH_SIZE:
                    break
                track = await self._resolve_suggestion(provider, suggestion)
                if track is None or not is_new(track.uri):
                    continue
                batch_uris.add(track.uri)
                batch.append(QueuedTrack.from_track(track))

            if not batch:
                self.logger.debug("No suggestion resolved to a new track, trying fallback")
                batch = await self._fallback_batch(provider, is_new)
            if not batch:
                msg = "Could not find any new tracks to play"
                raise NoSuggestionsResolved(msg)
            return batch
        finally:
            self._state = replace(self._state, is_loading=False)

    def _get_model(self) -> SuggestionModel:
        if self._model is not None:
            return self._model
        if self._owned_model is None:
            self._owned_model = create_suggestion_model(self.engine.settings)
        return self._owned_model

    async def _get_recent_tracks(self, provider: MusicProvider) -> list[Track]:
        try:
            return await provider.get_recently_played(AI_RECENT_TRACKS_LIMIT)
        except AuthenticationFailure:
            raise
        except Exception as err:
            self.logger.warning("Unable to fetch recently played tracks: %s", err)
            return []

    async def _get_taste_summary(self, provider: MusicProvider) -> str:
        """Return the (cached) compact summary of the user's taste."""
        if (
            self._state.cached_user_profile
            and time.time() - self._state.last_fetch_time < AI_TASTE_CACHE_TTL
        ):
            return self._state.cached_user_profile
        summary = GENERIC_TASTE_SUMMARY
        if ProviderFeature.TOP_ARTISTS in provider.supported_features:
            try:
                if top_artists := await provider.get_top_artists(AI_TOP_ARTISTS_LIMIT):
                    summary = encode_artists(shuffled(top_artists))
            except AuthenticationFailure:
                raise
            except Exception as err:
                self.logger.warning("Unable to fetch top artists: %s", err)
        self._state = replace(self._state, cached_user_profile=summary, last_fetch_time=time.time())
        return summary

    async def _search(self, provider: MusicProvider, query: str, limit: int) -> list[Track]:
        try:
            return await provider.search_tracks(query, limit)
        except AuthenticationFailure:
            raise
        except Exception as err:
            self.logger.debug("Search for %s failed: %s", query, err)
            return []

    async def _resolve_suggestion(
        self, provider: MusicProvider, suggestion: Suggestion
    ) -> Track | None:
        """Resolve a suggestion to a playable track on the backend."""
        query = f"{suggestion.name} {suggestion.artist}".strip()
        if results := await self._search(provider, query, 5):
            for track in results:
                if overlaps(track.artist_names, suggestion.artist) or overlaps(
                    track.name, suggestion.name
                ):
                    return track
            return results[0]
        if results := await self._search(provider, suggestion.name, 3):
            return results[0]
        return None

    async def _fallback_batch(
        self, provider: MusicProvider, is_new: Callable[[str], bool]
    ) -> list[QueuedTrack]:
        batch: list[QueuedTrack] = []
        for query in shuffled(AI_FALLBACK_QUERIES):
            results = await self._search(provider, query, AI_FALLBACK_SEARCH_LIMIT)
            for track in shuffled(results):
                if len(batch) >= AI_BATCH_SIZE:
                    break
                if is_new(track.uri) and track.uri not in {x.uri for x in batch}:
                    batch.append(QueuedTrack.from_track(track))
            if batch:
                break
        return batch

    async def _monitor_tick(self) -> None:
        if not self._state.is_active:
            return
        try:
            await self._check_drift()
        except AuthenticationFailure as err:
            self.logger.warning("Stopping AI queue: %s", err)
            self.stop()
            self._state = replace(self._state, error=str(err))

    async def _check_drift(self) -> None:
        """Follow the playback and detect a manual override."""
        provider = self.engine.providers.active()
        playback_state = await provider.get_playback_state()
        if not self._state.is_active:
            return
        if (
            playback_state is not None
            and ProviderFeature.NATIVE_QUEUE not in provider.supported_features
            and await self._auto_advance(provider, playback_state)
        ):
            return
        current = playback_state.track if playback_state else None
        if current is None or current.uri == self._last_seen_uri:
            return
        self._last_seen_uri = current.uri
        index = self._state.index_of(current.uri)
        if index == -1 and current.uri not in self._state.played_uris:
            self.logger.info("Manual override detected (%s), stopping AI queue", current.name)
            self.stop()
            return
        self._state = replace(
            self._state,
            played_uris=self._state.played_uris | {current.uri},
            current_index=index if index != -1 else self._state.current_index,
        )
        if index != -1 and self._state.remaining_count <= AI_REFILL_THRESHOLD:
            self._start_refill()

    async def _auto_advance(self, provider: MusicProvider, playback_state: PlaybackState) -> bool:
        """Play the next AI queue item on backends that do not advance on their own."""
        if playback_state.is_playing or not self._last_seen_uri:
            return False
        if (track := playback_state.track) is not None:
            if track.uri != self._last_seen_uri:
                return False
            remaining = playback_state.remaining_ms
            if remaining is not None and remaining > AUTOPLAY_STOPPED_WINDOW_MS:
                # paused halfway, not ended
                return False
        last_index = self._state.index_of(self._last_seen_uri)
        next_index = last_index + 1
        if last_index == -1 or next_index >= len(self._state.queue):
            return False
        next_item = self._state.queue[next_index]
        self.logger.debug("Track ended, playing next AI queue item %s", next_item.name)
        await provider.play_track(next_item.uri)
        self._last_seen_uri = next_item.uri
        self._state = replace(
            self._state,
            current_index=next_index,
            played_uris=self._state.played_uris | {next_item.uri},
        )
        if self._state.remaining_count <= AI_REFILL_THRESHOLD:
            self._start_refill()
        return True

    def _start_refill(self) -> None:
        if self._state.is_loading:
            return
        if self._refill_task is not None and not self._refill_task.done():
            return
        self._refill_task = self.engine.create_task(self._refill(), task_id=REFILL_TASK_ID)

    async def _refill(self) -> None:
        """Fetch another batch and append it to the (local and backend) queue."""
        try:
            batch = await self.fetch_next_batch()
        except AuthenticationFailure as err:
            self.logger.warning("Stopping AI queue: %s", err)
            self.stop()
            self._state = replace(self._state, error=str(err))
            return
        except Exception as err:
            self.logger.warning("Failed to fetch next batch: %s", err)
            return
        if not self._state.is_active:
            return
        self._state = replace(
            self._state,
            queue=self._state.queue + tuple(batch),
            played_uris=self._state.played_uris | {x.uri for x in batch},
        )
        self.logger.info("AI queue refilled with %s tracks", len(batch))
        provider = self.engine.providers.active()
        if ProviderFeature.NATIVE_QUEUE not in provider.supported_features:
            return
        for item in batch:
            try:
                await provider.add_to_queue(item.uri)
            except Exception as err:
                self.logger.warning("Failed to add %s to the backend queue: %s", item.name, err)
