"""
YouTube music provider implementation.

Search, video details and related videos come from the YouTube Data API (v3).
Playback happens in an embedded player owned by the UI, which is attached to
the provider as a YouTubePlayerBridge. YouTube has no playback history API for
embedded playback, so the recently played tracks are kept in memory.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import aiohttp

from nonstop.errors import (
    AuthenticationFailure,
    MediaNotFound,
    NonStopError,
    PlayerNotReady,
    TransientNetworkFailure,
)
from nonstop.helpers.json import json_loads
from nonstop.helpers.throttle_retry import ThrottlerManager, throttle_with_retries
from nonstop.helpers.uri import get_item_id
from nonstop.helpers.util import lock
from nonstop.models.enums import ProviderTag
from nonstop.models.media import PlaybackState
from nonstop.models.provider import MusicProvider

from .constants import (
    API_BASE_URL,
    CONF_CLIENT_ID,
    CONF_CLIENT_SECRET,
    CONF_REFRESH_TOKEN,
    MAX_RECENT_TRACKS,
    MUSIC_CATEGORY_ID,
    PLAYER_READY_POLL_INTERVAL,
    PLAYER_READY_TIMEOUT,
    SEEK_AFTER_LOAD_DELAY,
    TOKEN_EXPIRY_MARGIN,
)
from .helpers import get_google_token
from .parsers import get_video_id, parse_video, parse_videos

if TYPE_CHECKING:
    from nonstop.engine import PlaybackEngine
    from nonstop.models.enums import ProviderFeature
    from nonstop.models.media import Track


@dataclass(frozen=True)
class PlayerBridgeState:
    """State as reported by the embedded player."""

    is_playing: bool
    # position in seconds
    current_time: float


class YouTubePlayerBridge(Protocol):
    """Interface to the embedded YouTube player (supplied by the UI)."""

    def is_ready(self) -> bool:
        """Return if the player is ready to accept commands."""
        ...

    def get_state(self) -> PlayerBridgeState:
        """Return the current state of the player."""
        ...

    def load_video(self, video_id: str) -> None:
        """Load (and cue) the given video."""
        ...

    def play(self) -> None:
        """Start/resume playback."""
        ...

    def pause(self) -> None:
        """Pause playback."""
        ...

    def stop(self) -> None:
        """Stop playback."""
        ...

    def seek(self, seconds: float) -> None:
        """Seek to the given position (in seconds)."""
        ...

    def set_volume(self, volume_percent: int) -> None:
        """Set the volume (0..100)."""
        ...


class YouTubeProvider(MusicProvider):
    """Implementation of a YouTube (embedded playback) music provider."""

    domain = ProviderTag.YOUTUBE
    throttler: ThrottlerManager

    def __init__(self, engine: PlaybackEngine, supported_features: set[ProviderFeature]) -> None:
        """Initialize YouTubeProvider."""
        super().__init__(engine, supported_features)
        self.throttler = ThrottlerManager(rate_limit=10, period=1)
        self.player: YouTubePlayerBridge | None = None
        self.player_ready_timeout = PLAYER_READY_TIMEOUT
        self._auth_info: dict[str, Any] | None = None
        self._current_track: Track | None = None
        self._recently_played: list[Track] = []

    def set_player(self, player: YouTubePlayerBridge | None) -> None:
        """Attach (or detach) the embedded player."""
        self.player = player

    def set_credentials(
        self, client_id: str, refresh_token: str, client_secret: str | None = None
    ) -> None:
        """Store the credentials obtained by an (external) authorization flow."""
        self.engine.settings.set(f"{self.domain}/{CONF_CLIENT_ID}", client_id)
        self.engine.settings.set_secret(f"{self.domain}/{CONF_CLIENT_SECRET}", client_secret)
        self.engine.settings.set_secret(f"{self.domain}/{CONF_REFRESH_TOKEN}", refresh_token)
        self._auth_info = None

    async def is_authenticated(self) -> bool:
        """Return if the provider holds credentials."""
        client_id = self.engine.settings.get(f"{self.domain}/{CONF_CLIENT_ID}")
        refresh_token = self.engine.settings.get(f"{self.domain}/{CONF_REFRESH_TOKEN}")
        return bool(client_id and refresh_token)

    async def connect(self) -> None:
        """Log in to YouTube (refreshing the access token)."""
        await self.login()

    async def disconnect(self) -> None:
        """Forget the in-memory session and history."""
        self._auth_info = None
        self._current_track = None
        self._recently_played = []
        if self.player is not None:
            self.player.stop()

    async def get_current_track(self) -> Track | None:
        """Return the track loaded in the embedded player."""
        return self._current_track

    async def get_playback_state(self) -> PlaybackState | None:
        """Return the state of the embedded player (None if not ready)."""
        if self.player is None or not self.player.is_ready():
            return None
        state = self.player.get_state()
        return PlaybackState(
            is_playing=state.is_playing,
            progress_ms=int(state.current_time * 1000),
            track=self._current_track,
        )

    def play(self) -> None:
        """Resume playback (the video is already loaded by play_track)."""
        if self.player is not None:
            self.player.play()

    def pause(self) -> None:
        """Pause playback."""
        if self.player is not None:
            self.player.pause()

    def next_track(self) -> None:
        """Skip to the next track (handled by the playback/AI queue)."""
        self.logger.debug("next_track is not supported by the embedded player")

    def previous_track(self) -> None:
        """Skip to the previous track (not supported)."""
        self.logger.debug("previous_track is not supported by the embedded player")

    def seek(self, position_ms: int) -> None:
        """Seek to the given position (in milliseconds)."""
        if self.player is not None:
            self.player.seek(position_ms / 1000)

    def set_volume(self, volume_percent: int) -> None:
        """Set the playback volume (0..100)."""
        if self.player is not None:
            self.player.set_volume(max(0, min(100, volume_percent)))

    async def search_tracks(self, query: str, limit: int = 20) -> list[Track]:
        """Search for music videos."""
        if not query.strip():
            return []
        result = await self._get_data(
            "search",
            part="snippet",
            q=query,
            type="video",
            videoCategoryId=MUSIC_CATEGORY_ID,
            maxResults=limit,
        )
        return await self._get_videos([get_video_id(x) for x in result.get("items", [])])

    async def get_similar_tracks(self, track_id: str, limit: int = 25) -> list[Track]:
        """Return the videos related to the given video."""
        result = await self._get_data(
            "search",
            part="snippet",
            relatedToVideoId=get_item_id(track_id),
            type="video",
            videoCategoryId=MUSIC_CATEGORY_ID,
            maxResults=limit,
        )
        return await self._get_videos([get_video_id(x) for x in result.get("items", [])])

    async def get_track(self, video_id: str) -> Track:
        """Return the details of a single video."""
        if videos := await self._get_videos([video_id]):
            return videos[0]
        raise MediaNotFound(f"Video {video_id} not found")

    async def play_track(self, uri: str, start_position_ms: int | None = None) -> None:
        """Load the given video in the embedded player and start playback."""
        video_id = get_item_id(uri)
        player = await self._wait_for_player()
        player.load_video(video_id)
        if start_position_ms:
            # give the player a moment to load the video before seeking
            await asyncio.sleep(SEEK_AFTER_LOAD_DELAY)
            player.seek(start_position_ms / 1000)
        player.play()
        # details follow once the api answers
        self.update_current_track(parse_video({"id": video_id}))
        try:
            track = await self.get_track(video_id)
        except AuthenticationFailure:
            raise
        except NonStopError as err:
            self.logger.debug("No details found for video %s: %s", video_id, err)
            return
        self.update_current_track(track)

    async def add_to_queue(self, uri: str) -> None:
        """Play the track directly (the embedded player has no queue)."""
        self.logger.debug("Embedded player has no queue, playing %s directly", uri)
        await self.play_track(uri)

    async def get_recently_played(self, limit: int = 20) -> list[Track]:
        """Return the tracks played in this session (most recent first)."""
        return self._recently_played[:limit]

    def update_current_track(self, track: Track) -> None:
        """Set the current track (e.g. when the player reports a new video)."""
        self._current_track = track
        self._recently_played = [x for x in self._recently_played if x.id != track.id]
        self._recently_played.insert(0, track)
        del self._recently_played[MAX_RECENT_TRACKS:]

    @lock
    async def login(self, force_refresh: bool = False) -> dict[str, Any]:
        """Log-in YouTube and return Auth/token info."""
        if (
            not force_refresh
            and self._auth_info
            and (self._auth_info["expires_at"] > (time.time() + TOKEN_EXPIRY_MARGIN))
        ):
            return self._auth_info
        client_id = self.engine.settings.get(f"{self.domain}/{CONF_CLIENT_ID}")
        refresh_token = self.engine.settings.get_secret(f"{self.domain}/{CONF_REFRESH_TOKEN}")
        if not client_id or not refresh_token:
            raise AuthenticationFailure("YouTube authentication required")
        self._auth_info = await get_google_token(
            self.engine.http_session,
            client_id,
            refresh_token,
            self.engine.settings.get_secret(f"{self.domain}/{CONF_CLIENT_SECRET}"),
        )
        self.logger.debug("Successfully refreshed access token")
        return self._auth_info

    async def _wait_for_player(self) -> YouTubePlayerBridge:
        """Wait (a bit) for the embedded player to become ready."""
        deadline = time.monotonic() + self.player_ready_timeout
        while self.player is None or not self.player.is_ready():
            if time.monotonic() >= deadline:
                raise PlayerNotReady("YouTube player not ready after waiting")
            await asyncio.sleep(PLAYER_READY_POLL_INTERVAL)
        return self.player

    async def _get_videos(self, video_ids: list[str]) -> list[Track]:
        if not (video_ids := [x for x in video_ids if x]):
            return []
        result = await self._get_data(
            "videos", part="snippet,contentDetails", id=",".join(video_ids)
        )
        return parse_videos(result.get("items", []))

    @throttle_with_retries
    async def _get_data(self, endpoint: str, **kwargs: Any) -> dict[str, Any]:
        """Get data from api.

        :param endpoint: API endpoint to call.
        """
        url = f"{API_BASE_URL}/{endpoint}"
        auth_info = await self.login()
        headers = {"Authorization": f"Bearer {auth_info['access_token']}"}
        self.logger.debug("handling get data %s with kwargs %s", url, kwargs)
        async with self.engine.http_session.get(
            url,
            headers=headers,
            params=kwargs,
            timeout=aiohttp.ClientTimeout(total=60),
        ) as response:
            if response.status == 429:
                backoff_time = int(response.headers.get("Retry-After", 5))
                raise TransientNetworkFailure("YouTube Rate Limiter", backoff_time=backoff_time)
            if response.status in (502, 503):
                raise TransientNetworkFailure(backoff_time=30)
            # token expired, retry with a refreshed token
            if response.status == 401:
                self._auth_info = None
                raise TransientNetworkFailure("Token expired", backoff_time=1)
            if response.status == 403:
                raise AuthenticationFailure(f"Access to {endpoint} denied (or quota exceeded)")
            if response.status == 404:
                raise MediaNotFound(f"{endpoint} not found")
            response.raise_for_status()
            result: dict[str, Any] = await response.json(loads=json_loads)
            return result
