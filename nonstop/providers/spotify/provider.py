"""Spotify music provider implementation (Spotify Web API)."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import aiohttp

from nonstop.errors import (
    AuthenticationFailure,
    MediaNotFound,
    TransientNetworkFailure,
)
from nonstop.helpers.json import json_loads
from nonstop.helpers.throttle_retry import ThrottlerManager, throttle_with_retries
from nonstop.helpers.util import lock
from nonstop.models.enums import ProviderTag
from nonstop.models.media import PlaybackState
from nonstop.models.provider import MusicProvider

from .constants import (
    API_BASE_URL,
    CONF_CLIENT_ID,
    CONF_REFRESH_TOKEN,
    MAX_RECENTLY_PLAYED,
    TOKEN_EXPIRY_MARGIN,
)
from .helpers import get_spotify_token
from .parsers import parse_artist_profile, parse_device, parse_tracks

if TYPE_CHECKING:
    from collections.abc import Coroutine

    from nonstop.engine import PlaybackEngine
    from nonstop.models.enums import ProviderFeature
    from nonstop.models.media import ArtistProfile, Device, Track


class SpotifyProvider(MusicProvider):
    """Implementation of a Spotify (remote playback) music provider."""

    domain = ProviderTag.SPOTIFY
    throttler: ThrottlerManager

    def __init__(self, engine: PlaybackEngine, supported_features: set[ProviderFeature]) -> None:
        """Initialize SpotifyProvider."""
        super().__init__(engine, supported_features)
        self.throttler = ThrottlerManager(rate_limit=45, period=30)
        self._auth_info: dict[str, Any] | None = None
        self._sp_user: dict[str, Any] | None = None

    @property
    def client_id(self) -> str | None:
        """Return the (configured) Spotify client ID."""
        return self.engine.settings.get(f"{self.domain}/{CONF_CLIENT_ID}")

    @property
    def refresh_token(self) -> str | None:
        """Return the (decrypted) refresh token."""
        return self.engine.settings.get_secret(f"{self.domain}/{CONF_REFRESH_TOKEN}")

    def set_credentials(self, client_id: str, refresh_token: str) -> None:
        """Store the credentials obtained by an (external) authorization flow."""
        self.engine.settings.set(f"{self.domain}/{CONF_CLIENT_ID}", client_id)
        self.engine.settings.set_secret(f"{self.domain}/{CONF_REFRESH_TOKEN}", refresh_token)
        self._auth_info = None

    async def is_authenticated(self) -> bool:
        """Return if the provider holds (usable) credentials."""
        if self._auth_info and self._auth_info["expires_at"] > time.time():
            return True
        if not self.client_id or not self.refresh_token:
            return False
        try:
            await self.login()
        except AuthenticationFailure:
            return False
        return True

    async def connect(self) -> None:
        """Log in to Spotify (refreshing the access token)."""
        await self.login()
        if not self._sp_user:
            self._sp_user = userinfo = await self._get_data("me")
            self.logger.info("Successfully logged in to Spotify as %s", userinfo["display_name"])

    async def disconnect(self) -> None:
        """Forget the in-memory session."""
        self._auth_info = None
        self._sp_user = None

    async def get_playback_state(self) -> PlaybackState | None:
        """Return the current playback state (None if there is no playback session)."""
        if not (data := await self._get_data("me/player")):
            return None
        tracks = parse_tracks([data.get("item")])
        return PlaybackState(
            is_playing=bool(data.get("is_playing")),
            progress_ms=data.get("progress_ms") or 0,
            track=tracks[0] if tracks else None,
        )

    def play(self) -> None:
        """Resume playback."""
        self._fire_and_forget(self._put_data("me/player/play"), "play")

    def pause(self) -> None:
        """Pause playback."""
        self._fire_and_forget(self._put_data("me/player/pause"), "pause")

    def next_track(self) -> None:
        """Skip to the next track."""
        self._fire_and_forget(self._post_data("me/player/next", want_result=False), "next")

    def previous_track(self) -> None:
        """Skip to the previous track."""
        self._fire_and_forget(
            self._post_data("me/player/previous", want_result=False), "previous"
        )

    def seek(self, position_ms: int) -> None:
        """Seek to the given position (in milliseconds)."""
        self._fire_and_forget(self._put_data("me/player/seek", position_ms=position_ms), "seek")

    def set_volume(self, volume_percent: int) -> None:
        """Set the playback volume (0..100)."""
        volume_percent = max(0, min(100, volume_percent))
        self._fire_and_forget(
            self._put_data("me/player/volume", volume_percent=volume_percent), "volume"
        )

    async def search_tracks(self, query: str, limit: int = 20) -> list[Track]:
        """Perform a track search on Spotify."""
        if not query.strip():
            return []
        result = await self._get_data("search", q=query, type="track", limit=limit)
        return parse_tracks(result.get("tracks", {}).get("items", []))

    async def play_track(self, uri: str, start_position_ms: int | None = None) -> None:
        """Start playback of a single track."""
        data: dict[str, Any] = {"uris": [uri]}
        if start_position_ms:
            data["position_ms"] = start_position_ms
        await self._put_data("me/player/play", data)

    async def play_tracks(self, uris: list[str]) -> None:
        """Start playback of a list of tracks (the remainder forms the queue)."""
        if uris:
            await self._put_data("me/player/play", {"uris": uris})

    async def add_to_queue(self, uri: str) -> None:
        """Add a track to the Spotify queue."""
        await self._post_data("me/player/queue", want_result=False, uri=uri)

    async def get_recently_played(self, limit: int = 20) -> list[Track]:
        """Return the most recently played tracks."""
        result = await self._get_data(
            "me/player/recently-played", limit=min(limit, MAX_RECENTLY_PLAYED)
        )
        return parse_tracks([item.get("track") for item in result.get("items", [])])

    async def get_queue(self) -> list[Track]:
        """Return the upcoming tracks of the Spotify queue."""
        result = await self._get_data("me/player/queue")
        return parse_tracks(result.get("queue", []))

    async def get_similar_tracks(self, track_id: str, limit: int = 25) -> list[Track]:
        """Retrieve a dynamic list of tracks based on the provided (seed) track."""
        result = await self._get_data("recommendations", seed_tracks=track_id, limit=limit)
        return parse_tracks(result.get("tracks", []))

    async def get_top_artists(self, limit: int = 10) -> list[ArtistProfile]:
        """Return the short term top artists of the user."""
        result = await self._get_data("me/top/artists", time_range="short_term", limit=limit)
        return [parse_artist_profile(item) for item in result.get("items", []) if item.get("id")]

    async def get_devices(self) -> list[Device]:
        """Return all Spotify Connect devices of the user."""
        result = await self._get_data("me/player/devices")
        return [parse_device(item) for item in result.get("devices", []) if item.get("id")]

    async def get_active_device(self) -> Device | None:
        """Return the device of the current playback session."""
        if not (data := await self._get_data("me/player")):
            return None
        if (device_obj := data.get("device")) and device_obj.get("id"):
            return parse_device(device_obj)
        return None

    async def transfer_playback(self, device_id: str, play: bool = False) -> None:
        """Transfer the playback session to the given device."""
        await self._put_data("me/player", {"device_ids": [device_id], "play": play})

    @lock
    async def login(self, force_refresh: bool = False) -> dict[str, Any]:
        """Log-in Spotify and return Auth/token info."""
        # return existing token if we have one in memory
        if (
            not force_refresh
            and self._auth_info
            and (self._auth_info["expires_at"] > (time.time() + TOKEN_EXPIRY_MARGIN))
        ):
            return self._auth_info
        client_id = self.client_id
        refresh_token = self.refresh_token
        if not client_id or not refresh_token:
            raise AuthenticationFailure("Spotify authentication required")
        try:
            auth_info = await get_spotify_token(self.engine.http_session, client_id, refresh_token)
        except AuthenticationFailure as err:
            if "revoked" in str(err):
                # clear refresh token if it's invalid
                self.engine.settings.set_secret(f"{self.domain}/{CONF_REFRESH_TOKEN}", None)
            raise
        self.logger.debug("Successfully refreshed access token")
        # make sure that our updated creds get stored in memory + settings
        self._auth_info = auth_info
        if auth_info["refresh_token"] != refresh_token:
            self.engine.settings.set_secret(
                f"{self.domain}/{CONF_REFRESH_TOKEN}", auth_info["refresh_token"]
            )
        return auth_info

    def _fire_and_forget(self, coro: Coroutine[Any, Any, Any], action: str) -> None:
        self.engine.create_task(coro, task_id=f"{self.domain}_{action}", abort_existing=True)

    async def _get_headers(self) -> dict[str, str]:
        auth_info = await self.login()
        return {"Authorization": f"Bearer {auth_info['access_token']}"}

    def _handle_status(self, response: aiohttp.ClientResponse, endpoint: str) -> None:
        """Translate (error) status codes into NonStop errors."""
        # handle spotify rate limiter
        if response.status == 429:
            backoff_time = int(response.headers.get("Retry-After", 5))
            raise TransientNetworkFailure("Spotify Rate Limiter", backoff_time=backoff_time)
        # handle temporary server error
        if response.status in (502, 503):
            raise TransientNetworkFailure(backoff_time=30)
        # handle token expired, raise TransientNetworkFailure
        # so it will be retried (and the token refreshed)
        if response.status == 401:
            self._auth_info = None
            raise TransientNetworkFailure("Token expired", backoff_time=1)
        if response.status == 403:
            raise AuthenticationFailure(f"Access to {endpoint} denied")
        # handle 404 not found, convert to MediaNotFound
        if response.status in (400, 404):
            raise MediaNotFound(f"{endpoint} not found")
        response.raise_for_status()

    @throttle_with_retries
    async def _get_data(self, endpoint: str, **kwargs: Any) -> dict[str, Any]:
        """Get data from api.

        :param endpoint: API endpoint to call.
        """
        url = f"{API_BASE_URL}/{endpoint}"
        kwargs["market"] = "from_token"
        headers = await self._get_headers()
        self.logger.debug("handling get data %s with kwargs %s", url, kwargs)
        async with self.engine.http_session.get(
            url,
            headers=headers,
            params=kwargs,
            timeout=aiohttp.ClientTimeout(total=120),
        ) as response:
            self._handle_status(response, endpoint)
            if response.status == 204:
                # no content (e.g. no active playback session)
                return {}
            result: dict[str, Any] = await response.json(loads=json_loads)
            return result

    @throttle_with_retries
    async def _put_data(self, endpoint: str, data: Any = None, **kwargs: Any) -> None:
        """Put data on api."""
        url = f"{API_BASE_URL}/{endpoint}"
        headers = await self._get_headers()
        async with self.engine.http_session.put(
            url, headers=headers, params=kwargs, json=data
        ) as response:
            self._handle_status(response, endpoint)

    @throttle_with_retries
    async def _post_data(
        self, endpoint: str, data: Any = None, want_result: bool = True, **kwargs: Any
    ) -> dict[str, Any]:
        """Post data on api."""
        url = f"{API_BASE_URL}/{endpoint}"
        headers = await self._get_headers()
        async with self.engine.http_session.post(
            url, headers=headers, params=kwargs, json=data
        ) as response:
            self._handle_status(response, endpoint)
            if not want_result or response.status == 204:
                return {}
            result: dict[str, Any] = await response.json(loads=json_loads)
            return result
