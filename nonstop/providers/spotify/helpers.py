"""Helpers/utils for the Spotify music provider."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from nonstop.errors import AuthenticationFailure

from .constants import TOKEN_URL

if TYPE_CHECKING:
    import aiohttp


async def get_spotify_token(
    http_session: aiohttp.ClientSession,
    client_id: str,
    refresh_token: str,
) -> dict[str, Any]:
    """Refresh Spotify access token using refresh token.

    :param http_session: aiohttp client session.
    :param client_id: Spotify client ID.
    :param refresh_token: Spotify refresh token.
    :return: Auth info dict with access_token, refresh_token, expires_at.
    :raises AuthenticationFailure: If token refresh fails.
    """
    params = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": client_id,
    }
    err = "Unknown error"
    for _ in range(2):
        async with http_session.post(TOKEN_URL, data=params) as response:
            if response.status != 200:
                err = await response.text()
                if "revoked" in err or "invalid_grant" in err:
                    raise AuthenticationFailure(f"Spotify token revoked: {err}")
                # the token failed to refresh, we allow one retry
                await asyncio.sleep(2)
                continue
            # if we reached this point, the token has been successfully refreshed
            auth_info: dict[str, Any] = await response.json()
            auth_info["expires_at"] = int(auth_info["expires_in"] + time.time())
            # spotify only returns a new refresh token if it was rotated
            auth_info.setdefault("refresh_token", refresh_token)
            return auth_info

    raise AuthenticationFailure(f"Failed to refresh Spotify access token: {err}")
