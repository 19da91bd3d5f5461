"""Helpers/utils for the YouTube music provider."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

from nonstop.errors import AuthenticationFailure

from .constants import TOKEN_URL

if TYPE_CHECKING:
    import aiohttp


async def get_google_token(
    http_session: aiohttp.ClientSession,
    client_id: str,
    refresh_token: str,
    client_secret: str | None = None,
) -> dict[str, Any]:
    """Refresh a Google (YouTube) access token using a refresh token.

    :param http_session: aiohttp client session.
    :param client_id: Google OAuth client ID.
    :param refresh_token: Google refresh token.
    :param client_secret: Google OAuth client secret (if the client has one).
    :return: Auth info dict with access_token, refresh_token, expires_at.
    :raises AuthenticationFailure: If token refresh fails.
    """
    params = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": client_id,
    }
    if client_secret:
        params["client_secret"] = client_secret
    async with http_session.post(TOKEN_URL, data=params) as response:
        if response.status != 200:
            err = await response.text()
            raise AuthenticationFailure(f"Failed to refresh YouTube access token: {err}")
        auth_info: dict[str, Any] = await response.json()
    auth_info["expires_at"] = int(auth_info["expires_in"] + time.time())
    auth_info.setdefault("refresh_token", refresh_token)
    return auth_info
