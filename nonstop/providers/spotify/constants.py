"""Constants for the Spotify provider."""

from __future__ import annotations

# Settings keys (relative to the provider domain)
CONF_CLIENT_ID = "client_id"
CONF_REFRESH_TOKEN = "refresh_token"

API_BASE_URL = "https://api.spotify.com/v1"
TOKEN_URL = "https://accounts.spotify.com/api/token"

# refresh the access token if it expires within this many seconds
TOKEN_EXPIRY_MARGIN = 600
MAX_RECENTLY_PLAYED = 50
