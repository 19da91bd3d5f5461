"""Constants for the YouTube provider."""

from __future__ import annotations

# Settings keys (relative to the provider domain)
CONF_CLIENT_ID = "client_id"
CONF_CLIENT_SECRET = "client_secret"
CONF_REFRESH_TOKEN = "refresh_token"

API_BASE_URL = "https://www.googleapis.com/youtube/v3"
TOKEN_URL = "https://oauth2.googleapis.com/token"

# youtube category id for music videos
MUSIC_CATEGORY_ID = "10"
MAX_RECENT_TRACKS = 50
# refresh the access token if it expires within this many seconds
TOKEN_EXPIRY_MARGIN = 60
# how long to wait for the embedded player to become ready
PLAYER_READY_TIMEOUT = 5.0
PLAYER_READY_POLL_INTERVAL = 0.1
# delay between loading a video and seeking in it
SEEK_AFTER_LOAD_DELAY = 0.5
