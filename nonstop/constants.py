"""All constants for NonStop."""

from __future__ import annotations

import logging
from typing import Final

APPLICATION_NAME: Final = "NonStop"
LOGGER_NAME: Final = "nonstop"

# custom (more verbose) log level, used for chatty tick output
VERBOSE_LOG_LEVEL: Final = 5
logging.addLevelName(VERBOSE_LOG_LEVEL, "VERBOSE")

# settings keys
CONF_INSTALL_ID: Final = "install_id"
CONF_ACTIVE_MUSIC_PROVIDER: Final = "active_music_provider"
CONF_AUTOPLAY_ENABLED: Final = "autoplay_enabled"
CONF_KEEP_ALIVE_ENABLED: Final = "keep_alive_enabled"
CONF_AI_PROVIDERS: Final = "ai_providers"
CONF_ACTIVE_AI_PROVIDER: Final = "active_ai_provider"
CONF_AI_KEYS: Final = "ai_keys"

DEFAULT_MUSIC_PROVIDER: Final = "spotify"
DEFAULT_SAVE_DELAY: Final = 5
ENCRYPT_SUFFIX: Final = "_enc_"

# playback queue (local queue monitor for backends without a native queue)
PLAYBACK_QUEUE_MONITOR_INTERVAL: Final = 2

# autoplay
AUTOPLAY_INTERVAL: Final = 5
AUTOPLAY_WINDOW_MS: Final = 10_000
AUTOPLAY_STOPPED_WINDOW_MS: Final = 2_000
AUTOPLAY_CANDIDATE_LIMIT: Final = 10
AUTOPLAY_ENQUEUE_COUNT: Final = 5
AUTOPLAY_PENDING_LIMIT: Final = 50

# ai queue
AI_QUEUE_INTERVAL: Final = 3
AI_BATCH_SIZE: Final = 5
AI_RECENT_TRACKS_LIMIT: Final = 30
AI_RECENT_TRACKS_SAMPLE: Final = 15
AI_TOP_ARTISTS_LIMIT: Final = 10
AI_TASTE_CACHE_TTL: Final = 600
AI_REFILL_THRESHOLD: Final = 2
AI_FALLBACK_QUERIES: Final = ("popular tracks", "top hits", "trending music")
AI_FALLBACK_SEARCH_LIMIT: Final = 20

# keep-alive
KEEP_ALIVE_INTERVAL: Final = 120
KEEP_ALIVE_MAX_FAILURES: Final = 3
KEEP_ALIVE_SETTLE_DELAY: Final = 2
