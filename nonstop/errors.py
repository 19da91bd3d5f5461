"""Custom errors and exceptions."""

from __future__ import annotations


class NonStopError(Exception):
    """Custom Exception for all errors."""

    error_code = 0


class AuthenticationFailure(NonStopError):
    """Error raised when the backend rejects (or lacks) credentials."""

    error_code = 1


class TransientNetworkFailure(NonStopError):
    """Error thrown when a resource is temporarily unavailable (retry later)."""

    error_code = 2

    def __init__(self, *args: object, backoff_time: int = 0) -> None:
        """Initialize."""
        super().__init__(*args)
        self.backoff_time = backoff_time


class RetriesExhausted(NonStopError):
    """Error thrown when all retries of a throttled call failed."""

    error_code = 3


class MalformedSuggestion(NonStopError):
    """Error thrown when the suggestion model response holds no usable JSON array."""

    error_code = 4


class NoSuggestionsResolved(NonStopError):
    """Error thrown when no suggestion (nor fallback) resolved to a new playable track."""

    error_code = 5


class UnknownProvider(NonStopError):
    """Error thrown when a provider tag is requested that is not registered."""

    error_code = 6


class RecoveryFailed(NonStopError):
    """Error thrown when transferring playback to a known-good device failed."""

    error_code = 7


class UnsupportedFeature(NonStopError):
    """Error thrown when a provider does not support the requested feature."""

    error_code = 8


class MediaNotFound(NonStopError):
    """Error thrown when a media item is not found."""

    error_code = 9


class ConfigurationError(NonStopError):
    """Error thrown when a required setting is missing or invalid."""

    error_code = 10


class PlayerNotReady(NonStopError):
    """Error thrown when an embedded player is not (yet) available."""

    error_code = 11
