"""Helpers for creating/parsing backend-qualified track uri's."""

from __future__ import annotations

from nonstop.models.enums import ProviderTag

URI_PREFIXES = {
    ProviderTag.SPOTIFY: "spotify:track:",
    ProviderTag.YOUTUBE: "youtube:video:",
}


def create_uri(provider: ProviderTag | str, item_id: str) -> str:
    """Create a backend-qualified uri for the given item id."""
    return f"{URI_PREFIXES[ProviderTag(provider)]}{item_id}"


def parse_uri(uri: str) -> tuple[ProviderTag, str] | None:
    """Parse a backend-qualified uri into (provider, item_id), None if not recognized."""
    for provider, prefix in URI_PREFIXES.items():
        if uri.startswith(prefix) and len(uri) > len(prefix):
            return provider, uri.removeprefix(prefix)
    return None


def get_provider_from_uri(uri: str) -> ProviderTag | None:
    """Return the provider of the given uri, None if not recognized."""
    if parsed := parse_uri(uri):
        return parsed[0]
    return None


def get_item_id(uri: str) -> str:
    """Return the bare item id of a uri (or the input if it already is a bare id)."""
    if parsed := parse_uri(uri):
        return parsed[1]
    return uri
