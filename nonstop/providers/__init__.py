"""Builtin (streaming) music providers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from nonstop.models.enums import ProviderTag

from . import spotify, youtube

if TYPE_CHECKING:
    from nonstop.controllers.providers import ProviderRegistry


def register_builtin_providers(registry: ProviderRegistry) -> None:
    """Register the factories of all builtin providers."""
    registry.register(ProviderTag.SPOTIFY, spotify.setup)
    registry.register(ProviderTag.YOUTUBE, youtube.setup)
