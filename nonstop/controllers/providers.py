"""
ProviderRegistry: resolves the active streaming backend.

Providers are constructed lazily (once) from a registered factory and cached.
The active provider is determined by the persisted `active_music_provider` setting,
so a change of the active provider is picked up on the next call to `active()`.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING

from nonstop.constants import CONF_ACTIVE_MUSIC_PROVIDER, DEFAULT_MUSIC_PROVIDER
from nonstop.errors import UnknownProvider
from nonstop.models.core_controller import CoreController

if TYPE_CHECKING:
    from nonstop.engine import PlaybackEngine
    from nonstop.models.provider import MusicProvider

ProviderFactory = Callable[["PlaybackEngine"], "MusicProvider"]


class ProviderRegistry(CoreController):
    """Registry of the available (streaming) music providers."""

    domain: str = "providers"

    def __init__(self, engine: PlaybackEngine) -> None:
        """Initialize class."""
        super().__init__(engine)
        self._factories: dict[str, ProviderFactory] = {}
        self._instances: dict[str, MusicProvider] = {}
        self._active: tuple[str, MusicProvider] | None = None

    async def close(self) -> None:
        """Cleanup on exit."""
        for provider in list(self._instances.values()):
            await self._close_provider(provider)
        self.clear_cache()

    async def _close_provider(self, provider: MusicProvider) -> None:
        try:
            await provider.close()
        except Exception as err:
            self.logger.warning("Error while closing provider %s: %s", provider.domain, err)

    def register(self, tag: str, factory: ProviderFactory) -> None:
        """Register a factory for the given provider tag (replaces an existing one)."""
        self._factories[tag] = factory
        if existing := self._instances.pop(tag, None):
            self.logger.debug("Replaced factory for already constructed provider %s", existing)
            self.engine.create_task(self._close_provider(existing))
        if self._active and self._active[0] == tag:
            self._active = None

    def get(self, tag: str) -> MusicProvider:
        """
        Return the provider instance for the given tag (constructed once).

        Raises UnknownProvider if no factory is registered for the tag.
        """
        if provider := self._instances.get(tag):
            return provider
        if not (factory := self._factories.get(tag)):
            msg = f"Unknown music provider: {tag}"
            raise UnknownProvider(msg)
        provider = factory(self.engine)
        self._instances[tag] = provider
        self.logger.debug("Constructed provider %s", provider)
        return provider

    def active_tag(self) -> str:
        """Return the tag of the active provider (from the persisted preference)."""
        return str(self.engine.settings.get(CONF_ACTIVE_MUSIC_PROVIDER, DEFAULT_MUSIC_PROVIDER))

    def active(self) -> MusicProvider:
        """Return the active provider instance."""
        tag = self.active_tag()
        if self._active and self._active[0] == tag:
            return self._active[1]
        provider = self.get(tag)
        self._active = (tag, provider)
        return provider

    def set_active(self, tag: str) -> None:
        """Set (and persist) the active provider."""
        if not self.has(tag):
            msg = f"Unknown music provider: {tag}"
            raise UnknownProvider(msg)
        if tag == self.active_tag():
            return
        self.engine.settings.set(CONF_ACTIVE_MUSIC_PROVIDER, tag)
        self._active = None
        self.logger.info("Active music provider set to %s", tag)

    def registered(self) -> list[str]:
        """Return all registered provider tags."""
        return list(self._factories)

    def has(self, tag: str) -> bool:
        """Return if a factory is registered for the given tag."""
        return tag in self._factories

    async def is_authenticated(self, tag: str) -> bool:
        """Return if the given provider is authenticated (never raises)."""
        if not self.has(tag):
            return False
        try:
            return await self.get(tag).is_authenticated()
        except Exception as err:
            self.logger.debug("Unable to determine authentication state of %s: %s", tag, err)
            return False

    def clear_cache(self) -> None:
        """Forget all constructed provider instances."""
        self._instances = {}
        self._active = None
