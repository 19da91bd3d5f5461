"""Logic to handle storage of persistent settings."""

from __future__ import annotations

import base64
import contextlib
import logging
import os
from typing import TYPE_CHECKING, Any
from uuid import uuid4

import aiofiles
from aiofiles.os import wrap
from cryptography.fernet import Fernet, InvalidToken

from nonstop.constants import (
    CONF_ACTIVE_AI_PROVIDER,
    CONF_AI_KEYS,
    CONF_AI_PROVIDERS,
    CONF_INSTALL_ID,
    DEFAULT_SAVE_DELAY,
    ENCRYPT_SUFFIX,
    LOGGER_NAME,
)
from nonstop.errors import ConfigurationError
from nonstop.helpers.json import JSON_DECODE_EXCEPTIONS, async_json_dumps, async_json_loads
from nonstop.models.enums import AIProviderType

if TYPE_CHECKING:
    import asyncio

    from nonstop.engine import PlaybackEngine

LOGGER = logging.getLogger(f"{LOGGER_NAME}.settings")

isfile = wrap(os.path.isfile)
remove = wrap(os.remove)
rename = wrap(os.rename)


class SettingsController:
    """Controller that handles storage of persistent settings."""

    _fernet: Fernet | None = None

    def __init__(self, engine: PlaybackEngine) -> None:
        """Initialize settings controller."""
        self.engine = engine
        self.initialized = False
        self._data: dict[str, Any] = {}
        self.filename = os.path.join(self.engine.storage_path, "settings.json")
        self._timer_handle: asyncio.TimerHandle | None = None

    async def setup(self) -> None:
        """Async initialize of controller."""
        await self._load()
        self.initialized = True
        # create default installation ID if needed (also used for encrypting secrets)
        self.set_default(CONF_INSTALL_ID, uuid4().hex)
        install_id: str = self.get(CONF_INSTALL_ID)
        assert install_id
        fernet_key = base64.urlsafe_b64encode(install_id.encode()[:32])
        self._fernet = Fernet(fernet_key)
        LOGGER.debug("Started.")

    async def close(self) -> None:
        """Handle logic on engine stop."""
        if not self._timer_handle:
            # no point in forcing a save when there are no changes pending
            return
        self._timer_handle.cancel()
        self._timer_handle = None
        await self._async_save()
        LOGGER.debug("Stopped.")

    def get(self, key: str, default: Any = None) -> Any:
        """Get value(s) for a specific key/path in persistent storage."""
        assert self.initialized, "Not yet (async) initialized"
        # we support a multi level hierarchy by providing the key as path,
        # with a slash (/) as splitter. Sort that out here.
        parent = self._data
        subkeys = key.split("/")
        for index, subkey in enumerate(subkeys):
            if index == (len(subkeys) - 1):
                value = parent.get(subkey, default)
                if value is None:
                    # replace None with default
                    return default
                return value
            if not isinstance(parent.get(subkey), dict):
                # requesting subkey from a non existing parent
                return default
            parent = parent[subkey]
        return default

    def set(self, key: str, value: Any) -> None:
        """Set value(s) for a specific key/path in persistent storage."""
        assert self.initialized, "Not yet (async) initialized"
        parent = self._data
        subkeys = key.split("/")
        for index, subkey in enumerate(subkeys):
            if index == (len(subkeys) - 1):
                parent[subkey] = value
            else:
                parent.setdefault(subkey, {})
                parent = parent[subkey]
        self.save()

    def set_default(self, key: str, default_value: Any) -> None:
        """Set default value(s) for a specific key/path in persistent storage."""
        assert self.initialized, "Not yet (async) initialized"
        cur_value = self.get(key, "__MISSING__")
        if cur_value == "__MISSING__":
            self.set(key, default_value)

    def remove(self, key: str) -> None:
        """Remove value(s) for a specific key/path in persistent storage."""
        assert self.initialized, "Not yet (async) initialized"
        parent = self._data
        subkeys = key.split("/")
        for index, subkey in enumerate(subkeys):
            if subkey not in parent:
                return
            if index == (len(subkeys) - 1):
                parent.pop(subkey)
            else:
                parent = parent[subkey]
        self.save()

    def get_secret(self, key: str) -> str | None:
        """Get (and decrypt) a secret value stored at the given key/path."""
        if not (value := self.get(key)):
            return None
        return self.decrypt_string(value)

    def set_secret(self, key: str, value: str | None) -> None:
        """Encrypt and store a secret value at the given key/path (None removes it)."""
        if value is None:
            self.remove(key)
            return
        self.set(key, self.encrypt_string(value))

    def get_active_ai_provider(self) -> AIProviderType:
        """
        Return the active (and enabled) AI provider.

        Raises ConfigurationError if no AI provider is configured.
        """
        active = self.get(CONF_ACTIVE_AI_PROVIDER)
        if not active:
            raise ConfigurationError("No AI provider configured")
        for provider_conf in self.get(CONF_AI_PROVIDERS, []):
            if provider_conf.get("provider") == active and provider_conf.get("enabled", False):
                return AIProviderType(active)
        raise ConfigurationError(f"AI provider {active} is not enabled")

    def get_ai_api_key(self, provider: AIProviderType | str) -> str | None:
        """Return the (decrypted) API key for the given AI provider."""
        return self.get_secret(f"{CONF_AI_KEYS}/{provider}")

    def set_ai_api_key(self, provider: AIProviderType | str, api_key: str | None) -> None:
        """Store (encrypted) the API key for the given AI provider."""
        self.set_secret(f"{CONF_AI_KEYS}/{provider}", api_key)

    def save(self, immediate: bool = False) -> None:
        """Schedule save of data to disk."""
        if self._timer_handle is not None:
            self._timer_handle.cancel()
            self._timer_handle = None

        if immediate:
            self.engine.create_task(self._async_save())
        else:
            # schedule the save for later
            self._timer_handle = self.engine.loop.call_later(
                DEFAULT_SAVE_DELAY, self.engine.create_task, self._async_save
            )

    def encrypt_string(self, str_value: str) -> str:
        """Encrypt a (secret)string with Fernet."""
        if str_value.startswith(ENCRYPT_SUFFIX):
            return str_value
        assert self._fernet is not None
        return ENCRYPT_SUFFIX + self._fernet.encrypt(str_value.encode()).decode()

    def decrypt_string(self, encrypted_str: str) -> str:
        """Decrypt a (secret)string with Fernet."""
        if not encrypted_str:
            return encrypted_str
        if not encrypted_str.startswith(ENCRYPT_SUFFIX):
            return encrypted_str
        assert self._fernet is not None
        try:
            return self._fernet.decrypt(encrypted_str.replace(ENCRYPT_SUFFIX, "").encode()).decode()
        except InvalidToken as err:
            msg = "Secret decryption failed"
            raise ConfigurationError(msg) from err

    async def _load(self) -> None:
        """Load data from persistent storage."""
        assert not self._data, "Already loaded"

        for filename in (self.filename, f"{self.filename}.backup"):
            try:
                async with aiofiles.open(filename, encoding="utf-8") as _file:
                    self._data = await async_json_loads(await _file.read())
                    LOGGER.debug("Loaded persistent settings from %s", filename)
                    return
            except FileNotFoundError:
                pass
            except JSON_DECODE_EXCEPTIONS:
                LOGGER.exception("Error while reading persistent storage file %s", filename)
        LOGGER.debug("Started with empty storage: No persistent storage file found.")

    async def _async_save(self) -> None:
        """Save persistent data to disk."""
        self._timer_handle = None
        filename_backup = f"{self.filename}.backup"
        # make backup before we write a new file
        if await isfile(self.filename):
            with contextlib.suppress(FileNotFoundError):
                await remove(filename_backup)
            await rename(self.filename, filename_backup)

        async with aiofiles.open(self.filename, "w", encoding="utf-8") as _file:
            await _file.write(await async_json_dumps(self._data, indent=True))
        LOGGER.debug("Saved data to persistent storage")
