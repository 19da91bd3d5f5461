"""
KeepAliveController: keeps the remote playback session of a backend alive.

Only applies to backends with (remote) playback devices. The session is checked
periodically; after a number of consecutive failed checks playback is transferred
to the most suitable known device to recover the session.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace
from typing import TYPE_CHECKING

from nonstop.constants import (
    CONF_KEEP_ALIVE_ENABLED,
    KEEP_ALIVE_INTERVAL,
    KEEP_ALIVE_MAX_FAILURES,
    KEEP_ALIVE_SETTLE_DELAY,
)
from nonstop.errors import AuthenticationFailure, RecoveryFailed
from nonstop.helpers.ticker import PeriodicTask
from nonstop.models.core_controller import CoreController
from nonstop.models.enums import ProviderFeature
from nonstop.models.state import KeepAliveState

if TYPE_CHECKING:
    from nonstop.engine import PlaybackEngine
    from nonstop.models.media import Device
    from nonstop.models.provider import MusicProvider


class KeepAliveController(CoreController):
    """Controller that monitors (and recovers) the remote playback session."""

    domain: str = "keep_alive"

    def __init__(self, engine: PlaybackEngine) -> None:
        """Initialize class."""
        super().__init__(engine)
        self._state = KeepAliveState()
        # time to wait for the backend to settle after a transfer of playback
        self.settle_delay: float = KEEP_ALIVE_SETTLE_DELAY
        self._monitor = PeriodicTask(
            engine, "keep_alive_monitor", KEEP_ALIVE_INTERVAL, self._monitor_tick, self.logger
        )

    async def setup(self) -> None:
        """Async initialize of module."""
        if self.engine.settings.get(CONF_KEEP_ALIVE_ENABLED, True):
            self.enable()

    async def close(self) -> None:
        """Cleanup on exit."""
        self._monitor.cancel()
        self._state = KeepAliveState()

    @property
    def state(self) -> KeepAliveState:
        """Return the current (immutable) keep-alive state."""
        return self._state

    def status(self) -> KeepAliveState:
        """Return the current (immutable) keep-alive state."""
        return self._state

    def enable(self) -> None:
        """Enable the keep-alive monitor (checks immediately, then periodically)."""
        if not self._state.enabled:
            self._state = replace(self._state, enabled=True)
            self._persist(True)
            self.logger.info("Keep-alive enabled")
        self._monitor.start(run_immediately=True)

    def disable(self) -> None:
        """Disable the keep-alive monitor."""
        self._monitor.cancel()
        if not self._state.enabled:
            return
        self._state = replace(self._state, enabled=False)
        self._persist(False)
        self.logger.info("Keep-alive disabled")

    def _persist(self, enabled: bool) -> None:
        if self.engine.settings.get(CONF_KEEP_ALIVE_ENABLED, True) != enabled:
            self.engine.settings.set(CONF_KEEP_ALIVE_ENABLED, enabled)

    def _mark_alive(self, device_id: str) -> None:
        self._state = replace(
            self._state,
            last_active_device_id=device_id,
            last_successful_ping=time.time(),
            consecutive_failures=0,
        )

    def _register_failure(self) -> int:
        failures = self._state.consecutive_failures + 1
        self._state = replace(self._state, consecutive_failures=failures)
        return failures

    async def _monitor_tick(self) -> None:
        if not self._state.enabled:
            return
        provider = self.engine.providers.active()
        if ProviderFeature.DEVICES not in provider.supported_features:
            return
        try:
            await self.check_health(provider)
        except AuthenticationFailure as err:
            self.logger.warning("Disabling keep-alive: %s", err)
            self.disable()

    async def check_health(self, provider: MusicProvider) -> None:
        """Check the playback session, recover it after too many failed checks."""
        try:
            if device := await provider.get_active_device():
                self._mark_alive(device.id)
                return
            devices = await provider.get_devices()
            if active_device := next((x for x in devices if x.is_active), None):
                self._mark_alive(active_device.id)
                return
            failures = self._register_failure()
            self.logger.debug("No active playback device (failures: %s)", failures)
            if failures >= KEEP_ALIVE_MAX_FAILURES:
                await self._attempt_recovery(provider, devices)
        except AuthenticationFailure:
            raise
        except Exception as err:
            failures = self._register_failure()
            self.logger.warning("Keep-alive check failed (failures: %s): %s", failures, err)
            if failures < KEEP_ALIVE_MAX_FAILURES:
                return
            try:
                devices = await provider.get_devices()
            except AuthenticationFailure:
                raise
            except Exception as devices_err:
                self.logger.warning("Unable to enumerate devices for recovery: %s", devices_err)
                return
            await self._attempt_recovery(provider, devices)

    def select_recovery_target(self, devices: list[Device]) -> Device:
        """
        Select the device to transfer playback to.

        Prefers the last known good device, then a desktop-class device and
        finally the first listed device. Raises RecoveryFailed if there are none.
        """
        last_device_id = self._state.last_active_device_id
        if target := next((x for x in devices if x.id == last_device_id), None):
            return target
        if target := next((x for x in devices if x.is_desktop), None):
            return target
        if devices:
            return devices[0]
        msg = "No playback devices available"
        raise RecoveryFailed(msg)

    async def _attempt_recovery(self, provider: MusicProvider, devices: list[Device]) -> bool:
        try:
            device = await self._recover(provider, devices)
        except AuthenticationFailure:
            raise
        except Exception as err:
            self.logger.warning("Unable to recover playback session: %s", err)
            return False
        self.logger.info("Recovered playback session on %s", device.name)
        return True

    async def _recover(self, provider: MusicProvider, devices: list[Device]) -> Device:
        target = self.select_recovery_target(devices)
        self.logger.debug("Transferring playback to %s", target.name)
        await provider.transfer_playback(target.id, play=False)
        await asyncio.sleep(self.settle_delay)
        if not (device := await provider.get_active_device()):
            msg = f"No active session after transfer to {target.name}"
            raise RecoveryFailed(msg)
        self._mark_alive(device.id)
        return device

    async def ensure_active_device(self) -> bool:
        """Make sure there is an active playback device (never raises)."""
        try:
            provider = self.engine.providers.active()
            if ProviderFeature.DEVICES not in provider.supported_features:
                return True
            if device := await provider.get_active_device():
                self._state = replace(self._state, last_active_device_id=device.id)
                return True
            if not (devices := await provider.get_devices()):
                return False
            target = self.select_recovery_target(devices)
            await provider.transfer_playback(target.id, play=False)
            await asyncio.sleep(self.settle_delay)
        except Exception as err:
            self.logger.warning("Failed to ensure an active device: %s", err)
            return False
        self._state = replace(self._state, last_active_device_id=target.id, consecutive_failures=0)
        return True

    async def recover_and_play(self) -> bool:
        """Make sure there is an active playback device and resume playback (never raises)."""
        if not await self.ensure_active_device():
            return False
        try:
            provider = self.engine.providers.active()
            if ProviderFeature.DEVICES not in provider.supported_features:
                return True
            provider.play()
        except Exception as err:
            self.logger.warning("Failed to resume playback after recovery: %s", err)
            return False
        return True
