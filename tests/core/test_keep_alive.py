"""Tests for the session keep-alive controller."""

from dataclasses import replace
from typing import Any
from unittest.mock import AsyncMock

import pytest

from nonstop.controllers.keep_alive import KeepAliveController
from nonstop.engine import PlaybackEngine
from nonstop.errors import AuthenticationFailure, RecoveryFailed, TransientNetworkFailure
from nonstop.models.media import Device
from nonstop.models.state import KeepAliveState

PHONE = Device(id="phone", name="Phone", type="Smartphone")
LAPTOP = Device(id="laptop", name="Laptop", type="Computer")
SPEAKER = Device(id="speaker", name="Speaker", type="Speaker")


@pytest.fixture
def keep_alive(engine: PlaybackEngine) -> KeepAliveController:
    """Return the keep-alive controller, enabled without starting its ticker."""
    controller = engine.keep_alive
    controller.settle_delay = 0
    controller._state = replace(controller._state, enabled=True)
    return controller


def transfer_activates(provider: Any) -> AsyncMock:
    """Return a transfer_playback mock that activates the target device."""

    async def _transfer(device_id: str, play: bool = False) -> None:
        provider.transfers.append((device_id, play))
        provider.active_device = next(x for x in provider.devices if x.id == device_id)

    return AsyncMock(side_effect=_transfer)


async def test_healthy_session(keep_alive: KeepAliveController, native_provider: Any) -> None:
    """Test a reported session device is recorded as last known good."""
    native_provider.active_device = PHONE
    keep_alive._state = replace(keep_alive._state, consecutive_failures=7)

    await keep_alive._monitor_tick()

    assert keep_alive.state.last_active_device_id == "phone"
    assert keep_alive.state.consecutive_failures == 0
    assert keep_alive.state.last_successful_ping > 0


async def test_active_device_from_list(
    keep_alive: KeepAliveController, native_provider: Any
) -> None:
    """Test a device flagged active in the device list is adopted."""
    native_provider.devices = [PHONE, replace(SPEAKER, is_active=True)]
    keep_alive._state = replace(keep_alive._state, consecutive_failures=2)

    await keep_alive._monitor_tick()

    assert keep_alive.state.last_active_device_id == "speaker"
    assert keep_alive.state.consecutive_failures == 0
    assert native_provider.transfers == []


async def test_recovery_on_third_failed_tick(
    keep_alive: KeepAliveController, native_provider: Any
) -> None:
    """Test recovery is attempted on the third tick without an active device."""
    native_provider.devices = [PHONE, LAPTOP]
    native_provider.transfer_playback = transfer_activates(native_provider)
    keep_alive._state = replace(keep_alive._state, last_active_device_id="phone")

    await keep_alive._monitor_tick()
    await keep_alive._monitor_tick()
    assert keep_alive.state.consecutive_failures == 2
    assert native_provider.transfers == []

    await keep_alive._monitor_tick()

    assert native_provider.transfers == [("phone", False)]
    assert keep_alive.state.consecutive_failures == 0
    assert keep_alive.state.last_active_device_id == "phone"


async def test_failed_recovery_keeps_counter(
    keep_alive: KeepAliveController, native_provider: Any
) -> None:
    """Test the failure counter stays elevated when recovery did not help."""
    native_provider.devices = [SPEAKER, LAPTOP]
    keep_alive._state = replace(keep_alive._state, consecutive_failures=2)

    await keep_alive._monitor_tick()

    # transfer did not result in an active session
    assert native_provider.transfers == [("laptop", False)]
    assert keep_alive.state.consecutive_failures == 3


async def test_no_devices_to_recover(
    keep_alive: KeepAliveController, native_provider: Any, caplog: pytest.LogCaptureFixture
) -> None:
    """Test recovery without any devices is logged."""
    keep_alive._state = replace(keep_alive._state, consecutive_failures=2)

    await keep_alive._monitor_tick()

    assert native_provider.transfers == []
    assert keep_alive.state.consecutive_failures == 3
    assert "No playback devices available" in caplog.text


async def test_errors_count_as_failures(
    keep_alive: KeepAliveController, native_provider: Any
) -> None:
    """Test errors while checking count towards recovery."""
    native_provider.devices = [SPEAKER]
    native_provider.get_active_device = AsyncMock(side_effect=TransientNetworkFailure("down"))

    await keep_alive._monitor_tick()
    await keep_alive._monitor_tick()
    assert native_provider.transfers == []

    await keep_alive._monitor_tick()

    assert keep_alive.state.consecutive_failures == 3
    assert native_provider.transfers == [("speaker", False)]


async def test_select_recovery_target(engine: PlaybackEngine) -> None:
    """Test the recovery target preference order."""
    keep_alive = KeepAliveController(engine)

    keep_alive._state = KeepAliveState(last_active_device_id="speaker")
    assert keep_alive.select_recovery_target([PHONE, LAPTOP, SPEAKER]) == SPEAKER

    keep_alive._state = KeepAliveState(last_active_device_id="gone")
    assert keep_alive.select_recovery_target([PHONE, LAPTOP, SPEAKER]) == LAPTOP
    assert keep_alive.select_recovery_target([SPEAKER, PHONE]) == SPEAKER

    with pytest.raises(RecoveryFailed):
        keep_alive.select_recovery_target([])


async def test_authentication_failure_disables(
    keep_alive: KeepAliveController, native_provider: Any
) -> None:
    """Test an authentication failure disables the keep-alive."""
    native_provider.get_active_device = AsyncMock(side_effect=AuthenticationFailure("denied"))

    await keep_alive._monitor_tick()

    assert not keep_alive.state.enabled
    assert not keep_alive._monitor.running
    assert keep_alive.engine.settings.get("keep_alive_enabled") is False


async def test_tick_ignores_providers_without_devices(
    keep_alive: KeepAliveController, embedded_provider: Any
) -> None:
    """Test providers without device semantics are never checked."""
    embedded_provider.get_active_device = AsyncMock()

    await keep_alive._monitor_tick()

    embedded_provider.get_active_device.assert_not_called()
    assert keep_alive.state.consecutive_failures == 0


async def test_enable_disable(engine: PlaybackEngine, native_provider: Any) -> None:
    """Test enabling checks right away and both calls are idempotent."""
    keep_alive = engine.keep_alive
    native_provider.active_device = PHONE

    keep_alive.enable()
    keep_alive.enable()
    assert keep_alive.state.enabled
    assert keep_alive._monitor.running
    assert engine.settings.get("keep_alive_enabled") is True

    keep_alive.disable()
    state = keep_alive.state
    keep_alive.disable()
    assert keep_alive.state is state
    assert not keep_alive.state.enabled
    assert not keep_alive._monitor.running
    assert engine.settings.get("keep_alive_enabled") is False


async def test_ensure_active_device(engine: PlaybackEngine, native_provider: Any) -> None:
    """Test an active device is ensured by transferring playback."""
    keep_alive = engine.keep_alive
    keep_alive.settle_delay = 0
    native_provider.devices = [PHONE, LAPTOP]

    assert await keep_alive.ensure_active_device() is True
    assert native_provider.transfers == [("laptop", False)]
    assert keep_alive.state.last_active_device_id == "laptop"

    native_provider.devices = []
    assert await keep_alive.ensure_active_device() is False

    native_provider.active_device = PHONE
    assert await keep_alive.ensure_active_device() is True
    assert keep_alive.state.last_active_device_id == "phone"


async def test_ensure_active_device_never_raises(
    engine: PlaybackEngine, native_provider: Any
) -> None:
    """Test errors while ensuring a device are reported as False."""
    native_provider.get_active_device = AsyncMock(side_effect=RuntimeError("boom"))

    assert await engine.keep_alive.ensure_active_device() is False
    assert await engine.keep_alive.recover_and_play() is False
    assert native_provider.play_calls == 0


async def test_recover_and_play(engine: PlaybackEngine, native_provider: Any) -> None:
    """Test playback is resumed after ensuring an active device."""
    native_provider.active_device = PHONE

    assert await engine.keep_alive.recover_and_play() is True
    assert native_provider.play_calls == 1


async def test_without_device_semantics(engine: PlaybackEngine, embedded_provider: Any) -> None:
    """Test providers without devices always report success."""
    assert await engine.keep_alive.ensure_active_device() is True
    assert await engine.keep_alive.recover_and_play() is True
    assert embedded_provider.play_calls == 0
