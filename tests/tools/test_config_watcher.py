from __future__ import annotations

import asyncio

import pytest

from pixelscope import config
from pixelscope.config import RuntimeConfig
from pixelscope.core.events import EventBus, unpack
from pixelscope.settings.schema import Settings
from pixelscope.settings.store import SettingsStore
from pixelscope.tools.config_watcher import CFG_CHANGED_TOPIC, ConfigWatcher


@pytest.mark.asyncio
async def test_change_is_reloaded_and_published() -> None:
    bus = EventBus()
    sub = bus.subscribe(CFG_CHANGED_TOPIC)
    seen: list[str] = []

    def _listener(rc: RuntimeConfig) -> None:
        seen.append(rc.settings.alpha_format)

    config.register_listener(_listener)
    watcher = ConfigWatcher(bus, poll_interval_s=60)
    await watcher.run()
    try:
        assert watcher.check() is False
        SettingsStore.save(Settings(alpha_format="unit"))
        assert watcher.check() is True
        assert watcher.check() is False

        env = await asyncio.wait_for(sub.__anext__(), 1.0)
        assert unpack(env.payload)["alpha_format"] == "unit"
        await asyncio.sleep(0)
        assert seen == ["unit"]
        assert config.get_runtime().settings.alpha_format == "unit"
    finally:
        config.unregister_listener(_listener)
        await watcher.stop()
        await bus.close()


@pytest.mark.asyncio
async def test_poller_picks_up_changes() -> None:
    bus = EventBus()
    sub = bus.subscribe(CFG_CHANGED_TOPIC)
    watcher = ConfigWatcher(bus, poll_interval_s=0.02)
    await watcher.run()
    try:
        SettingsStore.save(Settings(smoothing=True))
        env = await asyncio.wait_for(sub.__anext__(), 2.0)
        assert unpack(env.payload)["smoothing"] is True
    finally:
        await watcher.stop()
        await bus.close()


def test_update_without_loop_calls_listeners_directly() -> None:
    got: list[bool] = []

    def _listener(rc: RuntimeConfig) -> None:
        got.append(rc.settings.smoothing)

    config.register_listener(_listener)
    config.register_listener(_listener)
    config.update_from_settings(Settings(smoothing=True))
    config.unregister_listener(_listener)
    config.update_from_settings(Settings())
    assert got == [True]


def test_poll_interval_must_be_positive() -> None:
    with pytest.raises(ValueError):
        ConfigWatcher(EventBus(), poll_interval_s=0)
