"""Settings file watcher.

Polls the settings file (default every 0.5s) and, whenever its mtime
changes, reloads it, pushes the result into :mod:`pixelscope.config` and
publishes ``cfg.changed`` on the event bus with the settings as payload.
"""

from __future__ import annotations

import asyncio
import logging
import os

from pixelscope import config as _config
from pixelscope.core.events import EventBus, pack
from pixelscope.settings.store import SettingsStore

logger = logging.getLogger(__name__)

CFG_CHANGED_TOPIC = "cfg.changed"


class ConfigWatcher:
    """Watches ``settings.json`` and republishes it when it changes."""

    def __init__(self, bus: EventBus, *, poll_interval_s: float = 0.5) -> None:
        if poll_interval_s <= 0:
            raise ValueError("poll_interval_s must be > 0")
        self._bus = bus
        self._path = SettingsStore.settings_path()
        self._poll_interval_s = float(poll_interval_s)
        self._last_mtime: float | None = None
        self._task: asyncio.Task[None] | None = None

    async def run(self) -> None:
        if self._task:
            return
        # Record the current state so only later edits count as changes.
        self._last_mtime = self._mtime()
        logger.info("Config watcher started path=%s", self._path)

        async def _poller() -> None:
            while True:
                await asyncio.sleep(self._poll_interval_s)
                self.check()

        self._task = asyncio.create_task(_poller(), name="config_watcher")

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Config watcher stopped")

    def _mtime(self) -> float | None:
        try:
            return os.path.getmtime(self._path)
        except OSError:
            return None

    def check(self) -> bool:
        """Reload and publish if the file changed; return whether it did."""
        mtime = self._mtime()
        if mtime is None or mtime == self._last_mtime:
            return False
        self._last_mtime = mtime
        settings = SettingsStore.load(self._path)
        _config.update_from_settings(settings)
        if not self._bus.closed:
            self._bus.publish_nowait(CFG_CHANGED_TOPIC, pack(settings.model_dump()))
        logger.info("settings reloaded from %s", self._path)
        return True
