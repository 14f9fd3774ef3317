"""Persisted settings file.

``settings.json`` lives in ``$PIXELSCOPE_HOME`` (default ``~/.pixelscope``).
A missing file means defaults; an unreadable or invalid one is logged and
also yields defaults, so a bad edit never stops the viewer from starting.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from .schema import Settings

logger = logging.getLogger(__name__)

HOME_ENV = "PIXELSCOPE_HOME"
FILENAME = "settings.json"


class SettingsStore:
    @staticmethod
    def settings_path() -> Path:
        home = os.environ.get(HOME_ENV) or "~/.pixelscope"
        return Path(home).expanduser() / FILENAME

    @classmethod
    def load(cls, path: Optional[Path] = None) -> Settings:
        path = path or cls.settings_path()
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Settings()
        except OSError as e:
            logger.warning("cannot read settings %s: %s", path, e)
            return Settings()
        try:
            return Settings.model_validate(json.loads(text))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("ignoring invalid settings %s: %s", path, e)
            return Settings()

    @classmethod
    def save(cls, settings: Settings, path: Optional[Path] = None) -> Path:
        """Write *settings* via a temp file and rename; returns the path."""
        path = path or cls.settings_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        tmp.write_text(settings.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, path)
        return path

    @classmethod
    def update(cls, **changes: Any) -> Settings:
        """Merge *changes* into the stored settings, validate and persist.

        Raises ``pydantic.ValidationError`` and leaves the file untouched
        when a change is invalid.
        """
        current = cls.load()
        merged = Settings.model_validate(current.model_dump() | changes)
        cls.save(merged)
        logger.info("settings updated: %s", ", ".join(sorted(changes)))
        return merged
