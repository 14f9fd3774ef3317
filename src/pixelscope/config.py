"""Runtime configuration helpers.

Merges defaults from settings.values, the persisted Settings store and
optional CLI overrides into a single :class:`RuntimeConfig`, and offers a
small listener API so long-lived objects can react to settings changes.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .settings.schema import Settings
from .settings.store import SettingsStore
from .settings.values import THEME, VIEWER_CONFIG

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ViewerConfig:
    window_size: tuple[int, int] = (1024, 640)
    pane_gap_px: int = 8
    target_fps: float = 30.0
    zoom: float = 1.0
    multiplier: float = 1.0


@dataclass(slots=True)
class RuntimeConfig:
    viewer: ViewerConfig
    settings: Settings
    theme: dict[str, Any] = field(default_factory=dict)


def make_runtime_config(*, args: Optional[object] = None) -> RuntimeConfig:
    """Build a RuntimeConfig from values defaults, persisted settings and
    optional CLI overrides in *args* (argparse.Namespace-like).

    CLI values win for the current session but are never written back.
    """
    size = VIEWER_CONFIG.get("window_size", [1024, 640])
    viewer = ViewerConfig(
        window_size=(int(size[0]), int(size[1])),
        pane_gap_px=int(VIEWER_CONFIG.get("pane_gap_px", 8)),
        target_fps=float(VIEWER_CONFIG.get("target_fps", 30.0)),
    )
    settings = SettingsStore.load()
    viewer.multiplier = float(settings.default_multiplier)

    if args is not None:
        overrides: dict[str, Any] = {}
        a_alpha = getattr(args, "alpha", None)
        if a_alpha is not None:
            overrides["alpha_format"] = str(a_alpha)
        a_smooth = getattr(args, "smoothing", None)
        if a_smooth is not None:
            overrides["smoothing"] = bool(a_smooth)
        if overrides:
            # Validate through the model so CLI input gets the same checks.
            settings = Settings.model_validate(settings.model_dump() | overrides)
        a_zoom = getattr(args, "zoom", None)
        if a_zoom is not None:
            viewer.zoom = float(a_zoom)
        a_mult = getattr(args, "multiplier", None)
        if a_mult is not None:
            viewer.multiplier = float(a_mult)
        a_fps = getattr(args, "fps", None)
        if a_fps is not None:
            viewer.target_fps = float(a_fps)

    return RuntimeConfig(
        viewer=viewer,
        settings=settings,
        theme=dict(THEME) if isinstance(THEME, dict) else {},
    )


# Runtime singleton + listener API -------------------------------------
_RUNTIME: RuntimeConfig | None = None
_LISTENERS: list[Callable[[RuntimeConfig], None]] = []


def get_runtime() -> RuntimeConfig:
    """Return the current runtime config, creating a default if needed."""
    global _RUNTIME
    if _RUNTIME is None:
        _RUNTIME = make_runtime_config()
    return _RUNTIME


def set_runtime(rc: RuntimeConfig) -> None:
    global _RUNTIME
    _RUNTIME = rc


def register_listener(cb: Callable[[RuntimeConfig], None]) -> None:
    """Register a callback invoked with the RuntimeConfig after updates."""
    if cb not in _LISTENERS:
        _LISTENERS.append(cb)


def unregister_listener(cb: Callable[[RuntimeConfig], None]) -> None:
    if cb in _LISTENERS:
        _LISTENERS.remove(cb)


def update_from_settings(settings: Settings) -> None:
    """Swap in new persisted settings and notify listeners.

    Inside a running event loop the callbacks are deferred with
    ``call_soon``; otherwise they run immediately.
    """
    rc = get_runtime()
    rc.settings = settings
    try:
        loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
    except RuntimeError:
        loop = None

    for cb in list(_LISTENERS):
        if loop is not None:
            loop.call_soon(cb, rc)
        else:
            cb(rc)
