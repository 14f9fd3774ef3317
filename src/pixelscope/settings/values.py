"""Centralized value sets loaded from YAML.

The master source is ``values.yml`` in this package. Each section is
merged over hard-coded defaults key by key, so a partial or missing file
still yields a complete configuration. Malformed entries are logged and
skipped.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Sequence

import yaml

logger = logging.getLogger(__name__)

_PKG_DIR = Path(__file__).parent
_YAML_PATH = _PKG_DIR / "values.yml"

_DEFAULT_SLIDER: Dict[str, float] = {
    "min": 1.0,
    "max": 10.0,
    "step": 1.0,
    "multiplier_min": 0.01,
    "multiplier_max": 100.0,
}
_DEFAULT_HIT_TESTING: Dict[str, int] = {"move_queue_size": 64}
_DEFAULT_ALPHA_FORMATS = ["raw", "unit"]
_DEFAULT_THEME: Dict[str, Any] = {"colors": {"window_bg": [32, 32, 32, 255]}}
_DEFAULT_VIEWER: Dict[str, Any] = {
    "window_size": [1024, 640],
    "pane_gap_px": 8,
    "target_fps": 30.0,
}


def _numeric_update(target: Dict[str, Any], section: Any, name: str) -> None:
    if not isinstance(section, dict):
        return
    for k, v in section.items():
        if k not in target:
            logger.warning("values.yml: unknown key %s.%s", name, k)
            continue
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            logger.warning("values.yml: %s.%s must be numeric, got %r", name, k, v)
            continue
        target[k] = type(target[k])(v)


def load_values(path: Path = _YAML_PATH) -> Dict[str, Any]:
    """Return the merged value sets from *path* over the built-in defaults."""
    slider = dict(_DEFAULT_SLIDER)
    hit = dict(_DEFAULT_HIT_TESTING)
    alpha_formats = list(_DEFAULT_ALPHA_FORMATS)
    theme: Dict[str, Any] = {"colors": dict(_DEFAULT_THEME["colors"])}
    viewer = dict(_DEFAULT_VIEWER)

    raw: Dict[str, Any] = {}
    if path.exists():
        try:
            with path.open("r", encoding="utf-8") as f:
                loaded = yaml.safe_load(f) or {}
            if isinstance(loaded, dict):
                raw = loaded
        except yaml.YAMLError as e:
            logger.error("failed to parse %s: %s", path, e)

    _numeric_update(slider, raw.get("slider"), "slider")
    _numeric_update(hit, raw.get("hit_testing"), "hit_testing")

    css = raw.get("css_color")
    if isinstance(css, dict):
        fmts = css.get("alpha_formats")
        if isinstance(fmts, list) and fmts and all(isinstance(x, str) for x in fmts):
            alpha_formats = list(fmts)

    th = raw.get("theme")
    if isinstance(th, dict) and isinstance(th.get("colors"), dict):
        theme["colors"].update(th["colors"])

    vw = raw.get("viewer")
    if isinstance(vw, dict):
        size = vw.get("window_size")
        if isinstance(size, list) and len(size) == 2:
            viewer["window_size"] = [int(size[0]), int(size[1])]
        for k in ("pane_gap_px", "target_fps"):
            v = vw.get(k)
            if isinstance(v, (int, float)) and not isinstance(v, bool):
                viewer[k] = type(_DEFAULT_VIEWER[k])(v)

    return {
        "slider": slider,
        "hit_testing": hit,
        "alpha_formats": alpha_formats,
        "theme": theme,
        "viewer": viewer,
    }


_values = load_values()

# --- Public accessors ----------------------------------------------------
SLIDER_CONFIG: Dict[str, float] = dict(_values["slider"])
HIT_TESTING_CONFIG: Dict[str, int] = dict(_values["hit_testing"])
ALPHA_FORMATS: Sequence[str] = tuple(_values["alpha_formats"])
THEME: Dict[str, Any] = dict(_values["theme"])
VIEWER_CONFIG: Dict[str, Any] = dict(_values["viewer"])

__all__ = [
    "SLIDER_CONFIG",
    "HIT_TESTING_CONFIG",
    "ALPHA_FORMATS",
    "THEME",
    "VIEWER_CONFIG",
    "load_values",
]
