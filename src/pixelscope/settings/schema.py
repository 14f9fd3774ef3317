"""Pydantic model for user settings."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from .values import ALPHA_FORMATS, HIT_TESTING_CONFIG, SLIDER_CONFIG


class Settings(BaseModel):
    """Viewer settings persisted to disk.

    Parameters
    ----------
    alpha_format: How :meth:`CanvasService.to_css_color` writes alpha.
        ``raw`` keeps the 0..255 channel value, ``unit`` scales to 0..1.
    default_multiplier: Zoom multiplier applied on startup and after reset.
    decode_timeout_s: Upper bound for asynchronous image decoding. ``None``
        waits indefinitely.
    move_queue_size: Capacity of the mouse-move stream; the oldest event is
        dropped when a slow consumer lets it fill up.
    smoothing: Use bilinear scaling when the viewer zooms. Pixel inspection
        normally wants this off.
    """

    alpha_format: str = Field(default="raw")
    default_multiplier: float = Field(default=1.0)
    decode_timeout_s: float | None = Field(default=None)
    move_queue_size: int = Field(
        default=int(HIT_TESTING_CONFIG.get("move_queue_size", 64))
    )
    smoothing: bool = Field(default=False)

    @field_validator("alpha_format")
    @classmethod
    def _chk_alpha(cls, v: str) -> str:
        if v not in set(ALPHA_FORMATS):
            raise ValueError(
                "invalid alpha_format: must be one of " + ", ".join(ALPHA_FORMATS)
            )
        return v

    @field_validator("default_multiplier")
    @classmethod
    def _chk_multiplier(cls, v: float) -> float:
        lo = float(SLIDER_CONFIG.get("multiplier_min", 0.01))
        hi = float(SLIDER_CONFIG.get("multiplier_max", 100.0))
        if not lo <= v <= hi:
            raise ValueError(f"default_multiplier must be within [{lo}, {hi}]")
        return v

    @field_validator("decode_timeout_s")
    @classmethod
    def _chk_timeout(cls, v: float | None) -> float | None:
        if v is not None and v <= 0:
            raise ValueError("decode_timeout_s must be > 0 or null")
        return v

    @field_validator("move_queue_size")
    @classmethod
    def _chk_queue(cls, v: int) -> int:
        if v < 1:
            raise ValueError("move_queue_size must be >= 1")
        return v
