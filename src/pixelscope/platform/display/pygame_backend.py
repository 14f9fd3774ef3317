"""Pygame-based surface and display backend with headless (offscreen) support.

Setting the environment variable SDL_VIDEODRIVER=dummy before importing
pygame keeps everything offscreen, which is what the tests do.

Example:
    import os
    os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
    from pixelscope.platform.display.pygame_backend import (
        PygameDisplayBackend,
        PygameSurface,
    )

    backend = PygameDisplayBackend(size=(640, 480))
    raw = PygameSurface(320, 240)
    backend.add_pane(raw)
    backend.present()
    backend.save_png("/tmp/frame.png")
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, List, Optional, Tuple

from PIL import Image

from pixelscope.core.models import ImageData
from pixelscope.render.codec import pil_to_image_data
from pixelscope.render.surface import BaseSurface

logger = logging.getLogger(__name__)

pg: Any = None
try:  # pragma: no cover - import guard for environments without SDL
    import pygame as _pg

    pg = _pg
except Exception:  # pragma: no cover
    pg = None


def _require_pygame() -> Any:
    local_pg = pg
    if local_pg is None:
        raise RuntimeError(
            "pygame is not available. "
            "Ensure it is installed and that SDL is configured."
        )
    return local_pg


def _to_pg_surface(image: ImageData) -> Any:
    local_pg = _require_pygame()
    return local_pg.image.frombytes(
        bytes(image.data), (image.width, image.height), "RGBA"
    )


class PygameSurface(BaseSurface):
    """Surface whose buffer is a per-pixel-alpha ``pygame.Surface``."""

    def __init__(
        self, width: int = 0, height: int = 0, *, offset: Tuple[int, int] = (0, 0)
    ) -> None:
        _require_pygame()
        self._surface: Any = None
        super().__init__(width, height, offset=offset)

    @property
    def pg_surface(self) -> Any:
        return self._surface

    def _reset_buffer(self, width: int, height: int) -> None:
        local_pg = _require_pygame()
        self._surface = local_pg.Surface((width, height), flags=local_pg.SRCALPHA)
        self._surface.fill((0, 0, 0, 0))

    def _read(self, x: int, y: int, w: int, h: int) -> ImageData:
        if w == 0 or h == 0:
            return ImageData.create(w, h)
        local_pg = _require_pygame()
        # Blitting onto a transparent surface would premultiply alpha, so go
        # through raw bytes and let Pillow do the (zero-padded) crop.
        raw = local_pg.image.tobytes(self._surface, "RGBA")
        full = Image.frombytes("RGBA", (self.width, self.height), raw)
        return pil_to_image_data(full.crop((x, y, x + w, y + h)))

    def _write(self, image: ImageData, x: int, y: int) -> None:
        local_pg = _require_pygame()
        rect = local_pg.Rect(x, y, image.width, image.height)
        # Zero the target then add: an exact copy with no alpha blending.
        self._surface.fill((0, 0, 0, 0), rect)
        self._surface.blit(
            _to_pg_surface(image), (x, y), special_flags=local_pg.BLEND_RGBA_ADD
        )

    def _draw(
        self, image: ImageData, x: int, y: int, w: int, h: int, smooth: bool
    ) -> None:
        local_pg = _require_pygame()
        src = _to_pg_surface(image)
        if (image.width, image.height) != (w, h):
            if smooth:
                src = local_pg.transform.smoothscale(src, (w, h))
            else:
                src = local_pg.transform.scale(src, (w, h))
        self._surface.blit(src, (x, y))


class PygameDisplayBackend:
    """Lays surfaces out as side-by-side panes and presents them.

    Each pane's ``offset_left``/``offset_top`` is set to where it is drawn so
    that page coordinates from input events translate back to surface pixels.
    """

    def __init__(
        self,
        size: Tuple[int, int] = (800, 600),
        *,
        create_window: bool = False,
        gap_px: int = 8,
        background: Tuple[int, int, int, int] = (32, 32, 32, 255),
    ) -> None:
        local_pg = _require_pygame()

        if os.environ.get("SDL_VIDEODRIVER") == "dummy":
            os.environ.setdefault("SDL_AUDIODRIVER", "dummy")

        if not local_pg.get_init():
            local_pg.init()

        self._width, self._height = int(size[0]), int(size[1])
        self._gap = int(gap_px)
        self._background = background
        self._panes: List[PygameSurface] = []
        self._window_surface = None
        if create_window and os.environ.get("SDL_VIDEODRIVER") != "dummy":
            try:
                self._window_surface = local_pg.display.set_mode(
                    (self._width, self._height)
                )
                local_pg.display.set_caption("PixelScope")
            except Exception:
                logger.warning(
                    "Window creation failed; falling back to offscreen. "
                    "Check SDL_VIDEODRIVER and display permissions."
                )
                self._window_surface = None

        self._frame = local_pg.Surface(
            (self._width, self._height), flags=local_pg.SRCALPHA
        )

    def size(self) -> Tuple[int, int]:
        return (self._width, self._height)

    @property
    def panes(self) -> List[PygameSurface]:
        return list(self._panes)

    def add_pane(self, surface: PygameSurface) -> None:
        if surface not in self._panes:
            self._panes.append(surface)
        self.layout()

    def layout(self) -> None:
        x = self._gap
        for s in self._panes:
            s.offset_left = x
            s.offset_top = self._gap
            x += s.width + self._gap

    def pane_at(self, page_x: int, page_y: int) -> Optional[PygameSurface]:
        for s in self._panes:
            if s.contains_page_point(page_x, page_y):
                return s
        return None

    def present(self) -> None:
        """Compose all panes into the frame and flip the window if any."""
        self.layout()
        self._frame.fill(self._background)
        for s in self._panes:
            self._frame.blit(s.pg_surface, (s.offset_left, s.offset_top))
        local_pg = pg
        if self._window_surface is not None and local_pg is not None:
            self._window_surface.blit(self._frame, (0, 0))
            local_pg.display.flip()

    def save_png(self, path: str) -> None:
        local_pg = _require_pygame()
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        local_pg.image.save(self._frame, path)
