"""Pygame InputBackend: mouse events to surface ``click``/``mousemove`` events.

In headless mode (dummy video) pygame may not deliver real input; tests
synthesize it with ``pygame.event.post``.
"""

from __future__ import annotations

from typing import Any, Generator

from pixelscope.core.models import MouseEvent
from pixelscope.platform.display.pygame_backend import PygameDisplayBackend

pg: Any = None
try:  # pragma: no cover - optional dependency in CI
    import pygame as _pg

    pg = _pg
except Exception:  # pragma: no cover
    pg = None


class PygameInputBackend:
    """Collects pygame events and routes them to the pane under the pointer.

    Call :meth:`dispatch_pending` once per frame. A left-button release
    becomes a ``click``; any motion becomes a ``mousemove``. Typed
    characters are queued on :attr:`keys`; ``quit_requested`` turns true on
    window close or Escape.
    """

    def __init__(self, display: PygameDisplayBackend) -> None:
        if pg is None:
            raise RuntimeError("pygame not available for input backend")
        self._display = display
        self.keys: list[str] = []
        self.quit_requested = False

    def pump(self) -> Generator[MouseEvent, None, None]:
        for ev in pg.event.get():
            ts = float(pg.time.get_ticks()) / 1000.0
            if ev.type == pg.QUIT:
                self.quit_requested = True
            elif ev.type == pg.KEYDOWN:
                if ev.key == pg.K_ESCAPE:
                    self.quit_requested = True
                elif getattr(ev, "unicode", ""):
                    self.keys.append(ev.unicode)
            elif ev.type == pg.MOUSEBUTTONUP and getattr(ev, "button", 1) == 1:
                yield MouseEvent("click", int(ev.pos[0]), int(ev.pos[1]), ts)
            elif ev.type == pg.MOUSEMOTION:
                yield MouseEvent("mousemove", int(ev.pos[0]), int(ev.pos[1]), ts)

    def dispatch_pending(self) -> int:
        """Pump events and dispatch each to the pane it falls on.

        Returns the number of events delivered to a surface.
        """
        delivered = 0
        for event in self.pump():
            pane = self._display.pane_at(event.page_x, event.page_y)
            if pane is None:
                continue
            pane.dispatch_event(event)
            delivered += 1
        return delivered

    def take_keys(self) -> list[str]:
        keys, self.keys = self.keys, []
        return keys
