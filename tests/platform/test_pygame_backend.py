from __future__ import annotations

import os
from pathlib import Path

import pytest

os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
pg = pytest.importorskip("pygame")

from pixelscope.core.models import (  # noqa: E402
    MouseEvent,
    Transform,
    pixels_to_image_data,
)
from pixelscope.platform.display.pygame_backend import (  # noqa: E402
    PygameDisplayBackend,
    PygameSurface,
)
from pixelscope.platform.input.pygame_input import PygameInputBackend  # noqa: E402
from pixelscope.render.canvas_service import CanvasService  # noqa: E402
from pixelscope.ui.store import CanvasStore  # noqa: E402

RED = (255, 0, 0, 255)
HALF = (0, 0, 255, 128)


def test_put_get_exact_including_alpha() -> None:
    s = PygameSurface(2, 1)
    img = pixels_to_image_data([[RED, HALF]])
    s.put_image_data(img, 0, 0)
    assert s.get_image_data(0, 0, 2, 1).data == img.data
    # overwrite replaces rather than blends
    s.put_image_data(pixels_to_image_data([[HALF]]), 0, 0)
    assert tuple(s.get_image_data(0, 0, 1, 1).data) == HALF


def test_canvas_service_round_trip_on_pygame() -> None:
    service = CanvasService(CanvasStore())
    s = PygameSurface()
    grid = [[(1, 2, 3, 255), (4, 5, 6, 255)], [(7, 8, 9, 255), (10, 11, 12, 255)]]
    service.render_pixel_grid(s, grid)
    assert service.extract_pixel_grid(s) == grid


def test_zoomed_draw_is_nearest() -> None:
    service = CanvasService(CanvasStore())
    s = PygameSurface(1, 1)
    s.set_transform(Transform(a=2, d=2))
    out = service.load_image_onto_surface(s, pixels_to_image_data([[RED]]))
    assert (s.width, s.height) == (2, 2)
    assert all(tuple(p) == RED for row in out for p in row)


def test_display_layout_and_present(tmp_path: Path) -> None:
    display = PygameDisplayBackend(size=(64, 32), gap_px=4)
    a = PygameSurface(10, 10)
    b = PygameSurface(5, 5)
    display.add_pane(a)
    display.add_pane(b)
    assert (a.offset_left, a.offset_top) == (4, 4)
    assert (b.offset_left, b.offset_top) == (18, 4)
    assert display.pane_at(5, 5) is a
    assert display.pane_at(19, 5) is b
    assert display.pane_at(0, 0) is None
    assert display.size() == (64, 32)

    a.put_image_data(pixels_to_image_data([[RED]]), 0, 0)
    display.present()
    out = tmp_path / "frame.png"
    display.save_png(str(out))
    assert out.exists()


def test_input_routes_events_to_panes() -> None:
    display = PygameDisplayBackend(size=(64, 32), gap_px=4)
    pane = PygameSurface(10, 10)
    display.add_pane(pane)
    inputs = PygameInputBackend(display)

    seen: list[MouseEvent] = []
    pane.add_event_listener("click", seen.append)
    pane.add_event_listener("mousemove", seen.append)

    pg.event.clear()
    pg.event.post(
        pg.event.Event(pg.MOUSEMOTION, pos=(6, 6), rel=(0, 0), buttons=(0, 0, 0))
    )
    pg.event.post(pg.event.Event(pg.MOUSEBUTTONUP, pos=(7, 8), button=1))
    pg.event.post(pg.event.Event(pg.MOUSEBUTTONUP, pos=(50, 30), button=1))
    pg.event.post(pg.event.Event(pg.KEYDOWN, key=pg.K_r, unicode="r", mod=0))
    assert inputs.dispatch_pending() == 2

    assert [(e.type, e.page_x, e.page_y) for e in seen] == [
        ("mousemove", 6, 6),
        ("click", 7, 8),
    ]
    assert inputs.take_keys() == ["r"]
    assert inputs.take_keys() == []
    assert not inputs.quit_requested

    pg.event.post(pg.event.Event(pg.KEYDOWN, key=pg.K_ESCAPE, unicode="", mod=0))
    inputs.dispatch_pending()
    assert inputs.quit_requested
