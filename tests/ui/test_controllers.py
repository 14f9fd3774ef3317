from __future__ import annotations

import asyncio

import pytest

from pixelscope.core.events import EventBus
from pixelscope.core.models import ImageData, Pixel, PixelGrid, pixels_to_image_data
from pixelscope.platform.display.memory_backend import MemorySurface
from pixelscope.render.canvas_service import CanvasService
from pixelscope.ui.controllers import DisplayController
from pixelscope.ui.store import AppStore, CanvasStore, KmeansImage


def _controller(
    bus: EventBus | None = None, multiplier: float = 1.0
) -> tuple[DisplayController, CanvasService, AppStore]:
    service = CanvasService(CanvasStore())
    app = AppStore(bus)
    ctrl = DisplayController(
        canvas=service, app_store=app, default_multiplier=multiplier
    )
    return ctrl, service, app


def _image(grid: PixelGrid) -> ImageData:
    return pixels_to_image_data(grid)


def test_zoom_is_slider_times_multiplier() -> None:
    ctrl, _, _ = _controller()
    assert ctrl.zoom == 1.0
    ctrl.on_slider_change(2)
    ctrl.on_slider_multiplier_change("3")
    assert ctrl.slider_value() == 6.0
    assert ctrl.zoom == 6.0


def test_default_multiplier_applies() -> None:
    ctrl, service, _ = _controller(multiplier=0.5)
    assert service.store.slider_multiplier() == 0.5
    assert ctrl.zoom == 0.5


def test_slider_is_clamped() -> None:
    ctrl, _, _ = _controller()
    ctrl.on_slider_change(100)
    assert ctrl.slider_raw_value() == 10.0
    ctrl.on_slider_change(-4)
    assert ctrl.slider_raw_value() == 1.0


@pytest.mark.parametrize("text", ["abc", "", "-1", "0", "nan", "inf"])
def test_bad_multiplier_text_is_ignored(text: str) -> None:
    ctrl, _, _ = _controller()
    ctrl.on_slider_multiplier_change("2")
    ctrl.on_slider_multiplier_change(text)
    assert ctrl.slider_multiplier() == 2.0


def test_format_slider_label() -> None:
    assert DisplayController.format_slider_label(1.5) == "150%"
    assert DisplayController.format_slider_label(1) == "100%"


def test_raw_image_renders_once_surface_bound(grid_2x2: PixelGrid) -> None:
    ctrl, service, app = _controller()
    assert ctrl.has_image_data() is False
    ctrl.load_raw_image(_image(grid_2x2), name="pic.png")
    assert ctrl.has_image_data() is True
    assert app.raw_image_file() == "pic.png"

    raw = MemorySurface()
    ctrl.on_raw_image_surface_ready(raw)
    assert service.store.context2d() is raw
    assert app.raw_image_surface() is raw
    assert service.extract_pixel_grid(raw) == grid_2x2


def test_surface_ready_ignores_none() -> None:
    ctrl, service, app = _controller()
    ctrl.on_raw_image_surface_ready(None)
    ctrl.on_kmeans_image_surface_ready(None)
    assert service.store.context2d() is None
    assert app.kmeans_image_surface() is None


def test_zoom_change_rerenders_raw(grid_2x2: PixelGrid) -> None:
    ctrl, service, _ = _controller()
    raw = MemorySurface()
    ctrl.on_raw_image_surface_ready(raw)
    ctrl.load_raw_image(_image(grid_2x2))
    ctrl.on_slider_change(3)
    assert (raw.width, raw.height) == (6, 6)
    grid = service.extract_pixel_grid(raw)
    assert grid[2][2] == grid_2x2[0][0]
    assert grid[5][5] == grid_2x2[1][1]
    # 1:1 again
    ctrl.on_slider_change(1)
    assert service.extract_pixel_grid(raw) == grid_2x2


def test_kmeans_image_renders_on_its_pane(grid_2x2: PixelGrid) -> None:
    ctrl, service, app = _controller()
    kmeans_surface = MemorySurface()
    ctrl.on_kmeans_image_surface_ready(kmeans_surface)
    app.kmeans_image.set(KmeansImage(labeled_colors=grid_2x2, k=4))
    assert service.extract_pixel_grid(kmeans_surface) == grid_2x2
    displayed = service.store.displayed_image()
    assert displayed is not None
    assert displayed.data == _image(grid_2x2).data

    ctrl.on_slider_change(2)
    assert (kmeans_surface.width, kmeans_surface.height) == (4, 4)


def test_kmeans_bound_after_result_renders(grid_2x2: PixelGrid) -> None:
    ctrl, service, app = _controller()
    app.kmeans_image.set(KmeansImage(labeled_colors=grid_2x2))
    kmeans_surface = MemorySurface()
    ctrl.on_kmeans_image_surface_ready(kmeans_surface)
    assert service.extract_pixel_grid(kmeans_surface) == grid_2x2


def test_empty_kmeans_grid_leaves_pane_alone() -> None:
    ctrl, service, app = _controller()
    pane = MemorySurface(3, 3)
    ctrl.on_kmeans_image_surface_ready(pane)
    app.kmeans_image.set(KmeansImage(labeled_colors=[]))
    assert (pane.width, pane.height) == (3, 3)
    assert service.store.displayed_image() is None


@pytest.mark.asyncio
async def test_reset_notification_restores_initial_state(grid_2x2: PixelGrid) -> None:
    bus = EventBus()
    ctrl, service, app = _controller(bus)
    store = service.store
    raw = MemorySurface()
    pane = MemorySurface()
    ctrl.on_raw_image_surface_ready(raw)
    ctrl.on_kmeans_image_surface_ready(pane)
    ctrl.load_raw_image(_image(grid_2x2), name="x.png")
    app.kmeans_image.set(KmeansImage(labeled_colors=[[Pixel(1, 1, 1, 255)]]))
    ctrl.on_slider_multiplier_change("3")
    ctrl.on_slider_change(2)
    streams = service.start_hit_testing(raw)

    task = asyncio.create_task(ctrl.run())
    app.request_reset("test")
    for _ in range(5):
        await asyncio.sleep(0)

    assert store.slider_multiplier() == 1.0
    assert store.slider_raw_value() == 1.0
    assert ctrl.zoom == 1.0
    assert store.displayed_image() is None
    assert store.raw_image() is None
    assert app.kmeans_image() is None
    assert app.raw_image_file() is None
    assert store.are_mouse_events_listening() is False
    assert streams.on_move.done
    assert raw.get_image_data(0, 0, raw.width, raw.height).data == bytearray(
        raw.width * raw.height * 4
    )

    await ctrl.stop()
    await asyncio.wait_for(task, 1.0)
    await bus.close()


@pytest.mark.asyncio
async def test_reset_after_bus_close_is_noop() -> None:
    bus = EventBus()
    _, _, app = _controller(bus)
    await bus.close()
    app.request_reset()
