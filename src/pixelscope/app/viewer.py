"""Pixel inspection viewer (application entrypoint).

Opens an image in a pygame window (or an in-memory surface with
``--headless``), reports the colour under the pointer, and optionally shows
a pre-computed k-means image in a second pane.

Keys in the window: ``+``/``-`` step the zoom slider, ``r`` resets,
Escape quits.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

from PIL import Image

from pixelscope.config import (
    RuntimeConfig,
    make_runtime_config,
    register_listener,
    set_runtime,
    unregister_listener,
)
from pixelscope.core.events import EventBus
from pixelscope.core.models import ImageData, Pixel, image_data_to_grid
from pixelscope.platform.display.memory_backend import MemorySurface
from pixelscope.render.canvas_service import CanvasService, MoveStream
from pixelscope.render.codec import pil_to_image_data
from pixelscope.render.surface import Surface
from pixelscope.settings.schema import Settings
from pixelscope.settings.store import SettingsStore
from pixelscope.settings.values import SLIDER_CONFIG, THEME
from pixelscope.tools.config_watcher import ConfigWatcher
from pixelscope.ui.controllers import DisplayController
from pixelscope.ui.store import AppStore, CanvasStore, KmeansImage

logger = logging.getLogger(__name__)


def load_image_file(path: str | Path) -> ImageData:
    """Read any Pillow-supported image file as an RGBA buffer."""
    with Image.open(path) as img:
        img.load()
        return pil_to_image_data(img)


def build_canvas_service(store: CanvasStore, settings: Settings) -> CanvasService:
    return CanvasService(
        store,
        alpha_format=settings.alpha_format,
        move_queue_size=settings.move_queue_size,
        decode_timeout_s=settings.decode_timeout_s,
        smoothing=settings.smoothing,
    )


def save_cli_settings(args: argparse.Namespace) -> Optional[Settings]:
    """Write the CLI's settings overrides to the settings file.

    Returns the stored settings, or ``None`` when no override was given.
    """
    changes: dict[str, object] = {}
    if getattr(args, "alpha", None) is not None:
        changes["alpha_format"] = args.alpha
    if getattr(args, "smoothing", None) is not None:
        changes["smoothing"] = bool(args.smoothing)
    if getattr(args, "multiplier", None) is not None:
        changes["default_multiplier"] = float(args.multiplier)
    if not changes:
        logger.warning("--save-settings given without any setting to save")
        return None
    return SettingsStore.update(**changes)


def _settings_listener(service: CanvasService) -> Callable[[RuntimeConfig], None]:
    def _apply(rc: RuntimeConfig) -> None:
        s = rc.settings
        service.alpha_format = s.alpha_format
        service.move_queue_size = s.move_queue_size
        service.decode_timeout_s = s.decode_timeout_s
        service.smoothing = s.smoothing

    return _apply


def _parse_point(s: str) -> tuple[int, int]:
    try:
        x, y = (int(v) for v in s.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected X,Y but got {s!r}") from None
    return (x, y)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments.

    When ``argv`` is None the values are read from ``sys.argv`` as usual.
    Accepting an ``argv`` list makes the parser testable programmatically.
    """
    p = argparse.ArgumentParser(description="PixelScope image pixel inspector")
    p.add_argument("image", nargs="?", default=None, help="Image file to inspect")
    p.add_argument(
        "--kmeans",
        type=str,
        default=None,
        help="Pre-computed k-means (labelled colour) image shown in a second pane",
    )
    p.add_argument(
        "--zoom",
        type=float,
        default=None,
        help=(
            f"Zoom slider value ({SLIDER_CONFIG['min']:g}..{SLIDER_CONFIG['max']:g})"
        ),
    )
    p.add_argument(
        "--multiplier",
        type=float,
        default=None,
        help="Zoom multiplier (default from settings, normally 1)",
    )
    p.add_argument(
        "--alpha",
        choices=["raw", "unit"],
        default=None,
        help="Alpha format for reported colours: raw 0..255 or unit 0..1",
    )
    p.add_argument(
        "--smoothing",
        dest="smoothing",
        action="store_true",
        default=None,
        help="Use bilinear scaling when zoomed",
    )
    p.add_argument(
        "--pick",
        type=_parse_point,
        default=None,
        help="X,Y page coordinate to resolve and print (headless)",
    )
    p.add_argument(
        "--export",
        type=str,
        default=None,
        help="Write the rendered raw pane to this PNG path",
    )
    p.add_argument(
        "--fps",
        type=float,
        default=None,
        help="Window refresh rate",
    )
    p.add_argument(
        "--headless",
        dest="headless",
        action="store_true",
        help="Run without a window (in-memory surfaces)",
    )
    p.add_argument(
        "--save-settings",
        dest="save_settings",
        action="store_true",
        help="Persist --alpha, --smoothing and --multiplier as the new defaults",
    )
    p.add_argument(
        "--log-level",
        dest="log_level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    p.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    return p.parse_args(argv)


class _Session:
    """Stores, adapter and controller wired together for one run."""

    def __init__(self, args: argparse.Namespace) -> None:
        if getattr(args, "save_settings", False):
            save_cli_settings(args)
        self.rc = make_runtime_config(args=args)
        set_runtime(self.rc)
        self.bus = EventBus()
        self.app_store = AppStore(self.bus)
        self.canvas_store = CanvasStore()
        self.service = build_canvas_service(self.canvas_store, self.rc.settings)
        self.controller = DisplayController(
            canvas=self.service,
            app_store=self.app_store,
            default_multiplier=self.rc.viewer.multiplier,
        )
        self._listener = _settings_listener(self.service)
        register_listener(self._listener)

    def bind(
        self, raw: Surface, kmeans: Optional[Surface], args: argparse.Namespace
    ) -> None:
        self.controller.on_raw_image_surface_ready(raw)
        self.controller.on_kmeans_image_surface_ready(kmeans)
        self.controller.on_slider_change(self.rc.viewer.zoom)
        if args.image:
            image = load_image_file(args.image)
            self.controller.load_raw_image(image, name=args.image)
        if args.kmeans:
            grid = image_data_to_grid(load_image_file(args.kmeans))
            self.app_store.kmeans_image.set(KmeansImage(labeled_colors=grid))

    async def close(self) -> None:
        unregister_listener(self._listener)
        self.service.stop_all_hit_testing()
        await self.controller.stop()
        await self.bus.close()


def describe(service: CanvasService, pixel: Optional[Pixel]) -> str:
    return "none" if pixel is None else service.to_css_color(pixel)


async def _main_headless_async(args: argparse.Namespace) -> Optional[Pixel]:
    """Render onto in-memory surfaces, resolve ``--pick``, export if asked."""
    session = _Session(args)
    raw = MemorySurface()
    kmeans = MemorySurface() if args.kmeans else None
    pixel: Optional[Pixel] = None
    try:
        session.bind(raw, kmeans, args)
        if args.pick is not None:
            x, y = args.pick
            pixel = session.service.resolve_pixel_at_screen_point(raw, x, y)
            print(describe(session.service, pixel))
        if args.export:
            Path(args.export).parent.mkdir(parents=True, exist_ok=True)
            raw.save_png(args.export)
            logger.info("exported raw pane to %s", args.export)
    finally:
        await session.close()
    return pixel


async def _hit_test_loop(
    service: CanvasService,
    surface: Surface,
    on_hover: Callable[[Optional[Pixel]], None],
    on_pick: Callable[[Optional[Pixel]], None],
    stop: asyncio.Event,
) -> None:
    """Keep hit testing armed: report hovers, and re-arm after every click."""

    async def _drain(moves: MoveStream) -> None:
        async for ev in moves:
            on_hover(service.pixel_from_mouse_event(ev, surface))

    while not stop.is_set():
        streams = service.start_hit_testing(surface)
        mover = asyncio.create_task(_drain(streams.on_move))
        click = await streams.on_click
        if service.is_listening(surface):
            service.stop_hit_testing(surface)
        await mover
        if click is not None:
            on_pick(service.pixel_from_mouse_event(click, surface))
        else:
            # Stopped from outside (reset); give the loop a turn before re-arming.
            await asyncio.sleep(0)


async def main_async(args: argparse.Namespace) -> None:
    """Interactive pygame viewer."""
    from pixelscope.platform.display.pygame_backend import (
        PygameDisplayBackend,
        PygameSurface,
    )
    from pixelscope.platform.input.pygame_input import PygameInputBackend

    session = _Session(args)
    rc = session.rc
    bg = THEME.get("colors", {}).get("window_bg", [32, 32, 32, 255])
    display = PygameDisplayBackend(
        size=rc.viewer.window_size,
        create_window=True,
        gap_px=rc.viewer.pane_gap_px,
        background=tuple(int(c) for c in bg),  # type: ignore[arg-type]
    )
    inputs = PygameInputBackend(display)
    raw = PygameSurface()
    display.add_pane(raw)
    kmeans: Optional[PygameSurface] = None
    if args.kmeans:
        kmeans = PygameSurface()
        display.add_pane(kmeans)
    session.bind(raw, kmeans, args)

    watcher = ConfigWatcher(session.bus)
    await watcher.run()
    ctrl_task = asyncio.create_task(session.controller.run(), name="display_ctrl")

    stop = asyncio.Event()

    def _hover(pixel: Optional[Pixel]) -> None:
        logger.debug("hover %s", describe(session.service, pixel))

    def _pick(pixel: Optional[Pixel]) -> None:
        print(describe(session.service, pixel))

    hit_task = asyncio.create_task(
        _hit_test_loop(session.service, raw, _hover, _pick, stop), name="hit_test"
    )

    step = float(SLIDER_CONFIG.get("step", 1.0))
    dt = 1.0 / max(1e-6, rc.viewer.target_fps)
    try:
        while not inputs.quit_requested:
            inputs.dispatch_pending()
            for key in inputs.take_keys():
                ctrl = session.controller
                if key in ("+", "="):
                    ctrl.on_slider_change(ctrl.slider_raw_value() + step)
                elif key == "-":
                    ctrl.on_slider_change(ctrl.slider_raw_value() - step)
                elif key == "r":
                    session.app_store.request_reset("key")
            display.layout()
            display.present()
            await asyncio.sleep(dt)
    finally:
        stop.set()
        session.service.stop_all_hit_testing()
        await asyncio.gather(hit_task, return_exceptions=True)
        await watcher.stop()
        await session.close()
        await asyncio.gather(ctrl_task, return_exceptions=True)
