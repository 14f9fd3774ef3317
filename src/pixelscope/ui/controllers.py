"""
Display controller for the image viewer page.

Wires user input (zoom slider, multiplier field) and store changes (image
loaded, k-means result ready, reset) to the canvas adapter. Two surfaces
are bound: the raw image pane and the clustered image pane.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional

from pixelscope.core.events import Subscription, unpack
from pixelscope.core.models import IDENTITY_TRANSFORM, ImageData, PixelGrid, Transform
from pixelscope.core.signals import Computed
from pixelscope.render.canvas_service import CanvasService
from pixelscope.render.surface import Surface
from pixelscope.settings.values import SLIDER_CONFIG
from pixelscope.ui.store import AppStore, KmeansImage

logger = logging.getLogger(__name__)


class DisplayController:
    """Owns zoom state and keeps both panes in sync with the stores."""

    def __init__(
        self,
        *,
        canvas: CanvasService,
        app_store: AppStore,
        default_multiplier: float = 1.0,
    ) -> None:
        self._canvas = canvas
        self._app = app_store
        self._store = canvas.store
        self._slider_min = float(SLIDER_CONFIG.get("min", 1.0))
        self._slider_max = float(SLIDER_CONFIG.get("max", 10.0))
        self._mult_min = float(SLIDER_CONFIG.get("multiplier_min", 0.01))
        self._mult_max = float(SLIDER_CONFIG.get("multiplier_max", 100.0))

        self.slider_raw_value = self._store.slider_raw_value
        self.slider_multiplier = self._store.slider_multiplier
        self.slider_value: Computed[float] = Computed(
            lambda: self.slider_raw_value() * self.slider_multiplier()
        )
        self.has_image_data: Computed[bool] = Computed(
            lambda: self._store.raw_image() is not None
        )
        self.slider_multiplier.set(float(default_multiplier))

        self._reset_sub: Subscription | None = self._app.subscribe_reset()
        self._running = False

        self._app.kmeans_image.subscribe(self.on_kmeans_image)
        self._store.raw_image.subscribe(self._on_raw_image_changed)
        self.slider_raw_value.subscribe(self._on_zoom_changed)
        self.slider_multiplier.subscribe(self._on_zoom_changed)

    @property
    def zoom(self) -> float:
        return self.slider_value()

    # Surface binding --------------------------------------------------------
    def on_raw_image_surface_ready(self, surface: Optional[Surface]) -> None:
        if surface is None:
            return
        self._app.raw_image_surface.set(surface)
        self._store.context2d.set(surface)
        if self._store.raw_image() is not None:
            self._render_raw()

    def on_kmeans_image_surface_ready(self, surface: Optional[Surface]) -> None:
        if surface is None:
            return
        self._app.kmeans_image_surface.set(surface)
        kmeans = self._app.kmeans_image()
        if kmeans is not None:
            self.on_kmeans_image(kmeans)

    # Zoom -------------------------------------------------------------------
    def on_slider_change(self, value: float) -> None:
        v = min(self._slider_max, max(self._slider_min, float(value)))
        self.slider_raw_value.set(v)

    def on_slider_multiplier_change(self, text: str) -> None:
        """Apply a user-typed multiplier; unparsable input is ignored."""
        try:
            value = float(text)
        except (TypeError, ValueError):
            logger.warning("ignoring non-numeric zoom multiplier %r", text)
            return
        if not math.isfinite(value) or value <= 0:
            logger.warning("ignoring out-of-range zoom multiplier %r", text)
            return
        self.slider_multiplier.set(min(self._mult_max, max(self._mult_min, value)))

    @staticmethod
    def format_slider_label(value: float) -> str:
        return f"{value * 100:.0f}%"

    def _zoom_transform(self) -> Transform:
        z = self.zoom
        if z == 1.0:
            return IDENTITY_TRANSFORM
        return Transform(a=z, d=z)

    def _on_zoom_changed(self, _value: float) -> None:
        if self._store.raw_image() is not None:
            self._render_raw()
        if self._app.kmeans_image() is not None:
            self._render_kmeans()

    # Images -----------------------------------------------------------------
    def load_raw_image(self, image: ImageData, name: str | None = None) -> None:
        """Make *image* the raw image; it is rendered once a surface is bound."""
        self._app.raw_image_file.set(name)
        self._store.raw_image.set(image)

    def _on_raw_image_changed(self, image: Optional[ImageData]) -> None:
        if image is not None:
            self._render_raw()

    def _render_raw(self) -> Optional[PixelGrid]:
        surface = self._app.raw_image_surface()
        image = self._store.raw_image()
        if surface is None or image is None:
            return None
        surface.set_transform(self._zoom_transform())
        grid = self._canvas.load_image_onto_surface(surface, image)
        logger.debug(
            "raw image rendered %dx%d at zoom %.2f",
            image.width,
            image.height,
            self.zoom,
        )
        return grid

    def on_kmeans_image(self, kmeans: Optional[KmeansImage]) -> None:
        if kmeans is None:
            return
        self._render_kmeans()

    def _render_kmeans(self) -> None:
        surface = self._app.kmeans_image_surface()
        kmeans = self._app.kmeans_image()
        if surface is None or kmeans is None:
            return
        surface.set_transform(IDENTITY_TRANSFORM)
        result = self._canvas.render_pixel_grid(surface, kmeans.labeled_colors)
        if result.image_data.is_empty or result.data_url == "":
            return
        # Render at 1:1 to get the buffer, then redraw scaled for display.
        surface.set_transform(self._zoom_transform())
        self._canvas.draw_image(surface, result.image_data)
        self._store.displayed_image.set(result.image_data)

    # Reset ------------------------------------------------------------------
    def on_reset(self) -> None:
        self._app.kmeans_image.set(None)
        self._app.raw_image_file.set(None)
        self._canvas.reset(self._store.context2d())
        panes = (self._app.raw_image_surface(), self._app.kmeans_image_surface())
        for surface in panes:
            if surface is not None:
                surface.set_transform(IDENTITY_TRANSFORM)
                self._canvas.clear_context(surface)

    async def run(self) -> None:
        """Apply reset notifications from the store until :meth:`stop`."""
        if self._reset_sub is None:
            return
        self._running = True
        try:
            async for env in self._reset_sub:
                reason = unpack(env.payload).get("reason", "?")
                logger.info("reset requested (%s)", reason)
                self.on_reset()
        except asyncio.CancelledError:  # pragma: no cover - cooperative cancel
            pass
        finally:
            self._running = False

    async def stop(self) -> None:
        self._running = False
        if self._reset_sub is not None:
            await self._reset_sub.close()
            self._reset_sub = None
