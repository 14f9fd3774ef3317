"""Shared application state.

:class:`CanvasStore` holds the state the canvas adapter reads and writes
(bound surface, images, zoom slider values, listening flag).
:class:`AppStore` holds what the display page shares with the rest of the
application: the two bound surfaces, the loaded image, the k-means result
and the ``store.reset`` notification topic on the event bus.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from pixelscope.core.events import EventBus, Subscription, pack
from pixelscope.core.models import ImageData, PixelGrid
from pixelscope.core.signals import Signal
from pixelscope.render.surface import Surface

logger = logging.getLogger(__name__)

RESET_TOPIC = "store.reset"


@dataclass(slots=True)
class KmeansImage:
    """Result of the clustering step computed elsewhere.

    ``labeled_colors`` is the pixel grid where every pixel has been replaced
    by the colour of its cluster.
    """

    labeled_colors: PixelGrid
    k: int = 0


class CanvasStore:
    def __init__(self) -> None:
        self.context2d: Signal[Optional[Surface]] = Signal(None)
        self.raw_image: Signal[Optional[ImageData]] = Signal(None)
        self.displayed_image: Signal[Optional[ImageData]] = Signal(None)
        self.slider_raw_value: Signal[float] = Signal(1.0)
        self.slider_multiplier: Signal[float] = Signal(1.0)
        self.are_mouse_events_listening: Signal[bool] = Signal(False)


class AppStore:
    def __init__(self, bus: EventBus | None = None) -> None:
        self.bus = bus if bus is not None else EventBus(default_maxsize=16)
        self.raw_image_file: Signal[Optional[str]] = Signal(None)
        self.raw_image_surface: Signal[Optional[Surface]] = Signal(None)
        self.kmeans_image_surface: Signal[Optional[Surface]] = Signal(None)
        self.kmeans_image: Signal[Optional[KmeansImage]] = Signal(None)

    def subscribe_reset(self) -> Subscription:
        return self.bus.subscribe(RESET_TOPIC)

    def request_reset(self, reason: str = "user") -> None:
        """Notify every reset subscriber. No-op once the bus is closed."""
        if self.bus.closed:
            logger.debug("reset requested after bus close (%s)", reason)
            return
        self.bus.publish_nowait(RESET_TOPIC, pack({"reason": reason}))
