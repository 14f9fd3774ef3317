"""Framework-agnostic drawing surface protocol.

A surface behaves like an HTML canvas with its 2D context: it owns an RGBA
pixel buffer, an affine transform, an image smoothing flag and DOM-style
event listeners. Backends (Pillow, pygame) only provide buffer storage by
subclassing :class:`BaseSurface`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Protocol, Tuple, Union

from pixelscope.core.models import IDENTITY_TRANSFORM, ImageData, MouseEvent, Transform
from pixelscope.render.codec import encode_data_url

logger = logging.getLogger(__name__)

Listener = Callable[[MouseEvent], None]
TransformLike = Union[Transform, Tuple[float, float, float, float, float, float]]


class Surface(Protocol):
    image_smoothing_enabled: bool
    offset_left: int
    offset_top: int

    @property
    def width(self) -> int:
        ...

    @property
    def height(self) -> int:
        ...

    def resize(self, width: int, height: int) -> None:
        ...

    def get_transform(self) -> Transform:
        ...

    def set_transform(self, t: TransformLike) -> None:
        ...

    def create_image_data(self, width: int, height: int) -> ImageData:
        ...

    def get_image_data(self, x: int, y: int, w: int, h: int) -> ImageData:
        ...

    def put_image_data(self, image: ImageData, x: int = 0, y: int = 0) -> None:
        ...

    def clear_rect(self, x: float, y: float, w: float, h: float) -> None:
        ...

    def draw_image(
        self, image: ImageData, x: float, y: float, w: float, h: float
    ) -> None:
        ...

    def to_data_url(self) -> str:
        ...

    def add_event_listener(self, type: str, cb: Listener) -> None:
        ...

    def remove_event_listener(self, type: str, cb: Listener) -> None:
        ...

    def dispatch_event(self, event: MouseEvent) -> None:
        ...


class BaseSurface(ABC):
    """Canvas semantics shared by all backends.

    Resizing clears the buffer and resets the transform to identity, the
    same way assigning ``canvas.width`` does in a browser. ``clear_rect`` and
    ``draw_image`` honour the scale and translation terms of the transform;
    ``get_image_data`` and ``put_image_data`` ignore it. Shear terms are
    carried but not rasterised.
    """

    def __init__(
        self, width: int = 0, height: int = 0, *, offset: Tuple[int, int] = (0, 0)
    ) -> None:
        self._width = max(0, int(width))
        self._height = max(0, int(height))
        self._transform: Transform = IDENTITY_TRANSFORM
        self._listeners: Dict[str, List[Listener]] = {}
        self.image_smoothing_enabled: bool = True
        self.offset_left, self.offset_top = int(offset[0]), int(offset[1])
        self._reset_buffer(self._width, self._height)

    # Geometry ----------------------------------------------------------------
    @property
    def width(self) -> int:
        return self._width

    @width.setter
    def width(self, value: int) -> None:
        self.resize(value, self._height)

    @property
    def height(self) -> int:
        return self._height

    @height.setter
    def height(self, value: int) -> None:
        self.resize(self._width, value)

    def resize(self, width: int, height: int) -> None:
        self._width = max(0, int(round(width)))
        self._height = max(0, int(round(height)))
        self._transform = IDENTITY_TRANSFORM
        self.image_smoothing_enabled = True
        self._reset_buffer(self._width, self._height)
        logger.debug("surface resized to %dx%d", self._width, self._height)

    # Transform ---------------------------------------------------------------
    def get_transform(self) -> Transform:
        return self._transform

    def set_transform(self, t: TransformLike) -> None:
        self._transform = t if isinstance(t, Transform) else Transform(*t)

    def _map_rect(
        self, x: float, y: float, w: float, h: float
    ) -> Tuple[int, int, int, int]:
        t = self._transform
        return (
            int(round(t.a * x + t.e)),
            int(round(t.d * y + t.f)),
            int(round(t.a * w)),
            int(round(t.d * h)),
        )

    # Pixels ------------------------------------------------------------------
    def create_image_data(self, width: int, height: int) -> ImageData:
        return ImageData.create(width, height)

    def get_image_data(self, x: int, y: int, w: int, h: int) -> ImageData:
        """Return the ``w x h`` region at (x, y); pixels outside are transparent."""
        return self._read(int(x), int(y), max(0, int(w)), max(0, int(h)))

    def put_image_data(self, image: ImageData, x: int = 0, y: int = 0) -> None:
        """Replace pixels with *image* at (x, y), no blending, clipped."""
        if image.is_empty:
            return
        self._write(image, int(x), int(y))

    def clear_rect(self, x: float, y: float, w: float, h: float) -> None:
        dx, dy, dw, dh = self._map_rect(x, y, w, h)
        if dw <= 0 or dh <= 0:
            return
        self._write(ImageData.create(dw, dh), dx, dy)

    def draw_image(
        self, image: ImageData, x: float, y: float, w: float, h: float
    ) -> None:
        """Scale *image* into the rect and composite it source-over."""
        dx, dy, dw, dh = self._map_rect(x, y, w, h)
        if image.is_empty or dw <= 0 or dh <= 0:
            return
        self._draw(image, dx, dy, dw, dh, self.image_smoothing_enabled)

    def to_data_url(self) -> str:
        return encode_data_url(self.get_image_data(0, 0, self._width, self._height))

    # Events ------------------------------------------------------------------
    def add_event_listener(self, type: str, cb: Listener) -> None:
        self._listeners.setdefault(type, []).append(cb)

    def remove_event_listener(self, type: str, cb: Listener) -> None:
        cbs = self._listeners.get(type)
        if cbs and cb in cbs:
            cbs.remove(cb)

    def listener_count(self, type: str) -> int:
        return len(self._listeners.get(type, ()))

    def dispatch_event(self, event: MouseEvent) -> None:
        for cb in list(self._listeners.get(event.type, ())):
            cb(event)

    def contains_page_point(self, page_x: int, page_y: int) -> bool:
        lx = page_x - self.offset_left
        ly = page_y - self.offset_top
        return 0 <= lx < self._width and 0 <= ly < self._height

    # Backend hooks -----------------------------------------------------------
    @abstractmethod
    def _reset_buffer(self, width: int, height: int) -> None:
        """Allocate a transparent buffer of the given size."""

    @abstractmethod
    def _read(self, x: int, y: int, w: int, h: int) -> ImageData:
        ...

    @abstractmethod
    def _write(self, image: ImageData, x: int, y: int) -> None:
        ...

    @abstractmethod
    def _draw(
        self, image: ImageData, x: int, y: int, w: int, h: int, smooth: bool
    ) -> None:
        ...
