"""Canvas adapter: every direct manipulation of a drawing surface.

The service converts between pixel grids and raw RGBA buffers, renders
grids and images onto a :class:`~pixelscope.render.surface.Surface`,
encodes them as PNG data URLs and resolves pointer positions to the pixel
underneath.

Operations that need the untransformed buffer run inside
:meth:`CanvasService.identity_transform`, which snapshots the surface's
size, transform, smoothing flag and pixels, switches to the identity
transform and restores everything on exit, including when the body raises.

Hit testing is tracked per surface. Starting it attaches one ``click``
listener, which delivers a single event and then detaches, and one
``mousemove`` listener, which delivers until stopped:

    streams = service.start_hit_testing(surface)
    click = await streams.on_click
    async for move in streams.on_move:
        pixel = service.pixel_from_mouse_event(move, surface)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Callable,
    Dict,
    Generator,
    Iterator,
    Optional,
    Sequence,
    Set,
    TypeVar,
)

from pixelscope.core.events import SENTINEL, put_drop_oldest, put_sentinel
from pixelscope.core.models import (
    IDENTITY_TRANSFORM,
    ImageData,
    MouseEvent,
    Pixel,
    PixelGrid,
    Transform,
    grid_size,
    image_data_to_grid,
    image_data_to_pixels,
    pixels_to_image_data,
)
from pixelscope.errors import (
    DecodeFailedError,
    HitTestingActiveError,
    NoSurfaceError,
    ReentrantSurfaceError,
)
from pixelscope.render.codec import decode_data_url
from pixelscope.render.surface import Surface
from pixelscope.ui.store import CanvasStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALPHA_RAW = "raw"
ALPHA_UNIT = "unit"


@dataclass(slots=True)
class RenderResult:
    image_data: ImageData
    data_url: str


def css_color(pixel: Sequence[int], alpha: str = ALPHA_RAW) -> str:
    """Format *pixel* as ``rgba(r, g, b, a)``.

    With ``alpha="raw"`` the alpha channel is written as its 0..255 value,
    which is not what CSS expects for opaque colours (``255`` instead of
    ``1``). ``alpha="unit"`` writes ``a / 255`` with up to three decimals.
    Channels outside 0..255 raise ``ValueError``.
    """
    r, g, b, a = Pixel.from_iterable(pixel)
    if alpha == ALPHA_RAW:
        a_txt = str(int(a))
    elif alpha == ALPHA_UNIT:
        a_txt = f"{round(int(a) / 255.0, 3):g}"
    else:
        raise ValueError(f"unknown alpha format: {alpha!r}")
    return f"rgba({int(r)}, {int(g)}, {int(b)}, {a_txt})"


# Hit-test streams ----------------------------------------------------------


class ClickStream:
    """Delivers at most one click, then completes.

    Await it directly for the event (``None`` if hit testing stopped first)
    or iterate it with ``async for``.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=2)
        self._ended = False

    @property
    def done(self) -> bool:
        return self._ended

    def _deliver(self, event: MouseEvent) -> None:
        if self._ended:
            return
        self._queue.put_nowait(event)
        self._complete()

    def _complete(self) -> None:
        if self._ended:
            return
        self._ended = True
        put_sentinel(self._queue)

    async def wait(self) -> Optional[MouseEvent]:
        if self._queue.empty() and self._ended:
            return None
        item = await self._queue.get()
        if item is SENTINEL:
            # Leave the sentinel for any other waiter.
            put_sentinel(self._queue)
            return None
        return item

    def __await__(self) -> Generator[Any, None, Optional[MouseEvent]]:
        return self.wait().__await__()

    def __aiter__(self) -> AsyncIterator[MouseEvent]:
        return self

    async def __anext__(self) -> MouseEvent:
        event = await self.wait()
        if event is None:
            raise StopAsyncIteration
        return event


class MoveStream:
    """Delivers pointer moves until hit testing stops.

    Backed by a bounded queue; when the consumer falls behind the oldest
    move is dropped.
    """

    def __init__(self, maxsize: int = 64) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=max(1, int(maxsize)))
        self._ended = False
        self.drops = 0

    @property
    def done(self) -> bool:
        return self._ended

    def _deliver(self, event: MouseEvent) -> None:
        if self._ended:
            return
        self.drops += put_drop_oldest(self._queue, event)

    def _complete(self) -> None:
        if self._ended:
            return
        self._ended = True
        put_sentinel(self._queue)

    def __aiter__(self) -> AsyncIterator[MouseEvent]:
        return self

    async def __anext__(self) -> MouseEvent:
        if self._ended and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is SENTINEL:
            raise StopAsyncIteration
        return item


@dataclass(slots=True)
class HitTestStreams:
    on_click: ClickStream
    on_move: MoveStream


class _HitTestSession:
    __slots__ = ("surface", "click", "move", "on_click", "on_move")

    def __init__(self, surface: Surface, move_queue_size: int) -> None:
        self.surface = surface
        self.click = ClickStream()
        self.move = MoveStream(move_queue_size)

        def on_click(event: MouseEvent) -> None:
            self.click._deliver(event)
            self.surface.remove_event_listener("click", on_click)

        def on_move(event: MouseEvent) -> None:
            self.move._deliver(event)

        self.on_click: Callable[[MouseEvent], None] = on_click
        self.on_move: Callable[[MouseEvent], None] = on_move

    def attach(self) -> None:
        self.surface.add_event_listener("click", self.on_click)
        self.surface.add_event_listener("mousemove", self.on_move)

    def detach(self) -> None:
        self.surface.remove_event_listener("click", self.on_click)
        self.surface.remove_event_listener("mousemove", self.on_move)
        self.move._complete()
        self.click._complete()


# Service -------------------------------------------------------------------


class CanvasService:
    """Adapter between pixel data and drawing surfaces.

    Parameters
    ----------
    store:
        Shared canvas state; supplies the default surface for hit testing
        and receives image/zoom/listening updates.
    alpha_format:
        Default alpha style for :meth:`to_css_color` (``raw`` or ``unit``).
    move_queue_size:
        Capacity of each mouse-move stream.
    decode_timeout_s:
        Default timeout for asynchronous decodes; ``None`` waits forever.
    smoothing:
        Value written to ``image_smoothing_enabled`` before drawing.
    """

    def __init__(
        self,
        store: CanvasStore,
        *,
        alpha_format: str = ALPHA_RAW,
        move_queue_size: int = 64,
        decode_timeout_s: float | None = None,
        smoothing: bool = False,
    ) -> None:
        self._store = store
        self.alpha_format = alpha_format
        self.move_queue_size = int(move_queue_size)
        self.decode_timeout_s = decode_timeout_s
        self.smoothing = bool(smoothing)
        self._sessions: Dict[int, _HitTestSession] = {}
        self._scoped: Set[int] = set()

    @property
    def store(self) -> CanvasStore:
        return self._store

    # Identity-transform scope ------------------------------------------------
    @contextmanager
    def identity_transform(self, surface: Surface) -> Iterator[Surface]:
        key = id(surface)
        if key in self._scoped:
            raise ReentrantSurfaceError(
                "identity-transform scope already active on this surface"
            )
        width, height = surface.width, surface.height
        smoothing = surface.image_smoothing_enabled
        snapshot = surface.get_image_data(0, 0, width, height)
        previous = self.reset_to_identity(surface)
        self._scoped.add(key)
        try:
            yield surface
        finally:
            self._scoped.discard(key)
            if (surface.width, surface.height) != (width, height):
                surface.resize(width, height)
            surface.set_transform(previous)
            surface.image_smoothing_enabled = smoothing
            surface.put_image_data(snapshot, 0, 0)

    def with_identity_transform(
        self, surface: Surface, fn: Callable[[Surface], T]
    ) -> T:
        """Run ``fn(surface)`` under the identity transform and return its result."""
        with self.identity_transform(surface) as s:
            return fn(s)

    def reset_to_identity(self, surface: Surface) -> Transform:
        """Set the identity transform and return the one it replaced."""
        current = surface.get_transform()
        surface.set_transform(IDENTITY_TRANSFORM)
        return current

    # Drawing -----------------------------------------------------------------
    def clear_context(self, surface: Surface) -> None:
        surface.clear_rect(0, 0, surface.width, surface.height)

    def resize_canvas(self, surface: Surface, width: int, height: int) -> None:
        """Resize to ``width x height`` scaled by the current transform."""
        t = surface.get_transform()
        surface.resize(width * t.a, height * t.d)

    def predraw(self, surface: Surface, width: int, height: int) -> None:
        self.clear_context(surface)
        self.resize_canvas(surface, width, height)
        surface.image_smoothing_enabled = self.smoothing

    def draw_image(self, surface: Surface, image: ImageData) -> None:
        """Draw *image* stretched over the whole (resized) surface."""
        self.predraw(surface, image.width, image.height)
        surface.draw_image(image, 0, 0, surface.width, surface.height)

    def draw_image_data(
        self, surface: Surface, image: ImageData, width: int, height: int
    ) -> None:
        self.predraw(surface, width, height)
        surface.put_image_data(image, 0, 0)

    def render_pixel_grid(self, surface: Surface, grid: PixelGrid) -> RenderResult:
        """Write *grid* to the surface and encode it.

        The surface is resized to exactly the grid's column and row count,
        which also resets its transform. An empty grid returns a blank
        buffer of the surface's size and an empty data URL without touching
        the surface.
        """
        if not grid:
            return RenderResult(
                surface.create_image_data(surface.width, surface.height), ""
            )
        image = pixels_to_image_data(grid)
        width, height = grid_size(grid)
        surface.resize(width, height)
        surface.image_smoothing_enabled = self.smoothing
        surface.put_image_data(image, 0, 0)
        return RenderResult(image, surface.to_data_url())

    async def create_image_from_pixels(
        self, surface: Surface, grid: PixelGrid
    ) -> Optional[ImageData]:
        """Encode *grid* via the surface and decode it back into an image.

        The surface is left exactly as it was.
        """
        result = self.with_identity_transform(
            surface, lambda s: self.render_pixel_grid(s, grid)
        )
        return await self.decode_image_data_async(result.data_url)

    # Reading -----------------------------------------------------------------
    def get_image_data(self, surface: Surface) -> RenderResult:
        def _read(s: Surface) -> RenderResult:
            return RenderResult(
                s.get_image_data(0, 0, s.width, s.height), s.to_data_url()
            )

        return self.with_identity_transform(surface, _read)

    def extract_pixel_grid(self, surface: Surface) -> PixelGrid:
        image = self.with_identity_transform(
            surface, lambda s: s.get_image_data(0, 0, s.width, s.height)
        )
        return image_data_to_grid(image)

    def load_image_onto_surface(self, surface: Surface, image: ImageData) -> PixelGrid:
        """Draw *image* at its native size and return the resulting grid.

        Clears the store's displayed image, since it no longer matches.
        """
        self.draw_image(surface, image)
        grid = self.extract_pixel_grid(surface)
        self.reset_images()
        return grid

    # Decoding ----------------------------------------------------------------
    async def decode_image_data_async(
        self, data_url: str, *, timeout_s: float | None = None
    ) -> Optional[ImageData]:
        """Decode a data URL off the event loop.

        ``""`` resolves to ``None`` immediately. Cancelling the awaiting task
        abandons the result. Raises :class:`DecodeFailedError` on malformed
        input or when the timeout elapses.
        """
        if data_url == "":
            return None
        timeout = self.decode_timeout_s if timeout_s is None else timeout_s
        loop = asyncio.get_running_loop()
        fut = loop.run_in_executor(None, decode_data_url, data_url)
        try:
            if timeout is None:
                return await fut
            return await asyncio.wait_for(fut, timeout)
        except asyncio.TimeoutError as e:
            raise DecodeFailedError(f"decode timed out after {timeout}s") from e

    async def decode_image_async(
        self, data_url: str, *, timeout_s: float | None = None
    ) -> Optional[PixelGrid]:
        image = await self.decode_image_data_async(data_url, timeout_s=timeout_s)
        if image is None:
            return None
        return image_data_to_grid(image)

    # Hit testing -------------------------------------------------------------
    def _resolve_surface(self, surface: Surface | None) -> Surface:
        if surface is None:
            surface = self._store.context2d()
        if surface is None:
            raise NoSurfaceError()
        return surface

    def is_listening(self, surface: Surface | None = None) -> bool:
        s = surface if surface is not None else self._store.context2d()
        return s is not None and id(s) in self._sessions

    def start_hit_testing(self, surface: Surface | None = None) -> HitTestStreams:
        surface = self._resolve_surface(surface)
        key = id(surface)
        if key in self._sessions:
            raise HitTestingActiveError("hit testing already active on this surface")
        session = _HitTestSession(surface, self.move_queue_size)
        session.attach()
        self._sessions[key] = session
        self._store.are_mouse_events_listening.set(True)
        logger.debug("hit testing started (%d active)", len(self._sessions))
        return HitTestStreams(on_click=session.click, on_move=session.move)

    def stop_hit_testing(self, surface: Surface | None = None) -> None:
        surface = self._resolve_surface(surface)
        session = self._sessions.pop(id(surface), None)
        self._store.are_mouse_events_listening.set(bool(self._sessions))
        if session is None:
            return
        session.detach()
        logger.debug("hit testing stopped (%d active)", len(self._sessions))

    def stop_all_hit_testing(self) -> None:
        for session in list(self._sessions.values()):
            session.detach()
        self._sessions.clear()
        self._store.are_mouse_events_listening.set(False)

    def resolve_pixel_at_screen_point(
        self, surface: Surface | None, screen_x: int, screen_y: int
    ) -> Optional[Pixel]:
        """Return the pixel under a page coordinate, or ``None`` off-grid.

        Only the one pixel is read; ``get_image_data`` ignores the transform,
        so no identity scope is needed.
        """
        surface = self._resolve_surface(surface)
        column = int(screen_x) - int(surface.offset_left)
        row = int(screen_y) - int(surface.offset_top)
        if not (0 <= column < surface.width and 0 <= row < surface.height):
            return None
        return image_data_to_pixels(surface.get_image_data(column, row, 1, 1))[0]

    def pixel_from_mouse_event(
        self, event: MouseEvent, surface: Surface | None = None
    ) -> Optional[Pixel]:
        return self.resolve_pixel_at_screen_point(surface, event.page_x, event.page_y)

    # Misc --------------------------------------------------------------------
    def to_css_color(self, pixel: Sequence[int], alpha: str | None = None) -> str:
        return css_color(pixel, alpha or self.alpha_format)

    def reset_images(self) -> None:
        self._store.displayed_image.set(None)

    def reset(self, surface: Surface | None = None) -> None:
        """Clear images, zoom values and every hit-testing session."""
        self._store.raw_image.set(None)
        self._store.displayed_image.set(None)
        self._store.slider_raw_value.set(1.0)
        self._store.slider_multiplier.set(1.0)
        if surface is not None:
            self.stop_hit_testing(surface)
        self.stop_all_hit_testing()
