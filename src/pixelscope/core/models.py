"""Pixel, pixel grid and raw image buffer types.

A :class:`Pixel` is an immutable RGBA 4-tuple. A pixel grid is a plain
row-major ``list[list[Pixel]]``. :class:`ImageData` mirrors the flat RGBA
byte buffer a drawing surface exposes, and the helpers below convert
between the two representations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Iterable, List, NamedTuple, Sequence, Tuple, TypeVar

from pydantic import Field, TypeAdapter

T = TypeVar("T")

CHANNELS = 4


Channel = Annotated[int, Field(ge=0, le=255)]

_RGBA_ADAPTER: TypeAdapter[Tuple[int, int, int, int]] = TypeAdapter(
    Tuple[Channel, Channel, Channel, Channel]
)


class _RGBA(NamedTuple):
    r: int
    g: int
    b: int
    a: int


class Pixel(_RGBA):
    """RGBA pixel with 0..255 channels.

    Every construction is validated; a channel outside 0..255 (or a
    non-integer one) raises ``pydantic.ValidationError``, a ``ValueError``.
    ``Pixel._make`` skips validation and is reserved for values read back
    from a byte buffer.
    """

    __slots__ = ()

    def __new__(cls, r: int, g: int, b: int, a: int) -> "Pixel":
        return cls.from_iterable((r, g, b, a))

    @classmethod
    def from_iterable(cls, values: Iterable[int]) -> "Pixel":
        return cls._make(_RGBA_ADAPTER.validate_python(tuple(values)))


PixelGrid = List[List[Pixel]]


@dataclass(frozen=True, slots=True)
class Transform:
    """2D affine transform ``[a c e; b d f]`` as used by canvas contexts."""

    a: float = 1.0  # scale-x
    b: float = 0.0  # shear-y
    c: float = 0.0  # shear-x
    d: float = 1.0  # scale-y
    e: float = 0.0  # translate-x
    f: float = 0.0  # translate-y

    def is_identity(self) -> bool:
        return self == IDENTITY_TRANSFORM

    def as_tuple(self) -> Tuple[float, float, float, float, float, float]:
        return (self.a, self.b, self.c, self.d, self.e, self.f)


IDENTITY_TRANSFORM = Transform()


@dataclass(slots=True)
class ImageData:
    """Flat RGBA buffer of ``width * height * 4`` bytes."""

    width: int
    height: int
    data: bytearray = field(default_factory=bytearray)

    def __post_init__(self) -> None:
        self.width = int(self.width)
        self.height = int(self.height)
        if self.width < 0 or self.height < 0:
            raise ValueError("image dimensions must be >= 0")
        expected = self.width * self.height * CHANNELS
        if not self.data:
            self.data = bytearray(expected)
        elif len(self.data) != expected:
            raise ValueError(
                f"buffer length {len(self.data)} does not match "
                f"{self.width}x{self.height}x{CHANNELS}"
            )
        elif not isinstance(self.data, bytearray):
            self.data = bytearray(self.data)

    @classmethod
    def create(cls, width: int, height: int) -> "ImageData":
        """Return a fully transparent buffer of the given size."""
        return cls(width, height)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    def copy(self) -> "ImageData":
        return ImageData(self.width, self.height, bytearray(self.data))


@dataclass(slots=True)
class MouseEvent:
    type: str  # "click" | "mousemove"
    page_x: int
    page_y: int
    ts: float = 0.0


# Conversions ---------------------------------------------------------------


def image_data_to_pixels(image: ImageData) -> list[Pixel]:
    """Flatten an RGBA buffer into one :class:`Pixel` per 4-byte group."""
    d = image.data
    return [
        Pixel._make(d[i : i + CHANNELS]) for i in range(0, len(d), CHANNELS)
    ]


def to_2d(items: Sequence[T], width: int) -> list[list[T]]:
    """Chunk a flat sequence into rows of ``width`` items.

    A trailing partial row is kept as-is. ``width`` must be positive.
    """
    if width <= 0:
        raise ValueError("width must be > 0")
    return [list(items[i : i + width]) for i in range(0, len(items), width)]


def is_rectangular(grid: Sequence[Sequence[object]]) -> bool:
    if not grid:
        return True
    n = len(grid[0])
    return all(len(row) == n for row in grid)


def grid_size(grid: Sequence[Sequence[object]]) -> tuple[int, int]:
    """Return ``(width, height)`` of a rectangular grid."""
    if not grid:
        return (0, 0)
    return (len(grid[0]), len(grid))


def pixels_to_image_data(grid: Sequence[Sequence[Sequence[int]]]) -> ImageData:
    """Write a rectangular pixel grid into a new RGBA buffer.

    Each channel lands at ``(row * row_len + col) * 4 + channel``. Raises
    ``ValueError`` for ragged grids or channel values outside 0..255.
    """
    if not is_rectangular(grid):
        raise ValueError("pixel grid rows must all have the same length")
    width, height = grid_size(grid)
    out = ImageData.create(width, height)
    buf = out.data
    for i, row in enumerate(grid):
        for j, pixel in enumerate(row):
            if len(pixel) != CHANNELS:
                raise ValueError(f"pixel at ({i}, {j}) does not have 4 channels")
            base = (i * width + j) * CHANNELS
            # bytearray assignment rejects values outside 0..255
            buf[base : base + CHANNELS] = bytes(pixel)
    return out


def image_data_to_grid(image: ImageData) -> PixelGrid:
    if image.is_empty:
        return []
    return to_2d(image_data_to_pixels(image), image.width)
