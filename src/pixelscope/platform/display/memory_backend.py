"""In-memory surface backed by a Pillow RGBA image.

Needs no display, so it is the default for headless runs and tests:

    surface = MemorySurface(4, 4)
    surface.put_image_data(data, 0, 0)
    surface.to_data_url()
"""

from __future__ import annotations

from typing import Tuple

from PIL import Image

from pixelscope.core.models import ImageData
from pixelscope.render.codec import image_data_to_pil, pil_to_image_data
from pixelscope.render.surface import BaseSurface

_TRANSPARENT = (0, 0, 0, 0)


class MemorySurface(BaseSurface):
    def __init__(
        self, width: int = 0, height: int = 0, *, offset: Tuple[int, int] = (0, 0)
    ) -> None:
        self._img: Image.Image = Image.new("RGBA", (0, 0), _TRANSPARENT)
        super().__init__(width, height, offset=offset)

    @property
    def image(self) -> Image.Image:
        """The backing Pillow image (live, not a copy)."""
        return self._img

    def save_png(self, path: str) -> None:
        self._img.save(path, format="PNG")

    def _reset_buffer(self, width: int, height: int) -> None:
        self._img = Image.new("RGBA", (width, height), _TRANSPARENT)

    def _read(self, x: int, y: int, w: int, h: int) -> ImageData:
        if w == 0 or h == 0:
            return ImageData.create(w, h)
        # crop() pads areas outside the image with zeros
        return pil_to_image_data(self._img.crop((x, y, x + w, y + h)))

    def _write(self, image: ImageData, x: int, y: int) -> None:
        self._img.paste(image_data_to_pil(image), (x, y))

    def _draw(
        self, image: ImageData, x: int, y: int, w: int, h: int, smooth: bool
    ) -> None:
        src = image_data_to_pil(image)
        if src.size != (w, h):
            resample = Image.Resampling.BILINEAR if smooth else Image.Resampling.NEAREST
            src = src.resize((w, h), resample=resample)
        layer = Image.new("RGBA", self._img.size, _TRANSPARENT)
        layer.paste(src, (x, y))
        self._img = Image.alpha_composite(self._img, layer)
