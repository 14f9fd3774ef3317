"""PNG data-URL codec for :class:`~pixelscope.core.models.ImageData`.

Encoding always produces a lossless ``data:image/png;base64,...`` string.
Decoding accepts any format Pillow can read and converts it to RGBA.
"""

from __future__ import annotations

import base64
import binascii
import io

from PIL import Image, UnidentifiedImageError

from pixelscope.core.models import ImageData
from pixelscope.errors import DecodeFailedError

DATA_URL_PREFIX = "data:image/png;base64,"


def image_data_to_pil(image: ImageData) -> Image.Image:
    return Image.frombytes("RGBA", (image.width, image.height), bytes(image.data))


def pil_to_image_data(img: Image.Image) -> ImageData:
    if img.mode != "RGBA":
        img = img.convert("RGBA")
    w, h = img.size
    return ImageData(w, h, bytearray(img.tobytes()))


def encode_png(image: ImageData) -> bytes:
    buf = io.BytesIO()
    image_data_to_pil(image).save(buf, format="PNG")
    return buf.getvalue()


def encode_data_url(image: ImageData) -> str:
    """Encode *image* as a PNG data URL; empty images encode to ``""``."""
    if image.is_empty:
        return ""
    return DATA_URL_PREFIX + base64.b64encode(encode_png(image)).decode("ascii")


def decode_bytes(raw: bytes) -> ImageData:
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.load()
            return pil_to_image_data(img)
    except (
        UnidentifiedImageError,
        Image.DecompressionBombError,
        OSError,
        ValueError,
    ) as e:
        raise DecodeFailedError(f"cannot decode image: {e}") from e


def decode_data_url(data_url: str) -> ImageData:
    """Decode a ``data:<mime>;base64,<payload>`` URL into an RGBA buffer.

    Raises :class:`DecodeFailedError` for anything that is not a base64
    data URL holding a readable image.
    """
    if not data_url.startswith("data:"):
        raise DecodeFailedError("not a data URL")
    header, sep, payload = data_url.partition(",")
    if not sep or not header.endswith(";base64"):
        raise DecodeFailedError("data URL is not base64 encoded")
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeFailedError(f"invalid base64 payload: {e}") from e
    return decode_bytes(raw)
