"""Decode a viewport capture and crop the selected area out of it."""

from __future__ import annotations

import base64
import binascii
from io import BytesIO
from typing import Union
from urllib.parse import unquote_to_bytes

from PIL import Image, UnidentifiedImageError

from ..config import MIN_SELECTION_PX
from ..models.messages import SelectionRect
from .errors import CropError, ImageDecodeError

RawImage = Union[bytes, bytearray, str]


def clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, v))


def decode_data_uri(uri: str) -> bytes:
    """Return the payload of a ``data:`` URI (base64 or percent-encoded body)."""
    if not uri.startswith("data:"):
        raise ImageDecodeError("Not a data URI")
    header, sep, body = uri.partition(",")
    if not sep:
        raise ImageDecodeError("Malformed data URI: missing ','")
    if ";base64" in header:
        try:
            return base64.b64decode(body, validate=False)
        except (binascii.Error, ValueError) as e:
            raise ImageDecodeError(f"Malformed base64 image data: {e}") from e
    return unquote_to_bytes(body)


def load_image(raw: RawImage) -> Image.Image:
    """Decode PNG/JPEG bytes or a data URI into a loaded Pillow image."""
    if isinstance(raw, str):
        data = decode_data_uri(raw.strip())
    elif isinstance(raw, (bytes, bytearray)):
        data = bytes(raw)
    else:
        raise ImageDecodeError(f"Unsupported image payload: {type(raw).__name__}")

    if not data:
        raise ImageDecodeError("Captured image is empty")

    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ImageDecodeError(f"Could not decode captured image: {e}") from e
    return image


def clamp_rect(rect: SelectionRect, width: int, height: int) -> tuple[int, int, int, int]:
    """Fit ``rect`` into a ``width`` x ``height`` image. Returns (x, y, w, h)."""
    x = clamp(rect.x, 0, width - 1)
    y = clamp(rect.y, 0, height - 1)
    w = clamp(rect.w, 1, width - x)
    h = clamp(rect.h, 1, height - y)
    return x, y, w, h


def crop_captured_image(raw: RawImage, rect: SelectionRect) -> bytes:
    """Crop ``rect`` (device pixels) out of a capture and encode it as PNG.

    Raises:
        ImageDecodeError: ``raw`` is not a decodable image.
        CropError: the clamped area is smaller than the minimum selection.
    """
    image = load_image(raw)
    x, y, w, h = clamp_rect(rect, image.width, image.height)
    if w < MIN_SELECTION_PX or h < MIN_SELECTION_PX:
        raise CropError(
            f"Selected area is too small ({w}x{h}px after clipping, "
            f"minimum {MIN_SELECTION_PX}px)"
        )

    if image.mode not in ("RGB", "RGBA"):
        image = image.convert("RGBA")
    region = image.crop((x, y, x + w, y + h))

    buffer = BytesIO()
    region.save(buffer, format="PNG")
    return buffer.getvalue()
