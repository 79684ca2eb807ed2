"""
Photo Pipeline
==============
Turns a user-supplied image file into a small JPEG data URL that can be
stored inline with a goal.

Steps: decode -> apply EXIF orientation -> flatten to RGB -> shrink to fit
a square bounding box -> JPEG at fixed quality -> base64 data URL.

Decoding runs in a worker thread, so `resize` is the one place the event
loop is released while a goal mutation is in flight.
"""

import io
import os
import base64
import asyncio
import struct
from typing import BinaryIO, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import ImageDecodeError
from .logger import get_logger

logger = get_logger("photo_pipeline")

DEFAULT_MAX_DIMENSION = 800
DEFAULT_QUALITY = 70
DATA_URL_PREFIX = "data:image/jpeg;base64,"

ImageSource = Union[bytes, str, os.PathLike, BinaryIO]


def _read_source(source: ImageSource) -> bytes:
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, (str, os.PathLike)):
        try:
            with open(source, 'rb') as f:
                return f.read()
        except OSError as e:
            raise ImageDecodeError(f"Could not read image file {source}: {e}") from e
    return source.read()


def encode_image(data: bytes, max_dimension: int = DEFAULT_MAX_DIMENSION,
                 quality: int = DEFAULT_QUALITY) -> str:
    """Synchronous decode/downsample/encode. Returns a JPEG data URL."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            img = ImageOps.exif_transpose(img)
            if img.mode != "RGB":
                # Transparent areas become white instead of black
                if img.mode in ("RGBA", "LA") or "transparency" in img.info:
                    rgba = img.convert("RGBA")
                    background = Image.new("RGB", rgba.size, (255, 255, 255))
                    background.paste(rgba, mask=rgba.getchannel("A"))
                    img = background
                else:
                    img = img.convert("RGB")
            img.thumbnail((max_dimension, max_dimension), Image.Resampling.LANCZOS)

            out = io.BytesIO()
            img.save(out, format="JPEG", quality=quality, optimize=True)
    # Pillow reports broken chunks and truncated headers with parser errors
    # (SyntaxError, struct.error, ...) rather than OSError
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError,
            SyntaxError, EOFError, IndexError, TypeError, struct.error) as e:
        raise ImageDecodeError(f"Not a readable image: {e}") from e

    return DATA_URL_PREFIX + base64.b64encode(out.getvalue()).decode("ascii")


def decode_data_url(data_url: str) -> bytes:
    """Raw JPEG bytes from a stored data URL (used for exporting photos)."""
    if not data_url.startswith(DATA_URL_PREFIX):
        raise ImageDecodeError("Stored photo is not a JPEG data URL")
    return base64.b64decode(data_url[len(DATA_URL_PREFIX):])


class PhotoPipeline:
    """Async wrapper around `encode_image` with fixed size/quality settings."""

    def __init__(self, max_dimension: int = DEFAULT_MAX_DIMENSION,
                 quality: int = DEFAULT_QUALITY):
        self.max_dimension = max_dimension
        self.quality = quality

    async def resize(self, file: ImageSource) -> str:
        """
        Downsample `file` (bytes, path or binary file object) and return
        the encoded data URL.

        Raises:
            ImageDecodeError: the input could not be read or decoded
        """
        data = await asyncio.to_thread(_read_source, file)
        result = await asyncio.to_thread(
            encode_image, data, self.max_dimension, self.quality
        )
        logger.debug("Encoded photo: %d bytes in, %d chars out", len(data), len(result))
        return result
