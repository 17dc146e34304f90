"""Turn downloaded image bodies into pixel grids."""

from __future__ import annotations

import logging
from array import array
from dataclasses import dataclass
from io import BytesIO
from typing import Iterable, Iterator, Sequence

from PIL import Image, UnidentifiedImageError

from colorscan.pipeline.errors import DecodeError

logger = logging.getLogger(__name__)

CONTENT_TYPE_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/pjpeg": "JPEG",
    "image/png": "PNG",
    "image/x-png": "PNG",
    "image/gif": "GIF",
    "image/webp": "WEBP",
    "image/bmp": "BMP",
}

_WIDE_GRAY_MODES = {"I", "I;16", "I;16L", "I;16B", "I;16N"}


@dataclass(frozen=True, slots=True)
class PixelGrid:
    """Fully materialised image backed by a flat row-major sample buffer.

    ``samples_per_pixel`` is 3 for RGB data and 1 for greyscale, where the
    single level stands for all three channels. 8-bit data lives in ``bytes``,
    wider data in an ``array``.
    """

    width: int
    height: int
    data: bytes | array
    bit_depth: int = 8
    samples_per_pixel: int = 3

    @property
    def bounds(self) -> tuple[int, int, int, int]:
        return (0, 0, self.width, self.height)

    def at(self, x: int, y: int) -> tuple[int, int, int]:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel ({x}, {y}) outside {self.width}x{self.height} grid")
        offset = (y * self.width + x) * self.samples_per_pixel
        if self.samples_per_pixel == 1:
            level = self.data[offset]
            return (level, level, level)
        return (self.data[offset], self.data[offset + 1], self.data[offset + 2])

    def iter_pixels(self) -> Iterator[tuple[int, int, int]]:
        """Yield ``(r, g, b)`` per pixel in row-major order."""

        data = self.data
        if self.samples_per_pixel == 1:
            for level in data:
                yield (level, level, level)
            return
        for offset in range(0, len(data), 3):
            yield (data[offset], data[offset + 1], data[offset + 2])

    @classmethod
    def from_rows(cls, rows: Iterable[Sequence[tuple[int, int, int]]], bit_depth: int = 8) -> PixelGrid:
        """Build a grid from nested rows, mostly useful for synthetic images."""

        materialised = [list(row) for row in rows]
        width = len(materialised[0]) if materialised else 0
        if any(len(row) != width for row in materialised):
            raise ValueError("all rows must have the same width")
        height = len(materialised) if width else 0
        samples = [channel for row in materialised for pixel in row for channel in pixel]
        data: bytes | array = bytes(samples) if bit_depth == 8 else array("H", samples)
        return cls(width=width, height=height, data=data, bit_depth=bit_depth)


def media_type(content_type: str | None) -> str:
    """Strip parameters from a Content-Type header value."""

    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


def _formats_for(content_type: str | None, policy: str) -> list[str] | None:
    if policy == "sniff":
        return None
    declared = media_type(content_type)
    image_format = CONTENT_TYPE_FORMATS.get(declared)
    if image_format is None:
        raise DecodeError(f"unsupported content type: {declared or 'missing'}")
    return [image_format]


def to_grid(img: Image.Image) -> PixelGrid:
    """Materialise a Pillow image, keeping 16-bit greyscale precision."""

    width, height = img.size
    if img.mode in _WIDE_GRAY_MODES:
        wide = img if img.mode == "I" else img.convert("I")
        levels = array("H", (min(max(value, 0), 0xFFFF) for value in array("i", wide.tobytes("raw", "I"))))
        return PixelGrid(width=width, height=height, data=levels, bit_depth=16, samples_per_pixel=1)

    rgb = img if img.mode == "RGB" else img.convert("RGB")
    return PixelGrid(width=width, height=height, data=rgb.tobytes())


def decode_image(
    body: bytes,
    content_type: str | None = None,
    *,
    policy: str = "sniff",
    allowed_formats: Iterable[str] = ("JPEG", "PNG"),
) -> PixelGrid:
    """Decode an image body into a pixel grid.

    With the ``sniff`` policy Pillow detects the container from the bytes and
    the declared content type is ignored. With ``header`` the content type
    picks the codec and anything unrecognised is rejected up front.
    """

    allowed = {image_format.upper() for image_format in allowed_formats}
    formats = _formats_for(content_type, policy)
    if formats is not None and formats[0] not in allowed:
        raise DecodeError(f"image format {formats[0]} is not enabled")

    try:
        with Image.open(BytesIO(body), formats=formats) as img:
            if img.format not in allowed:
                raise DecodeError(f"image format {img.format or 'unknown'} is not enabled")
            img.load()
            grid = to_grid(img)
    except DecodeError:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"unable to decode image: {exc}") from exc
    except (OSError, ValueError, SyntaxError) as exc:
        raise DecodeError(f"image data is corrupt: {exc}") from exc

    logger.debug("Decoded %s image %dx%d", img.format, grid.width, grid.height)
    return grid
