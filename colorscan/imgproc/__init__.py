"""Image decoding and colour statistics."""

from .color_extract import (
    ABSENT,
    AbsentColor,
    ColorExtractor,
    PresentColor,
    TopColors,
    format_color,
    pack_color,
)
from .decoder import PixelGrid, decode_image

__all__ = [
    "ABSENT",
    "AbsentColor",
    "ColorExtractor",
    "PixelGrid",
    "PresentColor",
    "TopColors",
    "decode_image",
    "format_color",
    "pack_color",
]
