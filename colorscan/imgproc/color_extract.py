"""Dominant colour extraction utilities."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Union

from colorscan.imgproc.decoder import PixelGrid

MAX_COLOR = 0xFFFFFF


def pack_color(r: int, g: int, b: int, bit_depth: int = 8) -> int:
    """Pack channels into a 24-bit key, dropping precision beyond 8 bits."""

    shift = bit_depth - 8
    if shift > 0:
        r, g, b = r >> shift, g >> shift, b >> shift
    return (r & 0xFF) << 16 | (g & 0xFF) << 8 | (b & 0xFF)


def format_color(key: int) -> str:
    """Render a colour key as ``#rrggbb``."""

    if not 0 <= key <= MAX_COLOR:
        raise ValueError(f"colour key out of range: {key}")
    return f"#{key:06x}"


@dataclass(frozen=True, slots=True)
class PresentColor:
    """A ranked colour together with the number of pixels it covers."""

    key: int
    count: int

    @property
    def present(self) -> bool:
        return True

    @property
    def hex(self) -> str:
        return format_color(self.key)


@dataclass(frozen=True, slots=True)
class AbsentColor:
    """Placeholder for a rank the image has no colour for."""

    @property
    def present(self) -> bool:
        return False

    @property
    def hex(self) -> str:
        return ""


ABSENT = AbsentColor()

ColorSlot = Union[PresentColor, AbsentColor]


@dataclass(frozen=True, slots=True)
class TopColors:
    """The three most prevalent colours, ranked by pixel count."""

    first: ColorSlot = ABSENT
    second: ColorSlot = ABSENT
    third: ColorSlot = ABSENT

    @property
    def slots(self) -> tuple[ColorSlot, ColorSlot, ColorSlot]:
        return (self.first, self.second, self.third)

    def hex_values(self) -> list[str]:
        """Return ``#rrggbb`` per rank, empty strings for absent ranks."""

        return [slot.hex for slot in self.slots]


class ColorExtractor:
    """Exact RGB histogram-based colour detector.

    Ties between equally frequent colours are resolved in favour of the colour
    seen first during the row-major scan, since the histogram keeps insertion
    order and a leader is only displaced by a strictly higher count.
    """

    def build_histogram(self, grid: PixelGrid) -> dict[int, int]:
        """Count every pixel of the grid by its packed colour key."""

        histogram: dict[int, int] = {}
        data = grid.data
        if grid.bit_depth == 8 and grid.samples_per_pixel == 3:
            for offset in range(0, len(data), 3):
                key = data[offset] << 16 | data[offset + 1] << 8 | data[offset + 2]
                histogram[key] = histogram.get(key, 0) + 1
            return histogram

        bit_depth = grid.bit_depth
        for r, g, b in grid.iter_pixels():
            key = pack_color(r, g, b, bit_depth)
            histogram[key] = histogram.get(key, 0) + 1
        return histogram

    def top_colors(self, histogram: dict[int, int]) -> TopColors:
        """Select the three leaders in one pass without sorting the histogram."""

        leaders: list[ColorSlot] = [ABSENT, ABSENT, ABSENT]
        counts = [0, 0, 0]
        for key, count in histogram.items():
            if count > counts[0]:
                leaders[1:] = leaders[:2]
                counts[1:] = counts[:2]
                leaders[0], counts[0] = PresentColor(key, count), count
            elif count > counts[1]:
                leaders[2], counts[2] = leaders[1], counts[1]
                leaders[1], counts[1] = PresentColor(key, count), count
            elif count > counts[2]:
                leaders[2], counts[2] = PresentColor(key, count), count
        return TopColors(*leaders)

    def tally(self, grid: PixelGrid) -> TopColors:
        """Return the three most prevalent exact colours of a decoded image."""

        return self.top_colors(self.build_histogram(grid))

    def extract_palette(self, pixels: Iterable[tuple[int, int, int]], top_n: int = 3) -> list[str]:
        """Return hex codes for the most common colours of 8-bit RGB pixels."""

        if not 0 < top_n <= 3:
            raise ValueError("top_n must be between 1 and 3")
        slots = self.tally(PixelGrid.from_rows([list(pixels)])).slots[:top_n]
        return [slot.hex for slot in slots if slot.present]
