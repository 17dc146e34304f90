"""Values passed between the reader, the workers and the sink."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from colorscan.imgproc.color_extract import TopColors
from colorscan.pipeline.errors import ColorScanError


@dataclass(frozen=True, slots=True)
class WorkItem:
    """One trimmed, non-blank input line."""

    line_no: int
    url: str
    # False when the raw line was not valid UTF-8; ``url`` then holds escapes.
    decoded: bool = True


@dataclass(frozen=True, slots=True)
class ResultRecord:
    """Successful outcome: the source URL and its most prevalent colours."""

    url: str
    colors: TopColors

    def to_row(self) -> str:
        return ", ".join([self.url, *self.colors.hex_values()]) + "\n"


@dataclass(frozen=True, slots=True)
class ItemFailure:
    """Terminal outcome of an item that produced no row."""

    item: WorkItem
    error: ColorScanError

    @property
    def url(self) -> str:
        return self.item.url


Outcome = Union[ResultRecord, ItemFailure]


@dataclass(slots=True)
class RunSummary:
    """Counters reported once the run is over."""

    submitted: int = 0
    written: int = 0
    failed: int = 0
    aborted: bool = False
