"""Shared fixtures: synthetic images and clean settings."""

from __future__ import annotations

from io import BytesIO
from typing import Callable, Sequence

import pytest
from PIL import Image

from colorscan.config.settings import get_settings

Rows = Sequence[Sequence[tuple[int, int, int]]]


def encode_image(rows: Rows, image_format: str = "PNG") -> bytes:
    """Encode nested RGB rows with Pillow."""

    height = len(rows)
    width = len(rows[0])
    img = Image.new("RGB", (width, height))
    img.putdata([pixel for row in rows for pixel in row])
    buffer = BytesIO()
    img.save(buffer, format=image_format)
    return buffer.getvalue()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return encode_image


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "COLORSCAN_CONCURRENCY",
        "COLORSCAN_OUTFILE",
        "COLORSCAN_OUTPUT_MODE",
        "COLORSCAN_FAILURE_POLICY",
        "COLORSCAN_CONTENT_TYPE_POLICY",
        "COLORSCAN_ALLOWED_FORMATS",
        "COLORSCAN_REQUEST_TIMEOUT",
        "COLORSCAN_QUEUE_SIZE",
        "COLORSCAN_METRICS_PORT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
