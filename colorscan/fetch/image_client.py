"""Async wrapper that downloads images and hands them to the decoder."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from colorscan.config.settings import Settings
from colorscan.imgproc.decoder import PixelGrid, decode_image
from colorscan.pipeline.errors import DecodeError, FetchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FetchedImage:
    """Raw response body together with its declared media type."""

    url: str
    body: bytes
    content_type: str | None


class ImageFetchClient:
    """Single-attempt image downloader sharing one connection pool."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._client = httpx.AsyncClient(
            timeout=settings.request_timeout,
            follow_redirects=True,
            headers={"User-Agent": settings.user_agent},
            limits=httpx.Limits(max_connections=settings.concurrency),
            transport=transport,
        )

    async def __aenter__(self) -> ImageFetchClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the underlying HTTP client."""

        await self._client.aclose()

    async def fetch_bytes(self, url: str) -> FetchedImage:
        """Issue one GET and return the body of a successful response."""

        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise FetchError(f"timed out fetching {url}", url=url) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise FetchError(f"{url} responded with status {status}", url=url, status_code=status) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(f"unable to reach url: {url}, err: {exc}", url=url) from exc

        logger.debug("Fetched %s (%d bytes)", url, len(response.content))
        return FetchedImage(url=url, body=response.content, content_type=response.headers.get("content-type"))

    def decode(self, fetched: FetchedImage) -> PixelGrid:
        """Decode a downloaded body according to the configured policy."""

        try:
            return decode_image(
                fetched.body,
                fetched.content_type,
                policy=self._settings.content_type_policy,
                allowed_formats=self._settings.allowed_formats,
            )
        except DecodeError as exc:
            exc.url = fetched.url
            raise

    async def fetch(self, url: str) -> PixelGrid:
        """Download and decode the image behind ``url``."""

        fetched = await self.fetch_bytes(url)
        return await asyncio.to_thread(self.decode, fetched)
