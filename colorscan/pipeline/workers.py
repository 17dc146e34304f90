"""Fixed pool of asyncio workers turning URLs into colour records."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from colorscan.fetch.image_client import FetchedImage, ImageFetchClient
from colorscan.imgproc.color_extract import ColorExtractor, TopColors
from colorscan.pipeline.errors import ColorScanError, InputError
from colorscan.pipeline.models import ItemFailure, Outcome, ResultRecord, WorkItem

logger = logging.getLogger(__name__)


def validate_url(item: WorkItem) -> str:
    """Return the URL of an item or raise ``InputError`` if it is not fetchable."""

    if not item.decoded:
        raise InputError(f"input line {item.line_no} is not valid UTF-8: {item.url}", url=item.url)
    try:
        url = httpx.URL(item.url)
    except httpx.InvalidURL as exc:
        raise InputError(f"input is not an URL (line {item.line_no}): {item.url}", url=item.url) from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise InputError(f"input is not an URL (line {item.line_no}): {item.url}", url=item.url)
    return item.url


class WorkerPool:
    """Workers sharing one input queue, so each item is claimed exactly once."""

    def __init__(
        self,
        fetcher: ImageFetchClient,
        extractor: ColorExtractor,
        work_queue: asyncio.Queue[Optional[WorkItem]],
        result_queue: asyncio.Queue[Optional[Outcome]],
        concurrency: int,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be a positive integer")
        self._fetcher = fetcher
        self._extractor = extractor
        self._work_queue = work_queue
        self._result_queue = result_queue
        self._concurrency = concurrency
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def concurrency(self) -> int:
        return self._concurrency

    def start(self) -> None:
        self._tasks = [
            asyncio.create_task(self._run(index), name=f"colorscan-worker-{index}")
            for index in range(self._concurrency)
        ]

    async def close_input(self) -> None:
        """Signal end of input; every worker exits after the queue drains."""

        for _ in range(self._concurrency):
            await self._work_queue.put(None)

    async def join(self) -> None:
        await asyncio.gather(*self._tasks)

    async def cancel(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _run(self, index: int) -> None:
        while True:
            item = await self._work_queue.get()
            if item is None:
                logger.debug("Worker %d finished", index)
                return
            outcome = await self.process(item)
            await self._result_queue.put(outcome)

    async def process(self, item: WorkItem) -> Outcome:
        """Fetch, decode and tally one item; failures become outcomes too."""

        try:
            url = validate_url(item)
            fetched = await self._fetcher.fetch_bytes(url)
            colors = await asyncio.to_thread(self._analyse, fetched)
        except ColorScanError as exc:
            if exc.url is None:
                exc.url = item.url
            return ItemFailure(item=item, error=exc)
        except Exception as exc:
            logger.exception("Unexpected error while processing %s", item.url)
            error = ColorScanError(f"unexpected error: {exc!r}", url=item.url)
            return ItemFailure(item=item, error=error)
        return ResultRecord(url=item.url, colors=colors)

    def _analyse(self, fetched: FetchedImage) -> TopColors:
        grid = self._fetcher.decode(fetched)
        return self._extractor.tally(grid)
