"""Wires the reader, the worker pool and the sink into one run."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import BinaryIO, Optional, TextIO

from colorscan.config.settings import Settings
from colorscan.fetch.image_client import ImageFetchClient
from colorscan.imgproc.color_extract import ColorExtractor
from colorscan.pipeline.errors import InputError, OutputError, PipelineAborted
from colorscan.pipeline.models import Outcome, RunSummary, WorkItem
from colorscan.pipeline.sink import ResultSink
from colorscan.pipeline.tracker import CompletionTracker
from colorscan.pipeline.workers import WorkerPool

logger = logging.getLogger(__name__)

_OPEN_MODES = {"truncate": "w", "append": "a", "exclusive": "x"}


def open_input(path: str | Path) -> BinaryIO:
    """Open the URL list for reading; lines are decoded one at a time."""

    if not str(path):
        raise InputError("input file can not be empty")
    try:
        return open(path, "rb")
    except OSError as exc:
        raise InputError(f"unable to open input file: {path}") from exc


def open_output(path: str | Path, mode: str = "truncate") -> TextIO:
    """Create or open the destination according to the output mode."""

    try:
        open_mode = _OPEN_MODES[mode]
    except KeyError:
        raise OutputError(f"unknown output mode: {mode}") from None
    try:
        return open(path, open_mode, encoding="utf-8")
    except FileExistsError as exc:
        raise OutputError(f"output file already exists: {path}") from exc
    except OSError as exc:
        raise OutputError(f"unable to open output file: {path}") from exc


async def produce(
    source: BinaryIO,
    work_queue: asyncio.Queue[Optional[WorkItem]],
    tracker: CompletionTracker,
    summary: RunSummary,
) -> None:
    """Feed trimmed, non-blank lines to the workers, counting each one."""

    line_no = 0
    while True:
        raw = await asyncio.to_thread(source.readline)
        if not raw:
            return
        line_no += 1
        stripped = raw.strip()
        if not stripped:
            logger.debug("Skipping blank line %d", line_no)
            continue
        try:
            item = WorkItem(line_no=line_no, url=stripped.decode("utf-8"))
        except UnicodeDecodeError:
            # validate_url turns this into a per-item InputError.
            item = WorkItem(line_no=line_no, url=stripped.decode("utf-8", "backslashreplace"), decoded=False)
        tracker.add()
        summary.submitted += 1
        await work_queue.put(item)


async def _drain(producer: asyncio.Task[None], tracker: CompletionTracker) -> None:
    await producer
    await tracker.wait()


async def run_pipeline(
    settings: Settings,
    input_path: str | Path,
    *,
    fetcher: ImageFetchClient | None = None,
    extractor: ColorExtractor | None = None,
) -> RunSummary:
    """Process every URL of ``input_path`` and write rows to ``settings.outfile``.

    Startup problems (invalid settings, unreadable input, unwritable output)
    raise before any work begins. Under the ``abort`` policy the first failed
    item stops the run; the summary comes back with ``aborted`` set.
    """

    settings.validate()
    source = open_input(input_path)
    try:
        output = open_output(settings.outfile, settings.output_mode)
    except OutputError:
        source.close()
        raise

    owns_fetcher = fetcher is None
    if fetcher is None:
        fetcher = ImageFetchClient(settings)

    work_queue: asyncio.Queue[Optional[WorkItem]] = asyncio.Queue(maxsize=settings.effective_queue_size)
    result_queue: asyncio.Queue[Optional[Outcome]] = asyncio.Queue(maxsize=settings.effective_queue_size)
    tracker = CompletionTracker()
    summary = RunSummary()
    pool = WorkerPool(fetcher, extractor or ColorExtractor(), work_queue, result_queue, settings.concurrency)
    sink = ResultSink(result_queue, output, tracker, abort_on_failure=settings.failure_policy == "abort")

    logger.info(
        "Processing %s with %d workers into %s",
        input_path,
        settings.concurrency,
        settings.outfile,
    )
    pool.start()
    sink_task = asyncio.create_task(sink.run(), name="colorscan-sink")
    producer_task = asyncio.create_task(produce(source, work_queue, tracker, summary), name="colorscan-reader")
    drain_task = asyncio.create_task(_drain(producer_task, tracker), name="colorscan-drain")
    try:
        await asyncio.wait({drain_task, sink_task}, return_when=asyncio.FIRST_COMPLETED)
        if sink_task.done():
            # The sink only stops early by raising.
            sink_task.result()
        drain_task.result()

        await pool.close_input()
        await pool.join()
        await result_queue.put(None)
        await sink_task
    except PipelineAborted as exc:
        summary.aborted = True
        logger.error("Stopping after failure of %s: %s", exc.url, exc.cause)
    finally:
        for task in (drain_task, producer_task, sink_task):
            task.cancel()
        await pool.cancel()
        await asyncio.gather(drain_task, producer_task, sink_task, return_exceptions=True)
        summary.written = sink.written
        summary.failed = sink.failed
        if owns_fetcher:
            await fetcher.close()
        source.close()
        output.close()

    logger.info(
        "Finished: %d submitted, %d written, %d failed%s",
        summary.submitted,
        summary.written,
        summary.failed,
        " (aborted)" if summary.aborted else "",
    )
    return summary
