"""Single consumer that serialises outcomes in completion order."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, TextIO

from colorscan.metrics.prometheus_exporter import item_failures_total, rows_written_total
from colorscan.pipeline.errors import OutputError, PipelineAborted
from colorscan.pipeline.models import ItemFailure, Outcome, ResultRecord
from colorscan.pipeline.tracker import CompletionTracker

logger = logging.getLogger(__name__)


class ResultSink:
    """Owns the output handle; nothing else writes to it."""

    def __init__(
        self,
        result_queue: asyncio.Queue[Optional[Outcome]],
        output: TextIO,
        tracker: CompletionTracker,
        *,
        abort_on_failure: bool = False,
    ) -> None:
        self._queue = result_queue
        self._output = output
        self._tracker = tracker
        self._abort_on_failure = abort_on_failure
        self.written = 0
        self.failed = 0

    async def run(self) -> None:
        """Drain outcomes until the ``None`` sentinel arrives."""

        while True:
            outcome = await self._queue.get()
            if outcome is None:
                return
            try:
                await self.handle(outcome)
            finally:
                await self._tracker.done()
            if isinstance(outcome, ItemFailure) and self._abort_on_failure:
                raise PipelineAborted(outcome.error)

    async def handle(self, outcome: Outcome) -> None:
        if isinstance(outcome, ResultRecord):
            row = outcome.to_row()
            await asyncio.to_thread(self._write, row)
            self.written += 1
            rows_written_total.inc()
            logger.info(row.rstrip("\n"))
            return

        self.failed += 1
        item_failures_total.labels(kind=outcome.error.kind).inc()
        logger.error("Failed to process %s: %s", outcome.url, outcome.error)

    def _write(self, row: str) -> None:
        try:
            self._output.write(row)
            self._output.flush()
        except OSError as exc:
            raise OutputError(f"unable to write output row: {exc}") from exc
