"""Counted completion for items still travelling through the pipeline."""

from __future__ import annotations

import asyncio

from colorscan.metrics.prometheus_exporter import items_in_flight


class CompletionTracker:
    """Counts submitted items down to zero as their outcomes are handled.

    The reader calls :meth:`add` before handing an item to the workers and the
    sink calls :meth:`done` once per terminal outcome, so the counter can only
    reach zero after the last outcome is processed.
    """

    def __init__(self) -> None:
        self._pending = 0
        self._condition = asyncio.Condition()

    @property
    def pending(self) -> int:
        return self._pending

    def add(self, count: int = 1) -> None:
        if count < 0:
            raise ValueError("count can not be negative")
        self._pending += count
        items_in_flight.inc(count)

    async def done(self) -> None:
        if self._pending == 0:
            raise RuntimeError("done() called more times than add()")
        async with self._condition:
            self._pending -= 1
            items_in_flight.dec()
            if self._pending == 0:
                self._condition.notify_all()

    async def wait(self) -> None:
        """Block until every added item has been marked done."""

        async with self._condition:
            await self._condition.wait_for(lambda: self._pending == 0)
