"""Prometheus exporter helpers."""

from __future__ import annotations

import logging

from prometheus_client import Counter, Gauge, start_http_server

logger = logging.getLogger(__name__)

rows_written_total = Counter(
    "colorscan_rows_written_total",
    "Total number of output rows written.",
)

item_failures_total = Counter(
    "colorscan_item_failures_total",
    "Total number of work items that ended in a failure.",
    ["kind"],
)

items_in_flight = Gauge(
    "colorscan_items_in_flight",
    "Number of submitted work items without a terminal outcome.",
)


def start_metrics_server(port: int) -> bool:
    """Expose the metrics over HTTP; a port of 0 disables the exporter."""

    if not port:
        return False
    start_http_server(port)
    logger.info("Serving metrics on port %d", port)
    return True
