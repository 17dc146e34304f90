"""Command line entry point for extracting prevalent colours from image URLs."""

from __future__ import annotations

import argparse
import asyncio
import logging
from typing import Sequence

from colorscan.config.settings import (
    CONTENT_TYPE_POLICIES,
    FAILURE_POLICIES,
    OUTPUT_MODES,
    Settings,
    get_settings,
)
from colorscan.metrics.prometheus_exporter import start_metrics_server
from colorscan.monitoring.logging import configure_logging
from colorscan.pipeline.errors import ColorScanError
from colorscan.pipeline.runner import run_pipeline

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="colorscan",
        description="Write the three most prevalent colours of every image listed in INFILE.",
    )
    parser.add_argument("infile", help="file with one image URL per line")
    parser.add_argument(
        "--concurrency",
        "--parallelism",
        dest="concurrency",
        type=int,
        help="number of urls/images processed in parallel (default: 10)",
    )
    parser.add_argument("--outfile", help="the name/path of the output file (default: output.csv)")
    parser.add_argument("--output-mode", choices=OUTPUT_MODES, help="how to treat an existing output file")
    parser.add_argument("--failure-policy", choices=FAILURE_POLICIES, help="skip failed urls or abort the run")
    parser.add_argument(
        "--content-type-policy",
        choices=CONTENT_TYPE_POLICIES,
        help="detect the image format from the bytes or trust the Content-Type header",
    )
    parser.add_argument("--timeout", dest="request_timeout", type=float, help="per-request timeout in seconds")
    parser.add_argument("--queue-size", type=int, help="capacity of the work and result queues")
    parser.add_argument("--log-level", help="logging level, e.g. DEBUG or WARNING")
    parser.add_argument("--metrics-port", type=int, help="serve Prometheus metrics on this port")
    return parser


def settings_from_args(args: argparse.Namespace, base: Settings | None = None) -> Settings:
    """Overlay command line flags on top of environment settings."""

    base = base or get_settings()
    return base.with_overrides(
        concurrency=args.concurrency,
        outfile=args.outfile,
        output_mode=args.output_mode,
        failure_policy=args.failure_policy,
        content_type_policy=args.content_type_policy,
        request_timeout=args.request_timeout,
        queue_size=args.queue_size,
        log_level=args.log_level,
        metrics_port=args.metrics_port,
    )


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.infile.strip():
        parser.error("input file can not be empty")

    try:
        settings = settings_from_args(args).validate()
    except ValueError as exc:
        parser.error(str(exc))

    configure_logging(settings.log_level)
    try:
        start_metrics_server(settings.metrics_port)
    except OSError as exc:
        logger.error("Unable to serve metrics on port %d: %s", settings.metrics_port, exc)
        return EXIT_FAILURE

    try:
        summary = asyncio.run(run_pipeline(settings, args.infile))
    except ColorScanError as exc:
        logger.error("%s", exc)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_FAILURE

    return EXIT_FAILURE if summary.aborted else EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
