"""Run configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from functools import lru_cache
from pathlib import Path
from typing import Any

OUTPUT_MODES = ("truncate", "append", "exclusive")
FAILURE_POLICIES = ("skip", "abort")
CONTENT_TYPE_POLICIES = ("sniff", "header")


def _load_env_file(path: str = ".env") -> None:
    """Populate os.environ from the provided .env file if it exists."""

    env_path = Path(path)
    if not env_path.exists():
        return

    for line in env_path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def _split_formats(raw: str) -> tuple[str, ...]:
    return tuple(part.strip().upper() for part in raw.split(",") if part.strip())


@dataclass(frozen=True, slots=True)
class Settings:
    """Tunables for a single colour extraction run."""

    log_level: str = "INFO"

    concurrency: int = 10
    # 0 means "same as concurrency"; asyncio queues cannot hand off synchronously.
    queue_size: int = 0
    outfile: str = "output.csv"
    output_mode: str = "truncate"
    failure_policy: str = "skip"

    content_type_policy: str = "sniff"
    allowed_formats: tuple[str, ...] = ("JPEG", "PNG")
    request_timeout: float = 30.0
    user_agent: str = "colorscan/0.1"

    metrics_port: int = 0

    @property
    def effective_queue_size(self) -> int:
        return self.queue_size or self.concurrency

    def with_overrides(self, **overrides: Any) -> Settings:
        """Return a copy with every non-``None`` override applied."""

        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)

    def validate(self) -> Settings:
        """Raise ``ValueError`` when any option is out of range."""

        if self.concurrency < 1:
            raise ValueError(f"concurrency must be a positive integer, got {self.concurrency}")
        if self.queue_size < 0:
            raise ValueError(f"queue size can not be negative, got {self.queue_size}")
        if not self.outfile:
            raise ValueError("output file path can not be empty")
        if self.output_mode not in OUTPUT_MODES:
            raise ValueError(f"unknown output mode: {self.output_mode}")
        if self.failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"unknown failure policy: {self.failure_policy}")
        if self.content_type_policy not in CONTENT_TYPE_POLICIES:
            raise ValueError(f"unknown content type policy: {self.content_type_policy}")
        if not self.allowed_formats:
            raise ValueError("at least one image format must be allowed")
        if self.request_timeout <= 0:
            raise ValueError(f"request timeout must be positive, got {self.request_timeout}")
        if not 0 <= self.metrics_port <= 65535:
            raise ValueError(f"invalid metrics port: {self.metrics_port}")
        return self


def _build_settings() -> Settings:
    _load_env_file()

    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        concurrency=int(os.getenv("COLORSCAN_CONCURRENCY", "10")),
        queue_size=int(os.getenv("COLORSCAN_QUEUE_SIZE", "0")),
        outfile=os.getenv("COLORSCAN_OUTFILE", "output.csv"),
        output_mode=os.getenv("COLORSCAN_OUTPUT_MODE", "truncate"),
        failure_policy=os.getenv("COLORSCAN_FAILURE_POLICY", "skip"),
        content_type_policy=os.getenv("COLORSCAN_CONTENT_TYPE_POLICY", "sniff"),
        allowed_formats=_split_formats(os.getenv("COLORSCAN_ALLOWED_FORMATS", "JPEG,PNG")),
        request_timeout=float(os.getenv("COLORSCAN_REQUEST_TIMEOUT", "30")),
        user_agent=os.getenv("COLORSCAN_USER_AGENT", "colorscan/0.1"),
        metrics_port=int(os.getenv("COLORSCAN_METRICS_PORT", "0")),
    )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance to avoid re-reading configuration."""

    return _build_settings()
