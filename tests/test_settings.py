"""Tests for environment-driven configuration."""

from __future__ import annotations

import pytest

from colorscan.config.settings import Settings, get_settings


def test_defaults_match_cli_contract() -> None:
    settings = get_settings()

    assert settings.concurrency == 10
    assert settings.outfile == "output.csv"
    assert settings.output_mode == "truncate"
    assert settings.failure_policy == "skip"
    assert settings.content_type_policy == "sniff"
    assert settings.allowed_formats == ("JPEG", "PNG")
    assert settings.effective_queue_size == 10


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("COLORSCAN_CONCURRENCY", "4")
    monkeypatch.setenv("COLORSCAN_QUEUE_SIZE", "2")
    monkeypatch.setenv("COLORSCAN_ALLOWED_FORMATS", "png, gif")
    monkeypatch.setenv("COLORSCAN_FAILURE_POLICY", "abort")
    get_settings.cache_clear()

    settings = get_settings()

    assert settings.concurrency == 4
    assert settings.effective_queue_size == 2
    assert settings.allowed_formats == ("PNG", "GIF")
    assert settings.failure_policy == "abort"


def test_with_overrides_ignores_unset_values() -> None:
    settings = Settings().with_overrides(concurrency=3, outfile=None)

    assert settings.concurrency == 3
    assert settings.outfile == "output.csv"


@pytest.mark.parametrize(
    "overrides",
    [
        {"concurrency": 0},
        {"queue_size": -1},
        {"outfile": ""},
        {"output_mode": "overwrite"},
        {"failure_policy": "retry"},
        {"content_type_policy": "guess"},
        {"allowed_formats": ()},
        {"request_timeout": 0},
        {"metrics_port": 70000},
    ],
)
def test_validate_rejects_invalid_values(overrides: dict) -> None:
    with pytest.raises(ValueError):
        Settings(**overrides).validate()
