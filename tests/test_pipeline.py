"""End-to-end runs of the pipeline against a mocked HTTP transport."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from colorscan.config.settings import Settings
from colorscan.fetch.image_client import ImageFetchClient
from colorscan.pipeline.errors import InputError, OutputError
from colorscan.pipeline.models import WorkItem
from colorscan.pipeline.runner import run_pipeline
from colorscan.pipeline.workers import validate_url

A = (0x12, 0x34, 0x56)
B = (0xAB, 0xCD, 0xEF)


def _write_input(tmp_path: Path, lines: list[str]) -> Path:
    path = tmp_path / "urls.txt"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _settings(tmp_path: Path, **overrides) -> Settings:
    return Settings().with_overrides(outfile=str(tmp_path / "output.csv"), **overrides)


def _fetcher(settings: Settings, routes: dict[str, bytes]) -> ImageFetchClient:
    def handler(request: httpx.Request) -> httpx.Response:
        body = routes.get(request.url.path)
        if body is None:
            return httpx.Response(404, text="not found")
        return httpx.Response(200, content=body)

    return ImageFetchClient(settings, transport=httpx.MockTransport(handler))


async def _run(settings: Settings, input_path: Path, fetcher: ImageFetchClient):
    try:
        return await asyncio.wait_for(run_pipeline(settings, input_path, fetcher=fetcher), timeout=10)
    finally:
        await fetcher.close()


@pytest.mark.asyncio
async def test_mixed_input_skips_bad_url_without_hanging(tmp_path: Path, make_image, caplog) -> None:
    settings = _settings(tmp_path, concurrency=2)
    routes = {
        "/a.png": make_image([[A, A], [A, B]]),
        "/b.jpg": make_image([[B] * 8] * 8, image_format="JPEG"),
    }
    input_path = _write_input(tmp_path, ["http://x/a.png", "not a url", "http://x/b.jpg"])

    with caplog.at_level("ERROR"):
        summary = await _run(settings, input_path, _fetcher(settings, routes))

    rows = (tmp_path / "output.csv").read_text(encoding="utf-8").splitlines()
    assert (summary.submitted, summary.written, summary.failed) == (3, 2, 1)
    assert not summary.aborted
    assert "http://x/a.png, #123456, #abcdef, " in rows
    assert sorted(row.split(", ")[0] for row in rows) == ["http://x/a.png", "http://x/b.jpg"]
    assert any("not a url" in message for message in caplog.messages)


@pytest.mark.asyncio
async def test_undecodable_line_fails_alone(tmp_path: Path, make_image, caplog) -> None:
    settings = _settings(tmp_path, concurrency=2)
    routes = {"/a.png": make_image([[A]]), "/b.png": make_image([[B]])}
    input_path = tmp_path / "urls.txt"
    input_path.write_bytes(b"http://x/a.png\n\xff\xfe bad\nhttp://x/b.png\n")

    with caplog.at_level("ERROR"):
        summary = await _run(settings, input_path, _fetcher(settings, routes))

    rows = (tmp_path / "output.csv").read_text(encoding="utf-8").splitlines()
    assert (summary.submitted, summary.written, summary.failed) == (3, 2, 1)
    assert sorted(rows) == ["http://x/a.png, #123456, , ", "http://x/b.png, #abcdef, , "]
    assert any("line 2 is not valid UTF-8" in message for message in caplog.messages)


@pytest.mark.asyncio
async def test_not_found_item_does_not_affect_others(tmp_path: Path, make_image) -> None:
    settings = _settings(tmp_path, concurrency=3)
    routes = {"/ok.png": make_image([[A]])}
    input_path = _write_input(tmp_path, ["http://x/missing.png", "http://x/ok.png"])

    summary = await _run(settings, input_path, _fetcher(settings, routes))

    assert (summary.written, summary.failed) == (1, 1)
    assert (tmp_path / "output.csv").read_text(encoding="utf-8") == "http://x/ok.png, #123456, , \n"


@pytest.mark.parametrize("concurrency", [1, 3, 7])
@pytest.mark.asyncio
async def test_every_item_reaches_exactly_one_outcome(tmp_path: Path, make_image, concurrency: int) -> None:
    settings = _settings(tmp_path, concurrency=concurrency, queue_size=1)
    body = make_image([[A, B, B]])
    routes = {f"/{index}.png": body for index in range(0, 20, 2)}
    urls = [f"http://x/{index}.png" for index in range(20)]
    input_path = _write_input(tmp_path, urls)

    summary = await _run(settings, input_path, _fetcher(settings, routes))

    rows = (tmp_path / "output.csv").read_text(encoding="utf-8").splitlines()
    written_urls = [row.split(", ")[0] for row in rows]
    assert summary.submitted == 20
    assert summary.written + summary.failed == 20
    assert summary.failed == 10
    assert len(written_urls) == len(set(written_urls)) == 10
    assert all(row.endswith(", #abcdef, #123456, ") for row in rows)


@pytest.mark.parametrize("concurrency", [1, 3, 5])
@pytest.mark.asyncio
async def test_in_flight_fetches_reach_but_never_exceed_concurrency(
    tmp_path: Path,
    make_image,
    concurrency: int,
) -> None:
    settings = _settings(tmp_path, concurrency=concurrency)
    body = make_image([[A]])
    in_flight = 0
    peak = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        try:
            await asyncio.sleep(0.02)
        finally:
            in_flight -= 1
        return httpx.Response(200, content=body)

    fetcher = ImageFetchClient(settings, transport=httpx.MockTransport(handler))
    input_path = _write_input(tmp_path, [f"http://x/{index}.png" for index in range(4 * concurrency)])

    summary = await _run(settings, input_path, fetcher)

    assert summary.written == 4 * concurrency
    assert peak == concurrency
    assert in_flight == 0


@pytest.mark.asyncio
async def test_blank_lines_are_not_work_items(tmp_path: Path, make_image) -> None:
    settings = _settings(tmp_path)
    routes = {"/a.png": make_image([[A]])}
    input_path = _write_input(tmp_path, ["", "  http://x/a.png  ", "   "])

    summary = await _run(settings, input_path, _fetcher(settings, routes))

    assert (summary.submitted, summary.written, summary.failed) == (1, 1, 0)


@pytest.mark.asyncio
async def test_empty_input_finishes_immediately(tmp_path: Path) -> None:
    settings = _settings(tmp_path)
    input_path = tmp_path / "urls.txt"
    input_path.write_text("", encoding="utf-8")

    summary = await _run(settings, input_path, _fetcher(settings, {}))

    assert summary.submitted == 0
    assert (tmp_path / "output.csv").read_text(encoding="utf-8") == ""


@pytest.mark.asyncio
async def test_abort_policy_stops_run(tmp_path: Path, make_image) -> None:
    settings = _settings(tmp_path, concurrency=1, failure_policy="abort")
    routes = {"/ok.png": make_image([[A]])}
    input_path = _write_input(tmp_path, ["http://x/missing.png"] + ["http://x/ok.png"] * 10)

    summary = await _run(settings, input_path, _fetcher(settings, routes))

    assert summary.aborted
    assert summary.failed == 1
    assert summary.written < 10


@pytest.mark.asyncio
async def test_truncate_mode_replaces_previous_output(tmp_path: Path, make_image) -> None:
    settings = _settings(tmp_path)
    (tmp_path / "output.csv").write_text("stale row that is much longer than the new one\n" * 3, encoding="utf-8")
    routes = {"/a.png": make_image([[A]])}
    input_path = _write_input(tmp_path, ["http://x/a.png"])

    await _run(settings, input_path, _fetcher(settings, routes))

    assert (tmp_path / "output.csv").read_text(encoding="utf-8") == "http://x/a.png, #123456, , \n"


@pytest.mark.asyncio
async def test_append_mode_keeps_previous_output(tmp_path: Path, make_image) -> None:
    settings = _settings(tmp_path, output_mode="append")
    (tmp_path / "output.csv").write_text("old\n", encoding="utf-8")
    routes = {"/a.png": make_image([[A]])}
    input_path = _write_input(tmp_path, ["http://x/a.png"])

    await _run(settings, input_path, _fetcher(settings, routes))

    assert (tmp_path / "output.csv").read_text(encoding="utf-8") == "old\nhttp://x/a.png, #123456, , \n"


@pytest.mark.asyncio
async def test_exclusive_mode_refuses_existing_output(tmp_path: Path) -> None:
    settings = _settings(tmp_path, output_mode="exclusive")
    (tmp_path / "output.csv").write_text("old\n", encoding="utf-8")
    input_path = _write_input(tmp_path, ["http://x/a.png"])
    fetcher = _fetcher(settings, {})

    with pytest.raises(OutputError, match="already exists"):
        await _run(settings, input_path, fetcher)

    assert (tmp_path / "output.csv").read_text(encoding="utf-8") == "old\n"


@pytest.mark.asyncio
async def test_missing_input_file_is_fatal(tmp_path: Path) -> None:
    settings = _settings(tmp_path)
    fetcher = _fetcher(settings, {})

    with pytest.raises(InputError, match="unable to open input file"):
        await _run(settings, tmp_path / "absent.txt", fetcher)


@pytest.mark.asyncio
async def test_unwritable_output_is_fatal(tmp_path: Path) -> None:
    settings = Settings().with_overrides(outfile=str(tmp_path / "no-such-dir" / "out.csv"))
    input_path = _write_input(tmp_path, ["http://x/a.png"])
    fetcher = _fetcher(settings, {})

    with pytest.raises(OutputError):
        await _run(settings, input_path, fetcher)


@pytest.mark.parametrize(
    "line",
    ["not a url", "ftp://x/a.png", "http://", "/relative/path.png"],
)
def test_validate_url_rejects_unfetchable_lines(line: str) -> None:
    with pytest.raises(InputError):
        validate_url(WorkItem(1, line))


def test_validate_url_accepts_http_and_https() -> None:
    assert validate_url(WorkItem(1, "https://x/a.png?size=2")) == "https://x/a.png?size=2"


def test_validate_url_rejects_undecodable_line() -> None:
    with pytest.raises(InputError, match="not valid UTF-8"):
        validate_url(WorkItem(2, "http://x/\\xff.png", decoded=False))
