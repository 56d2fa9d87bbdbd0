import asyncio
import logging
import threading
from pathlib import Path

import pytest

from docscope.core.crawler import ExtractRequest
from docscope.services.extraction_worker import ExtractionPool


@pytest.mark.asyncio
async def test_results_are_correlated_by_file_id(tmp_path: Path) -> None:
    release = threading.Event()

    def slow_first(path: str, extension: str) -> str:
        if path.endswith("first.txt"):
            release.wait(timeout=5)
        return Path(path).name

    pool = ExtractionPool(max_workers=2, extractor=slow_first)
    try:
        first = asyncio.ensure_future(pool.submit(ExtractRequest(str(tmp_path / "first.txt"), ".txt", 1)))
        second = await pool.submit(ExtractRequest(str(tmp_path / "second.txt"), ".txt", 2))
        release.set()
        first_result = await first
    finally:
        pool.shutdown()

    assert (second.file_id, second.text) == (2, "second.txt")
    assert (first_result.file_id, first_result.text) == (1, "first.txt")
    assert pool.pending_count == 0


@pytest.mark.asyncio
async def test_extractor_errors_become_results() -> None:
    def broken(path: str, extension: str) -> str:
        raise ValueError("cannot parse")

    pool = ExtractionPool(max_workers=1, extractor=broken)
    try:
        result = await pool.submit(ExtractRequest("/nowhere.pdf", ".pdf", 7))
    finally:
        pool.shutdown()

    assert result.file_id == 7
    assert result.text == ""
    assert result.error == "cannot parse"


@pytest.mark.asyncio
async def test_default_extractor_reads_files(tmp_path: Path) -> None:
    path = tmp_path / "hello.txt"
    path.write_text("hello world", encoding="utf-8")

    pool = ExtractionPool(max_workers=1)
    try:
        result = await pool.submit(ExtractRequest(str(path), ".txt", 3))
    finally:
        pool.shutdown()

    assert result.text == "hello world"
    assert result.error is None


@pytest.mark.asyncio
async def test_extraction_runs_off_the_event_loop_thread() -> None:
    loop_thread = threading.get_ident()
    seen: list[int] = []

    def record_thread(path: str, extension: str) -> str:
        seen.append(threading.get_ident())
        return "ok"

    pool = ExtractionPool(max_workers=1, extractor=record_thread)
    try:
        await pool.submit(ExtractRequest("/x.txt", ".txt", 1))
    finally:
        pool.shutdown()

    assert seen and seen[0] != loop_thread


@pytest.mark.asyncio
async def test_shutdown_reports_requests_still_in_flight(caplog) -> None:
    started = threading.Event()
    release = threading.Event()

    def blocking(path: str, extension: str) -> str:
        started.set()
        release.wait(timeout=5)
        return "late"

    pool = ExtractionPool(max_workers=1, extractor=blocking)
    waiting = asyncio.ensure_future(pool.submit(ExtractRequest("/slow.txt", ".txt", 9)))
    await asyncio.to_thread(started.wait, 5)

    assert pool.pending_count == 1
    with caplog.at_level(logging.WARNING):
        pool.shutdown(wait=False)
    release.set()
    result = await waiting

    assert any("1 requests pending" in r.message for r in caplog.records)
    assert result.text == "late"
    assert pool.pending_count == 0
