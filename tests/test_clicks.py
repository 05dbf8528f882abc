"""Click recorder tests: fire-and-forget semantics and failure isolation."""

import asyncio
import logging

import pytest

from app import repository
from app.clicks import ClickRecorder


@pytest.mark.asyncio
async def test_record_returns_before_increment_completes(url_service, click_recorder: ClickRecorder, monkeypatch):
    url = await url_service.create_short_url("https://example.com/slow")
    release = asyncio.Event()
    real_increment = repository.increment_clicks

    async def slow_increment(db, url_id):
        await release.wait()
        return await real_increment(db, url_id)

    monkeypatch.setattr(repository, "increment_clicks", slow_increment)

    task = click_recorder.record(url.id)
    assert not task.done()
    assert click_recorder.pending == 1

    release.set()
    await click_recorder.drain(timeout=5)
    assert task.done()
    assert click_recorder.pending == 0


@pytest.mark.asyncio
async def test_failure_is_logged_not_raised(click_recorder: ClickRecorder, monkeypatch, caplog):
    async def broken_increment(db, url_id):
        raise RuntimeError("boom")

    monkeypatch.setattr(repository, "increment_clicks", broken_increment)

    with caplog.at_level(logging.ERROR, logger="urlshortener.clicks"):
        task = click_recorder.record(42)
        await click_recorder.drain(timeout=5)

    assert task.exception() is None
    assert "Failed to increment clicks for url id 42" in caplog.text


@pytest.mark.asyncio
async def test_increment_for_deleted_row_is_dropped(url_service, click_recorder: ClickRecorder):
    url = await url_service.create_short_url("https://example.com/gone")
    await url_service.delete_by_code(url.short_code)

    task = click_recorder.record(url.id)
    await click_recorder.drain(timeout=5)
    assert task.exception() is None


@pytest.mark.asyncio
async def test_drain_with_nothing_pending(click_recorder: ClickRecorder):
    await click_recorder.drain(timeout=0.1)
    assert click_recorder.pending == 0


@pytest.mark.asyncio
async def test_drain_timeout_leaves_task_pending(click_recorder: ClickRecorder, monkeypatch):
    release = asyncio.Event()

    async def stuck_increment(db, url_id):
        await release.wait()
        return True

    monkeypatch.setattr(repository, "increment_clicks", stuck_increment)

    click_recorder.record(1)
    await click_recorder.drain(timeout=0.05)
    assert click_recorder.pending == 1

    release.set()
    await click_recorder.drain(timeout=5)
    assert click_recorder.pending == 0
