"""Unit tests for the background task helpers."""

import asyncio
import logging

import pytest

from ecp_visual.core.asyncio_utils import cancel_tasks, create_logged_task


@pytest.mark.asyncio
async def test_logged_task_reports_exceptions(caplog):
    async def boom():
        raise RuntimeError("kaboom")

    with caplog.at_level(logging.ERROR, logger="ecp_visual"):
        task = create_logged_task(boom(), context="exploder")
        await asyncio.gather(task, return_exceptions=True)
        await asyncio.sleep(0)
    assert "Unhandled exception in exploder" in caplog.text


@pytest.mark.asyncio
async def test_pending_set_tracks_lifetime():
    pending = set()
    gate = asyncio.Event()

    async def wait():
        await gate.wait()

    task = create_logged_task(wait(), pending=pending)
    assert task in pending
    gate.set()
    await task
    await asyncio.sleep(0)
    assert not pending


@pytest.mark.asyncio
async def test_cancel_tasks_cancels_and_clears():
    pending = set()
    tasks = [create_logged_task(asyncio.sleep(10), pending=pending) for _ in range(3)]
    await cancel_tasks(pending)
    assert not pending
    assert all(t.cancelled() for t in tasks)
