"""Tests for the session context."""

import asyncio

import pytest

from engine.session import GuardBusyError, SyncSession


def test_hold_sets_and_resets_flag():
    session = SyncSession(clock=lambda: 0)

    with session.hold(SyncSession.LOADING):
        assert session.is_loading
        with pytest.raises(GuardBusyError):
            with session.hold(SyncSession.LOADING):
                pass

    assert not session.is_loading


def test_hold_resets_flag_on_error():
    session = SyncSession(clock=lambda: 0)

    with pytest.raises(RuntimeError):
        with session.hold(SyncSession.UPLOAD_IN_PROGRESS):
            raise RuntimeError("network exploded")

    assert not session.is_uploading


@pytest.mark.asyncio
async def test_hold_resets_flag_on_cancellation():
    session = SyncSession()
    started = asyncio.Event()

    async def long_load():
        with session.hold(SyncSession.LOADING):
            started.set()
            await asyncio.sleep(60)

    task = session.spawn(long_load())
    await started.wait()
    assert session.is_loading

    await session.aclose()

    assert task.cancelled()
    assert not session.is_loading
    assert session.pending_tasks == 0


@pytest.mark.asyncio
async def test_spawn_failure_is_logged_not_raised(caplog):
    session = SyncSession()

    async def broken():
        raise ValueError("bad")

    task = session.spawn(broken())
    with pytest.raises(ValueError):
        await task
    await asyncio.sleep(0)

    assert "Background task failed" in caplog.text
    assert session.pending_tasks == 0
