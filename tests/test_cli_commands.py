"""Tests for CLI command handlers."""

from unittest.mock import AsyncMock, Mock

import pytest

from cli.commands import (
    handle_delete,
    handle_list,
    handle_notifications,
    handle_pin,
    handle_promote,
    handle_refresh,
    handle_search,
    handle_status,
    handle_token,
    handle_upload,
)
from cli.models import (
    DeleteCommand,
    ListCommand,
    NotificationsCommand,
    PinCommand,
    PromoteCommand,
    RefreshCommand,
    SearchCommand,
    StatusCommand,
    TokenCommand,
    UploadCommand,
)
from cli.repl import dispatch_command
from engine.sync_engine import SyncEngine


@pytest.mark.asyncio
async def test_handle_list_loads_empty_cache(engine, relay):
    relay.add_file("report.pdf", size=2048, mime="application/pdf")

    result = await handle_list(ListCommand(), engine=engine)

    assert "report.pdf" in result
    assert "2.00 KiB" in result
    assert "1 file(s)" in result


@pytest.mark.asyncio
async def test_handle_list_by_storage_class(engine, relay):
    relay.add_file("a.txt")
    relay.add_file("b.txt", ipfs_hash="QmB")

    result = await handle_list(ListCommand(storage_class="local-with-remote"), engine=engine)

    assert "b.txt" in result
    assert "a.txt" not in result


@pytest.mark.asyncio
async def test_handle_list_empty(engine, relay):
    result = await handle_list(ListCommand(), engine=engine)

    assert result == "No files found"


@pytest.mark.asyncio
async def test_handle_refresh_reports_throttle(engine, relay):
    relay.add_file("a.txt")

    first = await handle_refresh(RefreshCommand(), engine=engine)
    second = await handle_refresh(RefreshCommand(), engine=engine)

    assert first == "File list updated (1 files)"
    assert "too soon" in second


@pytest.mark.asyncio
async def test_handle_search(engine, relay):
    relay.add_file("report.pdf")
    relay.add_file("photo.png")

    result = await handle_search(SearchCommand(filters=(("name", "photo"),)), engine=engine)

    assert "photo.png" in result
    assert "report.pdf" not in result


@pytest.mark.asyncio
async def test_handle_upload(engine, relay, sample_file):
    result = await handle_upload(UploadCommand(paths=(str(sample_file),)), engine=engine)

    assert result.startswith("✓ test.txt uploaded as ")
    assert relay.count("POST", "/upload") == 1


@pytest.mark.asyncio
async def test_handle_upload_repeat_is_skipped(engine, relay, sample_file):
    await handle_upload(UploadCommand(paths=(str(sample_file),)), engine=engine)

    result = await handle_upload(UploadCommand(paths=(str(sample_file),)), engine=engine)

    assert result == "✗ test.txt: uploaded moments ago, skipped"
    assert relay.count("POST", "/upload") == 1


@pytest.mark.asyncio
async def test_handle_upload_missing_file(engine, relay, tmp_path):
    result = await handle_upload(UploadCommand(paths=(str(tmp_path / "nope.txt"),)), engine=engine)

    assert "file not found" in result
    assert relay.calls == []


@pytest.mark.asyncio
async def test_handle_upload_custom_name_with_several_paths(engine, relay, multiple_sample_files):
    cmd = UploadCommand(paths=tuple(str(p) for p in multiple_sample_files), custom_name="same.txt")

    result = await handle_upload(cmd, engine=engine)

    assert result == "--name can only be used when uploading a single file"
    assert relay.calls == []

@pytest.mark.asyncio
async def test_handle_upload_batch(engine, relay, multiple_sample_files):
    cmd = UploadCommand(paths=tuple(str(p) for p in multiple_sample_files))

    result = await handle_upload(cmd, engine=engine)

    assert result.count("✓") == 3
    assert relay.count("POST", "/upload") == 3


@pytest.mark.asyncio
async def test_handle_delete(engine, relay):
    relay.add_file("a.txt", file_id="1")
    await engine.refresh()

    assert await handle_delete(DeleteCommand(file_ids=("1",)), engine=engine) == "Deleted 1 file(s)"
    assert "Failed to delete 1 file(s)" in await handle_delete(DeleteCommand(file_ids=("1",)), engine=engine)


@pytest.mark.asyncio
async def test_handle_pin_without_hash(engine, relay):
    relay.add_file("a.txt", file_id="1")
    await engine.refresh()

    result = await handle_pin(PinCommand(file_id="1"), engine=engine)

    assert result == "Failed to pin 1 (see notifications)"


@pytest.mark.asyncio
async def test_handle_promote(engine, relay):
    relay.add_file("a.txt", file_id="1")
    await engine.refresh()

    assert await handle_promote(PromoteCommand(file_id="1"), engine=engine) == "Uploaded 1 to the remote network"
    assert await handle_promote(PromoteCommand(file_id="9"), engine=engine) == "Failed to promote 9 (see notifications)"


@pytest.mark.asyncio
async def test_handle_status(engine, relay):
    relay.add_file("a.txt", size=10)
    await engine.refresh()

    result = await handle_status(StatusCommand(), engine=engine)

    assert "Connection:  connected" in result
    assert "Files:       1 (10 B)" in result
    assert "local-only: 1" in result


@pytest.mark.asyncio
async def test_handle_notifications(engine, relay):
    assert await handle_notifications(NotificationsCommand(), engine=engine) == "No notifications"

    engine.notification_queue.error("Something broke")
    result = await handle_notifications(NotificationsCommand(), engine=engine)

    assert "[ERROR]" in result
    assert "Something broke" in result


@pytest.mark.asyncio
async def test_handle_token(temp_config):
    assert await handle_token(TokenCommand(token="tok_1"), config=temp_config) == "Token saved"
    assert temp_config.get_auth_token() == "tok_1"

    assert await handle_token(TokenCommand(token=None), config=temp_config) == "Token cleared"
    assert temp_config.get_auth_token() is None


@pytest.mark.asyncio
async def test_dispatch_routes_to_engine():
    """Test dispatch with a mocked engine."""
    mock_engine = Mock(spec=SyncEngine)
    mock_engine.delete = AsyncMock(return_value=(2, 0))

    result = await dispatch_command(DeleteCommand(file_ids=("1", "2")), mock_engine)

    assert result == "Deleted 2 file(s)"
    mock_engine.delete.assert_awaited_once_with(["1", "2"])
