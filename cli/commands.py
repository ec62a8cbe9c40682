"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import List, Optional

from common.logging_config import get_logger
from common.types import (
    ConnectionState,
    RefreshResult,
    RejectReason,
    StorageClass,
    UploadOutcome,
    UploadSource,
)
from cli.config import Config
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
    UnpinCommand,
    UploadCommand,
)
from cli.utils import format_file_size, format_file_table, format_notification
from engine.sync_engine import SyncEngine

logger = get_logger(__name__)


_config: Optional[Config] = None
_engine: Optional[SyncEngine] = None

REFRESH_MESSAGES = {
    RefreshResult.UPDATED: "File list updated",
    RefreshResult.UNCHANGED: "File list is already up to date",
    RefreshResult.THROTTLED: "Refresh requested too soon, try again in a moment",
    RefreshResult.BUSY: "A refresh is already in progress",
    RefreshResult.FAILED: "Failed to load files (see notifications)",
    RefreshResult.REJECTED: "Relay refused the file list request (see notifications)",
}

REJECT_MESSAGES = {
    RejectReason.COOLDOWN: "uploaded moments ago, skipped",
    RejectReason.DUPLICATE_CONTENT: "same content uploaded moments ago, skipped",
    RejectReason.BUSY: "another upload is in progress",
    RejectReason.INVALID: "file cannot be read or is empty",
    RejectReason.TOO_LARGE: "file is too large",
    RejectReason.UNSUPPORTED_TYPE: "file type is not supported",
    RejectReason.NETWORK: "network error",
    RejectReason.SERVER: "server error",
}


def get_config() -> Config:
    global _config
    if _config is None:
        _config = Config.default()
    return _config


def get_engine() -> SyncEngine:
    """
    Get or create global SyncEngine instance.

    Returns:
        SyncEngine instance
    """
    global _engine
    if _engine is None:
        logger.debug("Creating new SyncEngine instance")
        config = get_config()
        _engine = SyncEngine(config.get_engine_settings(), token_provider=config.get_auth_token)
    return _engine


async def close_engine() -> None:
    global _engine
    if _engine is not None:
        await _engine.aclose()
        _engine = None


async def handle_list(cmd: ListCommand, engine: Optional[SyncEngine] = None) -> str:
    """
    Handle 'list' command.

    Loads the file list first when the cache is empty.

    Args:
        cmd: ListCommand with optional storage class
        engine: Optional SyncEngine for dependency injection (testing)

    Returns:
        Formatted table of cached files
    """
    if engine is None:
        engine = get_engine()
    logger.info(f"Executing list command: storage_class={cmd.storage_class}")

    await engine.scheduler.refresh_if_empty()
    storage_class = StorageClass(cmd.storage_class) if cmd.storage_class else None
    return format_file_table(engine.files(storage_class))


async def handle_refresh(cmd: RefreshCommand, engine: Optional[SyncEngine] = None) -> str:
    if engine is None:
        engine = get_engine()
    result = await engine.refresh()
    message = REFRESH_MESSAGES[result]
    if result in (RefreshResult.UPDATED, RefreshResult.UNCHANGED):
        message += f" ({len(engine.files())} files)"
    return message


async def handle_search(cmd: SearchCommand, engine: Optional[SyncEngine] = None) -> str:
    """
    Handle 'search' command.

    Search results replace the cached list, as on the relay dashboard.
    """
    if engine is None:
        engine = get_engine()
    filters = dict(cmd.filters)
    logger.info(f"Executing search command: filters={filters}")

    result = await engine.refresh(filters)
    if result in (RefreshResult.UPDATED, RefreshResult.UNCHANGED):
        return format_file_table(engine.files())
    return REFRESH_MESSAGES[result]


async def handle_upload(cmd: UploadCommand, engine: Optional[SyncEngine] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with paths and optional display name
        engine: Optional SyncEngine for dependency injection (testing)

    Returns:
        One result line per file
    """
    if engine is None:
        engine = get_engine()
    logger.info(f"Executing upload command: {len(cmd.paths)} file(s)")
    if cmd.custom_name is not None and len(cmd.paths) > 1:
        return "--name can only be used when uploading a single file"

    lines: List[str] = []
    sources: List[UploadSource] = []
    for raw_path in cmd.paths:
        path = Path(raw_path).expanduser()
        if not path.is_file():
            lines.append(f"✗ {raw_path}: file not found")
            continue
        try:
            sources.append(UploadSource.from_path(path, name=cmd.custom_name))
        except OSError as e:
            lines.append(f"✗ {raw_path}: {e}")

    if len(sources) == 1:
        outcomes = [await engine.upload(sources[0])]
    elif sources:
        outcomes = await engine.upload_many(sources)
    else:
        outcomes = []

    for source, outcome in zip(sources, outcomes):
        lines.append(_format_outcome(source, outcome))

    if not lines:
        return "No files to upload"
    return "\n".join(lines)


def _format_outcome(source: UploadSource, outcome: UploadOutcome) -> str:
    if outcome.accepted:
        suffix = " (relay reported duplicate)" if outcome.is_server_duplicate else ""
        file_id = f" as {outcome.record.id}" if outcome.record else ""
        return f"✓ {source.name} uploaded{file_id} ({format_file_size(source.size_bytes)}){suffix}"
    return f"✗ {source.name}: {REJECT_MESSAGES.get(outcome.reason, 'rejected')}"


async def handle_delete(cmd: DeleteCommand, engine: Optional[SyncEngine] = None) -> str:
    """
    Handle 'delete' command.

    Returns:
        Summary of deleted and failed files
    """
    if engine is None:
        engine = get_engine()
    logger.info(f"Executing delete command: ids={list(cmd.file_ids)}")

    succeeded, failed = await engine.delete(list(cmd.file_ids))
    if failed == 0:
        return f"Deleted {succeeded} file(s)"
    if succeeded == 0:
        return f"Failed to delete {failed} file(s) (see notifications)"
    return f"Deleted {succeeded} file(s), {failed} failed (see notifications)"


async def handle_pin(cmd: PinCommand, engine: Optional[SyncEngine] = None) -> str:
    if engine is None:
        engine = get_engine()
    if await engine.pin(cmd.file_id):
        return f"Pinned {cmd.file_id}"
    return f"Failed to pin {cmd.file_id} (see notifications)"


async def handle_unpin(cmd: UnpinCommand, engine: Optional[SyncEngine] = None) -> str:
    if engine is None:
        engine = get_engine()
    if await engine.unpin(cmd.file_id):
        return f"Unpinned {cmd.file_id}"
    return f"Failed to unpin {cmd.file_id} (see notifications)"


async def handle_promote(cmd: PromoteCommand, engine: Optional[SyncEngine] = None) -> str:
    if engine is None:
        engine = get_engine()
    logger.info(f"Executing promote command: {cmd.file_id}")
    if await engine.promote(cmd.file_id):
        return f"Uploaded {cmd.file_id} to the remote network"
    return f"Failed to promote {cmd.file_id} (see notifications)"


async def handle_status(cmd: StatusCommand, engine: Optional[SyncEngine] = None) -> str:
    """
    Handle 'status' command.

    Returns:
        Connection state followed by cache statistics
    """
    if engine is None:
        engine = get_engine()

    status = await engine.check_connection()
    stats = engine.stats()

    lines = [
        f"Relay:       {engine.settings.base_url}",
        f"Connection:  {status.state.value} - {status.message}",
        f"Files:       {stats['total_files']} ({format_file_size(stats['total_size_bytes'])})",
    ]
    for name, count in stats['by_storage_class'].items():
        lines.append(f"  {name}: {count}")
    if stats['uploading']:
        lines.append("Upload in progress")
    if status.state is ConnectionState.DISABLED:
        lines.append("Remote storage is disabled; pin and unpin are unavailable")
    return "\n".join(lines)


async def handle_notifications(cmd: NotificationsCommand, engine: Optional[SyncEngine] = None) -> str:
    if engine is None:
        engine = get_engine()
    active = engine.notifications()
    if not active:
        return "No notifications"
    return "\n".join(format_notification(n) for n in active)


async def handle_token(cmd: TokenCommand, config: Optional[Config] = None) -> str:
    """
    Handle 'token' command.

    The engine reads the token through the config on every request, so the
    change applies immediately.
    """
    if config is None:
        config = get_config()
    config.set_auth_token(cmd.token)
    if cmd.token is None:
        return "Token cleared"
    return "Token saved"
