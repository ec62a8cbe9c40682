"""
SyncEngine: wires the engine components into one object.

The CLI (or any other surface) talks only to this facade.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from common.constants import (
    CONNECTION_CHECK_DEBOUNCE_MS,
    CONTENT_COOLDOWN_MS,
    MIN_REFRESH_INTERVAL_MS,
    NOTIFICATION_CAPACITY,
    NOTIFICATION_DEFAULT_TTL_MS,
    NOTIFICATION_ERROR_SUPPRESS_WINDOW_MS,
    UPLOAD_COOLDOWN_MS,
    UPLOAD_SETTLE_DELAY_SECONDS,
)
from common.types import (
    ConnectionStatus,
    FileRecord,
    Notification,
    RefreshResult,
    StorageClass,
    UploadOutcome,
    UploadSource,
)
from engine.actions import FileActions
from engine.cache_store import JsonFileBackend, LocalCacheStore, MemoryBackend, StorageBackend
from engine.health import ConnectionChecker
from engine.notifications import NotificationQueue
from engine.relay_client import RelayClient, TokenProvider
from engine.resolver import DuplicateResolver
from engine.scheduler import RefreshScheduler
from engine.session import Clock, SyncSession, wall_clock_ms
from engine.uploads import UploadCoordinator

logger = logging.getLogger(__name__)


@dataclass
class EngineSettings:
    """
    Runtime settings for a SyncEngine.

    Attributes:
        base_url: Relay base URL
        cache_path: JSON file for the cache and notifications (None keeps them in memory)
        auto_refresh_interval_s: Background refresh period (None disables it)
    """
    base_url: str
    cache_path: Optional[Path] = None
    min_refresh_interval_ms: int = MIN_REFRESH_INTERVAL_MS
    upload_cooldown_ms: int = UPLOAD_COOLDOWN_MS
    content_cooldown_ms: int = CONTENT_COOLDOWN_MS
    upload_settle_delay_s: float = UPLOAD_SETTLE_DELAY_SECONDS
    notification_capacity: int = NOTIFICATION_CAPACITY
    notification_ttl_ms: int = NOTIFICATION_DEFAULT_TTL_MS
    notification_suppress_window_ms: int = NOTIFICATION_ERROR_SUPPRESS_WINDOW_MS
    connection_debounce_ms: int = CONNECTION_CHECK_DEBOUNCE_MS
    auto_refresh_interval_s: Optional[float] = None


class SyncEngine:
    """Facade over the cache store, scheduler, uploads, actions and notifications."""

    def __init__(
        self,
        settings: EngineSettings,
        token_provider: Optional[TokenProvider] = None,
        backend: Optional[StorageBackend] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Clock] = None,
        wall_clock: Optional[Clock] = None,
        sleep=None,
    ):
        """
        Build every component from settings.

        Args:
            settings: Engine settings
            token_provider: Callable returning the current bearer token
            backend: Storage backend override (defaults from settings.cache_path)
            transport: httpx transport override, used by tests
            clock: Monotonic millisecond clock for throttles and cooldowns
            wall_clock: Epoch millisecond clock for notification timestamps
            sleep: Awaitable sleep used for the post-upload settle delay
        """
        self.settings = settings
        if backend is None:
            backend = JsonFileBackend(settings.cache_path) if settings.cache_path else MemoryBackend()
        self.backend = backend

        self.session = SyncSession(clock)
        self.resolver = DuplicateResolver()
        self.client = RelayClient(settings.base_url, token_provider=token_provider, transport=transport)
        self.store = LocalCacheStore(backend, resolver=self.resolver)
        self.notification_queue = NotificationQueue(
            backend=backend,
            clock=wall_clock or wall_clock_ms,
            capacity=settings.notification_capacity,
            default_ttl_ms=settings.notification_ttl_ms,
            suppress_window_ms=settings.notification_suppress_window_ms,
        )
        self.scheduler = RefreshScheduler(
            self.client,
            self.store,
            self.notification_queue,
            self.session,
            resolver=self.resolver,
            min_interval_ms=settings.min_refresh_interval_ms,
        )
        self.uploads = UploadCoordinator(
            self.client,
            self.scheduler,
            self.notification_queue,
            self.session,
            resolver=self.resolver,
            upload_cooldown_ms=settings.upload_cooldown_ms,
            content_cooldown_ms=settings.content_cooldown_ms,
            settle_delay_s=settings.upload_settle_delay_s,
            sleep=sleep,
        )
        self.actions = FileActions(self.client, self.store, self.scheduler, self.notification_queue)
        self.connection = ConnectionChecker(
            self.client,
            self.notification_queue,
            self.session,
            debounce_ms=settings.connection_debounce_ms,
        )
        logger.info(f"SyncEngine ready [relay={settings.base_url}, cache={settings.cache_path or 'memory'}]")

    async def __aenter__(self) -> "SyncEngine":
        if self.settings.auto_refresh_interval_s:
            self.scheduler.start_auto_refresh(self.settings.auto_refresh_interval_s)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def refresh(self, filter_params: Optional[Dict[str, Any]] = None) -> RefreshResult:
        return await self.scheduler.request_refresh(filter_params)

    async def force_refresh(self) -> RefreshResult:
        return await self.scheduler.force_refresh()

    async def upload(self, source: UploadSource, custom_name: Optional[str] = None) -> UploadOutcome:
        return await self.uploads.submit(source, custom_name)

    async def upload_many(self, sources: Sequence[UploadSource]) -> List[UploadOutcome]:
        return await self.uploads.submit_batch(sources)

    async def delete(self, file_ids: Sequence[str]) -> Tuple[int, int]:
        """
        Delete one or more files.

        Returns:
            (succeeded, failed) counts
        """
        if len(file_ids) == 1:
            ok = await self.actions.delete(file_ids[0])
            return (1, 0) if ok else (0, 1)
        return await self.actions.delete_many(file_ids)

    async def pin(self, file_id: str) -> bool:
        return await self.actions.pin(file_id)

    async def unpin(self, file_id: str) -> bool:
        return await self.actions.unpin(file_id)

    async def promote(self, file_id: str) -> bool:
        return await self.actions.promote(file_id)

    async def check_connection(self, force: bool = False) -> ConnectionStatus:
        return await self.connection.check(force=force)

    def files(self, storage_class: Optional[StorageClass] = None) -> Tuple[FileRecord, ...]:
        if isinstance(self.backend, JsonFileBackend):
            self.backend.poll()
        return self.store.files(storage_class)

    def stats(self) -> Dict[str, Any]:
        """Counts and sizes of the cached files, plus engine activity."""
        snapshot = self.store.read()
        by_class = {storage_class.value: 0 for storage_class in StorageClass}
        for record in snapshot.records:
            by_class[record.storage_class.value] += 1
        return {
            'total_files': len(snapshot.records),
            'total_size_bytes': snapshot.total_size_bytes,
            'by_storage_class': by_class,
            'generation': snapshot.generation,
            'fetch_count': self.scheduler.fetch_count,
            'loading': self.session.is_loading,
            'uploading': self.session.is_uploading,
            'connection': self.connection.status.state.value,
        }

    def notifications(self) -> List[Notification]:
        return self.notification_queue.active()

    async def aclose(self) -> None:
        """Cancel background work, detach listeners and close the HTTP session."""
        await self.session.aclose()
        self.store.close()
        await self.client.close()
        logger.info("SyncEngine closed")
