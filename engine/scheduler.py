"""
Fetch/Reconcile Scheduler.

Refreshes the cached file list from the relay. Requests are dropped while a
load is in flight or when they arrive within the minimum interval of the
previous request's start. A refresh whose resolved id-set matches the cache
is a no-op. Transport or parse failures reset the cache to empty.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

from common.constants import MIN_REFRESH_INTERVAL_MS, POST_ACTION_REFRESH_DELAY_SECONDS
from common.exceptions import RelayError, RelayRejectedError
from common.types import RefreshResult, ids_of
from engine.cache_store import LocalCacheStore
from engine.notifications import NotificationQueue
from engine.relay_client import RelayClient
from engine.resolver import DuplicateResolver
from engine.session import SyncSession

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Throttled, non-overlapping reconciliation of the file cache."""

    SCHEDULED_SLOT = "scheduled-refresh"
    AUTO_SLOT = "auto-refresh"

    def __init__(
        self,
        client: RelayClient,
        store: LocalCacheStore,
        notifications: NotificationQueue,
        session: SyncSession,
        resolver: Optional[DuplicateResolver] = None,
        min_interval_ms: int = MIN_REFRESH_INTERVAL_MS,
    ):
        self.client = client
        self.store = store
        self.notifications = notifications
        self.session = session
        self.resolver = resolver or DuplicateResolver()
        self.min_interval_ms = min_interval_ms
        self.fetch_count = 0

    @property
    def is_loading(self) -> bool:
        return self.session.is_loading

    async def request_refresh(self, filter_params: Optional[Dict[str, Any]] = None) -> RefreshResult:
        """
        Refresh the cache unless a load is running or one started too recently.

        Args:
            filter_params: Optional search filters

        Returns:
            What happened to the request
        """
        if self.session.is_loading:
            logger.debug("Refresh already loading, skipping duplicate call")
            return RefreshResult.BUSY

        now = self.session.now_ms()
        last = self.session.last_refresh_request_ms
        if last is not None and now - last < self.min_interval_ms:
            logger.debug(f"Refresh requested {now - last}ms after the last one, throttling")
            return RefreshResult.THROTTLED

        self.session.last_refresh_request_ms = now
        return await self._reconcile(filter_params, force=False)

    async def force_refresh(self) -> RefreshResult:
        """
        Refresh bypassing the minimum interval and the no-op short-circuit.

        Used after destructive operations. Still never overlaps a running load.
        """
        if self.session.is_loading:
            logger.info("Forced refresh skipped: a load is already in flight")
            return RefreshResult.BUSY

        self.session.last_refresh_request_ms = self.session.now_ms()
        return await self._reconcile(None, force=True)

    async def refresh_if_empty(self) -> RefreshResult:
        """Load files when a view is activated and the cache holds nothing."""
        if self.store.read().records:
            return RefreshResult.UNCHANGED
        return await self.request_refresh()

    def schedule_refresh(self, delay_s: float = POST_ACTION_REFRESH_DELAY_SECONDS) -> asyncio.Task:
        """
        Run a normal refresh after a delay, replacing any refresh already scheduled.

        Returns:
            The scheduled task (owned by the session)
        """
        return self.session.spawn(self._delayed_refresh(delay_s), name=self.SCHEDULED_SLOT)

    def start_auto_refresh(self, interval_s: float) -> asyncio.Task:
        """Start periodic background refreshes."""
        logger.info(f"Auto refresh started [interval={interval_s}s]")
        return self.session.spawn(self._auto_refresh_loop(interval_s), name=self.AUTO_SLOT)

    async def _delayed_refresh(self, delay_s: float) -> RefreshResult:
        await asyncio.sleep(delay_s)
        if self.session.is_loading:
            return RefreshResult.BUSY
        return await self.request_refresh()

    async def _auto_refresh_loop(self, interval_s: float) -> None:
        while True:
            await asyncio.sleep(interval_s)
            try:
                await self.request_refresh()
            except Exception as e:
                logger.error(f"Error in auto refresh: {e}", exc_info=True)

    async def _reconcile(self, filter_params: Optional[Dict[str, Any]], force: bool) -> RefreshResult:
        with self.session.hold(SyncSession.LOADING):
            generation_before = self.store.read().generation
            self.fetch_count += 1
            logger.info(f"Starting file load [force={force}, filters={filter_params or {}}]")

            try:
                records = await self.client.list_files(filter_params, force=force)
            except RelayRejectedError as e:
                logger.warning(f"Relay rejected file list request: {e}")
                self.notifications.warning(f"File list unavailable: {e}")
                return RefreshResult.REJECTED
            except RelayError as e:
                logger.error(f"Error loading files: {e}")
                self.store.clear()
                self.notifications.error(f"Failed to load files: {e}")
                return RefreshResult.FAILED

            resolved = self.resolver.resolve(records)

            current = self.store.read()
            if current.generation != generation_before:
                logger.debug("Cache was replaced while fetching, last writer wins")

            if not force and self._unchanged(resolved, current):
                logger.info("No changes detected, skipping update")
                return RefreshResult.UNCHANGED

            snapshot = self.store.replace(resolved)
            logger.info(f"Updated file cache: {len(snapshot.records)} unique file(s)")
            return RefreshResult.UPDATED

    @staticmethod
    def _unchanged(resolved, current) -> bool:
        return (
            ids_of(resolved) == current.last_reconciled_ids
            and len(resolved) == current.last_loaded_count
            and len(resolved) == len(current.records)
        )
