"""Relay and content network connection checker."""

import logging
from typing import Optional

from common.constants import CONNECTION_CHECK_DEBOUNCE_MS
from common.exceptions import RelayError, RelayUnavailableError
from common.types import ConnectionState, ConnectionStatus
from engine.notifications import NotificationQueue
from engine.relay_client import RelayClient
from engine.session import SyncSession

logger = logging.getLogger(__name__)


class ConnectionChecker:
    """
    Debounced connection check.

    A check started within the debounce window of the previous one, or while
    another check runs, returns the last known status without a network call.
    """

    def __init__(
        self,
        client: RelayClient,
        notifications: NotificationQueue,
        session: SyncSession,
        debounce_ms: int = CONNECTION_CHECK_DEBOUNCE_MS,
    ):
        self.client = client
        self.notifications = notifications
        self.session = session
        self.debounce_ms = debounce_ms
        self.status = ConnectionStatus(ConnectionState.UNKNOWN, "Not checked yet")
        self._checking = False
        self._last_check_ms: Optional[int] = None

    async def check(self, force: bool = False) -> ConnectionStatus:
        """
        Check the relay's content network.

        Args:
            force: Ignore the debounce window (a running check still wins)

        Returns:
            The current connection status
        """
        now = self.session.now_ms()
        if self._checking:
            logger.debug("Connection check already in progress")
            return self.status
        if not force and self._last_check_ms is not None and now - self._last_check_ms < self.debounce_ms:
            logger.debug(f"Connection check debounced ({now - self._last_check_ms}ms since last)")
            return self.status

        self._checking = True
        self._last_check_ms = now
        self.status = ConnectionStatus(ConnectionState.CHECKING, "Checking connection...")
        try:
            self.status = await self._run_check()
        finally:
            self._checking = False
        return self.status

    async def _run_check(self) -> ConnectionStatus:
        try:
            remote = await self.client.remote_status()
            if not remote.enabled:
                logger.info("Remote storage is disabled on the relay")
                return ConnectionStatus(ConnectionState.DISABLED, "Remote storage is disabled")

            health = await self.client.health_check()
        except RelayUnavailableError as e:
            logger.warning(f"Relay unreachable during connection check: {e}")
            self.notifications.warning(f"Relay unreachable: {e}")
            return ConnectionStatus(ConnectionState.ERROR, f"Relay unreachable: {e}")
        except RelayError as e:
            logger.error(f"Connection check failed: {e}")
            self.notifications.error(f"Connection check failed: {e}")
            return ConnectionStatus(ConnectionState.ERROR, str(e))

        if health.success:
            message = health.message or "Connected to remote storage"
            self.notifications.success(message)
            return ConnectionStatus(ConnectionState.CONNECTED, message)

        detail = (health.health.error if health.health else None) or health.message or "Unknown error"
        self.notifications.error(f"Remote storage connection failed: {detail}")
        return ConnectionStatus(ConnectionState.ERROR, detail)
