"""Bounded, rate-limited queue of user-visible status messages."""

import json
import logging
import uuid
from typing import Callable, List, Optional

from common.constants import (
    NOTIFICATION_CAPACITY,
    NOTIFICATION_DEFAULT_TTL_MS,
    NOTIFICATION_ERROR_SUPPRESS_WINDOW_MS,
    NOTIFICATIONS_STORAGE_KEY,
)
from common.types import Notification, Severity
from engine.cache_store import MemoryBackend, StorageBackend
from engine.session import Clock, wall_clock_ms

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[List[Notification]], None]

_LOG_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.SUCCESS: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class NotificationQueue:
    """
    FIFO-bounded notification list.

    Identical error notifications younger than the suppression window are
    dropped; other severities are never suppressed. When full, the oldest
    entry is evicted before the newest is appended. Entries expire after
    their TTL and are pruned on access.
    """

    def __init__(
        self,
        backend: Optional[StorageBackend] = None,
        clock: Optional[Clock] = None,
        capacity: int = NOTIFICATION_CAPACITY,
        default_ttl_ms: int = NOTIFICATION_DEFAULT_TTL_MS,
        suppress_window_ms: int = NOTIFICATION_ERROR_SUPPRESS_WINDOW_MS,
        key: str = NOTIFICATIONS_STORAGE_KEY,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._backend = backend if backend is not None else MemoryBackend()
        self._clock = clock or wall_clock_ms
        self._capacity = capacity
        self._default_ttl_ms = default_ttl_ms
        self._suppress_window_ms = suppress_window_ms
        self._key = key
        self._fallback: List[Notification] = []
        self._handlers: List[NotificationHandler] = []

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, message: str, severity: Severity = Severity.INFO, ttl_ms: Optional[int] = None) -> Optional[str]:
        """
        Add a notification.

        Args:
            message: Text shown to the user
            severity: Notification severity
            ttl_ms: Lifetime in milliseconds; default when None, no expiry when <= 0

        Returns:
            Id of the new notification, or None if it was suppressed
        """
        now = self._clock()
        current = self._load(now)

        if severity is Severity.ERROR:
            for existing in current:
                if (
                    existing.message == message
                    and existing.severity is severity
                    and now - existing.created_at_ms < self._suppress_window_ms
                ):
                    logger.debug(f"Suppressed repeated error notification: {message}")
                    return None

        if ttl_ms is None:
            ttl_ms = self._default_ttl_ms

        notification = Notification(
            id=uuid.uuid4().hex,
            message=message,
            severity=severity,
            created_at_ms=now,
            expires_at_ms=now + ttl_ms if ttl_ms > 0 else None,
        )

        if len(current) >= self._capacity:
            current = current[len(current) - self._capacity + 1:]
        current.append(notification)

        self._store(current)
        logger.log(_LOG_LEVELS[severity], f"[{severity.value}] {message}")
        return notification.id

    def info(self, message: str, ttl_ms: Optional[int] = None) -> Optional[str]:
        return self.push(message, Severity.INFO, ttl_ms)

    def success(self, message: str, ttl_ms: Optional[int] = None) -> Optional[str]:
        return self.push(message, Severity.SUCCESS, ttl_ms)

    def warning(self, message: str, ttl_ms: Optional[int] = None) -> Optional[str]:
        return self.push(message, Severity.WARNING, ttl_ms)

    def error(self, message: str, ttl_ms: Optional[int] = None) -> Optional[str]:
        return self.push(message, Severity.ERROR, ttl_ms)

    def active(self) -> List[Notification]:
        """Notifications that have not expired, oldest first."""
        return self._load(self._clock())

    def dismiss(self, notification_id: str) -> bool:
        current = self._load(self._clock())
        remaining = [n for n in current if n.id != notification_id]
        if len(remaining) == len(current):
            return False
        self._store(remaining)
        return True

    def clear(self) -> None:
        self._store([])

    def subscribe(self, handler: NotificationHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def _load(self, now: int) -> List[Notification]:
        """
        Read stored notifications, dropping expired ones.

        Malformed stored state is reset to empty.
        """
        try:
            raw = self._backend.get(self._key)
        except (OSError, ValueError) as e:
            logger.warning(f"Notification read failed, using in-memory copy: {e}")
            items = list(self._fallback)
        else:
            items = self._decode(raw)

        live = [n for n in items if n.expires_at_ms is None or n.expires_at_ms > now]
        if len(live) != len(items):
            self._store(live)
        return live

    def _decode(self, raw: Optional[str]) -> List[Notification]:
        if raw is None or not raw.strip() or raw.strip() == "undefined":
            return []
        try:
            data = json.loads(raw)
            if not isinstance(data, list):
                raise ValueError("stored notifications are not a list")
            return [Notification.from_dict(item) for item in data]
        except ValueError as e:
            logger.warning(f"Error parsing stored notifications, resetting: {e}")
            try:
                self._backend.remove(self._key)
            except (OSError, ValueError) as remove_error:
                logger.error(f"Failed to reset notification state: {remove_error}")
            return []

    def _store(self, items: List[Notification]) -> None:
        self._fallback = list(items)
        try:
            self._backend.set(self._key, json.dumps([n.to_dict() for n in items]))
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to persist notifications: {e}")

        for handler in list(self._handlers):
            try:
                handler(list(items))
            except Exception as e:
                logger.error(f"Notification subscriber failed: {e}", exc_info=True)
