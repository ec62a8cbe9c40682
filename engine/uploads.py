"""
Upload Coordinator.

Rejects repeat submissions before any network call (same file key inside the
upload cooldown, same content digest inside the content cooldown, another
upload sequence still running), uploads with an idempotency key, and on
success waits for the relay to settle before force-refreshing the cache.
The upload response body is informational; the refreshed listing is the
source of truth.
"""

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

from common.constants import CONTENT_COOLDOWN_MS, UPLOAD_COOLDOWN_MS, UPLOAD_SETTLE_DELAY_SECONDS
from common.exceptions import RelayError, RelayUnavailableError
from common.types import (
    RefreshResult,
    RejectReason,
    UploadOutcome,
    UploadSource,
    UploadStatus,
    UploadTicket,
)
from engine.fingerprint import UNKNOWN_DIGEST, Digest, digest_source
from engine.notifications import NotificationQueue
from engine.relay_client import RelayClient
from engine.resolver import DuplicateResolver
from engine.scheduler import RefreshScheduler
from engine.session import SyncSession

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

_FAILURE_MESSAGES = {
    RejectReason.TOO_LARGE: "file is too large",
    RejectReason.UNSUPPORTED_TYPE: "file type is not supported",
    RejectReason.NETWORK: "network error",
    RejectReason.SERVER: "server error",
    RejectReason.INVALID: "file cannot be read",
}

_TOO_LARGE_PHRASES = ("too large", "file size", "size limit")
_UNSUPPORTED_TYPE_PHRASES = ("file type", "mime type", "unsupported type", "type not allowed")


class UploadCoordinator:
    """Idempotent uploads with cooldown tracking and post-upload reconciliation."""

    def __init__(
        self,
        client: RelayClient,
        scheduler: RefreshScheduler,
        notifications: NotificationQueue,
        session: SyncSession,
        resolver: Optional[DuplicateResolver] = None,
        upload_cooldown_ms: int = UPLOAD_COOLDOWN_MS,
        content_cooldown_ms: int = CONTENT_COOLDOWN_MS,
        settle_delay_s: float = UPLOAD_SETTLE_DELAY_SECONDS,
        sleep: Optional[Sleep] = None,
    ):
        self.client = client
        self.scheduler = scheduler
        self.notifications = notifications
        self.session = session
        self.resolver = resolver or DuplicateResolver()
        self.upload_cooldown_ms = upload_cooldown_ms
        self.content_cooldown_ms = content_cooldown_ms
        self.settle_delay_s = settle_delay_s
        self._sleep = sleep or asyncio.sleep

    @property
    def is_uploading(self) -> bool:
        return self.session.is_uploading

    async def submit(self, source: UploadSource, custom_name: Optional[str] = None) -> UploadOutcome:
        """
        Upload one file.

        Args:
            source: File selected by the user
            custom_name: Optional display name override

        Returns:
            Accepted outcome with the relay's record, or a rejection reason
        """
        self._collect_garbage()

        reason, content = self._check_policy(source)
        if reason is not None:
            return UploadOutcome.rejected(reason)

        if self.session.is_uploading:
            self.notifications.info("Another upload is still in progress, please wait")
            return UploadOutcome.rejected(RejectReason.BUSY)

        with self.session.hold(SyncSession.UPLOAD_IN_PROGRESS):
            ticket = self._open_ticket(source, content)
            outcome = await self._transmit(source, custom_name, ticket)
            if outcome.accepted:
                await self._settle_and_refresh()
            return outcome

    async def submit_batch(self, sources: Sequence[UploadSource]) -> List[UploadOutcome]:
        """
        Upload several files under one busy guard with a single refresh at the end.

        Returns:
            One outcome per source, in order
        """
        if not sources:
            self.notifications.error("No files selected")
            return []

        self._collect_garbage()

        if self.session.is_uploading:
            self.notifications.info("Another upload is still in progress, please wait")
            return [UploadOutcome.rejected(RejectReason.BUSY) for _ in sources]

        outcomes: List[UploadOutcome] = []
        with self.session.hold(SyncSession.UPLOAD_IN_PROGRESS):
            logger.info(f"Starting upload of {len(sources)} file(s)")

            for source in sources:
                reason, content = self._check_policy(source)
                if reason is not None:
                    outcomes.append(UploadOutcome.rejected(reason))
                    continue
                ticket = self._open_ticket(source, content)
                outcomes.append(await self._transmit(source, None, ticket))

            succeeded = sum(1 for outcome in outcomes if outcome.accepted)
            failed = len(outcomes) - succeeded
            self._notify_batch_summary(succeeded, failed)

            if succeeded:
                await self._settle_and_refresh()

        logger.info(f"Upload batch completed: {succeeded} success, {failed} rejected or failed")
        return outcomes

    def snapshot_tickets(self) -> Tuple[UploadTicket, ...]:
        """Copies of the tracked tickets, oldest first."""
        return tuple(
            UploadTicket(t.file_key, t.content_digest_prefix, t.submitted_at_ms, t.idempotency_key, t.status)
            for t in self.session.tickets
        )

    def reset(self) -> None:
        """Forget every tracked ticket, lifting all cooldowns."""
        logger.warning("Resetting upload state")
        self.session.tickets.clear()

    def _check_policy(self, source: UploadSource) -> Tuple[Optional[RejectReason], Digest]:
        """
        Apply the pre-network rejection rules.

        Returns:
            (reason, digest); reason is None when the upload may proceed
        """
        if source.size_bytes <= 0:
            self.notifications.error(f"{source.name} is empty and was not uploaded")
            return RejectReason.INVALID, UNKNOWN_DIGEST

        now = self.session.now_ms()
        file_key = source.file_key

        for ticket in self._recent(now, self.upload_cooldown_ms):
            if ticket.file_key == file_key and ticket.status in (UploadStatus.PENDING, UploadStatus.SUCCEEDED):
                logger.info(f"Upload of {source.name} rejected: same file submitted {now - ticket.submitted_at_ms}ms ago")
                self.notifications.info(f"{source.name} was just uploaded, please wait before retrying")
                return RejectReason.COOLDOWN, UNKNOWN_DIGEST

        content = digest_source(source)
        if content.is_known:
            prefix = content.prefix()
            for ticket in self._recent(now, self.content_cooldown_ms):
                if ticket.content_digest_prefix == prefix and ticket.status is not UploadStatus.FAILED:
                    logger.info(f"Upload of {source.name} rejected: identical content {prefix} already submitted")
                    self.notifications.info(f"{source.name} has the same content as a file uploaded moments ago")
                    return RejectReason.DUPLICATE_CONTENT, content

        return None, content

    def _recent(self, now: int, window_ms: int) -> Iterable[UploadTicket]:
        return (t for t in self.session.tickets if now - t.submitted_at_ms < window_ms)

    def _open_ticket(self, source: UploadSource, content: Digest) -> UploadTicket:
        now = self.session.now_ms()
        for ticket in self.session.tickets:
            # failed tickets stay FAILED and never count toward a cooldown
            if ticket.file_key == source.file_key and ticket.status is UploadStatus.SUCCEEDED:
                ticket.status = UploadStatus.SUPERSEDED

        ticket = UploadTicket(
            file_key=source.file_key,
            content_digest_prefix=content.prefix() if content.is_known else None,
            submitted_at_ms=now,
            idempotency_key=f"upload_{now}_{uuid.uuid4().hex[:9]}",
        )
        self.session.tickets.append(ticket)
        return ticket

    def _collect_garbage(self) -> None:
        now = self.session.now_ms()
        horizon = max(self.upload_cooldown_ms, self.content_cooldown_ms)
        before = len(self.session.tickets)
        self.session.tickets[:] = [
            t for t in self.session.tickets
            if t.status is UploadStatus.PENDING or now - t.submitted_at_ms < horizon
        ]
        dropped = before - len(self.session.tickets)
        if dropped:
            logger.debug(f"Collected {dropped} expired upload ticket(s)")

    async def _transmit(self, source: UploadSource, custom_name: Optional[str], ticket: UploadTicket) -> UploadOutcome:
        try:
            data = source.read_bytes()
        except (OSError, ValueError) as e:
            ticket.status = UploadStatus.FAILED
            logger.error(f"Cannot read {source.name} for upload: {e}")
            self.notifications.error(f"Failed to upload {source.name}: file cannot be read", ttl_ms=6000)
            return UploadOutcome.rejected(RejectReason.INVALID)

        logger.info(f"Uploading {source.name} ({source.size_bytes} bytes) [upload_id={ticket.idempotency_key}]")
        self.notifications.info(f"Uploading {source.name}...", ttl_ms=3000)

        try:
            result = await self.client.upload_file(source, data, custom_name, ticket.idempotency_key)
        except RelayError as e:
            ticket.status = UploadStatus.FAILED
            reason = self._categorize(e)
            logger.error(f"Upload error for {source.name}: {e}")
            self.notifications.error(
                f"Failed to upload {source.name}: {_FAILURE_MESSAGES[reason]} ({e})",
                ttl_ms=6000,
            )
            return UploadOutcome.rejected(reason)

        ticket.status = UploadStatus.SUCCEEDED

        record = None
        if result.record is not None:
            resolved = self.resolver.resolve([result.record])
            record = resolved[0] if resolved else None

        duplicate_note = " (duplicate detected)" if result.is_duplicate else ""
        self.notifications.success(f"{source.name} uploaded successfully{duplicate_note}", ttl_ms=4000)
        logger.info(f"File uploaded: {record.id if record else '?'} - {source.name}")
        return UploadOutcome.ok(record, is_server_duplicate=result.is_duplicate)

    @staticmethod
    def _categorize(error: RelayError) -> RejectReason:
        if isinstance(error, RelayUnavailableError):
            return RejectReason.NETWORK

        status = getattr(error, 'status_code', None)
        if status == 413:
            return RejectReason.TOO_LARGE
        if status == 415:
            return RejectReason.UNSUPPORTED_TYPE

        text = str(error).lower()
        if any(phrase in text for phrase in _TOO_LARGE_PHRASES):
            return RejectReason.TOO_LARGE
        if any(phrase in text for phrase in _UNSUPPORTED_TYPE_PHRASES):
            return RejectReason.UNSUPPORTED_TYPE
        return RejectReason.SERVER

    async def _settle_and_refresh(self) -> None:
        await self._sleep(self.settle_delay_s)

        result = await self.scheduler.force_refresh()
        if result is RefreshResult.BUSY:
            logger.info("Post-upload refresh deferred: a load is in flight")
            self.scheduler.schedule_refresh()
        elif result is RefreshResult.FAILED:
            self.notifications.warning("Upload completed but refresh failed. Please refresh manually.")
        else:
            count = len(self.scheduler.store.read().records)
            self.notifications.info(f"File list refreshed ({count} files)", ttl_ms=3000)

    def _notify_batch_summary(self, succeeded: int, failed: int) -> None:
        if failed == 0:
            self.notifications.success(f"All {succeeded} files uploaded successfully!")
        elif succeeded > 0:
            self.notifications.warning(f"{succeeded} files uploaded, {failed} failed")
        else:
            self.notifications.error("All uploads failed")
