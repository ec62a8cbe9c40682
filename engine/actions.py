"""Delete, pin, unpin and promote operations on cached files."""

import logging
from typing import Iterable, Optional, Tuple

from common.exceptions import RelayError
from common.types import StorageClass
from engine.cache_store import LocalCacheStore
from engine.notifications import NotificationQueue
from engine.relay_client import RelayClient
from engine.scheduler import RefreshScheduler

logger = logging.getLogger(__name__)


class FileActions:
    """
    Destructive and replication operations.

    A successful delete force-refreshes the cache; pin and unpin schedule a
    normal refresh shortly after. Failures are reported as notifications and
    leave the cache untouched.
    """

    def __init__(
        self,
        client: RelayClient,
        store: LocalCacheStore,
        scheduler: RefreshScheduler,
        notifications: NotificationQueue,
    ):
        self.client = client
        self.store = store
        self.scheduler = scheduler
        self.notifications = notifications

    async def delete(self, file_id: str, display_name: Optional[str] = None, refresh: bool = True) -> bool:
        """
        Delete one file on the relay.

        Args:
            file_id: Id of the file
            display_name: Name used in messages (looked up in the cache when omitted)
            refresh: Force-refresh the cache after a successful delete

        Returns:
            True if the relay confirmed the delete
        """
        if display_name is None:
            record = self.store.read().find(file_id)
            display_name = record.display_name if record else file_id

        logger.info(f"Starting deletion of file: {file_id}")
        try:
            await self.client.delete_file(file_id)
        except RelayError as e:
            logger.error(f"Error deleting file {file_id}: {e}")
            self.notifications.error(f"Error deleting {display_name}: {e}")
            return False

        logger.info(f"File {file_id} deleted successfully on relay")
        self.notifications.success(f"{display_name} deleted successfully")
        if refresh:
            await self.scheduler.force_refresh()
        return True

    async def delete_many(self, file_ids: Iterable[str]) -> Tuple[int, int]:
        """
        Delete several files, then force-refresh once.

        Returns:
            (succeeded, failed) counts
        """
        file_ids = list(file_ids)
        if not file_ids:
            return 0, 0

        self.notifications.info(f"Deleting {len(file_ids)} files...")
        succeeded = 0
        for file_id in file_ids:
            if await self.delete(file_id, refresh=False):
                succeeded += 1
        failed = len(file_ids) - succeeded

        if failed == 0:
            self.notifications.success(f"Successfully deleted {succeeded} files")
        elif succeeded > 0:
            self.notifications.warning(f"Deleted {succeeded}/{len(file_ids)} files. {failed} failed.")
        else:
            self.notifications.error("Failed to delete any files")

        if succeeded:
            await self.scheduler.force_refresh()
        return succeeded, failed

    async def pin(self, file_id: str, remote_hash: Optional[str] = None) -> bool:
        return await self._pin_operation(file_id, remote_hash, pin=True)

    async def unpin(self, file_id: str, remote_hash: Optional[str] = None) -> bool:
        return await self._pin_operation(file_id, remote_hash, pin=False)

    async def promote(self, file_id: str) -> bool:
        """
        Add a local-only file to the remote content network.

        Checks first that the relay has remote storage enabled, then schedules
        a refresh so the new storage class shows up in the cache.

        Returns:
            True if the relay accepted the file
        """
        record = self.store.read().find(file_id)
        display_name = record.display_name if record else file_id
        if record is not None and record.storage_class is not StorageClass.LOCAL_ONLY:
            self.notifications.info(f"{display_name} is already on the remote network")
            return False

        try:
            remote = await self.client.remote_status()
        except RelayError as e:
            logger.error(f"Error reading remote storage status: {e}")
            self.notifications.error(f"Failed to upload {display_name} to the remote network: {e}")
            return False
        if not remote.enabled:
            self.notifications.warning("Remote storage is not enabled. Please enable it first.")
            return False

        logger.info(f"Promoting file {file_id} to the remote network")
        self.notifications.info(f"Uploading {display_name} to the remote network...")
        try:
            remote_hash = await self.client.upload_existing(file_id, display_name)
        except RelayError as e:
            logger.error(f"Error promoting file {file_id}: {e}")
            self.notifications.error(f"Failed to upload {display_name} to the remote network: {e}")
            return False

        suffix = f": {remote_hash}" if remote_hash else ""
        self.notifications.success(f"{display_name} uploaded to the remote network{suffix}")
        self.scheduler.schedule_refresh()
        return True

    async def pin_status(self, remote_hash: Optional[str]) -> bool:
        """
        Ask the relay whether a hash is pinned.

        Returns:
            False when no hash is given or the check fails
        """
        if not remote_hash:
            return False
        try:
            return await self.client.pin_status(remote_hash)
        except RelayError as e:
            logger.error(f"Error checking pin status for {remote_hash}: {e}")
            return False

    async def _pin_operation(self, file_id: str, remote_hash: Optional[str], pin: bool) -> bool:
        verb = "pin" if pin else "unpin"

        if not remote_hash:
            record = self.store.read().find(file_id)
            remote_hash = record.remote_hash if record else None
        if not remote_hash:
            self.notifications.error("File does not have a remote hash")
            return False

        self.notifications.info(f"{verb.capitalize()}ning file {file_id}...")
        try:
            if pin:
                await self.client.pin(remote_hash)
            else:
                await self.client.unpin(remote_hash)
        except RelayError as e:
            logger.error(f"Error during {verb} of {remote_hash}: {e}")
            self.notifications.error(f"Failed to {verb} file: {e}")
            return False

        done = "pinned to" if pin else "unpinned from"
        self.notifications.success(f"File {done} the remote network successfully")
        self.scheduler.schedule_refresh()
        return True
