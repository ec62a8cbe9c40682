"""Duplicate elimination for file listings: id uniqueness plus content signature tie-break."""

import logging
from typing import Dict, Iterable, List, Set

from common.types import FileRecord, StorageClass

logger = logging.getLogger(__name__)


class DuplicateResolver:
    """
    Single source of truth for "is this the same file".

    Records sharing an ``id`` keep their first occurrence. Records sharing the
    signature ``display_name|size_bytes|mime_type`` are treated as the same
    content under different ids (e.g. retried uploads); the one with the
    greatest ``created_at_ms`` survives. Ties keep the earlier-seen record.
    Output preserves the relative input order of the survivors.
    """

    @staticmethod
    def is_valid(record: FileRecord) -> bool:
        """
        Check that a candidate carries every required field.

        Args:
            record: Candidate record

        Returns:
            True if the record may enter a reconciled list
        """
        if not isinstance(record, FileRecord):
            return False
        if not record.id or not record.display_name or not record.mime_type:
            return False
        if not isinstance(record.size_bytes, int) or record.size_bytes <= 0:
            return False
        if not isinstance(record.created_at_ms, int):
            return False
        if not isinstance(record.storage_class, StorageClass):
            return False
        if record.remote_hash and record.storage_class is StorageClass.LOCAL_ONLY:
            return False
        return True

    def resolve(self, candidates: Iterable[FileRecord]) -> List[FileRecord]:
        """
        Remove invalid and duplicate records from a candidate list.

        Args:
            candidates: Records from the network or from a new upload

        Returns:
            Resolved list, relative order of survivors preserved
        """
        unique_by_id: List[FileRecord] = []
        seen_ids: Set[str] = set()
        skipped_invalid = 0

        for record in candidates:
            if not self.is_valid(record):
                skipped_invalid += 1
                continue
            if record.id in seen_ids:
                logger.warning(f"Skipping duplicate file id from relay: {record.id}")
                continue
            seen_ids.add(record.id)
            unique_by_id.append(record)

        if skipped_invalid:
            logger.debug(f"Discarded {skipped_invalid} invalid record(s)")

        winners: Dict[str, FileRecord] = {}
        for record in unique_by_id:
            signature = record.signature()
            current = winners.get(signature)
            if current is None:
                winners[signature] = record
            elif record.created_at_ms > current.created_at_ms:
                logger.debug(f"Content duplicate: {record.id} replaces older {current.id}")
                winners[signature] = record
            else:
                logger.debug(f"Content duplicate: keeping {current.id}, dropping {record.id}")

        surviving_ids = {record.id for record in winners.values()}
        return [record for record in unique_by_id if record.id in surviving_ids]
