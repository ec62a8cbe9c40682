"""Provides SHA-256 content digests for upload identity checks."""

import hashlib
import logging
from dataclasses import dataclass

from common.constants import CONTENT_DIGEST_PREFIX_LENGTH
from common.types import UploadSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Digest:
    """
    SHA-256 digest of a file's content.

    An empty ``hexdigest`` is the "unknown" sentinel: hashing could not
    complete and callers must fall back to identity-by-metadata.
    """
    hexdigest: str

    @property
    def is_known(self) -> bool:
        return bool(self.hexdigest)

    def prefix(self, length: int = CONTENT_DIGEST_PREFIX_LENGTH) -> str:
        """
        First ``length`` hex characters of the digest.

        Returns:
            Prefix string, empty for the unknown sentinel
        """
        return self.hexdigest[:length]


UNKNOWN_DIGEST = Digest("")


def digest(data: bytes) -> Digest:
    """
    Compute SHA-256 digest for given data.

    Args:
        data: Full byte content of the candidate file

    Returns:
        Digest of the data
    """
    return Digest(hashlib.sha256(data).hexdigest())


def digest_source(source: UploadSource) -> Digest:
    """
    Compute the digest of an upload candidate, best effort.

    Args:
        source: File selected for upload

    Returns:
        Digest of the content, or UNKNOWN_DIGEST if it could not be read
    """
    try:
        data = source.read_bytes()
    except (OSError, ValueError) as e:
        logger.warning(f"Failed to hash {source.name!r}, falling back to metadata identity: {e}")
        return UNKNOWN_DIGEST
    return digest(data)
