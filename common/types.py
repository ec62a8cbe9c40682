"""Shared data type definitions (FileRecord, CacheSnapshot, UploadTicket, Notification, etc.)."""

import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple


class StorageClass(str, Enum):
    """Where the bytes of a file live."""

    LOCAL_ONLY = "local-only"
    LOCAL_WITH_REMOTE = "local-with-remote"
    REMOTE_ONLY = "remote-only"

    @classmethod
    def from_wire(cls, value: Optional[str], remote_hash: Optional[str] = None) -> "StorageClass":
        """
        Map a relay storage type onto a StorageClass.

        Args:
            value: Storage type as reported by the relay (may be None)
            remote_hash: Content hash, used to infer the class when value is unknown

        Returns:
            Matching StorageClass
        """
        aliases = {
            "local-only": cls.LOCAL_ONLY,
            "local-with-remote": cls.LOCAL_WITH_REMOTE,
            "local-with-ipfs": cls.LOCAL_WITH_REMOTE,
            "remote-only": cls.REMOTE_ONLY,
            "ipfs-independent": cls.REMOTE_ONLY,
        }
        storage_class = aliases.get((value or "").strip().lower())
        if storage_class is None:
            return cls.LOCAL_WITH_REMOTE if remote_hash else cls.LOCAL_ONLY
        if storage_class is cls.LOCAL_ONLY and remote_hash:
            return cls.LOCAL_WITH_REMOTE
        return storage_class


@dataclass(frozen=True)
class FileRecord:
    """
    Metadata for a single file known to the relay.

    Invariant: ``remote_hash`` present implies ``storage_class`` is not local-only.
    """
    id: str
    display_name: str
    mime_type: str
    size_bytes: int
    created_at_ms: int
    storage_class: StorageClass = StorageClass.LOCAL_ONLY
    remote_hash: Optional[str] = None

    def signature(self) -> str:
        """Content signature used to spot the same file under different ids."""
        return f"{self.display_name}|{self.size_bytes}|{self.mime_type}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "mime_type": self.mime_type,
            "size_bytes": self.size_bytes,
            "created_at_ms": self.created_at_ms,
            "storage_class": self.storage_class.value,
            "remote_hash": self.remote_hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileRecord":
        """
        Rebuild a record from its persisted form.

        Raises:
            ValueError: If the mapping is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected object, got {type(data).__name__}")
        try:
            remote_hash = data.get("remote_hash") or None
            return cls(
                id=str(data["id"]),
                display_name=str(data["display_name"]),
                mime_type=str(data["mime_type"]),
                size_bytes=int(data["size_bytes"]),
                created_at_ms=int(data["created_at_ms"]),
                storage_class=StorageClass(data.get("storage_class", StorageClass.LOCAL_ONLY.value)),
                remote_hash=remote_hash,
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed file record: {e}") from e


@dataclass(frozen=True)
class CacheSnapshot:
    """
    Immutable view of the cached file list.

    Attributes:
        records: Resolved file records, in display order
        last_loaded_count: Number of records written by the last replace
        generation: Monotonically increasing replace counter
        last_reconciled_ids: Id-set of the last write, used to detect no-op refreshes
    """
    records: Tuple[FileRecord, ...] = ()
    last_loaded_count: int = 0
    generation: int = 0
    last_reconciled_ids: FrozenSet[str] = frozenset()

    @property
    def total_size_bytes(self) -> int:
        return sum(record.size_bytes for record in self.records)

    def ids(self) -> FrozenSet[str]:
        return frozenset(record.id for record in self.records)

    def find(self, file_id: str) -> Optional[FileRecord]:
        for record in self.records:
            if record.id == file_id:
                return record
        return None

    def filter_by_storage_class(self, storage_class: Optional[StorageClass]) -> Tuple[FileRecord, ...]:
        if storage_class is None:
            return self.records
        return tuple(r for r in self.records if r.storage_class is storage_class)


class UploadStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SUPERSEDED = "superseded"


@dataclass
class UploadTicket:
    """
    Record of one upload submission, kept for the cooldown windows.
    """
    file_key: str
    content_digest_prefix: Optional[str]
    submitted_at_ms: int
    idempotency_key: str
    status: UploadStatus = UploadStatus.PENDING


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    """User-visible status message."""
    id: str
    message: str
    severity: Severity
    created_at_ms: int
    expires_at_ms: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "severity": self.severity.value,
            "created_at_ms": self.created_at_ms,
            "expires_at_ms": self.expires_at_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Notification":
        if not isinstance(data, dict):
            raise ValueError(f"Expected object, got {type(data).__name__}")
        try:
            expires = data.get("expires_at_ms")
            return cls(
                id=str(data["id"]),
                message=str(data["message"]),
                severity=Severity(data["severity"]),
                created_at_ms=int(data["created_at_ms"]),
                expires_at_ms=int(expires) if expires is not None else None,
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed notification: {e}") from e


class RejectReason(str, Enum):
    COOLDOWN = "cooldown"
    DUPLICATE_CONTENT = "duplicate-content"
    BUSY = "busy"
    INVALID = "invalid"
    TOO_LARGE = "too-large"
    UNSUPPORTED_TYPE = "unsupported-type"
    NETWORK = "network"
    SERVER = "server"


@dataclass(frozen=True)
class UploadOutcome:
    accepted: bool
    record: Optional[FileRecord] = None
    reason: Optional[RejectReason] = None
    is_server_duplicate: bool = False

    @classmethod
    def ok(cls, record: Optional[FileRecord], is_server_duplicate: bool = False) -> "UploadOutcome":
        return cls(accepted=True, record=record, is_server_duplicate=is_server_duplicate)

    @classmethod
    def rejected(cls, reason: RejectReason) -> "UploadOutcome":
        return cls(accepted=False, reason=reason)


@dataclass(frozen=True)
class UploadSource:
    """
    A local file selected for upload.

    Either ``path`` or ``data`` supplies the bytes.
    """
    name: str
    size_bytes: int
    last_modified_ms: int
    mime_type: str = "application/octet-stream"
    path: Optional[Path] = None
    data: Optional[bytes] = field(default=None, repr=False)

    @property
    def file_key(self) -> str:
        """Idempotency key derived from name, size and last-modified time."""
        return f"{self.name}|{self.size_bytes}|{self.last_modified_ms}"

    def read_bytes(self) -> bytes:
        """
        Read the full content of the file.

        Raises:
            OSError: If the file cannot be read
            ValueError: If the source carries neither path nor data
        """
        if self.data is not None:
            return self.data
        if self.path is None:
            raise ValueError(f"Upload source {self.name!r} has no content")
        return self.path.read_bytes()

    @classmethod
    def from_path(cls, path: Path, name: Optional[str] = None) -> "UploadSource":
        """
        Build a source from a file on disk.

        Raises:
            OSError: If the file cannot be stat'ed
        """
        stat = path.stat()
        mime_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=name or path.name,
            size_bytes=stat.st_size,
            last_modified_ms=int(stat.st_mtime * 1000),
            mime_type=mime_type or "application/octet-stream",
            path=path,
        )

    @classmethod
    def from_bytes(cls, name: str, data: bytes, last_modified_ms: int,
                   mime_type: Optional[str] = None) -> "UploadSource":
        if mime_type is None:
            mime_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
        return cls(
            name=name,
            size_bytes=len(data),
            last_modified_ms=last_modified_ms,
            mime_type=mime_type,
            data=data,
        )


class RefreshResult(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    THROTTLED = "throttled"
    BUSY = "busy"
    FAILED = "failed"
    REJECTED = "rejected"


class ConnectionState(str, Enum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    CONNECTED = "connected"
    DISABLED = "disabled"
    ERROR = "error"


@dataclass(frozen=True)
class ConnectionStatus:
    state: ConnectionState
    message: str


def ids_of(records: Iterable[FileRecord]) -> FrozenSet[str]:
    return frozenset(record.id for record in records)
