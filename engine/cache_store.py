"""
Local cache of the reconciled file list.

Provides a storage backend abstraction (in-memory or JSON file) and the
LocalCacheStore that owns the CacheSnapshot. ``replace`` is the only mutator
and always runs its input through the DuplicateResolver. Corrupt persisted
state is treated as empty; write failures are logged and never raised.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from common.constants import FILES_STORAGE_KEY
from common.types import CacheSnapshot, FileRecord, StorageClass, ids_of
from engine.resolver import DuplicateResolver

logger = logging.getLogger(__name__)

BackendListener = Callable[[str, Optional[str]], None]
SnapshotHandler = Callable[[CacheSnapshot], None]


class StorageBackend(Protocol):
    """Key-value medium shared by every view of the same profile."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def add_listener(self, listener: BackendListener) -> Callable[[], None]: ...


class _ListenerMixin:
    """Fan-out of change events to registered listeners."""

    def _init_listeners(self) -> None:
        self._listeners: List[BackendListener] = []

    def add_listener(self, listener: BackendListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def _notify(self, key: str, value: Optional[str]) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, value)
            except Exception as e:
                logger.error(f"Storage listener failed for key {key!r}: {e}", exc_info=True)


class MemoryBackend(_ListenerMixin):
    """
    Dict-backed storage.

    Several LocalCacheStore instances sharing one MemoryBackend behave like
    several open views of the same profile.
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._init_listeners()

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be str, got {type(value).__name__}")
        self._data[key] = value
        self._notify(key, value)

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._notify(key, None)


class JsonFileBackend(_ListenerMixin):
    """
    Storage persisted as a single JSON document on disk.

    Writes go through a temporary file and ``os.replace`` so readers never see
    a half-written document. ``poll()`` picks up writes made by another
    process and fires listeners for the keys that changed.
    """

    def __init__(self, path: Path):
        """
        Initialize file backend.

        Args:
            path: Path to the JSON document (created on first write)
        """
        self._path = Path(path)
        self._data: Dict[str, str] = {}
        self._mtime_ns: Optional[int] = None
        self._init_listeners()
        self._data = self._load_from_disk()

        logger.info(f"Cache backend initialized [path={self._path}]")

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Storage values must be str, got {type(value).__name__}")
        updated = dict(self._data)
        updated[key] = value
        self._save_to_disk(updated)
        self._data = updated
        self._notify(key, value)

    def remove(self, key: str) -> None:
        if key not in self._data:
            return
        updated = dict(self._data)
        del updated[key]
        self._save_to_disk(updated)
        self._data = updated
        self._notify(key, None)

    def poll(self) -> List[str]:
        """
        Reload the document if another process changed it.

        Returns:
            Keys whose values changed since the last load
        """
        mtime_ns = self._current_mtime_ns()
        if mtime_ns == self._mtime_ns:
            return []

        previous = self._data
        self._data = self._load_from_disk()

        changed = sorted(
            key for key in set(previous) | set(self._data)
            if previous.get(key) != self._data.get(key)
        )
        for key in changed:
            self._notify(key, self._data.get(key))

        if changed:
            logger.debug(f"Picked up external cache changes: {changed}")
        return changed

    def _current_mtime_ns(self) -> Optional[int]:
        try:
            return self._path.stat().st_mtime_ns
        except OSError:
            return None

    def _load_from_disk(self) -> Dict[str, str]:
        """
        Load the document.

        Returns:
            Stored mapping, empty if the file is missing or corrupted
        """
        self._mtime_ns = self._current_mtime_ns()

        if not self._path.exists():
            logger.debug(f"Cache file not found at {self._path}, starting empty")
            return {}

        try:
            with open(self._path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load cache from {self._path}: {e}, starting empty")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Cache file {self._path} is not an object, starting empty")
            return {}

        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save_to_disk(self, data: Dict[str, str]) -> None:
        """
        Persist the document atomically.

        Raises:
            OSError: If the document cannot be written
        """
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self._path.parent, prefix=self._path.name, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, self._path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise
        self._mtime_ns = self._current_mtime_ns()


class LocalCacheStore:
    """
    Owner of the CacheSnapshot.

    Every other component reads the snapshot through ``read`` and writes it
    only through ``replace``.
    """

    def __init__(
        self,
        backend: StorageBackend,
        resolver: Optional[DuplicateResolver] = None,
        key: str = FILES_STORAGE_KEY,
    ):
        self._backend = backend
        self._resolver = resolver or DuplicateResolver()
        self._key = key
        self._handlers: List[SnapshotHandler] = []
        self._last_good = CacheSnapshot()
        self._detach = backend.add_listener(self._on_backend_change)

    def read(self) -> CacheSnapshot:
        """
        Return the current snapshot.

        Never raises: absent storage yields an empty snapshot, corrupt storage
        is reset to empty.
        """
        try:
            raw = self._backend.get(self._key)
        except (OSError, ValueError) as e:
            logger.warning(f"Cache read failed, serving last good snapshot: {e}")
            return self._last_good

        if raw is None or not raw.strip() or raw.strip() == "undefined":
            return CacheSnapshot()

        try:
            snapshot = self._decode(raw)
        except ValueError as e:
            logger.warning(f"Discarding corrupt cache state for {self._key!r}: {e}")
            self._heal()
            return CacheSnapshot()

        self._last_good = snapshot
        return snapshot

    def replace(self, records: Iterable[FileRecord]) -> CacheSnapshot:
        """
        Overwrite the snapshot with a resolved copy of ``records``.

        Write failures are logged and swallowed; readers keep seeing the
        previous snapshot.

        Args:
            records: New authoritative file list

        Returns:
            The snapshot now visible to readers
        """
        resolved = self._resolver.resolve(records)
        previous = self.read()

        snapshot = CacheSnapshot(
            records=tuple(resolved),
            last_loaded_count=len(resolved),
            generation=previous.generation + 1,
            last_reconciled_ids=ids_of(resolved),
        )

        try:
            payload = json.dumps(self._encode(snapshot))
            self._backend.set(self._key, payload)
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to persist file cache ({len(resolved)} records): {e}")
            return previous

        self._last_good = snapshot
        logger.debug(f"Cache replaced [records={len(resolved)}, generation={snapshot.generation}]")
        return snapshot

    def clear(self) -> CacheSnapshot:
        return self.replace([])

    def subscribe(self, handler: SnapshotHandler) -> Callable[[], None]:
        """
        Register a change handler.

        The handler receives the new snapshot whenever any view sharing the
        backend replaces it.

        Returns:
            Callable that removes the handler
        """
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def close(self) -> None:
        self._handlers.clear()
        self._detach()

    def files(self, storage_class: Optional[StorageClass] = None):
        return self.read().filter_by_storage_class(storage_class)

    def _on_backend_change(self, key: str, raw: Optional[str]) -> None:
        if key != self._key or not self._handlers:
            return

        snapshot = self.read()
        for handler in list(self._handlers):
            try:
                handler(snapshot)
            except Exception as e:
                logger.error(f"Cache subscriber failed: {e}", exc_info=True)

    def _heal(self) -> None:
        try:
            self._backend.remove(self._key)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to reset corrupt cache state: {e}")

    @staticmethod
    def _encode(snapshot: CacheSnapshot) -> Dict[str, Any]:
        return {
            "records": [record.to_dict() for record in snapshot.records],
            "last_loaded_count": snapshot.last_loaded_count,
            "generation": snapshot.generation,
            "last_reconciled_ids": sorted(snapshot.last_reconciled_ids),
        }

    @staticmethod
    def _decode(raw: str) -> CacheSnapshot:
        """
        Parse persisted state.

        Raises:
            ValueError: If the state is malformed
        """
        data = json.loads(raw)

        if isinstance(data, list):
            data = {"records": data}
        if not isinstance(data, dict) or not isinstance(data.get("records", []), list):
            raise ValueError("cache state is not a snapshot object")

        records = tuple(FileRecord.from_dict(item) for item in data.get("records", []))
        reconciled = data.get("last_reconciled_ids")
        if reconciled is None:
            reconciled = [record.id for record in records]
        if not isinstance(reconciled, list):
            raise ValueError("last_reconciled_ids is not a list")

        try:
            return CacheSnapshot(
                records=records,
                last_loaded_count=int(data.get("last_loaded_count", len(records))),
                generation=int(data.get("generation", 0)),
                last_reconciled_ids=frozenset(str(i) for i in reconciled),
            )
        except (TypeError, ValueError) as e:
            raise ValueError(f"invalid snapshot counters: {e}") from e
