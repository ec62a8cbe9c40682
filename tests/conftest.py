"""Shared pytest fixtures for all tests."""

import asyncio
import json
import re
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest
import pytest_asyncio

from cli.config import Config
from common.types import FileRecord, StorageClass
from engine.cache_store import LocalCacheStore, MemoryBackend
from engine.notifications import NotificationQueue
from engine.sync_engine import EngineSettings, SyncEngine

START_MS = 1_700_000_000_000

Override = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start_ms: int = START_MS):
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class FakeRelay:
    """
    In-process relay served through httpx.MockTransport.

    Keeps a list of wire-format file entries and answers the relay endpoints.
    ``overrides`` maps a path prefix to a canned response or exception.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.files: List[Dict[str, Any]] = []
        self.calls: List[tuple] = []
        self.requests: List[httpx.Request] = []
        self.overrides: Dict[str, Override] = {}
        self.list_gate: Optional[asyncio.Event] = None
        self.upload_gate: Optional[asyncio.Event] = None
        self.list_visible_after_upload = True
        self.remote_enabled = True
        self.healthy = True
        self.pinned: set = set()
        self._next_id = 1

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def add_file(self, name: str, size: int = 100, mime: str = "text/plain",
                 timestamp: Optional[int] = None, ipfs_hash: Optional[str] = None,
                 file_id: Optional[str] = None, storage_type: Optional[str] = None) -> Dict[str, Any]:
        if file_id is None:
            file_id = str(self._next_id)
            self._next_id += 1
        entry = {
            "id": file_id,
            "originalName": name,
            "size": size,
            "mimetype": mime,
            "timestamp": timestamp if timestamp is not None else self.clock(),
            "ipfsHash": ipfs_hash,
            "storageType": storage_type or ("local-with-ipfs" if ipfs_hash else "local-only"),
        }
        self.files.append(entry)
        return entry

    def count(self, method: str, path_prefix: str) -> int:
        return sum(1 for m, p in self.calls if m == method and p.startswith(path_prefix))

    async def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.calls.append((request.method, path))
        self.requests.append(request)

        for prefix, override in self.overrides.items():
            if path.startswith(prefix):
                if isinstance(override, Exception):
                    raise override
                if isinstance(override, httpx.Response):
                    return override
                return override(request)

        if request.method == "GET" and path in ("/files/all", "/files/search"):
            if self.list_gate is not None:
                await self.list_gate.wait()
            entries = self.files
            name = request.url.params.get("name")
            if path == "/files/search" and name:
                entries = [f for f in entries if name.lower() in f["originalName"].lower()]
            return httpx.Response(200, json={"success": True, "files": list(entries)})

        if request.method == "POST" and path == "/upload":
            if self.upload_gate is not None:
                await self.upload_gate.wait()
            body = request.content
            match = re.search(rb'name="customName"\r\n\r\n(.*?)\r\n', body)
            name = match.group(1).decode() if match else "upload.bin"
            content = re.search(rb'filename="[^"]*"\r\nContent-Type: [^\r]*\r\n\r\n(.*?)\r\n--', body, re.S)
            size = len(content.group(1)) if content else 1
            entry = {
                "id": str(self._next_id),
                "originalName": name,
                "size": size,
                "mimetype": "text/plain",
                "timestamp": self.clock(),
                "ipfsHash": None,
                "storageType": "local-only",
            }
            self._next_id += 1
            if self.list_visible_after_upload:
                self.files.append(entry)
            return httpx.Response(200, json={"success": True, "file": entry})

        if request.method == "DELETE" and path.startswith("/files/"):
            file_id = path.rsplit("/", 1)[-1]
            before = len(self.files)
            self.files = [f for f in self.files if f["id"] != file_id]
            if len(self.files) == before:
                return httpx.Response(404, json={"success": False, "error": "File not found"})
            return httpx.Response(200, json={"success": True})

        if request.method == "POST" and path in ("/api/ipfs/pin", "/api/ipfs/unpin"):
            remote_hash = json.loads(request.content)["hash"]
            if path.endswith("/pin"):
                self.pinned.add(remote_hash)
            else:
                self.pinned.discard(remote_hash)
            return httpx.Response(200, json={"success": True})

        if request.method == "POST" and path == "/api/ipfs/upload-existing":
            if not self.remote_enabled:
                return httpx.Response(400, json={"success": False, "error": "IPFS not active"})
            file_id = json.loads(request.content)["fileId"]
            entry = next((f for f in self.files if f["id"] == file_id), None)
            if entry is None:
                return httpx.Response(404, json={"success": False, "error": "File not found"})
            entry["ipfsHash"] = f"Qm{file_id}"
            entry["storageType"] = "local-with-ipfs"
            return httpx.Response(200, json={"success": True, "ipfsHash": entry["ipfsHash"]})

        if request.method == "GET" and path.startswith("/api/ipfs/pin-status/"):
            remote_hash = path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"success": True, "isPinned": remote_hash in self.pinned})

        if request.method == "GET" and path == "/api/ipfs/status":
            return httpx.Response(200, json={"success": True, "status": {"enabled": self.remote_enabled}})

        if request.method == "GET" and path == "/api/ipfs/health-check":
            if self.healthy:
                return httpx.Response(200, json={"success": True, "message": "IPFS node reachable"})
            return httpx.Response(200, json={"success": False, "health": {"error": "node offline"}})

        return httpx.Response(404, json={"success": False, "error": "Not found"})


async def no_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


def make_record(file_id: str, name: str = "a.txt", size: int = 10, mime: str = "text/plain",
                created_at_ms: int = 1, storage_class: StorageClass = StorageClass.LOCAL_ONLY,
                remote_hash: Optional[str] = None) -> FileRecord:
    return FileRecord(
        id=file_id,
        display_name=name,
        mime_type=mime,
        size_bytes=size,
        created_at_ms=created_at_ms,
        storage_class=storage_class,
        remote_hash=remote_hash,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_backend():
    return MemoryBackend()


@pytest.fixture
def store(memory_backend):
    return LocalCacheStore(memory_backend)


@pytest.fixture
def notifications(memory_backend, clock):
    return NotificationQueue(backend=memory_backend, clock=clock)


@pytest.fixture
def relay(clock):
    return FakeRelay(clock)


@pytest_asyncio.fixture
async def engine(relay, clock, memory_backend):
    """
    SyncEngine wired to the fake relay, a fake clock and in-memory storage.
    """
    settings = EngineSettings(base_url="http://relay.test")
    sync_engine = SyncEngine(
        settings,
        token_provider=lambda: "test-token",
        backend=memory_backend,
        transport=relay.transport,
        clock=clock,
        wall_clock=clock,
        sleep=no_sleep,
    )
    yield sync_engine
    await sync_engine.aclose()


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to temporary .relaysync directory
    """
    config_dir = tmp_path / '.relaysync'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Args:
        temp_config_dir: Temporary config directory fixture

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / 'config.json')


@pytest.fixture
def sample_file(tmp_path):
    """
    Create a sample file for testing file uploads.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        Path to sample text file
    """
    file_path = tmp_path / 'test.txt'
    file_path.write_text('Sample content for testing')
    return file_path


@pytest.fixture
def multiple_sample_files(tmp_path):
    """
    Create multiple sample files for testing bulk operations.

    Args:
        tmp_path: pytest tmp_path fixture

    Returns:
        List of Paths to sample files
    """
    files = []
    for i in range(3):
        file_path = tmp_path / f'test{i}.txt'
        file_path.write_text(f'Sample content {i}')
        files.append(file_path)
    return files
