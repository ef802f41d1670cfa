"""
Test configuration and fixtures for the application.
"""

import asyncio
import hashlib
import io
import tarfile
import threading
from typing import Any, Callable, IO, Sequence

import pytest

from src.config import TaskConfig
from src.core.guard import PUT_OBJECT_LIMIT
from src.core.relay import UploadRelay
from src.core.task import TGunzipTask
from src.schemas.task import SourceLocation, TargetLocation, TaskConfiguration

SOURCE_BUCKET: str = "src-bucket"
TARGET_BUCKET: str = "dst-bucket"
REGION: str = "eu-west-1"
ARCHIVE_KEY: str = "data/archive.tar.gz"


# ==========================================================
# ======================== HELPERS =========================
# ==========================================================
def make_tar_gz(entries: Sequence[tuple[str, bytes | None]]) -> bytes:
    """Build a gzip-compressed tar archive in memory.

    Parameters
    ----------
    entries : Sequence[tuple[str, bytes | None]]
        Member names with their content; None creates a directory member.

    Returns
    -------
    bytes
        The archive.
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in entries:
            info = tarfile.TarInfo(name)
            if content is None:
                info.type = tarfile.DIRTYPE
                info.mode = 0o755
                tar.addfile(info)
            else:
                info.size = len(content)
                tar.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


class GatedReader:
    """Byte stream that blocks its reader half-way until `gate` is set."""

    def __init__(self, data: bytes, gate_after: int) -> None:
        self._buffer = io.BytesIO(data)
        self._gate_after = gate_after
        self.gate = threading.Event()
        self.blocked = threading.Event()

    def read(self, size: int = -1) -> bytes:
        if self._buffer.closed:
            return b""
        position = self._buffer.tell()
        if position >= self._gate_after and not self.gate.is_set():
            self.blocked.set()
            self.gate.wait(timeout=10)
        elif position < self._gate_after:
            remaining = self._gate_after - position
            size = remaining if size < 0 else min(size, remaining)
        if self._buffer.closed:
            return b""
        return self._buffer.read(size)

    def close(self) -> None:
        self._buffer.close()


class InMemoryObjectStore:
    """Object store keeping objects in a dict, with failure injection for tests."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], bytes] = {}
        self.open_count = 0
        self.put_calls: list[str] = []
        # Key -> number of times the next puts of that key fail
        self.put_failures: dict[str, int] = {}
        self.read_wrapper: Callable[[bytes], IO[bytes]] | None = None
        self._started: dict[str, asyncio.Event] = {}

    def add_object(self, bucket: str, key: str, data: bytes) -> None:
        self.objects[(bucket, key)] = data

    def started(self, key: str) -> asyncio.Event:
        """Event set once the first chunk of `key` reached the store."""
        return self._started.setdefault(key, asyncio.Event())

    async def aopen_read(self, bucket: str, region: str, key: str) -> IO[bytes]:
        self.open_count += 1
        data = self.objects[(bucket, key)]
        if self.read_wrapper is not None:
            return self.read_wrapper(data)
        return io.BytesIO(data)

    async def aput_object(self, bucket: str, region: str, key: str, body: UploadRelay) -> dict[str, Any]:
        self.put_calls.append(key)
        remaining = self.put_failures.get(key, 0)
        if remaining:
            self.put_failures[key] = remaining - 1
            raise ConnectionError(f"simulated provider failure for {key}")

        chunks: list[bytes] = []
        async for chunk in body:
            chunks.append(chunk)
            self.started(key).set()

        data = b"".join(chunks)
        self.objects[(bucket, key)] = data
        return {
            "Bucket": bucket,
            "Key": key,
            "ETag": hashlib.md5(data).hexdigest(),
            "ContentLength": len(data),
        }


# ==========================================================
# ======================== FIXTURES ========================
# ==========================================================
@pytest.fixture(scope="function")
def store() -> InMemoryObjectStore:
    """Empty in-memory object store."""
    return InMemoryObjectStore()


@pytest.fixture(scope="function")
def task_factory(store: InMemoryObjectStore) -> Callable[..., TGunzipTask]:
    """Build tasks reading `ARCHIVE_KEY` from `store` with no retry backoff."""

    def _factory(
        *,
        key: str = ARCHIVE_KEY,
        prefix: str = "out/2024",
        extra_root_dir: str = "",
        max_try_time: int = 3,
        size_limit: int = PUT_OBJECT_LIMIT,
        chunk_size: int = 4096,
    ) -> TGunzipTask:
        config = TaskConfiguration(
            source=SourceLocation(bucket=SOURCE_BUCKET, region=REGION, key=key),
            target=TargetLocation(bucket=TARGET_BUCKET, region=REGION, prefix=prefix),
            extra_root_dir=extra_root_dir,
            max_try_time=max_try_time,
        )
        return TGunzipTask(
            store=store,
            config=config,
            task_config=TaskConfig(retry_delay=0, chunk_size=chunk_size, relay_queue_size=2),
            size_limit=size_limit,
        )

    return _factory


@pytest.fixture(scope="function")
def make_archive() -> Callable[[Sequence[tuple[str, bytes | None]]], bytes]:
    """Expose `make_tar_gz` to tests."""
    return make_tar_gz


@pytest.fixture(scope="function")
def archive_in_store(
    store: InMemoryObjectStore,
) -> Callable[[Sequence[tuple[str, bytes | None]]], bytes]:
    """Build an archive and store it under `ARCHIVE_KEY` in the source bucket."""

    def _put(entries: Sequence[tuple[str, bytes | None]]) -> bytes:
        archive = make_tar_gz(entries)
        store.add_object(SOURCE_BUCKET, ARCHIVE_KEY, archive)
        return archive

    return _put


@pytest.fixture(scope="function")
def gated_readers(store: InMemoryObjectStore) -> Any:
    """Make every archive read block half-way until the test opens the gate."""
    readers: list[GatedReader] = []

    def _wrap(data: bytes) -> GatedReader:
        reader = GatedReader(data, gate_after=len(data) // 2)
        readers.append(reader)
        return reader

    store.read_wrapper = _wrap
    yield readers
    # Release worker threads still waiting on the gate
    for reader in readers:
        reader.gate.set()
