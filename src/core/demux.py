"""Pull-based adapter over a streaming tar.gz decoder."""

import asyncio
import tarfile
from dataclasses import dataclass, field
from typing import IO, Any, AsyncGenerator

from src import create_logger
from src.core.cancellation import CancellationToken
from src.schemas.results import EntryDescriptor

logger = create_logger("demux")

STREAM_MODE: str = "r|gz"


@dataclass(slots=True, kw_only=True)
class ArchiveEntry:
    """One member of the archive, valid until the next member is requested."""

    descriptor: EntryDescriptor
    is_file: bool = field(metadata={"description": "Regular file with a payload to upload."})
    fileobj: IO[bytes] | None = field(default=None, repr=False)
    chunk_size: int = 64 * 1024
    _pending: asyncio.Future | None = field(default=None, init=False, repr=False)

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def size(self) -> int:
        return self.descriptor.size

    async def iter_chunks(self, token: CancellationToken | None = None) -> AsyncGenerator[bytes, None]:
        """Yield the member's bytes without blocking the loop.

        Members other than regular files yield nothing. The token is checked before
        every read. A read already running in the worker thread cannot be interrupted:
        if the consumer is cancelled meanwhile, the read is left to `await_pending_read`.
        """
        if self.fileobj is None:
            return
        while True:
            if token is not None:
                token.raise_if_cancelled()
            self._pending = asyncio.ensure_future(asyncio.to_thread(self.fileobj.read, self.chunk_size))
            try:
                chunk = await asyncio.shield(self._pending)
            except Exception:
                self._pending = None
                raise
            # A CancelledError above leaves the read pending
            self._pending = None
            if not chunk:
                break
            yield chunk

    async def await_pending_read(self) -> None:
        """Wait for a read abandoned by a cancelled consumer before the stream is closed."""
        pending, self._pending = self._pending, None
        if pending is None:
            return
        try:
            await pending
        except Exception as e:
            logger.warning(f"[-] Abandoned read of '{self.name}' failed: {e!r}")


class ArchiveDemultiplexer:
    """Iterate the members of a gzip-compressed tar stream in archive order.

    The decoder only advances when the consumer asks for the next member, so entry
    processing can never be overtaken by decompression. Reading is sequential: the
    underlying file object is never seeked, and member headers are not kept once
    the next member is reached.

    Usage
    -----
        async with ArchiveDemultiplexer(body) as demux:
            async for entry in demux:
                async for chunk in entry.iter_chunks():
                    ...
    """

    def __init__(self, fileobj: IO[bytes], chunk_size: int = 64 * 1024, mode: str = STREAM_MODE) -> None:
        self._fileobj = fileobj
        self._chunk_size = chunk_size
        self._mode = mode
        self._tar: tarfile.TarFile | None = None
        self._current: ArchiveEntry | None = None

    async def __aenter__(self) -> "ArchiveDemultiplexer":
        self._tar = await asyncio.to_thread(tarfile.open, fileobj=self._fileobj, mode=self._mode)
        self._tar.members = []
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self._arelease_current()
        if self._tar is not None:
            tar, self._tar = self._tar, None
            await asyncio.to_thread(tar.close)

    def __aiter__(self) -> "ArchiveDemultiplexer":
        return self

    async def __anext__(self) -> ArchiveEntry:
        if self._tar is None:
            raise RuntimeError("Archive is not open, use 'async with'")

        await self._arelease_current()
        entry = await asyncio.to_thread(self._next_entry, self._tar)
        if entry is None:
            raise StopAsyncIteration
        self._current = entry
        return entry

    @property
    def retained_members(self) -> int:
        """Member headers still held by the decoder."""
        return len(self._tar.members) if self._tar is not None else 0

    async def _arelease_current(self) -> None:
        entry, self._current = self._current, None
        if entry is not None:
            await entry.await_pending_read()

    def _next_entry(self, tar: tarfile.TarFile) -> ArchiveEntry | None:
        member = tar.next()
        # Stream mode never looks members up again
        tar.members = []
        if member is None:
            return None

        name = member.name
        if member.isdir() and not name.endswith("/"):
            name = f"{name}/"

        # Links cannot be opened as file objects on a non-seekable stream.
        is_file = member.isreg()
        return ArchiveEntry(
            descriptor=EntryDescriptor(name=name, size=member.size),
            is_file=is_file,
            fileobj=tar.extractfile(member) if is_file else None,
            chunk_size=self._chunk_size,
        )
