"""Bounded relay between an archive entry and the upload that consumes it."""

import asyncio
from typing import AsyncIterator

from src.core.exceptions import TransientError

_EOF = object()


class UploadRelay:
    """Single-producer, single-consumer byte pipe with a forced-error path.

    The producer side runs on the event loop (`write`, `aclose`). The consumer side
    is either a coroutine (`aread`, ``async for``) or a blocking file-like `read`
    called from a worker thread, which is what boto3's ``upload_fileobj`` expects.
    `abort` fails both sides at once and is the target of task cancellation.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None, maxsize: int = 8) -> None:
        self._loop = loop or asyncio.get_running_loop()
        # At least two slots: abort must be able to enqueue the EOF marker while a
        # woken writer finishes its pending put.
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=max(2, maxsize))
        self._buffer = bytearray()
        self._error: BaseException | None = None
        self._closed = False
        self._eof = False
        self.bytes_written = 0
        self.bytes_read = 0

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def closed(self) -> bool:
        return self._closed

    def _raise_if_failed(self) -> None:
        if self._error is not None:
            raise self._error

    # ---------------------------------------------------------------- producer
    async def write(self, chunk: bytes) -> None:
        """Queue `chunk` for the consumer, waiting while the relay is full."""
        self._raise_if_failed()
        if self._closed:
            raise TransientError("write to a closed upload relay")
        if not chunk:
            return
        await self._queue.put(bytes(chunk))
        self.bytes_written += len(chunk)
        self._raise_if_failed()

    async def aclose(self) -> None:
        """Signal end of data to the consumer."""
        if self._closed:
            return
        self._closed = True
        self._raise_if_failed()
        await self._queue.put(_EOF)

    def abort(self, error: BaseException) -> None:
        """Fail both ends of the relay with `error`.

        Must be called from the event loop thread. The first error wins.
        """
        if self._error is not None:
            return
        self._error = error
        self._closed = True
        # Drop buffered chunks: this also wakes a writer blocked on a full queue.
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
        # Wake a consumer blocked on an empty queue.
        self._queue.put_nowait(_EOF)

    # ---------------------------------------------------------------- consumer
    def _take(self, size: int) -> bytes:
        if size < 0 or size >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
        else:
            data = bytes(self._buffer[:size])
            del self._buffer[:size]
        self.bytes_read += len(data)
        return data

    def _accept(self, item: object) -> None:
        if item is _EOF:
            self._eof = True
            self._raise_if_failed()
            return
        self._raise_if_failed()
        self._buffer.extend(item)  # type: ignore[arg-type]

    def _needs_more(self, size: int) -> bool:
        return not self._eof and (size < 0 or len(self._buffer) < size)

    async def aread(self, size: int = -1) -> bytes:
        """Read up to `size` bytes (all remaining data when negative).

        Returns fewer than `size` bytes only at end of data; ``b""`` means EOF.
        """
        self._raise_if_failed()
        while self._needs_more(size):
            self._accept(await self._queue.get())
        return self._take(size)

    def read(self, size: int = -1) -> bytes:
        """Blocking variant of `aread` for worker threads.

        Returns exactly `size` bytes unless the end of data is reached, which keeps
        multipart uploads from producing undersized parts. Never call it on the
        event loop thread.
        """
        self._raise_if_failed()
        while self._needs_more(size):
            future = asyncio.run_coroutine_threadsafe(self._queue.get(), self._loop)
            self._accept(future.result())
        return self._take(size)

    def readable(self) -> bool:
        return True

    async def __aiter__(self) -> AsyncIterator[bytes]:
        while True:
            self._raise_if_failed()
            if self._buffer:
                yield self._take(-1)
                continue
            if self._eof:
                return
            self._accept(await self._queue.get())
