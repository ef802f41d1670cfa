import asyncio
from contextlib import contextmanager, suppress
from typing import Iterator

from src import create_logger
from src.core.exceptions import TaskCancelledError
from src.core.relay import UploadRelay

logger = create_logger("cancellation")


class CancellationToken:
    """Cancellation signal shared by every operation of one task.

    Once set the signal never clears. The token also owns the slot for the single
    in-flight upload relay so that `cancel` can force an error into it.
    """

    def __init__(self) -> None:
        self._error: BaseException | None = None
        self._active_transfer: UploadRelay | None = None
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> BaseException | None:
        return self._error

    @property
    def active_transfer(self) -> UploadRelay | None:
        return self._active_transfer

    def cancel(self, error: BaseException | None = None) -> None:
        """Set the signal and abort the in-flight transfer, if any.

        Only the first error is kept; later calls still abort an active transfer
        with it. Must be called from the event loop thread.
        """
        if self._error is None:
            self._error = error if error is not None else TaskCancelledError()
            self._event.set()
            logger.warning(f"[-] Cancellation requested: {self._error}")

        if self._active_transfer is not None:
            self._active_transfer.abort(self._error)

    def raise_if_cancelled(self) -> None:
        if self._error is not None:
            raise self._error

    @contextmanager
    def track(self, relay: UploadRelay) -> Iterator[UploadRelay]:
        """Register `relay` as the active transfer for the duration of the block.

        A relay registered after cancellation is aborted right away.
        """
        if self._active_transfer is not None:
            raise RuntimeError("Another upload is already in flight for this task")

        self._active_transfer = relay
        try:
            if self._error is not None:
                relay.abort(self._error)
            yield relay
        finally:
            self._active_transfer = None

    async def asleep(self, delay: float) -> None:
        """Sleep for `delay` seconds, returning early if the task is cancelled."""
        with suppress(TimeoutError):
            await asyncio.wait_for(self._event.wait(), timeout=delay)
