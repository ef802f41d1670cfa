import asyncio
from typing import AsyncIterable

from src import create_logger
from src.core.cancellation import CancellationToken
from src.core.relay import UploadRelay
from src.schemas.results import ProviderResponse
from src.services.protocol import ObjectStore

logger = create_logger("uploader")


class EntryUploader:
    """Stream one archive entry into a destination object."""

    def __init__(self, store: ObjectStore, token: CancellationToken, relay_queue_size: int = 8) -> None:
        self.store = store
        self.token = token
        self.relay_queue_size = relay_queue_size

    async def aupload(
        self,
        target_bucket: str,
        target_region: str,
        target_key: str,
        source: AsyncIterable[bytes],
    ) -> ProviderResponse:
        """Upload `source` as `target_key` and return the store's response.

        The store's write and the pump from `source` into the relay run concurrently.
        The first failure on either side aborts the relay, cancels the other side and
        is raised. While the upload runs the relay is the task's active transfer, so
        cancelling the task forces an error into it.

        Parameters
        ----------
        target_bucket : str
            Destination bucket.
        target_region : str
            Destination region.
        target_key : str
            Destination object key.
        source : AsyncIterable[bytes]
            The entry's byte stream.

        Returns
        -------
        ProviderResponse
            Whatever the store returned for the write.
        """
        relay = UploadRelay(maxsize=self.relay_queue_size)
        with self.token.track(relay):
            write_task = asyncio.create_task(
                self._awrite(target_bucket, target_region, target_key, relay),
                name=f"write:{target_key}",
            )
            pump_task = asyncio.create_task(self._apump(source, relay), name=f"pump:{target_key}")
            try:
                await asyncio.wait({write_task, pump_task}, return_when=asyncio.FIRST_EXCEPTION)
            except asyncio.CancelledError:
                relay.abort(asyncio.CancelledError())
                await self._acancel(write_task, pump_task)
                raise

            for task in (write_task, pump_task):
                if task.done() and not task.cancelled() and task.exception() is not None:
                    error = task.exception()
                    await self._acancel(write_task, pump_task)
                    logger.error(f"[x] Upload of '{target_key}' failed: {error!r}")
                    raise error  # type: ignore[misc]

            # Both finished cleanly
            return write_task.result()

    async def _awrite(self, bucket: str, region: str, key: str, relay: UploadRelay) -> ProviderResponse:
        try:
            return await self.store.aput_object(bucket, region, key, relay)
        except BaseException as error:
            relay.abort(error)
            raise

    async def _apump(self, source: AsyncIterable[bytes], relay: UploadRelay) -> int:
        try:
            async for chunk in source:
                self.token.raise_if_cancelled()
                await relay.write(chunk)
            await relay.aclose()
        except BaseException as error:
            relay.abort(error)
            raise
        return relay.bytes_written

    @staticmethod
    async def _acancel(*tasks: asyncio.Task) -> None:
        """Cancel unfinished tasks and wait for them, discarding their outcome."""
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
