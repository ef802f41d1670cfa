import asyncio

from src import create_logger
from src.core.cancellation import CancellationToken
from src.core.demux import ArchiveDemultiplexer, ArchiveEntry
from src.core.discard import adiscard
from src.core.guard import PUT_OBJECT_LIMIT, check_entry_size
from src.core.paths import build_target_key
from src.core.uploader import EntryUploader
from src.schemas.results import EntryDescriptor, ProviderResponse, ResultsSequence
from src.schemas.task import SourceLocation, TargetLocation
from src.services.protocol import ObjectStore

logger = create_logger("pipeline")


class ArchivePipeline:
    """One pass over the source archive.

    Every member gets an ordinal index. Members with a record from an earlier pass are
    drained and dropped, the others are size-checked and uploaded. The first member
    that fails is recorded as an error and ends the pass.
    """

    def __init__(
        self,
        *,
        store: ObjectStore,
        source: SourceLocation,
        target: TargetLocation,
        target_prefix: str,
        results: ResultsSequence,
        token: CancellationToken,
        uploader: EntryUploader | None = None,
        chunk_size: int = 64 * 1024,
        size_limit: int = PUT_OBJECT_LIMIT,
    ) -> None:
        self.store = store
        self.source = source
        self.target = target
        self.target_prefix = target_prefix
        self.results = results
        self.token = token
        self.uploader = uploader or EntryUploader(store, token)
        self.chunk_size = chunk_size
        self.size_limit = size_limit

    async def arun_once(self) -> ResultsSequence:
        """Stream the archive once, uploading every entry without a success record.

        Every failure leaves an error record. It goes at the failing entry's index,
        or at the first index without a record when that index already holds a
        success from an earlier pass or when the archive stream itself failed.

        Returns
        -------
        ResultsSequence
            The shared results, updated in place.

        Raises
        ------
        Exception
            The entry failure that ended the pass, or a stream-level error from
            opening, reading, decompressing or decoding the archive.
        """
        dropped = self.results.drop_failures()
        if dropped:
            logger.info(f"[+] Dropped {dropped} failed record(s), they will be retried")

        source = self.source
        try:
            count = await self._astream_entries()
        except Exception as error:
            # Entry failures are already recorded
            if not self.results.has_failures:
                index = self.results.next_index()
                self.results.record_failure(index, EntryDescriptor(name=source.key, size=0), error)
                logger.error(
                    f"[x] Reading 's3://{source.bucket}/{source.key}' failed at entry {index}: {error}"
                )
            raise

        logger.info(f"[+] Reached the end of 's3://{source.bucket}/{source.key}' after {count} entries")
        return self.results

    async def _astream_entries(self) -> int:
        source = self.source
        index = -1
        body = await self.store.aopen_read(source.bucket, source.region, source.key)
        try:
            async with ArchiveDemultiplexer(body, chunk_size=self.chunk_size) as demux:
                async for entry in demux:
                    index += 1
                    await self._aprocess_entry(index, entry)
        finally:
            await asyncio.to_thread(body.close)
        return index + 1

    async def _aprocess_entry(self, index: int, entry: ArchiveEntry) -> None:
        params = entry.descriptor
        try:
            self.token.raise_if_cancelled()

            if self.results.has_record(index):
                discarded = await adiscard(entry.iter_chunks(self.token), self.token)
                logger.debug(f"Skipped entry {index} '{entry.name}' ({discarded:,} bytes replayed)")
                return

            result = await self._aupload_entry(entry)
            self.results.record_success(index, params, result)

        except Exception as error:
            # A success from an earlier pass is never replaced, the error goes where the pass stopped.
            failed_index = self.results.next_index() if self.results.has_record(index) else index
            self.results.record_failure(failed_index, params, error)
            logger.error(f"[x] Entry {index} '{entry.name}' failed: {error}")
            raise

    async def _aupload_entry(self, entry: ArchiveEntry) -> ProviderResponse:
        check_entry_size(entry.size, self.size_limit)
        # Directories keep their trailing slash; they and links are stored as empty objects.
        target_key = build_target_key(self.target_prefix, entry.name)
        result = await self.uploader.aupload(
            self.target.bucket,
            self.target.region,
            target_key,
            entry.iter_chunks(self.token),
        )
        logger.info(f"[+] Uploaded '{entry.name}' ({entry.size:,} bytes) to '{target_key}'")
        return result
