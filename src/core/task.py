"""Retry loop around a full pass over a tar.gz archive."""

from src import create_logger
from src.config import TaskConfig, app_config
from src.core.cancellation import CancellationToken
from src.core.exceptions import is_retryable
from src.core.guard import PUT_OBJECT_LIMIT
from src.core.paths import build_target_prefix
from src.core.pipeline import ArchivePipeline
from src.core.uploader import EntryUploader
from src.schemas.results import ResultsSequence
from src.schemas.task import TaskConfiguration
from src.services.protocol import ObjectStore

logger = create_logger("task")


class TGunzipTask:
    """Split a gzip-compressed tar archive into one object per entry.

    Each attempt re-reads the archive from the start. Entries that succeeded in an
    earlier attempt are drained and skipped, so nothing is uploaded twice. The
    results are returned whatever the outcome; any error record means the task
    failed.

    Usage
    -----
        task = TGunzipTask(store=S3ObjectStore(), config=configuration)
        results = await task.arun()
        if not task.succeeded:
            ...
    """

    def __init__(
        self,
        *,
        store: ObjectStore,
        config: TaskConfiguration,
        token: CancellationToken | None = None,
        task_config: TaskConfig = app_config.task_config,
        size_limit: int = PUT_OBJECT_LIMIT,
        retry_delay: float | None = None,
    ) -> None:
        """Initialize the task.

        Parameters
        ----------
        store : ObjectStore
            Object store used for both the source archive and the entries.
        config : TaskConfiguration
            Source, target and retry budget of the task.
        token : CancellationToken | None, optional
            Shared cancellation signal, a new one by default.
        task_config : TaskConfig, optional
            Chunk, relay and backoff tuning, by default app_config.task_config.
        size_limit : int, optional
            Largest entry accepted, by default PUT_OBJECT_LIMIT (5 GiB).
        retry_delay : float | None, optional
            Overrides `task_config.retry_delay` when given.
        """
        self.store = store
        self.config = config
        self.token = token or CancellationToken()
        self.max_try_time = config.max_try_time
        self.retry_delay = task_config.retry_delay if retry_delay is None else retry_delay
        self.target_prefix = build_target_prefix(
            config.target.prefix,
            config.source.key,
            include_dirname=config.include_dirname,
            include_basename=config.include_basename,
        )
        self.results = ResultsSequence()
        self.attempts = 0
        self.last_error: BaseException | None = None
        self._completed = False

        self.pipeline = ArchivePipeline(
            store=store,
            source=config.source,
            target=config.target,
            target_prefix=self.target_prefix,
            results=self.results,
            token=self.token,
            uploader=EntryUploader(store, self.token, relay_queue_size=task_config.relay_queue_size),
            chunk_size=task_config.chunk_size,
            size_limit=size_limit,
        )

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    @property
    def succeeded(self) -> bool:
        """True when an attempt reached the end of the archive with no error recorded."""
        return self._completed and not self.results.has_failures

    def cancel(self, error: BaseException | None = None) -> None:
        """Cancel the task, aborting the upload in flight if there is one."""
        self.token.cancel(error)

    async def arun(self) -> ResultsSequence:
        """Run up to `max_try_time` attempts over the archive.

        Stops early on success, on cancellation and on non-retryable errors such as
        an entry above the size limit.

        Returns
        -------
        ResultsSequence
            Records of every entry reached, possibly ending with an error record.
        """
        source = self.config.source
        for attempt in range(self.max_try_time):
            if self.token.cancelled:
                logger.warning("[-] Task cancelled, not starting a new attempt")
                break

            self.attempts = attempt + 1
            logger.info(
                f"[+] Splitting 's3://{source.bucket}/{source.key}' into '{self.target_prefix}' "
                f"(attempt {self.attempts}/{self.max_try_time})"
            )
            try:
                await self.pipeline.arun_once()
                self._completed = True
                self.last_error = None
                logger.info(f"[+] Task finished: {self.results!r}")
                break

            except Exception as e:
                self.last_error = e
                if self.token.cancelled:
                    logger.error(f"[x] Task cancelled during attempt {self.attempts}: {e}")
                    break
                if not is_retryable(e):
                    logger.error(f"[x] Attempt {self.attempts} hit a permanent error, giving up: {e}")
                    break

                if attempt < self.max_try_time - 1:
                    # Exponential backoff before retrying
                    delay = self.retry_delay * (2**attempt)
                    logger.warning(f"[-] Attempt {self.attempts} failed: {e}. Retrying in {delay}s...")
                    if delay > 0:
                        await self.token.asleep(delay)
                else:
                    logger.error(f"[-] Task failed after {self.max_try_time} attempts: {e}")

        return self.results
