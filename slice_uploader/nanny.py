"""Per-file upload supervisor.

An UploadNanny runs the upload-and-verify cycle for one file until the stored
object's CRC32C matches the local one:

    START -> upload + checksum (concurrently) -> compare -> DONE
                                                   |
                                                   +-> backoff -> START

Each attempt plans, uploads and checksums from scratch. The default retry
policy never gives up; only a stop request or an explicit attempt limit ends
the loop without success.
"""

import logging
import time
from concurrent.futures import Executor
from typing import Callable, Optional

from slice_uploader.checksum import compute_checksum
from slice_uploader.config import UploaderSettings
from slice_uploader.errors import ChecksumError, IntegrityError, PlanningError, UploaderError
from slice_uploader.models import FileResult, FileStatus, UploadJob, UploadOutcome
from slice_uploader.reporters.base import Reporter
from slice_uploader.retry import RetryPolicy
from slice_uploader.store import ObjectStore
from slice_uploader.uploaders import select_uploader

logger = logging.getLogger(__name__)


class UploadNanny:
    """Supervises the upload-verify-retry cycle of one file."""

    def __init__(
        self,
        job: UploadJob,
        store: ObjectStore,
        settings: UploaderSettings,
        executor: Executor,
        retry_policy: Optional[RetryPolicy] = None,
        reporter: Optional[Reporter] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the nanny.

        Args:
            job: The file to upload
            store: Destination object store
            settings: Slicing and chunking settings
            executor: Shared worker pool for slice and checksum tasks
            retry_policy: Backoff and stop policy (defaults to retry forever)
            reporter: Optional reporter for progress callbacks
            clock: Monotonic time source
        """
        self.job = job
        self.store = store
        self.settings = settings
        self.executor = executor
        self.retry_policy = retry_policy or RetryPolicy(settings.retry_backoff_seconds)
        self.reporter = reporter
        self.clock = clock

    def run(self) -> FileResult:
        """Upload the file, retrying until the checksums match.

        Returns:
            FileResult with status SUCCEEDED, or FAILED/CANCELLED when the
            retry policy ends the loop.

        Raises:
            PlanningError: If the file cannot be planned; never retried.
        """
        job = self.job
        logger.info("%s: starting upload of %.3f GB", job.path, job.size / 1000 / 1000 / 1000)
        if self.reporter:
            self.reporter.on_file_start(job)

        start = self.clock()
        attempts = 0
        last_error: Optional[str] = None

        while True:
            if self.retry_policy.stopped:
                logger.warning("%s: shutdown requested, not starting attempt %d", job.path, attempts + 1)
                return self._finish(FileStatus.CANCELLED, attempts, start, error=last_error)

            attempts += 1
            try:
                outcome = self.attempt()
            except PlanningError:
                raise
            except (UploaderError, OSError) as e:
                last_error = str(e)
                logger.warning("%s: upload error on attempt %d: %s", job.path, attempts, e)
                if self.reporter:
                    self.reporter.on_attempt_failed(job, attempts, last_error)
            else:
                return self._finish(FileStatus.SUCCEEDED, attempts, start, outcome=outcome)

            if self.retry_policy.exhausted(attempts):
                logger.error("%s: giving up after %d attempts", job.path, attempts)
                return self._finish(FileStatus.FAILED, attempts, start, error=last_error)

            logger.info(
                "%s: waiting %.1fs and retrying", job.path, self.retry_policy.backoff_seconds
            )
            if not self.retry_policy.pause():
                logger.warning("%s: shutdown requested, abandoning upload", job.path)
                return self._finish(FileStatus.CANCELLED, attempts, start, error=last_error)

    def attempt(self) -> UploadOutcome:
        """Run one upload-and-verify cycle.

        The checksum is submitted to the shared pool first, then the upload
        runs on the calling thread; both are joined before comparing.

        Raises:
            UploaderError: If the upload fails, the checksum cannot be
                computed, or the checksums differ.
        """
        job = self.job
        checksum_future = self.executor.submit(
            compute_checksum, job.path, self.settings.checksum_buffer_size
        )
        logger.debug("%s: started checksum", job.path)

        try:
            uploader = select_uploader(job, self.store, self.settings, self.executor)
            logger.debug("%s: started %s upload", job.path, uploader.route.value)
            outcome = uploader.upload()
        finally:
            local = checksum_future.result()
            logger.debug("%s: completed checksum", job.path)

        if not local.success:
            raise ChecksumError(f"Local checksum of {job.path} failed: {local.error_message}")

        logger.debug(
            "%s: checksum for blob: %s, checksum for file: %s",
            job.path,
            outcome.remote_checksum,
            local.checksum,
        )
        if not outcome.success or local.checksum != outcome.remote_checksum:
            raise IntegrityError(
                f"Checksum mismatch for {job.key}: "
                f"local {local.checksum}, remote {outcome.remote_checksum}",
                local=local.checksum,
                remote=outcome.remote_checksum,
            )
        return outcome

    def _finish(
        self,
        status: FileStatus,
        attempts: int,
        start: float,
        outcome: Optional[UploadOutcome] = None,
        error: Optional[str] = None,
    ) -> FileResult:
        result = FileResult(
            path=self.job.path,
            key=self.job.key,
            size=self.job.size,
            status=status,
            attempts=attempts,
            elapsed_seconds=self.clock() - start,
            checksum=outcome.remote_checksum if outcome else None,
            route=outcome.route if outcome else None,
            error_message=error,
            orphaned_keys=list(outcome.orphaned_keys) if outcome else [],
        )

        if status is FileStatus.SUCCEEDED:
            logger.info(
                "%s: completed upload in %.1fs (%.2f MB/s)",
                self.job.path,
                result.elapsed_seconds,
                result.bytes_per_second / 1000 / 1000,
            )
        if self.reporter:
            self.reporter.on_file_complete(result)
        return result
