"""Fleet orchestrator.

Coordinates a batch of uploads:
- Building one UploadJob per readable input file (others are skipped)
- An outer pool bounding how many files are in flight
- A shared inner pool for slice and checksum tasks of all files
- Aggregate timing and throughput statistics
"""

import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from slice_uploader.config import UploaderSettings
from slice_uploader.models import FileResult, FileStatus, UploadJob, throughput
from slice_uploader.nanny import UploadNanny
from slice_uploader.reporters.base import Reporter
from slice_uploader.retry import RetryPolicy
from slice_uploader.store import ObjectStore

logger = logging.getLogger(__name__)


def object_key_for(path: str, prefix: str = "") -> str:
    """Destination key for a local path: the path as given, in POSIX form.

    Leading "/" and "./" segments are dropped so absolute paths do not
    produce keys with an empty first segment.
    """
    key = path.replace(os.sep, "/")
    while key.startswith("./"):
        key = key[2:]
    key = key.lstrip("/")
    if prefix:
        key = f"{prefix.rstrip('/')}/{key}"
    return key


@dataclass
class RunResult:
    """Result of uploading a batch of files."""

    files: dict[str, FileResult]
    skipped: dict[str, str]
    total_bytes: int
    total_duration: float
    timestamp: str = field(default_factory=lambda: time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()))

    @property
    def all_succeeded(self) -> bool:
        """True if every submitted file succeeded and nothing was skipped."""
        return not self.skipped and all(
            r.status == FileStatus.SUCCEEDED for r in self.files.values()
        )

    @property
    def bytes_per_second(self) -> float:
        return throughput(self.total_bytes, self.total_duration)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        files_dict = {}
        for path, result in self.files.items():
            files_dict[path] = {
                "key": result.key,
                "status": result.status.value,
                "size": result.size,
                "attempts": result.attempts,
                "route": result.route.value if result.route else None,
                "checksum": result.checksum,
                "elapsed_seconds": result.elapsed_seconds,
                "bytes_per_second": result.bytes_per_second,
                "error_message": result.error_message,
                "orphaned_keys": list(result.orphaned_keys),
            }

        counts = {status: 0 for status in FileStatus}
        for result in self.files.values():
            counts[result.status] += 1

        return {
            "timestamp": self.timestamp,
            "files": files_dict,
            "skipped": dict(self.skipped),
            "summary": {
                "total_files": len(self.files),
                "succeeded": counts[FileStatus.SUCCEEDED],
                "failed": counts[FileStatus.FAILED],
                "cancelled": counts[FileStatus.CANCELLED],
                "skipped": len(self.skipped),
                "total_bytes": self.total_bytes,
                "total_duration": self.total_duration,
                "bytes_per_second": self.bytes_per_second,
                "all_succeeded": self.all_succeeded,
            },
        }


class FleetRunner:
    """Uploads a batch of files to one bucket.

    The two pools are created per run and threaded into every nanny:
    the outer pool runs one UploadNanny per file, the inner pool is shared
    by all of them for slice uploads and checksums.
    """

    def __init__(
        self,
        bucket: str,
        store: ObjectStore,
        settings: UploaderSettings,
        reporter: Optional[Reporter] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the runner.

        Args:
            bucket: Destination bucket name
            store: Object store bound to that bucket
            settings: Uploader settings
            reporter: Optional reporter for progress callbacks
            clock: Monotonic time source
        """
        self.bucket = bucket
        self.store = store
        self.settings = settings
        self.reporter = reporter
        self.clock = clock
        self._stop_event = threading.Event()

    def shutdown(self) -> None:
        """Ask every nanny to stop retrying. In-flight attempts still finish."""
        self._stop_event.set()

    def build_jobs(self, paths: list[str]) -> tuple[list[UploadJob], dict[str, str]]:
        """Create jobs for readable regular files.

        Returns:
            Tuple of (jobs, skipped) where skipped maps path to reason.
        """
        jobs: list[UploadJob] = []
        skipped: dict[str, str] = {}
        seen: set[str] = set()

        for path in paths:
            if path in seen:
                continue
            seen.add(path)

            if not os.path.isfile(path):
                reason = "not found" if not os.path.exists(path) else "not a regular file"
            elif not os.access(path, os.R_OK):
                reason = "not readable"
            else:
                try:
                    size = os.path.getsize(path)
                except OSError as e:
                    reason = str(e)
                else:
                    key = object_key_for(path, self.settings.key_prefix)
                    jobs.append(UploadJob(bucket=self.bucket, path=path, key=key, size=size))
                    continue

            logger.warning("Bad file, skipping: %s (%s)", path, reason)
            skipped[path] = reason
            if self.reporter:
                self.reporter.on_file_skipped(path, reason)

        return jobs, skipped

    def run(self, paths: list[str]) -> RunResult:
        """Upload every readable file and wait for all of them.

        Returns:
            RunResult with per-file results and aggregate statistics.
        """
        jobs, skipped = self.build_jobs(paths)
        total_bytes = sum(job.size for job in jobs)

        if self.reporter:
            self.reporter.on_run_start(len(jobs), self.settings)
        logger.info(
            "Starting %d uploads: chunk size %d, simultaneous files %d, upload threads %d",
            len(jobs),
            self.settings.chunk_size,
            self.settings.simultaneous_files,
            self.settings.upload_threads,
        )

        start = self.clock()
        results: dict[str, FileResult] = {}

        with ThreadPoolExecutor(
            max_workers=self.settings.upload_threads,
            thread_name_prefix="slice",
        ) as inner, ThreadPoolExecutor(
            max_workers=self.settings.simultaneous_files,
            thread_name_prefix="file",
        ) as outer:
            futures: dict[Future, UploadJob] = {}
            for job in jobs:
                nanny = UploadNanny(
                    job,
                    self.store,
                    self.settings,
                    inner,
                    retry_policy=RetryPolicy(
                        self.settings.retry_backoff_seconds,
                        max_attempts=self.settings.max_attempts,
                        stop_event=self._stop_event,
                    ),
                    reporter=self.reporter,
                    clock=self.clock,
                )
                futures[outer.submit(nanny.run)] = job

            try:
                wait(futures)
            except KeyboardInterrupt:
                logger.warning("Interrupted, waiting for in-flight attempts to finish")
                self.shutdown()
                wait(futures)
                raise

            for future, job in futures.items():
                results[job.path] = self._collect(future, job)

        total_duration = self.clock() - start
        run_result = RunResult(
            files=results,
            skipped=skipped,
            total_bytes=total_bytes,
            total_duration=total_duration,
        )

        logger.info(
            "Completed %d uploads in %.1fs (%.2f MB/s)",
            len(results),
            total_duration,
            run_result.bytes_per_second / 1000 / 1000,
        )
        if self.reporter:
            self.reporter.on_run_complete(run_result)

        return run_result

    def _collect(self, future: Future, job: UploadJob) -> FileResult:
        """Turn a finished nanny future into a FileResult."""
        error = future.exception()
        if error is None:
            return future.result()

        logger.error("%s: upload aborted: %s", job.path, error)
        result = FileResult(
            path=job.path,
            key=job.key,
            size=job.size,
            status=FileStatus.FAILED,
            error_message=str(error),
        )
        if self.reporter:
            self.reporter.on_file_complete(result)
        return result
