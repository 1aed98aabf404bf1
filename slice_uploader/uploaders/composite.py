"""Composite upload: parallel slices composed server-side into one object.

Lifecycle of one attempt:
1. Plan the slices and derive a temporary key for each
2. Upload every slice concurrently on the shared worker pool
3. Wait for all of them, even when one fails
4. Compose the slices, in index order, into the destination key
5. Delete the temporary slice objects (best effort)
6. Return the stored checksum reported by the compose

Nothing here retries; the per-file retry loop owns recovery.
"""

import logging
from concurrent.futures import Executor, Future, wait

from slice_uploader.errors import ComposeError, ObjectStoreError, SliceUploadError
from slice_uploader.models import SliceDescriptor, UploadOutcome, UploadRoute
from slice_uploader.planner import describe_slices, plan_slices
from slice_uploader.store import ObjectStore
from slice_uploader.uploaders.base import Uploader, stream_range

logger = logging.getLogger(__name__)


class CompositeUpload(Uploader):
    """Coordinates the slice-upload-then-compose protocol for one file."""

    route = UploadRoute.COMPOSITE

    def __init__(
        self,
        store: ObjectStore,
        path: str,
        key: str,
        chunk_size: int,
        size: int,
        sliced_threshold: int,
        max_slices: int,
        executor: Executor,
    ):
        """Initialize the coordinator.

        Args:
            store: Destination object store
            path: Local source file
            key: Destination object key
            chunk_size: Network chunk size for each slice stream
            size: Size of the source file in bytes
            sliced_threshold: Slicing threshold used for planning
            max_slices: Upper bound on the number of slices
            executor: Shared worker pool that runs the slice uploads
        """
        super().__init__(store, path, key, chunk_size)
        self.size = size
        self.sliced_threshold = sliced_threshold
        self.max_slices = max_slices
        self.executor = executor

    def upload(self) -> UploadOutcome:
        plan = plan_slices(self.size, self.sliced_threshold, self.max_slices)
        slices = describe_slices(self.key, plan)

        logger.info("%s: slicing into %d parts for composite upload", self.path, plan.slice_count)
        self.upload_slices(slices)

        source_keys = [s.key for s in slices]
        logger.debug("%s: composing %d slices into %s", self.path, len(source_keys), self.key)
        try:
            checksum = self.store.compose(self.key, source_keys)
        except ObjectStoreError as e:
            # Slices are left in place for inspection
            raise ComposeError(f"Compose of {self.key} failed: {e}") from e

        orphaned = self.delete_slices(slices)

        logger.debug("%s: composite upload complete", self.path)
        return UploadOutcome(
            key=self.key,
            success=True,
            remote_checksum=checksum,
            route=self.route,
            orphaned_keys=orphaned,
        )

    def upload_slices(self, slices: list[SliceDescriptor]) -> None:
        """Upload all slices concurrently and wait for every one of them.

        Raises:
            SliceUploadError: If any slice failed, after all have finished.
        """
        futures: list[Future] = [
            self.executor.submit(self._upload_slice, descriptor) for descriptor in slices
        ]

        logger.debug("%s: waiting for %d slices", self.path, len(futures))
        wait(futures)

        failed = []
        first_error = None
        for descriptor, future in zip(slices, futures):
            error = future.exception()
            if error is None:
                continue
            logger.warning("%s: slice %d failed: %s", self.path, descriptor.index, error)
            failed.append(descriptor.index)
            if first_error is None:
                first_error = error

        if failed:
            raise SliceUploadError(
                f"{len(failed)} of {len(slices)} slices of {self.path} failed: {first_error}",
                failed_indexes=failed,
            ) from first_error

    def delete_slices(self, slices: list[SliceDescriptor]) -> list[str]:
        """Delete temporary slice objects.

        Returns:
            Keys that could not be deleted.
        """
        orphaned = []
        for descriptor in slices:
            try:
                self.store.delete(descriptor.key)
            except ObjectStoreError as e:
                logger.warning("%s: could not delete slice %s: %s", self.path, descriptor.key, e)
                orphaned.append(descriptor.key)
        return orphaned

    def _upload_slice(self, descriptor: SliceDescriptor) -> int:
        r = descriptor.range
        end = "end" if r.length is None else r.start + r.length - 1
        logger.debug("%s: uploading slice bytes %d->%s to %s", self.path, r.start, end, descriptor.key)
        return stream_range(
            self.store,
            self.path,
            descriptor.key,
            self.chunk_size,
            start=r.start,
            length=r.length,
        )
