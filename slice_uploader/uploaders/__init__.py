"""Uploaders and the size-based dispatcher that picks one."""

from concurrent.futures import Executor

from slice_uploader.config import UploaderSettings
from slice_uploader.models import UploadJob, UploadRoute
from slice_uploader.planner import choose_route
from slice_uploader.store import ObjectStore

from .base import Uploader, stream_range
from .composite import CompositeUpload
from .simple import SimpleUpload


def select_uploader(
    job: UploadJob,
    store: ObjectStore,
    settings: UploaderSettings,
    executor: Executor,
) -> Uploader:
    """Build the uploader for a job: simple below the threshold, composite above."""
    route = choose_route(job.size, settings.sliced_threshold, settings.max_slices)
    if route is UploadRoute.SIMPLE:
        return SimpleUpload(store, job.path, job.key, settings.chunk_size)

    return CompositeUpload(
        store,
        job.path,
        job.key,
        settings.chunk_size,
        size=job.size,
        sliced_threshold=settings.sliced_threshold,
        max_slices=settings.max_slices,
        executor=executor,
    )


__all__ = [
    "Uploader",
    "SimpleUpload",
    "CompositeUpload",
    "select_uploader",
    "stream_range",
]
