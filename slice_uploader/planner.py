"""Slice planning for composite uploads.

Pure functions only: no I/O happens here, so routing and slice boundaries can
be checked without touching a file or a store.
"""

from slice_uploader.errors import PlanningError
from slice_uploader.models import SliceDescriptor, SliceRange, UploadPlan, UploadRoute

CHUNK_KEY_SEPARATOR = "_chunk_"


def slice_count(size: int, sliced_threshold: int, max_slices: int) -> int:
    """Number of slices for a file: min(max_slices, ceil(size / threshold))."""
    if size <= 0:
        raise PlanningError(f"Cannot plan an upload of {size} bytes")
    if sliced_threshold < 1 or max_slices < 1:
        raise PlanningError("Slicing threshold and maximum slice count must be positive")
    return min(max_slices, -(-size // sliced_threshold))


def choose_route(size: int, sliced_threshold: int, max_slices: int) -> UploadRoute:
    """Pick the simple or composite path for a file of the given size.

    Files at or below the threshold, and files that would plan to a single
    slice, always take the simple path.
    """
    if size <= sliced_threshold:
        return UploadRoute.SIMPLE
    if slice_count(size, sliced_threshold, max_slices) < 2:
        return UploadRoute.SIMPLE
    return UploadRoute.COMPOSITE


def plan_slices(size: int, sliced_threshold: int, max_slices: int) -> UploadPlan:
    """Split [0, size) into contiguous slices.

    Every slice but the last is floor(size / count) bytes long; the last slice
    is open-ended and absorbs the rounding remainder.

    Raises:
        PlanningError: If size is not positive.
    """
    count = slice_count(size, sliced_threshold, max_slices)
    slice_bytes = size // count

    slices = []
    for idx in range(count):
        length = slice_bytes if idx < count - 1 else None
        slices.append(SliceRange(index=idx, start=idx * slice_bytes, length=length))

    return UploadPlan(total_size=size, slice_count=count, slices=tuple(slices))


def slice_key(key: str, index: int) -> str:
    """Temporary object key for slice `index` of `key`."""
    return f"{key}{CHUNK_KEY_SEPARATOR}{index}"


def describe_slices(key: str, plan: UploadPlan) -> list[SliceDescriptor]:
    """Attach temporary keys to every planned slice, in index order."""
    return [SliceDescriptor(range=r, key=slice_key(key, r.index)) for r in plan.slices]
