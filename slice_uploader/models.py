"""Data models for the slice uploader."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class FileStatus(Enum):
    """Final status of a single file."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class UploadRoute(Enum):
    """Which upload path a file takes."""

    SIMPLE = "simple"
    COMPOSITE = "composite"


@dataclass(frozen=True)
class UploadJob:
    """One local file headed for one destination object."""

    bucket: str
    path: str
    key: str
    size: int


@dataclass(frozen=True)
class SliceRange:
    """Byte range of a slice. A length of None means "to end of file"."""

    index: int
    start: int
    length: Optional[int] = None

    def end(self, total_size: int) -> int:
        """Exclusive end offset of the range within a file of total_size."""
        if self.length is None:
            return total_size
        return self.start + self.length


@dataclass(frozen=True)
class UploadPlan:
    """How a file is split into slices."""

    total_size: int
    slice_count: int
    slices: tuple[SliceRange, ...]


@dataclass(frozen=True)
class SliceDescriptor:
    """A planned slice together with its temporary destination key."""

    range: SliceRange
    key: str

    @property
    def index(self) -> int:
        return self.range.index


@dataclass
class UploadOutcome:
    """Result of a simple or composite upload."""

    key: str
    success: bool
    remote_checksum: Optional[str] = None
    route: UploadRoute = UploadRoute.SIMPLE
    orphaned_keys: list[str] = field(default_factory=list)


@dataclass
class ChecksumResult:
    """Result of the local checksum computation."""

    checksum: Optional[str]
    success: bool
    error_message: Optional[str] = None


@dataclass
class StoreConfig:
    """Connection settings for an S3-compatible object store.

    Empty credentials fall back to boto3's default credential chain.
    """

    endpoint_url: Optional[str] = None
    region_name: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    addressing_style: str = "path"


@dataclass
class FileResult:
    """Aggregated outcome for a single file across all attempts."""

    path: str
    key: str
    size: int
    status: FileStatus
    attempts: int = 0
    elapsed_seconds: float = 0.0
    checksum: Optional[str] = None
    route: Optional[UploadRoute] = None
    error_message: Optional[str] = None
    orphaned_keys: list[str] = field(default_factory=list)

    @property
    def bytes_per_second(self) -> float:
        return throughput(self.size, self.elapsed_seconds)


def throughput(size: int, elapsed_seconds: float) -> float:
    """Bytes per second, or 0.0 when no measurable time has passed."""
    if elapsed_seconds <= 0:
        return 0.0
    return size / elapsed_seconds
