"""Exception hierarchy for the slice uploader.

Planning and configuration errors are fatal. Everything raised while an
upload attempt is in flight (UploadError, ObjectStoreError, ChecksumError,
IntegrityError) is treated as a failed attempt by the per-file retry loop.
"""

from typing import Optional


class UploaderError(Exception):
    """Base class for all uploader errors."""

    pass


class ConfigError(UploaderError):
    """Raised when configuration loading or validation fails."""

    pass


class PlanningError(UploaderError):
    """Raised when a file cannot be planned for upload (e.g. size <= 0)."""

    pass


class ObjectStoreError(UploaderError):
    """Raised by an ObjectStore when the backend call fails."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class ChecksumError(UploaderError):
    """Raised when the local checksum could not be computed."""

    pass


class UploadError(UploaderError):
    """Raised when an upload attempt fails before producing an outcome."""

    pass


class SliceUploadError(UploadError):
    """Raised when one or more slices of a composite upload failed."""

    def __init__(self, message: str, failed_indexes: Optional[list[int]] = None):
        super().__init__(message)
        self.failed_indexes = failed_indexes or []


class ComposeError(UploadError):
    """Raised when composing the slices into the destination object fails."""

    pass


class IntegrityError(UploaderError):
    """Raised when the stored checksum differs from the local checksum."""

    def __init__(self, message: str, local: Optional[str], remote: Optional[str]):
        super().__init__(message)
        self.local = local
        self.remote = remote
