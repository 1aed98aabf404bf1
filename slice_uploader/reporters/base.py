"""Base reporter interface."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from slice_uploader.config import UploaderSettings
    from slice_uploader.models import FileResult, UploadJob
    from slice_uploader.runner import RunResult


class Reporter(ABC):
    """Abstract base class for upload progress reporters.

    Per-file callbacks are invoked from worker threads.
    """

    @abstractmethod
    def on_run_start(self, file_count: int, settings: "UploaderSettings") -> None:
        """Called once before any file is submitted."""
        pass

    @abstractmethod
    def on_file_skipped(self, path: str, reason: str) -> None:
        """Called when an input path cannot be uploaded at all."""
        pass

    @abstractmethod
    def on_file_start(self, job: "UploadJob") -> None:
        """Called when a file's first attempt begins."""
        pass

    @abstractmethod
    def on_attempt_failed(self, job: "UploadJob", attempt: int, reason: str) -> None:
        """Called after each failed attempt, before the backoff."""
        pass

    @abstractmethod
    def on_file_complete(self, result: "FileResult") -> None:
        """Called when a file reaches a final status."""
        pass

    @abstractmethod
    def on_run_complete(self, result: "RunResult") -> None:
        """Called when every file has finished."""
        pass
