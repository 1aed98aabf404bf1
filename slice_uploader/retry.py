"""Fixed-backoff retry policy for whole upload attempts.

Every attempt-level failure (transport error, short read, checksum mismatch)
is treated as transient. The default policy retries forever with a constant
pause between attempts; a stop event lets a host application end the loop.
"""

import threading
from typing import Optional

from slice_uploader.config import DEFAULT_RETRY_BACKOFF_SECONDS


class RetryPolicy:
    """Decides whether and when another attempt is made.

    Args:
        backoff_seconds: Constant pause between attempts.
        max_attempts: Attempt limit, or None to retry indefinitely.
        stop_event: Event that, once set, ends the retry loop.
    """

    def __init__(
        self,
        backoff_seconds: float = DEFAULT_RETRY_BACKOFF_SECONDS,
        max_attempts: Optional[int] = None,
        stop_event: Optional[threading.Event] = None,
    ):
        self.backoff_seconds = backoff_seconds
        self.max_attempts = max_attempts
        self.stop_event = stop_event if stop_event is not None else threading.Event()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    def exhausted(self, attempts: int) -> bool:
        """True when `attempts` failed attempts leave no attempt budget."""
        return self.max_attempts is not None and attempts >= self.max_attempts

    def pause(self) -> bool:
        """Wait out the backoff interval.

        Returns:
            False if a stop was requested before or during the wait.
        """
        if self.stop_event.is_set():
            return False
        return not self.stop_event.wait(self.backoff_seconds)

    def stop(self) -> None:
        self.stop_event.set()
