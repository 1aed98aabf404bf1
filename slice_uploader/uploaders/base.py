"""Base uploader interface and the byte-range streaming helper."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from slice_uploader.models import UploadOutcome, UploadRoute
from slice_uploader.store import ObjectStore

logger = logging.getLogger(__name__)


def stream_range(
    store: ObjectStore,
    path: str,
    key: str,
    chunk_size: int,
    start: int = 0,
    length: Optional[int] = None,
) -> int:
    """Stream bytes [start, start + length) of a file into a new object.

    A length of None streams to end of file. Any I/O or store error
    propagates; the write stream is aborted on the way out.

    Returns:
        Number of bytes written.
    """
    written = 0
    with open(path, "rb") as f, store.open_write_stream(key, chunk_size) as stream:
        f.seek(start)
        while length is None or written < length:
            to_read = chunk_size if length is None else min(chunk_size, length - written)
            data = f.read(to_read)
            if not data:
                break
            stream.write(data)
            written += len(data)

    if length is not None and written != length:
        # File shrank underneath us; the stream has already been finalized
        raise OSError(
            f"Short read from {path}: expected {length} bytes at offset {start}, got {written}"
        )
    return written


class Uploader(ABC):
    """Uploads one local file to one destination key."""

    route: UploadRoute

    def __init__(self, store: ObjectStore, path: str, key: str, chunk_size: int):
        self.store = store
        self.path = path
        self.key = key
        self.chunk_size = chunk_size

    @abstractmethod
    def upload(self) -> UploadOutcome:
        """Run the upload and return the stored object's checksum.

        Raises:
            UploadError: If the object could not be written.
        """
        pass
