"""Object store capability interface.

The upload engine only ever talks to an ObjectStore. Implementations wrap
their backend failures in ObjectStoreError.
"""

from abc import ABC, abstractmethod


class WriteStream(ABC):
    """Writable stream that becomes one stored object when closed.

    Leaving the context manager normally closes (finalizes) the object;
    leaving it with an exception aborts the write.
    """

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Append bytes to the object being written."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Finalize the object."""
        pass

    @abstractmethod
    def abort(self) -> None:
        """Discard everything written so far. Must not raise."""
        pass

    def __enter__(self) -> "WriteStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.abort()
        else:
            self.close()
        return False


class ObjectStore(ABC):
    """Abstract object store bound to one bucket."""

    @abstractmethod
    def open_write_stream(self, key: str, chunk_size: int) -> WriteStream:
        """Open a stream that writes a new object at `key`."""
        pass

    @abstractmethod
    def compose(self, key: str, source_keys: list[str]) -> str:
        """Concatenate source objects, in order, into `key`.

        Returns:
            The stored checksum of the composed object.
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Delete the object at `key`."""
        pass

    @abstractmethod
    def get_stored_checksum(self, key: str) -> str:
        """Return the store's base64 CRC32C for a completed object."""
        pass
