"""Shared fixtures: an in-memory ObjectStore and test file helpers."""

import os
import threading
from concurrent.futures import ThreadPoolExecutor

import google_crc32c
import pytest

from slice_uploader.checksum import encode_crc32c
from slice_uploader.config import UploaderSettings
from slice_uploader.errors import ObjectStoreError
from slice_uploader.store import ObjectStore, WriteStream


def crc32c_of(data: bytes) -> str:
    """Base64 CRC32C of a bytes object, as the store would report it."""
    return encode_crc32c(google_crc32c.Checksum(data).digest())


class MemoryWriteStream(WriteStream):
    """Write stream that stores the object in a MemoryObjectStore on close."""

    def __init__(self, store: "MemoryObjectStore", key: str, chunk_size: int):
        self.store = store
        self.key = key
        self.chunk_size = chunk_size
        self.buffer = bytearray()
        self.aborted = False

    def write(self, data: bytes) -> int:
        if self.key in self.store.fail_writes:
            raise ObjectStoreError(f"write failed for '{self.key}'", key=self.key)
        self.buffer.extend(data)
        return len(data)

    def close(self) -> None:
        self.store.put(self.key, bytes(self.buffer))

    def abort(self) -> None:
        self.aborted = True
        self.store.record("abort", self.key)


class MemoryObjectStore(ObjectStore):
    """Thread-safe in-memory store that records every call."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple] = []
        self.fail_writes: set[str] = set()
        self.fail_deletes: set[str] = set()
        self.fail_compose = False
        self._lock = threading.Lock()

    def record(self, *call) -> None:
        with self._lock:
            self.calls.append(call)

    def put(self, key: str, data: bytes) -> None:
        with self._lock:
            self.objects[key] = data
            self.calls.append(("put", key, len(data)))

    def calls_named(self, name: str) -> list[tuple]:
        with self._lock:
            return [c for c in self.calls if c[0] == name]

    def open_write_stream(self, key: str, chunk_size: int) -> MemoryWriteStream:
        self.record("open", key, chunk_size)
        return MemoryWriteStream(self, key, chunk_size)

    def compose(self, key: str, source_keys: list[str]) -> str:
        self.record("compose", key, list(source_keys))
        if self.fail_compose:
            raise ObjectStoreError(f"compose failed for '{key}'", key=key)
        with self._lock:
            missing = [k for k in source_keys if k not in self.objects]
            if missing:
                raise ObjectStoreError(f"missing sources {missing}", key=key)
            self.objects[key] = b"".join(self.objects[k] for k in source_keys)
        return self.get_stored_checksum(key)

    def delete(self, key: str) -> None:
        self.record("delete", key)
        if key in self.fail_deletes:
            raise ObjectStoreError(f"delete failed for '{key}'", key=key)
        with self._lock:
            self.objects.pop(key, None)

    def get_stored_checksum(self, key: str) -> str:
        with self._lock:
            if key not in self.objects:
                raise ObjectStoreError(f"no such object '{key}'", key=key)
            data = self.objects[key]
        return crc32c_of(data)


def write_random_file(path, size: int) -> str:
    """Write `size` random bytes to path and return it as a string."""
    with open(path, "wb") as f:
        remaining = size
        while remaining > 0:
            block = min(1024 * 1024, remaining)
            f.write(os.urandom(block))
            remaining -= block
    return str(path)


@pytest.fixture
def memory_store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def small_settings() -> UploaderSettings:
    """Settings scaled down so composite uploads happen on kilobyte files."""
    return UploaderSettings(
        chunk_size=1024,
        sliced_threshold=4096,
        max_slices=4,
        simultaneous_files=2,
        upload_threads=8,
        retry_backoff_seconds=0.0,
        checksum_buffer_size=1000,
    )


@pytest.fixture
def executor():
    pool = ThreadPoolExecutor(max_workers=8)
    yield pool
    pool.shutdown(wait=True)


@pytest.fixture
def make_file(tmp_path):
    """Factory fixture creating random files of a given size."""
    def _make(name: str, size: int) -> str:
        return write_random_file(tmp_path / name, size)
    return _make
