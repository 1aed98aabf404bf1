"""S3-backed ObjectStore.

Maps the store capabilities onto the S3 API:
- write stream: multipart upload, one part per network chunk
  (a single put_object when the object fits in one chunk)
- compose: multipart upload whose parts are server-side copies of the sources
  (sources above 5 GiB are copied as several byte ranges)
- stored checksum: the full-object CRC32C reported by head_object

Every upload requests a FULL_OBJECT CRC32C so that the stored checksum of a
composed object is the CRC32C of its whole content, not a checksum-of-checksums.
"""

import logging
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError

from slice_uploader.errors import ObjectStoreError
from slice_uploader.store import ObjectStore, WriteStream

logger = logging.getLogger(__name__)

CHECKSUM_ALGORITHM = "CRC32C"
CHECKSUM_TYPE = "FULL_OBJECT"

# S3 limits for multipart uploads: a copied part may not exceed 5 GiB and an
# upload may not have more than 10,000 parts
MAX_COPY_PART_SIZE = 5 * 1024 * 1024 * 1024
MAX_PARTS = 10000


def copy_ranges(size: int, max_part_size: int = MAX_COPY_PART_SIZE) -> list[Optional[str]]:
    """Split a copy source of `size` bytes into evenly sized byte ranges.

    Returns [None] when the source can be copied whole, otherwise one
    "bytes=first-last" range per part, in offset order.
    """
    if size <= max_part_size:
        return [None]

    count = -(-size // max_part_size)
    part_size = -(-size // count)
    ranges = []
    for first in range(0, size, part_size):
        last = min(first + part_size, size) - 1
        ranges.append(f"bytes={first}-{last}")
    return ranges


def _call(s3_client: Any, operation: str, key: str, **kwargs) -> Any:
    """Invoke a boto3 operation, wrapping backend errors in ObjectStoreError."""
    try:
        return getattr(s3_client, operation)(**kwargs)
    except (ClientError, BotoCoreError) as e:
        raise ObjectStoreError(f"{operation} failed for '{key}': {e}", key=key) from e


class S3WriteStream(WriteStream):
    """Buffered writer that streams an object to S3.

    Buffers up to `chunk_size` bytes and ships each full buffer as one part
    of a multipart upload, which is started lazily on the first full chunk.
    """

    def __init__(self, s3_client: Any, bucket: str, key: str, chunk_size: int):
        self.s3_client = s3_client
        self.bucket = bucket
        self.key = key
        self.chunk_size = chunk_size
        self.upload_id: Optional[str] = None
        self.uploaded_parts: list[dict] = []
        self._buffer = bytearray()
        self._closed = False

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ValueError(f"Write to closed stream for '{self.key}'")

        self._buffer.extend(data)
        while len(self._buffer) >= self.chunk_size:
            part = bytes(self._buffer[: self.chunk_size])
            del self._buffer[: self.chunk_size]
            self._upload_part(part)
        return len(data)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        if self.upload_id is None:
            _call(
                self.s3_client,
                "put_object",
                self.key,
                Bucket=self.bucket,
                Key=self.key,
                Body=bytes(self._buffer),
                ChecksumAlgorithm=CHECKSUM_ALGORITHM,
            )
            self._buffer.clear()
            return

        try:
            if self._buffer:
                self._upload_part(bytes(self._buffer))
                self._buffer.clear()
            self._complete()
        except ObjectStoreError:
            self._abort_upload()
            raise

    def abort(self) -> None:
        self._closed = True
        self._buffer.clear()
        self._abort_upload()

    def _initiate(self) -> str:
        response = _call(
            self.s3_client,
            "create_multipart_upload",
            self.key,
            Bucket=self.bucket,
            Key=self.key,
            ChecksumAlgorithm=CHECKSUM_ALGORITHM,
            ChecksumType=CHECKSUM_TYPE,
        )
        self.upload_id = response["UploadId"]
        return self.upload_id

    def _upload_part(self, data: bytes) -> None:
        if self.upload_id is None:
            self._initiate()

        part_number = len(self.uploaded_parts) + 1
        response = _call(
            self.s3_client,
            "upload_part",
            self.key,
            Bucket=self.bucket,
            Key=self.key,
            UploadId=self.upload_id,
            PartNumber=part_number,
            Body=data,
            ChecksumAlgorithm=CHECKSUM_ALGORITHM,
        )
        part = {"PartNumber": part_number, "ETag": response["ETag"]}
        if response.get("ChecksumCRC32C"):
            part["ChecksumCRC32C"] = response["ChecksumCRC32C"]
        self.uploaded_parts.append(part)

    def _complete(self) -> None:
        _call(
            self.s3_client,
            "complete_multipart_upload",
            self.key,
            Bucket=self.bucket,
            Key=self.key,
            UploadId=self.upload_id,
            MultipartUpload={"Parts": self.uploaded_parts},
            ChecksumType=CHECKSUM_TYPE,
        )

    def _abort_upload(self) -> None:
        if self.upload_id is None:
            return

        try:
            self.s3_client.abort_multipart_upload(
                Bucket=self.bucket,
                Key=self.key,
                UploadId=self.upload_id,
            )
        except (ClientError, BotoCoreError) as e:
            # Abort errors are non-fatal; S3 lifecycle rules reclaim the parts
            logger.warning("Could not abort multipart upload of %s: %s", self.key, e)


class S3ObjectStore(ObjectStore):
    """ObjectStore bound to one S3 bucket."""

    def __init__(self, s3_client: Any, bucket: str):
        """Initialize the store.

        Args:
            s3_client: boto3 S3 client (thread-safe, shared by all workers)
            bucket: Destination bucket name
        """
        self.s3_client = s3_client
        self.bucket = bucket

    def open_write_stream(self, key: str, chunk_size: int) -> S3WriteStream:
        return S3WriteStream(self.s3_client, self.bucket, key, chunk_size)

    def compose(self, key: str, source_keys: list[str]) -> str:
        if not source_keys:
            raise ObjectStoreError(f"Nothing to compose into '{key}'", key=key)

        copies = []
        for source_key in source_keys:
            for byte_range in copy_ranges(self.get_size(source_key)):
                copies.append((source_key, byte_range))
        if len(copies) > MAX_PARTS:
            raise ObjectStoreError(
                f"Compose of '{key}' needs {len(copies)} parts, more than {MAX_PARTS}",
                key=key,
            )

        response = _call(
            self.s3_client,
            "create_multipart_upload",
            key,
            Bucket=self.bucket,
            Key=key,
            ChecksumAlgorithm=CHECKSUM_ALGORITHM,
            ChecksumType=CHECKSUM_TYPE,
        )
        upload_id = response["UploadId"]

        parts = []
        try:
            for part_number, (source_key, byte_range) in enumerate(copies, start=1):
                kwargs = {}
                if byte_range is not None:
                    kwargs["CopySourceRange"] = byte_range
                copy = _call(
                    self.s3_client,
                    "upload_part_copy",
                    key,
                    Bucket=self.bucket,
                    Key=key,
                    UploadId=upload_id,
                    PartNumber=part_number,
                    CopySource={"Bucket": self.bucket, "Key": source_key},
                    **kwargs,
                )
                result = copy["CopyPartResult"]
                part = {"PartNumber": part_number, "ETag": result["ETag"]}
                if result.get("ChecksumCRC32C"):
                    part["ChecksumCRC32C"] = result["ChecksumCRC32C"]
                parts.append(part)

            _call(
                self.s3_client,
                "complete_multipart_upload",
                key,
                Bucket=self.bucket,
                Key=key,
                UploadId=upload_id,
                MultipartUpload={"Parts": parts},
                ChecksumType=CHECKSUM_TYPE,
            )
        except ObjectStoreError:
            try:
                self.s3_client.abort_multipart_upload(
                    Bucket=self.bucket, Key=key, UploadId=upload_id
                )
            except (ClientError, BotoCoreError) as e:
                logger.warning("Could not abort compose of %s: %s", key, e)
            raise

        return self.get_stored_checksum(key)

    def delete(self, key: str) -> None:
        _call(self.s3_client, "delete_object", key, Bucket=self.bucket, Key=key)

    def get_stored_checksum(self, key: str) -> str:
        response = _call(
            self.s3_client,
            "head_object",
            key,
            Bucket=self.bucket,
            Key=key,
            ChecksumMode="ENABLED",
        )
        checksum = response.get("ChecksumCRC32C")
        if not checksum:
            raise ObjectStoreError(f"No CRC32C checksum stored for '{key}'", key=key)
        return checksum

    def get_size(self, key: str) -> int:
        """Size in bytes of a stored object."""
        response = _call(self.s3_client, "head_object", key, Bucket=self.bucket, Key=key)
        return response["ContentLength"]
