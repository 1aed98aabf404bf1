"""Tests for the S3-backed ObjectStore.

The boto3 client is a Mock; these tests check which S3 calls are made
and how errors are mapped.
"""

from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from slice_uploader.errors import ObjectStoreError
from slice_uploader.s3_store import (
    MAX_COPY_PART_SIZE,
    S3ObjectStore,
    S3WriteStream,
    copy_ranges,
)


def client_error(operation: str, code: str = "InternalError") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": "boom"}}, operation)


@pytest.fixture
def s3_client():
    client = Mock()
    client.create_multipart_upload.return_value = {"UploadId": "upload-1"}
    client.upload_part.side_effect = lambda **kw: {"ETag": f"etag-{kw['PartNumber']}"}
    client.upload_part_copy.side_effect = lambda **kw: {
        "CopyPartResult": {"ETag": f"copy-{kw['PartNumber']}"}
    }
    client.head_object.return_value = {"ChecksumCRC32C": "4waSgw==", "ContentLength": 1000}
    return client


class TestS3WriteStream:
    """Tests for S3WriteStream."""

    def test_small_object_uses_put_object(self, s3_client):
        """Data that fits in one chunk should be sent with a single put_object."""
        stream = S3WriteStream(s3_client, "bucket", "key", chunk_size=100)

        stream.write(b"hello")
        stream.close()

        s3_client.put_object.assert_called_once()
        kwargs = s3_client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "bucket"
        assert kwargs["Key"] == "key"
        assert kwargs["Body"] == b"hello"
        assert kwargs["ChecksumAlgorithm"] == "CRC32C"
        s3_client.create_multipart_upload.assert_not_called()

    def test_empty_object(self, s3_client):
        """Closing a stream with no data should store an empty object."""
        S3WriteStream(s3_client, "bucket", "key", chunk_size=100).close()

        assert s3_client.put_object.call_args.kwargs["Body"] == b""

    def test_large_object_uses_multipart(self, s3_client):
        """Each full chunk should become one part, the remainder the last part."""
        stream = S3WriteStream(s3_client, "bucket", "key", chunk_size=4)

        stream.write(b"abcdefghij")
        stream.close()

        bodies = [c.kwargs["Body"] for c in s3_client.upload_part.call_args_list]
        assert bodies == [b"abcd", b"efgh", b"ij"]
        assert [c.kwargs["PartNumber"] for c in s3_client.upload_part.call_args_list] == [1, 2, 3]

        create_kwargs = s3_client.create_multipart_upload.call_args.kwargs
        assert create_kwargs["ChecksumAlgorithm"] == "CRC32C"
        assert create_kwargs["ChecksumType"] == "FULL_OBJECT"

        complete_kwargs = s3_client.complete_multipart_upload.call_args.kwargs
        assert complete_kwargs["UploadId"] == "upload-1"
        assert complete_kwargs["MultipartUpload"]["Parts"] == [
            {"PartNumber": 1, "ETag": "etag-1"},
            {"PartNumber": 2, "ETag": "etag-2"},
            {"PartNumber": 3, "ETag": "etag-3"},
        ]
        s3_client.put_object.assert_not_called()

    def test_exception_in_context_aborts(self, s3_client):
        """Leaving the context with an exception should abort the upload."""
        with pytest.raises(RuntimeError):
            with S3WriteStream(s3_client, "bucket", "key", chunk_size=4) as stream:
                stream.write(b"abcdefgh")
                raise RuntimeError("read failed")

        s3_client.abort_multipart_upload.assert_called_once_with(
            Bucket="bucket", Key="key", UploadId="upload-1"
        )
        s3_client.complete_multipart_upload.assert_not_called()

    def test_failed_complete_aborts(self, s3_client):
        """A failed complete should abort and raise ObjectStoreError."""
        s3_client.complete_multipart_upload.side_effect = client_error("CompleteMultipartUpload")
        stream = S3WriteStream(s3_client, "bucket", "key", chunk_size=4)
        stream.write(b"abcdefgh")

        with pytest.raises(ObjectStoreError) as exc_info:
            stream.close()

        assert exc_info.value.key == "key"
        s3_client.abort_multipart_upload.assert_called_once()

    def test_client_error_wrapped(self, s3_client):
        """Backend errors should surface as ObjectStoreError."""
        s3_client.put_object.side_effect = client_error("PutObject")
        stream = S3WriteStream(s3_client, "bucket", "key", chunk_size=100)
        stream.write(b"x")

        with pytest.raises(ObjectStoreError, match="put_object failed"):
            stream.close()

    def test_write_after_close_rejected(self, s3_client):
        """Writing to a closed stream is a programming error."""
        stream = S3WriteStream(s3_client, "bucket", "key", chunk_size=100)
        stream.close()

        with pytest.raises(ValueError):
            stream.write(b"x")


class TestS3ObjectStore:
    """Tests for S3ObjectStore."""

    def test_compose_copies_sources_in_order(self, s3_client):
        """Each source should become one copied part, in the given order."""
        store = S3ObjectStore(s3_client, "bucket")

        checksum = store.compose("big", ["big_chunk_0", "big_chunk_1"])

        assert checksum == "4waSgw=="
        sources = [c.kwargs["CopySource"] for c in s3_client.upload_part_copy.call_args_list]
        assert sources == [
            {"Bucket": "bucket", "Key": "big_chunk_0"},
            {"Bucket": "bucket", "Key": "big_chunk_1"},
        ]
        parts = s3_client.complete_multipart_upload.call_args.kwargs["MultipartUpload"]["Parts"]
        assert [p["PartNumber"] for p in parts] == [1, 2]
        assert s3_client.create_multipart_upload.call_args.kwargs["ChecksumType"] == "FULL_OBJECT"

    def test_compose_failure_aborts(self, s3_client):
        """A failed part copy should abort the compose upload."""
        s3_client.upload_part_copy.side_effect = client_error("UploadPartCopy", "NoSuchKey")
        store = S3ObjectStore(s3_client, "bucket")

        with pytest.raises(ObjectStoreError):
            store.compose("big", ["big_chunk_0"])

        s3_client.abort_multipart_upload.assert_called_once_with(
            Bucket="bucket", Key="big", UploadId="upload-1"
        )
        s3_client.complete_multipart_upload.assert_not_called()

    def test_compose_splits_large_sources(self, s3_client):
        """Sources above the copy limit should be copied as ordered byte ranges."""
        sizes = {"big_chunk_0": 6 * 1024 ** 3, "big_chunk_1": 1000}

        def head_object(**kwargs):
            if "ChecksumMode" in kwargs:
                return {"ChecksumCRC32C": "4waSgw=="}
            return {"ContentLength": sizes[kwargs["Key"]]}

        s3_client.head_object.side_effect = head_object
        store = S3ObjectStore(s3_client, "bucket")

        store.compose("big", ["big_chunk_0", "big_chunk_1"])

        copies = [c.kwargs for c in s3_client.upload_part_copy.call_args_list]
        assert [c["PartNumber"] for c in copies] == [1, 2, 3]
        assert [c["CopySource"]["Key"] for c in copies] == [
            "big_chunk_0", "big_chunk_0", "big_chunk_1",
        ]
        assert copies[0]["CopySourceRange"] == "bytes=0-3221225471"
        assert copies[1]["CopySourceRange"] == "bytes=3221225472-6442450943"
        assert "CopySourceRange" not in copies[2]
        parts = s3_client.complete_multipart_upload.call_args.kwargs["MultipartUpload"]["Parts"]
        assert [p["PartNumber"] for p in parts] == [1, 2, 3]

    def test_compose_rejects_too_many_parts(self, s3_client):
        """A compose that would exceed the part limit fails before uploading."""
        s3_client.head_object.return_value = {"ContentLength": 10001 * MAX_COPY_PART_SIZE}

        with pytest.raises(ObjectStoreError, match="more than 10000"):
            S3ObjectStore(s3_client, "bucket").compose("big", ["big_chunk_0"])

        s3_client.create_multipart_upload.assert_not_called()

    def test_compose_requires_sources(self, s3_client):
        """Composing nothing is rejected before any call is made."""
        with pytest.raises(ObjectStoreError):
            S3ObjectStore(s3_client, "bucket").compose("big", [])

        s3_client.create_multipart_upload.assert_not_called()

    def test_get_stored_checksum(self, s3_client):
        """The stored checksum should be read with checksum mode enabled."""
        store = S3ObjectStore(s3_client, "bucket")

        assert store.get_stored_checksum("key") == "4waSgw=="
        s3_client.head_object.assert_called_once_with(
            Bucket="bucket", Key="key", ChecksumMode="ENABLED"
        )

    def test_missing_checksum_raises(self, s3_client):
        """An object stored without a CRC32C cannot be verified."""
        s3_client.head_object.return_value = {"ETag": "x"}

        with pytest.raises(ObjectStoreError, match="No CRC32C"):
            S3ObjectStore(s3_client, "bucket").get_stored_checksum("key")

    def test_delete(self, s3_client):
        """delete should remove the object from the bucket."""
        S3ObjectStore(s3_client, "bucket").delete("key_chunk_0")

        s3_client.delete_object.assert_called_once_with(Bucket="bucket", Key="key_chunk_0")

    def test_delete_error_wrapped(self, s3_client):
        """Delete failures should surface as ObjectStoreError."""
        s3_client.delete_object.side_effect = client_error("DeleteObject", "AccessDenied")

        with pytest.raises(ObjectStoreError):
            S3ObjectStore(s3_client, "bucket").delete("key_chunk_0")

    def test_open_write_stream(self, s3_client):
        """Write streams should be bound to the store's bucket."""
        stream = S3ObjectStore(s3_client, "bucket").open_write_stream("key", 1024)

        assert isinstance(stream, S3WriteStream)
        assert stream.bucket == "bucket"
        assert stream.chunk_size == 1024


class TestCopyRanges:
    """Tests for copy_ranges."""

    def test_small_source_copied_whole(self):
        assert copy_ranges(MAX_COPY_PART_SIZE) == [None]

    def test_ranges_cover_source_exactly(self):
        """Ranges should be contiguous, inclusive and end at the last byte."""
        ranges = copy_ranges(1001, max_part_size=400)

        assert ranges == ["bytes=0-333", "bytes=334-667", "bytes=668-1000"]

    def test_parts_within_limit(self):
        """No range may exceed the maximum part size."""
        for first_last in copy_ranges(11 * 1024 ** 3):
            first, last = map(int, first_last[len("bytes="):].split("-"))
            assert last - first + 1 <= MAX_COPY_PART_SIZE
