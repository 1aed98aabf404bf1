"""Local CRC32C checksum of a file.

The digest is encoded the same way S3 reports ``ChecksumCRC32C``: base64 of
the big-endian 4-byte CRC value. Only the two strings are ever compared.
"""

import base64
import logging

import google_crc32c

from slice_uploader.config import DEFAULT_CHECKSUM_BUFFER_SIZE
from slice_uploader.models import ChecksumResult

logger = logging.getLogger(__name__)


def encode_crc32c(digest: bytes) -> str:
    """Base64-encode a 4-byte big-endian CRC32C digest."""
    return base64.b64encode(digest).decode("ascii")


def crc32c_file(path: str, buffer_size: int = DEFAULT_CHECKSUM_BUFFER_SIZE) -> str:
    """Stream a file through CRC32C once, in fixed-size reads.

    Args:
        path: File to read.
        buffer_size: Bytes per read.

    Returns:
        Base64-encoded CRC32C of the whole file.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    hasher = google_crc32c.Checksum()
    with open(path, "rb") as f:
        while True:
            buf = f.read(buffer_size)
            if not buf:
                break
            hasher.update(buf)
    return encode_crc32c(hasher.digest())


def compute_checksum(
    path: str,
    buffer_size: int = DEFAULT_CHECKSUM_BUFFER_SIZE,
) -> ChecksumResult:
    """Compute the checksum of a file as a ChecksumResult.

    Read errors are reported as an unsuccessful result with no checksum, so a
    failed scan can never compare equal to a remote checksum.
    """
    try:
        checksum = crc32c_file(path, buffer_size)
    except OSError as e:
        logger.warning("Checksum of %s failed: %s", path, e)
        return ChecksumResult(checksum=None, success=False, error_message=str(e))

    logger.debug("Checksum of %s is %s", path, checksum)
    return ChecksumResult(checksum=checksum, success=True)
