"""Slice Uploader.

Uploads large files to an S3-compatible object store, slicing oversized files
into parallel uploads that are composed server-side, and verifying every
object against a locally computed CRC32C.
"""

__version__ = "1.0.0"

from slice_uploader.cli import main

__all__ = ["main", "__version__"]
