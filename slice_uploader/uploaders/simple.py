"""Single-stream upload for files below the slicing threshold."""

import logging

from slice_uploader.errors import ObjectStoreError, UploadError
from slice_uploader.models import UploadOutcome, UploadRoute
from slice_uploader.uploaders.base import Uploader, stream_range

logger = logging.getLogger(__name__)


class SimpleUpload(Uploader):
    """Streams the whole file into the destination key in one pass."""

    route = UploadRoute.SIMPLE

    def upload(self) -> UploadOutcome:
        logger.debug("Simple upload of %s to %s", self.path, self.key)
        try:
            written = stream_range(self.store, self.path, self.key, self.chunk_size)
            checksum = self.store.get_stored_checksum(self.key)
        except (OSError, ObjectStoreError) as e:
            raise UploadError(f"Error while uploading {self.path}: {e}") from e

        logger.debug("Uploaded %d bytes of %s", written, self.path)
        return UploadOutcome(
            key=self.key,
            success=True,
            remote_checksum=checksum,
            route=self.route,
        )
