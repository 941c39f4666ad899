"""Transfer operations on top of an object store client."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Optional

from ..exceptions import (
    LocalFileError,
    S3CopyError,
    S3DeleteError,
    S3DownloadError,
    S3SyncError,
    S3UploadError,
)
from ..models import TransferItem
from ..store.base import DeleteResult, ObjectStoreClient
from ..utils import DEFAULT_CHUNK_SIZE, DELETE_BATCH_LIMIT

logger = logging.getLogger(__name__)


class TransferOperations:
    """Unified put/get/copy/delete operations with error wrapping.

    Store errors are re-raised as the matching TransferError subclass and
    local I/O errors as LocalFileError.
    """

    def __init__(self, client: ObjectStoreClient, chunk_size: int = DEFAULT_CHUNK_SIZE):
        """Initialize transfer operations.

        Args:
            client: Object store client
            chunk_size: Read size used when streaming downloads
        """
        self.client = client
        self.chunk_size = chunk_size

    def upload(self, item: TransferItem) -> None:
        """Upload the local file of an item to its key.

        The body is read into memory, or passed as an open file when the
        item is streamed.

        Raises:
            LocalFileError: If the local file cannot be read
            S3UploadError: If the store rejects the upload
        """
        if item.local_path is None:
            raise LocalFileError(f"No local file for {item.key}", item.key)

        try:
            if item.stream:
                with open(item.local_path, "rb") as body:
                    self._put(item.key, body, item.params)
            else:
                body = item.local_path.read_bytes()
                self._put(item.key, body, item.params)
        except OSError as e:
            raise LocalFileError(f"Cannot read {item.local_path}: {e}", item.key) from e

    def _put(self, key: str, body: Any, params: dict[str, Any]) -> None:
        try:
            self.client.put_object(key, body, params)
        except S3SyncError as e:
            raise S3UploadError(
                f"Failed to upload {self.client.describe(key)}: {e}", key
            ) from e

    def download(
        self,
        key: str,
        local_path: Path,
        stream: bool = False,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> Path:
        """Download an object to a local file.

        Parent directories are created. The body is written to a temporary
        file next to ``local_path`` and moved into place once complete; a
        failed download leaves no partial file. With ``stream`` the body is
        copied in chunks instead of being read into memory.

        Args:
            key: Object key
            local_path: Local file to write
            stream: Copy the body chunk by chunk
            progress_callback: Optional progress callback
                function(bytes_downloaded, total_bytes); total is 0 when unknown

        Returns:
            Path where the object was saved

        Raises:
            LocalFileError: If the local file cannot be written
            S3DownloadError: If the object cannot be fetched
        """
        try:
            body = self.client.get_object(key)
        except S3SyncError as e:
            raise S3DownloadError(
                f"Failed to download {self.client.describe(key)}: {e}", key
            ) from e

        tmp_path: Optional[Path] = None
        try:
            local_path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                dir=local_path.parent, prefix=f".{local_path.name}.", delete=False
            ) as f:
                tmp_path = Path(f.name)
                if stream:
                    downloaded = 0
                    while True:
                        chunk = body.read(self.chunk_size)
                        if not chunk:
                            break
                        f.write(chunk)
                        downloaded += len(chunk)
                        if progress_callback:
                            progress_callback(downloaded, 0)
                else:
                    data = body.read()
                    f.write(data)
                    if progress_callback:
                        progress_callback(len(data), len(data))
            os.replace(tmp_path, local_path)
            tmp_path = None
        except OSError as e:
            raise LocalFileError(f"Cannot write {local_path}: {e}", key) from e
        finally:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            close = getattr(body, "close", None)
            if close is not None:
                close()

        return local_path

    def copy(self, source_key: str, dest_key: str, params: dict[str, Any]) -> None:
        """Copy an object within the store.

        Raises:
            S3CopyError: If the store rejects the copy
        """
        try:
            self.client.copy_object(source_key, dest_key, params)
        except S3SyncError as e:
            raise S3CopyError(
                f"Failed to copy {self.client.describe(source_key)} "
                f"to {self.client.describe(dest_key)}: {e}",
                dest_key,
            ) from e

    def delete_keys(self, keys: list[str]) -> DeleteResult:
        """Delete up to 1000 keys with a single request.

        Returns:
            DeleteResult with per-key errors reported by the store

        Raises:
            S3DeleteError: If the request itself fails
        """
        if len(keys) > DELETE_BATCH_LIMIT:
            raise ValueError(
                f"A delete request takes at most {DELETE_BATCH_LIMIT} keys, got {len(keys)}"
            )
        try:
            return self.client.delete_objects(keys)
        except S3SyncError as e:
            first = keys[0] if keys else None
            raise S3DeleteError(
                f"Failed to delete {len(keys)} object(s) starting at {first}: {e}", first
            ) from e
