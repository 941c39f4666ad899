"""Directory-backed bucket for offline runs and tests.

Every file below the root directory is an object whose key is its
forward-slash relative path. ETags are quoted MD5 digests as reported by S3
for single-part uploads; put parameters are accepted but not stored.
"""

import io
import logging
import shutil
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from ..exceptions import S3APIError, S3NotFoundError
from ..models import RemoteObjectRecord
from ..utils import calculate_md5
from .base import DeleteError, DeleteResult, ListPage

logger = logging.getLogger(__name__)


class LocalBucketClient:
    """Object store client operating on a local directory."""

    def __init__(self, root: Union[str, Path], create: bool = True):
        """Initialize local bucket.

        Args:
            root: Directory acting as the bucket
            create: Create the directory if it does not exist
        """
        self.root = Path(root)
        if create:
            self.root.mkdir(parents=True, exist_ok=True)
        elif not self.root.is_dir():
            raise S3NotFoundError(f"Bucket directory does not exist: {self.root}")

    def _path(self, key: str) -> Path:
        if not key or key.startswith("/") or ".." in key.split("/"):
            raise S3APIError(f"Invalid key: {key!r}", "InvalidKey")
        return self.root / key

    def _record(self, key: str, path: Path) -> RemoteObjectRecord:
        stat = path.stat()
        return RemoteObjectRecord(
            key=key,
            fingerprint=calculate_md5(path),
            last_modified=stat.st_mtime,
            size=stat.st_size,
        )

    def _all_keys(self) -> list[str]:
        return sorted(
            path.relative_to(self.root).as_posix()
            for path in self.root.rglob("*")
            if path.is_file()
        )

    def list_objects(
        self, prefix: str, marker: Optional[str] = None, max_keys: int = 1000
    ) -> ListPage:
        keys = [
            key
            for key in self._all_keys()
            if key.startswith(prefix) and (marker is None or key > marker)
        ]
        page_keys = keys[:max_keys]
        truncated = len(keys) > max_keys
        return ListPage(
            records=[self._record(key, self.root / key) for key in page_keys],
            truncated=truncated,
            next_marker=page_keys[-1] if truncated else None,
        )

    def get_object(self, key: str) -> BinaryIO:
        path = self._path(key)
        if not path.is_file():
            raise S3NotFoundError(f"get_object: not found ({key})", "NoSuchKey")
        return open(path, "rb")

    def put_object(
        self, key: str, body: Union[bytes, BinaryIO], params: dict[str, Any]
    ) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(body, (bytes, bytearray)):
            body = io.BytesIO(body)
        with open(path, "wb") as f:
            shutil.copyfileobj(body, f)

    def delete_objects(self, keys: list[str]) -> DeleteResult:
        result = DeleteResult()
        for key in keys:
            try:
                path = self._path(key)
                # Deleting a missing key succeeds, as on S3
                path.unlink(missing_ok=True)
                result.deleted.append(key)
            except (OSError, S3APIError) as e:
                logger.debug(f"Failed to delete {key}: {e}")
                result.errors.append(DeleteError(key=key, code="InternalError", message=str(e)))
        return result

    def copy_object(
        self, source_key: str, dest_key: str, params: dict[str, Any]
    ) -> None:
        source = self._path(source_key)
        if not source.is_file():
            raise S3NotFoundError(f"copy_object: not found ({source_key})", "NoSuchKey")
        dest = self._path(dest_key)
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, dest)

    def head_object(self, key: str) -> Optional[RemoteObjectRecord]:
        path = self._path(key)
        if not path.is_file():
            return None
        return self._record(key, path)

    def describe(self, key: str = "") -> str:
        return f"{self.root.as_posix()}/{key}"
