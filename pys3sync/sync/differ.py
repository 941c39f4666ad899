"""Content comparison of local files against remote objects."""

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Union

from ..exceptions import LocalFileError
from ..utils import DEFAULT_CHUNK_SIZE, calculate_md5, normalize_etag

logger = logging.getLogger(__name__)


class CompareDate(str, Enum):
    """Direction of the timestamp fallback."""

    NEWER = "newer"
    """Different when the local file is newer than the remote object"""

    OLDER = "older"
    """Different when the local file is older than the remote object"""


class ContentDiffer:
    """Decides whether a local file differs from a remote object.

    The local bytes are hashed with MD5 and compared with the remote
    fingerprint. When the hashes differ and the remote object carries a
    timestamp, the local modification time decides.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        transform: Optional[Callable[[bytes], bytes]] = None,
    ):
        """Initialize differ.

        Args:
            chunk_size: Read size used while hashing
            transform: Optional callable applied to the file content before
                hashing
        """
        self.chunk_size = chunk_size
        self.transform = transform

    def hash_file(self, local_path: Path) -> str:
        """Return the hex MD5 of a local file.

        Raises:
            LocalFileError: If the file cannot be read
        """
        try:
            return calculate_md5(local_path, self.chunk_size, self.transform)
        except OSError as e:
            raise LocalFileError(f"Cannot read {local_path}: {e}", str(local_path)) from e

    def is_different(
        self,
        local_path: Union[str, Path],
        remote_fingerprint: Optional[str],
        remote_timestamp: Optional[float] = None,
        compare_date: Union[CompareDate, str] = CompareDate.NEWER,
    ) -> bool:
        """Compare a local file with a remote object.

        Args:
            local_path: Local file
            remote_fingerprint: Remote ETag (quoted or not)
            remote_timestamp: Remote modification time as Unix timestamp
            compare_date: ``newer`` or ``older``

        Returns:
            True if the file should be transferred

        Raises:
            LocalFileError: If the local file cannot be read or stat'ed
        """
        local_path = Path(local_path)
        compare_date = CompareDate(compare_date)

        local_hash = self.hash_file(local_path)
        if local_hash == normalize_etag(remote_fingerprint):
            return False

        if remote_timestamp is None:
            return True

        try:
            local_mtime = local_path.stat().st_mtime
        except OSError as e:
            raise LocalFileError(f"Cannot stat {local_path}: {e}", str(local_path)) from e

        if compare_date == CompareDate.NEWER:
            different = local_mtime > remote_timestamp
        else:
            different = local_mtime < remote_timestamp
        logger.debug(
            "Hash mismatch for %s, local mtime %.0f vs remote %.0f (%s): %s",
            local_path,
            local_mtime,
            remote_timestamp,
            compare_date.value,
            "different" if different else "unchanged",
        )
        return different
