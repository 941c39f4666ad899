"""Local directory scanning for differential operations."""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..exceptions import LocalFileError

logger = logging.getLogger(__name__)


@dataclass
class LocalFile:
    """Represents a local file with metadata."""

    path: Path
    """Absolute path to the file"""

    relative_path: str
    """Relative path (using forward slashes for cross-platform compatibility)"""

    size: int
    """File size in bytes"""

    mtime: float
    """Last modification time (Unix timestamp)"""

    @classmethod
    def from_path(cls, file_path: Path, base_path: Path) -> "LocalFile":
        """Create LocalFile from a path.

        Args:
            file_path: Absolute path to the file
            base_path: Base path for calculating relative paths

        Returns:
            LocalFile instance
        """
        stat = file_path.stat()
        # Use as_posix() to ensure forward slashes on all platforms
        relative_path = file_path.relative_to(base_path).as_posix()
        return cls(
            path=file_path,
            relative_path=relative_path,
            size=stat.st_size,
            mtime=stat.st_mtime,
        )


class DirectoryScanner:
    """Scans local directories and builds file lists.

    Examples:
        >>> scanner = DirectoryScanner()
        >>> files = scanner.scan_local(Path("/sync/folder"))
        >>> keys = {f.relative_path for f in files}
    """

    def scan_local(
        self,
        directory: Path,
        base_path: Optional[Path] = None,
        strict: bool = False,
    ) -> list[LocalFile]:
        """Recursively scan a local directory.

        Args:
            directory: Directory to scan
            base_path: Base path for calculating relative paths (defaults to directory)
            strict: Raise on unreadable files or directories instead of
                skipping them

        Returns:
            List of LocalFile objects; a missing directory yields no files

        Raises:
            LocalFileError: In strict mode, if an entry cannot be read
        """
        if base_path is None:
            base_path = directory
            if not directory.is_dir():
                logger.debug(f"Local directory {directory} does not exist")
                return []

        files: list[LocalFile] = []

        try:
            for item in sorted(directory.iterdir()):
                if item.is_file():
                    try:
                        files.append(LocalFile.from_path(item, base_path))
                    except OSError as e:
                        if strict:
                            raise LocalFileError(f"Cannot stat {item}: {e}") from e
                        logger.debug(f"Skipping unreadable file {item}")
                        continue
                elif item.is_dir():
                    files.extend(self.scan_local(item, base_path, strict))
        except OSError as e:
            if strict:
                raise LocalFileError(f"Cannot scan {directory}: {e}") from e
            logger.warning(f"Skipping unreadable directory {directory}: {e}")

        return files

    def relative_paths(self, directory: Path, strict: bool = False) -> set[str]:
        """Return the forward-slash relative paths of all files below a directory."""
        return {f.relative_path for f in self.scan_local(directory, strict=strict)}
