"""Exclusion filters for download, copy and delete rules."""

import re
from typing import Optional

from ..utils import glob_to_regex


class ExcludeFilter:
    """Glob-based exclusion of keys.

    The pattern is matched against the full key. With ``flip`` set, keys
    that match are kept and every other key is excluded.

    Examples:
        >>> ExcludeFilter("**/*.tmp").is_excluded("a/b/c.tmp")
        True
        >>> ExcludeFilter("**/*.tmp", flip=True).is_excluded("a/b/c.tmp")
        False
    """

    def __init__(self, pattern: Optional[str] = None, flip: bool = False):
        self.pattern = pattern
        self.flip = flip
        self._regex: Optional[re.Pattern] = (
            glob_to_regex(pattern) if pattern else None
        )

    @property
    def active(self) -> bool:
        return self._regex is not None

    def is_excluded(self, key: str) -> bool:
        """Check whether a key is excluded.

        Without a pattern nothing is excluded, regardless of ``flip``.
        """
        if self._regex is None:
            return False
        matched = self._regex.match(key) is not None
        return matched != self.flip
