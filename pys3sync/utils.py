"""Utility functions for pys3sync."""

import hashlib
import mimetypes
import posixpath
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

# =============================================================================
# Constants for object operations
# =============================================================================

# Hard cap of keys accepted by a single delete request
DELETE_BATCH_LIMIT: int = 1000

# Keys requested per list page
DEFAULT_LIST_PAGE_SIZE: int = 1000

# Read size when hashing or streaming files (8 MB)
DEFAULT_CHUNK_SIZE: int = 8 * 1024 * 1024

DEFAULT_MIME_TYPE: str = "application/octet-stream"

# Parameters accepted by a put request
ALLOWED_PUT_PARAMS: frozenset[str] = frozenset(
    {
        "ACL",
        "CacheControl",
        "ContentDisposition",
        "ContentEncoding",
        "ContentLanguage",
        "ContentLength",
        "ContentMD5",
        "ContentType",
        "Expires",
        "GrantFullControl",
        "GrantRead",
        "GrantReadACP",
        "GrantWriteACP",
        "Metadata",
        "ServerSideEncryption",
        "SSECustomerAlgorithm",
        "SSECustomerKey",
        "SSECustomerKeyMD5",
        "SSEKMSKeyId",
        "StorageClass",
        "Tagging",
        "WebsiteRedirectLocation",
    }
)

GZIP_RENAME_POLICIES: tuple[str, ...] = ("ext", "gz", "swap")

_GZIP_SUFFIX = re.compile(r"\.(gz|gzip)$")


# =============================================================================
# Key and path utilities
# =============================================================================


def unixify_path(path: Union[str, Path]) -> str:
    """Convert a path to forward-slash form on every platform."""
    return str(path).replace("\\", "/")


def normalize_prefix(dest: Optional[str]) -> str:
    """Normalize a destination prefix; ``"/"`` is the store root.

    Examples:
        >>> normalize_prefix("/")
        ''
        >>> normalize_prefix("first/")
        'first/'
    """
    if not dest or dest == "/":
        return ""
    return unixify_path(dest)


def join_key(dest: str, src: str) -> str:
    """Join a destination directory and a source path into an object key.

    Returns an empty string when the result would be the store root
    itself (``"."``).
    """
    joined = posixpath.join(unixify_path(dest), unixify_path(src).lstrip("/"))
    if not joined:
        return ""
    key = posixpath.normpath(joined).lstrip("/")
    return "" if key == "." else key


def relative_key(key: str, prefix: str) -> str:
    """Return the path of ``key`` relative to a listed ``prefix``.

    A prefix ending in a slash is stripped. A key equal to the prefix keeps
    its last segment. Otherwise the full key is kept.

    Examples:
        >>> relative_key("first/a/b.txt", "first/")
        'a/b.txt'
        >>> relative_key("first/a/b.txt", "first/a/b.txt")
        'b.txt'
        >>> relative_key("first/a/b.txt", "first")
        'first/a/b.txt'
    """
    if prefix.endswith("/") and key.startswith(prefix):
        return key[len(prefix) :]
    if key == prefix:
        return key.split("/")[-1]
    return key


def key_directory(key: str) -> str:
    """Return the directory prefix of a key, with trailing slash.

    Keys at the store root have the empty prefix.
    """
    directory = posixpath.dirname(key)
    return f"{directory}/" if directory else ""


def is_pseudo_directory(key: str) -> bool:
    return key.endswith("/")


# =============================================================================
# Hash calculation utilities
# =============================================================================


def calculate_md5(
    file_path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE, transform: Any = None
) -> str:
    """Calculate the hex MD5 digest of a local file.

    Args:
        file_path: File to hash
        chunk_size: Read size in bytes
        transform: Optional callable applied to the whole content before
            hashing (for example a compressor)

    Returns:
        Lower-case hex digest
    """
    if transform is not None:
        return hashlib.md5(transform(file_path.read_bytes())).hexdigest()

    md5 = hashlib.md5()
    with open(file_path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            md5.update(chunk)
    return md5.hexdigest()


def normalize_etag(etag: Optional[str]) -> str:
    """Strip quotes and weak markers from an ETag.

    Examples:
        >>> normalize_etag('"D41D8CD98F00B204E9800998ECF8427E"')
        'd41d8cd98f00b204e9800998ecf8427e'
    """
    if not etag:
        return ""
    value = etag.strip()
    if value.startswith("W/"):
        value = value[2:]
    return value.strip('"').strip("'").lower()


# =============================================================================
# Upload parameter utilities
# =============================================================================


def is_gzip_source(src: str) -> bool:
    return _GZIP_SUFFIX.search(src) is not None


def gzip_rename(key: str, policy: str) -> str:
    """Rename the destination key of a gzipped source.

    Args:
        key: Destination key ending in ``.gz`` or ``.gzip``
        policy: ``ext`` strips the suffix, ``gz`` collapses the inner
            extension into ``.gz``, ``swap`` swaps both extensions

    Examples:
        >>> gzip_rename("js/app.js.gz", "ext")
        'js/app.js'
        >>> gzip_rename("js/app.js.gz", "gz")
        'js/app.gz'
        >>> gzip_rename("js/app.js.gz", "swap")
        'js/app.gz.js'
    """
    match = _GZIP_SUFFIX.search(key)
    if match is None:
        return key

    suffix = match.group(0)
    stem = key[: match.start()]
    if policy == "ext":
        return stem

    directory, name = posixpath.split(stem)
    base, ext = posixpath.splitext(name)
    if not ext:
        return key
    if policy == "gz":
        renamed = f"{base}{suffix}"
    elif policy == "swap":
        renamed = f"{base}{suffix}{ext}"
    else:
        raise ValueError(f"Unknown gzip rename policy: {policy}")
    return posixpath.join(directory, renamed) if directory else renamed


def resolve_content_type(
    key: str,
    src: Optional[str] = None,
    params: Optional[dict[str, Any]] = None,
    mime_map: Optional[dict[str, str]] = None,
    default: str = DEFAULT_MIME_TYPE,
) -> str:
    """Resolve the content type of an upload.

    Order: explicit ``ContentType`` parameter, configured mapping for the
    source path, lookup on the destination name, then ``default``.
    """
    if params and params.get("ContentType"):
        return params["ContentType"]
    if mime_map and src is not None:
        mapped = mime_map.get(src) or mime_map.get(unixify_path(src))
        if mapped:
            return mapped
    mime_type, _ = mimetypes.guess_type(posixpath.basename(key))
    return mime_type or default


# =============================================================================
# Glob pattern utilities
# =============================================================================


def is_glob_pattern(value: str) -> bool:
    """Check whether a string contains glob wildcards."""
    return any(char in value for char in "*?[")


def glob_to_regex(pattern: str) -> re.Pattern:
    """Compile a path glob into a regular expression.

    ``*`` and ``?`` never cross a slash, ``**`` matches across directories
    and ``**/`` also matches zero directories. ``[...]`` and ``[!...]``
    are character classes.
    """
    i = 0
    n = len(pattern)
    parts = []
    while i < n:
        char = pattern[i]
        if char == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    i += 1
                    parts.append("(?:.*/)?")
                else:
                    parts.append(".*")
                continue
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        elif char == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                parts.append(re.escape(char))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                parts.append(f"[{body}]")
                i = end
        else:
            parts.append(re.escape(char))
        i += 1
    return re.compile("".join(parts) + r"\Z")


def glob_match(pattern: str, path: str) -> bool:
    """Check whether a key or relative path matches a glob pattern."""
    return glob_to_regex(pattern).match(path) is not None


# =============================================================================
# Formatting utilities
# =============================================================================


def format_size(size_bytes: int) -> str:
    """Format file size in human-readable format.

    Args:
        size_bytes: Size in bytes

    Returns:
        Formatted size string (e.g., "1.5 MB", "256 B")
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    elif size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    elif size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    else:
        return f"{size_bytes / 1024 / 1024 / 1024:.1f} GB"


def to_timestamp(value: Any) -> Optional[float]:
    """Convert a datetime or ISO timestamp string to a Unix timestamp."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, datetime):
        return value.timestamp()
    try:
        timestamp_str = str(value)
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        return datetime.fromisoformat(timestamp_str).timestamp()
    except ValueError:
        return None
