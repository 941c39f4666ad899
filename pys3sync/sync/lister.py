"""Paginated listing of remote prefixes."""

import logging
import time
from collections.abc import Iterable

from ..exceptions import ListingError, S3SyncError
from ..models import RemoteObjectRecord
from ..store.base import ObjectStoreClient
from ..utils import DEFAULT_LIST_PAGE_SIZE, key_directory

logger = logging.getLogger(__name__)


class RemoteLister:
    """Lists every object under a prefix, following continuation markers."""

    def __init__(
        self, client: ObjectStoreClient, page_size: int = DEFAULT_LIST_PAGE_SIZE
    ):
        """Initialize lister.

        Args:
            client: Object store client
            page_size: Keys requested per page
        """
        self.client = client
        self.page_size = page_size

    def list(self, prefix: str = "") -> dict[str, RemoteObjectRecord]:
        """List all objects under a prefix.

        Pages are merged by key, a key reported twice keeps its last
        record. An empty prefix lists the whole store.

        Args:
            prefix: Key prefix to list

        Returns:
            Dictionary mapping key to RemoteObjectRecord

        Raises:
            ListingError: If any page request fails
        """
        start_time = time.time()
        records: dict[str, RemoteObjectRecord] = {}
        marker = None
        pages = 0

        while True:
            try:
                page = self.client.list_objects(
                    prefix, marker=marker, max_keys=self.page_size
                )
            except S3SyncError as e:
                raise ListingError(
                    f"Failed to list {self.client.describe(prefix)}: {e}", prefix
                ) from e
            pages += 1
            for record in page.records:
                records[record.key] = record
            if not page.truncated:
                break
            if not page.next_marker:
                raise ListingError(
                    f"Listing of {self.client.describe(prefix)} is truncated "
                    "but carries no continuation marker",
                    prefix,
                )
            marker = page.next_marker

        logger.debug(
            f"Listed {len(records)} objects under {prefix!r} "
            f"in {pages} page(s), {time.time() - start_time:.2f}s"
        )
        return records

    def list_many(self, prefixes: Iterable[str]) -> dict[str, RemoteObjectRecord]:
        """List several prefixes and merge the results."""
        records: dict[str, RemoteObjectRecord] = {}
        for prefix in prefixes:
            records.update(self.list(prefix))
        return records


def minimal_prefixes(prefixes: Iterable[str]) -> list[str]:
    """Reduce prefixes to the minimal set covering all of them.

    A prefix that starts with another prefix of the set is dropped.

    Examples:
        >>> minimal_prefixes(["a/b/", "a/", "c/"])
        ['a/', 'c/']
    """
    result: list[str] = []
    for prefix in sorted(set(prefixes)):
        if not any(prefix.startswith(kept) for kept in result):
            result.append(prefix)
    return result


def prefixes_for(dest_keys: Iterable[str], whole_store: bool = False) -> list[str]:
    """Choose the prefixes to list for a set of destination keys.

    Args:
        dest_keys: Destination keys of an upload batch
        whole_store: Force listing the whole store

    Returns:
        ``[""]`` when the whole store must be listed, otherwise the minimal
        set of destination directories
    """
    if whole_store:
        return [""]
    directories = [key_directory(key) for key in dest_keys]
    if any(directory == "" for directory in directories):
        return [""]
    return minimal_prefixes(directories)
