"""Capability interface of an object store client."""

from dataclasses import dataclass, field
from typing import Any, BinaryIO, Optional, Protocol, Union

from ..models import RemoteObjectRecord


@dataclass
class ListPage:
    """One page of a listing."""

    records: list[RemoteObjectRecord] = field(default_factory=list)
    truncated: bool = False
    next_marker: Optional[str] = None


@dataclass
class DeleteError:
    """A key the store refused to delete."""

    key: str
    code: str = ""
    message: str = ""


@dataclass
class DeleteResult:
    """Response of a bulk delete request."""

    deleted: list[str] = field(default_factory=list)
    errors: list[DeleteError] = field(default_factory=list)


class ObjectStoreClient(Protocol):
    """Operations the transfer engine needs from an object store."""

    def list_objects(
        self, prefix: str, marker: Optional[str] = None, max_keys: int = 1000
    ) -> ListPage:
        """List one page of objects whose key starts with ``prefix``."""
        ...

    def get_object(self, key: str) -> BinaryIO:
        """Return a readable binary stream of the object content."""
        ...

    def put_object(
        self, key: str, body: Union[bytes, BinaryIO], params: dict[str, Any]
    ) -> None:
        """Store ``body`` under ``key`` with the given put parameters."""
        ...

    def delete_objects(self, keys: list[str]) -> DeleteResult:
        """Delete up to 1000 keys in one request."""
        ...

    def copy_object(
        self, source_key: str, dest_key: str, params: dict[str, Any]
    ) -> None:
        """Copy an object inside the store."""
        ...

    def head_object(self, key: str) -> Optional[RemoteObjectRecord]:
        """Return the record of ``key`` or None if it does not exist."""
        ...

    def describe(self, key: str = "") -> str:
        """Return a URL-like description of a key for messages."""
        ...
