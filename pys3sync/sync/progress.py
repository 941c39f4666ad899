"""Progress events emitted while batches run."""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..models import ActionKind, ItemStatus


class TransferProgressEvent(str, Enum):
    """Kinds of progress events."""

    BATCH_START = "batch_start"
    ITEM_COMPLETE = "item_complete"
    BATCH_COMPLETE = "batch_complete"


@dataclass
class TransferProgressInfo:
    """Snapshot passed to progress callbacks."""

    event: TransferProgressEvent
    kind: ActionKind
    target: str = ""
    key: str = ""
    status: Optional[ItemStatus] = None

    items_total: int = 0
    """Items of the current batch"""

    items_done: int = 0
    """Items of the current batch with an outcome"""

    items_transferred: int = 0
    bytes_transferred: int = 0


class TransferProgressTracker:
    """Thread-safe progress accounting for one batch at a time.

    Workers report item outcomes concurrently; the callback is invoked
    under a lock so renderers never see interleaved updates.
    """

    def __init__(
        self, callback: Optional[Callable[[TransferProgressInfo], None]] = None
    ):
        self.callback = callback
        self._lock = threading.Lock()
        self._kind = ActionKind.UPLOAD
        self._target = ""
        self._total = 0
        self._done = 0
        self._transferred = 0
        self._bytes = 0

    def _emit(
        self,
        event: TransferProgressEvent,
        key: str = "",
        status: Optional[ItemStatus] = None,
    ) -> None:
        if self.callback is None:
            return
        self.callback(
            TransferProgressInfo(
                event=event,
                kind=self._kind,
                target=self._target,
                key=key,
                status=status,
                items_total=self._total,
                items_done=self._done,
                items_transferred=self._transferred,
                bytes_transferred=self._bytes,
            )
        )

    def start_batch(self, kind: ActionKind, target: str, total: int) -> None:
        with self._lock:
            self._kind = kind
            self._target = target
            self._total = total
            self._done = 0
            self._transferred = 0
            self._bytes = 0
            self._emit(TransferProgressEvent.BATCH_START)

    def item_done(self, key: str, status: ItemStatus, size: int = 0) -> None:
        with self._lock:
            self._done += 1
            if status == ItemStatus.TRANSFERRED:
                self._transferred += 1
                self._bytes += size
            self._emit(TransferProgressEvent.ITEM_COMPLETE, key, status)

    def finish_batch(self) -> None:
        with self._lock:
            self._emit(TransferProgressEvent.BATCH_COMPLETE)
