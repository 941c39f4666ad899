"""Data models shared by the planner, executor and engine."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Optional


class ActionKind(str, Enum):
    """Kinds of rules and batches."""

    UPLOAD = "upload"
    """Put local files into the store"""

    DOWNLOAD = "download"
    """Get every object under a prefix into a local directory"""

    DELETE = "delete"
    """Delete every object under a prefix"""

    COPY = "copy"
    """Copy every object under a prefix to another prefix"""


class ItemStatus(str, Enum):
    """Outcome of a single transfer item."""

    TRANSFERRED = "transferred"
    SKIPPED = "skipped"
    EXCLUDED = "excluded"
    FAILED = "failed"


@dataclass(frozen=True)
class Rule:
    """One declared file pair.

    Upload rules carry concrete source files in ``src``; copy rules carry a
    single source prefix. Download and delete rules address ``dest`` only
    (download writes into ``cwd``).
    """

    action: ActionKind
    dest: Optional[str] = None
    src: tuple[str, ...] = ()
    cwd: Optional[str] = None
    expand: bool = False
    differential: Optional[bool] = None
    exclude: Optional[str] = None
    flip_exclude: bool = False
    stream: Optional[bool] = None
    params: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        if self.src:
            return f"{self.action.value}: {', '.join(self.src)} -> {self.dest}"
        return f"{self.action.value}: {self.dest}"


@dataclass(frozen=True)
class RemoteObjectRecord:
    """Snapshot of a remote object as reported by a listing."""

    key: str
    """Object key"""

    fingerprint: str
    """Normalized content fingerprint (ETag without quotes)"""

    last_modified: Optional[float] = None
    """Last modification time (Unix timestamp)"""

    size: int = 0
    """Object size in bytes"""

    @property
    def is_pseudo_directory(self) -> bool:
        """Keys ending in a slash only emulate directories."""
        return self.key.endswith("/")


@dataclass
class TransferItem:
    """Concrete unit of work derived from a rule."""

    key: str
    """Destination key (upload, copy) or source key (download, delete)"""

    local_path: Optional[Path] = None
    """Local file read by an upload or written by a download"""

    source_key: Optional[str] = None
    """Source key of a copy"""

    params: dict[str, Any] = field(default_factory=dict)
    """Resolved put/copy parameters"""

    differential: bool = False
    stream: bool = False

    need_transfer: bool = True
    """Revised by the executor after the differential check"""

    excluded: bool = False
    """Set by the executor when the exclusion filter matches"""


@dataclass
class Batch:
    """An ordered run of same-kind rules."""

    kind: ActionKind
    rules: list[Rule] = field(default_factory=list)
    items: list[TransferItem] = field(default_factory=list)

    @property
    def rule(self) -> Rule:
        """The single rule of a non-upload batch."""
        return self.rules[0]

    @property
    def has_differential_items(self) -> bool:
        return any(item.differential for item in self.items)


@dataclass
class ItemOutcome:
    """What happened to one item of a batch."""

    key: str
    status: ItemStatus
    reason: str = ""
    local_path: Optional[Path] = None
    error: Optional[str] = None
    size: int = 0


@dataclass
class BatchResult:
    """Outcome counters and per-item results of one batch."""

    kind: ActionKind
    target: str = ""
    outcomes: list[ItemOutcome] = field(default_factory=list)
    error: Optional[Exception] = None
    dry_run: bool = False

    @property
    def total(self) -> int:
        return len(self.outcomes)

    def _count(self, status: ItemStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def transferred(self) -> int:
        """Items actually transferred (or deleted)."""
        return self._count(ItemStatus.TRANSFERRED)

    @property
    def skipped(self) -> int:
        return self._count(ItemStatus.SKIPPED)

    @property
    def excluded(self) -> int:
        return self._count(ItemStatus.EXCLUDED)

    @property
    def failed(self) -> int:
        return self._count(ItemStatus.FAILED)

    @property
    def needed(self) -> int:
        """Items that required a transfer, whether or not it succeeded."""
        return self.transferred + self.failed

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def changed_keys(self) -> list[str]:
        """Destination keys written by this batch, in item order."""
        if self.dry_run or self.kind not in (ActionKind.UPLOAD, ActionKind.COPY):
            return []
        return [
            outcome.key
            for outcome in self.outcomes
            if outcome.status == ItemStatus.TRANSFERRED
        ]

    @property
    def mutated_store(self) -> bool:
        if self.dry_run or self.kind == ActionKind.DOWNLOAD:
            return False
        return self.transferred > 0


@dataclass
class RunResult:
    """Aggregated result of a whole run."""

    batches: list[BatchResult] = field(default_factory=list)
    changed_keys: list[str] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def totals(self) -> dict[str, int]:
        """Return transfer statistics in the engine's stats-dict form."""
        stats = {
            "uploads": 0,
            "downloads": 0,
            "deletes": 0,
            "copies": 0,
            "skips": 0,
            "excluded": 0,
            "failures": 0,
        }
        key_by_kind = {
            ActionKind.UPLOAD: "uploads",
            ActionKind.DOWNLOAD: "downloads",
            ActionKind.DELETE: "deletes",
            ActionKind.COPY: "copies",
        }
        for batch in self.batches:
            stats[key_by_kind[batch.kind]] += batch.transferred
            stats["skips"] += batch.skipped
            stats["excluded"] += batch.excluded
            stats["failures"] += batch.failed
        return stats
