"""Execution of one batch with a bounded worker pool."""

import logging
import time
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Optional

from ..exceptions import (
    ConflictError,
    LocalFileError,
    PartialBatchFailure,
    S3DeleteError,
    S3SyncError,
)
from ..models import (
    ActionKind,
    Batch,
    BatchResult,
    ItemOutcome,
    ItemStatus,
    RemoteObjectRecord,
    Rule,
    TransferItem,
)
from ..utils import DELETE_BATCH_LIMIT, normalize_prefix, relative_key
from .differ import CompareDate, ContentDiffer
from .filters import ExcludeFilter
from .operations import TransferOperations
from .options import TaskOptions
from .progress import TransferProgressTracker

logger = logging.getLogger(__name__)


def slice_keys(keys: list[str], size: int = DELETE_BATCH_LIMIT) -> list[list[str]]:
    """Split keys into consecutive slices of at most ``size`` keys.

    Examples:
        >>> [len(s) for s in slice_keys([str(i) for i in range(2500)])]
        [1000, 1000, 500]
    """
    return [keys[i : i + size] for i in range(0, len(keys), size)]


class TransferExecutor:
    """Runs the items of a batch.

    Each batch gets its own thread pool sized by the concurrency option of
    its kind. The first failing item stops the batch: items not yet
    started are cancelled, running ones finish, and the failure is stored
    as the batch error.
    """

    def __init__(
        self,
        operations: TransferOperations,
        differ: Optional[ContentDiffer] = None,
        options: Optional[TaskOptions] = None,
        tracker: Optional[TransferProgressTracker] = None,
    ):
        """Initialize executor.

        Args:
            operations: Transfer operations bound to a store client
            differ: Content differ for differential items
            options: Task options (concurrency, overwrite, dry run)
            tracker: Optional progress tracker
        """
        self.operations = operations
        self.differ = differ or ContentDiffer()
        self.options = options or TaskOptions()
        self.tracker = tracker

    @property
    def dry_run(self) -> bool:
        return self.options.debug

    def _describe(self, key: str = "") -> str:
        return self.operations.client.describe(key)

    # =========================================================================
    # Upload
    # =========================================================================

    def run_upload(
        self, batch: Batch, remote_index: Optional[dict[str, RemoteObjectRecord]] = None
    ) -> BatchResult:
        """Upload the items of an upload batch.

        Args:
            batch: Upload batch produced by the planner
            remote_index: Records of the destination prefixes, keyed by key;
                required for differential items and overwrite checks

        Returns:
            BatchResult of the batch
        """
        remote_index = remote_index or {}
        result = BatchResult(
            kind=ActionKind.UPLOAD,
            target=self._describe(),
            dry_run=self.dry_run,
        )

        def upload_item(item: TransferItem) -> ItemOutcome:
            prior = remote_index.get(item.key)
            if prior is not None and not self.options.overwrite:
                raise ConflictError(item.key)
            if item.differential and prior is not None:
                if not self.differ.is_different(
                    item.local_path,
                    prior.fingerprint,
                    prior.last_modified,
                    CompareDate.NEWER,
                ):
                    item.need_transfer = False
                    return ItemOutcome(
                        key=item.key,
                        status=ItemStatus.SKIPPED,
                        reason="unchanged",
                        local_path=item.local_path,
                    )
            try:
                size = item.local_path.stat().st_size
            except OSError as e:
                raise LocalFileError(
                    f"Cannot stat {item.local_path}: {e}", item.key
                ) from e
            if not self.dry_run:
                self.operations.upload(item)
            return ItemOutcome(
                key=item.key,
                status=ItemStatus.TRANSFERRED,
                reason="new" if prior is None else "changed",
                local_path=item.local_path,
                size=size,
            )

        self._run_pool(result, batch.items, upload_item)
        return result

    # =========================================================================
    # Download
    # =========================================================================

    def run_download(
        self, rule: Rule, records: dict[str, RemoteObjectRecord]
    ) -> BatchResult:
        """Download every listed object below the rule's prefix into ``cwd``.

        Args:
            rule: Download rule
            records: Listing of the rule's ``dest`` prefix

        Returns:
            BatchResult of the batch
        """
        settings = self.options.resolve(rule)
        prefix = normalize_prefix(rule.dest)
        local_root = Path(rule.cwd or ".")
        exclude = ExcludeFilter(settings.exclude, settings.flip_exclude)
        result = BatchResult(
            kind=ActionKind.DOWNLOAD,
            target=self._describe(prefix),
            dry_run=self.dry_run,
        )

        items = []
        for key in sorted(records):
            record = records[key]
            if record.is_pseudo_directory:
                continue
            item = TransferItem(
                key=key,
                local_path=local_root / relative_key(key, prefix),
                differential=settings.differential,
                stream=settings.stream,
            )
            if exclude.is_excluded(key):
                item.excluded = True
                item.need_transfer = False
            items.append(item)

        resolved_root = local_root.resolve()

        def download_item(item: TransferItem) -> ItemOutcome:
            record = records[item.key]
            if not item.local_path.resolve().is_relative_to(resolved_root):
                raise LocalFileError(
                    f"Refusing to write {item.key} outside {local_root}", item.key
                )
            if item.differential and item.local_path.exists():
                if not self.differ.is_different(
                    item.local_path,
                    record.fingerprint,
                    record.last_modified,
                    CompareDate.OLDER,
                ):
                    item.need_transfer = False
                    return ItemOutcome(
                        key=item.key,
                        status=ItemStatus.SKIPPED,
                        reason="unchanged",
                        local_path=item.local_path,
                    )
            if not self.dry_run:
                self.operations.download(item.key, item.local_path, stream=item.stream)
            return ItemOutcome(
                key=item.key,
                status=ItemStatus.TRANSFERRED,
                local_path=item.local_path,
                size=record.size,
            )

        self._run_pool(result, items, download_item)
        return result

    # =========================================================================
    # Copy
    # =========================================================================

    def run_copy(
        self,
        rule: Rule,
        records: dict[str, RemoteObjectRecord],
        dest_index: Optional[dict[str, RemoteObjectRecord]] = None,
    ) -> BatchResult:
        """Copy every listed object below the source prefix to ``dest``.

        Args:
            rule: Copy rule
            records: Listing of the source prefix
            dest_index: Listing of the destination prefix; required for
                differential copies and overwrite checks

        Returns:
            BatchResult of the batch
        """
        settings = self.options.resolve(rule)
        source_prefix = normalize_prefix(rule.src[0])
        dest_prefix = normalize_prefix(rule.dest)
        exclude = ExcludeFilter(settings.exclude, settings.flip_exclude)
        dest_index = dest_index or {}
        result = BatchResult(
            kind=ActionKind.COPY,
            target=f"{self._describe(source_prefix)} -> {self._describe(dest_prefix)}",
            dry_run=self.dry_run,
        )

        items = []
        for key in sorted(records):
            if records[key].is_pseudo_directory:
                continue
            item = TransferItem(
                key=dest_prefix + relative_key(key, source_prefix),
                source_key=key,
                params=dict(settings.params),
                differential=settings.differential,
            )
            if exclude.is_excluded(key):
                item.excluded = True
                item.need_transfer = False
            items.append(item)

        def copy_item(item: TransferItem) -> ItemOutcome:
            source = records[item.source_key]
            prior = dest_index.get(item.key)
            if prior is not None and not self.options.overwrite:
                raise ConflictError(item.key)
            if item.differential and prior is not None:
                if prior.fingerprint == source.fingerprint:
                    item.need_transfer = False
                    return ItemOutcome(
                        key=item.key, status=ItemStatus.SKIPPED, reason="unchanged"
                    )
            if not self.dry_run:
                self.operations.copy(item.source_key, item.key, item.params)
            return ItemOutcome(
                key=item.key, status=ItemStatus.TRANSFERRED, size=source.size
            )

        self._run_pool(result, items, copy_item)
        return result

    # =========================================================================
    # Delete
    # =========================================================================

    def run_delete(
        self,
        rule: Rule,
        records: dict[str, RemoteObjectRecord],
        local_keys: Optional[Iterable[str]] = None,
    ) -> BatchResult:
        """Delete the listed objects below the rule's prefix.

        Keys are sent in slices of at most 1000, all slices concurrently.
        Every slice runs to completion; failed slices are reported together
        as a PartialBatchFailure.

        Args:
            rule: Delete rule
            records: Listing of the rule's ``dest`` prefix
            local_keys: Relative paths present below the rule's ``cwd``
                (differential delete); those objects are kept

        Returns:
            BatchResult of the batch
        """
        settings = self.options.resolve(rule)
        prefix = normalize_prefix(rule.dest)
        exclude = ExcludeFilter(settings.exclude, settings.flip_exclude)
        keep = set(local_keys) if local_keys is not None else None
        result = BatchResult(
            kind=ActionKind.DELETE,
            target=self._describe(prefix),
            dry_run=self.dry_run,
        )

        outcomes: dict[str, ItemOutcome] = {}
        need_delete: list[str] = []
        for key in sorted(records):
            if exclude.is_excluded(key):
                outcomes[key] = ItemOutcome(key=key, status=ItemStatus.EXCLUDED)
            elif keep is not None and relative_key(key, prefix) in keep:
                outcomes[key] = ItemOutcome(
                    key=key, status=ItemStatus.SKIPPED, reason="exists locally"
                )
            else:
                need_delete.append(key)

        if self.tracker:
            self.tracker.start_batch(ActionKind.DELETE, result.target, len(need_delete))

        if not need_delete:
            logger.debug(f"Nothing to delete under {prefix!r}")
        elif self.dry_run:
            for key in need_delete:
                outcomes[key] = ItemOutcome(key=key, status=ItemStatus.TRANSFERRED)
        else:
            deleted, failed, errors = self._delete_slices(need_delete)
            for key in need_delete:
                if key in failed:
                    outcomes[key] = ItemOutcome(
                        key=key, status=ItemStatus.FAILED, error=failed[key]
                    )
                else:
                    outcomes[key] = ItemOutcome(
                        key=key, status=ItemStatus.TRANSFERRED, size=records[key].size
                    )
            if failed:
                result.error = PartialBatchFailure(
                    f"Failed to delete {len(failed)} of {len(need_delete)} object(s) "
                    f"under {self._describe(prefix)}",
                    deleted=deleted,
                    failed=sorted(failed),
                    errors=errors,
                )

        result.outcomes = [outcomes[key] for key in sorted(outcomes)]
        if self.tracker:
            for key in need_delete:
                self.tracker.item_done(key, outcomes[key].status)
            self.tracker.finish_batch()
        return result

    def _delete_slices(
        self, keys: list[str]
    ) -> tuple[list[str], dict[str, str], list[Exception]]:
        """Issue one delete request per slice concurrently.

        Returns:
            Tuple of (deleted keys, failed keys mapped to their error,
            errors of failed requests)
        """
        slices = slice_keys(keys)
        deleted: list[str] = []
        failed: dict[str, str] = {}
        errors: list[Exception] = []

        logger.debug(f"Deleting {len(keys)} object(s) in {len(slices)} request(s)")
        with ThreadPoolExecutor(max_workers=len(slices)) as executor:
            futures = {
                executor.submit(self.operations.delete_keys, keys_slice): keys_slice
                for keys_slice in slices
            }
            for future in as_completed(futures):
                keys_slice = futures[future]
                try:
                    response = future.result()
                except S3DeleteError as e:
                    logger.debug(f"Delete request failed: {e}")
                    errors.append(e)
                    for key in keys_slice:
                        failed[key] = str(e)
                    continue
                rejected = {err.key: f"{err.code}: {err.message}" for err in response.errors}
                failed.update(rejected)
                deleted.extend(key for key in keys_slice if key not in rejected)

        return sorted(deleted), failed, errors

    # =========================================================================
    # Worker pool
    # =========================================================================

    def _run_pool(
        self,
        result: BatchResult,
        items: list[TransferItem],
        worker: Callable[[TransferItem], ItemOutcome],
    ) -> None:
        """Run a worker over items and collect outcomes into ``result``.

        Excluded items are recorded without being submitted. Outcomes keep
        the item order.
        """
        max_workers = self.options.concurrency_for(result.kind)
        outcomes: dict[int, ItemOutcome] = {}
        pending: list[tuple[int, TransferItem]] = []

        for index, item in enumerate(items):
            if item.excluded:
                outcomes[index] = ItemOutcome(
                    key=item.key,
                    status=ItemStatus.EXCLUDED,
                    local_path=item.local_path,
                )
            else:
                pending.append((index, item))

        if self.tracker:
            self.tracker.start_batch(result.kind, result.target, len(pending))

        logger.debug(
            f"Running {len(pending)} {result.kind.value} item(s) "
            f"with {max_workers} worker(s)"
        )

        def execute_with_timing(item: TransferItem) -> tuple[ItemOutcome, float]:
            start = time.time()
            outcome = worker(item)
            return outcome, time.time() - start

        if pending:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                futures = {
                    executor.submit(execute_with_timing, item): (index, item)
                    for index, item in pending
                }
                for future in as_completed(futures):
                    index, item = futures[future]
                    if future.cancelled():
                        continue
                    try:
                        outcome, elapsed = future.result()
                        logger.debug(
                            f"{outcome.status.value} {item.key} in {elapsed:.2f}s"
                        )
                    except S3SyncError as e:
                        logger.debug(f"Failed {item.key}: {e}")
                        outcome = ItemOutcome(
                            key=item.key,
                            status=ItemStatus.FAILED,
                            local_path=item.local_path,
                            error=str(e),
                        )
                        if result.error is None:
                            result.error = e
                            for other in futures:
                                other.cancel()
                    outcomes[index] = outcome
                    if self.tracker:
                        self.tracker.item_done(item.key, outcome.status, outcome.size)

        result.outcomes = [outcomes[index] for index in sorted(outcomes)]
        if self.tracker:
            self.tracker.finish_batch()
