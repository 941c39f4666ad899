"""Transfer engine driving batches one at a time."""

import logging
import time
from enum import Enum
from pathlib import Path
from typing import Optional

from ..exceptions import S3SyncError
from ..models import ActionKind, Batch, BatchResult, RemoteObjectRecord, Rule, RunResult
from ..store.base import ObjectStoreClient
from ..utils import normalize_prefix
from .differ import ContentDiffer
from .executor import TransferExecutor
from .lister import RemoteLister, prefixes_for
from .operations import TransferOperations
from .options import TaskOptions
from .planner import TaskPlanner
from .progress import TransferProgressTracker
from .report import ReportCollector
from .scanner import DirectoryScanner

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    """Lifecycle of a run."""

    IDLE = "idle"
    PLANNING = "planning"
    EXECUTING = "executing"
    REPORTING = "reporting"
    DONE = "done"
    ABORTED = "aborted"


class TransferEngine:
    """Runs rules against an object store.

    Rules are planned into batches which are executed strictly one after
    another. A failing batch aborts the run: the partial RunResult is
    attached to the raised exception as ``result``.

    Examples:
        >>> engine = TransferEngine(LocalBucketClient("/tmp/bucket"))
        >>> result = engine.run(rules)
        >>> result.totals()["uploads"]
    """

    def __init__(
        self,
        client: ObjectStoreClient,
        options: Optional[TaskOptions] = None,
        reporter: Optional[ReportCollector] = None,
        tracker: Optional[TransferProgressTracker] = None,
        differ: Optional[ContentDiffer] = None,
    ):
        """Initialize transfer engine.

        Args:
            client: Object store client
            options: Task options
            reporter: Collector receiving every batch result
            tracker: Optional progress tracker
            differ: Content differ used for differential items
        """
        self.client = client
        self.options = options or TaskOptions()
        self.reporter = reporter or ReportCollector()
        self.state = EngineState.IDLE

        self.planner = TaskPlanner(self.options)
        self.lister = RemoteLister(client, self.options.list_page_size)
        self.scanner = DirectoryScanner()
        self.executor = TransferExecutor(
            TransferOperations(client),
            differ=differ,
            options=self.options,
            tracker=tracker,
        )
        # Whole-store listing shared by upload batches until the store changes
        self._whole_store: Optional[dict[str, RemoteObjectRecord]] = None

    def run(self, rules: list[Rule]) -> RunResult:
        """Plan and execute rules.

        Args:
            rules: Rules in declaration order

        Returns:
            RunResult with every batch result and the changed keys

        Raises:
            ValidationError: If a rule is malformed (nothing is executed)
            ListingError: If a listing fails
            TransferError: If an item fails
            ConflictError: If overwrite is disabled and a destination exists
            PartialBatchFailure: If some delete requests failed
        """
        start_time = time.time()
        self.state = EngineState.PLANNING
        try:
            batches = self.planner.plan(rules)
        except S3SyncError as e:
            self._abort(e)
            raise

        self.state = EngineState.EXECUTING
        for index, batch in enumerate(batches, 1):
            logger.debug(f"Batch {index}/{len(batches)}: {batch.kind.value}")
            try:
                result = self._execute_batch(batch)
            except S3SyncError as e:
                self._abort(e)
                raise

            self.reporter.add(result)
            if result.mutated_store and self._whole_store is not None:
                logger.debug("Store changed, dropping cached whole-store listing")
                self._whole_store = None
            if result.error is not None:
                error = result.error
                self._abort(error)
                raise error

        self.state = EngineState.REPORTING
        run_result = self.reporter.build_result()
        logger.debug(
            f"Run complete in {time.time() - start_time:.2f}s: {run_result.totals()}"
        )
        self.state = EngineState.DONE
        return run_result

    def _abort(self, error: Exception) -> None:
        self.state = EngineState.ABORTED
        logger.debug(f"Run aborted: {error}")
        if isinstance(error, S3SyncError):
            error.result = self.reporter.build_result(error)

    def _execute_batch(self, batch: Batch) -> BatchResult:
        """Execute one batch, listing the store as needed."""
        start_time = time.time()

        if batch.kind == ActionKind.UPLOAD:
            result = self.executor.run_upload(batch, self._upload_index(batch))
        elif batch.kind == ActionKind.DOWNLOAD:
            rule = batch.rule
            records = self.lister.list(normalize_prefix(rule.dest))
            result = self.executor.run_download(rule, records)
        elif batch.kind == ActionKind.COPY:
            rule = batch.rule
            records = self.lister.list(normalize_prefix(rule.src[0]))
            dest_index = None
            if self.options.resolve(rule).differential or not self.options.overwrite:
                dest_index = self.lister.list(normalize_prefix(rule.dest))
            result = self.executor.run_copy(rule, records, dest_index)
        else:
            rule = batch.rule
            records = self.lister.list(normalize_prefix(rule.dest))
            result = self.executor.run_delete(rule, records, self._local_keys(rule))

        logger.debug(
            f"{batch.kind.value} batch finished in {time.time() - start_time:.2f}s"
        )
        return result

    def _upload_index(self, batch: Batch) -> dict[str, RemoteObjectRecord]:
        """Listing needed by the differential and overwrite checks of a batch."""
        if not batch.items:
            return {}
        if not batch.has_differential_items and self.options.overwrite:
            return {}

        prefixes = prefixes_for(
            [item.key for item in batch.items],
            whole_store=not self.options.overwrite,
        )
        if prefixes == [""]:
            if self._whole_store is None:
                self._whole_store = self.lister.list("")
            else:
                logger.debug("Reusing cached whole-store listing")
            return self._whole_store
        return self.lister.list_many(prefixes)

    def _local_keys(self, rule: Rule) -> Optional[set[str]]:
        """Relative paths below a differential delete's ``cwd``."""
        if not self.options.resolve(rule).differential:
            return None
        return self.scanner.relative_paths(Path(rule.cwd), strict=True)
