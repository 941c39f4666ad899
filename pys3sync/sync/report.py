"""Collection of batch results into a run result."""

import logging
import threading
from typing import Callable, Optional

from ..models import BatchResult, RunResult

logger = logging.getLogger(__name__)


class ReportCollector:
    """Accumulates batch results in execution order.

    An optional sink is called with every batch result as it arrives, for
    example to render it on the console.
    """

    def __init__(self, sink: Optional[Callable[[BatchResult], None]] = None):
        self.sink = sink
        self._results: list[BatchResult] = []
        self._lock = threading.Lock()

    def add(self, result: BatchResult) -> None:
        with self._lock:
            self._results.append(result)
        logger.debug(
            "%s %s: %d/%d transferred, %d skipped, %d excluded, %d failed",
            result.kind.value,
            result.target,
            result.transferred,
            result.total,
            result.skipped,
            result.excluded,
            result.failed,
        )
        if self.sink is not None:
            self.sink(result)

    @property
    def results(self) -> list[BatchResult]:
        with self._lock:
            return list(self._results)

    def changed_keys(self) -> list[str]:
        """Destination keys written by upload and copy batches, in order."""
        keys: list[str] = []
        for result in self.results:
            keys.extend(result.changed_keys)
        return keys

    def totals(self) -> dict[str, int]:
        return self.build_result().totals()

    def build_result(self, error: Optional[Exception] = None) -> RunResult:
        return RunResult(
            batches=self.results,
            changed_keys=self.changed_keys(),
            error=error,
        )
