"""Transfer engine for pys3sync - planned, concurrent, differential transfers."""

from .differ import CompareDate, ContentDiffer
from .engine import EngineState, TransferEngine
from .executor import TransferExecutor, slice_keys
from .filters import ExcludeFilter
from .lister import RemoteLister, minimal_prefixes, prefixes_for
from .operations import TransferOperations
from .options import RuleSettings, TaskOptions
from .planner import TaskPlanner
from .progress import (
    TransferProgressEvent,
    TransferProgressInfo,
    TransferProgressTracker,
)
from .report import ReportCollector
from .rules import expand_sources, load_task_file, rules_from_dicts
from .scanner import DirectoryScanner, LocalFile

__all__ = [
    "TransferEngine",
    "EngineState",
    "TaskPlanner",
    "TaskOptions",
    "RuleSettings",
    "TransferExecutor",
    "TransferOperations",
    "RemoteLister",
    "ContentDiffer",
    "CompareDate",
    "ExcludeFilter",
    "ReportCollector",
    "DirectoryScanner",
    "LocalFile",
    "TransferProgressEvent",
    "TransferProgressInfo",
    "TransferProgressTracker",
    "load_task_file",
    "rules_from_dicts",
    "expand_sources",
    "minimal_prefixes",
    "prefixes_for",
    "slice_keys",
]
