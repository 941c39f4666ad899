"""pys3sync - declarative file transfers between a local tree and S3."""

from .exceptions import (
    ConflictError,
    ListingError,
    LocalFileError,
    PartialBatchFailure,
    S3APIError,
    S3AuthenticationError,
    S3CopyError,
    S3DeleteError,
    S3DownloadError,
    S3NetworkError,
    S3NotFoundError,
    S3PermissionError,
    S3RateLimitError,
    S3SyncConfigError,
    S3SyncError,
    S3UploadError,
    TransferError,
    ValidationError,
)
from .models import ActionKind, BatchResult, Rule, RunResult
from .store import LocalBucketClient, S3Client, create_client
from .sync import TaskOptions, TransferEngine, load_task_file

__all__ = [
    "ActionKind",
    "BatchResult",
    "Rule",
    "RunResult",
    "TaskOptions",
    "TransferEngine",
    "load_task_file",
    "LocalBucketClient",
    "S3Client",
    "create_client",
    "S3SyncError",
    "S3SyncConfigError",
    "ValidationError",
    "ListingError",
    "TransferError",
    "LocalFileError",
    "S3UploadError",
    "S3DownloadError",
    "S3CopyError",
    "S3DeleteError",
    "ConflictError",
    "PartialBatchFailure",
    "S3APIError",
    "S3AuthenticationError",
    "S3PermissionError",
    "S3NotFoundError",
    "S3RateLimitError",
    "S3NetworkError",
]
