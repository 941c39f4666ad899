"""Exceptions raised by pys3sync."""

from typing import Optional


class S3SyncError(Exception):
    """Base exception for all pys3sync errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message
        # Partial RunResult attached by the engine when a run aborts
        self.result = None


class S3SyncConfigError(S3SyncError):
    """Raised when configuration or credentials are missing or invalid."""


class ValidationError(S3SyncError):
    """Raised when a rule or the task options are malformed.

    Validation errors are detected while planning and stop the run before
    any remote call is made.
    """


class ListingError(S3SyncError):
    """Raised when listing a remote prefix fails."""

    def __init__(self, message: str, prefix: str = ""):
        super().__init__(message)
        self.prefix = prefix


class TransferError(S3SyncError):
    """Raised when a local or remote I/O operation fails for one item."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message)
        self.key = key


class LocalFileError(TransferError):
    """Raised when a local file cannot be read, stat'ed or written."""


class S3UploadError(TransferError):
    """Raised when putting an object fails."""


class S3DownloadError(TransferError):
    """Raised when getting an object fails."""


class S3CopyError(TransferError):
    """Raised when copying an object fails."""


class S3DeleteError(TransferError):
    """Raised when a delete request fails."""


class ConflictError(S3SyncError):
    """Raised when overwrite is disabled and the destination already exists."""

    def __init__(self, key: str):
        super().__init__(f"Destination already exists and overwrite is disabled: {key}")
        self.key = key


class PartialBatchFailure(S3SyncError):
    """Raised when some delete slices failed while others succeeded.

    Carries the keys that were deleted and the keys that failed so the
    caller can still account for the whole batch.
    """

    def __init__(
        self,
        message: str,
        deleted: Optional[list[str]] = None,
        failed: Optional[list[str]] = None,
        errors: Optional[list[Exception]] = None,
    ):
        super().__init__(message)
        self.deleted = deleted or []
        self.failed = failed or []
        self.errors = errors or []


class S3APIError(S3SyncError):
    """Raised when the object store rejects a request."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class S3AuthenticationError(S3APIError):
    """Raised when credentials are rejected."""


class S3PermissionError(S3APIError):
    """Raised when access to a bucket or key is denied."""


class S3NotFoundError(S3APIError):
    """Raised when a bucket or key does not exist."""


class S3RateLimitError(S3APIError):
    """Raised when the store asks the client to slow down."""


class S3NetworkError(S3APIError):
    """Raised when the store cannot be reached."""
