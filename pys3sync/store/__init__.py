"""Object store clients."""

from typing import Optional

from ..exceptions import S3SyncConfigError
from .base import DeleteError, DeleteResult, ListPage, ObjectStoreClient
from .local import LocalBucketClient
from .s3 import S3Client


def create_client(
    bucket: Optional[str] = None,
    mock: bool = False,
    region: Optional[str] = None,
    endpoint_url: Optional[str] = None,
    create: bool = True,
) -> ObjectStoreClient:
    """Create the client for a bucket.

    Args:
        bucket: Bucket name, or the bucket directory when ``mock`` is set
        mock: Use a local directory as the bucket
        region: Optional region for S3
        endpoint_url: Optional endpoint for S3-compatible stores
        create: Create a missing bucket directory in mock mode

    Returns:
        An object store client
    """
    if mock:
        if not bucket:
            raise S3SyncConfigError("A bucket directory is required in mock mode")
        return LocalBucketClient(bucket, create=create)
    return S3Client(bucket=bucket, region=region, endpoint_url=endpoint_url)


__all__ = [
    "DeleteError",
    "DeleteResult",
    "ListPage",
    "LocalBucketClient",
    "ObjectStoreClient",
    "S3Client",
    "create_client",
]
