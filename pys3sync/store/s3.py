"""S3 client built on boto3."""

from __future__ import annotations

import logging
from typing import Any, BinaryIO

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..config import config
from ..exceptions import (
    S3APIError,
    S3AuthenticationError,
    S3NetworkError,
    S3NotFoundError,
    S3PermissionError,
    S3RateLimitError,
    S3SyncConfigError,
)
from ..models import RemoteObjectRecord
from ..utils import normalize_etag, to_timestamp
from .base import DeleteError, DeleteResult, ListPage

logger = logging.getLogger(__name__)

_AUTH_CODES = {"InvalidAccessKeyId", "SignatureDoesNotMatch", "ExpiredToken"}
_NOT_FOUND_CODES = {"404", "NoSuchKey", "NoSuchBucket", "NotFound"}
_THROTTLE_CODES = {"SlowDown", "Throttling", "RequestLimitExceeded", "503"}


class S3Client:
    """Client for an S3-compatible bucket (AWS S3, MinIO, SeaweedFS)."""

    def __init__(
        self,
        bucket: str | None = None,
        region: str | None = None,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        session_token: str | None = None,
        max_attempts: int = 3,
        connect_timeout: float = 10.0,
        read_timeout: float = 60.0,
    ):
        """Initialize S3 client.

        Args:
            bucket: Bucket name (uses config if not provided)
            region: Optional region (uses config if not provided)
            endpoint_url: Optional endpoint for S3-compatible stores
            access_key_id: Optional access key (falls back to config, then
                to the boto3 credential chain)
            secret_access_key: Optional secret key
            session_token: Optional session token
            max_attempts: Transport-level attempts per request (default: 3)
            connect_timeout: Connect timeout in seconds (default: 10.0)
            read_timeout: Read timeout in seconds (default: 60.0)
        """
        self.bucket = bucket or config.bucket
        self.region = region or config.region
        self.endpoint_url = endpoint_url or config.endpoint_url
        self.access_key_id = access_key_id or config.access_key_id
        self.secret_access_key = secret_access_key or config.secret_access_key
        self.session_token = session_token or config.session_token
        self.max_attempts = max_attempts
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout

        if not self.bucket:
            raise S3SyncConfigError(
                "Bucket not configured. Please set PYS3SYNC_BUCKET or pass --bucket."
            )

        self._client: Any = None

    def _get_client(self) -> Any:
        """Get or create the boto3 client."""
        if self._client is None:
            kwargs: dict[str, Any] = {
                "config": BotoConfig(
                    signature_version="s3v4",
                    connect_timeout=self.connect_timeout,
                    read_timeout=self.read_timeout,
                    retries={"max_attempts": self.max_attempts, "mode": "standard"},
                ),
            }
            if self.region:
                kwargs["region_name"] = self.region
            if self.endpoint_url:
                kwargs["endpoint_url"] = self.endpoint_url
            if self.access_key_id and self.secret_access_key:
                kwargs["aws_access_key_id"] = self.access_key_id
                kwargs["aws_secret_access_key"] = self.secret_access_key
            if self.session_token:
                kwargs["aws_session_token"] = self.session_token
            logger.debug(
                "Creating S3 client for bucket %s (region=%s, endpoint=%s)",
                self.bucket,
                self.region,
                self.endpoint_url,
            )
            self._client = boto3.client("s3", **kwargs)
        return self._client

    def _map_client_error(self, e: ClientError, operation: str) -> S3APIError:
        """Translate a botocore ClientError into a pys3sync exception."""
        error = e.response.get("Error", {})
        code = str(error.get("Code", ""))
        message = error.get("Message") or str(e)
        status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

        if code in _AUTH_CODES or status == 401:
            return S3AuthenticationError(f"{operation}: invalid credentials ({code})", code)
        if code == "AccessDenied" or status == 403:
            return S3PermissionError(f"{operation}: access denied", code)
        if code in _NOT_FOUND_CODES or status == 404:
            return S3NotFoundError(f"{operation}: not found ({code})", code)
        if code in _THROTTLE_CODES or status == 429:
            return S3RateLimitError(f"{operation}: rate limit exceeded", code)
        return S3APIError(f"{operation} failed: {code}: {message}", code)

    def _call(self, operation: str, **kwargs: Any) -> Any:
        """Invoke a boto3 operation on the configured bucket.

        Raises:
            S3APIError: If the store rejects the request
            S3NetworkError: If the store cannot be reached
        """
        client = self._get_client()
        try:
            return getattr(client, operation)(Bucket=self.bucket, **kwargs)
        except ClientError as e:
            raise self._map_client_error(e, operation) from e
        except BotoCoreError as e:
            raise S3NetworkError(f"{operation}: {e}") from e

    def list_objects(
        self, prefix: str, marker: str | None = None, max_keys: int = 1000
    ) -> ListPage:
        kwargs: dict[str, Any] = {"Prefix": prefix, "MaxKeys": max_keys}
        if marker:
            kwargs["ContinuationToken"] = marker
        response = self._call("list_objects_v2", **kwargs)

        records = [
            RemoteObjectRecord(
                key=obj["Key"],
                fingerprint=normalize_etag(obj.get("ETag")),
                last_modified=to_timestamp(obj.get("LastModified")),
                size=obj.get("Size", 0),
            )
            for obj in response.get("Contents", [])
        ]
        return ListPage(
            records=records,
            truncated=bool(response.get("IsTruncated")),
            next_marker=response.get("NextContinuationToken"),
        )

    def get_object(self, key: str) -> BinaryIO:
        response = self._call("get_object", Key=key)
        return response["Body"]

    def put_object(
        self, key: str, body: bytes | BinaryIO, params: dict[str, Any]
    ) -> None:
        self._call("put_object", Key=key, Body=body, **params)

    def delete_objects(self, keys: list[str]) -> DeleteResult:
        response = self._call(
            "delete_objects",
            Delete={"Objects": [{"Key": key} for key in keys], "Quiet": False},
        )
        return DeleteResult(
            deleted=[d["Key"] for d in response.get("Deleted", [])],
            errors=[
                DeleteError(
                    key=err.get("Key", ""),
                    code=err.get("Code", ""),
                    message=err.get("Message", ""),
                )
                for err in response.get("Errors", [])
            ],
        )

    def copy_object(
        self, source_key: str, dest_key: str, params: dict[str, Any]
    ) -> None:
        extra = dict(params)
        if "Metadata" in extra or "ContentType" in extra:
            extra.setdefault("MetadataDirective", "REPLACE")
        self._call(
            "copy_object",
            Key=dest_key,
            CopySource={"Bucket": self.bucket, "Key": source_key},
            **extra,
        )

    def head_object(self, key: str) -> RemoteObjectRecord | None:
        try:
            response = self._call("head_object", Key=key)
        except S3NotFoundError:
            return None
        return RemoteObjectRecord(
            key=key,
            fingerprint=normalize_etag(response.get("ETag")),
            last_modified=to_timestamp(response.get("LastModified")),
            size=response.get("ContentLength", 0),
        )

    def describe(self, key: str = "") -> str:
        return f"s3://{self.bucket}/{key}"
