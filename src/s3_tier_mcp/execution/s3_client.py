"""Storage client: the boto3 boundary for listing, inspecting and moving objects."""

from __future__ import annotations

import logging
import re
from typing import Any, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from s3_tier_mcp.config import Settings, load_settings
from s3_tier_mcp.domain.models import (
    NO_RESTORE,
    BucketInfo,
    ObjectRecord,
    RestoreState,
    RestoreStatus,
    StorageClass,
)
from s3_tier_mcp.errors import BackendError, ValidationError
from s3_tier_mcp.utils.time import parse_http_date, utc_now

logger = logging.getLogger(__name__)

DEFAULT_RESTORE_DAYS = 7

_EXPIRY_PATTERN = re.compile(r'expiry-date="([^"]+)"', re.IGNORECASE)

_FRIENDLY_ERRORS = {
    "NoSuchKey": "object was not found (mask may target stale keys or bucket differs)",
    "InvalidObjectState": "object is already being restored or not eligible for this operation",
}


class StorageClient(Protocol):
    """Operations the engine needs from an object store."""

    def list_buckets(self) -> list[BucketInfo]: ...

    def list_objects(self, bucket: str, prefix: str | None = None) -> list[ObjectRecord]: ...

    def head_object(self, bucket: str, key: str) -> ObjectRecord: ...

    def copy_object_with_class_override(
        self, bucket: str, key: str, destination_class: StorageClass
    ) -> None: ...

    def request_restore(self, bucket: str, key: str, days: int = DEFAULT_RESTORE_DAYS) -> None: ...


def create_s3_client(settings: Settings | None = None) -> Any:
    settings = settings or load_settings()
    session = boto3.Session(
        profile_name=settings.aws.default_profile,
        region_name=settings.aws.default_region,
    )
    config = Config(
        read_timeout=settings.execution.sdk_timeout_seconds,
        connect_timeout=settings.execution.sdk_timeout_seconds,
        retries={"max_attempts": settings.execution.max_retries + 1, "mode": "standard"},
        request_checksum_calculation="when_required",
        response_checksum_validation="when_required",
    )
    return session.client("s3", config=config)


def describe_backend_error(exc: Exception) -> tuple[str, str | None]:
    """Turn a botocore failure into an operator-facing reason and error code."""
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code") or "ServiceError"
        message = error.get("Message") or "no message provided"
        friendly = _FRIENDLY_ERRORS.get(code)
        return f"{code}: {friendly or message}", code
    if isinstance(exc, (ReadTimeoutError, ConnectTimeoutError)):
        return "request timed out; please retry", "Timeout"
    if isinstance(exc, EndpointConnectionError):
        return f"network/dispatch failure: {exc}", "DispatchFailure"
    return str(exc) or type(exc).__name__, None


def parse_restore_status(raw: str | None) -> RestoreStatus:
    """Parse the ``x-amz-restore`` header value returned by HeadObject."""
    if raw is None:
        return NO_RESTORE
    value = raw.lower()
    if 'ongoing-request="true"' in value:
        return RestoreStatus(RestoreState.IN_PROGRESS)
    expiry_match = _EXPIRY_PATTERN.search(raw)
    if expiry_match:
        expiry = parse_http_date(expiry_match.group(1))
        return RestoreStatus(RestoreState.AVAILABLE, expiry)
    if 'ongoing-request="false"' in value:
        return RestoreStatus(RestoreState.AVAILABLE)
    return RestoreStatus(RestoreState.EXPIRED)


class S3StorageClient:
    def __init__(self, client: Any = None, settings: Settings | None = None) -> None:
        self._settings = settings or load_settings()
        self._client = client if client is not None else create_s3_client(self._settings)

    def list_buckets(self) -> list[BucketInfo]:
        response = self._call("list_buckets")
        buckets: list[BucketInfo] = []
        for bucket in response.get("Buckets", []):
            name = bucket.get("Name")
            if not name:
                continue
            buckets.append(
                BucketInfo(
                    name=name,
                    region=self._bucket_region(name),
                    creation_date=bucket.get("CreationDate"),
                )
            )
        buckets.sort(key=lambda item: item.name)
        return buckets

    def list_objects(self, bucket: str, prefix: str | None = None) -> list[ObjectRecord]:
        paginator = self._client.get_paginator("list_objects_v2")
        kwargs: dict[str, object] = {"Bucket": bucket}
        if prefix:
            kwargs["Prefix"] = prefix
        records: list[ObjectRecord] = []
        try:
            for page in paginator.paginate(**kwargs):
                for item in page.get("Contents", []):
                    key = item.get("Key")
                    if not key:
                        continue
                    records.append(
                        ObjectRecord(
                            bucket=bucket,
                            key=key,
                            size_bytes=int(item.get("Size") or 0),
                            storage_class=self._storage_class(item.get("StorageClass")),
                            last_modified=item.get("LastModified"),
                        )
                    )
        except (ClientError, BotoCoreError) as exc:
            reason, code = describe_backend_error(exc)
            raise BackendError(reason, code) from exc
        records.sort(key=lambda record: record.key)
        logger.debug("Listed %d objects in bucket %s", len(records), bucket)
        return records

    def head_object(self, bucket: str, key: str) -> ObjectRecord:
        head = self._call("head_object", Bucket=bucket, Key=key)
        return ObjectRecord(
            bucket=bucket,
            key=key,
            size_bytes=int(head.get("ContentLength") or 0),
            storage_class=self._storage_class(head.get("StorageClass")),
            restore_status=parse_restore_status(head.get("Restore")),
            last_modified=head.get("LastModified"),
            last_refreshed=utc_now(),
        )

    def copy_object_with_class_override(
        self, bucket: str, key: str, destination_class: StorageClass
    ) -> None:
        self._call(
            "copy_object",
            Bucket=bucket,
            Key=key,
            CopySource={"Bucket": bucket, "Key": key},
            StorageClass=destination_class.value,
            MetadataDirective="COPY",
        )

    def request_restore(self, bucket: str, key: str, days: int = DEFAULT_RESTORE_DAYS) -> None:
        self._call(
            "restore_object",
            Bucket=bucket,
            Key=key,
            RestoreRequest={
                "Days": days,
                "GlacierJobParameters": {"Tier": self._settings.execution.restore_tier},
            },
        )

    def _bucket_region(self, bucket: str) -> str | None:
        try:
            response = self._client.get_bucket_location(Bucket=bucket)
        except (ClientError, BotoCoreError) as exc:
            logger.debug("Could not resolve region for bucket %s: %s", bucket, exc)
            return None
        return response.get("LocationConstraint") or None

    @staticmethod
    def _storage_class(value: str | None) -> StorageClass:
        try:
            return StorageClass.from_api(value)
        except ValidationError:
            # Classes such as OUTPOSTS or EXPRESS_ONEZONE are outside the tiering set.
            logger.warning("Unrecognized storage class %r reported by S3", value)
            return StorageClass.STANDARD

    def _call(self, method_name: str, **kwargs: object) -> dict[str, Any]:
        method = getattr(self._client, method_name)
        try:
            response = method(**kwargs)
        except (ClientError, BotoCoreError) as exc:
            reason, code = describe_backend_error(exc)
            raise BackendError(reason, code) from exc
        return response if isinstance(response, dict) else {}
