"""Domain objects for buckets, objects and per-object outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum

from s3_tier_mcp.errors import ValidationError
from s3_tier_mcp.utils.time import utc_now


class StorageClass(str, Enum):
    STANDARD = "STANDARD"
    REDUCED_REDUNDANCY = "REDUCED_REDUNDANCY"
    STANDARD_IA = "STANDARD_IA"
    ONEZONE_IA = "ONEZONE_IA"
    INTELLIGENT_TIERING = "INTELLIGENT_TIERING"
    GLACIER_IR = "GLACIER_IR"
    GLACIER = "GLACIER"
    DEEP_ARCHIVE = "DEEP_ARCHIVE"

    @classmethod
    def parse(cls, value: object) -> "StorageClass":
        """Parse a storage class name, rejecting anything S3 does not offer."""
        if isinstance(value, StorageClass):
            return value
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Storage class must be a non-empty string, got {value!r}")
        try:
            return cls(value.strip().upper())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValidationError(
                f"Unrecognized storage class '{value}'. Expected one of: {allowed}"
            ) from None

    @classmethod
    def from_api(cls, value: str | None) -> "StorageClass":
        # S3 omits StorageClass for STANDARD objects in HeadObject responses.
        if not value:
            return cls.STANDARD
        return cls.parse(value)

    @classmethod
    def selectable(cls) -> tuple["StorageClass", ...]:
        return tuple(member for member in cls if member is not cls.REDUCED_REDUNDANCY)

    @property
    def is_archive(self) -> bool:
        return self in (StorageClass.GLACIER, StorageClass.DEEP_ARCHIVE)


class RestoreState(str, Enum):
    NONE = "none"
    IN_PROGRESS = "in-progress"
    AVAILABLE = "available"
    EXPIRED = "expired"


@dataclass(frozen=True)
class RestoreStatus:
    state: RestoreState = RestoreState.NONE
    expiry: datetime | None = None

    def describe(self) -> str:
        if self.state is RestoreState.AVAILABLE and self.expiry is not None:
            return f"available (ready until {self.expiry.isoformat()})"
        return self.state.value


NO_RESTORE = RestoreStatus()


@dataclass(frozen=True)
class BucketInfo:
    name: str
    region: str | None = None
    creation_date: datetime | None = None


@dataclass(frozen=True)
class ObjectRecord:
    bucket: str
    key: str
    size_bytes: int = 0
    storage_class: StorageClass = StorageClass.STANDARD
    restore_status: RestoreStatus = NO_RESTORE
    last_modified: datetime | None = None
    last_refreshed: datetime = field(default_factory=utc_now)

    @property
    def ref(self) -> tuple[str, str]:
        return self.bucket, self.key

    def with_storage_class(self, storage_class: StorageClass) -> "ObjectRecord":
        return replace(self, storage_class=storage_class, last_refreshed=utc_now())

    def with_restore_status(self, status: RestoreStatus) -> "ObjectRecord":
        return replace(self, restore_status=status, last_refreshed=utc_now())


TargetSet = tuple[ObjectRecord, ...]


class OutcomeAction(str, Enum):
    RESTORE = "restore"
    TRANSITION = "transition"
    REFRESH = "refresh"


class OutcomeResult(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class OutcomeRecord:
    bucket: str
    key: str
    action: OutcomeAction
    result: OutcomeResult
    reason: str | None = None
    destination_class: StorageClass | None = None
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def succeeded(self) -> bool:
        return self.result is OutcomeResult.SUCCESS

    @property
    def failed(self) -> bool:
        return self.result is OutcomeResult.FAILED

    def to_dict(self) -> dict[str, object]:
        return {
            "bucket": self.bucket,
            "key": self.key,
            "action": self.action.value,
            "result": self.result.value,
            "reason": self.reason,
            "destinationClass": self.destination_class.value if self.destination_class else None,
            "timestamp": self.timestamp.isoformat(),
        }


def success(
    record: ObjectRecord,
    action: OutcomeAction,
    destination_class: StorageClass | None = None,
) -> OutcomeRecord:
    return OutcomeRecord(
        bucket=record.bucket,
        key=record.key,
        action=action,
        result=OutcomeResult.SUCCESS,
        destination_class=destination_class,
    )


def failed(
    record: ObjectRecord,
    action: OutcomeAction,
    reason: str,
    destination_class: StorageClass | None = None,
) -> OutcomeRecord:
    return OutcomeRecord(
        bucket=record.bucket,
        key=record.key,
        action=action,
        result=OutcomeResult.FAILED,
        reason=reason,
        destination_class=destination_class,
    )


def skipped(
    record: ObjectRecord,
    action: OutcomeAction,
    reason: str,
    destination_class: StorageClass | None = None,
) -> OutcomeRecord:
    return OutcomeRecord(
        bucket=record.bucket,
        key=record.key,
        action=action,
        result=OutcomeResult.SKIPPED,
        reason=reason,
        destination_class=destination_class,
    )
