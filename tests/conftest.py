from __future__ import annotations

import asyncio
import contextlib
import threading
from datetime import datetime, timezone

import pytest

from s3_tier_mcp.domain.models import BucketInfo, ObjectRecord, StorageClass
from s3_tier_mcp.errors import BackendError
from s3_tier_mcp.ledger.status import StatusLedger


@pytest.fixture(autouse=True)
def _close_default_event_loop() -> None:
    yield
    policy = asyncio.get_event_loop_policy()
    local = getattr(policy, "_local", None)
    loop = getattr(local, "_loop", None) if local is not None else None
    if loop is not None and not loop.is_running() and not loop.is_closed():
        with contextlib.suppress(Exception):
            loop.close()
    if loop is not None:
        with contextlib.suppress(Exception):
            policy.set_event_loop(None)


class FakeStorageClient:
    """In-memory object store recording every call made against it."""

    def __init__(self, objects: dict[str, dict[str, StorageClass]] | None = None) -> None:
        self.objects = {bucket: dict(keys) for bucket, keys in (objects or {}).items()}
        self.calls: list[tuple[str, str, str]] = []
        self.fail: dict[tuple[str, str], str] = {}
        self._lock = threading.Lock()

    def _log(self, op: str, bucket: str, key: str) -> None:
        with self._lock:
            self.calls.append((op, bucket, key))

    def _check(self, op: str, bucket: str, key: str) -> None:
        reason = self.fail.get((op, key))
        if reason is not None:
            raise BackendError(reason, "Fake")
        if key not in self.objects.get(bucket, {}):
            raise BackendError("NoSuchKey: object was not found", "NoSuchKey")

    def list_buckets(self) -> list[BucketInfo]:
        return [BucketInfo(name=name, region="us-east-1") for name in sorted(self.objects)]

    def list_objects(self, bucket: str, prefix: str | None = None) -> list[ObjectRecord]:
        if bucket not in self.objects:
            raise BackendError("NoSuchBucket: bucket does not exist", "NoSuchBucket")
        return [
            ObjectRecord(bucket=bucket, key=key, size_bytes=10, storage_class=storage_class)
            for key, storage_class in sorted(self.objects[bucket].items())
            if prefix is None or key.startswith(prefix)
        ]

    def head_object(self, bucket: str, key: str) -> ObjectRecord:
        self._log("head", bucket, key)
        self._check("head", bucket, key)
        return ObjectRecord(
            bucket=bucket,
            key=key,
            size_bytes=10,
            storage_class=self.objects[bucket][key],
            last_modified=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )

    def copy_object_with_class_override(
        self, bucket: str, key: str, destination_class: StorageClass
    ) -> None:
        self._log("copy", bucket, key)
        self._check("copy", bucket, key)
        self.objects[bucket][key] = destination_class

    def request_restore(self, bucket: str, key: str, days: int = 7) -> None:
        self._log("restore", bucket, key)
        self._check("restore", bucket, key)


@pytest.fixture
def fake_client() -> FakeStorageClient:
    return FakeStorageClient(
        {
            "data": {
                "logs/a.txt": StorageClass.STANDARD,
                "logs/b.txt": StorageClass.STANDARD,
                "img/c.png": StorageClass.STANDARD,
            },
        }
    )


@pytest.fixture
def ledger() -> StatusLedger:
    return StatusLedger()


def make_record(key: str, bucket: str = "data", **kwargs: object) -> ObjectRecord:
    return ObjectRecord(bucket=bucket, key=key, **kwargs)
