"""Per-object sequencing of restore and storage-class transition calls."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable, Iterable, Sequence

from s3_tier_mcp.domain.models import (
    ObjectRecord,
    OutcomeAction,
    OutcomeRecord,
    StorageClass,
    TargetSet,
    failed,
    skipped,
    success,
)
from s3_tier_mcp.errors import BackendError, NoTargetError, ValidationError
from s3_tier_mcp.execution.s3_client import DEFAULT_RESTORE_DAYS, StorageClient
from s3_tier_mcp.ledger.status import StatusLedger

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8
_CANCELLED_REASON = "cancelled before this step started"


class CancellationToken:
    """Cooperative cancellation shared between the caller and a running batch.

    In-flight storage calls finish; no new per-object step starts once set.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class TransitionOrchestrator:
    def __init__(
        self,
        ledger: StatusLedger,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        restore_days: int = DEFAULT_RESTORE_DAYS,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._ledger = ledger
        self._max_concurrency = max_concurrency
        self._restore_days = restore_days

    @property
    def ledger(self) -> StatusLedger:
        return self._ledger

    async def execute(
        self,
        targets: TargetSet,
        destination_class: StorageClass | str,
        restore_first: bool,
        client: StorageClient,
        *,
        cancel: CancellationToken | None = None,
        restore_days: int | None = None,
    ) -> tuple[OutcomeRecord, ...]:
        """Move every target to ``destination_class``.

        Each object runs restore (optional) then copy-in-place independently.
        The restore is only requested, never awaited to completion. Returns one
        outcome per target, in target order.
        """
        destination = StorageClass.parse(destination_class)
        days = self._validate_days(restore_days)
        self._require_targets(targets)
        cancel = cancel or CancellationToken()

        logger.info(
            "Transitioning %d object(s) to %s (restore_first=%s)",
            len(targets),
            destination.value,
            restore_first,
        )

        async def run(record: ObjectRecord) -> OutcomeRecord:
            if cancel.cancelled:
                return skipped(record, OutcomeAction.TRANSITION, _CANCELLED_REASON, destination)
            if restore_first:
                reason = await self._invoke(
                    client.request_restore, record.bucket, record.key, days
                )
                if reason is not None:
                    return failed(record, OutcomeAction.RESTORE, reason, destination)
                self._ledger.note(f"Restore requested for {record.key} ({days} days)")
                if cancel.cancelled:
                    return skipped(
                        record, OutcomeAction.TRANSITION, _CANCELLED_REASON, destination
                    )
            reason = await self._invoke(
                client.copy_object_with_class_override, record.bucket, record.key, destination
            )
            if reason is not None:
                return failed(record, OutcomeAction.TRANSITION, reason, destination)
            return success(record, OutcomeAction.TRANSITION, destination)

        return await self._run_batch(targets, run)

    async def restore(
        self,
        targets: TargetSet,
        client: StorageClient,
        *,
        days: int | None = None,
        cancel: CancellationToken | None = None,
    ) -> tuple[OutcomeRecord, ...]:
        """Request a temporary restore for every target."""
        days = self._validate_days(days)
        self._require_targets(targets)
        cancel = cancel or CancellationToken()
        logger.info("Requesting %d-day restore for %d object(s)", days, len(targets))

        async def run(record: ObjectRecord) -> OutcomeRecord:
            if cancel.cancelled:
                return skipped(record, OutcomeAction.RESTORE, _CANCELLED_REASON)
            reason = await self._invoke(client.request_restore, record.bucket, record.key, days)
            if reason is not None:
                return failed(record, OutcomeAction.RESTORE, reason)
            return success(record, OutcomeAction.RESTORE)

        return await self._run_batch(targets, run)

    async def refresh(
        self,
        targets: TargetSet,
        client: StorageClient,
        *,
        cancel: CancellationToken | None = None,
    ) -> tuple[OutcomeRecord, ...]:
        """Re-read metadata for every target and store it in the ledger."""
        self._require_targets(targets)
        cancel = cancel or CancellationToken()

        async def run(record: ObjectRecord) -> OutcomeRecord:
            if cancel.cancelled:
                return skipped(record, OutcomeAction.REFRESH, _CANCELLED_REASON)
            try:
                refreshed = await asyncio.to_thread(client.head_object, record.bucket, record.key)
            except BackendError as exc:
                return failed(record, OutcomeAction.REFRESH, exc.reason)
            except Exception as exc:
                logger.exception("Unexpected error refreshing %s/%s", record.bucket, record.key)
                return failed(record, OutcomeAction.REFRESH, str(exc) or type(exc).__name__)
            self._ledger.observe(refreshed)
            return success(record, OutcomeAction.REFRESH)

        return await self._run_batch(targets, run)

    async def _run_batch(
        self,
        targets: TargetSet,
        run: Callable[[ObjectRecord], Awaitable[OutcomeRecord]],
    ) -> tuple[OutcomeRecord, ...]:
        for record in targets:
            if self._ledger.latest(record.bucket, record.key) is None:
                self._ledger.observe(record)

        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def bounded(record: ObjectRecord) -> OutcomeRecord:
            async with semaphore:
                return await run(record)

        # gather preserves argument order, so outcomes follow the target set
        # regardless of completion order.
        outcomes = tuple(await asyncio.gather(*(bounded(record) for record in targets)))
        self._ledger.record_all(outcomes)
        failures = sum(1 for outcome in outcomes if outcome.failed)
        logger.info("Batch finished: %d outcome(s), %d failed", len(outcomes), failures)
        return outcomes

    @staticmethod
    async def _invoke(func: Callable[..., object], *args: object) -> str | None:
        """Run a blocking storage call; return the failure reason or ``None``."""
        name = getattr(func, "__name__", "storage call")
        try:
            await asyncio.to_thread(func, *args)
        except BackendError as exc:
            logger.warning("%s failed for %s: %s", name, args[:2], exc.reason)
            return exc.reason
        except Exception as exc:
            logger.exception("Unexpected error in %s for %s", name, args[:2])
            return str(exc) or type(exc).__name__
        return None

    def _validate_days(self, days: int | None) -> int:
        if days is None:
            return self._restore_days
        if isinstance(days, bool) or not isinstance(days, int) or days < 1:
            raise ValidationError(f"Restore days must be a positive integer, got {days!r}")
        return days

    @staticmethod
    def _require_targets(targets: Sequence[ObjectRecord]) -> None:
        if not targets:
            raise NoTargetError("Target set is empty")


def failed_targets(targets: TargetSet, outcomes: Iterable[OutcomeRecord]) -> TargetSet:
    """Narrow ``targets`` to the objects whose outcome failed, for an explicit retry."""
    failed_refs = {(outcome.bucket, outcome.key) for outcome in outcomes if outcome.failed}
    return tuple(record for record in targets if record.ref in failed_refs)
