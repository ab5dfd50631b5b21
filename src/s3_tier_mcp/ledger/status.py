"""Status ledger: append-only outcomes plus the latest-known object state."""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from collections.abc import Iterable, Iterator
from pathlib import Path

from s3_tier_mcp.domain.models import (
    ObjectRecord,
    OutcomeAction,
    OutcomeRecord,
    OutcomeResult,
    RestoreState,
    RestoreStatus,
)
from s3_tier_mcp.utils.serialization import json_default

logger = logging.getLogger(__name__)

DEFAULT_STATUS_LIMIT = 20

ObjectRef = tuple[str, str]


class OutcomeHistory:
    """Restartable view over a snapshot of outcomes in append order."""

    def __init__(self, outcomes: tuple[OutcomeRecord, ...]) -> None:
        self._outcomes = outcomes

    def __iter__(self) -> Iterator[OutcomeRecord]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)


class StatusLedger:
    """Single owner of object-state mutations caused by actions.

    Outcomes are kept in memory and appended to ``flush_path`` (JSON lines)
    on ``flush``. The ledger also keeps a short ring of human-readable status
    messages for the status-log surface.
    """

    def __init__(
        self,
        flush_path: str | None = None,
        message_limit: int = DEFAULT_STATUS_LIMIT,
    ) -> None:
        self._lock = threading.RLock()
        self._outcomes: list[OutcomeRecord] = []
        self._objects: dict[ObjectRef, ObjectRecord] = {}
        self._messages: deque[str] = deque(maxlen=message_limit)
        self._flush_path = Path(flush_path) if flush_path else None
        self._flushed = 0

    def record(self, outcome: OutcomeRecord) -> None:
        with self._lock:
            self._outcomes.append(outcome)
            self._apply(outcome)
            self._messages.append(_describe(outcome))

    def record_all(self, outcomes: Iterable[OutcomeRecord]) -> None:
        with self._lock:
            for outcome in outcomes:
                self.record(outcome)

    def observe(self, record: ObjectRecord) -> ObjectRecord:
        """Store freshly fetched metadata as the latest state of an object."""
        with self._lock:
            self._objects[record.ref] = record
            return record

    def observe_listing(self, bucket: str, records: Iterable[ObjectRecord]) -> list[ObjectRecord]:
        """Replace the known state of ``bucket`` with a fresh listing."""
        with self._lock:
            for ref in [ref for ref in self._objects if ref[0] == bucket]:
                del self._objects[ref]
            observed = []
            for record in records:
                self._objects[record.ref] = record
                observed.append(record)
            return observed

    def latest(self, bucket: str, key: str) -> ObjectRecord | None:
        with self._lock:
            return self._objects.get((bucket, key))

    def current_listing(self, bucket: str, keys: Iterable[str]) -> list[ObjectRecord]:
        """Latest known records for ``keys`` of ``bucket``, preserving order."""
        with self._lock:
            return [
                self._objects[(bucket, key)] for key in keys if (bucket, key) in self._objects
            ]

    def history(self) -> OutcomeHistory:
        with self._lock:
            return OutcomeHistory(tuple(self._outcomes))

    def note(self, message: str) -> None:
        with self._lock:
            self._messages.append(message)

    def messages(self, limit: int | None = None) -> list[str]:
        with self._lock:
            items = list(self._messages)
        if limit is not None:
            return items[-limit:] if limit > 0 else []
        return items

    def flush(self) -> int:
        """Append unflushed outcomes to the status log file; returns the count written."""
        if self._flush_path is None:
            return 0
        with self._lock:
            pending = self._outcomes[self._flushed :]
            if not pending:
                return 0
            lines = "".join(
                json.dumps(outcome.to_dict(), ensure_ascii=True, default=json_default) + "\n"
                for outcome in pending
            )
            try:
                self._flush_path.parent.mkdir(parents=True, exist_ok=True)
                with self._flush_path.open("a", encoding="utf-8") as handle:
                    handle.write(lines)
            except OSError as exc:
                # Outcomes stay pending and are retried on the next flush.
                logger.exception("Failed to flush outcomes to %s", self._flush_path)
                self._messages.append(f"Status log not written: {exc}")
                return 0
            self._flushed += len(pending)
            logger.debug("Flushed %d outcomes to %s", len(pending), self._flush_path)
            return len(pending)

    def _apply(self, outcome: OutcomeRecord) -> None:
        if outcome.result is not OutcomeResult.SUCCESS:
            return
        current = self._objects.get((outcome.bucket, outcome.key))
        if current is None:
            return
        if outcome.action is OutcomeAction.TRANSITION and outcome.destination_class is not None:
            self._objects[current.ref] = current.with_storage_class(outcome.destination_class)
        elif outcome.action is OutcomeAction.RESTORE:
            self._objects[current.ref] = current.with_restore_status(
                RestoreStatus(RestoreState.IN_PROGRESS)
            )


def _describe(outcome: OutcomeRecord) -> str:
    key = outcome.key
    if outcome.action is OutcomeAction.TRANSITION:
        label = outcome.destination_class.value if outcome.destination_class else "?"
        if outcome.result is OutcomeResult.SUCCESS:
            return f"Transitioned {key} to {label}"
        if outcome.result is OutcomeResult.FAILED:
            return f"Transition failed for {key}: {outcome.reason}"
        return f"Transition skipped for {key}: {outcome.reason}"
    if outcome.action is OutcomeAction.RESTORE:
        if outcome.result is OutcomeResult.SUCCESS:
            return f"Restore requested for {key}"
        if outcome.result is OutcomeResult.FAILED:
            return f"Restore failed for {key}: {outcome.reason}"
        return f"Restore skipped for {key}: {outcome.reason}"
    if outcome.result is OutcomeResult.SUCCESS:
        return f"Refreshed metadata for {key}"
    if outcome.result is OutcomeResult.FAILED:
        return f"Refresh failed for {key}: {outcome.reason}"
    return f"Refresh skipped for {key}: {outcome.reason}"
