"""Browse session: the explicit context behind every interactive action."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from s3_tier_mcp.domain.models import (
    BucketInfo,
    ObjectRecord,
    OutcomeRecord,
    StorageClass,
    TargetSet,
)
from s3_tier_mcp.errors import (
    BackendError,
    NoBucketSelectedError,
    NoTargetError,
    ValidationError,
)
from s3_tier_mcp.execution.orchestrator import (
    CancellationToken,
    TransitionOrchestrator,
    failed_targets,
)
from s3_tier_mcp.execution.s3_client import StorageClient
from s3_tier_mcp.ledger.status import StatusLedger
from s3_tier_mcp.masks import Mask, matches
from s3_tier_mcp.policy.models import Policy
from s3_tier_mcp.policy.store import PolicyStore
from s3_tier_mcp.selection.resolver import count_matches, resolve

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TransitionRun:
    bucket: str
    targets: TargetSet
    destination_class: StorageClass
    restore_first: bool
    outcomes: tuple[OutcomeRecord, ...]


class BrowseSession:
    """Bucket, listing order, mask and highlighted object for one operator.

    Object state itself lives in the status ledger; the session only keeps
    which keys the current listing contains and in what order.
    """

    def __init__(
        self,
        client: StorageClient,
        ledger: StatusLedger,
        orchestrator: TransitionOrchestrator,
        policy_store: PolicyStore,
    ) -> None:
        self._client = client
        self._ledger = ledger
        self._orchestrator = orchestrator
        self._policy_store = policy_store
        self._buckets: list[BucketInfo] = []
        self._bucket: str | None = None
        self._keys: list[str] = []
        self._mask: Mask | None = None
        self._highlighted: str | None = None
        self._last_transition: TransitionRun | None = None
        self._active_cancels: set[CancellationToken] = set()
        self._lock = threading.Lock()

    @property
    def bucket(self) -> str | None:
        return self._bucket

    @property
    def mask(self) -> Mask | None:
        return self._mask

    @property
    def buckets(self) -> list[BucketInfo]:
        return list(self._buckets)

    @property
    def last_transition(self) -> TransitionRun | None:
        return self._last_transition

    def listing(self) -> list[ObjectRecord]:
        if self._bucket is None:
            return []
        return self._ledger.current_listing(self._bucket, self._keys)

    def highlighted(self) -> ObjectRecord | None:
        if self._bucket is None or self._highlighted is None:
            return None
        return self._ledger.latest(self._bucket, self._highlighted)

    async def refresh_buckets(self) -> list[BucketInfo]:
        buckets = await asyncio.to_thread(self._client.list_buckets)
        self._buckets = buckets
        self._ledger.note(f"Loaded {len(buckets)} bucket(s)")
        return list(buckets)

    async def load_objects(self, bucket: str) -> list[ObjectRecord]:
        records = await asyncio.to_thread(self._client.list_objects, bucket)
        with self._lock:
            observed = self._ledger.observe_listing(bucket, records)
            self._bucket = bucket
            self._keys = [record.key for record in observed]
            self._highlighted = None
        self._ledger.note(f"Loaded objects for bucket {bucket}")
        if self._mask is not None:
            self._note_mask_matches(self._mask)
        return observed

    def set_mask(self, mask: Mask | None) -> int:
        """Activate (or clear) the mask and return how many listed objects it selects."""
        with self._lock:
            self._mask = mask
        if mask is None:
            self._ledger.note("Cleared mask filter")
            return len(self._keys)
        return self._note_mask_matches(mask)

    def filtered(self) -> list[ObjectRecord]:
        listing = self.listing()
        if self._mask is None:
            return listing
        return [record for record in listing if matches(self._mask, record.key)]

    def highlight(self, key: str | None) -> ObjectRecord | None:
        self._require_bucket()
        if key is None:
            self._highlighted = None
            return None
        if key not in self._keys:
            raise ValidationError(f"Object '{key}' is not in the loaded listing of {self._bucket}")
        self._highlighted = key
        return self.highlighted()

    def targets(self, *, allow_wildcard: bool = False) -> TargetSet:
        self._require_bucket()
        return resolve(
            self.listing(),
            self._mask,
            self.highlighted(),
            allow_wildcard=allow_wildcard,
        )

    async def start_transition(
        self,
        destination_class: StorageClass | str,
        restore_first: bool = False,
        *,
        allow_wildcard: bool = False,
    ) -> TransitionRun:
        destination = StorageClass.parse(destination_class)
        bucket = self._require_bucket()
        targets = self.targets(allow_wildcard=allow_wildcard)
        outcomes = await self._run(
            lambda cancel: self._orchestrator.execute(
                targets, destination, restore_first, self._client, cancel=cancel
            )
        )
        run = TransitionRun(bucket, targets, destination, restore_first, outcomes)
        self._last_transition = run
        return run

    async def retry_failed(self) -> TransitionRun:
        previous = self._last_transition
        if previous is None:
            raise NoTargetError("No transition has been run in this session")
        targets = failed_targets(previous.targets, previous.outcomes)
        if not targets:
            raise NoTargetError("The last transition had no failed objects")
        latest = tuple(
            self._ledger.latest(record.bucket, record.key) or record for record in targets
        )
        outcomes = await self._run(
            lambda cancel: self._orchestrator.execute(
                latest,
                previous.destination_class,
                previous.restore_first,
                self._client,
                cancel=cancel,
            )
        )
        run = TransitionRun(
            previous.bucket, latest, previous.destination_class, previous.restore_first, outcomes
        )
        self._last_transition = run
        return run

    async def request_restore(
        self,
        days: int | None = None,
        *,
        allow_wildcard: bool = False,
    ) -> tuple[OutcomeRecord, ...]:
        self._require_bucket()
        targets = self.targets(allow_wildcard=allow_wildcard)
        return await self._run(
            lambda cancel: self._orchestrator.restore(
                targets, self._client, days=days, cancel=cancel
            )
        )

    async def inspect(self, key: str | None = None) -> ObjectRecord:
        """Refresh one object's metadata (the highlighted one by default)."""
        bucket = self._require_bucket()
        if key is not None:
            self.highlight(key)
        record = self.highlighted()
        if record is None:
            raise NoTargetError("Select an object to inspect")
        outcomes = await self._run(
            lambda cancel: self._orchestrator.refresh((record,), self._client, cancel=cancel)
        )
        outcome = outcomes[0]
        if outcome.failed:
            raise BackendError(outcome.reason or "refresh failed")
        refreshed = self._ledger.latest(bucket, record.key)
        return refreshed if refreshed is not None else record

    def save_policy(
        self,
        destination_class: StorageClass | str,
        restore_first: bool = False,
        notes: str | None = None,
    ) -> Policy:
        bucket = self._require_bucket()
        if self._mask is None:
            raise ValidationError("Apply a mask before saving a policy")
        policy = self._policy_store.create(
            bucket=bucket,
            mask=self._mask,
            destination_class=destination_class,
            restore_first=restore_first,
            notes=notes,
        )
        self._ledger.note(f"Policy saved: {policy.summary()}")
        return policy

    async def replay_policy(
        self,
        policy_id: str,
        *,
        allow_wildcard: bool = False,
    ) -> TransitionRun:
        """Re-run a saved policy against a freshly fetched listing of its bucket."""
        policy = self._policy_store.get(policy_id)
        records = await asyncio.to_thread(self._client.list_objects, policy.bucket)
        listing = self._ledger.observe_listing(policy.bucket, records)
        self._adopt_listing(policy.bucket, listing)
        targets = self._policy_store.replay(policy_id, listing, allow_wildcard=allow_wildcard)
        logger.info("Replaying policy %s against %d object(s)", policy.id, len(targets))
        self._ledger.note(f"Replaying policy {policy.summary()} on {len(targets)} object(s)")
        outcomes = await self._run(
            lambda cancel: self._orchestrator.execute(
                targets,
                policy.destination_class,
                policy.restore_first,
                self._client,
                cancel=cancel,
            )
        )
        run = TransitionRun(
            policy.bucket, targets, policy.destination_class, policy.restore_first, outcomes
        )
        self._last_transition = run
        return run

    def cancel(self) -> bool:
        """Request cancellation of every running action."""
        with self._lock:
            tokens = list(self._active_cancels)
        if not tokens:
            return False
        for token in tokens:
            token.cancel()
        self._ledger.note("Cancellation requested; in-flight calls will finish")
        return True

    async def _run(self, action: Callable[[CancellationToken], Awaitable[T]]) -> T:
        token = CancellationToken()
        with self._lock:
            self._active_cancels.add(token)
        try:
            return await action(token)
        finally:
            with self._lock:
                self._active_cancels.discard(token)
            self._ledger.flush()

    def _note_mask_matches(self, mask: Mask) -> int:
        count = count_matches(self.listing(), mask)
        if count == 0:
            self._ledger.note("Mask applied but matched no objects")
        else:
            self._ledger.note(f"Mask '{mask.name}' matched {count} objects")
        return count

    def _adopt_listing(self, bucket: str, listing: list[ObjectRecord]) -> None:
        """Refresh the listed keys if ``bucket`` is the loaded one; drop a vanished highlight."""
        with self._lock:
            if bucket != self._bucket:
                return
            self._keys = [record.key for record in listing]
            if self._highlighted not in self._keys:
                self._highlighted = None

    def _require_bucket(self) -> str:
        if self._bucket is None:
            raise NoBucketSelectedError("Select a bucket first")
        return self._bucket
