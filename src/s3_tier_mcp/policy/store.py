"""JSON-file persistence for migration policies."""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from s3_tier_mcp.domain.models import ObjectRecord, StorageClass, TargetSet
from s3_tier_mcp.errors import CorruptPolicyEntry, PolicyNotFoundError, ValidationError
from s3_tier_mcp.masks import Mask
from s3_tier_mcp.policy.models import Policy
from s3_tier_mcp.selection.resolver import resolve
from s3_tier_mcp.utils.time import utc_now

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    raw: object
    policy: Policy | None


class PolicyStore:
    """Durable mapping from policy id to policy, backed by one JSON file.

    The file is the single source of truth. Corrupt records are skipped on
    load and written back untouched so an operator can repair them.
    """

    def __init__(self, path: str) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._entries: list[_Entry] = []
        self._corrupt: list[CorruptPolicyEntry] = []
        self._unreadable = False
        self.reload()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def corrupt_entries(self) -> tuple[CorruptPolicyEntry, ...]:
        with self._lock:
            return tuple(self._corrupt)

    def reload(self) -> None:
        with self._lock:
            self._entries, self._corrupt, self._unreadable = _load_entries(self._path)

    def save(self, policy: Policy) -> str:
        if not isinstance(policy, Policy):
            raise ValidationError(f"Expected a Policy, got {type(policy).__name__}")
        with self._lock:
            if any(entry.policy and entry.policy.id == policy.id for entry in self._entries):
                raise ValidationError(
                    f"Policy {policy.id} already exists; saved policies are immutable"
                )
            entries = [*self._entries, _Entry(raw=policy.to_record(), policy=policy)]
            self._write(entries)
            self._entries = entries
        logger.info("Saved policy %s (%s)", policy.id, policy.summary())
        return policy.id

    def create(
        self,
        bucket: str,
        mask: Mask,
        destination_class: StorageClass | str,
        restore_first: bool = False,
        notes: str | None = None,
    ) -> Policy:
        policy = Policy.create(
            bucket=bucket,
            mask=mask,
            destination_class=destination_class,
            restore_first=restore_first,
            notes=notes,
        )
        self.save(policy)
        return policy

    def list(self) -> tuple[Policy, ...]:
        with self._lock:
            return tuple(entry.policy for entry in self._entries if entry.policy is not None)

    def get(self, policy_id: str) -> Policy:
        with self._lock:
            for entry in self._entries:
                if entry.policy is not None and entry.policy.id == policy_id:
                    return entry.policy
        raise PolicyNotFoundError(policy_id)

    def delete(self, policy_id: str) -> bool:
        with self._lock:
            remaining = [
                entry
                for entry in self._entries
                if entry.policy is None or entry.policy.id != policy_id
            ]
            if len(remaining) == len(self._entries):
                return False
            self._write(remaining)
            self._entries = remaining
        logger.info("Deleted policy %s", policy_id)
        return True

    def replay(
        self,
        policy_id: str,
        fresh_listing: Iterable[ObjectRecord],
        *,
        allow_wildcard: bool = False,
    ) -> TargetSet:
        """Resolve the stored mask against a freshly fetched listing."""
        policy = self.get(policy_id)
        return resolve(fresh_listing, policy.mask, None, allow_wildcard=allow_wildcard)

    def _write(self, entries: list[_Entry]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        if self._unreadable and self._path.exists():
            backup = self._path.with_name(
                f"{self._path.name}.{utc_now().strftime('%Y%m%dT%H%M%S')}.bak"
            )
            os.replace(self._path, backup)
            logger.warning("Moved unreadable policy file aside to %s", backup)
            self._unreadable = False
        payload = [entry.raw for entry in entries]
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        with tmp_path.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=True, indent=2)
            handle.write("\n")
        os.replace(tmp_path, self._path)


def _load_entries(path: Path) -> tuple[list[_Entry], list[CorruptPolicyEntry], bool]:
    if not path.exists():
        return [], [], False
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.error("Policy file %s is unreadable: %s", path, exc)
        return [], [CorruptPolicyEntry(index=-1, reason=f"unreadable policy file: {exc}")], True
    if not isinstance(data, list):
        logger.error("Policy file %s must contain a JSON list", path)
        return (
            [],
            [CorruptPolicyEntry(index=-1, reason="policy file must contain a JSON list", raw=data)],
            True,
        )

    entries: list[_Entry] = []
    corrupt: list[CorruptPolicyEntry] = []
    seen_ids: set[str] = set()
    for index, raw in enumerate(data):
        try:
            if not isinstance(raw, dict):
                raise ValidationError("policy record must be a JSON object")
            record = dict(raw)
            if not record.get("id"):
                record.pop("id", None)
            policy = Policy.from_record(record)
            if policy.id in seen_ids:
                raise ValidationError(f"duplicate policy id {policy.id}")
        except ValidationError as exc:
            logger.warning("Skipping corrupt policy entry %d in %s: %s", index, path, exc)
            corrupt.append(CorruptPolicyEntry(index=index, reason=str(exc), raw=raw))
            entries.append(_Entry(raw=raw, policy=None))
            continue
        seen_ids.add(policy.id)
        entries.append(_Entry(raw=policy.to_record(), policy=policy))
    return entries, corrupt, False
