"""Error taxonomy for the tiering engine."""

from __future__ import annotations

from dataclasses import dataclass


class TieringError(Exception):
    """Base class for engine errors surfaced to callers."""


class ValidationError(TieringError, ValueError):
    """A mask, storage class or policy was rejected before any backend call."""


class NoTargetError(TieringError):
    """The resolved target set is empty; no backend call was issued."""


class NoBucketSelectedError(TieringError):
    """An object action was requested before a bucket was loaded."""


class PolicyNotFoundError(TieringError, KeyError):
    def __init__(self, policy_id: str) -> None:
        super().__init__(policy_id)
        self.policy_id = policy_id

    def __str__(self) -> str:
        return f"Policy not found: {self.policy_id}"


class BackendError(TieringError):
    """A single storage call failed.

    Raised by the storage client and captured per object by the orchestrator,
    so it never aborts a batch.
    """

    def __init__(self, reason: str, code: str | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.code = code


@dataclass(frozen=True)
class CorruptPolicyEntry:
    """A persisted policy record that was skipped while loading."""

    index: int
    reason: str
    raw: object = None
