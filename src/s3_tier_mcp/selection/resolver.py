"""Target-set resolution for a single action invocation."""

from __future__ import annotations

from collections.abc import Iterable

from s3_tier_mcp.domain.models import ObjectRecord, TargetSet
from s3_tier_mcp.errors import NoTargetError, ValidationError
from s3_tier_mcp.masks import Mask, matches


def resolve(
    listing: Iterable[ObjectRecord],
    mask: Mask | None = None,
    highlighted: ObjectRecord | None = None,
    *,
    allow_wildcard: bool = False,
) -> TargetSet:
    """Compute the objects an action applies to.

    An active mask always wins over the highlighted row. A wildcard mask
    (empty pattern) selects the whole listing only when ``allow_wildcard``
    is set; otherwise it is rejected before anything runs.
    """
    if mask is not None:
        if mask.is_wildcard and not allow_wildcard:
            raise ValidationError(
                "Mask has an empty pattern and would select every object; "
                "confirm the wildcard explicitly to proceed"
            )
        targets = tuple(record for record in listing if matches(mask, record.key))
        if not targets:
            raise NoTargetError(f"Mask '{mask.name}' matched no objects")
        return targets

    if highlighted is None:
        raise NoTargetError("No mask is active and no object is highlighted")
    return (highlighted,)


def count_matches(listing: Iterable[ObjectRecord], mask: Mask) -> int:
    return sum(1 for record in listing if matches(mask, record.key))
