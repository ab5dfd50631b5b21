"""Mask evaluation against object keys."""

from __future__ import annotations

from s3_tier_mcp.masks.models import Mask, MaskMode, compile_mask_regex


def matches(mask: Mask, key: str) -> bool:
    """Return whether ``key`` is selected by ``mask``.

    Pure and total: regex validity is enforced when the mask is built, so
    evaluation never raises for a constructed mask.
    """
    if mask.is_wildcard:
        return True

    if mask.mode is MaskMode.REGEX:
        return compile_mask_regex(mask.pattern, mask.case_sensitive).search(key) is not None

    pattern = mask.pattern
    candidate = key
    if not mask.case_sensitive:
        pattern = pattern.casefold()
        candidate = candidate.casefold()

    if mask.mode is MaskMode.PREFIX:
        return candidate.startswith(pattern)
    if mask.mode is MaskMode.SUFFIX:
        return candidate.endswith(pattern)
    if mask.mode is MaskMode.CONTAINS:
        return pattern in candidate
    raise AssertionError(f"Unhandled mask mode: {mask.mode!r}")
