"""Object-key masks."""

from __future__ import annotations

from s3_tier_mcp.masks.evaluator import matches
from s3_tier_mcp.masks.models import DEFAULT_MASK_NAME, Mask, MaskMode

__all__ = ["DEFAULT_MASK_NAME", "Mask", "MaskMode", "matches"]
