"""Mask definitions and construction-time validation."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache

from s3_tier_mcp.errors import ValidationError

DEFAULT_MASK_NAME = "Untitled mask"

_MAX_MASK_REGEX_LENGTH = 256
_BACKREFERENCE_PATTERN = re.compile(r"\\[1-9]")
_NESTED_QUANTIFIER_PATTERN = re.compile(
    r"\((?:[^()\\]|\\.)*[+*](?:[^()\\]|\\.)*\)\s*(?:[+*]|\{\d+(?:,\d*)?\})"
)
_LOOKBEHIND_TOKENS = ("(?<=", "(?<!")


class MaskMode(str, Enum):
    PREFIX = "prefix"
    SUFFIX = "suffix"
    CONTAINS = "contains"
    REGEX = "regex"

    @classmethod
    def parse(cls, value: object) -> "MaskMode":
        if isinstance(value, MaskMode):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        allowed = ", ".join(member.value for member in cls)
        raise ValidationError(f"Unknown mask mode {value!r}. Expected one of: {allowed}")


@dataclass(frozen=True)
class Mask:
    """Rule selecting object keys.

    An empty pattern is a wildcard: it matches every key. Callers that turn a
    mask into a target set must opt into that explicitly (see
    ``selection.resolver.resolve``).
    """

    mode: MaskMode
    pattern: str
    case_sensitive: bool = False
    name: str = field(default=DEFAULT_MASK_NAME, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.mode, MaskMode):
            object.__setattr__(self, "mode", MaskMode.parse(self.mode))
        if not isinstance(self.pattern, str):
            raise ValidationError(
                f"Mask pattern must be a string, got {type(self.pattern).__name__}"
            )
        if self.mode is MaskMode.REGEX:
            compile_mask_regex(self.pattern, self.case_sensitive)

    @classmethod
    def create(
        cls,
        mode: MaskMode | str,
        pattern: str,
        case_sensitive: bool = False,
        name: str | None = None,
    ) -> "Mask":
        return cls(
            mode=MaskMode.parse(mode),
            pattern=pattern,
            case_sensitive=bool(case_sensitive),
            name=(name or "").strip() or DEFAULT_MASK_NAME,
        )

    @property
    def is_wildcard(self) -> bool:
        return self.pattern == ""

    def describe(self) -> str:
        case = "case-sensitive" if self.case_sensitive else "case-insensitive"
        return f"{self.name}: {self.mode.value} '{self.pattern}' ({case})"

    def to_dict(self) -> dict[str, object]:
        return {
            "mode": self.mode.value,
            "pattern": self.pattern,
            "case_sensitive": self.case_sensitive,
            "name": self.name,
        }


@lru_cache(maxsize=256)
def compile_mask_regex(pattern: str, case_sensitive: bool) -> re.Pattern[str]:
    _validate_pattern_safety(pattern)
    flags = 0 if case_sensitive else re.IGNORECASE
    try:
        return re.compile(pattern, flags)
    except re.error as exc:
        raise ValidationError(f"Invalid regex in mask pattern '{pattern}': {exc}") from exc


def _validate_pattern_safety(pattern: str) -> None:
    if len(pattern) > _MAX_MASK_REGEX_LENGTH:
        raise ValidationError(
            f"Unsafe regex in mask pattern '{pattern}': exceeds "
            f"{_MAX_MASK_REGEX_LENGTH} characters"
        )
    if any(token in pattern for token in _LOOKBEHIND_TOKENS):
        raise ValidationError(
            f"Unsafe regex in mask pattern '{pattern}': look-behind is not allowed"
        )
    if _BACKREFERENCE_PATTERN.search(pattern):
        raise ValidationError(
            f"Unsafe regex in mask pattern '{pattern}': backreferences are not allowed"
        )
    if _NESTED_QUANTIFIER_PATTERN.search(pattern):
        raise ValidationError(
            f"Unsafe regex in mask pattern '{pattern}': nested quantifiers are not allowed"
        )
