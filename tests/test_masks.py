from __future__ import annotations

import pytest

from s3_tier_mcp.errors import ValidationError
from s3_tier_mcp.masks import DEFAULT_MASK_NAME, Mask, MaskMode, matches


@pytest.mark.parametrize(
    ("mode", "pattern", "key", "expected"),
    [
        ("prefix", "logs/", "logs/a.txt", True),
        ("prefix", "logs/", "img/logs/a.txt", False),
        ("suffix", ".png", "img/c.png", True),
        ("suffix", ".png", "img/c.png.bak", False),
        ("contains", "2024", "logs/2024-01-01.gz", True),
        ("contains", "2024", "logs/2023-01-01.gz", False),
        ("regex", r"^logs/\d{4}-", "logs/2024-01-01.gz", True),
        ("regex", r"\.gz$", "logs/2024-01-01.txt", False),
    ],
)
def test_modes(mode: str, pattern: str, key: str, expected: bool) -> None:
    assert matches(Mask.create(mode, pattern), key) is expected


def test_case_insensitive_by_default() -> None:
    mask = Mask.create("prefix", "LOGS/")
    assert matches(mask, "logs/a.txt")
    assert matches(Mask.create("regex", "^IMG/"), "img/c.png")


def test_case_sensitive_respected() -> None:
    mask = Mask.create("prefix", "LOGS/", case_sensitive=True)
    assert not matches(mask, "logs/a.txt")
    assert matches(mask, "LOGS/a.txt")
    assert not matches(Mask.create("regex", "^IMG/", case_sensitive=True), "img/c.png")


def test_empty_pattern_is_wildcard() -> None:
    for mode in MaskMode:
        mask = Mask.create(mode, "")
        assert mask.is_wildcard
        assert matches(mask, "anything/at/all")


def test_unicode_keys() -> None:
    mask = Mask.create("contains", "résumé")
    assert matches(mask, "docs/RÉSUMÉ-2024.pdf")
    assert not matches(Mask.create("suffix", "é", case_sensitive=True), "cafe")


def test_invalid_regex_rejected_at_construction() -> None:
    with pytest.raises(ValidationError, match="Invalid regex"):
        Mask.create("regex", "(unclosed")


@pytest.mark.parametrize(
    "pattern",
    [
        r"(?<=logs/)a",
        r"(a)\1",
        r"(a+)+$",
        "a" * 300,
    ],
)
def test_unsafe_regex_rejected(pattern: str) -> None:
    with pytest.raises(ValidationError, match="Unsafe regex"):
        Mask.create("regex", pattern)


def test_unknown_mode_rejected() -> None:
    with pytest.raises(ValidationError, match="Unknown mask mode"):
        Mask.create("glob", "*.txt")


def test_non_string_pattern_rejected() -> None:
    with pytest.raises(ValidationError):
        Mask(MaskMode.PREFIX, 42)  # type: ignore[arg-type]


def test_name_defaults_and_does_not_affect_equality() -> None:
    unnamed = Mask.create("prefix", "logs/", name="  ")
    named = Mask.create("prefix", "logs/", name="Old logs")
    assert unnamed.name == DEFAULT_MASK_NAME
    assert named.name == "Old logs"
    assert unnamed == named


def test_to_dict_round_trip_fields() -> None:
    mask = Mask.create("Regex", r"\.log$", case_sensitive=True, name="logs")
    assert mask.to_dict() == {
        "mode": "regex",
        "pattern": r"\.log$",
        "case_sensitive": True,
        "name": "logs",
    }
    assert "case-sensitive" in mask.describe()
