from __future__ import annotations

import pytest

from s3_tier_mcp.errors import (
    BackendError,
    NoBucketSelectedError,
    NoTargetError,
    PolicyNotFoundError,
    ValidationError,
)
from s3_tier_mcp.tools.base import (
    error_from_exception,
    error_response,
    result_from_payload,
    validate_or_raise,
)
from s3_tier_mcp.utils.jsonschema import validate_payload


def test_validate_or_raise_raises_on_invalid_input() -> None:
    schema = {
        "type": "object",
        "properties": {"name": {"type": "string"}},
        "required": ["name"],
    }
    with pytest.raises(ValidationError, match="Input validation failed"):
        validate_or_raise(schema, {"name": 123})


def test_validate_payload_prefixes_field_path() -> None:
    schema = {
        "type": "object",
        "properties": {"days": {"type": "integer", "minimum": 1}},
        "additionalProperties": False,
    }
    assert validate_payload(schema, {"days": 3}) == []
    errors = validate_payload(schema, {"days": 0, "extra": True})
    assert any(error.startswith("days: ") for error in errors)
    assert any("extra" in error for error in errors)


def test_result_from_payload_builds_tool_result() -> None:
    result = result_from_payload({"ok": True})
    assert result.structured_content == {"ok": True}
    assert result.content[0]["type"] == "text"


def test_error_response_shape() -> None:
    result = error_response("BackendError", "throttled", hint="wait", retryable=True)
    assert result.structured_content == {
        "error": {
            "type": "BackendError",
            "message": "throttled",
            "hint": "wait",
            "retryable": True,
        }
    }


@pytest.mark.parametrize(
    ("exc", "error_type", "retryable"),
    [
        (ValidationError("bad class"), "ValidationError", False),
        (NoTargetError("nothing"), "NoTargetError", False),
        (NoBucketSelectedError("Select a bucket first"), "NoBucketSelected", False),
        (PolicyNotFoundError("abc"), "PolicyNotFound", False),
        (BackendError("SlowDown: reduce request rate", "SlowDown"), "BackendError", True),
    ],
)
def test_error_from_exception(exc, error_type: str, retryable: bool) -> None:
    error = error_from_exception(exc).structured_content["error"]
    assert error["type"] == error_type
    assert error["retryable"] is retryable
    assert error["message"]
