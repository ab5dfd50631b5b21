"""Tool helpers."""

from __future__ import annotations

import json

from s3_tier_mcp.errors import (
    BackendError,
    NoBucketSelectedError,
    NoTargetError,
    PolicyNotFoundError,
    TieringError,
    ValidationError,
)
from s3_tier_mcp.mcp_runtime import ToolResult
from s3_tier_mcp.utils.jsonschema import validate_payload
from s3_tier_mcp.utils.serialization import json_default


def validate_or_raise(schema: dict[str, object], payload: dict[str, object]) -> None:
    errors = validate_payload(schema, payload)
    if errors:
        raise ValidationError("Input validation failed: " + "; ".join(errors))


def result_from_payload(payload: dict[str, object]) -> ToolResult:
    text = json.dumps(payload, ensure_ascii=True, indent=2, default=json_default)
    content = [{"type": "text", "text": text}]
    return ToolResult(content=content, structured_content=payload)


def error_response(
    error_type: str,
    message: str,
    hint: str | None = None,
    retryable: bool = False,
) -> ToolResult:
    """Create a standardized error response."""
    error: dict[str, object] = {
        "type": error_type,
        "message": message,
    }
    if hint:
        error["hint"] = hint
    error["retryable"] = retryable
    return result_from_payload({"error": error})


def error_from_exception(exc: TieringError) -> ToolResult:
    if isinstance(exc, NoBucketSelectedError):
        return error_response(
            "NoBucketSelected",
            str(exc),
            hint="Call s3_load_objects with a bucket name first.",
        )
    if isinstance(exc, NoTargetError):
        return error_response(
            "NoTargetError",
            str(exc),
            hint="Highlight an object or set a mask that matches the loaded listing.",
        )
    if isinstance(exc, PolicyNotFoundError):
        return error_response(
            "PolicyNotFound",
            str(exc),
            hint="Use policy_list to see the saved policy ids.",
        )
    if isinstance(exc, BackendError):
        return error_response("BackendError", exc.reason, retryable=True)
    if isinstance(exc, ValidationError):
        return error_response("ValidationError", str(exc))
    return error_response(type(exc).__name__, str(exc))
