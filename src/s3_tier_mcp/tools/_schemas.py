"""JSON Schema definitions and ToolSpec instances for the tiering tools."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping

from s3_tier_mcp.domain.models import StorageClass
from s3_tier_mcp.masks import MaskMode
from s3_tier_mcp.mcp_runtime import ToolResult, ToolSpec

ToolHandler = Callable[[dict[str, object]], ToolResult | Awaitable[ToolResult]]

_DESTINATION_PROPERTY = {
    "type": "string",
    "enum": [storage_class.value for storage_class in StorageClass.selectable()],
    "description": "Destination storage class for the selected objects.",
}

_CONFIRM_WILDCARD_PROPERTY = {
    "type": "boolean",
    "default": False,
    "description": (
        "Required to act when the active mask has an empty pattern, "
        "which selects every object in the listing."
    ),
}

_BUCKET_PROPERTY = {"type": "string", "minLength": 1, "maxLength": 255}

_POLICY_ID_PROPERTY = {"type": "string", "minLength": 1, "maxLength": 128}

EMPTY_SCHEMA = {
    "type": "object",
    "properties": {},
    "additionalProperties": False,
}

LOAD_OBJECTS_SCHEMA = {
    "type": "object",
    "properties": {"bucket": _BUCKET_PROPERTY},
    "required": ["bucket"],
    "additionalProperties": False,
}

SET_MASK_SCHEMA = {
    "type": "object",
    "properties": {
        "mode": {
            "type": "string",
            "enum": [mode.value for mode in MaskMode],
            "description": "How the pattern is compared against object keys.",
        },
        "pattern": {
            "type": "string",
            "maxLength": 1024,
            "description": "Pattern to match. Empty selects every object.",
        },
        "caseSensitive": {"type": "boolean", "default": False},
        "name": {"type": "string", "maxLength": 128},
        "clear": {
            "type": "boolean",
            "default": False,
            "description": "Remove the active mask instead of setting one.",
        },
    },
    "additionalProperties": False,
}

HIGHLIGHT_SCHEMA = {
    "type": "object",
    "properties": {
        "key": {
            "type": "string",
            "minLength": 1,
            "description": "Object key from the loaded listing. Omit to clear the highlight.",
        },
    },
    "additionalProperties": False,
}

INSPECT_SCHEMA = {
    "type": "object",
    "properties": {
        "key": {
            "type": "string",
            "minLength": 1,
            "description": "Object key to inspect. Defaults to the highlighted object.",
        },
    },
    "additionalProperties": False,
}

START_TRANSITION_SCHEMA = {
    "type": "object",
    "properties": {
        "destinationClass": _DESTINATION_PROPERTY,
        "restoreFirst": {
            "type": "boolean",
            "default": False,
            "description": "Request a temporary restore before copying each object.",
        },
        "confirmWildcard": _CONFIRM_WILDCARD_PROPERTY,
    },
    "required": ["destinationClass"],
    "additionalProperties": False,
}

REQUEST_RESTORE_SCHEMA = {
    "type": "object",
    "properties": {
        "days": {"type": "integer", "minimum": 1, "maximum": 30},
        "confirmWildcard": _CONFIRM_WILDCARD_PROPERTY,
    },
    "additionalProperties": False,
}

STATUS_LOG_SCHEMA = {
    "type": "object",
    "properties": {
        "limit": {
            "type": "integer",
            "minimum": 1,
            "maximum": 1000,
            "description": "Maximum number of outcome records to return (newest last).",
        },
    },
    "additionalProperties": False,
}

POLICY_SAVE_SCHEMA = {
    "type": "object",
    "properties": {
        "destinationClass": _DESTINATION_PROPERTY,
        "restoreFirst": {"type": "boolean", "default": False},
        "notes": {"type": "string", "maxLength": 1024},
    },
    "required": ["destinationClass"],
    "additionalProperties": False,
}

POLICY_ID_SCHEMA = {
    "type": "object",
    "properties": {"policyId": _POLICY_ID_PROPERTY},
    "required": ["policyId"],
    "additionalProperties": False,
}

POLICY_REPLAY_SCHEMA = {
    "type": "object",
    "properties": {
        "policyId": _POLICY_ID_PROPERTY,
        "confirmWildcard": _CONFIRM_WILDCARD_PROPERTY,
    },
    "required": ["policyId"],
    "additionalProperties": False,
}

_TOOL_DEFINITIONS: tuple[tuple[str, str, dict[str, object]], ...] = (
    (
        "s3_list_buckets",
        "List the S3 buckets visible to the configured credentials, with their regions.",
        EMPTY_SCHEMA,
    ),
    (
        "s3_load_objects",
        "Load every object of a bucket (sorted by key) and make it the current bucket. "
        "The active mask is re-applied to the new listing.",
        LOAD_OBJECTS_SCHEMA,
    ),
    (
        "s3_set_mask",
        "Set the selection mask (prefix, suffix, contains or regex) or clear it. "
        "Returns how many loaded objects the mask matches.",
        SET_MASK_SCHEMA,
    ),
    (
        "s3_highlight_object",
        "Highlight one object of the loaded listing. Used as the target when no mask is set.",
        HIGHLIGHT_SCHEMA,
    ),
    (
        "s3_inspect_object",
        "Refresh one object's metadata (storage class, size, restore status) from S3.",
        INSPECT_SCHEMA,
    ),
    (
        "s3_start_transition",
        "Move the selected objects to a new storage class by copying each object onto "
        "itself. The mask selection wins over the highlighted object. "
        "Required: 'destinationClass'. Optional: 'restoreFirst', 'confirmWildcard'.",
        START_TRANSITION_SCHEMA,
    ),
    (
        "s3_request_restore",
        "Request a temporary restore of the selected archived objects.",
        REQUEST_RESTORE_SCHEMA,
    ),
    (
        "s3_retry_failed",
        "Re-run the last transition for the objects that failed in it.",
        EMPTY_SCHEMA,
    ),
    (
        "s3_view_status_log",
        "Show recent status messages and the outcome history.",
        STATUS_LOG_SCHEMA,
    ),
    (
        "policy_save",
        "Save the current bucket and mask as a reusable migration policy. "
        "A mask must be set first.",
        POLICY_SAVE_SCHEMA,
    ),
    (
        "policy_list",
        "List saved policies and any corrupt entries skipped while loading the policy file.",
        EMPTY_SCHEMA,
    ),
    (
        "policy_replay",
        "Re-run a saved policy against a fresh listing of its bucket.",
        POLICY_REPLAY_SCHEMA,
    ),
    (
        "policy_delete",
        "Delete a saved policy by id.",
        POLICY_ID_SCHEMA,
    ),
)


def make_tool_specs(handlers: Mapping[str, ToolHandler]) -> tuple[ToolSpec, ...]:
    """Create the ToolSpec instances, pairing each definition with its handler."""
    missing = [name for name, _, _ in _TOOL_DEFINITIONS if name not in handlers]
    if missing:
        raise KeyError(f"Missing tool handlers: {', '.join(missing)}")
    return tuple(
        ToolSpec(
            name=name,
            description=description,
            input_schema=schema,
            handler=handlers[name],
        )
        for name, description, schema in _TOOL_DEFINITIONS
    )
