"""Tests for tool registry helpers."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from s3_tier_mcp.tools import get_tool_registry, get_tool_specs, register_tools

EXPECTED_TOOLS = [
    "s3_list_buckets",
    "s3_load_objects",
    "s3_set_mask",
    "s3_highlight_object",
    "s3_inspect_object",
    "s3_start_transition",
    "s3_request_restore",
    "s3_retry_failed",
    "s3_view_status_log",
    "policy_save",
    "policy_list",
    "policy_replay",
    "policy_delete",
]


def test_get_tool_specs_and_registry() -> None:
    specs = get_tool_specs()
    assert [tool.name for tool in specs] == EXPECTED_TOOLS

    registry = get_tool_registry()
    assert set(registry.keys()) == set(EXPECTED_TOOLS)
    for tool in specs:
        assert tool.input_schema["type"] == "object"
        assert tool.input_schema["additionalProperties"] is False


def test_destination_enum_excludes_reduced_redundancy() -> None:
    schema = get_tool_registry()["s3_start_transition"].input_schema
    values = schema["properties"]["destinationClass"]["enum"]
    assert "GLACIER" in values
    assert "REDUCED_REDUNDANCY" not in values


def test_register_tools_adds_all_specs() -> None:
    server = MagicMock()
    logger = MagicMock()
    with patch("s3_tier_mcp.tools.get_logger", return_value=logger):
        register_tools(server)

    assert server.add_tool.call_count == len(EXPECTED_TOOLS)
    logger.info.assert_called_once()
