from __future__ import annotations

import inspect
from unittest.mock import MagicMock, patch

import pytest

from s3_tier_mcp.mcp_runtime import MCPServer, ToolResult, ToolSpec, _is_awaitable


def _spec(handler) -> ToolSpec:
    return ToolSpec(
        name="s3_demo",
        description="demo",
        input_schema={
            "type": "object",
            "properties": {"bucket": {"type": "string"}, "limit": {"type": "integer"}},
        },
        handler=handler,
    )


@patch("s3_tier_mcp.mcp_runtime.FunctionTool")
@patch("s3_tier_mcp.mcp_runtime.FastMCP")
def test_add_tool_builds_keyword_signature(mock_fastmcp, mock_function_tool) -> None:
    server = MCPServer("s3-tier-mcp", "0.1.0", "inst")
    server.add_tool(_spec(lambda payload: ToolResult(content=[])))

    handler = mock_function_tool.from_function.call_args.args[0]
    params = inspect.signature(handler).parameters
    assert list(params) == ["bucket", "limit"]
    assert all(param.kind is inspect.Parameter.KEYWORD_ONLY for param in params.values())
    assert mock_function_tool.from_function.call_args.kwargs["name"] == "s3_demo"
    mock_fastmcp.return_value.add_tool.assert_called_once()
    assert server.tool_names == ["s3_demo"]


@pytest.mark.asyncio
@patch("s3_tier_mcp.mcp_runtime.FunctionTool")
@patch("s3_tier_mcp.mcp_runtime.FastMCP")
async def test_handler_drops_none_arguments(mock_fastmcp, mock_function_tool) -> None:
    seen: list[dict[str, object]] = []

    async def handler(payload: dict[str, object]) -> ToolResult:
        seen.append(payload)
        return ToolResult(content=[{"type": "text", "text": "ok"}], structured_content={"a": 1})

    server = MCPServer("s3-tier-mcp", "0.1.0", "inst")
    server.add_tool(_spec(handler))
    wrapped = mock_function_tool.from_function.call_args.args[0]

    result = await wrapped(bucket="data", limit=None)

    assert seen == [{"bucket": "data"}]
    assert result.structured_content == {"a": 1}


@pytest.mark.asyncio
@patch("s3_tier_mcp.mcp_runtime.FunctionTool")
@patch("s3_tier_mcp.mcp_runtime.FastMCP")
async def test_handler_rejects_non_tool_result(mock_fastmcp, mock_function_tool) -> None:
    server = MCPServer("s3-tier-mcp", "0.1.0", "inst")
    server.add_tool(_spec(lambda payload: {"not": "a result"}))
    wrapped = mock_function_tool.from_function.call_args.args[0]

    with pytest.raises(TypeError):
        await wrapped()


@patch("s3_tier_mcp.mcp_runtime.FastMCP")
def test_run_delegates_to_fastmcp(mock_fastmcp) -> None:
    server = MCPServer("s3-tier-mcp", "0.1.0", "inst")
    server.run()
    mock_fastmcp.return_value.run.assert_called_once_with()


def test_is_awaitable() -> None:
    async def coro() -> None:
        return None

    pending = coro()
    assert _is_awaitable(pending)
    pending.close()
    assert not _is_awaitable(MagicMock(spec=[]))
    assert not _is_awaitable(1)
