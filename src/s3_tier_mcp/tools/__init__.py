"""MCP tools for the browse session.

``s3_*`` tools drive bucket browsing, selection and transitions;
``policy_*`` tools manage and replay saved migration policies.
"""

from __future__ import annotations

from s3_tier_mcp.logging_utils import get_logger
from s3_tier_mcp.mcp_runtime import MCPServer, ToolSpec
from s3_tier_mcp.tools.tiering import TOOL_SPECS

__all__ = ["get_tool_registry", "get_tool_specs", "register_tools"]


def get_tool_specs() -> list[ToolSpec]:
    return list(TOOL_SPECS)


def get_tool_registry() -> dict[str, ToolSpec]:
    return {tool.name: tool for tool in TOOL_SPECS}


def register_tools(server: MCPServer) -> None:
    names = []
    for tool in TOOL_SPECS:
        server.add_tool(tool)
        names.append(tool.name)
    get_logger(__name__).info("Registered %d tools: %s", len(names), ", ".join(names))
