"""Stdio entrypoint for the S3 tiering MCP server."""

from __future__ import annotations

import logging
import threading

from s3_tier_mcp import __version__
from s3_tier_mcp.app import get_app_context
from s3_tier_mcp.config import load_settings
from s3_tier_mcp.logging_utils import configure_logging
from s3_tier_mcp.mcp_runtime import MCPServer
from s3_tier_mcp.tools import register_tools

logger = logging.getLogger(__name__)

_server: MCPServer | None = None
_server_lock = threading.Lock()


def build_server() -> MCPServer:
    settings = load_settings()
    server = MCPServer(
        name="s3-tier-mcp",
        version=__version__,
        instructions=settings.server.instructions,
    )
    # FastMCP installs its own handlers on init; ours must win.
    configure_logging()

    context = get_app_context()
    logger.info(
        "Starting s3-tier-mcp v%s (policies: %s, concurrency: %d)",
        __version__,
        context.policy_store.path,
        settings.execution.max_concurrency,
    )
    for entry in context.policy_store.corrupt_entries:
        logger.warning("Policy entry %d skipped: %s", entry.index, entry.reason)

    register_tools(server)
    return server


def get_server() -> MCPServer:
    """Build the server on first use; later calls return the same instance."""
    global _server
    if _server is None:
        with _server_lock:
            if _server is None:
                _server = build_server()
    return _server


def run_entrypoint() -> None:
    get_server().run()


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
