"""Thin adapter that exposes ``ToolSpec`` handlers through FastMCP."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import cast

from fastmcp import FastMCP
from fastmcp.tools import FunctionTool
from fastmcp.tools.tool import ToolResult as FastToolResult
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# FastMCP field names that carry the advertised JSON schema, newest first.
_SCHEMA_FIELDS = ("parameters", "input_schema")


@dataclass
class ToolSpec:
    name: str
    description: str
    input_schema: dict[str, object]
    handler: Callable[[dict[str, object]], "ToolResult | Awaitable[ToolResult]"]


class ToolResult(BaseModel):
    content: list[dict[str, object]]
    structured_content: dict[str, object] | None = None


class MCPServer:
    def __init__(self, name: str, version: str, instructions: str) -> None:
        self._server = FastMCP(name=name, version=version, instructions=instructions)
        self._tool_names: list[str] = []

    @property
    def tool_names(self) -> list[str]:
        return list(self._tool_names)

    def add_tool(self, tool: ToolSpec) -> None:
        fast_tool = FunctionTool.from_function(
            _bridge(tool),
            name=tool.name,
            description=tool.description,
        )
        _advertise_schema(fast_tool, tool.input_schema)
        self._server.add_tool(fast_tool)
        self._tool_names.append(tool.name)
        logger.debug("Registered tool %s", tool.name)

    def run(self) -> None:
        self._server.run()


def _parameter_names(schema: dict[str, object]) -> list[str]:
    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return []
    return [name for name in properties if isinstance(name, str)]


def _bridge(tool: ToolSpec) -> Callable[..., Awaitable[FastToolResult]]:
    """Wrap a payload-dict handler as a keyword-argument coroutine FastMCP can introspect."""

    async def call(**arguments: object) -> FastToolResult:
        payload = {name: value for name, value in arguments.items() if value is not None}
        outcome = tool.handler(payload)
        if _is_awaitable(outcome):
            outcome = await cast(Awaitable[ToolResult], outcome)
        if not isinstance(outcome, ToolResult):
            raise TypeError(f"Tool {tool.name} returned {type(outcome).__name__}, not ToolResult")
        return FastToolResult(
            content=outcome.content,
            structured_content=outcome.structured_content,
        )

    # FastMCP reads parameter names from the signature; no exec() needed.
    call.__signature__ = inspect.Signature(  # type: ignore[attr-defined]
        [
            inspect.Parameter(name, inspect.Parameter.KEYWORD_ONLY, default=None, annotation=object)
            for name in _parameter_names(tool.input_schema)
        ]
    )
    call.__name__ = "tool_" + tool.name.replace("-", "_").replace(".", "_")
    return call


def _advertise_schema(fast_tool: object, schema: dict[str, object]) -> None:
    fields = getattr(type(fast_tool), "model_fields", None)
    if not isinstance(fields, dict):
        return
    for field_name in _SCHEMA_FIELDS:
        if field_name in fields:
            setattr(fast_tool, field_name, schema)
            return


def _is_awaitable(value: object) -> bool:
    try:
        return inspect.isawaitable(value)
    except TypeError:
        return False
