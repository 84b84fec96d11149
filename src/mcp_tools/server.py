"""
Bind the tool registry to a fastmcp server and expose it over streamable HTTP.

Each ToolSpec becomes a fastmcp Tool whose JSON schemas are generated from the spec's pydantic
contracts. Calls are delegated to ToolRegistry.execute; exceptions raised there are turned into
MCP error results by fastmcp.
"""

from __future__ import annotations

import logging
from typing import Any

from fastmcp import FastMCP
from fastmcp.tools import Tool
from fastmcp.tools.tool import ToolResult
from pydantic import Field

from config.settings import get_settings
from mcp_tools.registry import ToolRegistry, ToolSpec

_LOGGER = logging.getLogger("dvelop_mcp")

SERVER_INSTRUCTIONS = (
    "Tools for a d.velop cloud tenant: ask the d.velop pilot assistant, list directory users, "
    "and create or list tasks. Use list-users to find assignee IDs before create-task."
)


class RegistryTool(Tool):
    """fastmcp tool backed by a ToolRegistry entry."""

    registry: Any = Field(exclude=True, repr=False)

    @classmethod
    def from_spec(cls, spec: ToolSpec, registry: ToolRegistry) -> RegistryTool:
        return cls(
            name=spec.name,
            title=spec.title,
            description=spec.description,
            parameters=spec.input_schema(),
            output_schema=spec.output_schema(),
            registry=registry,
        )

    async def run(self, arguments: dict[str, Any]) -> ToolResult:
        reply = await self.registry.execute(self.name, arguments)
        return ToolResult(content=reply.text, structured_content=reply.structured)


def build_mcp_server(registry: ToolRegistry | None = None) -> FastMCP:
    """
    Create a FastMCP server with every registry tool attached.

    A new server is built per application instance; the streamable HTTP session manager it
    creates can only be started once.
    """
    s = get_settings()
    registry = registry or ToolRegistry()
    server = FastMCP(name=s.server_name, instructions=SERVER_INSTRUCTIONS)
    for spec in registry.list_specs():
        server.add_tool(RegistryTool.from_spec(spec, registry))
    _LOGGER.info(
        "mcp.server: name=%s tools=%s", s.server_name, [spec.name for spec in registry.list_specs()]
    )
    return server


def build_mcp_http_app(server: FastMCP):
    """
    Streamable HTTP ASGI app for `server`: stateless (no MCP session ids) with plain JSON
    responses, served at settings.mcp_path.
    """
    s = get_settings()
    return server.http_app(path=s.mcp_path, stateless_http=True, json_response=True)


__all__ = ["RegistryTool", "build_mcp_server", "build_mcp_http_app", "SERVER_INSTRUCTIONS"]
