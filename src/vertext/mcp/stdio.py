"""Serve the tool registry over stdio with the official MCP SDK."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

if TYPE_CHECKING:
    from vertext.mcp.server import McpServer

SERVER_NAME = "vertext"


def list_mcp_tools(dispatcher: McpServer) -> list[Tool]:
    """Registry definitions as MCP SDK tools."""
    return [
        Tool(name=d.name, description=d.description, inputSchema=d.input_schema())
        for d in dispatcher.registry.list_definitions()
    ]


async def call_mcp_tool(
    dispatcher: McpServer, name: str, arguments: dict[str, Any] | None
) -> list[TextContent]:
    """Run a tool through the dispatcher's direct path and wrap the result."""
    result = await dispatcher.call_tool(name, arguments or {})
    if result.success:
        text = json.dumps(result.data, default=str)
    else:
        text = json.dumps({"error": result.error})
    return [TextContent(type="text", text=text)]


def create_stdio_server(dispatcher: McpServer) -> Server:
    """Build an SDK server whose handlers delegate to *dispatcher*."""
    server = Server(SERVER_NAME)

    @server.list_tools()  # type: ignore[no-untyped-call, untyped-decorator]
    async def list_tools() -> list[Tool]:
        return list_mcp_tools(dispatcher)

    @server.call_tool()  # type: ignore[untyped-decorator]
    async def call_tool(name: str, arguments: dict) -> list[TextContent]:  # type: ignore[type-arg]
        return await call_mcp_tool(dispatcher, name, arguments)

    return server


async def run_stdio(dispatcher: McpServer) -> None:
    """Start the MCP server on stdio."""
    server = create_stdio_server(dispatcher)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
