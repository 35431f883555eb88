"""Tests for the MCP SDK bridge."""

from __future__ import annotations

import json

from mcp.server import Server

from vertext.mcp.server import McpServer
from vertext.mcp.stdio import call_mcp_tool, create_stdio_server, list_mcp_tools
from vertext.tools.registry import ToolRegistry

from tests.fixtures.fakes import RecordingTool


def _dispatcher(*tools: RecordingTool) -> McpServer:
    registry = ToolRegistry()
    for tool in tools:
        registry.register(tool)
    return McpServer(registry)


class TestListMcpTools:
    def test_schema_from_definitions(self):
        (tool,) = list_mcp_tools(_dispatcher(RecordingTool("echo")))
        assert tool.name == "echo"
        assert tool.description == "Echoes its arguments"
        assert tool.inputSchema["required"] == ["text"]
        assert tool.inputSchema["properties"]["text"]["type"] == "string"

    def test_builtin_registry(self, server):
        names = [t.name for t in list_mcp_tools(server)]
        assert "search_messages" in names
        assert len(names) == 5


class TestCallMcpTool:
    async def test_success_is_json_text(self):
        (content,) = await call_mcp_tool(_dispatcher(RecordingTool("echo")), "echo", {"text": "hi"})
        assert content.type == "text"
        assert json.loads(content.text) == {"echo": {"text": "hi"}}

    async def test_failure_wrapped_as_error(self):
        (content,) = await call_mcp_tool(_dispatcher(), "missing", None)
        assert json.loads(content.text) == {"error": "Tool not found: missing"}

    async def test_missing_required(self):
        tool = RecordingTool("echo")
        (content,) = await call_mcp_tool(_dispatcher(tool), "echo", {})
        assert json.loads(content.text) == {"error": "Missing required parameters: text"}
        assert tool.call_log == []


def test_create_stdio_server():
    server = create_stdio_server(_dispatcher(RecordingTool("echo")))
    assert isinstance(server, Server)
    assert server.name == "vertext"
