"""JSON-RPC tool protocol: wire models, dispatcher and stdio bridge."""

from vertext.mcp.models import McpError, McpRequest, McpResponse, make_request
from vertext.mcp.server import (
    BUILTIN_SERVER_URL,
    METHOD_CALL_TOOL,
    METHOD_LIST_TOOLS,
    McpServer,
)

__all__ = [
    "BUILTIN_SERVER_URL",
    "METHOD_CALL_TOOL",
    "METHOD_LIST_TOOLS",
    "McpError",
    "McpRequest",
    "McpResponse",
    "McpServer",
    "make_request",
]
