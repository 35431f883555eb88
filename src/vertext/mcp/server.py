"""Protocol dispatcher: routes JSON-RPC requests to registered tools.

The dispatcher is stateless per request.  Every failure, from an
unparsable body to a tool blowing up, becomes a structured error
response; nothing propagates to the caller.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from vertext import __version__
from vertext.mcp.models import McpError, McpRequest, McpResponse
from vertext.tools.base import ToolResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from vertext.tools.base import Tool
    from vertext.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

BUILTIN_SERVER_URL = "builtin://vertext"
SERVER_NAME = "Vertext Built-in MCP Server"
METHOD_LIST_TOOLS = "tools/list"
METHOD_CALL_TOOL = "tools/call"
UNKNOWN_ID = "unknown"


class _RequestFailed(Exception):
    """Internal short-circuit carrying an error response."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def _missing_required(tool: Tool, arguments: Mapping[str, Any]) -> list[str]:
    return [p.name for p in tool.parameters if p.required and arguments.get(p.name) is None]


class McpServer:
    """Routes ``tools/list`` and ``tools/call`` against a :class:`ToolRegistry`."""

    def __init__(self, registry: ToolRegistry, *, name: str = SERVER_NAME) -> None:
        self._registry = registry
        self._name = name

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def server_info(self) -> dict[str, Any]:
        return {
            "name": self._name,
            "version": __version__,
            "url": BUILTIN_SERVER_URL,
            "tools": self._registry.list_names(),
            "methods": [METHOD_LIST_TOOLS, METHOD_CALL_TOOL],
        }

    # ── Direct path ──────────────────────────────────────────────

    async def call_tool(self, name: str, arguments: Mapping[str, Any] | None = None) -> ToolResult:
        """Validate and execute a tool without the JSON-RPC envelope. Never raises."""
        args = dict(arguments or {})
        tool = self._registry.get(name)
        if tool is None:
            return ToolResult.fail(f"Tool not found: {name}")
        missing = _missing_required(tool, args)
        if missing:
            return ToolResult.fail(f"Missing required parameters: {', '.join(missing)}")
        try:
            return await tool.execute(args)
        except Exception as e:
            logger.exception("Tool %s raised", name)
            return ToolResult.fail(f"Tool execution failed: {e}")

    # ── Wire path ────────────────────────────────────────────────

    async def handle_request(self, raw: str | bytes) -> str:
        """Decode one request, dispatch it and encode the response."""
        try:
            payload = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            response = McpResponse.failure(UNKNOWN_ID, McpError.PARSE_ERROR, f"Parse error: {e}")
            return response.to_json()
        except RecursionError:
            response = McpResponse.failure(
                UNKNOWN_ID, McpError.PARSE_ERROR, "Parse error: nesting too deep"
            )
            return response.to_json()
        except Exception as e:
            logger.exception("Unexpected failure decoding request")
            response = McpResponse.failure(
                UNKNOWN_ID, McpError.INTERNAL_ERROR, f"Internal error: {e}"
            )
            return response.to_json()

        try:
            request = McpRequest.model_validate(payload)
        except RecursionError:
            response = McpResponse.failure(
                UNKNOWN_ID, McpError.INVALID_REQUEST, "Invalid request: nesting too deep"
            )
            return response.to_json()
        except ValidationError as e:
            request_id = payload.get("id") if isinstance(payload, dict) else None
            if not isinstance(request_id, str):
                request_id = UNKNOWN_ID
            first = e.errors()[0] if e.errors() else {}
            detail = ".".join(str(part) for part in first.get("loc", ())) or "request"
            response = McpResponse.failure(
                request_id, McpError.INVALID_REQUEST, f"Invalid request: {detail}"
            )
            return response.to_json()

        response = await self.handle(request)
        try:
            return response.to_json()
        except (TypeError, ValueError, RecursionError) as e:
            logger.exception("Could not encode response for %s", request.id)
            return McpResponse.failure(
                request.id, McpError.INTERNAL_ERROR, f"Internal error: {e}"
            ).to_json()

    async def handle(self, request: McpRequest) -> McpResponse:
        """Dispatch a parsed request."""
        logger.debug("Handling %s (id=%s)", request.method, request.id)
        try:
            result = await self._route(request)
        except _RequestFailed as e:
            return McpResponse.failure(request.id, e.code, e.message, e.data)
        except Exception as e:
            logger.exception("Unexpected error handling %s", request.method)
            return McpResponse.failure(request.id, McpError.INTERNAL_ERROR, f"Internal error: {e}")
        return McpResponse.success(request.id, result)

    async def _route(self, request: McpRequest) -> Any:
        if request.method == METHOD_LIST_TOOLS:
            return {"tools": [d.to_dict() for d in self._registry.list_definitions()]}
        if request.method == METHOD_CALL_TOOL:
            return await self._call(request.params)
        raise _RequestFailed(McpError.METHOD_NOT_FOUND, f"Method not found: {request.method}")

    async def _call(self, params: dict[str, Any] | None) -> Any:
        if params is None:
            raise _RequestFailed(McpError.INVALID_PARAMS, "Missing params")

        name = params.get("name")
        if not isinstance(name, str):
            raise _RequestFailed(McpError.INVALID_PARAMS, "Missing tool name")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        elif not isinstance(arguments, dict):
            raise _RequestFailed(McpError.INVALID_PARAMS, "Arguments must be an object")

        tool = self._registry.get(name)
        if tool is None:
            raise _RequestFailed(McpError.METHOD_NOT_FOUND, f"Tool not found: {name}")

        missing = _missing_required(tool, arguments)
        if missing:
            raise _RequestFailed(
                McpError.INVALID_PARAMS,
                f"Missing required parameters: {', '.join(missing)}",
                {"missing": missing},
            )

        try:
            result = await tool.execute(arguments)
        except Exception as e:
            logger.exception("Tool %s raised", name)
            raise _RequestFailed(
                McpError.INTERNAL_ERROR, f"Error executing tool: {e}"
            ) from e

        if not result.success:
            raise _RequestFailed(McpError.INTERNAL_ERROR, result.error or "Tool execution failed")
        return result.data
