"""JSON-RPC 2.0 wire models for the tool protocol."""

from __future__ import annotations

import json
from typing import Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, StrictStr

JSONRPC_VERSION = "2.0"


class McpError(BaseModel):
    """Structured JSON-RPC error."""

    PARSE_ERROR: ClassVar[int] = -32700
    INVALID_REQUEST: ClassVar[int] = -32600
    METHOD_NOT_FOUND: ClassVar[int] = -32601
    INVALID_PARAMS: ClassVar[int] = -32602
    INTERNAL_ERROR: ClassVar[int] = -32603

    model_config = ConfigDict(frozen=True)

    code: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            out["data"] = self.data
        return out


class McpRequest(BaseModel):
    """A JSON-RPC request. ``id`` and ``method`` must be strings."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    jsonrpc: Literal["2.0"]
    id: StrictStr
    method: StrictStr
    params: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id, "method": self.method}
        if self.params is not None:
            out["params"] = self.params
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str | bytes) -> McpRequest:
        """Parse a request. Raises ``json.JSONDecodeError`` or ``ValidationError``."""
        return cls.model_validate(json.loads(raw))


class McpResponse(BaseModel):
    """A JSON-RPC response; exactly one of ``result``/``error`` is on the wire."""

    model_config = ConfigDict(frozen=True)

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: str
    result: Any = None
    error: McpError | None = None

    @classmethod
    def success(cls, request_id: str, result: Any) -> McpResponse:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls, request_id: str, code: int, message: str, data: Any = None
    ) -> McpResponse:
        return cls(id=request_id, error=McpError(code=code, message=message, data=data))

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            out["error"] = self.error.to_dict()
        else:
            out["result"] = self.result
        return out

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_json(cls, raw: str | bytes) -> McpResponse:
        return cls.model_validate(json.loads(raw))


def make_request(
    request_id: str, method: str, params: dict[str, Any] | None = None
) -> McpRequest:
    """Build a well-formed request."""
    return McpRequest(jsonrpc=JSONRPC_VERSION, id=request_id, method=method, params=params)
