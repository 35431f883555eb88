"""Tool protocol and data types.

Defines the ``Tool`` protocol that all tool implementations must
satisfy, plus data classes for parameters, definitions and results.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping


class ParameterType(enum.StrEnum):
    """JSON type of a tool parameter."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


@dataclass(frozen=True, slots=True)
class ToolParameter:
    """A single named parameter in a tool's schema."""

    name: str
    type: ParameterType
    description: str
    required: bool = False
    default: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "type": self.type.value,
            "description": self.description,
            "required": self.required,
        }
        if self.default is not None:
            data["default"] = self.default
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ToolParameter:
        return cls(
            name=data["name"],
            type=ParameterType(data["type"]),
            description=data.get("description", ""),
            required=bool(data.get("required", False)),
            default=data.get("default"),
        )


@dataclass(frozen=True, slots=True)
class ToolDefinition:
    """Read-only projection of a tool, as returned by ``tools/list``."""

    name: str
    description: str
    parameters: tuple[ToolParameter, ...] = ()

    @property
    def required_names(self) -> list[str]:
        return [p.name for p in self.parameters if p.required]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": [p.to_dict() for p in self.parameters],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ToolDefinition:
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            parameters=tuple(ToolParameter.from_dict(p) for p in data.get("parameters", [])),
        )

    def input_schema(self) -> dict[str, Any]:
        """JSON Schema equivalent of the parameter list."""
        properties: dict[str, Any] = {}
        for p in self.parameters:
            prop: dict[str, Any] = {"type": p.type.value, "description": p.description}
            if p.default is not None:
                prop["default"] = p.default
            properties[p.name] = prop
        schema: dict[str, Any] = {"type": "object", "properties": properties}
        required = self.required_names
        if required:
            schema["required"] = required
        return schema


@dataclass(frozen=True, slots=True)
class ToolResult:
    """Result from executing a tool.

    ``data`` is meaningful when ``success`` is true (and may be ``None``
    for side-effect-only tools); ``error`` when it is false.
    """

    success: bool
    data: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, data: Any = None) -> ToolResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str) -> ToolResult:
        return cls(success=False, error=error)


@runtime_checkable
class Tool(Protocol):
    """Protocol that all tool implementations must satisfy."""

    @property
    def name(self) -> str:
        """Unique name for this tool; the routing key."""
        ...

    @property
    def description(self) -> str:
        """Human-readable description of what the tool does."""
        ...

    @property
    def parameters(self) -> tuple[ToolParameter, ...]:
        """Ordered parameter schema."""
        ...

    async def execute(self, arguments: Mapping[str, Any]) -> ToolResult:
        """Execute the tool with the given arguments.

        Implementations catch their own failures and report them as
        ``ToolResult.fail``; anything that escapes is converted by the
        server.
        """
        ...


def to_definition(tool: Tool) -> ToolDefinition:
    """Project a tool onto its definition."""
    return ToolDefinition(
        name=tool.name,
        description=tool.description,
        parameters=tuple(tool.parameters),
    )


@dataclass(frozen=True, slots=True)
class ToolCall:
    """A tool invocation requested by a model or rule."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
