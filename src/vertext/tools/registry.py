"""Tool registry: the authoritative name-to-tool mapping.

Registration happens once at startup, before any call traffic; reads
take no lock.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from vertext.tools.base import to_definition

if TYPE_CHECKING:
    from vertext.tools.base import Tool, ToolDefinition

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Registry for managing available tools.

    Supports registration, lookup by name and listing definitions in
    registration order.
    """

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        """Register a tool. A tool with the same name is replaced."""
        if tool.name in self._tools:
            logger.warning("Replacing registered tool: %s", tool.name)
        else:
            logger.debug("Registered tool: %s", tool.name)
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_definitions(self) -> list[ToolDefinition]:
        """Return tool definitions for all registered tools."""
        return [to_definition(t) for t in self._tools.values()]

    def list_names(self) -> list[str]:
        return list(self._tools.keys())

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: str) -> bool:
        return name in self._tools
