"""Built-in tools exposed over the protocol dispatcher."""

from __future__ import annotations

from typing import TYPE_CHECKING

from vertext.tools.builtin.list_messages import ListMessagesTool
from vertext.tools.builtin.list_threads import ListThreadsTool
from vertext.tools.builtin.search_messages import SearchMessagesTool
from vertext.tools.builtin.send_message import SendMessageTool
from vertext.tools.builtin.thread_summary import ThreadSummaryTool
from vertext.tools.registry import ToolRegistry

if TYPE_CHECKING:
    from vertext.config.schema import SearchConfig, ToolsConfig
    from vertext.embedding.index import EmbeddingIndex
    from vertext.memory.store import MessageStore
    from vertext.messaging import MessagingService

__all__ = [
    "ListMessagesTool",
    "ListThreadsTool",
    "SearchMessagesTool",
    "SendMessageTool",
    "ThreadSummaryTool",
    "create_default_registry",
]


def create_default_registry(
    store: MessageStore,
    index: EmbeddingIndex,
    messaging: MessagingService,
    *,
    tools_config: ToolsConfig | None = None,
    search_config: SearchConfig | None = None,
) -> ToolRegistry:
    """Build a registry holding every built-in tool."""
    from vertext.config.schema import SearchConfig, ToolsConfig

    tools_cfg = tools_config or ToolsConfig()
    search_cfg = search_config or SearchConfig()

    registry = ToolRegistry()
    registry.register(
        ListThreadsTool(
            store,
            default_limit=tools_cfg.list_threads_default,
            max_limit=tools_cfg.list_threads_max,
        )
    )
    registry.register(
        ListMessagesTool(
            store,
            default_limit=tools_cfg.list_messages_default,
            max_limit=tools_cfg.list_messages_max,
        )
    )
    registry.register(SendMessageTool(messaging, max_length=tools_cfg.max_message_length))
    registry.register(
        SearchMessagesTool(
            index,
            store,
            default_max_results=search_cfg.default_max_results,
            max_results_cap=search_cfg.max_results_cap,
            default_threshold=search_cfg.default_threshold,
        )
    )
    registry.register(ThreadSummaryTool(store))
    return registry
