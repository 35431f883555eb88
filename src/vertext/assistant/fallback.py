"""Deterministic fallback: keyword rules mapped onto tool calls.

Used when no generative backend is available, or for a single turn
when the backend fails.  Classification is plain substring matching on
the lowercased input; the first rule that matches wins.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from vertext.assistant.backend import AssistantReply
from vertext.tools.base import ToolCall

if TYPE_CHECKING:
    from vertext.mcp.server import McpServer

logger = logging.getLogger(__name__)

SEARCH_TOOL = "search_messages"
LIST_THREADS_TOOL = "list_threads"
LIST_MESSAGES_TOOL = "list_messages"

LIST_LIMIT = 20
SEARCH_MAX_RESULTS = 10
SEARCH_THRESHOLD = 0.15
SHOWN_RESULTS = 5
SHOWN_ITEMS = 10

SUMMARY_CLARIFICATION = (
    "To get a thread summary, please specify which conversation you'd like "
    "summarized. You can say 'summarize conversation with [contact name]' or "
    "provide a thread ID."
)

_COMMAND_RE = re.compile(r"(search|find|look for|show me)\s+", re.IGNORECASE)
_SUBJECT_RE = re.compile(r"(messages|texts|conversations)\s+(about|with|from)\s+", re.IGNORECASE)


def extract_search_query(text: str) -> str:
    """Strip command words: ``"find messages about invoices"`` -> ``"invoices"``."""
    return _SUBJECT_RE.sub("", _COMMAND_RE.sub("", text)).strip()


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("..." if len(text) > limit else "")


@dataclass(frozen=True, slots=True)
class FallbackPlan:
    """The tool call (or canned reply) chosen for an input."""

    call: ToolCall | None
    reply: str | None = None

    @property
    def tool(self) -> str | None:
        return self.call.name if self.call is not None else None

    @property
    def arguments(self) -> dict[str, Any]:
        return self.call.arguments if self.call is not None else {}


def classify(
    text: str,
    *,
    search_max_results: int = SEARCH_MAX_RESULTS,
    search_threshold: float = SEARCH_THRESHOLD,
) -> FallbackPlan:
    lowered = text.lower()

    def search(query: str) -> FallbackPlan:
        return FallbackPlan(
            ToolCall(
                SEARCH_TOOL,
                {
                    "query": query,
                    "max_results": search_max_results,
                    "similarity_threshold": search_threshold,
                },
            )
        )

    if "search" in lowered or "find" in lowered:
        return search(extract_search_query(text) or text)
    if "list" in lowered and ("conversation" in lowered or "thread" in lowered):
        return FallbackPlan(ToolCall(LIST_THREADS_TOOL, {"limit": LIST_LIMIT}))
    if "summar" in lowered:
        return FallbackPlan(None, reply=SUMMARY_CLARIFICATION)
    if "recent" in lowered or "latest" in lowered:
        return FallbackPlan(ToolCall(LIST_MESSAGES_TOOL, {"limit": LIST_LIMIT}))
    return search(text)


# ── Renderers ────────────────────────────────────────────────


def render_search_results(results: list[dict[str, Any]], query: str) -> str:
    if not results:
        return f'I couldn\'t find any messages matching "{query}". Try a different search term.'
    lines = [f'Found {len(results)} messages matching "{query}":', ""]
    for i, hit in enumerate(results[:SHOWN_RESULTS], start=1):
        sender = hit.get("sender") or "Unknown"
        percent = round(float(hit.get("similarity", 0.0)) * 100)
        lines.append(f"{i}. From {sender} ({percent}% match)")
        lines.append(f'   "{_truncate(hit.get("body", ""), 100)}"')
        lines.append("")
    if len(results) > SHOWN_RESULTS:
        lines.append(f"... and {len(results) - SHOWN_RESULTS} more results")
    return "\n".join(lines).rstrip()


def render_thread_list(threads: list[dict[str, Any]]) -> str:
    lines = ["Here are your conversations:", ""]
    for i, thread in enumerate(threads[:SHOWN_ITEMS], start=1):
        name = thread.get("recipient_name") or thread.get("recipient") or "Unknown"
        unread = int(thread.get("unread_count") or 0)
        suffix = f" ({unread} unread)" if unread > 0 else ""
        lines.append(f"{i}. {name}{suffix}")
        lines.append(f"   {thread.get('message_count', 0)} messages")
        lines.append("")
    if len(threads) > SHOWN_ITEMS:
        lines.append(f"... and {len(threads) - SHOWN_ITEMS} more conversations")
    return "\n".join(lines).rstrip()


def render_message_list(messages: list[dict[str, Any]]) -> str:
    lines = ["Here are your recent messages:", ""]
    for i, message in enumerate(messages[:SHOWN_ITEMS], start=1):
        prefix = "To" if message.get("type") == "sent" else "From"
        lines.append(f"{i}. {prefix} {message.get('address') or 'Unknown'}")
        lines.append(f'   "{_truncate(message.get("body", ""), 80)}"')
        lines.append("")
    if len(messages) > SHOWN_ITEMS:
        lines.append(f"... and {len(messages) - SHOWN_ITEMS} more messages")
    return "\n".join(lines).rstrip()


class FallbackAssistant:
    """Answers a turn by classifying it and calling one tool."""

    def __init__(
        self,
        dispatcher: McpServer,
        *,
        search_max_results: int = SEARCH_MAX_RESULTS,
        search_threshold: float = SEARCH_THRESHOLD,
    ) -> None:
        self._dispatcher = dispatcher
        self._search_max_results = search_max_results
        self._search_threshold = search_threshold

    async def respond(self, text: str) -> AssistantReply:
        plan = classify(
            text,
            search_max_results=self._search_max_results,
            search_threshold=self._search_threshold,
        )
        call = plan.call
        if call is None:
            return AssistantReply(plan.reply or "")

        logger.debug("Fallback routing %r to %s", text, call.name)
        result = await self._dispatcher.call_tool(call.name, call.arguments)
        data = result.data if isinstance(result.data, dict) else {}
        error = result.error or "Unknown error"

        if call.name == SEARCH_TOOL:
            if not result.success:
                return AssistantReply(f"Search failed: {error}", SEARCH_TOOL)
            query = call.arguments["query"]
            return AssistantReply(
                render_search_results(data.get("results") or [], query), SEARCH_TOOL
            )
        if call.name == LIST_THREADS_TOOL:
            if not result.success:
                return AssistantReply(f"Failed to list threads: {error}", LIST_THREADS_TOOL)
            return AssistantReply(render_thread_list(data.get("threads") or []), LIST_THREADS_TOOL)
        if not result.success:
            return AssistantReply(f"Failed to list messages: {error}", LIST_MESSAGES_TOOL)
        return AssistantReply(render_message_list(data.get("messages") or []), LIST_MESSAGES_TOOL)
