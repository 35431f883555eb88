"""list_threads tool: conversation threads, pinned first then by recency."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from vertext.core.errors import ArgumentError
from vertext.tools.arguments import Arguments, clamp
from vertext.tools.base import ParameterType, ToolParameter, ToolResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from vertext.memory.models import Thread
    from vertext.memory.store import MessageStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 200


def thread_to_dict(thread: Thread) -> dict[str, Any]:
    return {
        "thread_id": thread.id,
        "recipient": thread.recipient,
        "recipient_name": thread.recipient_name or thread.recipient,
        "last_message": thread.last_message or "",
        "last_message_date": thread.last_message_date,
        "message_count": thread.message_count,
        "unread_count": thread.unread_count,
        "is_pinned": thread.is_pinned,
        "is_archived": thread.is_archived,
        "is_muted": thread.is_muted,
    }


class ListThreadsTool:
    """Lists conversation threads.

    Implements the :class:`Tool` protocol.
    """

    def __init__(
        self,
        store: MessageStore,
        *,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ) -> None:
        self._store = store
        self._default_limit = default_limit
        self._max_limit = max_limit

    @property
    def name(self) -> str:
        return "list_threads"

    @property
    def description(self) -> str:
        return (
            "Lists all message conversations/threads with metadata including "
            "recipient, last message, unread count and timestamps"
        )

    @property
    def parameters(self) -> tuple[ToolParameter, ...]:
        return (
            ToolParameter(
                name="limit",
                type=ParameterType.NUMBER,
                description=(
                    f"Maximum number of threads to return "
                    f"(default: {self._default_limit}, max: {self._max_limit})"
                ),
                default=str(self._default_limit),
            ),
            ToolParameter(
                name="include_archived",
                type=ParameterType.BOOLEAN,
                description="Include archived threads (default: false)",
                default="false",
            ),
        )

    async def execute(self, arguments: Mapping[str, Any]) -> ToolResult:
        try:
            args = Arguments(arguments)
            limit = clamp(args.get_int("limit", self._default_limit), 1, self._max_limit)
            include_archived = args.get_bool("include_archived", False)
            logger.debug(
                "Listing threads: limit=%d, include_archived=%s", limit, include_archived
            )

            threads = await self._store.list_threads(limit, include_archived=include_archived)
            formatted = [thread_to_dict(t) for t in threads]
        except ArgumentError as e:
            return ToolResult.fail(str(e))
        except Exception as e:
            logger.exception("Error listing threads")
            return ToolResult.fail(f"Failed to list threads: {e}")

        logger.debug("Listed %d threads", len(formatted))
        return ToolResult.ok(
            {
                "threads": formatted,
                "count": len(formatted),
                "limit": limit,
                "include_archived": include_archived,
            }
        )
