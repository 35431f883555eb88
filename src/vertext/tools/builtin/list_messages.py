"""list_messages tool: recent messages, optionally within one thread."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from vertext.core.errors import ArgumentError
from vertext.memory.models import format_epoch_ms, type_label
from vertext.tools.arguments import Arguments, clamp
from vertext.tools.base import ParameterType, ToolParameter, ToolResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from vertext.memory.models import Message
    from vertext.memory.store import MessageStore

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


def message_to_dict(message: Message) -> dict[str, Any]:
    return {
        "message_id": message.id,
        "thread_id": message.thread_id,
        "address": message.address,
        "body": message.body,
        "date": message.date,
        "formatted_date": format_epoch_ms(message.date),
        "type": type_label(message.type),
        "read": message.is_read,
    }


class ListMessagesTool:
    """Lists messages, newest first.

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
        return "list_messages"

    @property
    def description(self) -> str:
        return (
            "Lists messages from a specific thread or recent messages across "
            "all threads. Returns message content, sender, timestamp and type."
        )

    @property
    def parameters(self) -> tuple[ToolParameter, ...]:
        return (
            ToolParameter(
                name="thread_id",
                type=ParameterType.NUMBER,
                description=(
                    "The thread ID to list messages from. "
                    "If omitted, returns recent messages from all threads"
                ),
            ),
            ToolParameter(
                name="limit",
                type=ParameterType.NUMBER,
                description=(
                    f"Maximum number of messages to return "
                    f"(default: {self._default_limit}, max: {self._max_limit})"
                ),
                default=str(self._default_limit),
            ),
        )

    async def execute(self, arguments: Mapping[str, Any]) -> ToolResult:
        try:
            args = Arguments(arguments)
            thread_id = args.get_int("thread_id")
            limit = clamp(args.get_int("limit", self._default_limit), 1, self._max_limit)
            logger.debug("Listing messages: thread_id=%s, limit=%d", thread_id, limit)

            if thread_id is not None:
                messages = await self._store.get_messages_for_thread(thread_id, limit)
            else:
                messages = await self._store.get_recent_messages(limit)
            formatted = [message_to_dict(m) for m in messages]
        except ArgumentError as e:
            return ToolResult.fail(str(e))
        except Exception as e:
            logger.exception("Error listing messages")
            return ToolResult.fail(f"Failed to list messages: {e}")

        logger.debug("Listed %d messages", len(formatted))
        return ToolResult.ok(
            {
                "messages": formatted,
                "count": len(formatted),
                "thread_id": thread_id,
                "limit": limit,
            }
        )
