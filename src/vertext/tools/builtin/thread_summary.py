"""get_thread_summary tool: statistics and excerpts for one thread."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from vertext.core.errors import ArgumentError
from vertext.memory.models import MessageType, format_epoch_ms
from vertext.tools.arguments import Arguments
from vertext.tools.base import ParameterType, ToolParameter, ToolResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from vertext.memory.models import Message
    from vertext.memory.store import MessageStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 1000
EXCERPT_COUNT = 3
EXCERPT_LENGTH = 200
MS_PER_DAY = 1000 * 60 * 60 * 24


def _excerpt(message: Message) -> dict[str, str]:
    return {
        "date": format_epoch_ms(message.date),
        "type": "sent" if message.type == MessageType.SENT else "received",
        "body": message.body[:EXCERPT_LENGTH],
    }


def build_excerpts(ordered: list[Message]) -> list[dict[str, str]]:
    """First and last few messages, with a separator for the gap."""
    excerpts = [_excerpt(m) for m in ordered[:EXCERPT_COUNT]]
    omitted = len(ordered) - 2 * EXCERPT_COUNT
    if omitted > 0:
        excerpts.append({"separator": f"... ({omitted} messages omitted) ..."})
    if len(ordered) > EXCERPT_COUNT:
        tail = ordered[max(EXCERPT_COUNT, len(ordered) - EXCERPT_COUNT) :]
        excerpts.extend(_excerpt(m) for m in tail)
    return excerpts


def summarize(
    thread_id: int, recipient: str, messages: list[Message], *, include_excerpts: bool
) -> dict[str, Any]:
    ordered = sorted(messages, key=lambda m: (m.date, m.id))
    sent = sum(1 for m in messages if m.type == MessageType.SENT)
    received = sum(1 for m in messages if m.type == MessageType.INBOX)
    first, last = ordered[0].date, ordered[-1].date
    span_days = (last - first) // MS_PER_DAY

    description = (
        f"Conversation with {recipient} spanning {span_days} days. "
        f"Total of {len(messages)} messages: {sent} sent, {received} received. "
    )
    if span_days > 0:
        description += f"Average {len(messages) / span_days:.1f} messages per day."

    summary: dict[str, Any] = {
        "thread_id": thread_id,
        "recipient": recipient,
        "message_count": len(messages),
        "sent_count": sent,
        "received_count": received,
        "first_message_date": format_epoch_ms(first),
        "last_message_date": format_epoch_ms(last),
        "time_span_days": span_days,
        "average_message_length": sum(len(m.body) for m in messages) // len(messages),
        "description": description.strip(),
    }
    if include_excerpts:
        summary["excerpts"] = build_excerpts(ordered)
    return summary


class ThreadSummaryTool:
    """Summarises a thread: counts, date range and key excerpts.

    Implements the :class:`Tool` protocol.
    """

    def __init__(self, store: MessageStore) -> None:
        self._store = store

    @property
    def name(self) -> str:
        return "get_thread_summary"

    @property
    def description(self) -> str:
        return (
            "Generates a summary of a message thread including statistics, "
            "date range, message count and key excerpts"
        )

    @property
    def parameters(self) -> tuple[ToolParameter, ...]:
        return (
            ToolParameter(
                name="thread_id",
                type=ParameterType.NUMBER,
                description="The ID of the thread to summarize",
                required=True,
            ),
            ToolParameter(
                name="max_messages",
                type=ParameterType.NUMBER,
                description=f"Maximum number of messages to analyze (default: {DEFAULT_MAX_MESSAGES})",
                default=str(DEFAULT_MAX_MESSAGES),
            ),
            ToolParameter(
                name="include_excerpts",
                type=ParameterType.BOOLEAN,
                description="Include message excerpts in the summary (default: true)",
                default="true",
            ),
        )

    async def execute(self, arguments: Mapping[str, Any]) -> ToolResult:
        try:
            args = Arguments(arguments)
            thread_id = args.get_int("thread_id")
            if thread_id is None:
                return ToolResult.fail("thread_id is required and must be a number")
            max_messages = max(1, args.get_int("max_messages", DEFAULT_MAX_MESSAGES))
            include_excerpts = args.get_bool("include_excerpts", True)
            logger.debug("Summarizing thread %d (max=%d)", thread_id, max_messages)

            thread = await self._store.get_thread_by_id(thread_id)
            if thread is None:
                return ToolResult.fail(f"Thread not found: {thread_id}")
            recipient = thread.recipient_name or thread.recipient

            messages = await self._store.get_messages_for_thread(thread_id, max_messages)
        except ArgumentError as e:
            return ToolResult.fail(str(e))
        except Exception as e:
            logger.exception("Error generating thread summary")
            return ToolResult.fail(f"Failed to generate thread summary: {e}")

        if not messages:
            return ToolResult.ok(
                {
                    "thread_id": thread_id,
                    "recipient": recipient,
                    "message_count": 0,
                    "summary": "No messages in this thread",
                }
            )
        logger.debug("Summarized thread %d: %d messages", thread_id, len(messages))
        return ToolResult.ok(
            summarize(thread_id, recipient, messages, include_excerpts=bool(include_excerpts))
        )
