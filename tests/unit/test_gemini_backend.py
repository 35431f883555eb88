"""Tests for the Gemini retrieval-augmented backend."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from vertext.assistant.backend import BackendStatus
from vertext.assistant.gemini import (
    NO_CONTEXT,
    GeminiRagBackend,
    build_context,
    format_relative,
    needs_message_context,
    wrap_with_context,
)
from vertext.core.errors import BackendAuthError, BackendUnavailableError
from vertext.core.retry import RetryPolicy
from vertext.mcp.server import McpServer
from vertext.tools.base import ToolResult
from vertext.tools.registry import ToolRegistry

from tests.fixtures.fakes import RecordingTool, make_genai_error

NOW = 1_700_000_000_000
NO_WAIT = RetryPolicy("test", max_retries=2, base_delay=0.0, jitter=False)

HIT = {
    "message_id": 1,
    "thread_id": 1,
    "body": "The invoice is $80",
    "sender": "+15550001",
    "type": "received",
    "date": NOW - 2 * 3_600_000,
    "similarity": 0.91,
}


# ── Helpers ──────────────────────────────────────────────────────


def _make_response(text: str = "Hello") -> MagicMock:
    resp = MagicMock()
    resp.text = text
    return resp


def _make_client(response: Any = None, side_effect: Any = None) -> MagicMock:
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(
        return_value=response if response is not None else _make_response(),
        side_effect=side_effect,
    )
    return client


def _dispatcher(results: list[dict] | None = None, *, fail: bool = False) -> tuple[McpServer, RecordingTool]:
    result = ToolResult.fail("index offline") if fail else ToolResult.ok({"results": results or []})
    tool = RecordingTool("search_messages", parameters=(), result=result)
    registry = ToolRegistry()
    registry.register(tool)
    return McpServer(registry), tool


async def _ready(backend: GeminiRagBackend) -> GeminiRagBackend:
    await backend.initialize()
    await backend.start_conversation()
    return backend


# ── Context helpers ──────────────────────────────────────────────


class TestNeedsContext:
    @pytest.mark.parametrize(
        "text", ["What did Alice say?", "find the invoice", "when did we talk", "Show texts"]
    )
    def test_message_questions(self, text):
        assert needs_message_context(text)

    @pytest.mark.parametrize("text", ["hello there", "tell me a joke"])
    def test_small_talk(self, text):
        assert not needs_message_context(text)


class TestFormatRelative:
    @pytest.mark.parametrize(
        ("offset", "expected"),
        [
            (30_000, "Just now"),
            (5 * 60_000, "5 minutes ago"),
            (2 * 3_600_000, "2 hours ago"),
            (3 * 86_400_000, "3 days ago"),
        ],
    )
    def test_recent(self, offset, expected):
        assert format_relative(NOW - offset, NOW) == expected

    def test_unknown(self):
        assert format_relative(0, NOW) == "Unknown date"

    def test_old_dates_are_absolute(self):
        old = NOW - 30 * 86_400_000
        expected = datetime.fromtimestamp(old / 1000).strftime("%b %d, %Y")
        assert format_relative(old, NOW) == expected


class TestBuildContext:
    def test_empty(self):
        assert build_context([]) == NO_CONTEXT

    def test_numbered_entries(self):
        sent = dict(HIT, type="sent", body="Paid it", similarity=0.5)
        context = build_context([HIT, sent], now=NOW)
        lines = context.splitlines()
        assert lines[0] == "Here are the relevant text messages:"
        assert lines[2] == "1. From +15550001 (2 hours ago):"
        assert lines[3] == '   "The invoice is $80"'
        assert lines[4] == "   (Relevance: 91%)"
        assert "2. You sent to +15550001 (2 hours ago):" in context

    def test_unknown_type(self):
        context = build_context([dict(HIT, type="unknown")], now=NOW)
        assert "1. Message with +15550001" in context

    def test_wrap(self):
        assert wrap_with_context("hi", NO_CONTEXT) == "hi"
        wrapped = wrap_with_context("hi", "CTX")
        assert wrapped == "Context from user's messages:\nCTX\n\nUser: hi"


# ── Lifecycle ────────────────────────────────────────────────────


class TestLifecycle:
    async def test_no_credentials_not_available(self):
        backend = GeminiRagBackend(_dispatcher()[0])
        assert await backend.check_availability() is BackendStatus.NOT_AVAILABLE

    async def test_availability_check_succeeds(self):
        client = _make_client()
        backend = GeminiRagBackend(_dispatcher()[0], client=client, model="gemini-2.5-flash")
        assert await backend.check_availability() is BackendStatus.AVAILABLE
        call = client.aio.models.generate_content.call_args
        assert call.kwargs["model"] == "gemini-2.5-flash"
        assert call.kwargs["config"].max_output_tokens == 1

    async def test_failed_availability_check_is_error(self):
        client = _make_client(side_effect=RuntimeError("network down"))
        backend = GeminiRagBackend(_dispatcher()[0], client=client)
        assert await backend.check_availability() is BackendStatus.ERROR

    async def test_initialize_requires_availability(self):
        backend = GeminiRagBackend(_dispatcher()[0])
        with pytest.raises(BackendUnavailableError, match="not_available"):
            await backend.initialize()

    async def test_start_requires_initialize(self):
        backend = GeminiRagBackend(_dispatcher()[0], client=_make_client())
        with pytest.raises(BackendUnavailableError, match="not initialized"):
            await backend.start_conversation()

    async def test_send_requires_conversation(self):
        backend = GeminiRagBackend(_dispatcher()[0], client=_make_client())
        await backend.initialize()
        with pytest.raises(BackendUnavailableError, match="No active conversation"):
            await backend.send_message_in_conversation("hi")

    async def test_end_conversation_clears_history(self):
        backend = await _ready(GeminiRagBackend(_dispatcher()[0], client=_make_client()))
        await backend.send_message_in_conversation("hello there")
        await backend.end_conversation()
        assert backend.history == []
        with pytest.raises(BackendUnavailableError):
            await backend.send_message_in_conversation("again")


# ── Messages ─────────────────────────────────────────────────────


class TestSendMessage:
    async def test_plain_chat(self):
        client = _make_client(_make_response("Hi!"))
        dispatcher, tool = _dispatcher()
        backend = await _ready(GeminiRagBackend(dispatcher, client=client))

        answer = await backend.send_message_in_conversation("hello there")

        assert answer.answer == "Hi!"
        assert answer.context_messages == 0
        assert answer.tools_used == ["gemini"]
        assert tool.call_log == []
        kwargs = client.aio.models.generate_content.call_args.kwargs
        assert kwargs["contents"] == [{"role": "user", "parts": [{"text": "hello there"}]}]
        assert "text messages" in kwargs["config"].system_instruction

    async def test_context_retrieval(self):
        client = _make_client(_make_response("It was $80."))
        dispatcher, tool = _dispatcher([HIT])
        backend = await _ready(GeminiRagBackend(dispatcher, client=client, rag_threshold=0.3))

        answer = await backend.send_message_in_conversation("find the invoice", 7)

        assert answer.tools_used == ["search_messages", "gemini"]
        assert answer.context_messages == 1
        assert tool.call_log == [
            {"query": "find the invoice", "max_results": 7, "similarity_threshold": 0.3}
        ]
        prompt = client.aio.models.generate_content.call_args.kwargs["contents"][-1]["parts"][0]["text"]
        assert prompt.startswith("Context from user's messages:")
        assert '"The invoice is $80"' in prompt
        assert prompt.endswith("User: find the invoice")

    async def test_failed_search_means_no_context(self):
        client = _make_client()
        dispatcher, _ = _dispatcher(fail=True)
        backend = await _ready(GeminiRagBackend(dispatcher, client=client))
        answer = await backend.send_message_in_conversation("find the invoice")
        assert answer.context_messages == 0
        prompt = client.aio.models.generate_content.call_args.kwargs["contents"][-1]["parts"][0]["text"]
        assert prompt == "find the invoice"

    async def test_history_carries_roles(self):
        client = _make_client(_make_response("Sure"))
        backend = await _ready(GeminiRagBackend(_dispatcher()[0], client=client))
        await backend.send_message_in_conversation("hello there")
        await backend.send_message_in_conversation("tell me a joke")
        contents = client.aio.models.generate_content.call_args.kwargs["contents"]
        assert [c["role"] for c in contents] == ["user", "model", "user"]
        assert backend.history[-1] == ("assistant", "Sure")

    async def test_history_window_is_bounded(self):
        client = _make_client(_make_response("ok"))
        backend = await _ready(GeminiRagBackend(_dispatcher()[0], client=client))
        for i in range(30):
            await backend.send_message_in_conversation(f"hello {i}", max_context_messages=10)

        contents = client.aio.models.generate_content.call_args.kwargs["contents"]
        assert len(contents) == 21
        assert contents[0]["parts"][0]["text"] == "hello 19"
        assert contents[-1]["parts"][0]["text"] == "hello 29"
        assert len(backend.history) == 22

    async def test_zero_context_sends_only_the_new_turn(self):
        client = _make_client(_make_response("ok"))
        backend = await _ready(GeminiRagBackend(_dispatcher()[0], client=client))
        await backend.send_message_in_conversation("hello there", max_context_messages=0)
        await backend.send_message_in_conversation("hello again", max_context_messages=0)
        contents = client.aio.models.generate_content.call_args.kwargs["contents"]
        assert contents == [{"role": "user", "parts": [{"text": "hello again"}]}]

    async def test_retries_server_errors(self):
        client = _make_client(
            side_effect=[
                _make_response("ping"),
                make_genai_error("ServerError", "503 overloaded"),
                _make_response("Recovered"),
            ]
        )
        backend = await _ready(GeminiRagBackend(_dispatcher()[0], client=client, retry=NO_WAIT))
        answer = await backend.send_message_in_conversation("hello there")
        assert answer.answer == "Recovered"

    async def test_auth_error_propagates(self):
        client = _make_client(
            side_effect=[_make_response("ping"), make_genai_error("ClientError", "API key not valid")]
        )
        backend = await _ready(GeminiRagBackend(_dispatcher()[0], client=client, retry=NO_WAIT))
        with pytest.raises(BackendAuthError):
            await backend.send_message_in_conversation("hello there")
        assert backend.history == []
