"""Tests for the conversation orchestrator."""

from __future__ import annotations

import asyncio

import pytest

from vertext.assistant.backend import AssistantAnswer, BackendStatus, GenerativeBackend
from vertext.assistant.fallback import FallbackAssistant
from vertext.assistant.orchestrator import ConversationOrchestrator, OrchestratorState
from vertext.mcp.server import McpServer
from vertext.tools.base import ParameterType, ToolParameter
from vertext.tools.registry import ToolRegistry

from tests.fixtures.fakes import FakeBackend, RecordingTool


class ExplodingFallback(FallbackAssistant):
    async def respond(self, text):
        raise RuntimeError("rules broke")


class StallingBackend(FakeBackend):
    """Never answers *stall_on*; every other text is echoed."""

    def __init__(self, stall_on: str) -> None:
        super().__init__()
        self.stall_on = stall_on
        self.entered = asyncio.Event()

    async def send_message_in_conversation(self, text, max_context_messages=10):
        if text == self.stall_on:
            self.entered.set()
            await asyncio.Event().wait()
        return await super().send_message_in_conversation(text, max_context_messages)


def _search_only() -> tuple[McpServer, RecordingTool]:
    tool = RecordingTool(
        "search_messages",
        parameters=(ToolParameter("query", ParameterType.STRING, "q", required=True),),
    )
    registry = ToolRegistry()
    registry.register(tool)
    return McpServer(registry), tool


def test_fake_backend_satisfies_protocol():
    assert isinstance(FakeBackend(), GenerativeBackend)


# ── Startup ──────────────────────────────────────────────────────


class TestStart:
    async def test_no_backend_is_fallback(self, server):
        orchestrator = ConversationOrchestrator(server)
        assert orchestrator.state is OrchestratorState.UNINITIALIZED
        assert await orchestrator.start() is OrchestratorState.FALLBACK
        assert not orchestrator.uses_backend

    async def test_available_backend(self, server):
        backend = FakeBackend()
        orchestrator = ConversationOrchestrator(server, backend)
        assert await orchestrator.start() is OrchestratorState.GENERATIVE
        assert backend.names() == ["check_availability", "initialize", "start_conversation"]

    async def test_unavailable_backend_never_initialized(self, server):
        backend = FakeBackend(status=BackendStatus.NOT_AVAILABLE)
        orchestrator = ConversationOrchestrator(server, backend)
        assert await orchestrator.start() is OrchestratorState.FALLBACK
        assert backend.names() == ["check_availability"]

    async def test_initialize_failure_is_fallback(self, server):
        backend = FakeBackend(fail_initialize=True)
        assert await ConversationOrchestrator(server, backend).start() is OrchestratorState.FALLBACK

    async def test_start_is_idempotent(self, server):
        backend = FakeBackend()
        orchestrator = ConversationOrchestrator(server, backend)
        await orchestrator.start()
        await orchestrator.start()
        assert backend.names().count("check_availability") == 1


# ── Turns ────────────────────────────────────────────────────────


class TestSend:
    async def test_unavailable_backend_routes_to_search(self):
        dispatcher, tool = _search_only()
        backend = FakeBackend(status=BackendStatus.NOT_AVAILABLE)
        orchestrator = ConversationOrchestrator(dispatcher, backend)

        reply = await orchestrator.send("find invoices")

        assert reply.tool_used == "search_messages"
        assert tool.call_log == [
            {"query": "invoices", "max_results": 10, "similarity_threshold": 0.15}
        ]
        assert "send" not in backend.names()

    async def test_generative_reply(self, server):
        backend = FakeBackend()
        orchestrator = ConversationOrchestrator(server, backend, max_context_messages=4)
        reply = await orchestrator.send("hello there")
        assert reply.content == "echo: hello there"
        assert reply.tool_used == "gemini (chat)"
        assert backend.calls[-1] == ("send", ("hello there", 4))

    async def test_generative_reply_with_context(self, server):
        backend = FakeBackend(answers=[AssistantAnswer("You owe $80", 3, ["search_messages", "gemini"])])
        reply = await ConversationOrchestrator(server, backend).send("what did the plumber say")
        assert reply.tool_used == "gemini (3 messages)"

    async def test_backend_failure_falls_back_for_one_turn(self, server):
        backend = FakeBackend(fail_send=True)
        orchestrator = ConversationOrchestrator(server, backend)
        reply = await orchestrator.send("find invoices")
        assert reply.tool_used == "search_messages"
        assert orchestrator.state is OrchestratorState.GENERATIVE

    async def test_blank_input_ignored(self, server):
        orchestrator = ConversationOrchestrator(server)
        assert await orchestrator.send("   ") is None
        assert orchestrator.session.turns == []
        assert orchestrator.state is OrchestratorState.UNINITIALIZED

    async def test_history_records_both_sides(self, server):
        orchestrator = ConversationOrchestrator(server)
        reply = await orchestrator.send("list conversations")
        turns = orchestrator.session.turns
        assert [(t.role, t.text) for t in turns] == [
            ("user", "list conversations"),
            ("assistant", reply.content),
        ]

    async def test_turns_run_in_order(self, server):
        orchestrator = ConversationOrchestrator(server, FakeBackend())
        await asyncio.gather(orchestrator.send("first"), orchestrator.send("second"))
        assert [t.text for t in orchestrator.session.turns] == [
            "first",
            "echo: first",
            "second",
            "echo: second",
        ]

    async def test_cancelled_turn_leaves_history_and_releases_lock(self, server):
        backend = StallingBackend(stall_on="stuck")
        orchestrator = ConversationOrchestrator(server, backend)
        await orchestrator.send("hello")
        before = list(orchestrator.session.turns)

        turn = asyncio.create_task(orchestrator.send("stuck"))
        await backend.entered.wait()
        turn.cancel()
        with pytest.raises(asyncio.CancelledError):
            await turn

        assert orchestrator.session.turns == before
        reply = await asyncio.wait_for(orchestrator.send("after"), timeout=1)
        assert reply.content == "echo: after"
        assert [t.text for t in orchestrator.session.turns] == [
            "hello",
            "echo: hello",
            "after",
            "echo: after",
        ]

    async def test_unexpected_error_becomes_reply(self, server):
        orchestrator = ConversationOrchestrator(server, fallback=ExplodingFallback(server))
        reply = await orchestrator.send("anything")
        assert reply.is_error
        assert reply.content == "Sorry, I encountered an error: rules broke"


# ── Session lifecycle ────────────────────────────────────────────


class TestLifecycle:
    async def test_clear_history_restarts_backend_conversation(self, server):
        backend = FakeBackend()
        orchestrator = ConversationOrchestrator(server, backend)
        await orchestrator.send("hi")
        old_id = orchestrator.session.id

        await orchestrator.clear_history()

        assert orchestrator.session.id != old_id
        assert orchestrator.session.turns == []
        assert backend.names()[-2:] == ["end_conversation", "start_conversation"]

    async def test_clear_history_in_fallback(self, server):
        orchestrator = ConversationOrchestrator(server)
        await orchestrator.send("recent")
        await orchestrator.clear_history()
        assert orchestrator.session.turns == []

    async def test_close_ends_conversation(self, server):
        backend = FakeBackend()
        orchestrator = ConversationOrchestrator(server, backend)
        await orchestrator.start()
        await orchestrator.close()
        assert backend.names()[-1] == "end_conversation"
