"""Conversation orchestrator: generative backend first, rules second.

The backend is checked once in :meth:`ConversationOrchestrator.start`.
If it is not usable the orchestrator stays rule-based for its whole
lifetime; if it is, a failure on any single turn falls back to the
rules for that turn only.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from vertext.assistant.backend import AssistantReply, BackendStatus
from vertext.assistant.fallback import FallbackAssistant

if TYPE_CHECKING:
    from vertext.assistant.backend import GenerativeBackend
    from vertext.mcp.server import McpServer

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTEXT_MESSAGES = 10


class OrchestratorState(enum.StrEnum):
    UNINITIALIZED = "uninitialized"
    CHECKING_BACKEND = "checking_backend"
    GENERATIVE = "generative"
    FALLBACK = "fallback"


@dataclass(frozen=True, slots=True)
class Turn:
    role: str  # "user" or "assistant"
    text: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(slots=True)
class ConversationSession:
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    turns: list[Turn] = field(default_factory=list)


class ConversationOrchestrator:
    """Routes user turns to the generative backend or the fallback rules."""

    def __init__(
        self,
        dispatcher: McpServer,
        backend: GenerativeBackend | None = None,
        *,
        max_context_messages: int = DEFAULT_MAX_CONTEXT_MESSAGES,
        fallback: FallbackAssistant | None = None,
    ) -> None:
        self._backend = backend
        self._fallback = fallback or FallbackAssistant(dispatcher)
        self._max_context_messages = max_context_messages
        self._state = OrchestratorState.UNINITIALIZED
        self._session = ConversationSession()
        self._lock = asyncio.Lock()

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def session(self) -> ConversationSession:
        return self._session

    @property
    def uses_backend(self) -> bool:
        return self._state is OrchestratorState.GENERATIVE

    async def start(self) -> OrchestratorState:
        """Check the backend once and settle on generative or fallback mode."""
        if self._state is not OrchestratorState.UNINITIALIZED:
            return self._state
        if self._backend is None:
            logger.info("No generative backend configured; using fallback rules")
            self._state = OrchestratorState.FALLBACK
            return self._state

        self._state = OrchestratorState.CHECKING_BACKEND
        try:
            status = await self._backend.check_availability()
            if status is not BackendStatus.AVAILABLE:
                logger.warning(
                    "Backend %s status %s; using fallback rules",
                    self._backend.backend_id,
                    status.value,
                )
                self._state = OrchestratorState.FALLBACK
                return self._state
            await self._backend.initialize()
            await self._backend.start_conversation()
        except Exception as e:
            logger.warning("Backend initialization failed, using fallback rules: %s", e)
            self._state = OrchestratorState.FALLBACK
            return self._state

        logger.info("Using generative backend %s", self._backend.backend_id)
        self._state = OrchestratorState.GENERATIVE
        return self._state

    async def send(self, text: str) -> AssistantReply | None:
        """Process one user turn. Blank input is ignored.

        Turns run one at a time in submission order.  History records a
        turn only once it completes.
        """
        if not text.strip():
            return None
        async with self._lock:
            if self._state is OrchestratorState.UNINITIALIZED:
                await self.start()
            reply = await self._process(text)
            self._session.turns.append(Turn("user", text))
            self._session.turns.append(Turn("assistant", reply.content))
            return reply

    async def _process(self, text: str) -> AssistantReply:
        try:
            if self._state is OrchestratorState.GENERATIVE and self._backend is not None:
                try:
                    answer = await self._backend.send_message_in_conversation(
                        text, max_context_messages=self._max_context_messages
                    )
                except Exception as e:
                    logger.warning("Backend turn failed, using fallback rules: %s", e)
                else:
                    info = (
                        f"{answer.context_messages} messages"
                        if answer.context_messages > 0
                        else "chat"
                    )
                    return AssistantReply(answer.answer, f"{self._backend.backend_id} ({info})")
            return await self._fallback.respond(text)
        except Exception as e:
            logger.exception("Error processing turn")
            return AssistantReply(f"Sorry, I encountered an error: {e}", is_error=True)

    async def clear_history(self) -> None:
        """Start a fresh session and, if active, a fresh backend conversation."""
        async with self._lock:
            self._session = ConversationSession()
            if self.uses_backend and self._backend is not None:
                await self._backend.end_conversation()
                await self._backend.start_conversation()

    async def close(self) -> None:
        if self.uses_backend and self._backend is not None:
            await self._backend.end_conversation()
