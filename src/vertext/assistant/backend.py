"""Generative backend contract used by the conversation orchestrator."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


class BackendStatus(enum.StrEnum):
    """Result of a backend availability check."""

    AVAILABLE = "available"
    NOT_AVAILABLE = "not_available"
    UNKNOWN = "unknown"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class AssistantAnswer:
    """One generated reply and how it was produced."""

    answer: str
    context_messages: int = 0
    tools_used: list[str] = field(default_factory=list)


@runtime_checkable
class GenerativeBackend(Protocol):
    """Protocol that all generative backends must satisfy.

    Failures are raised as :class:`~vertext.core.errors.BackendError`.
    """

    @property
    def backend_id(self) -> str: ...

    async def check_availability(self) -> BackendStatus: ...

    async def initialize(self) -> None: ...

    async def start_conversation(self) -> None: ...

    async def send_message_in_conversation(
        self, text: str, max_context_messages: int = 10
    ) -> AssistantAnswer: ...

    async def end_conversation(self) -> None: ...


@dataclass(frozen=True, slots=True)
class AssistantReply:
    """What the orchestrator returns for one user turn."""

    content: str
    tool_used: str | None = None
    is_error: bool = False
