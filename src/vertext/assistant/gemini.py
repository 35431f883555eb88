"""Gemini retrieval-augmented backend.

Questions that look like they are about the user's messages are
answered with context: the backend runs ``search_messages`` through the
dispatcher, numbers the hits into a context block and sends that along
with the question.  Everything else goes to the model as is.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from google import genai

from vertext.assistant.backend import AssistantAnswer, BackendStatus
from vertext.core.errors import BackendUnavailableError
from vertext.core.genai import GEMINI, call_genai
from vertext.core.retry import CHAT_RETRY
from vertext.memory.models import now_ms

if TYPE_CHECKING:
    from vertext.core.retry import RetryPolicy
    from vertext.mcp.server import McpServer

logger = logging.getLogger(__name__)

BACKEND_ID = GEMINI
SEARCH_TOOL = "search_messages"
DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_RAG_THRESHOLD = 0.3

CONTEXT_KEYWORDS = (
    "message", "text", "said", "told", "asked", "mentioned",
    "conversation", "chat", "sms", "talk", "discuss",
    "when did", "what did", "who", "where", "why",
    "find", "search", "show", "get",
)  # fmt: skip

NO_CONTEXT = "No relevant messages found for this query."

SYSTEM_INSTRUCTION = """\
You are a helpful AI assistant that answers questions about the user's text messages.
- Answer based on the text messages provided as context
- Be concise and direct
- If the messages don't contain enough information to answer, say so
- Quote specific messages when relevant
- If asked about dates, times, or specific details, reference the message dates
- Format your response in a natural, conversational way"""


def needs_message_context(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in CONTEXT_KEYWORDS)


def format_relative(timestamp: int, now: int) -> str:
    """Human-friendly age of an epoch-ms timestamp."""
    if timestamp <= 0:
        return "Unknown date"
    diff = now - timestamp
    if diff < 60_000:
        return "Just now"
    if diff < 3_600_000:
        return f"{diff // 60_000} minutes ago"
    if diff < 86_400_000:
        return f"{diff // 3_600_000} hours ago"
    if diff < 604_800_000:
        return f"{diff // 86_400_000} days ago"
    return datetime.fromtimestamp(timestamp / 1000).strftime("%b %d, %Y")


def build_context(results: list[dict[str, Any]], *, now: int | None = None) -> str:
    """Number search hits into a context block for the model."""
    if not results:
        return NO_CONTEXT
    now = now if now is not None else now_ms()
    lines = ["Here are the relevant text messages:", ""]
    for i, hit in enumerate(results[:10], start=1):
        sender = hit.get("sender") or "Unknown"
        kind = hit.get("type", "")
        if kind == "sent":
            direction = f"You sent to {sender}"
        elif kind == "received":
            direction = f"From {sender}"
        else:
            direction = f"Message with {sender}"
        relevance = int(float(hit.get("similarity", 0.0)) * 100)
        lines.append(f"{i}. {direction} ({format_relative(int(hit.get('date', 0)), now)}):")
        lines.append(f'   "{hit.get("body", "")}"')
        lines.append(f"   (Relevance: {relevance}%)")
        lines.append("")
    return "\n".join(lines)


def wrap_with_context(text: str, context: str) -> str:
    if context == NO_CONTEXT:
        return text
    return f"Context from user's messages:\n{context}\n\nUser: {text}"


class GeminiRagBackend:
    """Retrieval-augmented chat over google-genai."""

    def __init__(
        self,
        dispatcher: McpServer,
        api_key: str | None = None,
        *,
        model: str = DEFAULT_MODEL,
        rag_threshold: float = DEFAULT_RAG_THRESHOLD,
        temperature: float = 0.7,
        max_output_tokens: int = 1024,
        client: genai.Client | None = None,
        retry: RetryPolicy = CHAT_RETRY,
    ) -> None:
        self._dispatcher = dispatcher
        self._api_key = api_key
        self._client = client
        self._model = model
        self._rag_threshold = rag_threshold
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._retry = retry
        self._status = BackendStatus.UNKNOWN
        self._initialized = False
        self._history: list[tuple[str, str]] | None = None

    @property
    def backend_id(self) -> str:
        return BACKEND_ID

    @property
    def history(self) -> list[tuple[str, str]]:
        return list(self._history or [])

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    # ── Lifecycle ────────────────────────────────────────────────

    async def check_availability(self) -> BackendStatus:
        if self._client is None and not self._api_key:
            self._status = BackendStatus.NOT_AVAILABLE
            return self._status
        try:
            await self._get_client().aio.models.generate_content(
                model=self._model,
                contents="ping",
                config=genai.types.GenerateContentConfig(max_output_tokens=1),
            )
        except Exception as e:
            logger.warning("Gemini availability check failed: %s", e)
            self._status = BackendStatus.ERROR
        else:
            self._status = BackendStatus.AVAILABLE
        return self._status

    async def initialize(self) -> None:
        if self._status is BackendStatus.UNKNOWN:
            await self.check_availability()
        if self._status is not BackendStatus.AVAILABLE:
            msg = f"Backend status is {self._status.value}"
            raise BackendUnavailableError(BACKEND_ID, msg)
        self._initialized = True

    async def start_conversation(self) -> None:
        if not self._initialized:
            msg = "Backend not initialized"
            raise BackendUnavailableError(BACKEND_ID, msg)
        self._history = []

    async def end_conversation(self) -> None:
        self._history = None

    # ── Messages ─────────────────────────────────────────────────

    async def _retrieve(self, text: str, max_results: int) -> list[dict[str, Any]]:
        result = await self._dispatcher.call_tool(
            SEARCH_TOOL,
            {
                "query": text,
                "max_results": max_results,
                "similarity_threshold": self._rag_threshold,
            },
        )
        if not result.success:
            logger.warning("Context search failed: %s", result.error)
            return []
        data = result.data if isinstance(result.data, dict) else {}
        results = data.get("results")
        return list(results) if isinstance(results, list) else []

    async def _generate(self, history: list[tuple[str, str]]) -> str:
        contents = [
            {"role": "model" if role == "assistant" else "user", "parts": [{"text": text}]}
            for role, text in history
        ]
        config = genai.types.GenerateContentConfig(
            max_output_tokens=self._max_output_tokens,
            temperature=self._temperature,
            system_instruction=SYSTEM_INSTRUCTION,
        )

        response = await call_genai(
            lambda: self._get_client().aio.models.generate_content(
                model=self._model, contents=contents, config=config
            ),
            self._retry,
            backend_id=BACKEND_ID,
        )
        return response.text or ""

    async def send_message_in_conversation(
        self, text: str, max_context_messages: int = 10
    ) -> AssistantAnswer:
        if self._history is None:
            msg = "No active conversation"
            raise BackendUnavailableError(BACKEND_ID, msg)

        tools_used: list[str] = []
        context_messages = 0
        prompt = text
        if needs_message_context(text):
            results = await self._retrieve(text, max_context_messages)
            tools_used.append(SEARCH_TOOL)
            context_messages = len(results)
            prompt = wrap_with_context(text, build_context(results))

        # one user and one assistant entry per prior turn
        recent = self._history[-2 * max_context_messages :] if max_context_messages > 0 else []
        pending = [*recent, ("user", prompt)]
        answer = await self._generate(pending)
        self._history = [*pending, ("assistant", answer)]
        tools_used.append(BACKEND_ID)
        return AssistantAnswer(
            answer=answer, context_messages=context_messages, tools_used=tools_used
        )
