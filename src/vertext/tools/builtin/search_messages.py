"""search_messages tool: semantic (or lexical) search over messages."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from vertext.core.errors import ArgumentError
from vertext.embedding.index import SearchHit
from vertext.tools.arguments import Arguments, clamp
from vertext.tools.base import ParameterType, ToolParameter, ToolResult

if TYPE_CHECKING:
    from collections.abc import Mapping

    from vertext.embedding.index import EmbeddingIndex
    from vertext.memory.store import MessageStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_RESULTS = 5
MAX_RESULTS_CAP = 20
DEFAULT_THRESHOLD = 0.15

MODE_SEMANTIC = "semantic"
MODE_TEXT = "text"

NO_RESULTS_HINT = (
    "No messages found matching the query. Try lowering the similarity "
    "threshold or using different search terms."
)


class SearchMessagesTool:
    """Searches messages by meaning using the embedding index.

    Implements the :class:`Tool` protocol.  ``mode="text"`` uses the
    store's keyword search instead; those hits carry similarity 1.0.
    """

    def __init__(
        self,
        index: EmbeddingIndex,
        store: MessageStore,
        *,
        default_max_results: int = DEFAULT_MAX_RESULTS,
        max_results_cap: int = MAX_RESULTS_CAP,
        default_threshold: float = DEFAULT_THRESHOLD,
    ) -> None:
        self._index = index
        self._store = store
        self._default_max_results = default_max_results
        self._max_results_cap = max_results_cap
        self._default_threshold = default_threshold

    @property
    def name(self) -> str:
        return "search_messages"

    @property
    def description(self) -> str:
        return (
            "Searches through SMS messages using semantic search to find relevant "
            "messages based on meaning, not just keywords."
        )

    @property
    def parameters(self) -> tuple[ToolParameter, ...]:
        return (
            ToolParameter(
                name="query",
                type=ParameterType.STRING,
                description="The search query describing what messages to find",
                required=True,
            ),
            ToolParameter(
                name="max_results",
                type=ParameterType.NUMBER,
                description=(
                    f"Maximum number of results to return "
                    f"(default: {self._default_max_results}, max: {self._max_results_cap})"
                ),
                default=str(self._default_max_results),
            ),
            ToolParameter(
                name="similarity_threshold",
                type=ParameterType.NUMBER,
                description=(
                    f"Minimum similarity score 0.0-1.0 (default: {self._default_threshold})"
                ),
                default=str(self._default_threshold),
            ),
            ToolParameter(
                name="mode",
                type=ParameterType.STRING,
                description="'semantic' (default) or 'text' for keyword matching",
                default=MODE_SEMANTIC,
            ),
        )

    async def _search(
        self, query: str, mode: str, threshold: float, max_results: int
    ) -> list[SearchHit]:
        if mode == MODE_TEXT:
            messages = await self._store.search_messages_by_text(query, max_results)
            return [SearchHit.from_message(m, 1.0) for m in messages]
        return await self._index.search_text(query, threshold, max_results)

    async def execute(self, arguments: Mapping[str, Any]) -> ToolResult:
        try:
            args = Arguments(arguments)
            query = args.get_str("query")
            if query is None:
                return ToolResult.fail("Missing required parameter: query")
            if not query.strip():
                return ToolResult.fail("Query cannot be empty")
            max_results = clamp(
                args.get_int("max_results", self._default_max_results),
                1,
                self._max_results_cap,
            )
            threshold = clamp(
                args.get_float("similarity_threshold", self._default_threshold), 0.0, 1.0
            )
            mode = (args.get_str("mode", MODE_SEMANTIC) or MODE_SEMANTIC).strip().lower()
            if mode not in (MODE_SEMANTIC, MODE_TEXT):
                return ToolResult.fail(f"Unknown search mode: {mode}")

            logger.debug(
                "Searching messages: query=%r, mode=%s, max_results=%d, threshold=%.2f",
                query,
                mode,
                max_results,
                threshold,
            )
            hits = await self._search(query, mode, threshold, max_results)
        except ArgumentError as e:
            return ToolResult.fail(str(e))
        except Exception as e:
            logger.exception("Error executing search_messages")
            return ToolResult.fail(f"Failed to search messages: {e}")

        logger.debug("Search complete: %d results", len(hits))
        data: dict[str, Any] = {
            "found": bool(hits),
            "count": len(hits),
            "query": query,
            "threshold": threshold,
            "mode": mode,
            "results": [h.to_dict() for h in hits],
        }
        if not hits:
            data["message"] = NO_RESULTS_HINT
        return ToolResult.ok(data)
