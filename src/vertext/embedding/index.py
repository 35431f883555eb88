"""Embedding index: backfill of stale vectors and similarity search.

The index never holds the corpus in memory.  Backfill walks stale
messages one page at a time; search walks the current-version vectors
one page at a time and keeps only the best ``top_k`` in a bounded heap.
"""

from __future__ import annotations

import asyncio
import heapq
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from vertext.core.errors import EmbeddingError
from vertext.embedding.models import cosine_similarity
from vertext.memory.models import format_epoch_ms, type_label

if TYPE_CHECKING:
    from vertext.embedding.models import EmbeddingModel
    from vertext.memory.models import Message
    from vertext.memory.store import MessageStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100
DEFAULT_SEARCH_BATCH_SIZE = 50


@dataclass(frozen=True, slots=True)
class SearchHit:
    """One ranked semantic match."""

    message_id: int
    thread_id: int
    body: str
    sender: str
    type: str
    date: int
    formatted_date: str
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "message_id": self.message_id,
            "thread_id": self.thread_id,
            "body": self.body,
            "sender": self.sender,
            "type": self.type,
            "date": self.date,
            "formatted_date": self.formatted_date,
            "similarity": self.similarity,
        }

    @classmethod
    def from_message(cls, message: Message, similarity: float) -> SearchHit:
        return cls(
            message_id=message.id,
            thread_id=message.thread_id,
            body=message.body,
            sender=message.address,
            type=type_label(message.type),
            date=message.date,
            formatted_date=format_epoch_ms(message.date),
            similarity=similarity,
        )


@dataclass(slots=True)
class IndexingReport:
    """Outcome of a backfill run."""

    processed: int = 0
    failed: int = 0
    batches: list[int] = field(default_factory=list)


class EmbeddingIndex:
    """Keeps message embeddings current and serves similarity search."""

    def __init__(
        self,
        store: MessageStore,
        model: EmbeddingModel,
        *,
        search_batch_size: int = DEFAULT_SEARCH_BATCH_SIZE,
    ) -> None:
        if search_batch_size <= 0:
            msg = f"search_batch_size must be positive, got {search_batch_size}"
            raise ValueError(msg)
        self._store = store
        self._model = model
        self._search_batch_size = search_batch_size
        self._task: asyncio.Task[IndexingReport] | None = None
        self._prepared = False

    @property
    def version(self) -> int:
        return self._model.version

    @property
    def model(self) -> EmbeddingModel:
        return self._model

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    # ── Indexing ─────────────────────────────────────────────────

    async def enqueue_for_embedding(self, batch_size: int = DEFAULT_BATCH_SIZE) -> int:
        """Schedule a background backfill if anything is stale.

        Returns the number of stale messages found.  At most one
        backfill runs at a time; a call while one is in flight only
        reports the count.
        """
        stale = await self._store.count_messages_needing_embedding(self.version)
        if stale == 0:
            logger.debug("No messages need embedding (version %d)", self.version)
            return 0
        if self.busy:
            logger.debug("Backfill already running; %d messages pending", stale)
            return stale
        logger.info("Scheduling backfill of %d messages (version %d)", stale, self.version)
        self._task = asyncio.create_task(self.backfill(batch_size))
        self._task.add_done_callback(self._on_backfill_done)
        return stale

    def _on_backfill_done(self, task: asyncio.Task[IndexingReport]) -> None:
        if task.cancelled():
            logger.info("Background backfill cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error("Background backfill failed: %s", error)

    async def wait_idle(self) -> IndexingReport | None:
        """Wait for the in-flight background backfill, if any."""
        task = self._task
        if task is None:
            return None
        try:
            return await task
        finally:
            if self._task is task:
                self._task = None

    async def embed_batch(self, batch_size: int = DEFAULT_BATCH_SIZE, offset: int = 0) -> int:
        """Embed one page of stale messages; return how many were stored."""
        return (await self._embed_page(batch_size, offset))[0]

    async def _embed_page(self, batch_size: int, offset: int) -> tuple[int, int]:
        messages = await self._store.get_messages_needing_embedding(
            batch_size, version=self.version, offset=offset
        )
        if not messages:
            return 0, 0

        vectors = await self._model.embed([m.body for m in messages])
        if len(vectors) != len(messages):
            msg = f"Model returned {len(vectors)} vectors for {len(messages)} messages"
            raise EmbeddingError(msg)

        stamp = datetime.now(UTC)
        stored = failed = 0
        for message, vector in zip(messages, vectors, strict=True):
            try:
                await self._store.update_embedding(message.id, vector, self.version, stamp)
            except Exception:
                logger.exception("Failed to store embedding for message %d", message.id)
                failed += 1
            else:
                stored += 1
        logger.debug("Embedded batch: %d stored, %d failed", stored, failed)
        return stored, failed

    async def backfill(self, batch_size: int = DEFAULT_BATCH_SIZE) -> IndexingReport:
        """Embed every stale message, one page at a time."""
        if batch_size <= 0:
            msg = f"batch_size must be positive, got {batch_size}"
            raise ValueError(msg)

        await self._model.prepare(self._store)
        self._prepared = True
        report = IndexingReport()
        # Stored messages leave the stale set; only failures stay behind.
        offset = 0
        while True:
            stored, failed = await self._embed_page(batch_size, offset)
            if stored == 0 and failed == 0:
                break
            report.batches.append(stored + failed)
            report.processed += stored
            report.failed += failed
            offset += failed

        logger.info(
            "Backfill complete: %d embedded, %d failed in %d batches",
            report.processed,
            report.failed,
            len(report.batches),
        )
        return report

    # ── Search ───────────────────────────────────────────────────

    async def search(
        self, query_vector: list[float], threshold: float, top_k: int
    ) -> list[SearchHit]:
        """Return up to *top_k* hits scoring at least *threshold*."""
        if top_k <= 0:
            return []

        heap: list[tuple[float, int, int, SearchHit]] = []
        seen: set[int] = set()
        offset = 0
        while True:
            page = await self._store.get_embedded_messages_batch(
                self._search_batch_size, offset, version=self.version
            )
            if not page:
                break
            offset += len(page)
            for message in page:
                if message.id in seen or not message.embedding:
                    continue
                if message.embedding_version != self.version:
                    continue
                seen.add(message.id)
                try:
                    score = cosine_similarity(query_vector, message.embedding)
                except ValueError:
                    logger.warning("Skipping message %d: dimension mismatch", message.id)
                    continue
                if score < threshold:
                    continue
                entry = (score, message.date, message.id, SearchHit.from_message(message, score))
                if len(heap) < top_k:
                    heapq.heappush(heap, entry)
                elif entry[:3] > heap[0][:3]:
                    heapq.heapreplace(heap, entry)
            if len(page) < self._search_batch_size:
                break

        ranked = sorted(heap, key=lambda e: e[:3], reverse=True)
        return [hit for *_, hit in ranked]

    async def search_text(self, query: str, threshold: float, top_k: int) -> list[SearchHit]:
        """Embed *query* with the index model and search.

        The model is prepared once per index if no backfill has done it.
        """
        if not self._prepared:
            await self._model.prepare(self._store)
            self._prepared = True
        vectors = await self._model.embed([query])
        if not vectors:
            msg = "Model returned no vector for the query"
            raise EmbeddingError(msg)
        return await self.search(vectors[0], threshold, top_k)

    async def stats(self) -> dict[str, int]:
        total = await self._store.count_messages()
        embedded = await self._store.count_embedded_messages(self.version)
        stale = await self._store.count_messages_needing_embedding(self.version)
        return {
            "version": self.version,
            "dimension": self._model.dimension,
            "embedded": embedded,
            "stale": stale,
            "total": total,
        }
