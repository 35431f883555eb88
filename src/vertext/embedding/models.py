"""Embedding models.

All models satisfy :class:`EmbeddingModel`.  The ``version`` of a model
is stamped on every vector it produces; the index only serves vectors
whose version matches the model it was built with.

Two implementations ship:

* :class:`TfidfEmbeddingModel` (version 1): TF-IDF weights accumulated
  into hashed buckets and L2-normalised.  Runs locally; the corpus
  statistics are refreshed from the store before a backfill.
* :class:`GeminiEmbeddingModel` (version 2 by default): Google
  ``embed_content`` via ``google-genai``.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import math
import re
from collections import Counter
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from google import genai

from vertext.core.errors import EmbeddingError
from vertext.core.genai import call_genai
from vertext.core.retry import EMBED_RETRY

if TYPE_CHECKING:
    from vertext.core.retry import RetryPolicy
    from vertext.memory.store import MessageStore

logger = logging.getLogger(__name__)

TFIDF_VERSION = 1
GEMINI_VERSION = 2
DEFAULT_DIMENSION = 384
MIN_WORD_LENGTH = 3
CORPUS_PAGE_SIZE = 500

STOP_WORDS = frozenset(
    {
        "the", "be", "to", "of", "and", "a", "in", "that", "have", "i",
        "it", "for", "not", "on", "with", "he", "as", "you", "do", "at",
        "this", "but", "his", "by", "from", "they", "we", "say", "her", "she",
        "or", "an", "will", "my", "one", "all", "would", "there", "their",
        "what", "so", "up", "out", "if", "about", "who", "get", "which", "go",
        "me", "when", "make", "can", "like", "time", "no", "just", "him", "know",
        "take", "people", "into", "year", "your", "good", "some", "could", "them",
        "see", "other", "than", "then", "now", "look", "only", "come", "its", "over",
        "think", "also", "back", "after", "use", "two", "how", "our", "work",
        "first", "well", "way", "even", "new", "want", "because", "any", "these",
        "give", "day", "most", "us",
    }
)  # fmt: skip

_PUNCT_RE = re.compile(r"[^a-z0-9\s]")
_DIGITS_RE = re.compile(r"\d+")


@runtime_checkable
class EmbeddingModel(Protocol):
    """Protocol that all embedding models must satisfy."""

    @property
    def version(self) -> int: ...

    @property
    def dimension(self) -> int: ...

    async def prepare(self, store: MessageStore) -> None:
        """Refresh any corpus-level state before a backfill."""
        ...

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Return one vector per input text, in order."""
        ...


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity clamped to ``[0, 1]``; zero vectors score 0."""
    if len(a) != len(b):
        msg = f"Embeddings must have the same dimension ({len(a)} != {len(b)})"
        raise ValueError(msg)
    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b, strict=True):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    denominator = math.sqrt(norm_a) * math.sqrt(norm_b)
    if denominator <= 0.0:
        return 0.0
    return max(0.0, min(dot / denominator, 1.0))


def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation, drop stop words, short words and numbers."""
    words = _PUNCT_RE.sub(" ", text.lower()).split()
    return [
        w
        for w in words
        if len(w) >= MIN_WORD_LENGTH and w not in STOP_WORDS and not _DIGITS_RE.fullmatch(w)
    ]


def _bucket(word: str, dimension: int) -> int:
    digest = hashlib.md5(word.encode("utf-8"), usedforsecurity=False).digest()
    return int.from_bytes(digest[:4], "big") % dimension


class TfidfEmbeddingModel:
    """TF-IDF word-hashing embeddings.

    TF = count / tokens, IDF = ln((N + 1) / (df + 1)) + 1 (1 when no
    corpus has been loaded); each word's weight lands in a hashed bucket
    and the vector is normalised to unit length.
    """

    def __init__(
        self, *, dimension: int = DEFAULT_DIMENSION, version: int = TFIDF_VERSION
    ) -> None:
        if dimension <= 0:
            msg = f"dimension must be positive, got {dimension}"
            raise ValueError(msg)
        self._dimension = dimension
        self._version = version
        self._document_frequency: dict[str, int] = {}
        self._total_documents = 0

    @property
    def version(self) -> int:
        return self._version

    @property
    def dimension(self) -> int:
        return self._dimension

    def update_corpus(self, documents: list[str]) -> None:
        """Replace corpus statistics with those of *documents*."""
        frequency: Counter[str] = Counter()
        for document in documents:
            frequency.update(set(tokenize(document)))
        self._swap_corpus(dict(frequency), len(documents))

    async def prepare(self, store: MessageStore) -> None:
        frequency: Counter[str] = Counter()
        total = 0
        async for bodies in store.iter_message_bodies(CORPUS_PAGE_SIZE):
            for body in bodies:
                frequency.update(set(tokenize(body)))
            total += len(bodies)
        self._swap_corpus(dict(frequency), total)

    def _swap_corpus(self, frequency: dict[str, int], total: int) -> None:
        # Readers see either the old or the new statistics, never a mix.
        self._document_frequency, self._total_documents = frequency, total
        logger.debug("Corpus updated: %d documents, %d unique words", total, len(frequency))

    def corpus_stats(self) -> dict[str, int]:
        return {
            "total_documents": self._total_documents,
            "unique_words": len(self._document_frequency),
            "embedding_dimension": self._dimension,
        }

    def _idf(self, word: str, frequency: dict[str, int], total: int) -> float:
        if total == 0:
            return 1.0
        return math.log((total + 1) / (frequency.get(word, 0) + 1)) + 1.0

    def embed_one(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        tokens = tokenize(text)
        if not tokens:
            return vector

        frequency, total = self._document_frequency, self._total_documents
        for word, count in Counter(tokens).items():
            tf = count / len(tokens)
            vector[_bucket(word, self._dimension)] += tf * self._idf(word, frequency, total)

        norm = math.sqrt(sum(v * v for v in vector))
        if norm > 0.0:
            vector = [v / norm for v in vector]
        return vector

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return await asyncio.to_thread(lambda: [self.embed_one(t) for t in texts])


class GeminiEmbeddingModel:
    """Embeddings from the Gemini API."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str = "text-embedding-004",
        dimension: int = 768,
        version: int = GEMINI_VERSION,
        client: genai.Client | None = None,
        retry: RetryPolicy = EMBED_RETRY,
    ) -> None:
        self._client = client or genai.Client(api_key=api_key)
        self._model = model
        self._dimension = dimension
        self._version = version
        self._retry = retry

    @property
    def version(self) -> int:
        return self._version

    @property
    def dimension(self) -> int:
        return self._dimension

    async def prepare(self, store: MessageStore) -> None:
        return None

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        response = await call_genai(
            lambda: self._client.aio.models.embed_content(model=self._model, contents=texts),
            self._retry,
        )
        embeddings = response.embeddings or []
        if len(embeddings) != len(texts):
            msg = f"Expected {len(texts)} embeddings, got {len(embeddings)}"
            raise EmbeddingError(msg)
        return [list(e.values or []) for e in embeddings]
