"""Embedding models and the message embedding index."""

from vertext.embedding.index import EmbeddingIndex, IndexingReport, SearchHit
from vertext.embedding.models import (
    EmbeddingModel,
    GeminiEmbeddingModel,
    TfidfEmbeddingModel,
    cosine_similarity,
)

__all__ = [
    "EmbeddingIndex",
    "EmbeddingModel",
    "GeminiEmbeddingModel",
    "IndexingReport",
    "SearchHit",
    "TfidfEmbeddingModel",
    "cosine_similarity",
]
