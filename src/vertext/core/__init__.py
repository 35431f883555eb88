"""Core types, errors, and shared utilities."""

from vertext.core.errors import (
    ArgumentError,
    BackendAuthError,
    BackendError,
    BackendOverloadedError,
    BackendRateLimitError,
    BackendTimeoutError,
    BackendUnavailableError,
    ConfigError,
    EmbeddingError,
    StorageError,
    ToolError,
    TransportError,
    VertextError,
)
from vertext.core.retry import CHAT_RETRY, EMBED_RETRY, RetryPolicy, is_transient, retry_call

__all__ = [
    "ArgumentError",
    "BackendAuthError",
    "BackendError",
    "BackendOverloadedError",
    "BackendRateLimitError",
    "BackendTimeoutError",
    "BackendUnavailableError",
    "CHAT_RETRY",
    "ConfigError",
    "EMBED_RETRY",
    "EmbeddingError",
    "RetryPolicy",
    "StorageError",
    "ToolError",
    "TransportError",
    "VertextError",
    "is_transient",
    "retry_call",
]
