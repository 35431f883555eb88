"""Exception hierarchy for vertext.

Every module imports from here. The hierarchy is:

    VertextError
    ├── ConfigError
    ├── StorageError
    ├── ToolError
    │   └── ArgumentError(name, expected)
    ├── EmbeddingError
    ├── TransportError(address)
    └── BackendError(backend_id)
        ├── BackendUnavailableError
        ├── BackendAuthError
        ├── BackendRateLimitError(retry_after)
        ├── BackendTimeoutError
        └── BackendOverloadedError
"""

from __future__ import annotations


class VertextError(Exception):
    """Base exception for all vertext errors."""


# ─── Configuration Errors ─────────────────────────────────────


class ConfigError(VertextError):
    """Invalid configuration."""


# ─── Storage Errors ───────────────────────────────────────────


class StorageError(VertextError):
    """Database or message store error."""


# ─── Tool Errors ──────────────────────────────────────────────


class ToolError(VertextError):
    """Base for tool-side failures."""


class ArgumentError(ToolError):
    """A tool argument could not be coerced to the expected type."""

    def __init__(self, name: str, expected: str, value: object = None) -> None:
        self.name = name
        self.expected = expected
        self.value = value
        super().__init__(f"Invalid argument '{name}': expected {expected}, got {value!r}")


# ─── Embedding Errors ─────────────────────────────────────────


class EmbeddingError(VertextError):
    """Embedding model or index failure."""


# ─── Transport Errors ─────────────────────────────────────────


class TransportError(VertextError):
    """The messaging transport rejected or failed to deliver a message."""

    def __init__(self, address: str, message: str) -> None:
        self.address = address
        super().__init__(f"[{address}] {message}")


# ─── Backend Errors ───────────────────────────────────────────


class BackendError(VertextError):
    """Base for generative-backend errors."""

    def __init__(self, backend_id: str, message: str) -> None:
        self.backend_id = backend_id
        super().__init__(f"[{backend_id}] {message}")


class BackendUnavailableError(BackendError):
    """Backend is not available on this device or not initialized."""


class BackendAuthError(BackendError):
    """Invalid or missing API key."""


class BackendRateLimitError(BackendError):
    """Rate limit exceeded. Includes retry_after if available."""

    def __init__(self, backend_id: str, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        msg = "Rate limited"
        if retry_after is not None:
            msg += f" (retry after {retry_after}s)"
        super().__init__(backend_id, msg)


class BackendTimeoutError(BackendError):
    """Backend call timed out."""


class BackendOverloadedError(BackendError):
    """Backend is overloaded (529, 503)."""
