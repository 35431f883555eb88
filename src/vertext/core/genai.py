"""google-genai plumbing shared by the chat backend and the embedding model."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, TypeVar

from google.genai import errors as genai_errors

from vertext.core.errors import (
    BackendAuthError,
    BackendError,
    BackendOverloadedError,
    BackendRateLimitError,
    BackendTimeoutError,
    BackendUnavailableError,
)
from vertext.core.retry import retry_call

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from vertext.core.retry import RetryPolicy

T = TypeVar("T")

logger = logging.getLogger(__name__)

GEMINI = "gemini"

_TIMEOUT_WORDS = ("timed out", "timeout", "deadline")


def _status(e: genai_errors.APIError) -> int | None:
    code = getattr(e, "code", None)
    return code if isinstance(code, int) else None


def map_genai_error(e: Exception, backend_id: str = GEMINI) -> BackendError:
    """Translate a google-genai error into a :class:`BackendError`.

    The HTTP status decides when the SDK reports one; otherwise the
    message text does.  Client errors that are none of auth, missing
    model, rate limit or timeout are permanent and map to the base
    class, which is never retried.
    """
    msg = str(e)
    lower = msg.lower()
    status = _status(e) if isinstance(e, genai_errors.APIError) else None

    if isinstance(e, genai_errors.ClientError):
        if status in (401, 403) or "api key" in lower or "permission" in lower:
            return BackendAuthError(backend_id, msg)
        if status == 404 or "not found" in lower:
            return BackendUnavailableError(backend_id, msg)
        if status == 429 or "429" in lower or "rate limit" in lower or "quota" in lower:
            return BackendRateLimitError(backend_id)
        if status == 408 or any(w in lower for w in _TIMEOUT_WORDS):
            return BackendTimeoutError(backend_id, msg)
        return BackendError(backend_id, msg)

    if status == 504 or any(w in lower for w in _TIMEOUT_WORDS):
        return BackendTimeoutError(backend_id, msg)
    return BackendOverloadedError(backend_id, msg)


async def call_genai(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    backend_id: str = GEMINI,
) -> T:
    """Run one SDK call under *policy*, mapping SDK errors on every attempt."""

    async def _attempt() -> T:
        try:
            return await fn()
        except (genai_errors.ClientError, genai_errors.ServerError) as e:
            raise map_genai_error(e, backend_id) from e

    def _on_retry(attempt: int, delay: float, error: Exception) -> None:
        logger.warning(
            "%s %s call failed, retry %d in %.1fs: %s",
            backend_id,
            policy.name,
            attempt,
            delay,
            error,
        )

    return await retry_call(_attempt, policy, _on_retry)
