"""Retry policies for remote model calls.

A chat turn has a person waiting on it, so :data:`CHAT_RETRY` gives up
quickly: two retries, short waits, and no sleeping through a long
rate-limit window.  Embedding batches run in the background and can be
repeated safely, so :data:`EMBED_RETRY` retries longer and honours the
server's ``retry_after`` up to its cap.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from vertext.core.errors import (
    BackendOverloadedError,
    BackendRateLimitError,
    BackendTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    BackendRateLimitError,
    BackendTimeoutError,
    BackendOverloadedError,
)


def is_transient(error: Exception) -> bool:
    return isinstance(error, TRANSIENT_ERRORS)


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How often and how long to retry one kind of call.

    ``budget`` caps the total time spent sleeping across all retries;
    ``None`` means only ``max_retries`` limits the loop.  When
    ``wait_for_rate_limit`` is false, a rate limit asking for a longer
    wait than ``max_delay`` ends the loop instead of being shortened.
    """

    name: str
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    budget: float | None = None
    jitter: bool = True
    wait_for_rate_limit: bool = True

    def delay_for(self, attempt: int, error: Exception) -> float | None:
        """Seconds to sleep before retry number ``attempt + 1``, or None to stop."""
        if attempt >= self.max_retries or not is_transient(error):
            return None
        if isinstance(error, BackendRateLimitError) and error.retry_after is not None:
            if error.retry_after > self.max_delay and not self.wait_for_rate_limit:
                return None
            return min(error.retry_after, self.max_delay)

        delay = min(self.base_delay * (2**attempt), self.max_delay)
        if self.jitter:
            delay *= random.uniform(0.5, 1.5)
        return delay


CHAT_RETRY = RetryPolicy(
    "chat",
    max_retries=2,
    base_delay=0.5,
    max_delay=4.0,
    budget=8.0,
    wait_for_rate_limit=False,
)
EMBED_RETRY = RetryPolicy("embedding", max_retries=5, base_delay=2.0, max_delay=120.0)


async def retry_call(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    on_retry: Callable[[int, float, Exception], None] | None = None,
) -> T:
    """Await ``fn()`` until it succeeds or *policy* says stop.

    Non-transient errors propagate at once.  A transient error that the
    policy will not retry, because retries or budget are used up,
    propagates unchanged.  ``on_retry(attempt, delay, error)`` runs
    before each sleep.
    """
    slept = 0.0
    attempt = 0
    while True:
        try:
            return await fn()
        except Exception as e:
            delay = policy.delay_for(attempt, e)
            if delay is None:
                raise
            if policy.budget is not None and slept + delay > policy.budget:
                logger.debug(
                    "%s retry budget spent (%.1fs of %.1fs)", policy.name, slept, policy.budget
                )
                raise
            attempt += 1
            if on_retry is not None:
                on_retry(attempt, delay, e)
            await asyncio.sleep(delay)
            slept += delay
