"""
Bounded retry with exponential backoff for AI provider calls.

Engine-level retries only: they absorb transient provider hiccups inside a
single pipeline stage. Queue-level retries (whole job) live in lumio.jobs.

Retry policy:
  - Retryable:     TransientProviderError (timeouts, 5xx, rate limits, malformed JSON)
  - Non-retryable: any other ProviderError (4xx, auth failure), surfaced immediately
  - Delay before attempt n+1: base_delay * 2^(n-1)
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from lumio.core.exceptions import ProviderError, TransientProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Retryable exception detection
# ---------------------------------------------------------------------------

_RETRYABLE_EXCEPTION_TYPES = (
    # openai
    "RateLimitError",
    "APITimeoutError",
    "APIConnectionError",
    "InternalServerError",
    "ServiceUnavailableError",
    # httpx / generic
    "ConnectTimeout",
    "ReadTimeout",
    "RemoteProtocolError",
    "TimeoutError",
)


def is_retryable(exc: BaseException) -> bool:
    """True if the exception class name suggests a transient provider error."""
    if isinstance(exc, TransientProviderError):
        return True
    if isinstance(exc, ProviderError):
        return False
    name = type(exc).__name__
    return any(name.endswith(r) for r in _RETRYABLE_EXCEPTION_TYPES)


def backoff_delay(base_delay: float, attempt: int) -> float:
    return base_delay * (2 ** (attempt - 1))


async def with_retry(
    operation:  Callable[[], Awaitable[T]],
    attempts:   int = 3,
    base_delay: float = 1.0,
    label:      str = "provider call",
) -> T:
    """
    Run `operation` up to `attempts` times.

    Raises the last error once the budget is exhausted, or the first
    non-retryable error immediately.
    """
    last_error: BaseException | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            last_error = exc
            if attempt == attempts:
                break
            delay = backoff_delay(base_delay, attempt)
            logger.warning(
                "Retrying %s | attempt=%d/%d delay=%.1fs error=%s",
                label, attempt, attempts, delay, exc,
            )
            await asyncio.sleep(delay)

    assert last_error is not None
    raise last_error
