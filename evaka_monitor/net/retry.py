"""Shared Tenacity retry helpers for outbound calls.

Every remote call of the monitor (status endpoints, GitHub, Datadog) goes
through `with_retry` so backoff and failure classification stay consistent.
This module also hosts the GitHub rate-limit guard, whose failure must never
be retried.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from datetime import datetime, timezone
from typing import TypeVar

from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from evaka_monitor.config import ConfigurationError
from evaka_monitor.net.http import NetworkError

log = logger.bind(module="net.retry")

__all__ = [
    "DEFAULT_BASE_DELAY_SECONDS",
    "DEFAULT_MAX_ATTEMPTS",
    "RATE_LIMIT_LOW_WATER_MARK",
    "PermanentError",
    "RateLimitExceeded",
    "check_rate_limit",
    "is_retryable",
    "with_retry",
]

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY_SECONDS = 1.0
RATE_LIMIT_LOW_WATER_MARK = 10


class PermanentError(RuntimeError):
    """Base class for failures that retrying cannot fix."""


class RateLimitExceeded(PermanentError):
    """Raised when the GitHub API quota for the current window is exhausted."""

    def __init__(self, message: str, *, remaining: int, reset_at: datetime | None) -> None:
        super().__init__(message)
        self.remaining = int(remaining)
        self.reset_at = reset_at


def _header_int(headers: Mapping[str, str], name: str) -> int | None:
    raw = headers.get(name)
    if raw is None:
        return None
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def check_rate_limit(headers: Mapping[str, str]) -> None:
    """Inspect GitHub rate-limit headers; warn when low, raise when exhausted."""

    remaining = _header_int(headers, "x-ratelimit-remaining")
    if remaining is None:
        return
    reset = _header_int(headers, "x-ratelimit-reset")
    reset_at = datetime.fromtimestamp(reset, tz=timezone.utc) if reset is not None else None
    reset_label = reset_at.isoformat() if reset_at is not None else "unknown"

    if remaining <= RATE_LIMIT_LOW_WATER_MARK:
        log.warning(
            "GitHub API rate limit warning: {} requests remaining. Resets at {}",
            remaining,
            reset_label,
        )
    if remaining == 0:
        raise RateLimitExceeded(
            f"GitHub API rate limit exceeded. Resets at {reset_label}",
            remaining=remaining,
            reset_at=reset_at,
        )


def is_retryable(exc: BaseException) -> bool:
    """Return True when `exc` may succeed on a later attempt.

    Client errors (4xx) are permanent except for 429 (Too Many Requests).
    """

    if isinstance(exc, (PermanentError, ConfigurationError)):
        return False
    if isinstance(exc, NetworkError) and exc.is_client_error:
        return exc.status_code == 429
    return isinstance(exc, Exception)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
    description: str = "remote call",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await `operation()` with exponential backoff between attempts.

    Notes:
    - The delay before attempt k (k >= 2) is `base_delay * 2 ** (k - 2)` seconds.
    - When every attempt fails, the last exception is re-raised unchanged.
    """

    max_attempts = max(1, int(max_attempts))
    base_delay = max(0.0, float(base_delay))
    description = (description or "remote call").strip() or "remote call"

    def _before_sleep(retry_state) -> None:  # type: ignore[no-untyped-def]
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = getattr(getattr(retry_state, "next_action", None), "sleep", None)
        log.warning(
            "Retry attempt {}/{} for {} after {:.1f}s: {}",
            retry_state.attempt_number + 1,
            max_attempts,
            description,
            float(delay or 0.0),
            exc,
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, exp_base=2, min=0),
        retry=retry_if_exception(is_retryable),
        reraise=True,
        before_sleep=_before_sleep,
        sleep=sleep,
    )
    # Await inside the attempt so plain callables returning coroutines are retried too.
    async for attempt in retrying:
        with attempt:
            return await operation()
    raise RuntimeError(f"Retry loop for {description} ended without an outcome")  # pragma: no cover
