"""Bounded retry with exponential backoff for upstream calls.

One ``RetryPolicy`` serves every call site (chat proxy, image proxy, chat
client).  Whether a result is worth retrying is decided by a predicate over
the ``UpstreamResult``; by default that is ``is_rate_limited``, which treats
HTTP 429 and Gemini quota-exhaustion errors as transient.

Backoff starts at ``base_delay`` and doubles after every retry with no jitter
and no cap.  When the attempt ceiling is reached the last result is returned
as-is, even if it is still a 429: callers see the real upstream body, not a
made-up "retries exhausted" error.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import structlog

from app.errors import UpstreamDecodeError
from app.services.upstream import UpstreamResult

logger = structlog.get_logger()

QUOTA_EXCEEDED_STATUS = "RESOURCE_EXHAUSTED"
QUOTA_EXCEEDED_MESSAGE = "Quota exceeded"

# Status used for results synthesized after a transient exception on the final attempt.
SYNTHESIZED_ERROR_STATUS = 502

Operation = Callable[[], Awaitable[UpstreamResult]]
RetryPredicate = Callable[[UpstreamResult], bool]
Sleep = Callable[[float], Awaitable[Any]]


def is_quota_exceeded(body: Any) -> bool:
    """Return True if ``body`` carries a Gemini quota-exhaustion error.

    The structured ``error.status == "RESOURCE_EXHAUSTED"`` is the primary
    signal.  Older responses only say so in prose, so a ``"Quota exceeded"``
    substring in ``error.message`` is also accepted.
    """
    if not isinstance(body, dict):
        return False
    error = body.get("error")
    if not isinstance(error, dict):
        return False
    if error.get("status") == QUOTA_EXCEEDED_STATUS:
        return True
    message = error.get("message")
    return isinstance(message, str) and QUOTA_EXCEEDED_MESSAGE in message


def is_rate_limited(result: UpstreamResult) -> bool:
    """Default retry predicate: HTTP 429 or a quota-exceeded error body."""
    if result.synthesized:
        return False
    return result.status_code == 429 or is_quota_exceeded(result.body)


@dataclass
class RetryState:
    """Progress of a single ``RetryPolicy.run`` call."""

    ceiling: int
    delay: float
    attempt: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.ceiling

    def advance(self) -> None:
        self.delay *= 2


class RetryPolicy:
    """Retry an async upstream operation while its result is retryable.

    Args:
        max_attempts: Total attempts including the first (must be >= 1).
        base_delay: Seconds to wait before the second attempt.
        is_retryable: Predicate deciding whether a result should be retried.
        retry_on: Exception types treated as transient.  Raised on the final
            attempt, they are converted into a synthesized 502 result.
        sleep: Awaitable used for backoff waits (injectable for tests).
    """

    def __init__(
        self,
        *,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        is_retryable: RetryPredicate = is_rate_limited,
        retry_on: tuple[type[BaseException], ...] = (UpstreamDecodeError,),
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if base_delay < 0:
            raise ValueError("base_delay must not be negative")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.is_retryable = is_retryable
        self.retry_on = retry_on
        self._sleep = sleep

    def is_exhausted(self, result: UpstreamResult) -> bool:
        """True if ``result`` is what ``run`` hands back after giving up."""
        return result.synthesized or self.is_retryable(result)

    async def run(self, operation: Operation) -> UpstreamResult:
        """Perform ``operation`` until it yields a final result."""
        state = RetryState(ceiling=self.max_attempts, delay=self.base_delay)
        while True:
            state.attempt += 1
            try:
                result = await operation()
            except self.retry_on as exc:
                if state.exhausted:
                    logger.error(
                        "upstream_retries_exhausted",
                        attempts=state.attempt,
                        error=str(exc),
                    )
                    return UpstreamResult.error(SYNTHESIZED_ERROR_STATUS, str(exc))
                reason = f"{type(exc).__name__}: {exc}"
            else:
                if not self.is_retryable(result):
                    return result
                if state.exhausted:
                    logger.warning(
                        "upstream_retries_exhausted",
                        attempts=state.attempt,
                        status_code=result.status_code,
                    )
                    return result
                reason = f"status {result.status_code}"

            logger.warning(
                "upstream_retry",
                attempt=state.attempt,
                max_attempts=state.ceiling,
                delay=state.delay,
                reason=reason,
            )
            await self._sleep(state.delay)
            state.advance()
