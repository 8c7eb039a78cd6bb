"""Explicit retry policy for outbound calls.

A policy is injected where a call path needs retries; the default policy makes
a single attempt.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger("saas-mcp.retry")

T = TypeVar("T")


def is_transport_error(exc: BaseException) -> bool:
    """Network-level failures (connect, read, timeouts) are worth retrying."""
    return isinstance(exc, httpx.TransportError)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 1
    base_delay_s: float = 0.5
    max_delay_s: float = 8.0
    factor: float = 2.0
    retry_on: Callable[[BaseException], bool] = field(default=is_transport_error)

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after the given (1-based) failed attempt."""
        return min(self.max_delay_s, self.base_delay_s * (self.factor ** max(0, attempt - 1)))


NO_RETRY = RetryPolicy()


async def with_retry(operation: Callable[[], Awaitable[T]], policy: RetryPolicy = NO_RETRY) -> T:
    """Await ``operation()`` until it succeeds or the policy gives up.

    The last exception is re-raised unchanged.
    """
    attempt = 1
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= policy.max_attempts or not policy.retry_on(e):
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                f"Attempt {attempt}/{policy.max_attempts} failed ({type(e).__name__}: {e}); "
                f"retrying in {delay:.2f}s"
            )
            await asyncio.sleep(delay)
            attempt += 1
