"""
Retry with exponential backoff for transient processor errors.

Only exceptions of the configured ``retry_on`` types are retried, and errors
flagged ``fatal`` never are.

Usage:
    from cardflow_checkout.retry import RetryConfig, retry_async

    handle = await retry_async(
        lambda: client.post("/payment_methods", data=params),
        config=RetryConfig(max_retries=2, retry_on=(NetworkError,)),
    )
"""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_retries: Maximum number of retry attempts (0 means no retries)
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential backoff calculation
        jitter: Maximum jitter factor (0.0-1.0) applied to delays
        retry_on: Exception types that trigger a retry
    """

    max_retries: int = 2
    base_delay: float = 0.5
    max_delay: float = 8.0
    exponential_base: float = 2.0
    jitter: float = 0.1
    retry_on: tuple[Type[BaseException], ...] = (Exception,)

    def calculate_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        if self.jitter > 0:
            jitter_range = delay * self.jitter
            delay = delay + random.uniform(-jitter_range, jitter_range)
        return max(0.0, delay)

    def should_retry(self, exception: BaseException) -> bool:
        if getattr(exception, "fatal", False):
            return False
        return isinstance(exception, self.retry_on)


NO_RETRY = RetryConfig(max_retries=0)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Await ``func()`` until it succeeds or retries run out.

    The last exception is re-raised unchanged once retries are exhausted, so
    callers keep seeing the original error kind.
    """
    config = config or RetryConfig()
    attempt = 0
    while True:
        try:
            return await func()
        except Exception as e:
            if attempt >= config.max_retries or not config.should_retry(e):
                raise
            delay = config.calculate_delay(attempt)
            attempt += 1
            logger.warning(
                "Retrying after %s (attempt %d/%d, sleeping %.2fs)",
                type(e).__name__,
                attempt,
                config.max_retries,
                delay,
            )
            await sleep(delay)
