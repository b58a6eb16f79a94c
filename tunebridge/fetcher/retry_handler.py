"""Retry handler with exponential backoff and jitter."""

import asyncio
import inspect
import random
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from tunebridge.monitoring.logger import StructuredLogger
from tunebridge.providers.base import RateLimitError


def calculate_backoff_delay(
    attempt: int,
    base_delay: float = 0.5,
    max_delay: float = 8.0,
    jitter_max: float = 0.1
) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Formula: min(max_delay, (base_delay * (2 ** attempt)) + random_jitter)

    Args:
        attempt: Retry attempt number (0-indexed)
        base_delay: Base delay in seconds
        max_delay: Maximum delay cap in seconds
        jitter_max: Maximum jitter to add in seconds

    Returns:
        Delay in seconds
    """
    exponential_delay = base_delay * (2 ** attempt)
    jitter = random.uniform(0, jitter_max)
    return min(max_delay, exponential_delay + jitter)


class RetryHandler:
    """
    Retries rate-limited calls with exponential backoff.

    Sits outside the circuit breaker: every attempt goes through the breaker,
    so an OPEN breaker ends the retry loop immediately. Only RateLimitError
    is retried by default; a provider-supplied Retry-After takes precedence
    over the computed backoff, still capped at max_delay.
    """

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 0.5,
        max_delay: float = 8.0,
        jitter_max: float = 0.1,
        retry_on: Tuple[Type[BaseException], ...] = (RateLimitError,),
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize retry handler.

        Args:
            max_retries: Maximum number of retry attempts
            base_delay: Base delay for exponential backoff
            max_delay: Maximum delay cap
            jitter_max: Maximum jitter to add
            retry_on: Exception types that trigger a retry
            sleeper: Async sleep function (default: asyncio.sleep)
            logger: Optional structured logger
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter_max = jitter_max
        self.retry_on = retry_on
        self._sleep = sleeper
        self.logger = logger

    def is_retryable(self, error: BaseException) -> bool:
        """Check if error is retryable."""
        return isinstance(error, self.retry_on)

    def delay_for(self, attempt: int, error: BaseException) -> float:
        """Seconds to wait before the next attempt."""
        retry_after_ms = getattr(error, "retry_after_ms", None)
        if retry_after_ms is not None:
            return min(self.max_delay, retry_after_ms / 1000.0)
        return calculate_backoff_delay(attempt, self.base_delay, self.max_delay, self.jitter_max)

    async def execute(
        self,
        func: Callable[..., Any],
        *args,
        **kwargs
    ) -> Any:
        """
        Execute function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for func
            **kwargs: Keyword arguments for func

        Returns:
            Result from successful function execution

        Raises:
            Exception: The last error once retries are exhausted, or any
                non-retryable error immediately
        """
        attempt = 0
        while True:
            try:
                result = func(*args, **kwargs)
                if inspect.isawaitable(result):
                    result = await result
                return result
            except Exception as e:
                if not self.is_retryable(e) or attempt >= self.max_retries:
                    raise

                delay = self.delay_for(attempt, e)
                if self.logger:
                    self.logger.retry_scheduled(attempt=attempt, delay_ms=delay * 1000, error=str(e))
                attempt += 1
                await self._sleep(delay)
