"""Rate limiter enforcing a minimum spacing between outbound calls."""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional


class RateLimiter:
    """Fixed-interval limiter for a single external API.

    One instance is shared by every caller of the same provider. Each
    ``throttle()`` resolves at least ``1 / requests_per_second`` seconds after
    the previous one resolved; the very first call resolves immediately.
    Concurrent callers are serialized, so the limiter keeps a single cursor.
    """

    def __init__(
        self,
        requests_per_second: float = 5.0,
        now: Callable[[], float] = time.monotonic,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize rate limiter.

        Args:
            requests_per_second: Allowed call rate (must be positive)
            now: Clock function for time operations (default: time.monotonic)
            sleeper: Async sleep function (default: asyncio.sleep)
        """
        if requests_per_second <= 0:
            raise ValueError(
                f"requests_per_second must be positive, got: {requests_per_second}"
            )
        self.requests_per_second = requests_per_second
        self.min_interval = 1.0 / requests_per_second
        self._now = now
        self._sleep = sleeper
        self._last_release: Optional[float] = None
        self._lock = asyncio.Lock()

    async def throttle(self) -> None:
        """Wait until the next call is allowed.

        Callers must invoke this immediately before the guarded network call.
        Never raises.
        """
        async with self._lock:
            if self._last_release is not None:
                wait = self._last_release + self.min_interval - self._now()
                if wait > 0:
                    await self._sleep(wait)
            self._last_release = self._now()

    def seconds_until_ready(self) -> float:
        """Seconds a throttle() issued now would wait (0.0 if none)."""
        if self._last_release is None:
            return 0.0
        return max(0.0, self._last_release + self.min_interval - self._now())
