"""Circuit breaker implementation with explicit state management."""

import inspect
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol, TypeVar, Union

from tunebridge.models.data_models import CircuitBreakerMetrics, CircuitState
from tunebridge.monitoring.logger import StructuredLogger


T = TypeVar("T")

StateChangeCallback = Callable[[CircuitState, CircuitState, str], None]

DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_COOLDOWN_MS = 30000


class Clock(Protocol):
    """Clock interface for testable time management."""

    def now(self) -> float:
        """Return current time in seconds."""
        ...


class MonotonicClock:
    """Default clock implementation using time.monotonic."""

    def now(self) -> float:
        """Return current monotonic time in seconds."""
        return time.monotonic()


class CircuitBreakerError(Exception):
    """Raised when a call is rejected without being executed."""

    def __init__(self, message: str, state: CircuitState, cooldown_remaining_ms: Optional[float] = None):
        super().__init__(message)
        self.state = state
        self.cooldown_remaining_ms = cooldown_remaining_ms


class CircuitBreaker:
    """
    Circuit breaker with CLOSED/OPEN/HALF_OPEN states for one dependency.

    - CLOSED: calls pass through, consecutive failures are counted
    - OPEN: calls are rejected immediately until the cooldown elapses
    - HALF_OPEN: a single probe call decides between CLOSED and OPEN

    The breaker never retries and never transforms the wrapped call's errors.
    State changes happen only in synchronous sections between awaits, so
    callers sharing one event loop cannot interleave a transition.
    """

    def __init__(
        self,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown_ms: float = DEFAULT_COOLDOWN_MS,
        on_state_change: Optional[StateChangeCallback] = None,
        clock: Optional[Clock] = None
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening the circuit
            cooldown_ms: Time to wait in OPEN before allowing a probe
            on_state_change: Optional (from_state, to_state, reason) callback
            clock: Clock interface for time management (defaults to MonotonicClock)
        """
        if failure_threshold < 1:
            raise ValueError(f"failure_threshold must be at least 1, got: {failure_threshold}")
        if cooldown_ms < 0:
            raise ValueError(f"cooldown_ms must not be negative, got: {cooldown_ms}")
        self.failure_threshold = failure_threshold
        self.cooldown_ms = cooldown_ms
        self.on_state_change = on_state_change
        self.clock = clock or MonotonicClock()

        self._state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.rejected_count = 0
        self.last_failure_time: Optional[float] = None
        self.opened_at: Optional[float] = None
        self.last_state_change = self.clock.now()
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitState:
        return self._state

    def get_state(self) -> CircuitState:
        """Get current circuit state."""
        return self._state

    async def execute(self, fn: Callable[[], Union[T, Awaitable[T]]]) -> T:
        """
        Execute a call with circuit breaker protection.

        Args:
            fn: Zero-argument callable; may return a value or an awaitable

        Returns:
            Whatever fn produced

        Raises:
            CircuitBreakerError: If the call was rejected without execution
            Exception: Any failure raised by fn, unchanged
        """
        if self._state == CircuitState.OPEN:
            elapsed_ms = self._elapsed_since_open_ms()
            if elapsed_ms < self.cooldown_ms:
                self.rejected_count += 1
                remaining_ms = self.cooldown_ms - elapsed_ms
                raise CircuitBreakerError(
                    f"Circuit breaker is OPEN, retry after {remaining_ms / 1000:.1f}s",
                    CircuitState.OPEN,
                    remaining_ms
                )
            self._transition_to(CircuitState.HALF_OPEN, "cooldown period elapsed")

        if self._state == CircuitState.HALF_OPEN:
            if self._probe_in_flight:
                # Only one probe at a time
                self.rejected_count += 1
                raise CircuitBreakerError(
                    "Circuit breaker is HALF_OPEN, probe request already in flight",
                    CircuitState.HALF_OPEN,
                    0
                )
            self._probe_in_flight = True
            try:
                result = await self._invoke(fn)
            except Exception:
                self.record_failure()
                raise
            finally:
                self._probe_in_flight = False
            self.record_success()
            return result

        try:
            result = await self._invoke(fn)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result

    def record_success(self) -> None:
        """Record a successful call."""
        self.success_count += 1

        if self._state == CircuitState.HALF_OPEN:
            self._transition_to(CircuitState.CLOSED, "probe request succeeded")
            self.failure_count = 0
            self.opened_at = None
        elif self._state == CircuitState.CLOSED:
            self.failure_count = 0

    def record_failure(self) -> None:
        """Record a failed call."""
        current_time = self.clock.now()
        self.last_failure_time = current_time

        if self._state == CircuitState.HALF_OPEN:
            self.opened_at = current_time
            self._transition_to(CircuitState.OPEN, "probe request failed")
        elif self._state == CircuitState.CLOSED:
            self.failure_count += 1
            if self.failure_count >= self.failure_threshold:
                self.opened_at = current_time
                self._transition_to(
                    CircuitState.OPEN,
                    f"failure threshold reached ({self.failure_count}/{self.failure_threshold})"
                )

    def get_metrics(self) -> CircuitBreakerMetrics:
        """Get a snapshot of the breaker counters."""
        return CircuitBreakerMetrics(
            state=self._state,
            failure_count=self.failure_count,
            success_count=self.success_count,
            rejected_count=self.rejected_count,
            last_failure_time=self.last_failure_time,
            last_state_change=self.last_state_change,
        )

    def reset(self) -> None:
        """Force CLOSED and zero all counters."""
        self._state = CircuitState.CLOSED
        self.failure_count = 0
        self.success_count = 0
        self.rejected_count = 0
        self.last_failure_time = None
        self.opened_at = None
        self.last_state_change = self.clock.now()
        self._probe_in_flight = False

    def _elapsed_since_open_ms(self) -> float:
        if self.opened_at is None:
            return float(self.cooldown_ms)
        return (self.clock.now() - self.opened_at) * 1000.0

    @staticmethod
    async def _invoke(fn: Callable[[], Any]) -> Any:
        result = fn()
        if inspect.isawaitable(result):
            result = await result
        return result

    def _transition_to(self, new_state: CircuitState, reason: str) -> None:
        old_state = self._state
        if old_state == new_state:
            return

        self._state = new_state
        self.last_state_change = self.clock.now()

        if self.on_state_change:
            self.on_state_change(old_state, new_state, reason)


class CircuitBreakerRegistry:
    """
    Per-provider circuit breakers sharing one default configuration.

    Construct once at startup and pass it to whatever builds provider
    clients. Breakers are created on first reference and never evicted, and
    they never share counters with each other.
    """

    def __init__(
        self,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown_ms: float = DEFAULT_COOLDOWN_MS,
        on_state_change: Optional[StateChangeCallback] = None,
        clock: Optional[Clock] = None,
        logger: Optional[StructuredLogger] = None
    ):
        self.failure_threshold = failure_threshold
        self.cooldown_ms = cooldown_ms
        self.on_state_change = on_state_change
        self.clock = clock
        self.logger = logger
        self._breakers: Dict[str, CircuitBreaker] = {}

    def get_or_create(
        self,
        provider: str,
        failure_threshold: Optional[int] = None,
        cooldown_ms: Optional[float] = None,
        on_state_change: Optional[StateChangeCallback] = None
    ) -> CircuitBreaker:
        """
        Get the breaker for a provider, creating it on first reference.

        Overrides only apply when the breaker is created.
        """
        breaker = self._breakers.get(provider)
        if breaker is None:
            breaker = CircuitBreaker(
                failure_threshold=failure_threshold if failure_threshold is not None else self.failure_threshold,
                cooldown_ms=cooldown_ms if cooldown_ms is not None else self.cooldown_ms,
                on_state_change=self._make_callback(provider, on_state_change or self.on_state_change),
                clock=self.clock
            )
            self._breakers[provider] = breaker
        return breaker

    def get(self, provider: str) -> Optional[CircuitBreaker]:
        """Get a breaker if it exists."""
        return self._breakers.get(provider)

    def names(self) -> List[str]:
        return list(self._breakers)

    def get_all_metrics(self) -> Dict[str, CircuitBreakerMetrics]:
        """Metrics snapshot for every known provider."""
        return {name: breaker.get_metrics() for name, breaker in self._breakers.items()}

    def reset_all(self) -> None:
        for breaker in self._breakers.values():
            breaker.reset()

    def reset(self, provider: str) -> None:
        breaker = self._breakers.get(provider)
        if breaker is not None:
            breaker.reset()

    def _make_callback(self, provider: str, user_callback: Optional[StateChangeCallback]) -> StateChangeCallback:
        def callback(from_state: CircuitState, to_state: CircuitState, reason: str) -> None:
            if self.logger:
                self.logger.circuit_breaker_transition(provider, from_state.value, to_state.value, reason)
            if user_callback:
                user_callback(from_state, to_state, reason)
        return callback
