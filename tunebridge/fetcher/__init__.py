"""Outbound request resilience: rate limiting, circuit breaking, retries, HTTP."""

from .circuit_breaker import CircuitBreaker, CircuitBreakerError, CircuitBreakerRegistry
from .rate_limiter import RateLimiter

__all__ = ["CircuitBreaker", "CircuitBreakerError", "CircuitBreakerRegistry", "RateLimiter"]
