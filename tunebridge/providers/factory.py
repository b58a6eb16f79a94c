"""Build provider implementations from configuration."""

from typing import Optional

import httpx

from tunebridge.fetcher.circuit_breaker import CircuitBreakerRegistry
from tunebridge.fetcher.http_client import AsyncHTTPClient
from tunebridge.fetcher.rate_limiter import RateLimiter
from tunebridge.fetcher.response_cache import ResponseCache
from tunebridge.fetcher.retry_handler import RetryHandler
from tunebridge.models.config import AppConfig
from tunebridge.monitoring.logger import StructuredLogger
from tunebridge.providers.base import ProviderDisabledError, UnsupportedProviderError
from tunebridge.providers.spotify import SpotifyProvider
from tunebridge.providers.spotify_client import SpotifyClient
from tunebridge.providers.youtube import YouTubeProvider
from tunebridge.providers.youtube_client import YouTubeClient


IMPLEMENTED_PROVIDERS = ("spotify", "youtube")


def create_response_cache(config: AppConfig) -> Optional[ResponseCache]:
    """Build a GET response cache from config, or None when caching is off."""
    if not config.response_cache_enabled:
        return None
    return ResponseCache(
        max_size=config.response_cache_max_size,
        ttl_ms=config.response_cache_ttl_ms
    )


def create_provider(
    name: str,
    token: Optional[str],
    registry: CircuitBreakerRegistry,
    config: AppConfig,
    http_client: Optional[AsyncHTTPClient] = None,
    logger: Optional[StructuredLogger] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    cache: Optional[ResponseCache] = None
):
    """
    Create an importer/exporter for a provider.

    The breaker comes from the shared registry, so every client built for
    the same provider name shares one breaker. The returned provider's
    client owns an AsyncHTTPClient that the caller must open/close
    (see provider.client.http_client).

    Args:
        name: Provider name (spotify, youtube, ...)
        token: OAuth access token
        registry: Circuit breaker registry shared by the process
        config: Application configuration
        http_client: Pre-built HTTP client (tests); built from config otherwise
        logger: Structured logger
        transport: Optional httpx transport passed to a freshly built client
        cache: Optional GET response cache for a freshly built client

    Raises:
        ProviderDisabledError: If the provider's feature flag is off
        UnsupportedProviderError: If there is no implementation for it
    """
    key = name.strip().lower()
    settings = config.provider(key)
    if settings is not None and not settings.enabled:
        raise ProviderDisabledError(key)
    if key not in IMPLEMENTED_PROVIDERS or settings is None:
        raise UnsupportedProviderError(key)

    if http_client is None:
        http_client = AsyncHTTPClient(
            base_url=settings.base_url,
            token=token,
            provider=key,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            transport=transport,
            cache=cache
        )

    rate_limiter = RateLimiter(settings.requests_per_second)
    breaker = registry.get_or_create(key)
    retry_handler = RetryHandler(
        max_retries=config.max_retries,
        base_delay=config.retry_base_delay,
        max_delay=config.retry_max_delay,
        jitter_max=config.retry_jitter_max,
        logger=logger
    )

    if key == "youtube":
        client = YouTubeClient(http_client, rate_limiter, breaker, retry_handler, logger)
        return YouTubeProvider(client, logger)

    client = SpotifyClient(http_client, rate_limiter, breaker, retry_handler, logger)
    return SpotifyProvider(client, logger)
