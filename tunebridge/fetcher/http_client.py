"""Async HTTP client wrapper for provider REST APIs."""

import email.utils
import time
from typing import Any, Dict, Optional

import httpx

from tunebridge.fetcher.response_cache import ResponseCache, cache_key
from tunebridge.providers.base import ProviderError, RateLimitError, error_code_for_status


def parse_retry_after(value: Optional[str], now: Optional[float] = None) -> Optional[float]:
    """
    Parse a Retry-After header into milliseconds.

    Accepts delta-seconds or an HTTP date. Returns None when absent or
    unparseable.
    """
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        seconds = None
    if seconds is not None:
        return max(0.0, seconds) * 1000.0

    try:
        parsed = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed is None:
        return None
    current = time.time() if now is None else now
    return max(0.0, parsed.timestamp() - current) * 1000.0


class AsyncHTTPClient:
    """
    Async HTTP client wrapper around httpx.AsyncClient.

    Provides:
    - Base URL and bearer token handling
    - Configurable connect, read, write and pool timeouts
    - Mapping of error statuses onto ProviderError / RateLimitError
    - Optional caching of successful GET responses
    - Context manager for proper lifecycle management
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        provider: str = "provider",
        connect_timeout: float = 3.0,
        read_timeout: float = 8.0,
        write_timeout: float = 5.0,
        pool_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache: Optional[ResponseCache] = None
    ):
        """
        Initialize HTTP client.

        Args:
            base_url: Provider API root, e.g. https://www.googleapis.com/youtube/v3
            token: OAuth bearer token sent on every request
            provider: Provider name used in error messages
            connect_timeout: Connection timeout in seconds
            read_timeout: Read timeout in seconds
            write_timeout: Write timeout in seconds
            pool_timeout: Pool timeout in seconds
            transport: Optional httpx transport (tests use MockTransport/ASGITransport)
            cache: Optional response cache for successful GET payloads
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.provider = provider
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.pool_timeout = pool_timeout
        self.transport = transport
        self.cache = cache
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Enter async context manager."""
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        await self.aclose()

    async def open(self) -> None:
        if self._client is not None:
            return
        timeout = httpx.Timeout(
            connect=self.connect_timeout,
            read=self.read_timeout,
            write=self.write_timeout,
            pool=self.pool_timeout
        )
        headers = {}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url + "/",
            headers=headers,
            timeout=timeout,
            transport=self.transport
        )

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None
    ) -> Optional[Any]:
        """
        Perform a request and decode its JSON body.

        Args:
            method: HTTP method
            path: Path relative to base_url
            params: Query parameters; None values are dropped
            json: Optional JSON body

        Returns:
            Decoded JSON, or None for empty/204/non-JSON bodies

        Raises:
            RateLimitError: On 429
            ProviderError: On other non-2xx statuses and transport failures
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        query = {k: v for k, v in (params or {}).items() if v is not None}
        key = None
        if self.cache is not None and method.upper() == "GET":
            url = httpx.URL(f"{self.base_url}/{path.lstrip('/')}", params=query)
            key = cache_key(method, str(url), self.token)
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        try:
            response = await self._client.request(
                method,
                path.lstrip("/"),
                params=query,
                json=json
            )
        except httpx.TimeoutException as e:
            raise ProviderError("network", f"{self.provider} request timed out: {e}") from e
        except httpx.TransportError as e:
            raise ProviderError("network", f"{self.provider} transport error: {e}") from e

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("retry-after"))
            raise RateLimitError(f"{self.provider} rate limit exceeded", retry_after)

        if response.is_error:
            message = response.text or response.reason_phrase
            raise ProviderError(
                error_code_for_status(response.status_code),
                f"{self.provider} API {response.status_code}: {message[:200]}",
                status=response.status_code
            )

        if response.status_code == 204 or not response.content:
            return None

        try:
            payload = response.json()
        except ValueError:
            return None

        if key is not None and payload is not None:
            self.cache.set(key, payload)
        return payload
