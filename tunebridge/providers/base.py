"""Provider contracts shared by every importer and exporter."""

from dataclasses import dataclass
from typing import Optional, Protocol

from tunebridge.models.data_models import WritePlaylistResult
from tunebridge.models.pif import PIF


class ProviderError(Exception):
    """
    Failure reported by (or while talking to) a provider API.

    code is one of: rate_limited, unauthorized, forbidden, not_found,
    bad_request, internal, network.
    """

    def __init__(self, code: str, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.status = status


class RateLimitError(ProviderError):
    """Provider answered 429; retry_after_ms comes from Retry-After when present."""

    def __init__(self, message: str, retry_after_ms: Optional[float] = None):
        super().__init__("rate_limited", message, status=429)
        self.retry_after_ms = retry_after_ms


class ProviderDisabledError(Exception):
    """Provider is switched off by its feature flag."""

    def __init__(self, provider: str):
        super().__init__(f'Provider "{provider}" is disabled by feature flag')
        self.provider = provider


class UnsupportedProviderError(Exception):
    """No implementation exists for the requested provider."""

    def __init__(self, provider: str):
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider


def error_code_for_status(status: int) -> str:
    """Map an HTTP status onto a ProviderError code."""
    if status == 429:
        return "rate_limited"
    if status == 401:
        return "unauthorized"
    if status == 403:
        return "forbidden"
    if status == 404:
        return "not_found"
    if 400 <= status < 500:
        return "bad_request"
    return "internal"


@dataclass
class ReadOptions:
    """Knobs for importing; page_size is clamped per provider."""
    page_size: Optional[int] = None


@dataclass
class WriteOptions:
    """Knobs for exporting; batch_size is clamped per provider."""
    batch_size: Optional[int] = None


class Importer(Protocol):
    name: str

    async def read_playlist(self, playlist_id: str, options: Optional[ReadOptions] = None) -> PIF:
        ...


class Exporter(Protocol):
    name: str

    async def write_playlist(self, pif: PIF, options: Optional[WriteOptions] = None) -> WritePlaylistResult:
        ...
