"""Typed client for the subset of the Spotify Web API used for migrations."""

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from tunebridge.fetcher.circuit_breaker import CircuitBreaker
from tunebridge.fetcher.http_client import AsyncHTTPClient
from tunebridge.fetcher.rate_limiter import RateLimiter
from tunebridge.fetcher.retry_handler import RetryHandler
from tunebridge.monitoring.logger import StructuredLogger
from tunebridge.providers.base import ProviderError


MAX_PAGE_SIZE = 100
MAX_ADD_BATCH = 100


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SpotifyArtist(_WireModel):
    name: Optional[str] = None


class SpotifyAlbum(_WireModel):
    name: Optional[str] = None
    release_date: Optional[str] = None


class SpotifyExternalIds(_WireModel):
    isrc: Optional[str] = None


class SpotifyTrack(_WireModel):
    id: Optional[str] = None
    name: Optional[str] = None
    duration_ms: Optional[int] = None
    explicit: Optional[bool] = None
    external_ids: Optional[SpotifyExternalIds] = None
    artists: Optional[List[SpotifyArtist]] = None
    album: Optional[SpotifyAlbum] = None
    is_local: Optional[bool] = None


class SpotifyPlaylistItem(_WireModel):
    track: Optional[SpotifyTrack] = None


class SpotifyPlaylistPage(_WireModel):
    items: List[SpotifyPlaylistItem] = Field(default_factory=list)
    next: Optional[str] = None
    offset: int = 0
    limit: int = 0
    total: int = 0


class SpotifyPlaylist(_WireModel):
    id: str
    name: str
    description: Optional[str] = None
    tracks: SpotifyPlaylistPage = Field(default_factory=SpotifyPlaylistPage)


class SpotifyUserProfile(_WireModel):
    id: str


class SpotifyCreatedPlaylist(_WireModel):
    id: str


M = TypeVar("M", bound=BaseModel)


class SpotifyClient:
    """
    Spotify Web API client.

    Shares the request path of YouTubeClient: retry handler, then circuit
    breaker, then rate limiter, then httpx.
    """

    provider = "spotify"

    def __init__(
        self,
        http_client: AsyncHTTPClient,
        rate_limiter: RateLimiter,
        circuit_breaker: CircuitBreaker,
        retry_handler: Optional[RetryHandler] = None,
        logger: Optional[StructuredLogger] = None
    ):
        self.http_client = http_client
        self.rate_limiter = rate_limiter
        self.circuit_breaker = circuit_breaker
        self.retry_handler = retry_handler or RetryHandler(max_retries=0)
        self.logger = logger

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None
    ) -> Optional[Any]:
        async def send():
            await self.rate_limiter.throttle()
            try:
                return await self.http_client.request(method, path, params=params, json=json)
            except ProviderError as e:
                if self.logger:
                    self.logger.request_error(self.provider, method, path, e.status, str(e))
                raise

        return await self.retry_handler.execute(self.circuit_breaker.execute, send)

    async def _call_model(self, model: Type[M], method: str, path: str, **kwargs) -> M:
        payload = await self._request(method, path, **kwargs)
        if payload is None:
            raise ProviderError("internal", f"spotify returned an empty body for {method} {path}")
        return model.model_validate(payload)

    async def get_current_user(self) -> SpotifyUserProfile:
        return await self._call_model(SpotifyUserProfile, "GET", "/me")

    async def get_playlist(self, playlist_id: str) -> SpotifyPlaylist:
        return await self._call_model(SpotifyPlaylist, "GET", f"/playlists/{playlist_id}")

    async def get_playlist_tracks(self, playlist_id: str, offset: int, limit: int) -> SpotifyPlaylistPage:
        return await self._call_model(
            SpotifyPlaylistPage,
            "GET",
            f"/playlists/{playlist_id}/tracks",
            params={"offset": offset, "limit": min(max(limit, 1), MAX_PAGE_SIZE)},
        )

    async def create_playlist(
        self,
        user_id: str,
        name: str,
        description: Optional[str] = None,
        public: bool = False
    ) -> SpotifyCreatedPlaylist:
        return await self._call_model(
            SpotifyCreatedPlaylist,
            "POST",
            f"/users/{user_id}/playlists",
            json={"name": name, "description": description, "public": public},
        )

    async def add_tracks(self, playlist_id: str, uris: List[str]) -> None:
        if len(uris) > MAX_ADD_BATCH:
            raise ValueError(f"spotify accepts at most {MAX_ADD_BATCH} uris per request, got: {len(uris)}")
        await self._request("POST", f"/playlists/{playlist_id}/tracks", json={"uris": uris})
