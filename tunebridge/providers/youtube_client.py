"""Typed client for the subset of the YouTube Data API v3 used for migrations."""

from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from tunebridge.fetcher.circuit_breaker import CircuitBreaker
from tunebridge.fetcher.http_client import AsyncHTTPClient
from tunebridge.fetcher.rate_limiter import RateLimiter
from tunebridge.fetcher.retry_handler import RetryHandler
from tunebridge.monitoring.logger import StructuredLogger
from tunebridge.providers.base import ProviderError


MAX_PAGE_SIZE = 50
MAX_SEARCH_RESULTS = 10
DEFAULT_SEARCH_RESULTS = 5


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PlaylistSnippet(_WireModel):
    title: Optional[str] = None
    description: Optional[str] = None


class Playlist(_WireModel):
    id: Optional[str] = None
    snippet: Optional[PlaylistSnippet] = None


class PlaylistResponse(_WireModel):
    items: Optional[List[Playlist]] = None


class PlaylistItemContentDetails(_WireModel):
    video_id: Optional[str] = Field(default=None, alias="videoId")


class PlaylistItem(_WireModel):
    content_details: Optional[PlaylistItemContentDetails] = Field(default=None, alias="contentDetails")


class PlaylistItemsResponse(_WireModel):
    items: Optional[List[PlaylistItem]] = None
    next_page_token: Optional[str] = Field(default=None, alias="nextPageToken")


class VideoSnippet(_WireModel):
    title: Optional[str] = None
    channel_title: Optional[str] = Field(default=None, alias="channelTitle")


class VideoContentDetails(_WireModel):
    duration: Optional[str] = None


class Video(_WireModel):
    id: Optional[str] = None
    snippet: Optional[VideoSnippet] = None
    content_details: Optional[VideoContentDetails] = Field(default=None, alias="contentDetails")


class VideosResponse(_WireModel):
    items: Optional[List[Video]] = None


class SearchResultId(_WireModel):
    video_id: Optional[str] = Field(default=None, alias="videoId")


class SearchResult(_WireModel):
    id: Optional[SearchResultId] = None


class SearchResponse(_WireModel):
    items: Optional[List[SearchResult]] = None


class CreatedPlaylist(_WireModel):
    id: str


M = TypeVar("M", bound=BaseModel)


class YouTubeClient:
    """
    Thin typed wrapper over YouTube REST calls.

    Every request is throttled by the rate limiter, guarded by the circuit
    breaker, and retried on 429 by the retry handler (outermost). Responses
    are validated into the wire models above before leaving this class.
    """

    provider = "youtube"

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

    async def _get_model(self, path: str, params: Dict[str, Any], model: Type[M]) -> M:
        payload = await self._request("GET", path, params=params)
        return model.model_validate(payload or {})

    async def get_playlist(self, playlist_id: str) -> PlaylistResponse:
        return await self._get_model("/playlists", {"part": "snippet", "id": playlist_id}, PlaylistResponse)

    async def get_playlist_items(
        self,
        playlist_id: str,
        max_results: int = MAX_PAGE_SIZE,
        page_token: Optional[str] = None
    ) -> PlaylistItemsResponse:
        return await self._get_model(
            "/playlistItems",
            {
                "part": "contentDetails",
                "playlistId": playlist_id,
                "maxResults": min(max(max_results, 1), MAX_PAGE_SIZE),
                "pageToken": page_token,
            },
            PlaylistItemsResponse,
        )

    async def get_videos(self, video_ids: List[str]) -> VideosResponse:
        return await self._get_model(
            "/videos",
            {"part": "snippet,contentDetails", "id": ",".join(video_ids)},
            VideosResponse,
        )

    async def search_videos(self, query: str, max_results: Optional[int] = None) -> SearchResponse:
        if max_results and max_results > 0:
            limit = min(max_results, MAX_SEARCH_RESULTS)
        else:
            limit = DEFAULT_SEARCH_RESULTS
        return await self._get_model(
            "/search",
            {"part": "snippet", "type": "video", "maxResults": limit, "q": query},
            SearchResponse,
        )

    async def create_playlist(self, title: str, description: Optional[str] = None) -> CreatedPlaylist:
        payload = await self._request(
            "POST",
            "/playlists",
            params={"part": "snippet"},
            json={
                "snippet": {"title": title, "description": description},
                "status": {"privacyStatus": "private"},
            },
        )
        if not payload or not payload.get("id"):
            raise ProviderError("internal", "youtube did not return an id for the created playlist")
        return CreatedPlaylist.model_validate(payload)

    async def insert_playlist_items(self, playlist_id: str, video_ids: List[str]) -> None:
        """Insert videos one request at a time; the API has no bulk insert."""
        for video_id in video_ids:
            await self._request(
                "POST",
                "/playlistItems",
                params={"part": "snippet"},
                json={
                    "snippet": {
                        "playlistId": playlist_id,
                        "resourceId": {"kind": "youtube#video", "videoId": video_id},
                    }
                },
            )
