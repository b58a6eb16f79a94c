"""Unit tests for the YouTube client and importer/exporter."""

import httpx
import pytest

from tunebridge.fetcher.circuit_breaker import CircuitBreaker, CircuitBreakerError
from tunebridge.fetcher.retry_handler import RetryHandler
from tunebridge.models.data_models import CircuitState
from tunebridge.models.pif import PIF
from tunebridge.providers import youtube as youtube_module
from tunebridge.providers.base import ProviderError, RateLimitError, ReadOptions, WriteOptions
from tunebridge.providers.youtube import YouTubeProvider
from tunebridge.providers.youtube_client import YouTubeClient
from tests.fixtures.sample_data import (
    YOUTUBE_PLAYLIST,
    YOUTUBE_PLAYLIST_ITEMS,
    YOUTUBE_VIDEOS,
    FakeClock,
    RecordingHandler,
    body,
    fast_rate_limiter,
    make_http_client,
    query,
    sample_pif,
    youtube_track,
)


def build_provider(handler, breaker=None, retry_handler=None, logger=None):
    http_client = make_http_client(handler, base_url="https://yt.test", provider="youtube")
    client = YouTubeClient(
        http_client,
        fast_rate_limiter(),
        breaker or CircuitBreaker(clock=FakeClock()),
        retry_handler,
        logger,
    )
    return YouTubeProvider(client, logger), http_client


def videos_for(ids):
    return {
        "items": [
            {
                "id": vid,
                "snippet": {"title": f"Title {vid}", "channelTitle": "Channel"},
                "contentDetails": {"duration": "PT1M"},
            }
            for vid in ids
        ]
    }


def read_routes(**overrides):
    routes = {
        "GET /playlists": YOUTUBE_PLAYLIST,
        "GET /playlistItems": YOUTUBE_PLAYLIST_ITEMS,
        "GET /videos": YOUTUBE_VIDEOS,
    }
    routes.update(overrides)
    return routes


def write_routes(search=None, **overrides):
    routes = {
        "POST /playlists": {"id": "PLnew"},
        "POST /playlistItems": {"id": "item"},
        "GET /search": search if search is not None else {"items": [{"id": {"videoId": "found1"}}]},
    }
    routes.update(overrides)
    return routes


class TestYouTubeImport:

    @pytest.mark.asyncio
    async def test_reads_sample_playlist(self):
        handler = RecordingHandler(read_routes())
        provider, http_client = build_provider(handler)

        async with http_client:
            pif = await provider.read_playlist("PL123")

        assert isinstance(pif, PIF)
        assert pif.name == "Sample Mix"
        assert pif.description == "demo playlist"
        assert pif.source_service == "youtube"
        assert pif.source_playlist_id == "PL123"
        assert [t.position for t in pif.tracks] == [1, 2]
        assert [t.title for t in pif.tracks] == ["Song One (Official Video)", "Song Two"]
        assert [t.artists for t in pif.tracks] == [["Artist One"], ["Artist Two"]]
        assert [t.duration_ms for t in pif.tracks] == [185000, 250000]
        assert [t.provider_ids.youtube_video_id for t in pif.tracks] == ["vid1", "vid2"]

    @pytest.mark.asyncio
    async def test_request_parameters(self):
        handler = RecordingHandler(read_routes())
        provider, http_client = build_provider(handler)

        async with http_client:
            await provider.read_playlist("PL123")

        assert query(handler.calls("GET /playlists")[0]) == {"part": "snippet", "id": "PL123"}
        items_query = query(handler.calls("GET /playlistItems")[0])
        assert items_query["part"] == "contentDetails"
        assert items_query["maxResults"] == "50"
        assert "pageToken" not in items_query
        videos_query = query(handler.calls("GET /videos")[0])
        assert videos_query == {"part": "snippet,contentDetails", "id": "vid1,vid2"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("page_size,expected", [(500, "50"), (0, "50"), (None, "50"), (10, "10"), (1, "1")])
    async def test_page_size_is_clamped(self, page_size, expected):
        handler = RecordingHandler(read_routes())
        provider, http_client = build_provider(handler)

        async with http_client:
            await provider.read_playlist("PL123", ReadOptions(page_size=page_size))

        assert query(handler.calls("GET /playlistItems")[0])["maxResults"] == expected

    @pytest.mark.asyncio
    async def test_follows_page_tokens(self):
        pages = iter([
            {"items": [{"contentDetails": {"videoId": "vid1"}}], "nextPageToken": "p2"},
            {"items": [{"contentDetails": {"videoId": "vid2"}}]},
        ])
        handler = RecordingHandler(read_routes(**{"GET /playlistItems": lambda request: next(pages)}))
        provider, http_client = build_provider(handler)

        async with http_client:
            pif = await provider.read_playlist("PL123")

        calls = handler.calls("GET /playlistItems")
        assert len(calls) == 2
        assert query(calls[1])["pageToken"] == "p2"
        assert [t.provider_ids.youtube_video_id for t in pif.tracks] == ["vid1", "vid2"]

    @pytest.mark.asyncio
    async def test_pagination_guard_stops_endless_tokens(self, monkeypatch):
        monkeypatch.setattr(youtube_module, "MAX_PAGE_ITERATIONS", 5)
        endless = {"items": [{"contentDetails": {"videoId": "vid1"}}], "nextPageToken": "again"}
        handler = RecordingHandler(read_routes(**{"GET /playlistItems": endless}))
        provider, http_client = build_provider(handler)

        async with http_client:
            pif = await provider.read_playlist("PL123")

        assert len(handler.calls("GET /playlistItems")) == 5
        assert len(pif.tracks) == 5

    @pytest.mark.asyncio
    async def test_missing_playlist_raises_not_found(self):
        handler = RecordingHandler(read_routes(**{"GET /playlists": {"items": []}}))
        provider, http_client = build_provider(handler)

        async with http_client:
            with pytest.raises(ProviderError) as exc_info:
                await provider.read_playlist("PLmissing")

        assert exc_info.value.code == "not_found"
        assert handler.calls("GET /playlistItems") == []

    @pytest.mark.asyncio
    async def test_empty_playlist(self):
        handler = RecordingHandler(read_routes(**{"GET /playlistItems": {"items": []}}))
        provider, http_client = build_provider(handler)

        async with http_client:
            pif = await provider.read_playlist("PL123")

        assert pif.tracks == []
        assert handler.calls("GET /videos") == []

    @pytest.mark.asyncio
    async def test_videos_fetched_in_batches_of_50(self):
        ids = [f"v{i}" for i in range(120)]
        items = {"items": [{"contentDetails": {"videoId": vid}} for vid in ids]}

        def videos(request):
            return videos_for(query(request)["id"].split(","))

        handler = RecordingHandler(read_routes(**{"GET /playlistItems": items, "GET /videos": videos}))
        provider, http_client = build_provider(handler)

        async with http_client:
            pif = await provider.read_playlist("PL123")

        batch_sizes = [len(query(r)["id"].split(",")) for r in handler.calls("GET /videos")]
        assert batch_sizes == [50, 50, 20]
        assert [t.position for t in pif.tracks] == list(range(1, 121))

    @pytest.mark.asyncio
    async def test_duplicate_videos_fetched_once_kept_twice(self):
        items = {"items": [{"contentDetails": {"videoId": vid}} for vid in ["vid1", "vid2", "vid1"]]}
        handler = RecordingHandler(read_routes(**{"GET /playlistItems": items}))
        provider, http_client = build_provider(handler)

        async with http_client:
            pif = await provider.read_playlist("PL123")

        assert query(handler.calls("GET /videos")[0])["id"] == "vid1,vid2"
        assert [t.provider_ids.youtube_video_id for t in pif.tracks] == ["vid1", "vid2", "vid1"]
        assert [t.position for t in pif.tracks] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_untitled_and_unavailable_videos_dropped(self):
        items = {"items": [{"contentDetails": {"videoId": vid}} for vid in ["a", "gone", "b", "c"]]}
        videos = {
            "items": [
                {"id": "a", "snippet": {"title": "First", "channelTitle": "Band - Topic"},
                 "contentDetails": {"duration": "P0D"}},
                {"id": "b", "snippet": {"title": "   ", "channelTitle": "X"}},
                {"id": "c", "snippet": {"title": "Third"}},
            ]
        }
        handler = RecordingHandler(read_routes(**{"GET /playlistItems": items, "GET /videos": videos}))
        provider, http_client = build_provider(handler)

        async with http_client:
            pif = await provider.read_playlist("PL123")

        assert [(t.position, t.title) for t in pif.tracks] == [(1, "First"), (2, "Third")]
        assert pif.tracks[0].artists == ["Band"]
        assert pif.tracks[0].duration_ms is None
        assert pif.tracks[1].artists == ["Unknown Artist"]


class TestYouTubeExport:

    @pytest.mark.asyncio
    async def test_creates_private_playlist(self):
        handler = RecordingHandler(write_routes())
        provider, http_client = build_provider(handler)

        async with http_client:
            await provider.write_playlist(sample_pif(tracks=[]))

        create = handler.calls("POST /playlists")[0]
        assert query(create) == {"part": "snippet"}
        assert body(create)["snippet"] == {"title": "Sample Mix", "description": "demo playlist"}
        assert body(create)["status"] == {"privacyStatus": "private"}

    @pytest.mark.asyncio
    async def test_uses_existing_video_ids_without_search(self):
        handler = RecordingHandler(write_routes())
        provider, http_client = build_provider(handler)
        pif = sample_pif(tracks=[
            youtube_track(1, "Song One", "Artist One", "vid1"),
            youtube_track(2, "Song Two", "Artist Two", "vid2"),
        ])

        async with http_client:
            result = await provider.write_playlist(pif)

        assert result.dest_id == "PLnew"
        assert result.report.attempted == 2
        assert result.report.added == 2
        assert result.report.failed == 0
        assert result.report.skipped is None
        assert handler.calls("GET /search") == []
        inserted = [body(r)["snippet"] for r in handler.calls("POST /playlistItems")]
        assert [s["resourceId"]["videoId"] for s in inserted] == ["vid1", "vid2"]
        assert all(s["playlistId"] == "PLnew" for s in inserted)

    @pytest.mark.asyncio
    async def test_search_resolves_missing_ids(self):
        handler = RecordingHandler(write_routes())
        provider, http_client = build_provider(handler)

        async with http_client:
            result = await provider.write_playlist(sample_pif(tracks=[youtube_track(1, "Song One", "Artist One")]))

        search = query(handler.calls("GET /search")[0])
        assert search["q"] == "Song One Artist One"
        assert search["type"] == "video"
        assert search["part"] == "snippet"
        assert search["maxResults"] == "5"
        assert result.report.added == 1

    @pytest.mark.asyncio
    async def test_search_cache_deduplicates_lookups(self):
        handler = RecordingHandler(write_routes())
        provider, http_client = build_provider(handler)
        pif = sample_pif(tracks=[
            youtube_track(1, "Song One", "Artist One"),
            youtube_track(2, "SONG ONE", "artist one"),
        ])

        async with http_client:
            result = await provider.write_playlist(pif)

        assert len(handler.calls("GET /search")) == 1
        assert result.report.attempted == 2
        assert result.report.added == 2

    @pytest.mark.asyncio
    async def test_cache_survives_across_writes_on_same_instance(self):
        handler = RecordingHandler(write_routes())
        provider, http_client = build_provider(handler)
        pif = sample_pif(tracks=[youtube_track(1, "Song One", "Artist One")])

        async with http_client:
            await provider.write_playlist(pif)
            await provider.write_playlist(pif)

        assert len(handler.calls("GET /search")) == 1

    @pytest.mark.asyncio
    async def test_unmatched_tracks_are_skipped_and_cached(self):
        handler = RecordingHandler(write_routes(search={"items": []}))
        provider, http_client = build_provider(handler)
        pif = sample_pif(tracks=[
            youtube_track(1, "Nothing", "Nobody"),
            youtube_track(2, "nothing", "NOBODY"),
            youtube_track(3, "Song Two", "Artist Two", "vid2"),
        ])

        async with http_client:
            result = await provider.write_playlist(pif)

        assert len(handler.calls("GET /search")) == 1
        assert result.report.attempted == 1
        assert result.report.added == 1
        assert result.report.failed == 0
        assert result.report.skipped == 2
        assert result.report.notes == ["2 track(s) could not be matched on youtube"]

    @pytest.mark.asyncio
    async def test_batch_size_option(self, logger, caplog):
        handler = RecordingHandler(write_routes())
        provider, http_client = build_provider(handler, logger=logger)
        pif = sample_pif(tracks=[youtube_track(i, f"S{i}", "A", f"v{i}") for i in range(1, 6)])

        with caplog.at_level("INFO", logger="tunebridge.tests"):
            async with http_client:
                result = await provider.write_playlist(pif, WriteOptions(batch_size=2))

        assert result.report.added == 5
        assert len(handler.calls("POST /playlistItems")) == 5
        batches = [r.message for r in caplog.records if '"event": "batch_inserted"' in r.message]
        assert len(batches) == 3

    @pytest.mark.asyncio
    async def test_insert_failure_propagates(self):
        handler = RecordingHandler(write_routes(**{
            "POST /playlistItems": httpx.Response(403, json={"error": "forbidden"}),
        }))
        provider, http_client = build_provider(handler)

        async with http_client:
            with pytest.raises(ProviderError) as exc_info:
                await provider.write_playlist(sample_pif(tracks=[youtube_track(1, "S", "A", "v1")]))

        assert exc_info.value.code == "forbidden"

    @pytest.mark.asyncio
    async def test_round_trip_adds_every_track(self):
        handler = RecordingHandler({**read_routes(), **write_routes()})
        provider, http_client = build_provider(handler)

        async with http_client:
            pif = await provider.read_playlist("PL123")
            result = await provider.write_playlist(pif)

        assert result.report.attempted == result.report.added == 2
        assert handler.calls("GET /search") == []


class TestYouTubeClient:

    @pytest.mark.asyncio
    async def test_search_result_limit(self):
        handler = RecordingHandler({"GET /search": {"items": []}})
        provider, http_client = build_provider(handler)

        async with http_client:
            await provider.client.search_videos("q")
            await provider.client.search_videos("q", max_results=50)
            await provider.client.search_videos("q", max_results=3)

        assert [query(r)["maxResults"] for r in handler.calls("GET /search")] == ["5", "10", "3"]

    @pytest.mark.asyncio
    async def test_create_playlist_without_id_fails(self):
        handler = RecordingHandler({"POST /playlists": {}})
        provider, http_client = build_provider(handler)

        async with http_client:
            with pytest.raises(ProviderError) as exc_info:
                await provider.client.create_playlist("Mix")

        assert exc_info.value.code == "internal"

    @pytest.mark.asyncio
    async def test_sends_bearer_token(self):
        handler = RecordingHandler({"GET /playlists": YOUTUBE_PLAYLIST})
        provider, http_client = build_provider(handler)

        async with http_client:
            await provider.client.get_playlist("PL123")

        assert handler.requests[0].headers["authorization"] == "Bearer token-123"

    @pytest.mark.asyncio
    async def test_breaker_opens_and_fails_fast(self):
        clock = FakeClock()
        breaker = CircuitBreaker(failure_threshold=2, cooldown_ms=30000, clock=clock)
        handler = RecordingHandler({"GET /playlists": httpx.Response(500, text="down")})
        provider, http_client = build_provider(handler, breaker=breaker)

        async with http_client:
            for _ in range(2):
                with pytest.raises(ProviderError):
                    await provider.client.get_playlist("PL123")
            with pytest.raises(CircuitBreakerError):
                await provider.client.get_playlist("PL123")

        assert breaker.state == CircuitState.OPEN
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_rate_limited_request_is_retried(self):
        clock = FakeClock()
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "1"}),
            httpx.Response(200, json=YOUTUBE_PLAYLIST),
        ])
        handler = RecordingHandler({"GET /playlists": lambda request: next(responses)})
        retry = RetryHandler(max_retries=2, jitter_max=0.0, sleeper=clock.sleep)
        provider, http_client = build_provider(handler, retry_handler=retry)

        async with http_client:
            playlist = await provider.client.get_playlist("PL123")

        assert playlist.items[0].snippet.title == "Sample Mix"
        assert clock.sleeps == [1.0]

    @pytest.mark.asyncio
    async def test_rate_limit_surfaces_without_retry_handler(self):
        handler = RecordingHandler({"GET /playlists": httpx.Response(429)})
        provider, http_client = build_provider(handler)

        async with http_client:
            with pytest.raises(RateLimitError):
                await provider.client.get_playlist("PL123")
