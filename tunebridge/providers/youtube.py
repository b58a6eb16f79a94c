"""YouTube importer/exporter built on YouTubeClient."""

import time
from typing import Dict, List, Optional, Tuple

from tunebridge.models.data_models import WritePlaylistResult, WriteReport
from tunebridge.models.pif import PIF, PIFProviderIds, PIFTrack
from tunebridge.monitoring.logger import StructuredLogger
from tunebridge.processor.normalizer import (
    artist_from_channel,
    build_search_query,
    chunked,
    clean_text,
    parse_iso8601_duration,
    search_cache_key,
)
from tunebridge.providers.base import ProviderError, ReadOptions, WriteOptions
from tunebridge.providers.youtube_client import MAX_PAGE_SIZE, Video, YouTubeClient


DEFAULT_PAGE_SIZE = 50
VIDEO_DETAILS_BATCH_SIZE = 50
DEFAULT_BATCH_SIZE = 50
MAX_PAGE_ITERATIONS = 1000


class YouTubeProvider:
    """
    Converts YouTube playlists to PIF and back.

    The search cache lives for the lifetime of this instance, so repeated
    (title, artists) pairs within one export cost a single search call.
    Pages, detail batches and insert batches are processed one at a time.
    """

    name = "youtube"

    def __init__(self, client: YouTubeClient, logger: Optional[StructuredLogger] = None):
        self.client = client
        self.logger = logger
        self._search_cache: Dict[Tuple[str, str], Optional[str]] = {}

    async def read_playlist(self, playlist_id: str, options: Optional[ReadOptions] = None) -> PIF:
        """
        Import a YouTube playlist into PIF.

        Args:
            playlist_id: YouTube playlist id
            options: Optional page size (clamped to 1..50)

        Returns:
            PIF with 1-based sequential positions in playlist order

        Raises:
            ProviderError: If the playlist does not exist or a call fails
        """
        page_size = self._normalize_page_size(options.page_size if options else None)

        meta = await self.client.get_playlist(playlist_id)
        playlists = meta.items or []
        if not playlists:
            raise ProviderError("not_found", f"youtube playlist {playlist_id} not found", status=404)
        snippet = playlists[0].snippet

        video_ids = await self._collect_video_ids(playlist_id, page_size)
        videos = await self._fetch_videos(video_ids)

        tracks: List[PIFTrack] = []
        for video_id in video_ids:
            track = self._map_video(videos.get(video_id), video_id, len(tracks) + 1)
            if track is not None:
                tracks.append(track)

        return PIF(
            name=clean_text(snippet.title if snippet else None) or playlist_id,
            description=clean_text(snippet.description if snippet else None),
            source_service="youtube",
            source_playlist_id=playlist_id,
            tracks=tracks,
        )

    async def _collect_video_ids(self, playlist_id: str, page_size: int) -> List[str]:
        video_ids: List[str] = []
        page_token: Optional[str] = None

        for iteration in range(1, MAX_PAGE_ITERATIONS + 1):
            page = await self.client.get_playlist_items(playlist_id, page_size, page_token)
            items = page.items or []
            for item in items:
                video_id = item.content_details.video_id if item.content_details else None
                if video_id:
                    video_ids.append(video_id)

            if self.logger:
                self.logger.page_fetched(self.name, playlist_id, iteration, len(items))

            page_token = page.next_page_token
            if not page_token:
                break
        else:
            if self.logger:
                self.logger.pagination_guard(self.name, playlist_id, MAX_PAGE_ITERATIONS)

        return video_ids

    async def _fetch_videos(self, video_ids: List[str]) -> Dict[str, Video]:
        unique_ids = list(dict.fromkeys(video_ids))
        videos: Dict[str, Video] = {}
        for batch in chunked(unique_ids, VIDEO_DETAILS_BATCH_SIZE):
            response = await self.client.get_videos(batch)
            for video in response.items or []:
                if video.id:
                    videos[video.id] = video
        return videos

    @staticmethod
    def _map_video(video: Optional[Video], video_id: str, position: int) -> Optional[PIFTrack]:
        if video is None or video.snippet is None:
            return None
        title = clean_text(video.snippet.title)
        if not title:
            return None

        duration = video.content_details.duration if video.content_details else None
        return PIFTrack(
            position=position,
            title=title,
            artists=[artist_from_channel(video.snippet.channel_title)],
            duration_ms=parse_iso8601_duration(duration),
            provider_ids=PIFProviderIds(youtube_video_id=video_id),
        )

    async def write_playlist(self, pif: PIF, options: Optional[WriteOptions] = None) -> WritePlaylistResult:
        """
        Export a PIF document as a new YouTube playlist.

        Tracks without a youtube_video_id are resolved through search (cached
        per instance). Unresolved tracks are skipped, not failed. A failing
        insert batch aborts the whole call.

        Args:
            pif: Playlist to export
            options: Optional batch size (default 50)

        Returns:
            WritePlaylistResult with the new playlist id and report
        """
        batch_size = self._normalize_batch_size(options.batch_size if options else None)

        created = await self.client.create_playlist(pif.name, pif.description)

        video_ids: List[str] = []
        skipped = 0
        for track in pif.tracks:
            video_id = await self._resolve_video_id(track)
            if video_id is None:
                skipped += 1
                if self.logger:
                    self.logger.track_skipped(self.name, track.position, track.title)
                continue
            video_ids.append(video_id)

        added = 0
        for batch in chunked(video_ids, batch_size):
            started = time.monotonic()
            await self.client.insert_playlist_items(created.id, batch)
            added += len(batch)
            if self.logger:
                self.logger.batch_inserted(
                    self.name, created.id, len(batch), (time.monotonic() - started) * 1000
                )

        report = WriteReport(attempted=len(video_ids), added=added, failed=len(video_ids) - added)
        if skipped:
            report.skipped = skipped
            report.notes.append(f"{skipped} track(s) could not be matched on youtube")

        return WritePlaylistResult(dest_id=created.id, report=report)

    async def _resolve_video_id(self, track: PIFTrack) -> Optional[str]:
        direct = track.provider_ids.youtube_video_id
        if direct:
            return direct

        key = search_cache_key(track.title, track.artists)
        if key in self._search_cache:
            if self.logger:
                self.logger.search_cache_hit(self.name, "|".join(key))
            return self._search_cache[key]

        response = await self.client.search_videos(build_search_query(track.title, track.artists))
        video_id = None
        results = response.items or []
        if results and results[0].id:
            video_id = results[0].id.video_id
        self._search_cache[key] = video_id
        return video_id

    @staticmethod
    def _normalize_page_size(page_size: Optional[int]) -> int:
        if not page_size or page_size <= 0:
            return DEFAULT_PAGE_SIZE
        return min(int(page_size), MAX_PAGE_SIZE)

    @staticmethod
    def _normalize_batch_size(batch_size: Optional[int]) -> int:
        if not batch_size or batch_size <= 0:
            return DEFAULT_BATCH_SIZE
        return int(batch_size)
