"""Spotify importer/exporter built on SpotifyClient."""

import time
from typing import List, Optional

from tunebridge.models.data_models import WritePlaylistResult, WriteReport
from tunebridge.models.pif import PIF, PIFProviderIds, PIFTrack
from tunebridge.monitoring.logger import StructuredLogger
from tunebridge.processor.normalizer import chunked, clean_text
from tunebridge.providers.base import ReadOptions, WriteOptions
from tunebridge.providers.spotify_client import (
    MAX_ADD_BATCH,
    MAX_PAGE_SIZE,
    SpotifyClient,
    SpotifyPlaylist,
    SpotifyPlaylistItem,
)


DEFAULT_PAGE_SIZE = 100
DEFAULT_BATCH_SIZE = 100
MAX_PAGE_ITERATIONS = 1000


def to_uri(track_id: str) -> str:
    return f"spotify:track:{track_id}"


class SpotifyProvider:
    """Converts Spotify playlists to PIF and back."""

    name = "spotify"

    def __init__(self, client: SpotifyClient, logger: Optional[StructuredLogger] = None):
        self.client = client
        self.logger = logger

    async def read_playlist(self, playlist_id: str, options: Optional[ReadOptions] = None) -> PIF:
        """
        Import a Spotify playlist into PIF.

        The first page of tracks arrives embedded in the playlist object;
        later pages are fetched by offset while the API reports a next page.
        Local files and removed tracks are dropped.
        """
        page_size = self._normalize_page_size(options.page_size if options else None)
        playlist = await self.client.get_playlist(playlist_id)
        items = await self._fetch_all_items(playlist, page_size)

        tracks: List[PIFTrack] = []
        for item in items:
            track = self._map_item(item, len(tracks) + 1)
            if track is not None:
                tracks.append(track)

        return PIF(
            name=clean_text(playlist.name) or playlist.id,
            description=clean_text(playlist.description),
            source_service="spotify",
            source_playlist_id=playlist.id,
            tracks=tracks,
        )

    async def _fetch_all_items(self, playlist: SpotifyPlaylist, page_size: int) -> List[SpotifyPlaylistItem]:
        items = list(playlist.tracks.items)
        next_url = playlist.tracks.next
        offset = playlist.tracks.offset + len(playlist.tracks.items)

        iteration = 0
        while next_url:
            iteration += 1
            if iteration > MAX_PAGE_ITERATIONS:
                if self.logger:
                    self.logger.pagination_guard(self.name, playlist.id, MAX_PAGE_ITERATIONS)
                break

            page = await self.client.get_playlist_tracks(playlist.id, offset, page_size)
            if self.logger:
                self.logger.page_fetched(self.name, playlist.id, iteration, len(page.items))
            if not page.items:
                break
            items.extend(page.items)
            offset += len(page.items)
            next_url = page.next

        return items

    @staticmethod
    def _map_item(item: SpotifyPlaylistItem, position: int) -> Optional[PIFTrack]:
        track = item.track
        if track is None or track.is_local:
            return None
        title = clean_text(track.name)
        if not title:
            return None

        artists = [a.name for a in (track.artists or []) if a.name]
        album = track.album
        return PIFTrack(
            position=position,
            title=title,
            artists=artists,
            album=album.name if album else None,
            duration_ms=track.duration_ms,
            explicit=track.explicit,
            release_date=album.release_date if album else None,
            isrc=track.external_ids.isrc if track.external_ids else None,
            provider_ids=PIFProviderIds(spotify_track_id=track.id),
        )

    async def write_playlist(self, pif: PIF, options: Optional[WriteOptions] = None) -> WritePlaylistResult:
        """
        Export a PIF document as a new private Spotify playlist.

        Only tracks that already carry a spotify_track_id are added; the
        rest are reported as skipped.
        """
        batch_size = self._normalize_batch_size(options.batch_size if options else None)

        profile = await self.client.get_current_user()
        created = await self.client.create_playlist(profile.id, pif.name, pif.description)

        uris: List[str] = []
        skipped = 0
        for track in pif.tracks:
            track_id = track.provider_ids.spotify_track_id
            if not track_id:
                skipped += 1
                if self.logger:
                    self.logger.track_skipped(self.name, track.position, track.title)
                continue
            uris.append(to_uri(track_id))

        added = 0
        for batch in chunked(uris, batch_size):
            started = time.monotonic()
            await self.client.add_tracks(created.id, batch)
            added += len(batch)
            if self.logger:
                self.logger.batch_inserted(
                    self.name, created.id, len(batch), (time.monotonic() - started) * 1000
                )

        report = WriteReport(attempted=len(uris), added=added, failed=len(uris) - added)
        if skipped:
            report.skipped = skipped
            report.notes.append(f"{skipped} track(s) missing spotify_track_id")

        return WritePlaylistResult(dest_id=created.id, report=report)

    @staticmethod
    def _normalize_page_size(page_size: Optional[int]) -> int:
        if not page_size or page_size <= 0:
            return DEFAULT_PAGE_SIZE
        return min(int(page_size), MAX_PAGE_SIZE)

    @staticmethod
    def _normalize_batch_size(batch_size: Optional[int]) -> int:
        if not batch_size or batch_size <= 0:
            return DEFAULT_BATCH_SIZE
        return min(int(batch_size), MAX_ADD_BATCH)
