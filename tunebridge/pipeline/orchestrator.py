"""Migration orchestrator coordinating import, matching and export."""

import asyncio
import time
from typing import Dict, List, Optional

from tunebridge.fetcher.circuit_breaker import CircuitBreakerRegistry
from tunebridge.fetcher.response_cache import ResponseCache
from tunebridge.models.data_models import Candidate, MigrationResult, ProviderTrack, ResolveInput
from tunebridge.models.pif import PIF, PIFTrack
from tunebridge.monitoring.logger import StructuredLogger
from tunebridge.processor.aggregator import MatchReportAggregator
from tunebridge.processor.resolver import resolve_mbid
from tunebridge.providers.base import Exporter, Importer, ReadOptions, WriteOptions


def normalize_pif(pif: PIF, name_override: Optional[str] = None) -> PIF:
    """
    Apply a non-blank name override and repair track positions.

    Tracks keep their order; a track whose position does not match its
    1-based index is renumbered.
    """
    updates: Dict = {}
    if name_override and name_override.strip():
        updates["name"] = name_override.strip()

    tracks: List[PIFTrack] = []
    repaired = False
    for index, track in enumerate(pif.tracks, start=1):
        if track.position != index:
            track = track.model_copy(update={"position": index})
            repaired = True
        tracks.append(track)
    if repaired:
        updates["tracks"] = tracks

    return pif.model_copy(update=updates) if updates else pif


class MigrationOrchestrator:
    """Runs one playlist migration from a source to a destination provider."""

    def __init__(
        self,
        registry: CircuitBreakerRegistry,
        logger: Optional[StructuredLogger] = None,
        total_timeout: float = 300.0,
        fuzzy_threshold: Optional[float] = None,
        isrc_map: Optional[Dict[str, str]] = None,
        page_size: Optional[int] = None,
        batch_size: Optional[int] = None,
        caches: Optional[Dict[str, ResponseCache]] = None
    ):
        """
        Initialize orchestrator.

        Args:
            registry: Breaker registry whose metrics are attached to the result
            logger: Structured logger
            total_timeout: Maximum duration of a whole migration in seconds
            fuzzy_threshold: Resolver fuzzy threshold override
            isrc_map: Optional ISRC -> MBID map for the resolver
            page_size: Import page size
            batch_size: Export batch size
            caches: Response caches by provider name, reported on the result
        """
        self.registry = registry
        self.logger = logger or StructuredLogger()
        self.total_timeout = total_timeout
        self.fuzzy_threshold = fuzzy_threshold
        self.isrc_map = isrc_map
        self.page_size = page_size
        self.batch_size = batch_size
        self.caches = caches or {}

    async def migrate(
        self,
        source: Importer,
        source_playlist_id: str,
        dest: Exporter,
        dest_name: Optional[str] = None,
        catalog: Optional[List[Candidate]] = None
    ) -> MigrationResult:
        """
        Migrate one playlist: read -> normalize -> annotate -> write.

        Raises:
            asyncio.TimeoutError: If the migration exceeds total_timeout
            ProviderError: On provider failures
            CircuitBreakerError: When a provider's breaker rejects a call
        """
        try:
            return await asyncio.wait_for(
                self._migrate(source, source_playlist_id, dest, dest_name, catalog),
                timeout=self.total_timeout
            )
        except asyncio.TimeoutError:
            self.logger.log("migration_timeout", timeout=self.total_timeout)
            raise

    async def _migrate(
        self,
        source: Importer,
        source_playlist_id: str,
        dest: Exporter,
        dest_name: Optional[str],
        catalog: Optional[List[Candidate]]
    ) -> MigrationResult:
        started = time.monotonic()
        self.logger.log(
            "migration_start",
            source=source.name,
            dest=dest.name,
            playlist_id=source_playlist_id
        )

        pif = await source.read_playlist(source_playlist_id, ReadOptions(page_size=self.page_size))
        pif = normalize_pif(pif, dest_name)
        pif, aggregator = self.annotate(pif, catalog or [])

        written = await dest.write_playlist(pif, WriteOptions(batch_size=self.batch_size))

        elapsed = time.monotonic() - started
        self.logger.log(
            "migration_complete",
            source=source.name,
            dest=dest.name,
            dest_id=written.dest_id,
            added=written.report.added,
            skipped=written.report.skipped,
            elapsed_ms=round(elapsed * 1000, 2)
        )

        return MigrationResult(
            source_service=source.name,
            source_playlist_id=source_playlist_id,
            dest_service=dest.name,
            dest_id=written.dest_id,
            playlist_name=pif.name,
            track_count=len(pif.tracks),
            write_report=written.report,
            match_report=aggregator.get_report(),
            duration_seconds=elapsed,
            breaker_metrics=self.registry.get_all_metrics(),
            cache_metrics={name: cache.get_metrics() for name, cache in self.caches.items()}
        )

    def annotate(self, pif: PIF, catalog: List[Candidate]):
        """
        Fill mb_recording_id on every track the resolver can match.

        Tracks that already carry an MBID keep it. Returns the annotated PIF
        and the aggregator holding per-track outcomes.
        """
        aggregator = MatchReportAggregator()
        tracks: List[PIFTrack] = []

        for track in pif.tracks:
            result = resolve_mbid(ResolveInput(
                provider=ProviderTrack(
                    title=track.title,
                    artist=track.primary_artist,
                    duration_ms=track.duration_ms,
                    isrc=track.isrc,
                    mbid=track.mb_recording_id
                ),
                catalog=catalog,
                fuzzy_threshold=self.fuzzy_threshold,
                isrc_map=self.isrc_map
            ))
            aggregator.add(track, result)
            if result is not None and result.mbid != track.mb_recording_id:
                track = track.model_copy(update={"mb_recording_id": result.mbid})
            tracks.append(track)

        return pif.model_copy(update={"tracks": tracks}), aggregator
