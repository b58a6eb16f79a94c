"""Unit tests for the JSON output formatter."""

import json

import pytest

from tunebridge.models.data_models import (
    CacheMetrics,
    CircuitBreakerMetrics,
    CircuitState,
    MatchReport,
    MigrationResult,
    UnresolvedTrack,
    WriteReport,
)
from tunebridge.models.pif import PIFProviderIds, PIFTrack
from tunebridge.pipeline.output import JSONOutputFormatter
from tests.fixtures.sample_data import sample_pif


@pytest.fixture
def migration_result():
    return MigrationResult(
        source_service="youtube",
        source_playlist_id="PL123",
        dest_service="spotify",
        dest_id="sp-1",
        playlist_name="Sample Mix",
        track_count=2,
        write_report=WriteReport(attempted=2, added=1, failed=0, skipped=1, notes=["1 track(s) missing spotify_track_id"]),
        match_report=MatchReport(
            total_tracks=2,
            rule_counts={"mbid": 0, "isrc": 1, "exact": 0, "fuzzy": 0},
            matched_isrc_pct=50.0,
            matched_fuzzy_pct=0.0,
            unresolved=[UnresolvedTrack(position=2, title="Song Two", artists=["Artist Two"])],
        ),
        duration_seconds=1.23456,
        breaker_metrics={
            "youtube": CircuitBreakerMetrics(
                state=CircuitState.OPEN,
                failure_count=5,
                success_count=1,
                rejected_count=2,
                last_failure_time=12.5,
                last_state_change=12.5,
            )
        },
        cache_metrics={"youtube": CacheMetrics(hits=3, misses=5, evictions=1, size=4)},
    )


def test_format_structure(migration_result):
    output = JSONOutputFormatter().format(migration_result)

    assert set(output) == {"migration", "write_report", "match_report", "circuit_breakers", "response_cache"}
    assert output["migration"] == {
        "source": {"service": "youtube", "playlist_id": "PL123"},
        "destination": {"service": "spotify", "playlist_id": "sp-1"},
        "playlist_name": "Sample Mix",
        "track_count": 2,
        "duration_seconds": 1.23,
    }
    assert output["write_report"]["skipped"] == 1
    assert output["write_report"]["notes"] == ["1 track(s) missing spotify_track_id"]
    assert output["match_report"]["unresolved"][0] == {
        "position": 2, "title": "Song Two", "artists": ["Artist Two"], "isrc": None,
    }
    assert output["circuit_breakers"]["youtube"]["state"] == "OPEN"
    assert output["circuit_breakers"]["youtube"]["rejected_count"] == 2
    assert output["response_cache"] == {"youtube": {"hits": 3, "misses": 5, "evictions": 1, "size": 4}}


def test_format_pif_omits_unset_fields():
    pif = sample_pif(tracks=[
        PIFTrack(position=1, title="Song", artists=["A"], provider_ids=PIFProviderIds(spotify_track_id="sp1")),
    ])

    data = JSONOutputFormatter.format_pif(pif)

    assert data["name"] == "Sample Mix"
    assert "source_service" not in data
    assert data["tracks"][0] == {
        "position": 1,
        "title": "Song",
        "artists": ["A"],
        "provider_ids": {"spotify_track_id": "sp1"},
    }


def test_save_creates_directories(tmp_path, migration_result):
    path = tmp_path / "nested" / "out" / "migration.json"

    JSONOutputFormatter().save(migration_result, path)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["migration"]["destination"]["playlist_id"] == "sp-1"


def test_save_pif_round_trips(tmp_path):
    path = tmp_path / "playlist.json"
    pif = sample_pif()

    JSONOutputFormatter().save_pif(pif, path)

    assert json.loads(path.read_text(encoding="utf-8")) == pif.model_dump(exclude_none=True)
