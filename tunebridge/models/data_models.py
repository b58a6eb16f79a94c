"""Core data models for the provider resilience and matching core."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


PROVIDER_NAMES = ("spotify", "deezer", "tidal", "youtube")


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


class MatchRule(Enum):
    """Resolver rule that produced a match, in cascade order."""
    MBID = "mbid"
    ISRC = "isrc"
    EXACT = "exact"
    FUZZY = "fuzzy"


@dataclass
class CircuitBreakerMetrics:
    """Point-in-time snapshot of a single breaker."""
    state: CircuitState
    failure_count: int
    success_count: int
    rejected_count: int
    last_failure_time: Optional[float]
    last_state_change: float


@dataclass
class Candidate:
    """One canonical recording in the local catalog."""
    mbid: str
    title: str
    primary_artist: str
    duration_ms: Optional[int] = None
    isrc: Optional[str] = None


@dataclass
class ProviderTrack:
    """Raw track fields as reported by an external provider."""
    title: str
    artist: str
    duration_ms: Optional[int] = None
    isrc: Optional[str] = None
    mbid: Optional[str] = None


@dataclass
class ResolveInput:
    """Everything the resolver needs for a single lookup."""
    provider: ProviderTrack
    catalog: List[Candidate] = field(default_factory=list)
    fuzzy_threshold: Optional[float] = None
    isrc_map: Optional[Dict[str, str]] = None


@dataclass
class RankedCandidate:
    """A catalog candidate together with the score it received."""
    candidate: Candidate
    confidence: float
    rule: MatchRule


@dataclass
class MatchResult:
    """Winning recording for a provider track."""
    mbid: str
    confidence: float
    rule: MatchRule
    candidates: List[RankedCandidate] = field(default_factory=list)


@dataclass
class WriteReport:
    """Outcome counters of a single write_playlist call."""
    attempted: int
    added: int
    failed: int
    skipped: Optional[int] = None
    notes: List[str] = field(default_factory=list)


@dataclass
class WritePlaylistResult:
    """Destination playlist id plus the write report."""
    dest_id: str
    report: WriteReport


@dataclass
class UnresolvedTrack:
    """Track that no resolver rule could match against the catalog."""
    position: int
    title: str
    artists: List[str]
    isrc: Optional[str] = None


@dataclass
class MatchReport:
    """Summary of resolver outcomes over a whole playlist."""
    total_tracks: int
    rule_counts: Dict[str, int]
    matched_isrc_pct: float
    matched_fuzzy_pct: float
    unresolved: List[UnresolvedTrack]


@dataclass
class CacheMetrics:
    """Snapshot of a response cache's counters."""
    hits: int
    misses: int
    evictions: int
    size: int


@dataclass
class MigrationResult:
    """Complete migration execution result."""
    source_service: str
    source_playlist_id: str
    dest_service: str
    dest_id: str
    playlist_name: str
    track_count: int
    write_report: WriteReport
    match_report: MatchReport
    duration_seconds: float
    breaker_metrics: Dict[str, CircuitBreakerMetrics] = field(default_factory=dict)
    cache_metrics: Dict[str, CacheMetrics] = field(default_factory=dict)
