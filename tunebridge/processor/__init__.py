"""Track matching and normalization."""

from .aggregator import MatchReportAggregator
from .resolver import resolve_mbid

__all__ = ["MatchReportAggregator", "resolve_mbid"]
