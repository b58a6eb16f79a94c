"""Aggregator collecting resolver outcomes into a match report."""

from typing import Dict, List, Optional

from tunebridge.models.data_models import MatchReport, MatchResult, MatchRule, UnresolvedTrack
from tunebridge.models.pif import PIFTrack


class MatchReportAggregator:
    """
    Collects one resolver outcome per track.

    Percentages are relative to all recorded tracks and rounded to two
    decimals; an empty aggregator reports 0.0 for both.
    """

    def __init__(self):
        self._rule_counts: Dict[str, int] = {rule.value: 0 for rule in MatchRule}
        self._unresolved: List[UnresolvedTrack] = []
        self._total = 0

    def add(self, track: PIFTrack, result: Optional[MatchResult]) -> None:
        """
        Record the outcome for one track.

        Args:
            track: Track that was looked up
            result: Resolver outcome, None when nothing matched
        """
        self._total += 1
        if result is None:
            self._unresolved.append(UnresolvedTrack(
                position=track.position,
                title=track.title,
                artists=list(track.artists),
                isrc=track.isrc
            ))
            return
        self._rule_counts[result.rule.value] += 1

    def _pct(self, rule: MatchRule) -> float:
        if self._total == 0:
            return 0.0
        return round(self._rule_counts[rule.value] * 100.0 / self._total, 2)

    def get_report(self) -> MatchReport:
        """Build the match report for everything recorded so far."""
        return MatchReport(
            total_tracks=self._total,
            rule_counts=dict(self._rule_counts),
            matched_isrc_pct=self._pct(MatchRule.ISRC),
            matched_fuzzy_pct=self._pct(MatchRule.FUZZY),
            unresolved=list(self._unresolved)
        )
