"""Unit tests for the MBID resolver cascade."""

import pytest

from tunebridge.models.data_models import Candidate, MatchRule, ProviderTrack, ResolveInput
from tunebridge.processor.resolver import jaccard, resolve_mbid, tokenize


CATALOG = [
    Candidate(mbid="mb-1", title="Song One", primary_artist="Artist One", duration_ms=185000, isrc="USRC17607839"),
    Candidate(mbid="mb-2", title="Song Two", primary_artist="Artist Two", duration_ms=250000),
    Candidate(mbid="mb-3", title="Another Song", primary_artist="Someone Else"),
]


def resolve(title, artist, catalog=CATALOG, **kwargs):
    track_fields = {k: kwargs.pop(k) for k in ("duration_ms", "isrc", "mbid") if k in kwargs}
    return resolve_mbid(ResolveInput(
        provider=ProviderTrack(title=title, artist=artist, **track_fields),
        catalog=catalog,
        **kwargs
    ))


class TestTokenHelpers:

    def test_tokenize_casefolds_and_splits(self):
        assert tokenize("Song  ONE", "Artist") == {"song", "one", "artist"}

    def test_jaccard(self):
        assert jaccard({"a", "b"}, {"b", "c"}) == pytest.approx(1 / 3)
        assert jaccard(set(), set()) == 0.0


class TestMbidRule:

    def test_direct_mbid_wins(self):
        result = resolve("Whatever", "Nobody", mbid="mb-direct", isrc="USRC17607839")
        assert result.mbid == "mb-direct"
        assert result.confidence == 1.0
        assert result.rule == MatchRule.MBID
        assert result.candidates == []

    def test_direct_mbid_with_empty_catalog(self):
        assert resolve("x", "y", catalog=[], mbid="mb-9").mbid == "mb-9"


class TestIsrcRule:

    def test_catalog_isrc_match(self):
        result = resolve("Different Title", "Different Artist", isrc="USRC17607839")
        assert result.mbid == "mb-1"
        assert result.confidence == 0.98
        assert result.rule == MatchRule.ISRC

    def test_isrc_compared_without_case_or_separators(self):
        result = resolve("x", "y", isrc="us-rc1-76-07839")
        assert result.mbid == "mb-1"

    def test_isrc_map_takes_precedence_over_catalog(self):
        result = resolve("x", "y", isrc="USRC17607839", isrc_map={"USRC17607839": "mb-mapped"})
        assert result.mbid == "mb-mapped"
        assert result.confidence == 0.99
        assert result.rule == MatchRule.ISRC

    def test_isrc_map_miss_falls_back_to_catalog(self):
        result = resolve("x", "y", isrc="USRC17607839", isrc_map={"GBAYE0000001": "mb-other"})
        assert result.mbid == "mb-1"
        assert result.confidence == 0.98

    def test_unknown_isrc_falls_through_to_exact(self):
        result = resolve("Song Two", "Artist Two", isrc="ZZZZ00000000")
        assert result.rule == MatchRule.EXACT
        assert result.mbid == "mb-2"


class TestExactRule:

    def test_case_and_whitespace_insensitive(self):
        result = resolve("  song two ", "ARTIST TWO")
        assert result.mbid == "mb-2"
        assert result.confidence == 0.92
        assert result.rule == MatchRule.EXACT

    def test_duration_within_tolerance(self):
        assert resolve("Song Two", "Artist Two", duration_ms=251499).rule == MatchRule.EXACT

    def test_duration_outside_tolerance_is_not_exact(self):
        result = resolve("Song Two", "Artist Two", duration_ms=251500)
        assert result is None or result.rule != MatchRule.EXACT

    def test_missing_duration_on_either_side_is_ignored(self):
        assert resolve("Another Song", "Someone Else", duration_ms=1).rule == MatchRule.EXACT
        assert resolve("Song Two", "Artist Two").rule == MatchRule.EXACT

    def test_first_exact_match_in_catalog_order(self):
        catalog = [
            Candidate(mbid="a", title="Dup", primary_artist="Band"),
            Candidate(mbid="b", title="Dup", primary_artist="Band"),
        ]
        result = resolve("Dup", "Band", catalog=catalog)
        assert result.mbid == "a"
        assert [c.candidate.mbid for c in result.candidates] == ["a", "b"]


class TestFuzzyRule:

    def test_fuzzy_match_above_threshold(self):
        # {song, one, (official, video), artist} vs {song, one, artist}: 3/5
        result = resolve("Song One (Official Video)", "Artist One")
        assert result.rule == MatchRule.FUZZY
        assert result.mbid == "mb-1"
        assert 0.6 <= result.confidence < 1.0

    def test_below_threshold_returns_none(self):
        assert resolve("Completely Unrelated", "Nobody") is None

    def test_custom_threshold(self):
        title, artist = "Song One Live", "Artist One Band"
        score = jaccard(tokenize(title, artist), tokenize("Song One", "Artist One"))
        assert resolve(title, artist, fuzzy_threshold=score).mbid == "mb-1"
        assert resolve(title, artist, fuzzy_threshold=min(1.0, score + 0.01)) is None

    def test_tie_goes_to_first_candidate(self):
        catalog = [
            Candidate(mbid="first", title="alpha beta", primary_artist="x"),
            Candidate(mbid="second", title="alpha beta", primary_artist="y"),
        ]
        result = resolve("alpha beta", "z", catalog=catalog, fuzzy_threshold=0.5)
        assert result.mbid == "first"

    def test_candidates_sorted_best_first(self):
        catalog = [
            Candidate(mbid="weak", title="alpha", primary_artist="q"),
            Candidate(mbid="strong", title="alpha beta", primary_artist="gamma"),
        ]
        result = resolve("alpha beta", "gamma delta", catalog=catalog, fuzzy_threshold=0.5)
        assert result.mbid == "strong"
        assert [c.candidate.mbid for c in result.candidates] == ["strong", "weak"]


class TestEdgeCases:

    def test_empty_catalog_without_mbid(self):
        assert resolve("Song One", "Artist One", catalog=[]) is None

    def test_deterministic(self):
        first = resolve("Song One (Official Video)", "Artist One")
        second = resolve("Song One (Official Video)", "Artist One")
        assert first == second
