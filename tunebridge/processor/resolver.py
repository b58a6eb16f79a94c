"""MBID resolver: match one provider track against a candidate catalog."""

from typing import Dict, List, Optional, Set

from tunebridge.models.data_models import (
    Candidate,
    MatchResult,
    MatchRule,
    RankedCandidate,
    ResolveInput,
)
from tunebridge.processor.normalizer import normalize_isrc


DIRECT_CONFIDENCE = 1.0
ISRC_MAP_CONFIDENCE = 0.99
ISRC_CATALOG_CONFIDENCE = 0.98
EXACT_CONFIDENCE = 0.92
DEFAULT_FUZZY_THRESHOLD = 0.6
EXACT_DURATION_TOLERANCE_MS = 1500


def _fold(value: Optional[str]) -> str:
    return (value or "").strip().casefold()


def tokenize(title: str, artist: str) -> Set[str]:
    """Casefolded whitespace tokens of title + " " + artist."""
    return set(f"{title or ''} {artist or ''}".casefold().split())


def jaccard(left: Set[str], right: Set[str]) -> float:
    """|A ∩ B| / |A ∪ B|; 0.0 when both sets are empty."""
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def _within_duration(provider_ms: Optional[int], candidate_ms: Optional[int]) -> bool:
    if provider_ms is None or candidate_ms is None:
        return True
    return abs(provider_ms - candidate_ms) < EXACT_DURATION_TOLERANCE_MS


def _match_isrc(resolve_input: ResolveInput) -> Optional[MatchResult]:
    provider_isrc = normalize_isrc(resolve_input.provider.isrc)
    if not provider_isrc:
        return None

    if resolve_input.isrc_map:
        normalized_map: Dict[str, str] = {
            normalize_isrc(key): mbid
            for key, mbid in resolve_input.isrc_map.items()
            if normalize_isrc(key)
        }
        mapped_mbid = normalized_map.get(provider_isrc)
        if mapped_mbid:
            candidate = next(
                (c for c in resolve_input.catalog if c.mbid == mapped_mbid),
                None
            )
            ranked = [RankedCandidate(candidate, ISRC_MAP_CONFIDENCE, MatchRule.ISRC)] if candidate else []
            return MatchResult(mapped_mbid, ISRC_MAP_CONFIDENCE, MatchRule.ISRC, ranked)

    for candidate in resolve_input.catalog:
        if normalize_isrc(candidate.isrc) == provider_isrc:
            return MatchResult(
                candidate.mbid,
                ISRC_CATALOG_CONFIDENCE,
                MatchRule.ISRC,
                [RankedCandidate(candidate, ISRC_CATALOG_CONFIDENCE, MatchRule.ISRC)]
            )
    return None


def _match_exact(resolve_input: ResolveInput) -> Optional[MatchResult]:
    provider = resolve_input.provider
    title = _fold(provider.title)
    artist = _fold(provider.artist)

    matches: List[Candidate] = [
        c for c in resolve_input.catalog
        if _fold(c.title) == title
        and _fold(c.primary_artist) == artist
        and _within_duration(provider.duration_ms, c.duration_ms)
    ]
    if not matches:
        return None

    return MatchResult(
        matches[0].mbid,
        EXACT_CONFIDENCE,
        MatchRule.EXACT,
        [RankedCandidate(c, EXACT_CONFIDENCE, MatchRule.EXACT) for c in matches]
    )


def _match_fuzzy(resolve_input: ResolveInput) -> Optional[MatchResult]:
    provider = resolve_input.provider
    threshold = resolve_input.fuzzy_threshold
    if threshold is None:
        threshold = DEFAULT_FUZZY_THRESHOLD

    provider_tokens = tokenize(provider.title, provider.artist)
    best: Optional[RankedCandidate] = None
    scored: List[RankedCandidate] = []

    for candidate in resolve_input.catalog:
        score = jaccard(provider_tokens, tokenize(candidate.title, candidate.primary_artist))
        if score <= 0:
            continue
        ranked = RankedCandidate(candidate, score, MatchRule.FUZZY)
        scored.append(ranked)
        # Strict comparison keeps the first maximal candidate in catalog order
        if best is None or score > best.confidence:
            best = ranked

    if best is None or best.confidence < threshold:
        return None

    # sorted() is stable, so equal scores keep catalog order
    scored = sorted(scored, key=lambda r: r.confidence, reverse=True)
    return MatchResult(best.candidate.mbid, best.confidence, MatchRule.FUZZY, scored)


def resolve_mbid(resolve_input: ResolveInput) -> Optional[MatchResult]:
    """
    Resolve a provider track to a canonical recording.

    Rules are tried in priority order and the first hit wins:

    1. mbid  - the provider already carries an MBID (confidence 1.0)
    2. isrc  - ISRC map hit (0.99) or catalog ISRC match (0.98)
    3. exact - case-insensitive title + primary artist, durations within
               1500 ms when both are known (0.92)
    4. fuzzy - Jaccard similarity of title+artist tokens, accepted at or
               above the threshold (confidence = score)

    Pure function: no I/O, deterministic for a given input.

    Args:
        resolve_input: Provider track, catalog and optional thresholds

    Returns:
        MatchResult for the winning rule, or None when nothing matches
    """
    provider = resolve_input.provider
    if provider.mbid:
        return MatchResult(provider.mbid, DIRECT_CONFIDENCE, MatchRule.MBID, [])

    for rule in (_match_isrc, _match_exact, _match_fuzzy):
        result = rule(resolve_input)
        if result is not None:
            return result
    return None
