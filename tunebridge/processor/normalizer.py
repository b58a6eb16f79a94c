"""Normalization helpers for converting provider data into PIF fields.

Provider payloads disagree on nearly everything: duration encodings,
where the artist lives, how much whitespace and casing survives. The
functions here are small, pure and defensive so that provider mappers can
stay declarative.
"""

import re
from typing import Iterable, List, Optional, Tuple


UNKNOWN_ARTIST = "Unknown Artist"

_ISO8601_DURATION = re.compile(
    r"^P(?:(?P<days>\d+)D)?"
    r"(?:T(?=\d)(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)
_TOPIC_SUFFIX = re.compile(r"\s*-\s*Topic\s*$", re.IGNORECASE)


def parse_iso8601_duration(value: Optional[str]) -> Optional[int]:
    """
    Parse an ISO-8601 duration (P[n]D[T[n]H[n]M[n(.n)]S]) into milliseconds.

    Args:
        value: Duration string as returned by the provider

    Returns:
        Milliseconds, or None if the value is missing, malformed or not positive

    Examples:
        >>> parse_iso8601_duration("PT3M5S")
        185000
        >>> parse_iso8601_duration("PT1H0.5S")
        3600500
        >>> parse_iso8601_duration("P0D") is None
        True
    """
    if not value or not isinstance(value, str):
        return None

    match = _ISO8601_DURATION.match(value.strip())
    if not match:
        return None

    days = int(match.group("days") or 0)
    hours = int(match.group("hours") or 0)
    minutes = int(match.group("minutes") or 0)
    seconds = float(match.group("seconds") or 0)

    total_ms = round((((days * 24 + hours) * 60 + minutes) * 60 + seconds) * 1000)
    if total_ms <= 0:
        return None
    return total_ms


def artist_from_channel(channel_title: Optional[str]) -> str:
    """
    Derive an artist name from an uploader/channel label.

    Auto-generated music channels are named "<Artist> - Topic"; the suffix is
    stripped. Missing or blank labels fall back to UNKNOWN_ARTIST.
    """
    if not channel_title or not isinstance(channel_title, str):
        return UNKNOWN_ARTIST
    cleaned = _TOPIC_SUFFIX.sub("", channel_title).strip()
    return cleaned or UNKNOWN_ARTIST


def clean_text(value: Optional[str]) -> Optional[str]:
    """Strip a string and collapse blanks to None."""
    if value is None or not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def search_cache_key(title: str, artists: Iterable[str]) -> Tuple[str, str]:
    """Normalized (title, artists) key shared by duplicate playlist entries."""
    return (title.lower(), ",".join(artist.lower() for artist in artists))


def build_search_query(title: str, artists: List[str]) -> str:
    """Free-text search query: title followed by the space-joined artists."""
    return " ".join(part for part in [title, *artists] if part)


def chunked(items: List, size: int) -> Iterable[List]:
    """Yield consecutive slices of at most size items."""
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got: {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]


def normalize_isrc(value: Optional[str]) -> str:
    """Uppercase an ISRC and drop separators; empty string if absent."""
    if not value:
        return ""
    return re.sub(r"[^0-9A-Za-z]", "", value).upper()
