"""File renderers for PIF playlists: M3U, CSV (lean/verbose) and XSPF."""

import csv
import io
from typing import Callable, Dict, List, Optional
from xml.sax.saxutils import escape

from tunebridge.models.pif import PIF, PIFTrack


# Checked in order; the first provider id present gives the track's URL.
PROVIDER_URLS = (
    ("spotify", "https://open.spotify.com/track/{}"),
    ("deezer", "https://www.deezer.com/track/{}"),
    ("tidal", "https://tidal.com/browse/track/{}"),
    ("youtube", "https://www.youtube.com/watch?v={}"),
    ("amazon", "https://music.amazon.com/tracks/{}"),
)

LEAN_COLUMNS = ["position", "title", "artists", "album", "duration_ms", "isrc"]

VERBOSE_COLUMNS = [
    "position",
    "title",
    "artists",
    "album",
    "release_date",
    "disc_number",
    "track_number",
    "duration_ms",
    "explicit",
    "isrc",
    "mb_recording_id",
    "mb_release_id",
    "mb_release_group_id",
    "mb_artist_ids",
    "spotify_track_id",
    "spotify_album_id",
    "deezer_track_id",
    "deezer_album_id",
    "tidal_track_id",
    "tidal_album_id",
    "youtube_video_id",
    "amazon_track_id",
    "upc",
    "iswc",
    "genres",
    "source_service",
    "source_playlist_id",
]

CSV_COLUMNS = {"lean": LEAN_COLUMNS, "verbose": VERBOSE_COLUMNS}

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def track_location(track: PIFTrack) -> Optional[str]:
    """Public URL of the track on the first provider it has an id for."""
    for service, template in PROVIDER_URLS:
        track_id = track.provider_ids.for_service(service)
        if track_id:
            return template.format(track_id)
    return None


def _m3u_seconds(duration_ms: Optional[int]) -> int:
    if duration_ms is None:
        return -1
    return (duration_ms + 500) // 1000


def render_m3u(pif: PIF) -> str:
    """
    Extended M3U playlist.

    Each track is an #EXTINF line (duration in whole seconds, -1 when
    unknown) followed by its provider URL, or its title when no provider
    id is known.
    """
    lines = ["#EXTM3U"]
    for track in pif.tracks:
        artists = " & ".join(track.artists)
        lines.append(f"#EXTINF:{_m3u_seconds(track.duration_ms)},{artists} - {track.title}")
        lines.append(track_location(track) or track.title)
    return "\n".join(lines) + "\n"


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _csv_row(pif: PIF, track: PIFTrack) -> Dict[str, str]:
    ids = track.provider_ids
    return {
        "position": _text(track.position),
        "title": track.title,
        "artists": "; ".join(track.artists),
        "album": _text(track.album),
        "release_date": _text(track.release_date),
        "duration_ms": _text(track.duration_ms),
        "explicit": _text(track.explicit),
        "isrc": _text(track.isrc),
        "mb_recording_id": _text(track.mb_recording_id),
        "mb_release_id": _text(track.mb_release_id),
        "spotify_track_id": _text(ids.spotify_track_id),
        "deezer_track_id": _text(ids.deezer_track_id),
        "tidal_track_id": _text(ids.tidal_track_id),
        "youtube_video_id": _text(ids.youtube_video_id),
        "amazon_track_id": _text(ids.amazon_track_id),
        "source_service": _text(pif.source_service),
        "source_playlist_id": _text(pif.source_playlist_id),
    }


def render_csv(pif: PIF, variant: str = "lean") -> str:
    """
    CSV with a header row and one row per track.

    Args:
        pif: Playlist to render
        variant: "lean" (core columns) or "verbose" (every column;
            columns PIF has no data for stay empty)

    Raises:
        ValueError: On an unknown variant
    """
    columns = CSV_COLUMNS.get(variant)
    if columns is None:
        raise ValueError(f"unknown CSV variant: {variant}")

    buffer = io.StringIO()
    writer = csv.DictWriter(
        buffer,
        fieldnames=columns,
        restval="",
        extrasaction="ignore",
        lineterminator="\r\n",
        quoting=csv.QUOTE_MINIMAL,
    )
    writer.writeheader()
    writer.writerows(_csv_row(pif, track) for track in pif.tracks)
    return buffer.getvalue()


def _tag(lines: List[str], indent: str, name: str, value: Optional[str]) -> None:
    if not value:
        return
    lines.append(f"{indent}<{name}>{escape(value, _XML_ENTITIES)}</{name}>")


def render_xspf(pif: PIF) -> str:
    """XSPF v1 document; empty elements are left out."""
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<playlist version="1" xmlns="http://xspf.org/ns/0/">',
    ]
    _tag(lines, "  ", "title", pif.name)
    _tag(lines, "  ", "annotation", pif.description)

    lines.append("  <trackList>")
    for track in pif.tracks:
        lines.append("    <track>")
        _tag(lines, "      ", "title", track.title)
        _tag(lines, "      ", "creator", "; ".join(track.artists))
        _tag(lines, "      ", "album", track.album)
        if track.duration_ms is not None:
            _tag(lines, "      ", "duration", str(track.duration_ms))
        _tag(lines, "      ", "location", track_location(track))
        lines.append("    </track>")
    lines.append("  </trackList>")
    lines.append("</playlist>")
    return "\n".join(lines) + "\n"


EXPORT_FORMATS: Dict[str, Callable[[PIF], str]] = {
    "m3u": render_m3u,
    "csv": lambda pif: render_csv(pif, "lean"),
    "csv-verbose": lambda pif: render_csv(pif, "verbose"),
    "xspf": render_xspf,
}

FILE_SUFFIXES = {"m3u": ".m3u", "csv": ".csv", "csv-verbose": ".csv", "xspf": ".xspf"}


def render(pif: PIF, fmt: str) -> str:
    """Render a playlist in one of EXPORT_FORMATS."""
    renderer = EXPORT_FORMATS.get(fmt)
    if renderer is None:
        raise ValueError(f"unknown export format: {fmt}")
    return renderer(pif)
