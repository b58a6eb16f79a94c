"""Playlist Intermediate Format (PIF) v1.

PIF is the provider-agnostic playlist shape that crosses the pipeline
boundary in both directions: every importer produces it and every exporter
consumes it. Documents are immutable once built.
"""

from dataclasses import dataclass, field
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


PIFService = Literal["spotify", "deezer", "tidal", "youtube", "amazon"]

PROVIDER_ID_FIELDS = {
    "spotify": "spotify_track_id",
    "deezer": "deezer_track_id",
    "tidal": "tidal_track_id",
    "youtube": "youtube_video_id",
    "amazon": "amazon_track_id",
}


class PIFProviderIds(BaseModel):
    """Provider-specific track ids keyed by provider."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    spotify_track_id: Optional[str] = None
    deezer_track_id: Optional[str] = None
    tidal_track_id: Optional[str] = None
    youtube_video_id: Optional[str] = None
    amazon_track_id: Optional[str] = None

    def for_service(self, service: str) -> Optional[str]:
        """Id for the given provider name, or None."""
        field_name = PROVIDER_ID_FIELDS.get(service)
        if field_name is None:
            return None
        return getattr(self, field_name)


class PIFTrack(BaseModel):
    """One playlist entry."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    position: int = Field(ge=1, description="1-based position in the playlist")
    title: str = Field(min_length=1)
    artists: List[str] = Field(description="Primary artist first, features after")
    album: Optional[str] = None
    duration_ms: Optional[int] = Field(default=None, ge=0)
    explicit: Optional[bool] = None
    release_date: Optional[str] = Field(default=None, pattern=r"^\d{4}(-\d{2}(-\d{2})?)?$")
    isrc: Optional[str] = None
    mb_recording_id: Optional[str] = None
    mb_release_id: Optional[str] = None
    provider_ids: PIFProviderIds = Field(default_factory=PIFProviderIds)

    @field_validator("provider_ids", mode="before")
    @classmethod
    def default_provider_ids(cls, v: Any) -> Any:
        return PIFProviderIds() if v is None else v

    @property
    def primary_artist(self) -> str:
        return self.artists[0] if self.artists else ""


class PIF(BaseModel):
    """A whole playlist in intermediate format."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    description: Optional[str] = None
    source_service: Optional[PIFService] = None
    source_playlist_id: Optional[str] = None
    tracks: List[PIFTrack] = Field(default_factory=list)


@dataclass
class PIFValidationError:
    """Single validation problem with a JSON-pointer path."""
    instance_path: str
    message: str
    type: str


@dataclass
class PIFValidationResult:
    """Outcome of validate_pif; data is set only on success."""
    success: bool
    data: Optional[PIF] = None
    errors: List[PIFValidationError] = field(default_factory=list)


def _to_pointer(loc) -> str:
    if not loc:
        return ""
    return "/" + "/".join(str(part) for part in loc)


def validate_pif(document: Any) -> PIFValidationResult:
    """
    Validate an untrusted document (e.g. parsed JSON) against PIF v1.

    Args:
        document: Arbitrary decoded JSON value

    Returns:
        PIFValidationResult with the parsed PIF or a list of errors
    """
    try:
        pif = PIF.model_validate(document)
    except ValidationError as e:
        return PIFValidationResult(
            success=False,
            errors=[
                PIFValidationError(
                    instance_path=_to_pointer(err["loc"]),
                    message=err["msg"],
                    type=err["type"],
                )
                for err in e.errors()
            ],
        )
    return PIFValidationResult(success=True, data=pif)
