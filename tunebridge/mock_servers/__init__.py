"""Mock provider API servers for testing."""

from .app import (
    FaultInjector,
    SpotifyState,
    YouTubeState,
    create_app,
    create_spotify_app,
    create_youtube_app,
)

__all__ = [
    "FaultInjector",
    "SpotifyState",
    "YouTubeState",
    "create_app",
    "create_spotify_app",
    "create_youtube_app",
]
