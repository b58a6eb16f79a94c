"""FastAPI mock servers emulating the YouTube Data API and Spotify Web API.

Only the endpoints used by the provider clients are implemented. State is
kept in memory per app instance. Run one with:

    SERVER_NAME=youtube uvicorn tunebridge.mock_servers.app:create_app --factory --port 8001

or `python -m tunebridge.mock_servers.app` (PORT and SERVER_NAME from env).
"""

import os
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query
from pydantic import BaseModel


@dataclass
class FaultInjector:
    """Random 5xx errors plus a fixed number of leading 429s."""
    error_rate: float = 0.0
    rate_limited_requests: int = 0
    retry_after_seconds: int = 0
    random_seed: Optional[int] = None
    requests: int = 0

    def __post_init__(self):
        self._random = random.Random(self.random_seed)

    def check(self) -> None:
        self.requests += 1
        if self.rate_limited_requests > 0:
            self.rate_limited_requests -= 1
            raise HTTPException(
                status_code=429,
                detail="Rate limit exceeded",
                headers={"Retry-After": str(self.retry_after_seconds)},
            )
        if self.error_rate > 0 and self._random.random() < self.error_rate:
            raise HTTPException(status_code=self._random.choice([500, 502, 503]), detail="Simulated error")


# YouTube


@dataclass
class YouTubeState:
    """In-memory YouTube data: playlists hold ordered video ids."""
    playlists: Dict[str, Dict] = field(default_factory=dict)
    videos: Dict[str, Dict] = field(default_factory=dict)
    search_calls: List[str] = field(default_factory=list)
    created_count: int = 0

    def add_video(self, video_id: str, title: str, channel_title: str, duration: str) -> None:
        self.videos[video_id] = {"title": title, "channelTitle": channel_title, "duration": duration}

    def add_playlist(self, playlist_id: str, title: str, video_ids: List[str], description: str = "") -> None:
        self.playlists[playlist_id] = {"title": title, "description": description, "video_ids": list(video_ids)}


class YouTubeSnippetBody(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    playlistId: Optional[str] = None
    resourceId: Optional[Dict[str, str]] = None


class YouTubeWriteBody(BaseModel):
    snippet: YouTubeSnippetBody
    status: Optional[Dict[str, str]] = None


def create_youtube_app(
    state: Optional[YouTubeState] = None,
    faults: Optional[FaultInjector] = None
) -> FastAPI:
    """
    Create a mock YouTube Data API v3.

    Args:
        state: Shared in-memory state (a fresh one if omitted)
        faults: Fault injection settings (none if omitted)

    Returns:
        FastAPI application; state and faults are exposed on app.state
    """
    app = FastAPI(title="Mock YouTube Data API")
    state = state if state is not None else YouTubeState()
    faults = faults if faults is not None else FaultInjector()
    app.state.youtube = state
    app.state.faults = faults

    def inject_faults():
        faults.check()

    @app.get("/playlists", dependencies=[Depends(inject_faults)])
    async def get_playlists(id: str, part: str = "snippet"):
        playlist = state.playlists.get(id)
        if playlist is None:
            return {"items": []}
        return {
            "items": [{
                "id": id,
                "snippet": {"title": playlist["title"], "description": playlist["description"]},
            }]
        }

    @app.post("/playlists", dependencies=[Depends(inject_faults)])
    async def create_playlist(body: YouTubeWriteBody, part: str = "snippet"):
        state.created_count += 1
        playlist_id = f"PLmock{state.created_count}"
        state.add_playlist(playlist_id, body.snippet.title or "", [], body.snippet.description or "")
        return {"id": playlist_id, "snippet": {"title": body.snippet.title}}

    @app.get("/playlistItems", dependencies=[Depends(inject_faults)])
    async def get_playlist_items(
        playlistId: str,
        part: str = "contentDetails",
        maxResults: int = Query(default=5, ge=0, le=50),
        pageToken: Optional[str] = None,
    ):
        playlist = state.playlists.get(playlistId)
        if playlist is None:
            raise HTTPException(status_code=404, detail="playlistNotFound")

        start = int(pageToken) if pageToken else 0
        video_ids = playlist["video_ids"]
        end = start + maxResults
        page = {
            "items": [{"contentDetails": {"videoId": vid}} for vid in video_ids[start:end]],
        }
        if end < len(video_ids):
            page["nextPageToken"] = str(end)
        return page

    @app.post("/playlistItems", dependencies=[Depends(inject_faults)])
    async def insert_playlist_item(body: YouTubeWriteBody, part: str = "snippet"):
        playlist = state.playlists.get(body.snippet.playlistId or "")
        if playlist is None:
            raise HTTPException(status_code=404, detail="playlistNotFound")
        video_id = (body.snippet.resourceId or {}).get("videoId")
        if not video_id:
            raise HTTPException(status_code=400, detail="videoId required")
        playlist["video_ids"].append(video_id)
        return {"id": f"{body.snippet.playlistId}:{len(playlist['video_ids'])}"}

    @app.get("/videos", dependencies=[Depends(inject_faults)])
    async def get_videos(id: str, part: str = "snippet,contentDetails"):
        ids = [vid for vid in id.split(",") if vid]
        if len(ids) > 50:
            raise HTTPException(status_code=400, detail="too many ids")
        items = []
        for vid in ids:
            video = state.videos.get(vid)
            if video is None:
                continue
            items.append({
                "id": vid,
                "snippet": {"title": video["title"], "channelTitle": video["channelTitle"]},
                "contentDetails": {"duration": video["duration"]},
            })
        return {"items": items}

    @app.get("/search", dependencies=[Depends(inject_faults)])
    async def search(q: str, part: str = "snippet", type: str = "video", maxResults: int = 5):
        state.search_calls.append(q)
        query_tokens = set(q.lower().split())
        scored = []
        for vid, video in state.videos.items():
            tokens = set(f"{video['title']} {video['channelTitle']}".lower().split())
            overlap = len(query_tokens & tokens)
            if overlap:
                scored.append((overlap, vid))
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return {"items": [{"id": {"kind": "youtube#video", "videoId": vid}} for _, vid in scored[:maxResults]]}

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "server": "youtube"}

    return app


# Spotify


@dataclass
class SpotifyState:
    """In-memory Spotify data: playlists hold ordered track objects."""
    user_id: str = "mock-user"
    page_limit: int = 100
    playlists: Dict[str, Dict] = field(default_factory=dict)
    tracks: Dict[str, Dict] = field(default_factory=dict)
    created_count: int = 0

    def add_track(
        self,
        track_id: str,
        name: str,
        artists: List[str],
        duration_ms: int,
        isrc: Optional[str] = None,
        album: Optional[str] = None,
        release_date: Optional[str] = None,
        explicit: bool = False
    ) -> None:
        self.tracks[track_id] = {
            "id": track_id,
            "name": name,
            "artists": [{"name": a} for a in artists],
            "duration_ms": duration_ms,
            "explicit": explicit,
            "external_ids": {"isrc": isrc} if isrc else {},
            "album": {"name": album, "release_date": release_date},
            "is_local": False,
        }

    def add_playlist(self, playlist_id: str, name: str, items: List[Optional[Dict]], description: str = "") -> None:
        self.playlists[playlist_id] = {"name": name, "description": description, "items": list(items)}


class SpotifyCreateBody(BaseModel):
    name: str
    description: Optional[str] = None
    public: bool = False


class SpotifyAddTracksBody(BaseModel):
    uris: List[str]


def create_spotify_app(
    state: Optional[SpotifyState] = None,
    faults: Optional[FaultInjector] = None
) -> FastAPI:
    """Create a mock Spotify Web API (see create_youtube_app for arguments)."""
    app = FastAPI(title="Mock Spotify Web API")
    state = state if state is not None else SpotifyState()
    faults = faults if faults is not None else FaultInjector()
    app.state.spotify = state
    app.state.faults = faults

    def inject_faults():
        faults.check()

    def page(playlist_id: str, offset: int, limit: int) -> Dict:
        items = state.playlists[playlist_id]["items"]
        end = offset + limit
        return {
            "items": [{"track": track} for track in items[offset:end]],
            "next": f"/playlists/{playlist_id}/tracks?offset={end}&limit={limit}" if end < len(items) else None,
            "offset": offset,
            "limit": limit,
            "total": len(items),
        }

    @app.get("/me", dependencies=[Depends(inject_faults)])
    async def me():
        return {"id": state.user_id}

    @app.get("/playlists/{playlist_id}", dependencies=[Depends(inject_faults)])
    async def get_playlist(playlist_id: str):
        playlist = state.playlists.get(playlist_id)
        if playlist is None:
            raise HTTPException(status_code=404, detail="Not found")
        return {
            "id": playlist_id,
            "name": playlist["name"],
            "description": playlist["description"],
            "tracks": page(playlist_id, 0, state.page_limit),
        }

    @app.get("/playlists/{playlist_id}/tracks", dependencies=[Depends(inject_faults)])
    async def get_playlist_tracks(
        playlist_id: str,
        offset: int = Query(default=0, ge=0),
        limit: int = Query(default=100, ge=1, le=100),
    ):
        if playlist_id not in state.playlists:
            raise HTTPException(status_code=404, detail="Not found")
        return page(playlist_id, offset, limit)

    @app.post("/users/{user_id}/playlists", status_code=201, dependencies=[Depends(inject_faults)])
    async def create_playlist(user_id: str, body: SpotifyCreateBody):
        if user_id != state.user_id:
            raise HTTPException(status_code=403, detail="Cannot create playlists for another user")
        state.created_count += 1
        playlist_id = f"spmock{state.created_count}"
        state.add_playlist(playlist_id, body.name, [], body.description or "")
        return {"id": playlist_id, "name": body.name}

    @app.post("/playlists/{playlist_id}/tracks", status_code=201, dependencies=[Depends(inject_faults)])
    async def add_tracks(playlist_id: str, body: SpotifyAddTracksBody):
        playlist = state.playlists.get(playlist_id)
        if playlist is None:
            raise HTTPException(status_code=404, detail="Not found")
        if len(body.uris) > 100:
            raise HTTPException(status_code=400, detail="Too many uris")
        for uri in body.uris:
            track_id = uri.rsplit(":", 1)[-1]
            playlist["items"].append(state.tracks.get(track_id, {"id": track_id, "name": track_id}))
        return {"snapshot_id": f"{playlist_id}-{len(playlist['items'])}"}

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "server": "spotify"}

    return app


def seed_youtube() -> YouTubeState:
    state = YouTubeState()
    state.add_video("vid1", "Song One (Official Video)", "Artist One", "PT3M5S")
    state.add_video("vid2", "Song Two", "Artist Two - Topic", "PT4M10S")
    state.add_playlist("PLdemo", "Demo Mix", ["vid1", "vid2"], "mock playlist")
    return state


def seed_spotify() -> SpotifyState:
    state = SpotifyState()
    state.add_track("sp1", "Song One", ["Artist One"], 185000, isrc="USRC17607839", album="First", release_date="2020-01-01")
    state.add_track("sp2", "Song Two", ["Artist Two", "Guest"], 250000, album="Second", release_date="2021")
    state.add_playlist("spdemo", "Demo Mix", [state.tracks["sp1"], state.tracks["sp2"]], "mock playlist")
    return state


def create_app() -> FastAPI:
    """
    Factory function for uvicorn --factory.

    Reads SERVER_NAME (youtube or spotify) plus ERROR_RATE and RANDOM_SEED
    from the environment.
    """
    faults = FaultInjector(
        error_rate=float(os.getenv("ERROR_RATE", 0.0)),
        random_seed=int(os.getenv("RANDOM_SEED", 42)),
    )
    if os.getenv("SERVER_NAME", "youtube") == "spotify":
        return create_spotify_app(seed_spotify(), faults)
    return create_youtube_app(seed_youtube(), faults)


def serve(server_name: str = "youtube", host: str = "127.0.0.1", port: int = 8001) -> None:
    """Run a seeded mock server in the foreground."""
    os.environ["SERVER_NAME"] = server_name
    uvicorn.run(create_app(), host=host, port=port, log_level="warning")


if __name__ == "__main__":
    serve(os.getenv("SERVER_NAME", "youtube"), port=int(os.getenv("PORT", 8001)))
