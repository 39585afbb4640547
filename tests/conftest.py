"""Test configuration and fixtures"""

import urllib.parse
from pathlib import Path

import pytest
import spotipy

from playlist_manager.core.database import Database
from playlist_manager.playlists.orchestrator import PlaylistOrchestrator
from playlist_manager.spotify.auth import StaticTokenProvider
from playlist_manager.spotify.client import RemoteTrackStore


SPOTIFY_USER_ID = "spotify-user"
ACCESS_TOKEN = "token-123"


def make_track(
    track_id: str,
    album_id: str | None = "album-1",
    release_date: str | None = "2020-01-01",
    track_number: int = 1,
    disc_number: int = 1,
    name: str | None = None
) -> dict:
    """Spotify track object as returned inside playlist / saved-track items"""
    album = None
    if album_id is not None:
        album = {
            "id": album_id,
            "name": f"Album {album_id}",
            "release_date": release_date,
            "images": [{"url": f"https://img/{album_id}.jpg"}],
        }
    return {
        "id": track_id,
        "uri": f"spotify:track:{track_id}",
        "name": name or f"Song {track_id}",
        "artists": [{"id": "artist-1", "name": "Test Artist"}],
        "album": album,
        "track_number": track_number,
        "disc_number": disc_number,
        "duration_ms": 180000,
        "explicit": False,
    }


def make_artist(artist_id: str, genres: list[str] | None = None) -> dict:
    """Spotify artist object as returned by /me/top/artists"""
    return {
        "id": artist_id,
        "name": f"Artist {artist_id}",
        "followers": {"href": None, "total": 1000},
        "genres": genres or [],
        "popularity": 70,
        "images": [{"url": f"https://img/{artist_id}.jpg"}],
        "external_urls": {"spotify": f"https://open.spotify.com/artist/{artist_id}"},
    }


class FakeSpotify:
    """
    In-memory stand-in for spotipy.Spotify.

    Implements the endpoints the remote track store uses, paginating with
    'next' URLs like the real API and recording every call in `calls`.
    Liked Songs behave like Spotify: the last saved track is listed first.
    """

    def __init__(self) -> None:
        self.playlists: dict[str, dict] = {}
        self.liked: list[dict] = []
        self.user = {"id": SPOTIFY_USER_ID, "display_name": "Test User"}
        self.calls: list[tuple] = []
        self.tokens: list[str] = []
        self._catalog: dict[str, dict] = {}
        self._failures: dict[str, dict[int, Exception]] = {}
        self._call_counts: dict[str, int] = {}
        self.top: dict[tuple[str, str], list[dict]] = {}
        self._created = 0

    # Setup helpers

    def add_playlist(
        self,
        playlist_id: str,
        tracks: list[dict | None],
        name: str = "My Playlist",
        description: str = "A playlist",
        public: bool = True
    ) -> None:
        for track in tracks:
            self._remember(track)
        self.playlists[playlist_id] = {
            "meta": {
                "id": playlist_id,
                "name": name,
                "description": description,
                "public": public,
                "owner": {"id": SPOTIFY_USER_ID, "display_name": "Test User"},
                "images": [],
                "external_urls": {"spotify": f"https://open.spotify.com/playlist/{playlist_id}"},
                "uri": f"spotify:playlist:{playlist_id}",
            },
            "tracks": list(tracks),
        }

    def set_liked(self, tracks: list[dict]) -> None:
        """tracks in visible order (most recently saved first)"""
        for track in tracks:
            self._remember(track)
        self.liked = list(tracks)

    def set_top(self, item_type: str, time_range: str, items: list[dict]) -> None:
        self.top[(item_type, time_range)] = list(items)

    def fail(self, method: str, call_index: int, error: Exception | None = None) -> None:
        """Make the call_index-th call (0-based) of method raise"""
        self._failures.setdefault(method, {})[call_index] = error or spotipy.SpotifyException(
            500, -1, "Internal server error"
        )

    def playlist_track_ids(self, playlist_id: str) -> list[str | None]:
        return [track["id"] if track else None for track in self.playlists[playlist_id]["tracks"]]

    def liked_track_ids(self) -> list[str]:
        return [track["id"] for track in self.liked]

    def calls_to(self, method: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == method]

    def write_calls(self) -> list[tuple]:
        write_methods = {
            "playlist_remove_all_occurrences_of_items",
            "playlist_add_items",
            "current_user_saved_tracks_delete",
            "current_user_saved_tracks_add",
            "user_playlist_create",
        }
        return [call for call in self.calls if call[0] in write_methods]

    def _remember(self, track: dict | None) -> None:
        if track:
            self._catalog[track["uri"]] = track
            self._catalog[track["id"]] = track

    def _record(self, method: str, *args) -> None:
        index = self._call_counts.get(method, 0)
        self._call_counts[method] = index + 1
        self.calls.append((method, *args))
        error = self._failures.get(method, {}).get(index)
        if error is not None:
            raise error

    # Pagination

    def _page(self, kind: str, key: str, items: list, offset: int, limit: int) -> dict:
        next_url = None
        if offset + limit < len(items):
            next_url = f"fake://{kind}/{key}?offset={offset + limit}&limit={limit}"
        return {
            "items": items[offset:offset + limit],
            "next": next_url,
            "total": len(items),
            "offset": offset,
            "limit": limit,
        }

    def _playlist_entries(self, playlist_id: str) -> list[dict]:
        if playlist_id not in self.playlists:
            raise spotipy.SpotifyException(404, -1, "Resource not found")
        return [{"added_at": "2024-01-01T00:00:00Z", "track": track}
                for track in self.playlists[playlist_id]["tracks"]]

    def _liked_entries(self) -> list[dict]:
        return [{"added_at": "2024-01-01T00:00:00Z", "track": track} for track in self.liked]

    def next(self, result: dict) -> dict | None:
        if not result.get("next"):
            return None
        parsed = urllib.parse.urlparse(result["next"])
        query = urllib.parse.parse_qs(parsed.query)
        offset, limit = int(query["offset"][0]), int(query["limit"][0])
        kind, key = parsed.netloc, parsed.path.lstrip("/")
        self._record("next", kind, key, offset)

        if kind == "playlist":
            return self._page(kind, key, self._playlist_entries(key), offset, limit)
        if kind == "liked":
            return self._page(kind, key, self._liked_entries(), offset, limit)
        return self._page(kind, key, self._user_playlists(), offset, limit)

    # Reads

    def playlist_items(self, playlist_id, fields=None, limit=100, offset=0, market=None, additional_types=("track", "episode")):
        self._record("playlist_items", playlist_id)
        return self._page("playlist", playlist_id, self._playlist_entries(playlist_id), offset, limit)

    def current_user_saved_tracks(self, limit=20, offset=0, market=None):
        self._record("current_user_saved_tracks", limit)
        return self._page("liked", "me", self._liked_entries(), offset, limit)

    def playlist(self, playlist_id, fields=None, market=None, additional_types=("track",)):
        self._record("playlist", playlist_id)
        if playlist_id not in self.playlists:
            raise spotipy.SpotifyException(404, -1, "Resource not found")
        entry = self.playlists[playlist_id]
        return {**entry["meta"], "tracks": {"total": len(entry["tracks"])}}

    def current_user(self):
        self._record("current_user")
        return dict(self.user)

    def _user_playlists(self) -> list[dict]:
        return [
            {**entry["meta"], "tracks": {"total": len(entry["tracks"])}}
            for entry in self.playlists.values()
        ]

    def current_user_top_tracks(self, limit=20, offset=0, time_range="medium_term"):
        self._record("current_user_top_tracks", time_range, limit, offset)
        return self._page("top", "tracks", self.top.get(("tracks", time_range), []), offset, limit)

    def current_user_top_artists(self, limit=20, offset=0, time_range="medium_term"):
        self._record("current_user_top_artists", time_range, limit, offset)
        return self._page("top", "artists", self.top.get(("artists", time_range), []), offset, limit)

    def current_user_playlists(self, limit=50, offset=0):
        self._record("current_user_playlists", limit)
        return self._page("me-playlists", "me", self._user_playlists(), offset, limit)

    # Writes

    def playlist_remove_all_occurrences_of_items(self, playlist_id, items, snapshot_id=None):
        self._record("playlist_remove_all_occurrences_of_items", playlist_id, list(items))
        removed = set(items)
        entry = self.playlists[playlist_id]
        entry["tracks"] = [track for track in entry["tracks"] if not track or track["uri"] not in removed]
        return {"snapshot_id": "snap"}

    def playlist_add_items(self, playlist_id, items, position=None):
        self._record("playlist_add_items", playlist_id, list(items))
        self.playlists[playlist_id]["tracks"].extend(self._catalog[uri] for uri in items)
        return {"snapshot_id": "snap"}

    def current_user_saved_tracks_delete(self, tracks=None):
        self._record("current_user_saved_tracks_delete", list(tracks))
        removed = set(tracks)
        self.liked = [track for track in self.liked if track["id"] not in removed]

    def current_user_saved_tracks_add(self, tracks=None):
        self._record("current_user_saved_tracks_add", list(tracks))
        # Saved one after the other: the last of the batch ends up on top
        for track_id in tracks:
            self.liked.insert(0, self._catalog[track_id])

    def user_playlist_create(self, user, name, public=True, collaborative=False, description=""):
        self._record("user_playlist_create", user, name, public, description)
        self._created += 1
        playlist_id = f"created-{self._created}"
        self.add_playlist(playlist_id, [], name=name, description=description, public=public)
        return {**self.playlists[playlist_id]["meta"], "tracks": {"total": 0}}


@pytest.fixture
def fake_spotify():
    """In-memory Spotify API"""
    return FakeSpotify()


@pytest.fixture
def store(fake_spotify):
    """RemoteTrackStore wired to the fake API"""
    def factory(access_token: str) -> FakeSpotify:
        fake_spotify.tokens.append(access_token)
        return fake_spotify
    return RemoteTrackStore(spotify_factory=factory)


@pytest.fixture
def database(tmp_path: Path):
    """Empty user registry in a temporary directory"""
    db = Database(tmp_path / "test.db")
    yield db
    db.close()


@pytest.fixture
def user(database):
    """Registered user with a fresh token"""
    return database.upsert_user(SPOTIFY_USER_ID, "Test User", "test@example.com", ACCESS_TOKEN, "refresh-123")


@pytest.fixture
def orchestrator(store):
    """Orchestrator without user registry; user 'user-1' holds ACCESS_TOKEN"""
    return PlaylistOrchestrator(store, StaticTokenProvider({"user-1": ACCESS_TOKEN}))
