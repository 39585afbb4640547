"""
Spotify access layer: data models, remote track store and token providers.
"""

from playlist_manager.spotify.models import (
    LIKED_SONGS_ID,
    NEW_PLAYLIST_ID,
    Artist,
    PlaylistView,
    Track,
    TrackPage,
    is_liked_songs,
)
from playlist_manager.spotify.client import RemoteTrackStore, build_spotify_factory
from playlist_manager.spotify.auth import (
    StaticTokenProvider,
    StoredTokenProvider,
    TokenProvider,
)

__all__ = [
    "LIKED_SONGS_ID",
    "NEW_PLAYLIST_ID",
    "Artist",
    "PlaylistView",
    "Track",
    "TrackPage",
    "is_liked_songs",
    "RemoteTrackStore",
    "build_spotify_factory",
    "TokenProvider",
    "StoredTokenProvider",
    "StaticTokenProvider",
]
