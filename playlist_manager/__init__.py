"""
playlist-manager: Sort, shuffle, copy and clear Spotify playlists.

This package drives the Spotify Web API to rewrite playlists (and the
user's Liked Songs) of any size: it pages through the whole track list,
computes a target order or subset, and rewrites the remote list with
batched deletes and inserts that respect Spotify's per-call limits.

Architecture:
    Every mutating operation runs the same pipeline:

        RESOLVE_CREDENTIAL -> FETCH_ALL -> FILTER_VALID -> COMPUTE_TARGET
            -> DELETE_ALL -> INSERT_TARGET -> REFRESH_VIEW

    spotify/    (spotify/client.py): paginated reads, batched writes
                (spotify/auth.py): access tokens, refreshed when stale
    playlists/  (ordering.py): pure ordering policies and filters
                (orchestrator.py): the pipeline above
                (preferences.py): favorites and auto-sort opt-in
                (service.py): response dictionaries for callers
                (auto_sort.py): daily sort of opted-in playlists

Modules:
    core/       - Configuration, database, logging, exceptions
    spotify/    - Spotify models, remote track store, token providers
    playlists/  - Ordering, orchestration, preferences, auto-sort
    utils/      - Batching and Spotify id helpers
    cli.py      - Command-line interface

Usage:
    Command Line:
        plm login
        plm sort "https://open.spotify.com/playlist/..."
        plm copy liked-songs new-playlist
        plm daemon

    Python API:
        from playlist_manager.core import load_config, Database
        from playlist_manager.spotify import RemoteTrackStore, StoredTokenProvider
        from playlist_manager.playlists import PlaylistOrchestrator

        config = load_config()
        database = Database(config.storage.database)
        store = RemoteTrackStore(request_timeout=config.spotify.request_timeout)
        tokens = StoredTokenProvider(database, config.spotify.client_id, config.spotify.client_secret)

        orchestrator = PlaylistOrchestrator(store, tokens, database=database)
        view = orchestrator.sort_by_release_date(user_id, playlist_id)

Configuration:
    Requires a config.yaml file in the current directory:

        spotify:
          client_id: "your_client_id"
          client_secret: "your_client_secret"

        storage:
          database: "./playlist_manager.db"
          log_directory: "./logs"

        sync:
          liked_insert_reversed: true

        auto_sort:
          hour: 12
          minute: 0

Dependencies:
    - spotipy: Spotify API client
    - requests: Token endpoint calls, transport errors
    - click: CLI framework
    - rich-click: CLI colors
    - tqdm: Progress bars and console logging
    - pyyaml: Configuration file parsing
    - python-dotenv: Credentials from .env
"""

__version__ = "0.1.0"
__author__ = "playlist-manager"
__license__ = "MIT"

# Convenience imports for common usage
from playlist_manager.core import (
    Config,
    ConfigError,
    Database,
    DatabaseError,
    InvalidOperation,
    NotFound,
    PlaylistManagerError,
    RemoteStoreError,
    Unauthenticated,
    UpstreamFetchError,
    get_logger,
    load_config,
    setup_logging,
)
from playlist_manager.spotify import PlaylistView, RemoteTrackStore, Track
from playlist_manager.playlists import PlaylistOrchestrator, PlaylistService

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "Database",
    "setup_logging",
    "get_logger",
    # Exceptions
    "PlaylistManagerError",
    "ConfigError",
    "DatabaseError",
    "Unauthenticated",
    "UpstreamFetchError",
    "RemoteStoreError",
    "InvalidOperation",
    "NotFound",
    # Spotify
    "RemoteTrackStore",
    "Track",
    "PlaylistView",
    # Playlists
    "PlaylistOrchestrator",
    "PlaylistService",
]
