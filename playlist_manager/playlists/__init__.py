"""
Playlist operations: ordering policies, the mutation orchestrator,
preferences, the caller-facing service and the daily auto-sort.
"""

from playlist_manager.playlists.ordering import (
    filter_valid,
    group_by_album_newest_first,
    uniform_shuffle,
)
from playlist_manager.playlists.orchestrator import PlaylistOrchestrator, RewriteResult
from playlist_manager.playlists.preferences import PlaylistPreferences
from playlist_manager.playlists.service import PlaylistService
from playlist_manager.playlists.auto_sort import AutoSortDriver, AutoSortReport, AutoSortScheduler

__all__ = [
    "filter_valid",
    "group_by_album_newest_first",
    "uniform_shuffle",
    "PlaylistOrchestrator",
    "RewriteResult",
    "PlaylistPreferences",
    "PlaylistService",
    "AutoSortDriver",
    "AutoSortReport",
    "AutoSortScheduler",
]
