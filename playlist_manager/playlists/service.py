"""
Caller-facing operation surface.

PlaylistService wraps the orchestrator and the preference store and never
raises a PlaylistManagerError: every call returns a response dictionary.

    success:  {"error": False, "playlist": {...}}     (single playlist)
              {"error": False, "playlists": [...]}    (listing, preference ids)
              {"error": False, "items": {...}}        (top items by time range)
    failure:  {"error": True, "message": "...", "kind": "NotFound"}

"kind" is the class name of the PlaylistManagerError behind the failure,
so callers can tell an authentication failure from a failed operation.

Exceptions outside the PlaylistManagerError hierarchy are programming
errors and propagate.
"""

from typing import Any, Callable

from playlist_manager.core.exceptions import PlaylistManagerError
from playlist_manager.core.logger import get_logger
from playlist_manager.playlists.orchestrator import PlaylistOrchestrator
from playlist_manager.playlists.preferences import PlaylistPreferences
from playlist_manager.spotify.models import DEFAULT_TOP_LIMIT

logger = get_logger(__name__)

ApiResponse = dict[str, Any]


class PlaylistService:
    """Playlist operations and preferences, answered as response dictionaries."""

    def __init__(
        self,
        orchestrator: PlaylistOrchestrator,
        preferences: PlaylistPreferences
    ) -> None:
        self.orchestrator = orchestrator
        self.preferences = preferences

    def _respond(self, action: str, key: str, call: Callable[[], Any]) -> ApiResponse:
        try:
            value = call()
        except PlaylistManagerError as e:
            logger.warning(f"{action} failed: {e.message}")
            return {**e.to_failure(), "kind": type(e).__name__}

        if hasattr(value, "to_dict"):
            value = value.to_dict()
        elif isinstance(value, list):
            value = [item.to_dict() if hasattr(item, "to_dict") else item for item in value]
        return {"error": False, key: value}

    # Playlists

    def get_user_playlists(self, user_id: str) -> ApiResponse:
        return self._respond(
            "Listing playlists", "playlists",
            lambda: self.orchestrator.get_user_playlists(user_id)
        )

    def get_playlist(self, user_id: str, playlist_id: str) -> ApiResponse:
        return self._respond(
            f"Reading playlist {playlist_id}", "playlist",
            lambda: self.orchestrator.get_playlist(user_id, playlist_id)
        )

    def get_top_items(
        self,
        user_id: str,
        item_type: str,
        time_range: str | None = None,
        limit: int = DEFAULT_TOP_LIMIT,
        offset: int = 0
    ) -> ApiResponse:
        """{"error": False, "items": {time_range: [track or artist, ...]}}"""
        def call() -> dict[str, list[dict[str, Any]]]:
            top_items = self.orchestrator.get_top_items(user_id, item_type, time_range, limit, offset)
            return {key: [item.to_dict() for item in items] for key, items in top_items.items()}

        return self._respond(f"Reading top {item_type}", "items", call)

    def sort_by_release_date(self, user_id: str, playlist_id: str) -> ApiResponse:
        return self._respond(
            f"Sorting playlist {playlist_id}", "playlist",
            lambda: self.orchestrator.sort_by_release_date(user_id, playlist_id)
        )

    def shuffle(self, user_id: str, playlist_id: str) -> ApiResponse:
        return self._respond(
            f"Shuffling playlist {playlist_id}", "playlist",
            lambda: self.orchestrator.shuffle(user_id, playlist_id)
        )

    def copy_content(self, user_id: str, source_id: str, destination_id: str) -> ApiResponse:
        return self._respond(
            f"Copying playlist {source_id} to {destination_id}", "playlist",
            lambda: self.orchestrator.copy_content(user_id, source_id, destination_id)
        )

    def clear(self, user_id: str, playlist_id: str) -> ApiResponse:
        return self._respond(
            f"Clearing playlist {playlist_id}", "playlist",
            lambda: self.orchestrator.clear(user_id, playlist_id)
        )

    # Preferences

    def add_favorite(self, user_id: str, playlist_id: str) -> ApiResponse:
        return self._respond(
            "Adding favorite", "playlists",
            lambda: self.preferences.add_favorite(user_id, playlist_id)
        )

    def remove_favorite(self, user_id: str, playlist_id: str) -> ApiResponse:
        return self._respond(
            "Removing favorite", "playlists",
            lambda: self.preferences.remove_favorite(user_id, playlist_id)
        )

    def add_auto_sort(self, user_id: str, playlist_id: str) -> ApiResponse:
        return self._respond(
            "Adding auto-sort playlist", "playlists",
            lambda: self.preferences.add_auto_sort(user_id, playlist_id)
        )

    def remove_auto_sort(self, user_id: str, playlist_id: str) -> ApiResponse:
        return self._respond(
            "Removing auto-sort playlist", "playlists",
            lambda: self.preferences.remove_auto_sort(user_id, playlist_id)
        )
