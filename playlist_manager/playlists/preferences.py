"""
Per-user playlist preferences: favorites and the auto-sort opt-in.

Both are plain lists of playlist ids stored on the user row. Adding an id
that is already present raises Conflict, removing one that is absent
raises NotFound.
"""

from playlist_manager.core.database import Database
from playlist_manager.core.exceptions import Conflict, InvalidOperation, NotFound
from playlist_manager.core.logger import get_logger
from playlist_manager.spotify.models import LIKED_SONGS_NAME, NEW_PLAYLIST_ID, is_liked_songs

logger = get_logger(__name__)


FAVORITES = "favorite_playlists"
AUTO_SORT = "auto_sort_playlists"


class PlaylistPreferences:
    """Favorite and auto-sort playlist sets of the registered users."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def _current(self, user_id: str, field: str) -> list[str]:
        user = self.database.get_user(user_id)
        if user is None:
            raise NotFound(f"User not found: {user_id}", details={"user_id": user_id})
        return list(user[field])

    def _store(self, user_id: str, field: str, playlist_ids: list[str]) -> None:
        if field == FAVORITES:
            self.database.set_favorite_playlists(user_id, playlist_ids)
        else:
            self.database.set_auto_sort_playlists(user_id, playlist_ids)

    def _add(self, user_id: str, field: str, playlist_id: str, label: str) -> list[str]:
        if playlist_id == NEW_PLAYLIST_ID:
            raise InvalidOperation(
                f"'{NEW_PLAYLIST_ID}' is not a playlist",
                details={"playlist_id": playlist_id}
            )

        playlist_ids = self._current(user_id, field)
        if playlist_id in playlist_ids:
            raise Conflict(
                f"Playlist {playlist_id} is already in {label}",
                details={"user_id": user_id, "playlist_id": playlist_id}
            )

        playlist_ids.append(playlist_id)
        self._store(user_id, field, playlist_ids)
        logger.info(f"Playlist {playlist_id} added to {label} of user {user_id}")
        return playlist_ids

    def _remove(self, user_id: str, field: str, playlist_id: str, label: str) -> list[str]:
        playlist_ids = self._current(user_id, field)
        if playlist_id not in playlist_ids:
            raise NotFound(
                f"Playlist {playlist_id} is not in {label}",
                details={"user_id": user_id, "playlist_id": playlist_id}
            )

        playlist_ids = [existing for existing in playlist_ids if existing != playlist_id]
        self._store(user_id, field, playlist_ids)
        logger.info(f"Playlist {playlist_id} removed from {label} of user {user_id}")
        return playlist_ids

    def get_favorites(self, user_id: str) -> list[str]:
        return self._current(user_id, FAVORITES)

    def add_favorite(self, user_id: str, playlist_id: str) -> list[str]:
        return self._add(user_id, FAVORITES, playlist_id, "favorites")

    def remove_favorite(self, user_id: str, playlist_id: str) -> list[str]:
        return self._remove(user_id, FAVORITES, playlist_id, "favorites")

    def get_auto_sort(self, user_id: str) -> list[str]:
        return self._current(user_id, AUTO_SORT)

    def add_auto_sort(self, user_id: str, playlist_id: str) -> list[str]:
        """
        Opt a playlist into the daily sort.

        Raises:
            InvalidOperation: For Liked Songs, which can not be sorted.
            Conflict: If the playlist is already opted in.
        """
        if is_liked_songs(playlist_id):
            raise InvalidOperation(
                f"The playlist {LIKED_SONGS_NAME} can not be sorted",
                details={"playlist_id": playlist_id}
            )
        return self._add(user_id, AUTO_SORT, playlist_id, "auto-sort")

    def remove_auto_sort(self, user_id: str, playlist_id: str) -> list[str]:
        return self._remove(user_id, AUTO_SORT, playlist_id, "auto-sort")
