"""Test favorite and auto-sort preferences"""

import pytest

from playlist_manager.core.exceptions import Conflict, InvalidOperation, NotFound
from playlist_manager.playlists.preferences import PlaylistPreferences
from playlist_manager.spotify.models import LIKED_SONGS_ID, NEW_PLAYLIST_ID


@pytest.fixture
def preferences(database):
    return PlaylistPreferences(database)


class TestFavorites:
    """Test favorites"""

    def test_add_and_remove(self, preferences, database, user):
        assert preferences.add_favorite(user["id"], "pl1") == ["pl1"]
        assert preferences.add_favorite(user["id"], LIKED_SONGS_ID) == ["pl1", LIKED_SONGS_ID]
        assert database.get_user(user["id"])["favorite_playlists"] == ["pl1", LIKED_SONGS_ID]

        assert preferences.remove_favorite(user["id"], "pl1") == [LIKED_SONGS_ID]
        assert preferences.get_favorites(user["id"]) == [LIKED_SONGS_ID]

    def test_add_twice_conflicts(self, preferences, user):
        preferences.add_favorite(user["id"], "pl1")
        with pytest.raises(Conflict):
            preferences.add_favorite(user["id"], "pl1")

    def test_remove_absent(self, preferences, user):
        with pytest.raises(NotFound):
            preferences.remove_favorite(user["id"], "pl1")

    def test_unknown_user(self, preferences):
        with pytest.raises(NotFound):
            preferences.add_favorite("nobody", "pl1")

    def test_new_playlist_sentinel_rejected(self, preferences, user):
        with pytest.raises(InvalidOperation):
            preferences.add_favorite(user["id"], NEW_PLAYLIST_ID)


class TestAutoSort:
    """Test the auto-sort opt-in"""

    def test_add_and_remove(self, preferences, database, user):
        preferences.add_auto_sort(user["id"], "pl1")
        preferences.add_auto_sort(user["id"], "pl2")

        assert [u["id"] for u in database.get_users_with_auto_sort()] == [user["id"]]
        assert preferences.remove_auto_sort(user["id"], "pl1") == ["pl2"]

    def test_liked_songs_rejected(self, preferences, user):
        with pytest.raises(InvalidOperation):
            preferences.add_auto_sort(user["id"], LIKED_SONGS_ID)
        assert preferences.get_auto_sort(user["id"]) == []

    def test_add_twice_conflicts(self, preferences, user):
        preferences.add_auto_sort(user["id"], "pl1")
        with pytest.raises(Conflict):
            preferences.add_auto_sort(user["id"], "pl1")

    def test_remove_absent(self, preferences, user):
        with pytest.raises(NotFound):
            preferences.remove_auto_sort(user["id"], "pl1")
