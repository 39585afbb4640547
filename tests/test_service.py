"""Test the caller-facing service responses"""

import pytest

from playlist_manager.playlists.orchestrator import PlaylistOrchestrator
from playlist_manager.playlists.preferences import PlaylistPreferences
from playlist_manager.playlists.service import PlaylistService
from playlist_manager.spotify.auth import StaticTokenProvider
from playlist_manager.spotify.models import LIKED_SONGS_ID

from tests.conftest import ACCESS_TOKEN, make_artist, make_track


@pytest.fixture
def service(store, database, user):
    orchestrator = PlaylistOrchestrator(store, StaticTokenProvider({user["id"]: ACCESS_TOKEN}), database=database)
    return PlaylistService(orchestrator, PlaylistPreferences(database))


class TestPlaylistService:
    """Test response payloads"""

    def test_sort_success(self, service, fake_spotify, user):
        fake_spotify.add_playlist("pl", [
            make_track("a", "A", "2000-01-01"),
            make_track("b", "B", "2010-01-01"),
        ])

        response = service.sort_by_release_date(user["id"], "pl")

        assert response["error"] is False
        assert [t["id"] for t in response["playlist"]["tracks"]] == ["b", "a"]
        assert response["playlist"]["tracks"][0]["release_date"] == "2010-01-01"

    def test_sort_liked_songs_failure(self, service, user):
        response = service.sort_by_release_date(user["id"], LIKED_SONGS_ID)

        assert response == {
            "error": True,
            "message": "The playlist Liked Songs can not be sorted",
            "kind": "InvalidOperation",
        }

    def test_upstream_failure(self, service, user):
        response = service.shuffle(user["id"], "missing")

        assert response["error"] is True
        assert "missing" in response["message"]

    def test_unauthenticated(self, service):
        response = service.clear("nobody", "pl")
        assert response["error"] is True
        assert response["kind"] == "Unauthenticated"

    def test_top_items(self, service, fake_spotify, user):
        fake_spotify.set_top("artists", "short_term", [make_artist("ar1", ["jazz"])])

        response = service.get_top_items(user["id"], "artists", "short_term")

        assert response["error"] is False
        assert list(response["items"]) == ["short_term"]
        assert response["items"]["short_term"][0]["genres"] == ["jazz"]

    def test_top_items_unknown_type(self, service, user):
        response = service.get_top_items(user["id"], "albums")

        assert response["error"] is True
        assert response["kind"] == "InvalidOperation"

    def test_listing(self, service, fake_spotify, user):
        fake_spotify.add_playlist("pl", [])

        response = service.get_user_playlists(user["id"])

        assert response["error"] is False
        assert [p["id"] for p in response["playlists"]] == [LIKED_SONGS_ID, "pl"]

    def test_copy_and_get_playlist(self, service, fake_spotify, user):
        fake_spotify.add_playlist("src", [make_track("t1")], name="Mix")

        copied = service.copy_content(user["id"], "src", "new-playlist")
        shown = service.get_playlist(user["id"], copied["playlist"]["id"])

        assert copied["playlist"]["name"] == "Mix copy"
        assert shown["playlist"]["total_tracks"] == 1

    def test_preferences(self, service, user):
        assert service.add_favorite(user["id"], "pl") == {"error": False, "playlists": ["pl"]}
        assert service.add_favorite(user["id"], "pl")["error"] is True
        assert service.remove_favorite(user["id"], "pl") == {"error": False, "playlists": []}

        assert service.add_auto_sort(user["id"], LIKED_SONGS_ID)["error"] is True
        assert service.add_auto_sort(user["id"], "pl") == {"error": False, "playlists": ["pl"]}
        assert service.remove_auto_sort(user["id"], "pl") == {"error": False, "playlists": []}
