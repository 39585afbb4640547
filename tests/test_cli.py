"""Test the command-line interface"""

import signal
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, patch

import pytest
from click.testing import CliRunner

from playlist_manager import __version__
from playlist_manager.cli import App, cli
from playlist_manager.playlists.auto_sort import AutoSortScheduler
from playlist_manager.playlists.orchestrator import PlaylistOrchestrator
from playlist_manager.playlists.preferences import PlaylistPreferences
from playlist_manager.playlists.service import PlaylistService
from playlist_manager.spotify.auth import StaticTokenProvider, StoredTokenProvider

from tests.conftest import ACCESS_TOKEN, make_track


@pytest.fixture
def app(store, database, user):
    """App wired to the fake Spotify API and a temporary registry"""
    orchestrator = PlaylistOrchestrator(store, StaticTokenProvider({user["id"]: ACCESS_TOKEN}), database=database)
    preferences = PlaylistPreferences(database)
    return App(
        config=Mock(),
        database=database,
        token_provider=Mock(),
        orchestrator=orchestrator,
        preferences=preferences,
        service=PlaylistService(orchestrator, preferences),
    )


@pytest.fixture
def invoke(app):
    """Run the CLI against the fake app"""
    runner = CliRunner()

    def run(args, **kwargs):
        with patch("playlist_manager.cli._build_app", return_value=app), \
             patch("playlist_manager.cli.shutdown_logging"):
            return runner.invoke(cli, args, **kwargs)
    return run


class TestCommands:
    """Test command output and exit codes"""

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_sort(self, invoke, fake_spotify):
        fake_spotify.add_playlist("pl", [
            make_track("a", "A", "2000-01-01", name="Oldie"),
            make_track("b", "B", "2020-01-01", name="Newbie"),
        ], name="Road Trip")

        result = invoke(["sort", "https://open.spotify.com/playlist/pl?si=abc"])

        assert result.exit_code == 0, result.output
        assert "Road Trip" in result.output
        assert result.output.index("Newbie") < result.output.index("Oldie")
        assert fake_spotify.playlist_track_ids("pl") == ["b", "a"]

    def test_sort_json(self, invoke, fake_spotify):
        fake_spotify.add_playlist("pl", [make_track("a")])

        result = invoke(["sort", "pl", "--json"])

        assert result.exit_code == 0
        assert '"error": false' in result.output

    def test_failed_operation_exit_code(self, invoke):
        result = invoke(["sort", "liked-songs"])

        assert result.exit_code == 4
        assert "can not be sorted" in result.output

    def test_invalid_playlist_argument(self, invoke):
        result = invoke(["shuffle", "https://open.spotify.com/album/abc"])

        assert result.exit_code == 2

    def test_clear_with_yes(self, invoke, fake_spotify):
        fake_spotify.add_playlist("pl", [make_track("a"), make_track("b")])

        result = invoke(["clear", "pl", "--yes"])

        assert result.exit_code == 0
        assert fake_spotify.playlist_track_ids("pl") == []

    def test_clear_declined(self, invoke, fake_spotify):
        fake_spotify.add_playlist("pl", [make_track("a")])

        result = invoke(["clear", "pl"], input="n\n")

        assert result.exit_code == 1
        assert fake_spotify.playlist_track_ids("pl") == ["a"]

    def test_copy_to_new_playlist(self, invoke, fake_spotify):
        fake_spotify.add_playlist("src", [make_track("a")], name="Mix")

        result = invoke(["copy", "src", "new-playlist"])

        assert result.exit_code == 0
        assert "Mix copy" in result.output

    def test_playlists(self, invoke, fake_spotify, database, user):
        fake_spotify.add_playlist("pl", [make_track("a")], name="Road Trip")
        database.set_favorite_playlists(user["id"], ["pl"])

        result = invoke(["playlists"])

        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert "Liked Songs" in lines[0]
        assert lines[1].startswith("*") and "Road Trip" in lines[1]

    def test_preferences(self, invoke, database, user):
        assert invoke(["favorite", "add", "pl"]).exit_code == 0
        assert invoke(["auto-sort-playlist", "add", "pl"]).exit_code == 0
        assert database.get_user(user["id"])["favorite_playlists"] == ["pl"]
        assert database.get_user(user["id"])["auto_sort_playlists"] == ["pl"]

        result = invoke(["favorite", "add", "pl"])
        assert result.exit_code == 4

    def test_auto_sort_pass(self, invoke, fake_spotify, database, user):
        fake_spotify.add_playlist("pl", [make_track("a", "A", "2000"), make_track("b", "B", "2010")])
        database.set_auto_sort_playlists(user["id"], ["pl", "missing"])

        result = invoke(["auto-sort"])

        assert result.exit_code == 4
        assert "1 sorted, 1 failed" in result.output
        assert fake_spotify.playlist_track_ids("pl") == ["b", "a"]

    def test_top_tracks(self, invoke, fake_spotify):
        fake_spotify.set_top("tracks", "short_term", [make_track("a", name="Hit")])

        result = invoke(["top", "tracks", "--time-range", "short_term", "--limit", "5"])

        assert result.exit_code == 0, result.output
        assert "Short term:" in result.output
        assert "1. Test Artist - Hit" in result.output
        assert fake_spotify.calls_to("current_user_top_tracks") == [
            ("current_user_top_tracks", "short_term", 5, 0)
        ]

    def test_top_limit_out_of_range(self, invoke, fake_spotify):
        result = invoke(["top", "artists", "--limit", "80"])

        assert result.exit_code == 2
        assert fake_spotify.calls_to("current_user_top_artists") == []


class TestUsers:
    """Test account selection"""

    def test_user_by_spotify_id(self, invoke, fake_spotify, database):
        database.upsert_user("someone-else", "Other", None, "other-token", None)
        fake_spotify.add_playlist("pl", [make_track("a")])

        assert invoke(["show", "pl"]).exit_code == 2
        assert invoke(["--user", "spotify-user", "show", "pl"]).exit_code == 0

    def test_unknown_user(self, invoke):
        result = invoke(["--user", "nobody", "show", "pl"])

        assert result.exit_code == 3
        assert "plm login" in result.output

    def test_expired_token_without_refresh_token(self, invoke, app, database):
        database.upsert_user("stale-user", "Stale", None, "stale-token", None)
        app.orchestrator.token_provider = StoredTokenProvider(
            database, "client-id", "client-secret",
            clock=lambda: datetime.now(timezone.utc) + timedelta(hours=2)
        )

        result = invoke(["--user", "stale-user", "sort", "pl"])

        assert result.exit_code == 3
        assert "no refresh token is stored" in result.output
        assert "plm login" in result.output

    def test_login_with_pasted_redirect(self, invoke, app):
        app.token_provider.authorization_url.return_value = "https://accounts.spotify.com/authorize?x=1"
        app.token_provider.authenticate.return_value = {
            "id": "local-1", "username": "Carol", "spotify_user_id": "carol"
        }

        result = invoke(["login"], input="http://127.0.0.1:8888/callback?code=the-code&state=s\n")

        assert result.exit_code == 0
        app.token_provider.authenticate.assert_called_once_with("the-code")
        assert "Logged in as Carol" in result.output


class TestDaemon:
    """Test the daemon's interrupt handling"""

    def test_interrupt_requests_stop(self, invoke, app):
        app.config.auto_sort.hour = 3
        app.config.auto_sort.minute = 30
        previous_handler = Mock()
        stopped = []

        def run_forever(scheduler):
            handler = install.call_args_list[0].args[1]
            handler(signal.SIGINT, None)
            stopped.append(scheduler._stop_event.is_set())

        with patch("playlist_manager.cli.signal.signal", return_value=previous_handler) as install, \
             patch.object(AutoSortScheduler, "run_forever", autospec=True, side_effect=run_forever):
            result = invoke(["daemon"])

        assert result.exit_code == 0, result.output
        assert stopped == [True]
        assert install.call_args_list[0].args[0] == signal.SIGINT
        # Previous handler restored on exit
        assert install.call_args_list[-1].args == (signal.SIGINT, previous_handler)
