"""
Command-line interface for playlist-manager.

This module implements the CLI using Click, with rich-click for the help
and error output colors.

Commands:
    plm login                                   Authorize a Spotify account
    plm playlists                               List playlists (Liked Songs first)
    plm show <playlist>                         Show a playlist and its tracks
    plm top tracks|artists                      Your most listened tracks or artists
    plm sort <playlist>                         Sort by album release date, newest first
    plm shuffle <playlist>                      Shuffle uniformly at random
    plm copy <source> <destination>             Replace destination with source content
    plm clear <playlist>                        Remove every track
    plm favorite add|remove <playlist>          Manage favorite playlists
    plm auto-sort-playlist add|remove <playlist>
                                                Opt a playlist in/out of the daily sort
    plm auto-sort                               Run one auto-sort pass now
    plm daemon                                  Run the auto-sort pass every day

Playlists are given as a Spotify playlist URL, URI or id, or as
"liked-songs" for the saved tracks. "new-playlist" is accepted as the
destination of copy.

Usage:
    plm login
    plm sort "https://open.spotify.com/playlist/..."
    plm copy liked-songs new-playlist
    plm top tracks --time-range long_term --limit 10
    plm --user <spotify-user-id> shuffle liked-songs

Configuration:
    The CLI reads config.yaml from the current directory (or --config) with
    the Spotify application credentials; SPOTIFY_CLIENT_ID and
    SPOTIFY_CLIENT_SECRET from the environment or a .env file override them.

Exit codes:
    1  Configuration error or unexpected error
    2  Database error
    3  Authentication error (run `plm login` again)
    4  Operation failed
    130  Interrupted
"""

import json
import signal
import sys
import urllib.parse
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.COMMAND_GROUPS = {
    "cli": [
        {
            "name": "Account",
            "commands": ["login", "playlists", "show", "top"],
        },
        {
            "name": "Playlist Operations",
            "commands": ["sort", "shuffle", "copy", "clear"],
        },
        {
            "name": "Preferences",
            "commands": ["favorite", "auto-sort-playlist"],
        },
        {
            "name": "Auto-Sort",
            "commands": ["auto-sort", "daemon"],
        },
    ],
}

from playlist_manager import __version__
from playlist_manager.core import (
    Config,
    ConfigError,
    Database,
    DatabaseError,
    PlaylistManagerError,
    TokenRefreshRequired,
    Unauthenticated,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from playlist_manager.playlists import (
    AutoSortDriver,
    AutoSortScheduler,
    PlaylistOrchestrator,
    PlaylistPreferences,
    PlaylistService,
)
from playlist_manager.spotify import RemoteTrackStore, StoredTokenProvider
from playlist_manager.spotify.models import (
    DEFAULT_TOP_LIMIT,
    MAX_TOP_LIMIT,
    TOP_ITEM_TYPES,
    TOP_TIME_RANGES,
)
from playlist_manager.utils import ensure_directory, format_duration, normalize_playlist_id

logger = get_logger(__name__)

# Failure kinds reported with exit code 3 and the login hint
AUTHENTICATION_FAILURES = {Unauthenticated.__name__, TokenRefreshRequired.__name__}


@dataclass
class App:
    """Objects shared by the commands of one CLI invocation."""
    config: Config
    database: Database
    token_provider: StoredTokenProvider
    orchestrator: PlaylistOrchestrator
    preferences: PlaylistPreferences
    service: PlaylistService


def _build_app(config_path: Path | None) -> App:
    """
    Load configuration, set up logging and wire the components.

    Raises:
        ConfigError: If configuration is invalid or missing.
        DatabaseError: If the user registry cannot be opened.
    """
    config = load_config(config_path)

    setup_logging(ensure_directory(config.storage.log_directory))
    logger.debug("playlist-manager starting")

    ensure_directory(config.storage.database.parent)
    database = Database(config.storage.database)

    store = RemoteTrackStore(
        request_timeout=config.spotify.request_timeout,
        playlist_batch_size=config.sync.playlist_batch_size,
        liked_batch_size=config.sync.liked_batch_size,
    )
    token_provider = StoredTokenProvider(
        database,
        client_id=config.spotify.client_id,
        client_secret=config.spotify.client_secret,
        redirect_uri=config.spotify.redirect_uri,
        timeout=config.spotify.request_timeout,
    )
    orchestrator = PlaylistOrchestrator(
        store,
        token_provider,
        database=database,
        liked_insert_reversed=config.sync.liked_insert_reversed,
    )
    preferences = PlaylistPreferences(database)

    return App(
        config=config,
        database=database,
        token_provider=token_provider,
        orchestrator=orchestrator,
        preferences=preferences,
        service=PlaylistService(orchestrator, preferences),
    )


def _run(ctx: click.Context, command: Callable[[App], None]) -> None:
    """
    Build the application and run a command, mapping errors to exit codes.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    app: App | None = None

    try:
        app = _build_app(ctx.obj["config_path"])
        command(app)

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except DatabaseError as e:
        click.echo(f"Database error: {e.message}", err=True)
        logger.error(f"Database error: {e.message}", exc_info=True)
        sys.exit(2)

    except Unauthenticated as e:
        click.echo(f"Authentication error: {e.message}", err=True)
        click.echo("Run `plm login` to authorize your Spotify account again", err=True)
        sys.exit(3)

    except PlaylistManagerError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    finally:
        if app is not None:
            app.database.close()
            shutdown_logging()


def _resolve_user(app: App, user: str | None) -> str:
    """
    Local user id for --user (local id or Spotify account id).

    Without --user, the only registered user is used.
    """
    if user:
        record = app.database.get_user(user) or app.database.get_user_by_spotify_id(user)
        if record is None:
            raise Unauthenticated(f"Unknown user '{user}'", details={"user": user})
        return record["id"]

    users = app.database.list_users()
    if not users:
        raise Unauthenticated("No Spotify account registered")
    if len(users) > 1:
        raise click.UsageError("Several accounts are registered, choose one with --user")
    return users[0]["id"]


def _playlist_argument(ctx: click.Context, param: click.Parameter, value: str) -> str:
    try:
        return normalize_playlist_id(value)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


def _print_response(response: dict[str, Any], as_json: bool, render: Callable[[Any], None]) -> None:
    """Print a service response, or raise the failure it carries."""
    if as_json:
        click.echo(json.dumps(response, indent=2))
    if response["error"]:
        if response.get("kind") in AUTHENTICATION_FAILURES:
            raise Unauthenticated(response["message"])
        raise PlaylistManagerError(response["message"])
    if not as_json:
        render(response)


def _render_playlist(response: dict[str, Any]) -> None:
    playlist = response["playlist"]
    flags = [label for label, on in (("favorite", playlist["is_favorite"]), ("auto-sort", playlist["auto_sort"])) if on]

    click.echo(f"{playlist['name']}  ({playlist['id']})")
    click.echo(f"  by {playlist['owner_name']}, {playlist['total_tracks']} tracks"
               + (f"  [{', '.join(flags)}]" if flags else ""))
    if playlist["description"]:
        click.echo(f"  {playlist['description']}")

    for position, track in enumerate(playlist["tracks"], start=1):
        release = track["release_date"] or "????"
        click.echo(
            f"{position:>5}. {track['artist_name']} - {track['name']}"
            f"  [{track['album_name']}, {release}]  {format_duration(track['duration'])}"
        )


def _render_playlists(response: dict[str, Any]) -> None:
    for playlist in response["playlists"]:
        marks = ("*" if playlist["is_favorite"] else " ") + ("S" if playlist["auto_sort"] else " ")
        click.echo(f"{marks} {playlist['id']:<24} {playlist['total_tracks']:>6}  {playlist['name']}")


def _render_ids(response: dict[str, Any]) -> None:
    for playlist_id in response["playlists"]:
        click.echo(playlist_id)


def _render_top_items(response: dict[str, Any]) -> None:
    for time_range, items in response["items"].items():
        click.echo(f"{time_range.replace('_', ' ').capitalize()}:")
        for rank, item in enumerate(items, start=1):
            if "artist_name" in item:
                click.echo(f"{rank:>5}. {item['artist_name']} - {item['name']}  [{item['album_name']}]")
            else:
                genres = f"  ({', '.join(item['genres'])})" if item["genres"] else ""
                click.echo(f"{rank:>5}. {item['name']}{genres}")


json_option = click.option("--json", "as_json", is_flag=True, help="Print the raw JSON response")


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.option(
    "--user", "-u",
    type=str,
    default=None,
    metavar="<user>",
    help="Local user id or Spotify account id (default: the only registered account)"
)
@click.version_option(__version__, prog_name="playlist-manager")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, user: str | None) -> None:
    """
    playlist-manager: Sort, shuffle, copy and clear Spotify playlists.

    \b
    BASIC USAGE:
        plm login                                  # Authorize your account
        plm playlists                              # List your playlists
        plm sort "https://open.spotify.com/..."    # Newest albums first
        plm shuffle liked-songs                    # Shuffle Liked Songs
        plm copy <source> new-playlist             # Copy into a new playlist
        plm top tracks                             # Most listened tracks

    \b
    AUTO-SORT:
        plm auto-sort-playlist add <playlist>      # Sort it every day
        plm daemon                                 # Run the daily scheduler
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["user"] = user


# =============================================================================
# Account
# =============================================================================

@cli.command()
@click.option("--code", default=None, metavar="<code>", help="Authorization code (skips the prompt)")
@click.pass_context
def login(ctx: click.Context, code: str | None) -> None:
    """Authorize playlist-manager to manage your Spotify playlists."""
    def command(app: App) -> None:
        nonlocal code
        if code is None:
            click.echo("Open this URL in your browser and authorize the application:")
            click.echo(app.token_provider.authorization_url())
            answer = click.prompt("Paste the URL you were redirected to (or the code)")
            query = urllib.parse.parse_qs(urllib.parse.urlparse(answer).query)
            code = query["code"][0] if "code" in query else answer.strip()

        user = app.token_provider.authenticate(code)
        click.echo(f"Logged in as {user['username'] or user['spotify_user_id']} (user id {user['id']})")

    _run(ctx, command)


@cli.command()
@json_option
@click.pass_context
def playlists(ctx: click.Context, as_json: bool) -> None:
    """List your playlists (* favorite, S auto-sort)."""
    def command(app: App) -> None:
        user_id = _resolve_user(app, ctx.obj["user"])
        _print_response(app.service.get_user_playlists(user_id), as_json, _render_playlists)

    _run(ctx, command)


@cli.command()
@click.argument("playlist", callback=_playlist_argument)
@json_option
@click.pass_context
def show(ctx: click.Context, playlist: str, as_json: bool) -> None:
    """Show a playlist and all of its tracks."""
    def command(app: App) -> None:
        user_id = _resolve_user(app, ctx.obj["user"])
        _print_response(app.service.get_playlist(user_id, playlist), as_json, _render_playlist)

    _run(ctx, command)


@cli.command()
@click.argument("item_type", metavar="tracks|artists", type=click.Choice(TOP_ITEM_TYPES))
@click.option(
    "--time-range", "time_range",
    type=click.Choice(TOP_TIME_RANGES),
    default=None,
    help="short_term (4 weeks), medium_term (6 months) or long_term (1 year); all three by default"
)
@click.option(
    "--limit",
    type=click.IntRange(1, MAX_TOP_LIMIT),
    default=DEFAULT_TOP_LIMIT,
    show_default=True,
    help="Items per time range"
)
@click.option("--offset", type=click.IntRange(min=0), default=0, help="Index of the first item")
@json_option
@click.pass_context
def top(
    ctx: click.Context,
    item_type: str,
    time_range: str | None,
    limit: int,
    offset: int,
    as_json: bool
) -> None:
    """Show your most listened tracks or artists."""
    def command(app: App) -> None:
        user_id = _resolve_user(app, ctx.obj["user"])
        response = app.service.get_top_items(user_id, item_type, time_range, limit, offset)
        _print_response(response, as_json, _render_top_items)

    _run(ctx, command)


# =============================================================================
# Playlist Operations
# =============================================================================

@cli.command()
@click.argument("playlist", callback=_playlist_argument)
@json_option
@click.pass_context
def sort(ctx: click.Context, playlist: str, as_json: bool) -> None:
    """Group tracks by album, newest release first."""
    def command(app: App) -> None:
        user_id = _resolve_user(app, ctx.obj["user"])
        _print_response(app.service.sort_by_release_date(user_id, playlist), as_json, _render_playlist)

    _run(ctx, command)


@cli.command()
@click.argument("playlist", callback=_playlist_argument)
@json_option
@click.pass_context
def shuffle(ctx: click.Context, playlist: str, as_json: bool) -> None:
    """Shuffle a playlist (Liked Songs included)."""
    def command(app: App) -> None:
        user_id = _resolve_user(app, ctx.obj["user"])
        _print_response(app.service.shuffle(user_id, playlist), as_json, _render_playlist)

    _run(ctx, command)


@cli.command()
@click.argument("source", callback=_playlist_argument)
@click.argument("destination", callback=_playlist_argument)
@json_option
@click.pass_context
def copy(ctx: click.Context, source: str, destination: str, as_json: bool) -> None:
    """Replace DESTINATION's tracks with SOURCE's ("new-playlist" creates one)."""
    def command(app: App) -> None:
        user_id = _resolve_user(app, ctx.obj["user"])
        _print_response(app.service.copy_content(user_id, source, destination), as_json, _render_playlist)

    _run(ctx, command)


@cli.command()
@click.argument("playlist", callback=_playlist_argument)
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@json_option
@click.pass_context
def clear(ctx: click.Context, playlist: str, yes: bool, as_json: bool) -> None:
    """Remove every track of a playlist."""
    if not yes:
        click.confirm(f"Remove every track of {playlist}?", abort=True)

    def command(app: App) -> None:
        user_id = _resolve_user(app, ctx.obj["user"])
        _print_response(app.service.clear(user_id, playlist), as_json, _render_playlist)

    _run(ctx, command)


# =============================================================================
# Preferences
# =============================================================================

@cli.group()
def favorite() -> None:
    """Manage favorite playlists."""


@favorite.command("add")
@click.argument("playlist", callback=_playlist_argument)
@click.pass_context
def favorite_add(ctx: click.Context, playlist: str) -> None:
    """Mark a playlist as favorite."""
    def command(app: App) -> None:
        user_id = _resolve_user(app, ctx.obj["user"])
        _print_response(app.service.add_favorite(user_id, playlist), False, _render_ids)

    _run(ctx, command)


@favorite.command("remove")
@click.argument("playlist", callback=_playlist_argument)
@click.pass_context
def favorite_remove(ctx: click.Context, playlist: str) -> None:
    """Unmark a favorite playlist."""
    def command(app: App) -> None:
        user_id = _resolve_user(app, ctx.obj["user"])
        _print_response(app.service.remove_favorite(user_id, playlist), False, _render_ids)

    _run(ctx, command)


@cli.group("auto-sort-playlist")
def auto_sort_playlist() -> None:
    """Manage the playlists sorted every day."""


@auto_sort_playlist.command("add")
@click.argument("playlist", callback=_playlist_argument)
@click.pass_context
def auto_sort_add(ctx: click.Context, playlist: str) -> None:
    """Sort a playlist every day."""
    def command(app: App) -> None:
        user_id = _resolve_user(app, ctx.obj["user"])
        _print_response(app.service.add_auto_sort(user_id, playlist), False, _render_ids)

    _run(ctx, command)


@auto_sort_playlist.command("remove")
@click.argument("playlist", callback=_playlist_argument)
@click.pass_context
def auto_sort_remove(ctx: click.Context, playlist: str) -> None:
    """Stop sorting a playlist every day."""
    def command(app: App) -> None:
        user_id = _resolve_user(app, ctx.obj["user"])
        _print_response(app.service.remove_auto_sort(user_id, playlist), False, _render_ids)

    _run(ctx, command)


# =============================================================================
# Auto-Sort
# =============================================================================

@cli.command("auto-sort")
@click.pass_context
def auto_sort(ctx: click.Context) -> None:
    """Sort every opted-in playlist of every user now."""
    def command(app: App) -> None:
        driver = AutoSortDriver(app.database, app.orchestrator)
        report = driver.run_once(show_progress=True)
        click.echo(f"{len(report.sorted)} sorted, {len(report.failed)} failed")
        if report.failed:
            sys.exit(4)

    _run(ctx, command)


@cli.command()
@click.pass_context
def daemon(ctx: click.Context) -> None:
    """Run the auto-sort pass every day at the configured time."""
    def command(app: App) -> None:
        driver = AutoSortDriver(app.database, app.orchestrator)
        scheduler = AutoSortScheduler(driver, app.config.auto_sort.hour, app.config.auto_sort.minute)

        def request_stop(signum, frame) -> None:
            logger.info("Auto-sort daemon interrupted, stopping before the next batch")
            scheduler.stop()

        # Ctrl-C sets the stop event instead of unwinding a running sort
        previous_handler = signal.signal(signal.SIGINT, request_stop)
        try:
            scheduler.run_forever()
        finally:
            signal.signal(signal.SIGINT, previous_handler)

    _run(ctx, command)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `plm` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
