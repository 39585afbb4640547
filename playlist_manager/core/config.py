"""
Configuration management for playlist-manager.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Spotify application credentials and the OAuth redirect URI
    - The bounded timeout applied to every Spotify API call
    - Storage locations (SQLite user registry, log directory)
    - Batch sizes and the Liked Songs insertion rule for the sync engine
    - The daily time at which the auto-sort pass runs

Credentials can also be supplied through the SPOTIFY_CLIENT_ID and
SPOTIFY_CLIENT_SECRET environment variables (a .env file in the working
directory is loaded first). Environment values take precedence.

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      redirect_uri: "http://127.0.0.1:8888/callback"
      request_timeout: 10

    storage:
      database: "~/.playlist-manager/playlist_manager.db"
      log_directory: "~/.playlist-manager/logs"

    sync:
      liked_insert_reversed: true
      playlist_batch_size: 100
      liked_batch_size: 50

    auto_sort:
      hour: 12
      minute: 0
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from playlist_manager.core.exceptions import ConfigError


# Default configuration file name (looked up in the current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"
DEFAULT_REQUEST_TIMEOUT = 10.0

# Spotify Web API limits per request
MAX_PLAYLIST_BATCH_SIZE = 100
MAX_LIKED_BATCH_SIZE = 50


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify application configuration.

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
        redirect_uri: Redirect URI registered for the OAuth code flow.
        request_timeout: Timeout in seconds for every Spotify API call.
    """
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT


@dataclass(frozen=True)
class StorageConfig:
    """
    Storage locations.

    Attributes:
        database: Path of the SQLite user registry.
        log_directory: Directory where log files are written.
    """
    database: Path
    log_directory: Path


@dataclass(frozen=True)
class SyncConfig:
    """
    Track-synchronization engine settings.

    Attributes:
        liked_insert_reversed: Reverse the target order before inserting
                               into Liked Songs, which always lists the most
                               recently saved track first.
        playlist_batch_size: Tracks per delete/insert call on a playlist.
        liked_batch_size: Tracks per delete/insert call on Liked Songs.
    """
    liked_insert_reversed: bool = True
    playlist_batch_size: int = MAX_PLAYLIST_BATCH_SIZE
    liked_batch_size: int = MAX_LIKED_BATCH_SIZE


@dataclass(frozen=True)
class AutoSortConfig:
    """Local time of day at which the daily auto-sort pass fires."""
    hour: int = 12
    minute: int = 0


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    This is the main configuration object that aggregates all configuration
    sections. It is created by load_config() and is immutable.

    Example:
        config = load_config()
        print(f"Database: {config.storage.database}")
        print(f"Auto-sort at {config.auto_sort.hour:02d}:{config.auto_sort.minute:02d}")
    """
    spotify: SpotifyConfig
    storage: StorageConfig
    sync: SyncConfig
    auto_sort: AutoSortConfig


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is not found, has invalid YAML syntax,
                     is missing required fields, or contains invalid values.

    Behavior:
        1. Load .env (if present) so environment overrides are visible
        2. Locate and parse the YAML file
        3. Validate the 'spotify' section (required)
        4. Validate optional sections, applying defaults
        5. Return a frozen Config object
    """
    load_dotenv()

    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return parse_config(raw_config)


def parse_config(raw_config: dict[str, Any]) -> Config:
    """
    Build a Config from an already parsed dictionary.

    Split out of load_config() so the validation rules can be exercised
    without touching the filesystem.
    """
    _validate_sections(raw_config)

    return Config(
        spotify=_parse_spotify_config(raw_config["spotify"]),
        storage=_parse_storage_config(raw_config.get("storage")),
        sync=_parse_sync_config(raw_config.get("sync")),
        auto_sort=_parse_auto_sort_config(raw_config.get("auto_sort")),
    )


def _validate_sections(raw_config: dict[str, Any]) -> None:
    if "spotify" not in raw_config:
        raise ConfigError(
            "Missing required section: 'spotify'",
            details={"missing_section": "spotify"}
        )

    for section in ("spotify", "storage", "sync", "auto_sort"):
        value = raw_config.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(
                f"Section '{section}' must be a dictionary",
                details={"section": section}
            )


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse and validate the Spotify configuration section.

    SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET from the environment win
    over the values in the file.

    Raises:
        ConfigError: If client_id or client_secret is missing or empty,
                     or request_timeout is not a positive number.
    """
    client_id = os.environ.get("SPOTIFY_CLIENT_ID") or spotify_section.get("client_id", "")
    client_secret = os.environ.get("SPOTIFY_CLIENT_SECRET") or spotify_section.get("client_secret", "")

    if not isinstance(client_id, str) or not client_id.strip():
        raise ConfigError(
            "'spotify.client_id' must be a non-empty string",
            details={"field": "spotify.client_id"}
        )

    if not isinstance(client_secret, str) or not client_secret.strip():
        raise ConfigError(
            "'spotify.client_secret' must be a non-empty string",
            details={"field": "spotify.client_secret"}
        )

    redirect_uri = spotify_section.get("redirect_uri", DEFAULT_REDIRECT_URI)
    if not isinstance(redirect_uri, str) or not redirect_uri.strip():
        raise ConfigError(
            "'spotify.redirect_uri' must be a non-empty string",
            details={"field": "spotify.redirect_uri"}
        )

    request_timeout = spotify_section.get("request_timeout", DEFAULT_REQUEST_TIMEOUT)
    if isinstance(request_timeout, bool) or not isinstance(request_timeout, (int, float)) or request_timeout <= 0:
        raise ConfigError(
            "'spotify.request_timeout' must be a positive number",
            details={"field": "spotify.request_timeout", "value": request_timeout}
        )

    return SpotifyConfig(
        client_id=client_id.strip(),
        client_secret=client_secret.strip(),
        redirect_uri=redirect_uri.strip(),
        request_timeout=float(request_timeout)
    )


def _parse_path(section: dict[str, Any], key: str, default: str, field_name: str) -> Path:
    raw = section.get(key, default)
    if not isinstance(raw, str) or not raw.strip():
        raise ConfigError(
            f"'{field_name}' must be a non-empty string",
            details={"field": field_name}
        )
    # Expand ~ and make absolute
    return Path(raw.strip()).expanduser().resolve()


def _parse_storage_config(storage_section: dict[str, Any] | None) -> StorageConfig:
    """
    Parse the storage section. Directories are NOT created here.
    """
    section = storage_section or {}
    return StorageConfig(
        database=_parse_path(section, "database", "playlist_manager.db", "storage.database"),
        log_directory=_parse_path(section, "log_directory", "logs", "storage.log_directory"),
    )


def _parse_batch_size(section: dict[str, Any], key: str, maximum: int) -> int:
    value = section.get(key, maximum)
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= maximum:
        raise ConfigError(
            f"'sync.{key}' must be an integer between 1 and {maximum}",
            details={"field": f"sync.{key}", "value": value}
        )
    return value


def _parse_sync_config(sync_section: dict[str, Any] | None) -> SyncConfig:
    """
    Parse the sync section, applying Spotify's per-request limits as
    defaults and upper bounds.
    """
    section = sync_section or {}

    reversed_flag = section.get("liked_insert_reversed", True)
    if not isinstance(reversed_flag, bool):
        raise ConfigError(
            "'sync.liked_insert_reversed' must be true or false",
            details={"field": "sync.liked_insert_reversed", "value": reversed_flag}
        )

    return SyncConfig(
        liked_insert_reversed=reversed_flag,
        playlist_batch_size=_parse_batch_size(section, "playlist_batch_size", MAX_PLAYLIST_BATCH_SIZE),
        liked_batch_size=_parse_batch_size(section, "liked_batch_size", MAX_LIKED_BATCH_SIZE),
    )


def _parse_auto_sort_config(auto_sort_section: dict[str, Any] | None) -> AutoSortConfig:
    section = auto_sort_section or {}
    hour = section.get("hour", 12)
    minute = section.get("minute", 0)

    if isinstance(hour, bool) or not isinstance(hour, int) or not 0 <= hour <= 23:
        raise ConfigError(
            "'auto_sort.hour' must be an integer between 0 and 23",
            details={"field": "auto_sort.hour", "value": hour}
        )
    if isinstance(minute, bool) or not isinstance(minute, int) or not 0 <= minute <= 59:
        raise ConfigError(
            "'auto_sort.minute' must be an integer between 0 and 59",
            details={"field": "auto_sort.minute", "value": minute}
        )

    return AutoSortConfig(hour=hour, minute=minute)
