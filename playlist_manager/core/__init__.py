"""
Core module for playlist-manager.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - database: Thread-safe SQLite user registry
    - logger: Logging system with multiple outputs

Usage:
    from playlist_manager.core import (
        Config, load_config,
        Database,
        setup_logging, get_logger,
        PlaylistManagerError, ConfigError, DatabaseError
    )
"""

from playlist_manager.core.config import (
    AutoSortConfig,
    Config,
    SpotifyConfig,
    StorageConfig,
    SyncConfig,
    load_config,
)
from playlist_manager.core.database import Database
from playlist_manager.core.exceptions import (
    ConfigError,
    Conflict,
    DatabaseError,
    InvalidOperation,
    NotFound,
    OperationCancelled,
    PlaylistManagerError,
    RemoteStoreError,
    TokenRefreshRequired,
    Unauthenticated,
    UpstreamFetchError,
)
from playlist_manager.core.logger import (
    get_logger,
    log_auto_sort_failure,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "StorageConfig",
    "SyncConfig",
    "AutoSortConfig",
    "load_config",
    # Database
    "Database",
    # Exceptions
    "PlaylistManagerError",
    "ConfigError",
    "DatabaseError",
    "Unauthenticated",
    "TokenRefreshRequired",
    "UpstreamFetchError",
    "RemoteStoreError",
    "InvalidOperation",
    "NotFound",
    "Conflict",
    "OperationCancelled",
    # Logger
    "setup_logging",
    "get_logger",
    "log_auto_sort_failure",
    "shutdown_logging",
]
