"""
Utility functions for playlist-manager.

This module provides small helpers used across the application:
    - Batch partitioning for the Spotify write endpoints
    - Spotify URL / URI / id normalization for CLI input
    - Path and display helpers

Usage:
    from playlist_manager.utils import chunked, normalize_playlist_id
"""

from pathlib import Path
from typing import Iterator, Sequence, TypeVar


T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[list[T]]:
    """
    Split a sequence into consecutive batches of at most `size` items.

    Order is preserved within and across batches.

    Examples:
        [len(batch) for batch in chunked(range(250), 100)]
        # Returns: [100, 100, 50]
    """
    if size < 1:
        raise ValueError(f"Batch size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def extract_spotify_id(url_or_id: str) -> str:
    """
    Extract Spotify ID from a URL or return ID as-is.

    Handles various Spotify URL formats:
        - https://open.spotify.com/playlist/ID
        - https://open.spotify.com/playlist/ID?si=xxx
        - spotify:playlist:ID
        - Just the ID

    Examples:
        extract_spotify_id("https://open.spotify.com/playlist/abc123?si=xyz")
        # Returns: "abc123"

        extract_spotify_id("spotify:playlist:abc123")
        # Returns: "abc123"
    """
    # Handle spotify: URI format
    if url_or_id.startswith("spotify:"):
        return url_or_id.split(":")[-1]

    # Handle URL format
    if "spotify.com" in url_or_id:
        url_or_id = url_or_id.split("?")[0]
        return url_or_id.rstrip("/").split("/")[-1]

    return url_or_id


def normalize_playlist_id(value: str) -> str:
    """
    Turn CLI input into a playlist identity.

    The sentinels "liked-songs" and "new-playlist" pass through untouched;
    anything else is treated as a Spotify playlist URL, URI or id.

    Raises:
        ValueError: If value is empty or a URL that is not a playlist URL.
    """
    # Imported here: the spotify package itself depends on this module
    from playlist_manager.spotify.models import LIKED_SONGS_ID, NEW_PLAYLIST_ID

    value = value.strip()
    if not value:
        raise ValueError("Playlist id must not be empty")

    if value in (LIKED_SONGS_ID, NEW_PLAYLIST_ID):
        return value

    if "spotify.com" in value and "/playlist/" not in value:
        raise ValueError(f"Not a playlist URL: {value}")

    return extract_spotify_id(value)


def ensure_directory(path: Path) -> Path:
    """Create path (and parents) if needed and return it."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def format_duration(milliseconds: int) -> str:
    """
    Format a track duration in milliseconds as "m:ss" or "h:mm:ss".

    Examples:
        format_duration(225000)   # "3:45"
        format_duration(3750000)  # "1:02:30"
    """
    seconds = max(milliseconds, 0) // 1000
    if seconds < 3600:
        return f"{seconds // 60}:{seconds % 60:02d}"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    return f"{hours}:{minutes:02d}:{seconds % 60:02d}"
