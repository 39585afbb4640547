"""
Data models for Spotify entities.

This module defines immutable dataclasses representing the snapshots the
sync engine reads from Spotify. Nothing here is persisted locally: a
Track lives from the fetch that produced it until the rewrite that
consumes it.

Design Decisions:
    - All dataclasses are frozen (immutable)
    - Playlist entries whose 'track' object is missing are still parsed
      (with empty identifiers) so the validity filter can drop them
    - Release dates are parsed to datetime.date, padding year or month
      precision to the first day

Playlist Identity:
    A playlist id is either a regular Spotify playlist id or the sentinel
    LIKED_SONGS_ID, which designates the user's saved tracks. The
    sentinel NEW_PLAYLIST_ID is only valid as a copy destination.

Top Items:
    Top tracks reuse Track. Top artists are read into Artist, which only
    exists for display.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any


LIKED_SONGS_ID = "liked-songs"
NEW_PLAYLIST_ID = "new-playlist"

LIKED_SONGS_NAME = "Liked Songs"
LIKED_SONGS_DESCRIPTION = "Your liked songs on Spotify"

# /me/top/{type} parameters
TOP_ITEM_TYPES = ("tracks", "artists")
TOP_TIME_RANGES = ("short_term", "medium_term", "long_term")
DEFAULT_TOP_LIMIT = 30
MAX_TOP_LIMIT = 50

_RELEASE_DATE_FORMATS = ("%Y-%m-%d", "%Y-%m", "%Y")


def is_liked_songs(playlist_id: str) -> bool:
    """True if playlist_id designates the user's saved tracks."""
    return playlist_id == LIKED_SONGS_ID


def parse_release_date(raw: str | None) -> date | None:
    """
    Parse a Spotify album release_date string.

    Spotify release_date_precision can be year, month or day; missing
    parts are padded with 01.

    Returns:
        The parsed date, or None when the value is missing or unparsable
        (Spotify sometimes returns "0000" for unknown dates).

    Example:
        >>> parse_release_date("2021-06")
        datetime.date(2021, 6, 1)
    """
    if not raw:
        return None

    for fmt in _RELEASE_DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def extract_image_url(images: list[dict[str, Any]] | None) -> str | None:
    """Return the first (largest) image URL, or None."""
    if isinstance(images, list) and images:
        return images[0].get("url")
    return None


@dataclass(frozen=True)
class Track:
    """
    Immutable snapshot of one entry of a playlist or of Liked Songs.

    Attributes:
        track_id: Spotify track id. Addresses the track in Liked Songs.
        uri: Playable URI ("spotify:track:<id>"). Addresses the track in
             a regular playlist.
        album_id: Spotify id of the album the track belongs to.
        release_date: Album release date, None if missing.
        track_number: Position of the track on its disc.
        duration_ms: Track duration in milliseconds.
        disc_number: Disc of the album the track is on.
        name, artist, album, explicit, image_url: Display fields used by
             playlist views.
    """
    track_id: str | None
    uri: str | None
    album_id: str | None
    release_date: date | None
    track_number: int
    duration_ms: int
    disc_number: int = 1
    name: str = ""
    artist: str = ""
    album: str = ""
    explicit: bool = False
    image_url: str | None = None

    @classmethod
    def from_spotify_item(cls, item: dict[str, Any] | None) -> "Track":
        """
        Create a Track from a playlist item or saved-track item.

        Both endpoints wrap the track object as {"added_at": ..., "track": {...}}.
        A null or missing track object yields a Track without identifiers.
        """
        track_data = (item or {}).get("track") or {}
        album_data = track_data.get("album") or {}
        artists = track_data.get("artists") or []

        return cls(
            track_id=track_data.get("id"),
            uri=track_data.get("uri"),
            album_id=album_data.get("id"),
            release_date=parse_release_date(album_data.get("release_date")),
            track_number=track_data.get("track_number") or 0,
            duration_ms=track_data.get("duration_ms") or 0,
            disc_number=track_data.get("disc_number") or 1,
            name=track_data.get("name") or "",
            artist=(artists[0].get("name") or "") if artists else "",
            album=album_data.get("name") or "",
            explicit=bool(track_data.get("explicit", False)),
            image_url=extract_image_url(album_data.get("images")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.track_id,
            "uri": self.uri,
            "name": self.name,
            "artist_name": self.artist,
            "album_name": self.album,
            "album_id": self.album_id,
            "release_date": self.release_date.isoformat() if self.release_date else None,
            "disc_number": self.disc_number,
            "track_number": self.track_number,
            "is_explicit": self.explicit,
            "image_url": self.image_url,
            "duration": self.duration_ms,
        }


@dataclass(frozen=True)
class Artist:
    """One of the user's top artists."""
    artist_id: str
    name: str
    followers: int = 0
    genres: tuple[str, ...] = ()
    popularity: int = 0
    image_url: str | None = None
    spotify_url: str = ""

    @classmethod
    def from_spotify_artist(cls, data: dict[str, Any]) -> "Artist":
        return cls(
            artist_id=data.get("id") or "",
            name=data.get("name") or "",
            followers=(data.get("followers") or {}).get("total") or 0,
            genres=tuple(data.get("genres") or ()),
            popularity=data.get("popularity") or 0,
            image_url=extract_image_url(data.get("images")),
            spotify_url=(data.get("external_urls") or {}).get("spotify") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.artist_id,
            "name": self.name,
            "followers": self.followers,
            "genres": list(self.genres),
            "popularity": self.popularity,
            "image_url": self.image_url,
            "spotify_url": self.spotify_url,
        }


@dataclass(frozen=True)
class TrackPage:
    """
    One page of a paginated track listing.

    Attributes:
        tracks: Entries of this page, in remote order.
        next_cursor: Opaque continuation cursor (Spotify's 'next' URL),
                     present iff more pages remain.
        total: Total number of entries reported by Spotify.
    """
    tracks: tuple[Track, ...]
    next_cursor: str | None = None
    total: int = 0

    @classmethod
    def from_spotify_page(cls, page: dict[str, Any]) -> "TrackPage":
        return cls(
            tracks=tuple(Track.from_spotify_item(item) for item in page.get("items") or []),
            next_cursor=page.get("next"),
            total=page.get("total") or 0,
        )


@dataclass(frozen=True)
class PlaylistView:
    """
    Caller-facing view of a playlist.

    Returned by every mutating operation after the rewrite (the refreshed
    state), and by the listing operations. Listing summaries leave
    `tracks` empty.
    """
    id: str
    name: str
    owner_name: str
    description: str
    total_tracks: int
    image_url: str | None = None
    spotify_url: str = ""
    uri: str = ""
    public: bool = False
    is_favorite: bool = False
    auto_sort: bool = False
    tracks: tuple[Track, ...] = field(default_factory=tuple)

    @classmethod
    def from_spotify_playlist(
        cls,
        data: dict[str, Any],
        tracks: tuple[Track, ...] = (),
        favorites: list[str] | None = None,
        auto_sort: list[str] | None = None
    ) -> "PlaylistView":
        """Create a view from a Spotify playlist object (full or simplified)."""
        playlist_id = data["id"]
        return cls(
            id=playlist_id,
            name=data.get("name") or "",
            owner_name=(data.get("owner") or {}).get("display_name") or "",
            description=data.get("description") or "",
            total_tracks=(data.get("tracks") or {}).get("total") or 0,
            image_url=extract_image_url(data.get("images")),
            spotify_url=(data.get("external_urls") or {}).get("spotify") or "",
            uri=data.get("uri") or "",
            public=bool(data.get("public")),
            is_favorite=playlist_id in (favorites or []),
            auto_sort=playlist_id in (auto_sort or []),
            tracks=tracks,
        )

    @classmethod
    def liked_songs(
        cls,
        owner_name: str,
        total_tracks: int,
        tracks: tuple[Track, ...] = (),
        favorites: list[str] | None = None,
        auto_sort: list[str] | None = None
    ) -> "PlaylistView":
        """The synthetic view of the user's saved tracks."""
        return cls(
            id=LIKED_SONGS_ID,
            name=LIKED_SONGS_NAME,
            owner_name=owner_name,
            description=LIKED_SONGS_DESCRIPTION,
            total_tracks=total_tracks,
            public=False,
            is_favorite=LIKED_SONGS_ID in (favorites or []),
            auto_sort=LIKED_SONGS_ID in (auto_sort or []),
            tracks=tracks,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "owner_name": self.owner_name,
            "description": self.description,
            "total_tracks": self.total_tracks,
            "image_url": self.image_url,
            "spotify_url": self.spotify_url,
            "uri": self.uri,
            "public": self.public,
            "is_favorite": self.is_favorite,
            "auto_sort": self.auto_sort,
            "tracks": [track.to_dict() for track in self.tracks],
        }
