"""
Remote track store client for playlist-manager.

This module wraps spotipy and exposes the three primitive operations the
sync engine needs against a playlist or Liked Songs:

    fetch_all_tracks  Page through the whole listing, following Spotify's
                      'next' cursor until it is exhausted.
    delete_tracks     Remove tracks in fixed-size batches.
    insert_tracks     Add tracks in fixed-size batches, preserving order.

plus the read helpers used to build playlist views, to create the
destination of a copy and to read the user's top tracks and artists.

Credentials:
    Every call receives the user's bearer access token. A fresh
    spotipy.Spotify is built per operation from that token, so the store
    itself holds no per-user state and can be shared between threads.

Endpoints and limits:
    Liked Songs  GET/DELETE/PUT /me/tracks, addressed by track id, 50 per call
    Playlist     GET/DELETE/POST /playlists/{id}/tracks, addressed by URI,
                 100 per call

Retries:
    The spotipy client is built with retries disabled and a bounded
    request timeout. A failure surfaces immediately as UpstreamFetchError
    (reads) or RemoteStoreError (writes); retrying is the caller's choice.

Cancellation:
    An optional threading.Event is checked before every page and every
    batch. A call already in flight is never interrupted.

Usage:
    store = RemoteTrackStore(request_timeout=10.0)
    tracks = store.fetch_all_tracks("37i9dQZF1DXcBWIGoYBM5M", access_token)
    store.delete_tracks("37i9dQZF1DXcBWIGoYBM5M", tracks, access_token)
"""

import logging
import threading
from typing import Any, Callable, Sequence

import requests
import spotipy

from playlist_manager.core.config import MAX_LIKED_BATCH_SIZE, MAX_PLAYLIST_BATCH_SIZE
from playlist_manager.core.exceptions import (
    NotFound,
    OperationCancelled,
    RemoteStoreError,
    Unauthenticated,
    UpstreamFetchError,
)
from playlist_manager.core.logger import get_logger
from playlist_manager.spotify.models import DEFAULT_TOP_LIMIT, Track, TrackPage, is_liked_songs
from playlist_manager.utils import chunked


# Page sizes accepted by the listing endpoints
PLAYLIST_PAGE_SIZE = 100
LIKED_PAGE_SIZE = 50
USER_PLAYLISTS_PAGE_SIZE = 50

SpotifyFactory = Callable[[str], spotipy.Spotify]


def build_spotify_factory(request_timeout: float) -> SpotifyFactory:
    """
    Return a factory producing a spotipy client for an access token.

    The clients never retry on their own: urllib3 retries and spotipy's
    status retries are both disabled.
    """
    def factory(access_token: str) -> spotipy.Spotify:
        return spotipy.Spotify(
            auth=access_token,
            requests_timeout=request_timeout,
            retries=0,
            status_retries=0,
        )
    return factory


def _check_cancelled(
    cancel_event: threading.Event | None,
    stage: str,
    details: dict[str, Any] | None = None
) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise OperationCancelled(
            f"Operation cancelled before {stage}",
            details={**(details or {}), "stage": stage}
        )


def _translate_read_error(error: Exception, what: str, details: dict[str, Any]) -> Exception:
    """
    Map a spotipy / requests failure on a read to the engine's taxonomy.

    401 -> Unauthenticated, 404 -> NotFound, anything else -> UpstreamFetchError.
    """
    if isinstance(error, spotipy.SpotifyException):
        status = error.http_status
        details = {**details, "http_status": status, "original_error": str(error)}
        if status == 401:
            return Unauthenticated(
                f"Spotify rejected the access token while fetching {what}",
                details=details
            )
        if status == 404:
            return NotFound(f"Not found on Spotify: {what}", details=details)
        if status == 429:
            return UpstreamFetchError(
                f"Rate limited while fetching {what}",
                details=details,
                http_status=429,
                is_rate_limit=True
            )
        return UpstreamFetchError(
            f"Failed to fetch {what}: {error.msg}",
            details=details,
            http_status=status
        )

    return UpstreamFetchError(
        f"Network error while fetching {what}: {error}",
        details={**details, "original_error": str(error)}
    )


class RemoteTrackStore:
    """
    Paginated read, batched delete and batched insert against Spotify.

    Attributes:
        playlist_batch_size: Tracks per write call on a regular playlist.
        liked_batch_size: Tracks per write call on Liked Songs.

    Thread Safety:
        Stateless apart from configuration; operations of different
        threads never share a spotipy client.
    """

    def __init__(
        self,
        spotify_factory: SpotifyFactory | None = None,
        request_timeout: float = 10.0,
        playlist_batch_size: int = MAX_PLAYLIST_BATCH_SIZE,
        liked_batch_size: int = MAX_LIKED_BATCH_SIZE,
        logger: logging.Logger | None = None
    ) -> None:
        """
        Args:
            spotify_factory: Builds a spotipy client for an access token.
                             Defaults to build_spotify_factory(request_timeout).
            request_timeout: Seconds before a single HTTP call gives up.
            playlist_batch_size: 1..100.
            liked_batch_size: 1..50.
            logger: Logger to report progress to; module logger by default.
        """
        if not 1 <= playlist_batch_size <= MAX_PLAYLIST_BATCH_SIZE:
            raise ValueError(f"playlist_batch_size must be in 1..{MAX_PLAYLIST_BATCH_SIZE}")
        if not 1 <= liked_batch_size <= MAX_LIKED_BATCH_SIZE:
            raise ValueError(f"liked_batch_size must be in 1..{MAX_LIKED_BATCH_SIZE}")

        self._spotify_factory = spotify_factory or build_spotify_factory(request_timeout)
        self.playlist_batch_size = playlist_batch_size
        self.liked_batch_size = liked_batch_size
        self._logger = logger or get_logger(__name__)

    def batch_size_for(self, playlist_id: str) -> int:
        """Write batch size for the given playlist identity."""
        return self.liked_batch_size if is_liked_songs(playlist_id) else self.playlist_batch_size

    # =========================================================================
    # Track Listing
    # =========================================================================

    def fetch_page(
        self,
        playlist_id: str,
        access_token: str,
        cursor: str | None = None,
        spotify: spotipy.Spotify | None = None
    ) -> TrackPage:
        """
        Fetch one page of tracks.

        Args:
            playlist_id: Playlist id or LIKED_SONGS_ID.
            access_token: Bearer token of the user.
            cursor: Continuation cursor from the previous page, or None for
                    the first page.
            spotify: Client to reuse across pages of the same listing.

        Raises:
            Unauthenticated, NotFound, UpstreamFetchError
        """
        spotify = spotify or self._spotify_factory(access_token)
        details = {"playlist_id": playlist_id, "cursor": cursor}

        try:
            if cursor is not None:
                response = spotify.next({"next": cursor})
            elif is_liked_songs(playlist_id):
                response = spotify.current_user_saved_tracks(limit=LIKED_PAGE_SIZE)
            else:
                response = spotify.playlist_items(
                    playlist_id,
                    limit=PLAYLIST_PAGE_SIZE,
                    additional_types=["track"]
                )
        except (spotipy.SpotifyException, requests.exceptions.RequestException) as e:
            raise _translate_read_error(e, f"tracks of playlist {playlist_id}", details) from e

        if response is None:
            raise UpstreamFetchError(
                f"Empty response while fetching tracks of playlist {playlist_id}",
                details=details
            )

        return TrackPage.from_spotify_page(response)

    def fetch_all_tracks(
        self,
        playlist_id: str,
        access_token: str,
        cancel_event: threading.Event | None = None
    ) -> list[Track]:
        """
        Fetch every entry of a playlist or of Liked Songs.

        Pages are requested one after the other, following the cursor until
        Spotify reports no next page, and concatenated in the order
        received. The result is fully materialized; calling again fetches
        from scratch.

        Raises:
            Unauthenticated, NotFound, UpstreamFetchError: on the first page
                that fails. No partial result is returned.
            OperationCancelled: if cancel_event is set between pages.
        """
        spotify = self._spotify_factory(access_token)
        tracks: list[Track] = []
        cursor: str | None = None
        page_count = 0

        while True:
            _check_cancelled(cancel_event, f"page {page_count} of {playlist_id}")
            page = self.fetch_page(playlist_id, access_token, cursor=cursor, spotify=spotify)
            tracks.extend(page.tracks)
            page_count += 1

            cursor = page.next_cursor
            if not cursor:
                break

        self._logger.debug(f"{len(tracks)} tracks retrieved from {playlist_id} in {page_count} page(s)")
        return tracks

    # =========================================================================
    # Batched Writes
    # =========================================================================

    def _write_batches(
        self,
        operation: str,
        playlist_id: str,
        references: list[str],
        send_batch: Callable[[list[str]], Any],
        cancel_event: threading.Event | None
    ) -> int:
        """
        Issue one call per batch, sequentially, stopping at the first failure.

        Returns:
            Number of batches issued.
        """
        batch_size = self.batch_size_for(playlist_id)
        batch_index = -1

        for batch_index, batch in enumerate(chunked(references, batch_size)):
            _check_cancelled(
                cancel_event,
                f"{operation} batch {batch_index} of {playlist_id}",
                {"playlist_id": playlist_id, "operation": operation, "batch_index": batch_index}
            )
            start = batch_index * batch_size
            self._logger.debug(f"{operation} tracks {start} to {start + len(batch)} of {playlist_id}")

            try:
                send_batch(batch)
            except (spotipy.SpotifyException, requests.exceptions.RequestException) as e:
                partial = batch_index > 0
                message = f"Failed to {operation} batch {batch_index} of playlist {playlist_id}: {e}"
                if partial:
                    message += (
                        f" ({batch_index} earlier batch(es) were already applied;"
                        " the playlist is left partially modified)"
                    )
                raise RemoteStoreError(
                    message,
                    operation=operation,
                    batch_index=batch_index,
                    cause=e,
                    partial=partial,
                    details={
                        "playlist_id": playlist_id,
                        "http_status": getattr(e, "http_status", None),
                    }
                ) from e

        return batch_index + 1

    def delete_tracks(
        self,
        playlist_id: str,
        tracks: Sequence[Track],
        access_token: str,
        cancel_event: threading.Event | None = None
    ) -> int:
        """
        Remove tracks from a playlist or from Liked Songs.

        Liked Songs entries are addressed by track id in batches of 50;
        playlist entries by URI in batches of 100. Batches go out in input
        order, each one only after the previous call succeeded.

        Returns:
            Number of delete calls issued (0 for an empty input).

        Raises:
            RemoteStoreError: carrying the index of the failing batch.
            OperationCancelled: if cancel_event is set between batches.
        """
        spotify = self._spotify_factory(access_token)

        if is_liked_songs(playlist_id):
            references = [track.track_id for track in tracks]
            send = lambda batch: spotify.current_user_saved_tracks_delete(tracks=batch)
        else:
            references = [track.uri for track in tracks]
            send = lambda batch: spotify.playlist_remove_all_occurrences_of_items(playlist_id, batch)

        batches = self._write_batches("delete", playlist_id, references, send, cancel_event)
        self._logger.debug(f"All {len(references)} tracks deleted from {playlist_id}")
        return batches

    def insert_tracks(
        self,
        playlist_id: str,
        tracks: Sequence[Track],
        access_token: str,
        cancel_event: threading.Event | None = None
    ) -> int:
        """
        Add tracks to a playlist or to Liked Songs, preserving order.

        Playlist batches are appended, so the final order equals the input
        order. Liked Songs lists the most recently saved track first; the
        caller reverses the input when the visible order matters.

        Returns:
            Number of insert calls issued (0 for an empty input).

        Raises:
            RemoteStoreError: carrying the index of the failing batch.
            OperationCancelled: if cancel_event is set between batches.
        """
        spotify = self._spotify_factory(access_token)

        if is_liked_songs(playlist_id):
            references = [track.track_id for track in tracks]
            send = lambda batch: spotify.current_user_saved_tracks_add(tracks=batch)
        else:
            references = [track.uri for track in tracks]
            send = lambda batch: spotify.playlist_add_items(playlist_id, batch)

        batches = self._write_batches("insert", playlist_id, references, send, cancel_event)
        self._logger.debug(f"All {len(references)} tracks added to {playlist_id}")
        return batches

    # =========================================================================
    # Metadata
    # =========================================================================

    def _read(self, what: str, details: dict[str, Any], call: Callable[[], Any]) -> Any:
        try:
            result = call()
        except (spotipy.SpotifyException, requests.exceptions.RequestException) as e:
            raise _translate_read_error(e, what, details) from e
        if result is None:
            raise UpstreamFetchError(f"Empty response while fetching {what}", details=details)
        return result

    def get_playlist(self, playlist_id: str, access_token: str) -> dict[str, Any]:
        """
        Get playlist metadata (name, description, owner, images, visibility).

        Raises:
            NotFound: If the playlist does not exist.
            Unauthenticated, UpstreamFetchError
        """
        spotify = self._spotify_factory(access_token)
        return self._read(
            f"playlist {playlist_id}",
            {"playlist_id": playlist_id},
            lambda: spotify.playlist(
                playlist_id,
                fields="id,name,description,owner,images,external_urls,public,tracks.total,uri"
            )
        )

    def saved_tracks_total(self, access_token: str) -> int:
        """Number of tracks in the user's Liked Songs."""
        spotify = self._spotify_factory(access_token)
        page = self._read("saved tracks", {}, lambda: spotify.current_user_saved_tracks(limit=1))
        return page.get("total") or 0

    def current_user(self, access_token: str) -> dict[str, Any]:
        """Profile of the token's owner (/me)."""
        spotify = self._spotify_factory(access_token)
        return self._read("current user profile", {}, spotify.current_user)

    def current_user_playlists(self, access_token: str) -> list[dict[str, Any]]:
        """
        Get ALL playlists of the user, handling pagination automatically.
        """
        spotify = self._spotify_factory(access_token)
        playlists: list[dict[str, Any]] = []

        page = self._read(
            "user playlists", {},
            lambda: spotify.current_user_playlists(limit=USER_PLAYLISTS_PAGE_SIZE)
        )
        while True:
            playlists.extend(item for item in page.get("items") or [] if item)
            if not page.get("next"):
                break
            current = page
            page = self._read("user playlists", {"cursor": current["next"]}, lambda: spotify.next(current))

        return playlists

    def get_top_items(
        self,
        item_type: str,
        access_token: str,
        time_range: str = "medium_term",
        limit: int = DEFAULT_TOP_LIMIT,
        offset: int = 0
    ) -> list[dict[str, Any]]:
        """
        One page of the user's top tracks or top artists (/me/top/{type}).

        Args:
            item_type: "tracks" or "artists".
            time_range: "short_term" (about 4 weeks), "medium_term" (about
                        6 months) or "long_term" (about a year).
            limit: Items to return, 1..50.
            offset: Index of the first item.

        Returns:
            Raw Spotify track or artist objects, most listened first.
        """
        spotify = self._spotify_factory(access_token)
        if item_type == "tracks":
            fetch = spotify.current_user_top_tracks
        else:
            fetch = spotify.current_user_top_artists

        page = self._read(
            f"top {item_type} ({time_range})",
            {"type": item_type, "time_range": time_range},
            lambda: fetch(limit=limit, offset=offset, time_range=time_range)
        )
        return [item for item in page.get("items") or [] if item]

    def create_playlist(
        self,
        access_token: str,
        spotify_user_id: str,
        name: str,
        description: str = "",
        public: bool = False
    ) -> dict[str, Any]:
        """
        Create a new, empty playlist owned by spotify_user_id.

        Raises:
            RemoteStoreError: If Spotify refuses the creation.
        """
        spotify = self._spotify_factory(access_token)

        try:
            playlist = spotify.user_playlist_create(
                spotify_user_id,
                name,
                public=public,
                description=description
            )
        except (spotipy.SpotifyException, requests.exceptions.RequestException) as e:
            raise RemoteStoreError(
                f"Failed to create playlist '{name}': {e}",
                operation="create",
                batch_index=0,
                cause=e,
                details={"spotify_user_id": spotify_user_id}
            ) from e

        self._logger.info(f"The new playlist with id {playlist['id']} has been created")
        return playlist
