"""
Playlist mutation orchestrator for playlist-manager.

Every mutating operation runs the same pipeline, terminal on success or on
the first error:

    RESOLVE_CREDENTIAL  access token of the user from the TokenProvider
    FETCH_ALL           every track of the source (and destination)
    FILTER_VALID        drop placeholder / unplayable entries
    COMPUTE_TARGET      ordering policy on the filtered tracks
    DELETE_ALL          batched delete on the destination
    INSERT_TARGET       batched insert of the target order
    REFRESH_VIEW        re-fetch the destination for the caller

The four operations differ only in the parameters they pass to _rewrite():

    Operation      Source   Destination       Policy                 Insert
    -------------  -------  ----------------  ---------------------  ------
    sort           target   target            newest album first     yes
    shuffle        target   target            uniform shuffle        yes
    copy           source   destination/new   identity               yes
    clear          -        target            -                      no

get_playlist, get_user_playlists and get_top_items only read.

Consistency:
    Nothing is modified before DELETE_ALL. From the first successful
    delete batch until the last insert batch the destination is in a mixed
    state; a failure in that window raises RemoteStoreError with
    partial=True, and a cancellation observed in that window raises
    OperationCancelled with details["partial"] True. Both messages say the
    destination is left partially rewritten. Re-running the operation is
    safe: the fresh fetch sees the mixed state and rewrites it.

    Two operations on the same playlist are not serialized against each
    other.
"""

import logging
import random
import threading
from dataclasses import dataclass
from typing import Callable, Sequence

from playlist_manager.core.database import Database
from playlist_manager.core.exceptions import (
    InvalidOperation,
    NotFound,
    OperationCancelled,
    RemoteStoreError,
)
from playlist_manager.core.logger import get_logger
from playlist_manager.playlists.ordering import (
    filter_valid,
    group_by_album_newest_first,
    identity,
    is_addressable,
    uniform_shuffle,
)
from playlist_manager.spotify.auth import TokenProvider
from playlist_manager.spotify.client import RemoteTrackStore
from playlist_manager.spotify.models import (
    DEFAULT_TOP_LIMIT,
    LIKED_SONGS_DESCRIPTION,
    LIKED_SONGS_NAME,
    MAX_TOP_LIMIT,
    NEW_PLAYLIST_ID,
    TOP_ITEM_TYPES,
    TOP_TIME_RANGES,
    Artist,
    PlaylistView,
    Track,
    is_liked_songs,
)

OrderingPolicy = Callable[[Sequence[Track]], list[Track]]

PARTIAL_REWRITE_NOTICE = (
    "The destination playlist is left partially rewritten;"
    " run the operation again to complete it"
)


@dataclass
class RewriteResult:
    """Counters of one rewrite, for logging and tests."""
    destination_id: str
    fetched: int = 0
    kept: int = 0
    deleted: int = 0
    inserted: int = 0
    delete_batches: int = 0
    insert_batches: int = 0


class PlaylistOrchestrator:
    """
    Runs sort, shuffle, copy and clear against Spotify.

    Attributes:
        store: Remote track store used for every Spotify call.
        token_provider: Resolves the access token of a user.
        database: User registry, for preference flags, display names and
                  Spotify account ids. Optional: without it the values
                  come from the Spotify profile and flags are False.
        liked_insert_reversed: Reverse the target order before inserting
                  into Liked Songs, which lists the last saved track first.
    """

    def __init__(
        self,
        store: RemoteTrackStore,
        token_provider: TokenProvider,
        database: Database | None = None,
        liked_insert_reversed: bool = True,
        rng: random.Random | None = None,
        logger: logging.Logger | None = None
    ) -> None:
        self.store = store
        self.token_provider = token_provider
        self.database = database
        self.liked_insert_reversed = liked_insert_reversed
        self._rng = rng
        self._logger = logger or get_logger(__name__)

    # =========================================================================
    # Operations
    # =========================================================================

    def sort_by_release_date(
        self,
        user_id: str,
        playlist_id: str,
        cancel_event: threading.Event | None = None
    ) -> PlaylistView:
        """
        Reorder a playlist: albums newest first, tracks in album order.

        Raises:
            InvalidOperation: If playlist_id is Liked Songs.
            Unauthenticated, NotFound, UpstreamFetchError, RemoteStoreError,
            OperationCancelled
        """
        if is_liked_songs(playlist_id):
            raise InvalidOperation(
                f"The playlist {LIKED_SONGS_NAME} can not be sorted",
                details={"playlist_id": playlist_id}
            )

        return self._run(
            "sort", user_id, playlist_id, playlist_id,
            policy=group_by_album_newest_first,
            require_album=True,
            cancel_event=cancel_event
        )

    def shuffle(
        self,
        user_id: str,
        playlist_id: str,
        cancel_event: threading.Event | None = None
    ) -> PlaylistView:
        """Shuffle a playlist (Liked Songs included) uniformly at random."""
        return self._run(
            "shuffle", user_id, playlist_id, playlist_id,
            policy=lambda tracks: uniform_shuffle(tracks, self._rng),
            require_album=False,
            cancel_event=cancel_event
        )

    def copy_content(
        self,
        user_id: str,
        source_id: str,
        destination_id: str,
        cancel_event: threading.Event | None = None
    ) -> PlaylistView:
        """
        Replace the content of destination_id with the tracks of source_id.

        If destination_id is NEW_PLAYLIST_ID, a playlist named
        "<source name> copy" is created first, with the description and
        visibility of the source.

        Raises:
            InvalidOperation: If source_id is NEW_PLAYLIST_ID.
        """
        return self._run(
            "copy", user_id, source_id, destination_id,
            policy=identity,
            require_album=True,
            cancel_event=cancel_event
        )

    def clear(
        self,
        user_id: str,
        playlist_id: str,
        cancel_event: threading.Event | None = None
    ) -> PlaylistView:
        """Remove every track of a playlist. An empty playlist is left untouched."""
        return self._run(
            "clear", user_id, None, playlist_id,
            policy=None,
            require_album=False,
            cancel_event=cancel_event
        )

    # =========================================================================
    # Views
    # =========================================================================

    def get_playlist(self, user_id: str, playlist_id: str) -> PlaylistView:
        """Metadata and complete track list of a playlist."""
        access_token = self.token_provider.get_access_token(user_id)
        return self._refresh_view(user_id, playlist_id, access_token)

    def get_user_playlists(self, user_id: str) -> list[PlaylistView]:
        """
        Every playlist of the user, Liked Songs first, without track lists.
        """
        access_token = self.token_provider.get_access_token(user_id)
        favorites, auto_sort = self._preferences(user_id)

        views = [
            PlaylistView.liked_songs(
                owner_name=self._owner_name(user_id, access_token),
                total_tracks=self.store.saved_tracks_total(access_token),
                favorites=favorites,
                auto_sort=auto_sort
            )
        ]
        views.extend(
            PlaylistView.from_spotify_playlist(data, favorites=favorites, auto_sort=auto_sort)
            for data in self.store.current_user_playlists(access_token)
        )
        return views

    def get_top_items(
        self,
        user_id: str,
        item_type: str,
        time_range: str | None = None,
        limit: int = DEFAULT_TOP_LIMIT,
        offset: int = 0
    ) -> dict[str, list[Track | Artist]]:
        """
        The user's most listened tracks or artists, keyed by time range.

        Without time_range the three ranges are fetched, short_term first.

        Raises:
            InvalidOperation: Unknown type or time range, limit outside
                1..50 or negative offset.
        """
        if item_type not in TOP_ITEM_TYPES:
            raise InvalidOperation(
                f"Unknown top item type '{item_type}', expected one of: {', '.join(TOP_ITEM_TYPES)}",
                details={"type": item_type}
            )
        if time_range is not None and time_range not in TOP_TIME_RANGES:
            raise InvalidOperation(
                f"Unknown time range '{time_range}', expected one of: {', '.join(TOP_TIME_RANGES)}",
                details={"time_range": time_range}
            )
        if not 1 <= limit <= MAX_TOP_LIMIT or offset < 0:
            raise InvalidOperation(
                f"Invalid page: limit must be in 1..{MAX_TOP_LIMIT} and offset at least 0",
                details={"limit": limit, "offset": offset}
            )

        access_token = self.token_provider.get_access_token(user_id)
        ranges = [time_range] if time_range else list(TOP_TIME_RANGES)

        top_items: dict[str, list[Track | Artist]] = {}
        for current_range in ranges:
            items = self.store.get_top_items(item_type, access_token, current_range, limit, offset)
            if item_type == "tracks":
                # Top tracks come unwrapped, unlike playlist entries
                top_items[current_range] = [Track.from_spotify_item({"track": data}) for data in items]
            else:
                top_items[current_range] = [Artist.from_spotify_artist(data) for data in items]

        self._logger.debug(f"Top {item_type} of user {user_id} read for {', '.join(top_items)}")
        return top_items

    def _refresh_view(self, user_id: str, playlist_id: str, access_token: str) -> PlaylistView:
        favorites, auto_sort = self._preferences(user_id)
        tracks = tuple(self.store.fetch_all_tracks(playlist_id, access_token))

        if is_liked_songs(playlist_id):
            return PlaylistView.liked_songs(
                owner_name=self._owner_name(user_id, access_token),
                total_tracks=len(tracks),
                tracks=tracks,
                favorites=favorites,
                auto_sort=auto_sort
            )

        data = self.store.get_playlist(playlist_id, access_token)
        return PlaylistView.from_spotify_playlist(
            data,
            tracks=tracks,
            favorites=favorites,
            auto_sort=auto_sort
        )

    def _user(self, user_id: str) -> dict | None:
        if self.database is None:
            return None
        user = self.database.get_user(user_id)
        if user is None:
            raise NotFound(f"User not found: {user_id}", details={"user_id": user_id})
        return user

    def _preferences(self, user_id: str) -> tuple[list[str], list[str]]:
        user = self._user(user_id)
        if user is None:
            return [], []
        return user["favorite_playlists"], user["auto_sort_playlists"]

    def _owner_name(self, user_id: str, access_token: str) -> str:
        user = self._user(user_id)
        if user is not None and user["username"]:
            return user["username"]
        return self.store.current_user(access_token).get("display_name") or ""

    def _spotify_user_id(self, user_id: str, access_token: str) -> str:
        user = self._user(user_id)
        if user is not None:
            return user["spotify_user_id"]
        return self.store.current_user(access_token)["id"]

    # =========================================================================
    # Rewrite Pipeline
    # =========================================================================

    def _run(
        self,
        operation: str,
        user_id: str,
        source_id: str | None,
        destination_id: str,
        policy: OrderingPolicy | None,
        require_album: bool,
        cancel_event: threading.Event | None
    ) -> PlaylistView:
        if source_id == NEW_PLAYLIST_ID or (source_id is None and destination_id == NEW_PLAYLIST_ID):
            raise InvalidOperation(
                "A new playlist can only be a copy destination",
                details={"playlist_id": NEW_PLAYLIST_ID, "operation": operation}
            )

        self._logger.info(f"Starting {operation} of playlist {destination_id} for user {user_id}")

        # RESOLVE_CREDENTIAL
        access_token = self.token_provider.get_access_token(user_id)

        result = self._rewrite(
            operation, user_id, access_token,
            source_id, destination_id,
            policy, require_album, cancel_event
        )

        self._logger.info(
            f"{operation.capitalize()} of playlist {result.destination_id} done: "
            f"{result.deleted} removed in {result.delete_batches} batch(es), "
            f"{result.inserted} added in {result.insert_batches} batch(es)"
        )

        # REFRESH_VIEW
        return self._refresh_view(user_id, result.destination_id, access_token)

    def _rewrite(
        self,
        operation: str,
        user_id: str,
        access_token: str,
        source_id: str | None,
        destination_id: str,
        policy: OrderingPolicy | None,
        require_album: bool,
        cancel_event: threading.Event | None
    ) -> RewriteResult:
        """
        FETCH_ALL through INSERT_TARGET.

        source_id None means no insert (clear). When source and destination
        are the same playlist only the filtered tracks are deleted, so
        placeholder entries stay where they are.
        """
        valid: list[Track] = []
        target: list[Track] = []

        # FETCH_ALL / FILTER_VALID / COMPUTE_TARGET on the source
        if source_id is not None:
            fetched = self.store.fetch_all_tracks(source_id, access_token, cancel_event)
            valid = filter_valid(fetched, require_album=require_album)
            self._logger.debug(
                f"{len(valid)} of {len(fetched)} tracks of {source_id} kept after filtering"
            )
            target = policy(valid)
            result = RewriteResult(destination_id, fetched=len(fetched), kept=len(valid))
        else:
            result = RewriteResult(destination_id)

        # Tracks to remove from the destination
        if destination_id == NEW_PLAYLIST_ID:
            destination_id = self._create_copy_destination(user_id, access_token, source_id)
            result.destination_id = destination_id
            to_delete: list[Track] = []
        elif source_id == destination_id:
            to_delete = list(valid)
        else:
            current = self.store.fetch_all_tracks(destination_id, access_token, cancel_event)
            to_delete = [track for track in current if is_addressable(track, destination_id)]
            if source_id is None:
                result.fetched = len(current)

        # DELETE_ALL
        if to_delete:
            try:
                result.delete_batches = self.store.delete_tracks(
                    destination_id, to_delete, access_token, cancel_event
                )
            except RemoteStoreError as e:
                raise self._rewrite_failure(operation, destination_id, e, e.partial) from e
            except OperationCancelled as e:
                if e.details.get("batch_index", 0) > 0:
                    raise self._cancelled_midway(operation, destination_id, e) from e
                raise
            result.deleted = len(to_delete)
        else:
            self._logger.debug(f"Nothing to remove from {destination_id}")

        if source_id is None:
            return result

        # INSERT_TARGET
        if is_liked_songs(destination_id) and self.liked_insert_reversed:
            target = list(reversed(target))

        if target:
            try:
                result.insert_batches = self.store.insert_tracks(
                    destination_id, target, access_token, cancel_event
                )
            except RemoteStoreError as e:
                partial = e.partial or result.deleted > 0
                raise self._rewrite_failure(operation, destination_id, e, partial) from e
            except OperationCancelled as e:
                if result.deleted > 0 or e.details.get("batch_index", 0) > 0:
                    raise self._cancelled_midway(operation, destination_id, e) from e
                raise
            result.inserted = len(target)

        return result

    def _rewrite_failure(
        self,
        operation: str,
        destination_id: str,
        error: RemoteStoreError,
        partial: bool
    ) -> RemoteStoreError:
        """Rebuild a batch failure with the operation context and consistency status."""
        message = (
            f"{operation.capitalize()} of playlist {destination_id} failed "
            f"at {error.operation} batch {error.batch_index}"
        )
        if error.cause is not None:
            message += f": {error.cause}"
        if partial:
            message += f". {PARTIAL_REWRITE_NOTICE}"

        self._logger.error(message)
        return RemoteStoreError(
            message,
            operation=error.operation,
            batch_index=error.batch_index,
            cause=error.cause,
            partial=partial,
            details={**error.details, "partial": partial, "rewrite": operation}
        )

    def _cancelled_midway(
        self,
        operation: str,
        destination_id: str,
        error: OperationCancelled
    ) -> OperationCancelled:
        """Rebuild a cancellation observed after the destination was modified."""
        message = (
            f"{operation.capitalize()} of playlist {destination_id} cancelled before "
            f"{error.details.get('operation')} batch {error.details.get('batch_index')}. "
            f"{PARTIAL_REWRITE_NOTICE}"
        )
        self._logger.warning(message)
        return OperationCancelled(
            message,
            details={**error.details, "partial": True, "rewrite": operation}
        )

    def _create_copy_destination(
        self,
        user_id: str,
        access_token: str,
        source_id: str
    ) -> str:
        """Create "<source name> copy" and return its id."""
        if is_liked_songs(source_id):
            name, description, public = LIKED_SONGS_NAME, LIKED_SONGS_DESCRIPTION, False
        else:
            source = self.store.get_playlist(source_id, access_token)
            name = source.get("name") or ""
            description = source.get("description") or ""
            public = bool(source.get("public"))

        playlist = self.store.create_playlist(
            access_token,
            self._spotify_user_id(user_id, access_token),
            f"{name} copy",
            description=description,
            public=public
        )
        return playlist["id"]
