"""
Ordering policies and validity filters for the track-synchronization engine.

Everything here is pure: functions take a sequence of Track snapshots and
return a new list, never touching the input or the network.

Policies:
    group_by_album_newest_first  Albums ordered by release date, most
                                 recent first; tracks of an album in
                                 track-number order.
    uniform_shuffle              Uniform random permutation.

Filters:
    The remote store can return stale or unplayable placeholder entries
    (removed tracks, local files). They are dropped silently before a
    policy runs.
"""

import random
from datetime import date
from typing import Iterable, Sequence

from playlist_manager.spotify.models import Track, is_liked_songs


# =============================================================================
# Validity Filters
# =============================================================================

def is_playable(track: Track) -> bool:
    """True if the entry has both a track id and a playable URI."""
    return bool(track.track_id) and bool(track.uri)


def has_album(track: Track) -> bool:
    return bool(track.album_id)


def is_addressable(track: Track, playlist_id: str) -> bool:
    """
    True if the entry carries the reference a write on playlist_id uses.

    Liked Songs entries are addressed by track id, playlist entries by URI.
    """
    if is_liked_songs(playlist_id):
        return bool(track.track_id)
    return bool(track.uri)


def filter_valid(tracks: Iterable[Track], require_album: bool = False) -> list[Track]:
    """
    Keep playable entries (and, if require_album, entries with an album id).

    Survivors keep their relative order.
    """
    return [
        track for track in tracks
        if is_playable(track) and (not require_album or has_album(track))
    ]


# =============================================================================
# Ordering Policies
# =============================================================================

def _release_key(release_date: date | None) -> tuple[bool, date]:
    # Sorted in reverse: dated albums come first, undated ones last
    return (release_date is not None, release_date or date.min)


def group_by_album_newest_first(tracks: Sequence[Track]) -> list[Track]:
    """
    Group tracks by album, newest album first.

    Groups are ordered by release date descending. The sort is stable, so
    albums with the same release date keep the order in which they first
    appear in the input. Albums without a release date go last.

    Within an album, tracks are ordered by track_number (stable, so equal
    numbers on different discs keep their input order).

    Every track must carry an album id (see filter_valid).

    Example:
        Album A (2020-01-01, tracks 2, 1) and album B (2021-06-01, track 1)
        -> [B1, A1, A2]
    """
    groups: dict[str, list[Track]] = {}
    for track in tracks:
        groups.setdefault(track.album_id, []).append(track)

    ordered_groups = sorted(
        groups.values(),
        key=lambda group: _release_key(group[0].release_date),
        reverse=True
    )

    result: list[Track] = []
    for group in ordered_groups:
        result.extend(sorted(group, key=lambda track: track.track_number))
    return result


def uniform_shuffle(tracks: Sequence[Track], rng: random.Random | None = None) -> list[Track]:
    """
    Return a uniformly random permutation of tracks.

    Args:
        tracks: Tracks to shuffle; left untouched.
        rng: Source of randomness. Pass random.Random(seed) for a
             reproducible order.
    """
    shuffled = list(tracks)
    (rng or random).shuffle(shuffled)
    return shuffled


def identity(tracks: Sequence[Track]) -> list[Track]:
    """Source order as-is (copy)."""
    return list(tracks)
