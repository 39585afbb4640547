"""Test ordering policies and validity filters"""

import random
from datetime import date

import pytest

from playlist_manager.playlists.ordering import (
    filter_valid,
    group_by_album_newest_first,
    is_addressable,
    uniform_shuffle,
)
from playlist_manager.spotify.models import LIKED_SONGS_ID, Track


def track(track_id, album_id="a", release=date(2020, 1, 1), number=1, disc=1, uri=True):
    return Track(
        track_id=track_id,
        uri=f"spotify:track:{track_id}" if uri and track_id else None,
        album_id=album_id,
        release_date=release,
        track_number=number,
        duration_ms=1000,
        disc_number=disc,
    )


def ids(tracks):
    return [t.track_id for t in tracks]


class TestGroupByAlbumNewestFirst:
    """Test the sort-by-release policy"""

    def test_newest_album_first_then_track_number(self):
        """Album B (2021) comes before album A (2020); A's tracks in track order"""
        a2 = track("a2", "A", date(2020, 1, 1), 2)
        a1 = track("a1", "A", date(2020, 1, 1), 1)
        b1 = track("b1", "B", date(2021, 6, 1), 1)

        assert ids(group_by_album_newest_first([a2, a1, b1])) == ["b1", "a1", "a2"]

    def test_equal_release_dates_keep_first_encountered_order(self):
        """Albums with the same date stay in input order"""
        tracks = [
            track("y1", "Y", date(2019, 5, 5)),
            track("x1", "X", date(2019, 5, 5)),
            track("y2", "Y", date(2019, 5, 5), 2),
            track("z1", "Z", date(2022, 1, 1)),
        ]
        assert ids(group_by_album_newest_first(tracks)) == ["z1", "y1", "y2", "x1"]

    def test_missing_release_date_goes_last(self):
        tracks = [
            track("u1", "U", None),
            track("o1", "O", date(1970, 1, 1)),
            track("n1", "N", date(2024, 3, 1)),
        ]
        assert ids(group_by_album_newest_first(tracks)) == ["n1", "o1", "u1"]

    def test_within_album_by_track_number_only(self):
        """Disc number is ignored; equal track numbers keep input order"""
        tracks = [
            track("d2t1", "A", number=1, disc=2),
            track("d1t2", "A", number=2, disc=1),
            track("d1t1", "A", number=1, disc=1),
        ]
        assert ids(group_by_album_newest_first(tracks)) == ["d2t1", "d1t1", "d1t2"]

    def test_idempotent(self):
        """Sorting an already sorted list changes nothing"""
        rng = random.Random(7)
        tracks = [
            track(f"t{i}", f"album{i % 5}", date(2000 + i % 5, 1, 1), number=i)
            for i in range(30)
        ]
        rng.shuffle(tracks)

        once = group_by_album_newest_first(tracks)
        assert group_by_album_newest_first(once) == once

    def test_input_not_modified(self):
        tracks = [track("a2", number=2), track("a1", number=1)]
        group_by_album_newest_first(tracks)
        assert ids(tracks) == ["a2", "a1"]

    def test_empty(self):
        assert group_by_album_newest_first([]) == []


class TestUniformShuffle:
    """Test the shuffle policy"""

    def test_is_permutation(self):
        tracks = [track(f"t{i}") for i in range(50)]
        shuffled = uniform_shuffle(tracks)

        assert sorted(ids(shuffled)) == sorted(ids(tracks))
        assert len(shuffled) == len(tracks)

    def test_seeded_shuffle_is_reproducible(self):
        tracks = [track(f"t{i}") for i in range(50)]

        first = uniform_shuffle(tracks, random.Random(42))
        second = uniform_shuffle(tracks, random.Random(42))

        assert first == second
        assert first != tracks

    def test_input_not_modified(self):
        tracks = [track(f"t{i}") for i in range(10)]
        uniform_shuffle(tracks, random.Random(1))
        assert ids(tracks) == [f"t{i}" for i in range(10)]

    def test_every_ordering_reachable(self):
        """All 6 orderings of 3 tracks show up over many seeded runs"""
        tracks = [track("a"), track("b"), track("c")]
        seen = {tuple(ids(uniform_shuffle(tracks, random.Random(seed)))) for seed in range(200)}
        assert len(seen) == 6


class TestFilters:
    """Test FILTER_VALID"""

    def test_drops_tracks_without_album_when_required(self):
        tracks = [track("t1"), track("t2", album_id=None), track("t3")]

        assert ids(filter_valid(tracks, require_album=True)) == ["t1", "t3"]
        assert ids(filter_valid(tracks, require_album=False)) == ["t1", "t2", "t3"]

    def test_drops_unplayable_entries(self):
        placeholder = track(None, album_id=None)
        local_file = track(None, uri=False)
        no_uri = track("t2", uri=False)

        assert ids(filter_valid([track("t1"), placeholder, local_file, no_uri, track("t3")])) == ["t1", "t3"]

    @pytest.mark.parametrize("playlist_id,expected", [
        (LIKED_SONGS_ID, ["t1", "t2"]),
        ("37i9dQZF1DXcBWIGoYBM5M", ["t1"]),
    ])
    def test_addressable_by_destination_reference(self, playlist_id, expected):
        """Liked Songs need an id, playlists a URI"""
        tracks = [track("t1"), track("t2", uri=False)]
        assert [t.track_id for t in tracks if is_addressable(t, playlist_id)] == expected
