from unittest.mock import Mock

import pytest
import requests
from spotipy.exceptions import SpotifyException

from soundscope.domain.entities import LibraryStats, PlayRecord, TimeDimension, Track
from soundscope.domain.errors import NotFound, PermanentFailure, RateLimited, TemporaryFailure
from soundscope.infrastructure.providers.spotify import (
    MAX_TOP_ITEMS,
    SpotifyCatalog,
    SpotifyDataSource,
    to_domain_error,
    to_spotify_time_range,
)


def _track_item(i):
    return {
        'id': f'track_{i}',
        'name': f'Song {i}',
        'artists': [{'id': 'artist_1', 'name': 'Artist'}],
        'album': {'id': 'album_1', 'name': 'Album', 'images': []},
        'duration_ms': 180000,
        'popularity': 50,
    }


def _page(items, has_next):
    return {'items': items, 'next': 'https://api.spotify.com/next' if has_next else None}


class TestTimeRangeMapping:
    """Tests for mapping time dimensions onto Spotify ranges."""

    @pytest.mark.parametrize("value,expected", [
        (None, 'medium_term'),
        (TimeDimension.WEEK, 'short_term'),
        ('month', 'short_term'),
        ('three_months', 'medium_term'),
        (TimeDimension.SIX_MONTHS, 'medium_term'),
        ('year', 'long_term'),
        ('all_time', 'long_term'),
        ('short_term', 'short_term'),
        ('long_term', 'long_term'),
    ])
    def test_mapping(self, value, expected):
        assert to_spotify_time_range(value) == expected

    def test_unknown_range(self):
        with pytest.raises(ValueError, match="Unknown time range"):
            to_spotify_time_range('forever')


class TestErrorMapping:

    def test_rate_limit_uses_retry_after(self):
        error = SpotifyException(429, -1, "too many", headers={'Retry-After': '7'})
        mapped = to_domain_error(error, 'fetch top tracks')
        assert isinstance(mapped, RateLimited)
        assert mapped.retry_after_ms == 7000

    def test_rate_limit_without_header(self):
        mapped = to_domain_error(SpotifyException(429, -1, "too many"), 'op')
        assert mapped.retry_after_ms == 60000

    @pytest.mark.parametrize("status,expected", [
        (401, PermanentFailure),
        (403, PermanentFailure),
        (404, NotFound),
        (500, TemporaryFailure),
    ])
    def test_status_codes(self, status, expected):
        assert isinstance(to_domain_error(SpotifyException(status, -1, "x"), 'op'), expected)

    def test_network_errors_are_temporary(self):
        mapped = to_domain_error(requests.exceptions.ConnectionError("down"), 'op')
        assert isinstance(mapped, TemporaryFailure)


class TestSpotifyCatalog:

    def setup_method(self):
        self.client = Mock()
        self.catalog = SpotifyCatalog(self.client)

    def test_top_tracks_pages_until_limit(self):
        self.client.current_user_top_tracks.side_effect = [
            _page([_track_item(i) for i in range(50)], True),
            _page([_track_item(i) for i in range(50, 70)], True),
        ]

        tracks = self.catalog.top_tracks('short_term', 70)

        assert len(tracks) == 70
        assert all(isinstance(t, Track) for t in tracks)
        first, second = self.client.current_user_top_tracks.call_args_list
        assert first.kwargs == {'limit': 50, 'offset': 0, 'time_range': 'short_term'}
        assert second.kwargs == {'limit': 20, 'offset': 50, 'time_range': 'short_term'}

    def test_top_tracks_stops_without_next(self):
        self.client.current_user_top_tracks.return_value = _page([_track_item(1)], False)

        tracks = self.catalog.top_tracks('long_term', 50)

        assert len(tracks) == 1
        assert self.client.current_user_top_tracks.call_count == 1

    def test_limit_is_capped(self):
        self.client.current_user_top_artists.return_value = _page([], False)

        self.catalog.top_artists('long_term', MAX_TOP_ITEMS + 500)

        # An empty first page ends paging immediately
        assert self.client.current_user_top_artists.call_count == 1

    def test_invalid_items_are_dropped(self):
        self.client.current_user_top_artists.return_value = _page([
            {'id': 'a1', 'name': 'Good', 'genres': ['Rock'], 'followers': {'total': 5}},
            {'id': None, 'name': 'Bad'},
        ], False)

        artists = self.catalog.top_artists('medium_term', 10)

        assert [a.id for a in artists] == ['a1']
        assert artists[0].genres == ('rock',)

    def test_responses_are_cached_per_key(self):
        self.client.current_user_top_tracks.return_value = _page([_track_item(1)], False)

        self.catalog.top_tracks('short_term', 10)
        self.catalog.top_tracks('short_term', 10)
        self.catalog.top_tracks('long_term', 10)

        assert self.client.current_user_top_tracks.call_count == 2

    def test_clear_cache_forces_refetch(self):
        self.client.current_user_top_tracks.return_value = _page([_track_item(1)], False)

        self.catalog.top_tracks('short_term', 10)
        self.catalog.clear_cache()
        self.catalog.top_tracks('short_term', 10)

        assert self.client.current_user_top_tracks.call_count == 2

    def test_error_without_cache_is_mapped(self):
        self.client.current_user_top_tracks.side_effect = SpotifyException(429, -1, "slow down",
                                                                           headers={'Retry-After': '2'})

        with pytest.raises(RateLimited) as exc_info:
            self.catalog.top_tracks('short_term', 10)

        assert exc_info.value.retry_after_ms == 2000

    def test_recently_played_falls_back_to_cache(self):
        self.client.current_user_recently_played.side_effect = [
            {'items': [{'track': _track_item(1), 'played_at': '2024-06-01T10:00:00Z'}],
             'next': None, 'cursors': {'before': '1717236000000'}},
            requests.exceptions.ConnectionError("offline"),
        ]

        first = self.catalog.recently_played(10)
        second = self.catalog.recently_played(10)

        assert [r.id for r in first] == ['track_1']
        assert second == first
        assert all(isinstance(r, PlayRecord) for r in second)

    def test_cached_empty_response_is_served_on_failure(self):
        self.client.current_user_recently_played.side_effect = [
            {'items': [], 'next': None, 'cursors': None},
            requests.exceptions.ConnectionError("offline"),
        ]

        assert self.catalog.recently_played(10) == []
        assert self.catalog.recently_played(10) == []
        assert self.client.current_user_recently_played.call_count == 2

    def test_recently_played_follows_cursor(self):
        self.client.current_user_recently_played.side_effect = [
            {'items': [{'track': _track_item(i), 'played_at': '2024-06-01T10:00:00Z'} for i in range(50)],
             'next': 'more', 'cursors': {'before': 'cursor-1'}},
            {'items': [{'track': _track_item(i), 'played_at': '2024-05-01T10:00:00Z'} for i in range(50, 60)],
             'next': None, 'cursors': {'before': 'cursor-2'}},
        ]

        records = self.catalog.recently_played(60)

        assert len(records) == 60
        second_call = self.client.current_user_recently_played.call_args_list[1]
        assert second_call.kwargs == {'limit': 10, 'before': 'cursor-1'}


class TestSpotifyDataSource:

    def setup_method(self):
        self.catalog = Mock()
        self.source = SpotifyDataSource(self.catalog)

    @pytest.mark.asyncio
    async def test_top_tracks_maps_dimension_and_slices(self):
        self.catalog.top_tracks.return_value = [Track(id=str(i)) for i in range(10)]

        tracks = await self.source.get_top_tracks(3, TimeDimension.YEAR)

        assert [t.id for t in tracks] == ['0', '1', '2']
        self.catalog.top_tracks.assert_called_once_with('long_term', 3)

    @pytest.mark.asyncio
    async def test_default_range(self):
        self.catalog.top_artists.return_value = []

        await self.source.get_top_artists()

        self.catalog.top_artists.assert_called_once_with('medium_term', 50)

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        self.catalog.recently_played.side_effect = TemporaryFailure("boom")

        with pytest.raises(TemporaryFailure):
            await self.source.get_recently_played(5)

    def test_placeholders_and_cache(self):
        assert self.source.get_stats() == LibraryStats.empty()
        assert self.source.get_genre_analysis() == []

        self.source.clear_cache()

        self.catalog.clear_cache.assert_called_once()
