import asyncio
import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from soundscope.domain.entities import PlayRecord, TimeDimension, Track
from soundscope.domain.timewindow import resolve_window
from soundscope.infrastructure.providers.album_art import AlbumArtService
from soundscope.infrastructure.providers.sandbox import SandboxDataSource
from soundscope.infrastructure.providers.sandbox_data import ARTISTS, PLAYS, TRACKS, build_dataset


NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
PLACEHOLDER = 'https://placeholder/cover.png'


class RecordingLookup:
    def __init__(self):
        self.calls = []

    def lookup(self, artist, album=None, size='large'):
        self.calls.append((artist, album))
        return f"https://covers/{album}"


class TestSandboxDataset:
    """Tests for the bundled fixture data."""

    def test_dataset_is_complete(self):
        dataset = build_dataset(NOW)

        assert len(dataset.tracks) == len(TRACKS)
        assert len(dataset.artists) == len(ARTISTS)
        assert len(dataset.plays) == len(PLAYS)
        assert dataset.anchor == NOW

    def test_every_track_artist_exists(self):
        dataset = build_dataset(NOW)
        artist_ids = {a.id for a in dataset.artists}
        for track in dataset.tracks:
            assert track.artists
            assert set(track.artist_ids).issubset(artist_ids)

    def test_timestamps_are_anchored(self):
        dataset = build_dataset(NOW)
        assert all(t.added_at <= NOW for t in dataset.tracks)
        assert max(p.played_at for p in dataset.plays) == NOW - timedelta(hours=1)

    def test_naive_anchor_is_utc(self):
        assert build_dataset(datetime(2024, 6, 15, 12)).anchor == NOW

    def test_some_covers_are_missing(self):
        dataset = build_dataset(NOW)
        assert any(t.album.cover_url is None for t in dataset.tracks)
        assert any(t.album.cover_url is not None for t in dataset.tracks)


class TestSandboxDataSource:

    @pytest.mark.asyncio
    async def test_repeated_calls_return_identical_data(self):
        source = SandboxDataSource(anchor=NOW)

        first = await source.get_top_tracks(20, 'month')
        second = await source.get_top_tracks(20, 'month')

        assert first == second
        assert first is not second

    @pytest.mark.asyncio
    async def test_top_tracks_respect_window_and_limit(self):
        source = SandboxDataSource(anchor=NOW)
        window = resolve_window(TimeDimension.WEEK, NOW)

        tracks = await source.get_top_tracks(5, TimeDimension.WEEK)

        assert 0 < len(tracks) <= 5
        assert all(window.contains(t.timestamp) for t in tracks)
        popularity = [t.popularity for t in tracks]
        assert popularity == sorted(popularity, reverse=True)

    @pytest.mark.asyncio
    async def test_spotify_terms_are_accepted(self):
        source = SandboxDataSource(anchor=NOW)

        short = await source.get_top_artists(50, 'short_term')
        everything = await source.get_top_artists(50, 'long_term')

        assert len(short) < len(everything) == len(ARTISTS)

    @pytest.mark.asyncio
    async def test_recently_played(self):
        source = SandboxDataSource(anchor=NOW)

        records = await source.get_recently_played(10)

        assert len(records) == 10
        assert all(isinstance(r, PlayRecord) for r in records)
        assert records[0].played_at == NOW - timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_delay_is_applied(self):
        source = SandboxDataSource(anchor=NOW, delay=0.05)
        loop = asyncio.get_running_loop()

        started = loop.time()
        await source.get_recently_played(1)

        assert loop.time() - started >= 0.04

    def test_stats_and_genres_are_computed(self):
        source = SandboxDataSource(anchor=NOW)

        stats = source.get_stats()
        genres = source.get_genre_analysis()

        assert stats.has_data is True
        assert stats.total_tracks == len(TRACKS)
        assert stats.total_artists == len(ARTISTS)
        assert stats.top_genre == genres[0].name
        assert sum(g.percentage for g in genres) == pytest.approx(100.0)

    def test_clear_cache_is_noop(self):
        source = SandboxDataSource(anchor=NOW)
        before = source.get_stats()
        source.clear_cache()
        assert source.get_stats() == before


class TestSandboxArtwork:

    @pytest.mark.asyncio
    async def test_returned_records_are_not_mutated_by_prefetch(self):
        lookup = RecordingLookup()
        source = SandboxDataSource(anchor=NOW, artwork=AlbumArtService(lookup, PLACEHOLDER))

        tracks = await source.get_top_tracks(50)
        missing = [t for t in tracks if t.album.cover_url is None]
        await asyncio.sleep(0.1)

        assert missing
        assert all(t.album.cover_url is None for t in missing)
        assert lookup.calls

    @pytest.mark.asyncio
    async def test_prefetch_can_be_disabled(self):
        lookup = RecordingLookup()
        source = SandboxDataSource(anchor=NOW, artwork=AlbumArtService(lookup, PLACEHOLDER),
                                   prefetch_artwork=False)

        await source.get_top_tracks(50)
        await asyncio.sleep(0.05)

        assert lookup.calls == []

    @pytest.mark.asyncio
    async def test_enrich_album_art_fills_missing_covers(self):
        lookup = RecordingLookup()
        source = SandboxDataSource(anchor=NOW, artwork=AlbumArtService(lookup, PLACEHOLDER),
                                   prefetch_artwork=False)
        tracks = await source.get_top_tracks(50)
        records = await source.get_recently_played(50)

        enriched_tracks = await source.enrich_album_art(tracks)
        enriched_records = await source.enrich_album_art(records)

        assert all(t.album.cover_url for t in enriched_tracks)
        assert all(r.track.album.cover_url for r in enriched_records)
        for original, enriched in zip(tracks, enriched_tracks):
            assert enriched.id == original.id
            if original.album.cover_url is not None:
                assert enriched is original
            else:
                assert enriched.album.cover_url == f"https://covers/{original.album.name}"
        # One lookup per distinct (artist, album)
        assert len(lookup.calls) == len(set(lookup.calls))

    @pytest.mark.asyncio
    async def test_enrich_without_artwork_returns_input(self):
        source = SandboxDataSource(anchor=NOW)
        tracks = await source.get_top_tracks(5)
        assert await source.enrich_album_art(tracks) == tracks

    @pytest.mark.asyncio
    async def test_enrich_track_without_album(self):
        source = SandboxDataSource(anchor=NOW, artwork=AlbumArtService(None, PLACEHOLDER))
        track = Track(id='x', name='Loose')

        [enriched] = await source.enrich_album_art([track])

        assert enriched.album.cover_url == PLACEHOLDER
        assert dataclasses.replace(enriched, album=None) == track
