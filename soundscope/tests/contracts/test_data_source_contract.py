from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from soundscope.application.dashboard import build_dashboard
from soundscope.domain.entities import Artist, DashboardSnapshot, LibraryStats, PlayRecord, Track
from soundscope.domain.normalization import artists_from_payloads, play_records_from_payloads, tracks_from_payloads
from soundscope.domain.ports import CatalogClient, DataSource
from soundscope.infrastructure.providers.sandbox import SandboxDataSource
from soundscope.infrastructure.providers.spotify import SpotifyDataSource


NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeCatalog(CatalogClient):
    def __init__(self) -> None:
        self.cleared = 0

    def top_tracks(self, time_range: str, limit: int) -> List[Track]:
        return tracks_from_payloads([
            {'id': f't{i}', 'name': f'Song {i}', 'popularity': 100 - i,
             'artists': [{'id': 'a1', 'name': 'A'}], 'duration_ms': 200000,
             'added_at': (NOW - timedelta(days=i)).isoformat()}
            for i in range(limit)
        ])

    def top_artists(self, time_range: str, limit: int) -> List[Artist]:
        return artists_from_payloads([
            {'id': 'a1', 'name': 'A', 'genres': ['rock'], 'popularity': 80},
            {'id': 'a2', 'name': 'B', 'genres': ['rock', 'jazz'], 'popularity': 60},
        ][:limit])

    def recently_played(self, limit: int) -> List[PlayRecord]:
        return play_records_from_payloads([
            {'track': {'id': 't0', 'name': 'Song 0', 'duration_ms': 200000},
             'played_at': (NOW - timedelta(hours=1)).isoformat()},
        ][:limit])

    def clear_cache(self) -> None:
        self.cleared += 1


def _sources() -> List[DataSource]:
    return [
        SpotifyDataSource(FakeCatalog()),
        SandboxDataSource(anchor=NOW, prefetch_artwork=False),
    ]


async def consume(source: DataSource) -> DashboardSnapshot:
    """Consumer logic shared by every data source, with no per-source branching."""
    tracks = await source.get_top_tracks(5, 'month')
    artists = await source.get_top_artists(5)
    recent = await source.get_recently_played(3)
    assert all(isinstance(t, Track) for t in tracks)
    assert all(isinstance(a, Artist) for a in artists)
    assert all(isinstance(r, PlayRecord) for r in recent)
    assert len(tracks) <= 5 and len(artists) <= 5 and len(recent) <= 3
    assert isinstance(source.get_stats(), LibraryStats)
    assert isinstance(source.get_genre_analysis(), list)
    source.clear_cache()
    return await build_dashboard(source, 'year', limit=10, now=NOW)


@pytest.mark.asyncio
@pytest.mark.parametrize("source", _sources(), ids=['live', 'sandbox'])
async def test_sources_are_interchangeable(source):
    snapshot = await consume(source)

    assert isinstance(snapshot, DashboardSnapshot)
    assert snapshot.stats.has_data is True
    assert snapshot.genres
    assert round(sum(g.percentage for g in snapshot.genres)) == 100


@pytest.mark.asyncio
@pytest.mark.parametrize("source", _sources(), ids=['live', 'sandbox'])
async def test_non_positive_limits_return_empty(source):
    assert await source.get_top_tracks(0) == []
    assert await source.get_top_artists(-1) == []
    assert await source.get_recently_played(0) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("source", _sources(), ids=['live', 'sandbox'])
async def test_recently_played_newest_first(source):
    records = await source.get_recently_played(10)
    moments = [r.timestamp for r in records if r.timestamp is not None]
    assert moments == sorted(moments, reverse=True)


def test_live_source_reports_placeholders():
    source = SpotifyDataSource(FakeCatalog())

    assert source.get_stats() == LibraryStats.empty()
    assert source.get_genre_analysis() == []
