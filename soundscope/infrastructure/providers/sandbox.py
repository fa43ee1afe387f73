import asyncio
import dataclasses
import logging
from datetime import datetime
from typing import List, Optional, Sequence, TypeVar, Union

from soundscope.application.aggregation import analyze_genres, compute_stats
from soundscope.application.ranking import recently_played, top_artists, top_tracks
from soundscope.crosscutting.logging import log_fetch_complete, log_fetch_start
from soundscope.domain.entities import (
    AlbumRef,
    Artist,
    GenreAggregate,
    ImageRef,
    LibraryStats,
    PlayRecord,
    TimeDimension,
    Track,
)
from soundscope.domain.ports import DataSource, TimeRange
from soundscope.domain.timewindow import as_dimension
from soundscope.infrastructure.providers.album_art import AlbumArtService
from soundscope.infrastructure.providers.sandbox_data import SandboxDataset, build_dataset

logger = logging.getLogger(__name__)

Item = TypeVar('Item', Track, PlayRecord)

_TERM_TO_DIMENSION = {
    'short_term': TimeDimension.MONTH,
    'medium_term': TimeDimension.SIX_MONTHS,
    'long_term': TimeDimension.ALL_TIME,
}


def _dimension_for(time_range: TimeRange) -> TimeDimension:
    if time_range is None:
        return TimeDimension.ALL_TIME
    if isinstance(time_range, str) and time_range in _TERM_TO_DIMENSION:
        return _TERM_TO_DIMENSION[time_range]
    return as_dimension(time_range)


def _track_of(item: Union[Track, PlayRecord]) -> Track:
    return item.track if isinstance(item, PlayRecord) else item


def _with_cover(item: Item, url: str) -> Item:
    track = _track_of(item)
    album = track.album or AlbumRef()
    album = dataclasses.replace(album, images=(ImageRef(url=url),))
    track = dataclasses.replace(track, album=album)
    if isinstance(item, PlayRecord):
        return dataclasses.replace(item, track=track)
    return track


class SandboxDataSource(DataSource):
    """Fixture-backed data source for demos and tests.

    All timestamps are anchored once per instance, so repeated calls return
    identical data. Returned records are frozen; cover art is never patched
    into them after the fact. Use ``enrich_album_art`` to get copies with
    covers filled in.
    """

    name = 'sandbox'

    def __init__(self, dataset: Optional[SandboxDataset] = None,
                 artwork: Optional[AlbumArtService] = None,
                 anchor: Optional[datetime] = None,
                 delay: float = 0.0,
                 prefetch_artwork: bool = True):
        self._dataset = dataset or build_dataset(anchor)
        self.anchor = self._dataset.anchor
        self._artwork = artwork
        self._delay = delay
        self._prefetch_artwork = prefetch_artwork

    @property
    def dataset(self) -> SandboxDataset:
        return self._dataset

    async def _simulate_latency(self) -> None:
        if self._delay > 0:
            await asyncio.sleep(self._delay)

    def _schedule_artwork(self, items: Sequence[Union[Track, PlayRecord]]) -> None:
        if self._artwork is None or not self._prefetch_artwork:
            return
        pairs = []
        for item in items:
            track = _track_of(item)
            if track.album is None or track.album.cover_url is None:
                pairs.append((track.primary_artist, track.album.name if track.album else None))
        if pairs:
            self._artwork.prefetch(pairs)

    async def get_top_tracks(self, limit: int = 50, time_range: TimeRange = None) -> List[Track]:
        dimension = _dimension_for(time_range)
        log_fetch_start(logger, self.name, 'get_top_tracks', limit, dimension.value)
        await self._simulate_latency()
        tracks = top_tracks(self._dataset.tracks, limit, dimension, self.anchor)
        self._schedule_artwork(tracks)
        log_fetch_complete(logger, self.name, 'get_top_tracks', len(tracks))
        return tracks

    async def get_top_artists(self, limit: int = 50, time_range: TimeRange = None) -> List[Artist]:
        dimension = _dimension_for(time_range)
        log_fetch_start(logger, self.name, 'get_top_artists', limit, dimension.value)
        await self._simulate_latency()
        artists = top_artists(self._dataset.artists, limit, dimension, self.anchor)
        log_fetch_complete(logger, self.name, 'get_top_artists', len(artists))
        return artists

    async def get_recently_played(self, limit: int = 50) -> List[PlayRecord]:
        log_fetch_start(logger, self.name, 'get_recently_played', limit)
        await self._simulate_latency()
        records = recently_played(self._dataset.plays, limit, TimeDimension.ALL_TIME, self.anchor)
        self._schedule_artwork(records)
        log_fetch_complete(logger, self.name, 'get_recently_played', len(records))
        return records

    async def enrich_album_art(self, items: Sequence[Item]) -> List[Item]:
        """Return copies of ``items`` with missing album covers resolved."""
        items = list(items or ())
        if self._artwork is None:
            return items

        missing = []
        for item in items:
            track = _track_of(item)
            if track.album is None or track.album.cover_url is None:
                missing.append((track.primary_artist, track.album.name if track.album else None))
        if not missing:
            return items

        unique = list(dict.fromkeys(missing))
        urls = await asyncio.gather(*(self._artwork.resolve(artist, album) for artist, album in unique))
        resolved = dict(zip(unique, urls))

        enriched = []
        for item in items:
            track = _track_of(item)
            if track.album is not None and track.album.cover_url is not None:
                enriched.append(item)
                continue
            key = (track.primary_artist, track.album.name if track.album else None)
            enriched.append(_with_cover(item, resolved[key]))
        return enriched

    def get_stats(self) -> LibraryStats:
        return compute_stats(
            self._dataset.tracks,
            self._dataset.artists,
            self._dataset.plays,
            TimeDimension.ALL_TIME,
            self.anchor,
        )

    def get_genre_analysis(self) -> List[GenreAggregate]:
        return analyze_genres(self._dataset.artists, self._dataset.tracks)

    def clear_cache(self) -> None:
        # Nothing is cached; the dataset is immutable.
        pass
