"""Genre breakdowns and library-wide statistics.

All functions are pure: they read the records they are given plus the
evaluation time, and never raise for missing or empty data. Ratios fall back
to zero when their denominator is zero.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Union

from soundscope.domain.entities import (
    NO_GENRE,
    Artist,
    GenreAggregate,
    LibraryStats,
    ListeningSummary,
    PlayRecord,
    TimeDimension,
    Track,
)
from soundscope.domain.timewindow import as_dimension, in_window, record_timestamp, trailing_days

MS_PER_HOUR = 3_600_000
MS_PER_MINUTE = 60_000
RECENT_DAYS = 30

DAYS_PER_DIMENSION = {
    TimeDimension.WEEK: 7,
    TimeDimension.MONTH: 30,
    TimeDimension.THREE_MONTHS: 90,
    TimeDimension.SIX_MONTHS: 180,
    TimeDimension.YEAR: 365,
    TimeDimension.ALL_TIME: 365,
}


@dataclass
class _GenreAccumulator:
    count: int = 0
    popularity_sum: int = 0
    artist_ids: Set[str] = field(default_factory=set)
    track_ids: Set[str] = field(default_factory=set)


@dataclass(frozen=True)
class CombinedPlay:
    """All listens of one track collapsed into a single row."""

    track: Track
    play_count: int
    listening_ms: int
    last_played_at: Optional[datetime] = None


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def genre_counts(artists: Optional[Iterable[Artist]]) -> Dict[str, int]:
    """Occurrences per genre label, in first-encounter order."""
    counts: Dict[str, int] = {}
    for artist in artists or ():
        for genre in artist.genres or ():
            counts[genre] = counts.get(genre, 0) + 1
    return counts


def analyze_genres(artists: Optional[Iterable[Artist]],
                   tracks: Optional[Iterable[Track]] = None) -> List[GenreAggregate]:
    """Roll artists up by genre, most frequent first.

    Each genre label on an artist counts as one occurrence, so an artist with
    three genres feeds three aggregates at full weight. When ``tracks`` are
    given, a track is attributed to every genre of every artist it credits.
    Ties keep encounter order.
    """
    accumulators: Dict[str, _GenreAccumulator] = {}
    genres_by_artist: Dict[str, List[str]] = {}

    for artist in artists or ():
        for genre in artist.genres or ():
            entry = accumulators.setdefault(genre, _GenreAccumulator())
            entry.count += 1
            entry.popularity_sum += artist.popularity or 0
            entry.artist_ids.add(artist.id)
        if artist.id and artist.genres:
            genres_by_artist.setdefault(artist.id, []).extend(artist.genres)

    if not accumulators:
        return []

    for track in tracks or ():
        for artist_id in track.artist_ids:
            for genre in genres_by_artist.get(artist_id, ()):
                accumulators[genre].track_ids.add(track.id)

    total = sum(entry.count for entry in accumulators.values())
    aggregates = [
        GenreAggregate(
            name=name,
            count=entry.count,
            artist_ids=frozenset(entry.artist_ids),
            track_ids=frozenset(entry.track_ids),
            avg_popularity=_ratio(entry.popularity_sum, entry.count),
            percentage=100.0 * _ratio(entry.count, total),
        )
        for name, entry in accumulators.items()
    ]
    aggregates.sort(key=lambda aggregate: aggregate.count, reverse=True)
    return aggregates


def compute_stats(tracks: Optional[Iterable[Track]],
                  artists: Optional[Iterable[Artist]],
                  play_records: Optional[Iterable[PlayRecord]],
                  dimension: Union[str, TimeDimension] = TimeDimension.ALL_TIME,
                  now: Optional[datetime] = None) -> LibraryStats:
    """Library-wide numbers for the dashboard header.

    ``dimension`` only labels the result; filter the inputs beforehand to
    scope them. ``recent_tracks_count`` always uses the trailing 30 days.
    """
    dimension = as_dimension(dimension)
    tracks = list(tracks or ())
    artists = list(artists or ())
    play_records = list(play_records or ())

    if not tracks and not artists:
        return LibraryStats.empty(dimension)

    unique_artists = {artist.id for artist in artists}
    unique_genres = set()
    for artist in artists:
        unique_genres.update(artist.genres)

    total_duration = sum(track.duration_ms or 0 for track in tracks)
    total_popularity = sum(track.popularity or 0 for track in tracks)

    recent_window = trailing_days(RECENT_DAYS, now)
    recent_count = sum(1 for record in play_records if in_window(record, recent_window))

    counts = genre_counts(artists)
    top_genre = max(counts, key=counts.get) if counts else NO_GENRE

    return LibraryStats(
        total_tracks=len(tracks),
        total_artists=len(unique_artists),
        listening_time_hours=total_duration / MS_PER_HOUR,
        top_genre=top_genre,
        unique_genres=len(unique_genres),
        average_popularity=_ratio(total_popularity, len(tracks)),
        recent_tracks_count=recent_count,
        has_data=True,
        time_dimension=dimension,
    )


def combine_plays(play_records: Optional[Iterable[PlayRecord]]) -> List[CombinedPlay]:
    """Collapse listen events per track, most recently played first."""
    rows: Dict[str, CombinedPlay] = {}
    for record in play_records or ():
        played_at = record_timestamp(record)
        existing = rows.get(record.id)
        if existing is None:
            rows[record.id] = CombinedPlay(
                track=record.track,
                play_count=1,
                listening_ms=record.duration_ms or 0,
                last_played_at=played_at,
            )
            continue
        latest = existing.last_played_at
        if played_at is not None and (latest is None or played_at > latest):
            latest = played_at
        rows[record.id] = CombinedPlay(
            track=existing.track,
            play_count=existing.play_count + 1,
            listening_ms=existing.listening_ms + (record.duration_ms or 0),
            last_played_at=latest,
        )

    combined = list(rows.values())
    combined.sort(key=lambda row: row.play_count, reverse=True)
    dated = [row for row in combined if row.last_played_at is not None]
    undated = [row for row in combined if row.last_played_at is None]
    dated.sort(key=lambda row: row.last_played_at, reverse=True)
    return dated + undated


def summarize_listening(play_records: Optional[Iterable[PlayRecord]],
                        dimension: Union[str, TimeDimension] = TimeDimension.ALL_TIME) -> ListeningSummary:
    dimension = as_dimension(dimension)
    combined = combine_plays(play_records)
    if not combined:
        return ListeningSummary(time_dimension=dimension)

    total_plays = sum(row.play_count for row in combined)
    total_minutes = sum(row.listening_ms for row in combined) // MS_PER_MINUTE
    unique_artists = set()
    for row in combined:
        unique_artists.update(row.track.artist_ids)
    days = DAYS_PER_DIMENSION.get(dimension, 0)
    top = max(combined, key=lambda row: row.play_count)

    return ListeningSummary(
        total_plays=total_plays,
        total_minutes=total_minutes,
        total_hours=total_minutes // 60,
        unique_artists=len(unique_artists),
        avg_daily_minutes=total_minutes // days if days else 0,
        top_track=top.track,
        time_dimension=dimension,
    )
