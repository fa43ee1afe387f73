from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Sequence, TypeVar, Union

from soundscope.domain.entities import Artist, PlayRecord, TimeDimension, Track
from soundscope.domain.timewindow import filter_by_window, record_timestamp

T = TypeVar("T")

Dimension = Union[str, TimeDimension]


def _popularity(item) -> int:
    value = getattr(item, 'popularity', None)
    if value is None and isinstance(item, dict):
        value = item.get('popularity')
    return value or 0


def top_by_popularity(items: Optional[Iterable[T]], limit: int) -> List[T]:
    """Most popular items first, truncated to ``limit``.

    The sort is stable, so items with equal popularity keep their input order.
    """
    if not items or limit <= 0:
        return []
    return sorted(items, key=_popularity, reverse=True)[:limit]


def most_recent(items: Optional[Iterable[T]], limit: int) -> List[T]:
    """Newest first; items without a timestamp go last in input order."""
    if not items or limit <= 0:
        return []
    dated = []
    undated = []
    for item in items:
        moment = record_timestamp(item)
        if moment is None:
            undated.append(item)
        else:
            dated.append((moment, item))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return ([item for _, item in dated] + undated)[:limit]


def top_tracks(tracks: Optional[Sequence[Track]], limit: int = 10,
               dimension: Dimension = TimeDimension.ALL_TIME,
               now: Optional[datetime] = None) -> List[Track]:
    return top_by_popularity(filter_by_window(tracks, dimension, now), limit)


def top_artists(artists: Optional[Sequence[Artist]], limit: int = 10,
                dimension: Dimension = TimeDimension.ALL_TIME,
                now: Optional[datetime] = None) -> List[Artist]:
    return top_by_popularity(filter_by_window(artists, dimension, now), limit)


def recently_played(records: Optional[Sequence[PlayRecord]], limit: int = 10,
                    dimension: Dimension = TimeDimension.ALL_TIME,
                    now: Optional[datetime] = None) -> List[PlayRecord]:
    return most_recent(filter_by_window(records, dimension, now), limit)


def tracks_by_genre(tracks: Optional[Sequence[Track]],
                    artists: Optional[Sequence[Artist]],
                    genre: str,
                    limit: int = 5,
                    dimension: Dimension = TimeDimension.ALL_TIME,
                    now: Optional[datetime] = None) -> List[Track]:
    """Most popular tracks credited to an artist whose genres mention ``genre``.

    Tracks are placed in the window by ``added_at`` before ``played_at``.
    """
    if not tracks or not artists or not genre:
        return []
    needle = genre.lower()
    artist_ids = {
        artist.id for artist in artists
        if any(needle in label.lower() for label in artist.genres)
    }
    matching = [
        track for track in filter_by_window(tracks, dimension, now, prefer_added=True)
        if any(artist_id in artist_ids for artist_id in track.artist_ids)
    ]
    return top_by_popularity(matching, limit)
