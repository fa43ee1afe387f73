from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Tuple


NO_GENRE = "N/A"


class TimeDimension(str, Enum):
    """Symbolic trailing windows ending at evaluation time."""

    WEEK = "week"
    MONTH = "month"
    THREE_MONTHS = "three_months"
    SIX_MONTHS = "six_months"
    YEAR = "year"
    ALL_TIME = "all_time"


@dataclass(frozen=True)
class TimeWindow:
    """Concrete interval resolved from a time dimension. Both ends are inclusive."""

    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class ImageRef:
    url: str
    height: Optional[int] = None
    width: Optional[int] = None


@dataclass(frozen=True)
class ArtistRef:
    id: str
    name: str = ""


@dataclass(frozen=True)
class AlbumRef:
    id: str = ""
    name: str = ""
    images: Tuple[ImageRef, ...] = ()
    release_date: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'images', tuple(self.images or ()))

    @property
    def cover_url(self) -> Optional[str]:
        return self.images[0].url if self.images else None


@dataclass(frozen=True)
class Track:
    """A catalog track as seen by the listener.

    ``played_at`` is set for listen events, ``added_at`` for library saves.
    Either may be missing; consumers use ``timestamp`` to get whichever exists.
    """

    id: str
    name: str = ""
    artists: Tuple[ArtistRef, ...] = ()
    album: Optional[AlbumRef] = None
    duration_ms: int = 0
    popularity: int = 0
    played_at: Optional[datetime] = None
    added_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'artists', tuple(self.artists or ()))

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.played_at or self.added_at

    @property
    def primary_artist(self) -> str:
        return self.artists[0].name if self.artists else "Unknown"

    @property
    def artist_ids(self) -> List[str]:
        return [artist.id for artist in self.artists if artist.id]


@dataclass(frozen=True)
class Artist:
    id: str
    name: str = ""
    genres: Tuple[str, ...] = ()
    popularity: int = 0
    followers: Optional[int] = None
    images: Tuple[ImageRef, ...] = ()
    played_at: Optional[datetime] = None
    added_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'genres', tuple(self.genres or ()))
        object.__setattr__(self, 'images', tuple(self.images or ()))

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.played_at or self.added_at


@dataclass(frozen=True)
class PlayRecord:
    """One listen event. Several records may reference the same track."""

    track: Track
    played_at: Optional[datetime] = None

    @property
    def id(self) -> str:
        return self.track.id

    @property
    def popularity(self) -> int:
        return self.track.popularity

    @property
    def duration_ms(self) -> int:
        return self.track.duration_ms

    @property
    def timestamp(self) -> Optional[datetime]:
        return self.played_at or self.track.timestamp


@dataclass(frozen=True)
class User:
    """Minimal listener profile kept by the auth providers."""

    id: str
    display_name: str = "User"
    has_image: bool = False
    country: str = "US"
    images: Tuple[ImageRef, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'images', tuple(self.images or ()))


@dataclass(frozen=True)
class GenreAggregate:
    """Per-genre rollup derived from a set of artists."""

    name: str
    count: int
    artist_ids: frozenset = frozenset()
    track_ids: frozenset = frozenset()
    avg_popularity: float = 0.0
    percentage: float = 0.0

    @property
    def artist_count(self) -> int:
        return len(self.artist_ids)

    @property
    def track_count(self) -> int:
        return len(self.track_ids)


@dataclass(frozen=True)
class LibraryStats:
    total_tracks: int = 0
    total_artists: int = 0
    listening_time_hours: float = 0.0
    top_genre: str = NO_GENRE
    unique_genres: int = 0
    average_popularity: float = 0.0
    recent_tracks_count: int = 0
    has_data: bool = False
    time_dimension: TimeDimension = TimeDimension.ALL_TIME

    @classmethod
    def empty(cls, dimension: TimeDimension = TimeDimension.ALL_TIME) -> "LibraryStats":
        return cls(time_dimension=dimension)


@dataclass(frozen=True)
class ListeningSummary:
    total_plays: int = 0
    total_minutes: int = 0
    total_hours: int = 0
    unique_artists: int = 0
    avg_daily_minutes: int = 0
    top_track: Optional[Track] = None
    time_dimension: TimeDimension = TimeDimension.ALL_TIME


@dataclass(frozen=True)
class LibraryHealth:
    """0..100 scores for how usable the fetched library data is."""

    overall_score: int
    diversity: float
    completeness: float
    freshness: float
    consistency: float
    issues: List[str] = field(default_factory=list)

@dataclass(frozen=True)
class DashboardSnapshot:
    """Everything the presentation layer needs for one time dimension."""

    time_dimension: TimeDimension
    top_tracks: List[Track] = field(default_factory=list)
    top_artists: List[Artist] = field(default_factory=list)
    recently_played: List[PlayRecord] = field(default_factory=list)
    stats: LibraryStats = field(default_factory=LibraryStats)
    genres: List[GenreAggregate] = field(default_factory=list)
    listening: ListeningSummary = field(default_factory=ListeningSummary)
    health: Optional[LibraryHealth] = None

    def as_dict(self) -> dict:
        return snapshot_to_dict(self)


def snapshot_to_dict(value: Any) -> Any:
    """Convert records into JSON-friendly structures."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (frozenset, set)):
        return sorted(snapshot_to_dict(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [snapshot_to_dict(v) for v in value]
    if isinstance(value, dict):
        return {k: snapshot_to_dict(v) for k, v in value.items()}
    if hasattr(value, '__dataclass_fields__'):
        return {
            name: snapshot_to_dict(getattr(value, name))
            for name in value.__dataclass_fields__
        }
    return value
