"""Data-quality checks layered on top of the aggregation engine.

Aggregation tolerates malformed records; these helpers are where they get
reported. Nothing here raises for bad data: problems come back as messages.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, Iterable, List, Optional, TypeVar

from soundscope.domain.entities import Artist, LibraryHealth, PlayRecord, Track
from soundscope.domain.timewindow import record_timestamp

T = TypeVar("T")

DIVERSITY_THRESHOLD = 30
COMPLETENESS_THRESHOLD = 80
FRESHNESS_THRESHOLD = 50
CONSISTENCY_THRESHOLD = 90

SECONDS_PER_DAY = 86_400


@dataclass
class ValidationReport(Generic[T]):
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    valid_items: List[T] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def track_problem(track: Track) -> Optional[str]:
    """Return why a track is malformed, or None when it is usable."""
    if not track.id or not track.id.strip():
        return "is missing ID"
    if not track.name or not track.name.strip():
        return "has empty name"
    if not track.artists:
        return "has no artists"
    if not isinstance(track.duration_ms, int) or track.duration_ms <= 0:
        return "has invalid duration"
    if not isinstance(track.popularity, int) or not 0 <= track.popularity <= 100:
        return "has invalid popularity"
    return None


def artist_problem(artist: Artist) -> Optional[str]:
    if not artist.id or not artist.id.strip():
        return "is missing ID"
    if not artist.name or not artist.name.strip():
        return "has no name"
    return None


def validate_tracks(tracks: Optional[Iterable[Track]]) -> ValidationReport[Track]:
    report: ValidationReport[Track] = ValidationReport()
    tracks = list(tracks or ())
    if not tracks:
        report.warnings.append("Data is empty")
        return report
    for index, track in enumerate(tracks):
        problem = track_problem(track)
        if problem:
            report.errors.append(f"Track at index {index} {problem}")
        else:
            report.valid_items.append(track)
    return report


def validate_artists(artists: Optional[Iterable[Artist]]) -> ValidationReport[Artist]:
    report: ValidationReport[Artist] = ValidationReport()
    artists = list(artists or ())
    if not artists:
        report.warnings.append("Data is empty")
        return report
    for index, artist in enumerate(artists):
        problem = artist_problem(artist)
        if problem:
            report.errors.append(f"Artist at index {index} {problem}")
        else:
            report.valid_items.append(artist)
    return report


def dedupe_tracks(tracks: Optional[Iterable[Track]]) -> List[Track]:
    """One track per id, keeping the more popular copy in the first slot seen."""
    kept = {}
    for track in tracks or ():
        current = kept.get(track.id)
        if current is None or (track.popularity or 0) > (current.popularity or 0):
            kept[track.id] = track
    return list(kept.values())


def library_health(tracks: Optional[Iterable[Track]],
                   artists: Optional[Iterable[Artist]],
                   play_records: Optional[Iterable[PlayRecord]],
                   now: Optional[datetime] = None) -> LibraryHealth:
    """Score diversity, completeness, freshness and consistency on 0..100."""
    tracks = list(tracks or ())
    artists = list(artists or ())
    play_records = list(play_records or ())
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    issues = []

    genres = set()
    for artist in artists:
        genres.update(artist.genres)
    diversity = min(100.0, len(genres) / max(1, len(artists)) * 100)

    complete = [track for track in tracks if track_problem(track) is None]
    completeness = len(complete) / len(tracks) * 100 if tracks else 0.0

    moments = [m for m in (record_timestamp(r) for r in play_records) if m is not None]
    if moments:
        ages = [(now - moment).total_seconds() / SECONDS_PER_DAY for moment in moments]
        freshness = max(0.0, 100 - sum(ages) / len(ages))
    else:
        freshness = 0.0
        issues.append("No recent listening activity")

    total = len(tracks) + len(artists)
    valid = len(validate_tracks(tracks).valid_items) + len(validate_artists(artists).valid_items)
    consistency = valid / total * 100 if total else 100.0

    if diversity < DIVERSITY_THRESHOLD:
        issues.append("Low genre diversity")
    if completeness < COMPLETENESS_THRESHOLD:
        issues.append("Incomplete track data")
    if freshness < FRESHNESS_THRESHOLD:
        issues.append("Stale listening data")
    if consistency < CONSISTENCY_THRESHOLD:
        issues.append("Data quality issues detected")

    overall = round((diversity + completeness + freshness + consistency) / 4)
    return LibraryHealth(
        overall_score=int(overall),
        diversity=diversity,
        completeness=completeness,
        freshness=freshness,
        consistency=consistency,
        issues=issues,
    )
