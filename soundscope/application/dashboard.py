from __future__ import annotations

import asyncio
import dataclasses
import logging
from datetime import datetime
from typing import List, Optional, Union

from soundscope.application.aggregation import analyze_genres, compute_stats, summarize_listening
from soundscope.application.quality import dedupe_tracks, library_health
from soundscope.application.ranking import recently_played, top_by_popularity, tracks_by_genre
from soundscope.domain.entities import DashboardSnapshot, TimeDimension, Track
from soundscope.domain.ports import DataSource
from soundscope.domain.timewindow import as_dimension

logger = logging.getLogger(__name__)


async def build_dashboard(source: DataSource,
                          dimension: Union[str, TimeDimension] = TimeDimension.ALL_TIME,
                          limit: int = 50,
                          now: Optional[datetime] = None) -> DashboardSnapshot:
    """Fetch raw records from any data source and derive the dashboard view.

    Statistics are computed locally from the fetched records, so the result
    does not depend on whether the source pre-aggregates anything.
    """
    dimension = as_dimension(dimension)
    tracks, artists, plays = await asyncio.gather(
        source.get_top_tracks(limit, dimension),
        source.get_top_artists(limit, dimension),
        source.get_recently_played(limit),
    )

    tracks = dedupe_tracks(tracks)
    recent = recently_played(plays, limit, dimension, now)
    snapshot = DashboardSnapshot(
        time_dimension=dimension,
        top_tracks=top_by_popularity(tracks, limit),
        top_artists=top_by_popularity(artists, limit),
        recently_played=recent,
        stats=compute_stats(tracks, artists, plays, dimension, now),
        genres=analyze_genres(artists, tracks),
        listening=summarize_listening(recent, dimension),
        health=library_health(tracks, artists, plays, now),
    )
    logger.debug(
        f"Dashboard built for {dimension.value}: {len(tracks)} tracks, "
        f"{len(artists)} artists, {len(recent)} recent plays"
    )
    return snapshot


async def genre_tracks(source: DataSource,
                       genre: str,
                       dimension: Union[str, TimeDimension] = TimeDimension.ALL_TIME,
                       limit: int = 50,
                       now: Optional[datetime] = None) -> List[Track]:
    """Most popular fetched tracks by artists tagged with ``genre``."""
    dimension = as_dimension(dimension)
    tracks, artists, plays = await asyncio.gather(
        source.get_top_tracks(limit, dimension),
        source.get_top_artists(limit, dimension),
        source.get_recently_played(limit),
    )

    # Top tracks from the live API carry no dates; listen events supply one.
    played = [
        dataclasses.replace(record.track, played_at=record.played_at)
        for record in plays if record.played_at is not None
    ]
    candidates = dedupe_tracks(played + list(tracks))
    return tracks_by_genre(candidates, artists, genre, limit, dimension, now)
