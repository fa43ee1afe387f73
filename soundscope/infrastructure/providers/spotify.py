import asyncio
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
import spotipy
from spotipy.exceptions import SpotifyException
from urllib3.exceptions import ReadTimeoutError

from soundscope.crosscutting.logging import (
    log_cache_fallback,
    log_fetch_complete,
    log_fetch_start,
)
from soundscope.domain.entities import Artist, GenreAggregate, LibraryStats, PlayRecord, TimeDimension, Track
from soundscope.domain.errors import NotFound, PermanentFailure, RateLimited, SoundScopeError, TemporaryFailure
from soundscope.domain.normalization import artists_from_payloads, play_records_from_payloads, tracks_from_payloads
from soundscope.domain.ports import CatalogClient, DataSource, TimeRange

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
MAX_TOP_ITEMS = 2000
DEFAULT_TIME_RANGE = 'medium_term'
SPOTIFY_TIME_RANGES = ('short_term', 'medium_term', 'long_term')

_DIMENSION_TO_RANGE = {
    TimeDimension.WEEK: 'short_term',
    TimeDimension.MONTH: 'short_term',
    TimeDimension.THREE_MONTHS: 'medium_term',
    TimeDimension.SIX_MONTHS: 'medium_term',
    TimeDimension.YEAR: 'long_term',
    TimeDimension.ALL_TIME: 'long_term',
}


def to_spotify_time_range(value: TimeRange) -> str:
    """Translate a time dimension (or a Spotify term) into a Spotify term.

    Spotify only knows three ranges: roughly four weeks, six months and
    several years.
    """
    if value is None:
        return DEFAULT_TIME_RANGE
    if isinstance(value, TimeDimension):
        return _DIMENSION_TO_RANGE[value]
    if value in SPOTIFY_TIME_RANGES:
        return value
    try:
        return _DIMENSION_TO_RANGE[TimeDimension(value)]
    except ValueError:
        raise ValueError(f"Unknown time range: {value!r}") from None


def _retry_after_ms(error: SpotifyException) -> int:
    headers = getattr(error, 'headers', None) or {}
    retry_after = headers.get('Retry-After') or headers.get('retry-after')
    try:
        return int(retry_after) * 1000
    except (TypeError, ValueError):
        return 60_000


def to_domain_error(error: Exception, operation: str) -> SoundScopeError:
    """Map spotipy/transport errors onto the domain error taxonomy."""
    if isinstance(error, SoundScopeError):
        return error
    status = getattr(error, 'http_status', None)
    if status == 429:
        return RateLimited(
            retry_after_ms=_retry_after_ms(error),
            message=f"Rate limited during {operation}",
        )
    if status in (401, 403):
        return PermanentFailure(f"Spotify rejected {operation} ({status}): {error}")
    if status == 404:
        return NotFound(f"Spotify resource not found during {operation}: {error}")
    return TemporaryFailure(f"Failed to {operation}: {error}")


class SpotifyCatalog(CatalogClient):
    """Remote catalog backed by the Spotify Web API through spotipy.

    Top-item responses are memoized per ``(kind, time_range, limit)`` until
    ``clear_cache``. When a request fails and a previous response for the
    same key exists, that response is served instead of raising.
    """

    def __init__(self, client: spotipy.Spotify, max_items: int = MAX_TOP_ITEMS):
        self._client = client
        self._max_items = max_items
        self._cache: Dict[Tuple[Any, ...], list] = {}

    @classmethod
    def from_auth_manager(cls, auth_manager, requests_timeout: int = 15) -> "SpotifyCatalog":
        return cls(spotipy.Spotify(auth_manager=auth_manager, requests_timeout=requests_timeout))

    def _page_top_items(self, fetch: Callable[..., Dict[str, Any]], time_range: str, limit: int) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        limit = min(limit, self._max_items)
        offset = 0

        while len(items) < limit:
            page_size = min(PAGE_SIZE, limit - len(items))
            response = fetch(limit=page_size, offset=offset, time_range=time_range)

            batch = (response or {}).get('items') or []
            if not batch:
                break
            items.extend(batch)
            offset += len(batch)

            if not response.get('next'):
                break

        return items

    def _fetch(self, key: Tuple[Any, ...], operation: str, fetch: Callable[[], list],
               use_cache_first: bool = True) -> list:
        if use_cache_first and key in self._cache:
            logger.debug(f"Cache hit for {operation} {key[1:]}")
            return list(self._cache[key])

        try:
            result = fetch()
        except (SpotifyException, requests.exceptions.RequestException, ReadTimeoutError, SoundScopeError) as e:
            if key in self._cache:
                cached = self._cache[key]
                log_cache_fallback(logger, 'spotify', operation, e, len(cached))
                return list(cached)
            raise to_domain_error(e, operation) from e

        self._cache[key] = result
        return list(result)

    def top_tracks(self, time_range: str, limit: int) -> List[Track]:
        return self._fetch(
            ('top_tracks', time_range, limit), 'fetch top tracks',
            lambda: tracks_from_payloads(
                self._page_top_items(self._client.current_user_top_tracks, time_range, limit)
            ),
        )

    def top_artists(self, time_range: str, limit: int) -> List[Artist]:
        return self._fetch(
            ('top_artists', time_range, limit), 'fetch top artists',
            lambda: artists_from_payloads(
                self._page_top_items(self._client.current_user_top_artists, time_range, limit)
            ),
        )

    def recently_played(self, limit: int) -> List[PlayRecord]:
        def fetch() -> List[PlayRecord]:
            items: List[Dict[str, Any]] = []
            before = None
            while len(items) < limit:
                response = self._client.current_user_recently_played(
                    limit=min(PAGE_SIZE, limit - len(items)), before=before
                )
                batch = (response or {}).get('items') or []
                if not batch:
                    break
                items.extend(batch)
                before = (response.get('cursors') or {}).get('before')
                if not before or not response.get('next'):
                    break
            return play_records_from_payloads(items)

        # Listening history changes constantly, so only use the cache as a fallback.
        return self._fetch(('recently_played', None, limit), 'fetch recently played',
                           fetch, use_cache_first=False)

    def clear_cache(self) -> None:
        self._cache.clear()


class SpotifyDataSource(DataSource):
    """Live data source: every read goes to the remote catalog.

    ``get_stats`` and ``get_genre_analysis`` return placeholders because this
    source holds no local record set to aggregate. Fetch the raw tracks and
    artists and run them through ``soundscope.application.aggregation``
    (``build_dashboard`` does exactly that).
    """

    name = 'spotify'

    def __init__(self, catalog: CatalogClient):
        self._catalog = catalog

    async def get_top_tracks(self, limit: int = 50, time_range: TimeRange = None) -> List[Track]:
        if limit <= 0:
            return []
        term = to_spotify_time_range(time_range)
        log_fetch_start(logger, self.name, 'get_top_tracks', limit, term)
        tracks = await asyncio.to_thread(self._catalog.top_tracks, term, limit)
        log_fetch_complete(logger, self.name, 'get_top_tracks', len(tracks))
        return tracks[:limit]

    async def get_top_artists(self, limit: int = 50, time_range: TimeRange = None) -> List[Artist]:
        if limit <= 0:
            return []
        term = to_spotify_time_range(time_range)
        log_fetch_start(logger, self.name, 'get_top_artists', limit, term)
        artists = await asyncio.to_thread(self._catalog.top_artists, term, limit)
        log_fetch_complete(logger, self.name, 'get_top_artists', len(artists))
        return artists[:limit]

    async def get_recently_played(self, limit: int = 50) -> List[PlayRecord]:
        if limit <= 0:
            return []
        log_fetch_start(logger, self.name, 'get_recently_played', limit)
        records = await asyncio.to_thread(self._catalog.recently_played, limit)
        log_fetch_complete(logger, self.name, 'get_recently_played', len(records))
        return records[:limit]

    def get_stats(self) -> LibraryStats:
        return LibraryStats.empty()

    def get_genre_analysis(self) -> List[GenreAggregate]:
        return []

    def clear_cache(self) -> None:
        self._catalog.clear_cache()
        logger.info("Spotify response cache cleared")
