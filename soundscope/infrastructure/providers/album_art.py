import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Tuple

import requests

from soundscope.domain.errors import AlbumArtNotFound, TemporaryFailure
from soundscope.domain.ports import AlbumArtLookup

logger = logging.getLogger(__name__)

LASTFM_API_URL = 'https://ws.audioscrobbler.com/2.0/'
IMAGE_SIZES = ('small', 'medium', 'large', 'extralarge', 'mega')

ArtKey = Tuple[str, str]


class LastFmAlbumArt(AlbumArtLookup):
    """Cover lookup against the Last.fm ``album.getinfo`` / ``artist.getinfo`` API."""

    def __init__(self, api_key: str, session: Optional[requests.Session] = None,
                 timeout: float = 10.0, base_url: str = LASTFM_API_URL):
        self.api_key = api_key
        self._session = session or requests.Session()
        self._timeout = timeout
        self._base_url = base_url

    def lookup(self, artist: str, album: Optional[str] = None, size: str = 'large') -> str:
        if size not in IMAGE_SIZES:
            raise ValueError(f"Unknown image size {size!r}; expected one of {', '.join(IMAGE_SIZES)}")

        params = {
            'format': 'json',
            'api_key': self.api_key,
            'artist': artist,
        }
        if album:
            params.update({'method': 'album.getinfo', 'album': album})
            entity = 'album'
        else:
            params['method'] = 'artist.getinfo'
            entity = 'artist'

        try:
            response = self._session.get(self._base_url, params=params, timeout=self._timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            raise TemporaryFailure(f"Album art lookup failed for {artist!r}/{album!r}: {e}") from e

        if 'error' in payload:
            raise AlbumArtNotFound(payload.get('message') or f"No {entity} info for {artist!r}")

        images = (payload.get(entity) or {}).get('image') or []
        by_size = {image.get('size'): image.get('#text') for image in images if image.get('#text')}
        if by_size.get(size):
            return by_size[size]

        # Fall back to the largest size Last.fm returned.
        for candidate in reversed(IMAGE_SIZES):
            if by_size.get(candidate):
                return by_size[candidate]
        raise AlbumArtNotFound(f"No {size} image for {artist!r}/{album!r}")


class AlbumArtService:
    """Memoized, single-flight cover resolution.

    Results are cached per ``(artist, album)`` key. While a lookup for a key is
    running, later callers await the same task instead of issuing another
    request. A failed lookup resolves to the placeholder URL and is cached like
    any other result.
    """

    def __init__(self, lookup: Optional[AlbumArtLookup], placeholder_url: str, size: str = 'large'):
        self._lookup = lookup
        self.placeholder_url = placeholder_url
        self.size = size
        self._resolved: Dict[ArtKey, str] = {}
        self._in_flight: Dict[ArtKey, asyncio.Task] = {}
        self._generation = 0

    @staticmethod
    def key(artist: str, album: Optional[str]) -> ArtKey:
        return ((artist or '').strip().lower(), (album or '').strip().lower())

    def cached(self, artist: str, album: Optional[str]) -> Optional[str]:
        return self._resolved.get(self.key(artist, album))

    async def _run_lookup(self, key: ArtKey, artist: str, album: Optional[str], generation: int) -> str:
        try:
            if self._lookup is None:
                url = self.placeholder_url
            else:
                url = await asyncio.to_thread(self._lookup.lookup, artist, album, self.size)
        except Exception as e:
            logger.warning(f"Album art lookup failed for {artist!r}/{album!r}, using placeholder: {e}")
            url = self.placeholder_url
        finally:
            if generation == self._generation:
                self._in_flight.pop(key, None)
        # Lookups started before clear() must not repopulate the cache
        if generation == self._generation:
            self._resolved[key] = url
        return url

    def _task_for(self, artist: str, album: Optional[str]) -> asyncio.Task:
        key = self.key(artist, album)
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run_lookup(key, artist, album, self._generation))
            self._in_flight[key] = task
        return task

    async def resolve(self, artist: str, album: Optional[str] = None) -> str:
        """Return the cover URL for the pair, looking it up at most once."""
        cached = self.cached(artist, album)
        if cached is not None:
            return cached
        return await asyncio.shield(self._task_for(artist, album))

    def prefetch(self, pairs: Iterable[Tuple[str, Optional[str]]]) -> List[asyncio.Task]:
        """Schedule lookups for uncached pairs without awaiting them.

        Must be called from a running event loop.
        """
        tasks = []
        for artist, album in pairs:
            if not artist or self.cached(artist, album) is not None:
                continue
            tasks.append(self._task_for(artist, album))
        return tasks

    def clear(self) -> None:
        self._generation += 1
        self._resolved.clear()
        self._in_flight.clear()
