"""Ingestion boundary: loosely shaped payloads in, typed records out.

Spotify responses and the sandbox fixtures are plain dicts with optional
fields everywhere. Every default (missing popularity, absent genre list,
garbage timestamp) is decided here once, so the aggregation code can assume
well-formed records.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from .entities import AlbumRef, Artist, ArtistRef, ImageRef, PlayRecord, Track, User

logger = logging.getLogger(__name__)

_MULTISPACE_PATTERN = re.compile(r"\s+")
_MUSIC_SUFFIX_PATTERN = re.compile(r"\s+music$")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

MAX_DISPLAY_NAME = 20


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Return an aware UTC datetime, or None when the value can't be read.

    Accepts datetimes, ISO-8601 strings (a trailing ``Z`` is allowed) and
    epoch milliseconds. Naive datetimes are taken as UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(('Z', 'z')):
            text = text[:-1] + '+00:00'
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


def ensure_non_negative(value: Any) -> int:
    try:
        number = int(value or 0)
    except (TypeError, ValueError):
        return 0
    if number < 0:
        logger.warning(f"Negative value detected and corrected: {number} -> 0")
        return 0
    return number


def clamp_popularity(value: Any) -> int:
    number = ensure_non_negative(value)
    if number > 100:
        logger.warning(f"Popularity out of range corrected: {number} -> 100")
        return 100
    return number


def normalize_genre(label: Any) -> str:
    if not isinstance(label, str):
        return ""
    value = _MULTISPACE_PATTERN.sub(" ", label.lower()).strip()
    return _MUSIC_SUFFIX_PATTERN.sub("", value)


def unique_genres(labels: Optional[Iterable[Any]]) -> List[str]:
    seen = []
    for label in labels or []:
        genre = normalize_genre(label)
        if genre and genre not in seen:
            seen.append(genre)
    return seen


def _images(payload: Any) -> List[ImageRef]:
    images = []
    for image in payload or []:
        if isinstance(image, Mapping) and image.get('url'):
            images.append(ImageRef(
                url=image['url'],
                height=image.get('height'),
                width=image.get('width'),
            ))
    return images


def _album(payload: Any) -> Optional[AlbumRef]:
    if not isinstance(payload, Mapping):
        return None
    return AlbumRef(
        id=str(payload.get('id') or ''),
        name=payload.get('name') or '',
        images=_images(payload.get('images')),
        release_date=payload.get('release_date'),
    )


def _has_identity(payload: Any) -> bool:
    return isinstance(payload, Mapping) and bool(payload.get('id')) and bool(payload.get('name'))


def track_from_payload(payload: Mapping[str, Any], played_at: Any = None) -> Track:
    artists = [
        ArtistRef(id=str(artist.get('id') or ''), name=artist.get('name') or '')
        for artist in payload.get('artists') or []
        if isinstance(artist, Mapping)
    ]
    return Track(
        id=str(payload.get('id') or ''),
        name=payload.get('name') or '',
        artists=artists,
        album=_album(payload.get('album')),
        duration_ms=ensure_non_negative(payload.get('duration_ms')),
        popularity=clamp_popularity(payload.get('popularity')),
        played_at=parse_timestamp(payload.get('played_at') or played_at),
        added_at=parse_timestamp(payload.get('added_at')),
    )


def artist_from_payload(payload: Mapping[str, Any]) -> Artist:
    followers = payload.get('followers')
    if isinstance(followers, Mapping):
        followers = followers.get('total')
    return Artist(
        id=str(payload.get('id') or ''),
        name=payload.get('name') or '',
        genres=unique_genres(payload.get('genres')),
        popularity=clamp_popularity(payload.get('popularity')),
        followers=ensure_non_negative(followers) if followers is not None else None,
        images=_images(payload.get('images')),
        played_at=parse_timestamp(payload.get('played_at')),
        added_at=parse_timestamp(payload.get('added_at')),
    )


def play_record_from_payload(payload: Mapping[str, Any]) -> PlayRecord:
    """Accept both ``{"track": {...}, "played_at": ...}`` and flat track payloads."""
    inner = payload.get('track')
    if isinstance(inner, Mapping):
        played_at = parse_timestamp(payload.get('played_at'))
        track = track_from_payload(inner)
    else:
        played_at = parse_timestamp(payload.get('played_at') or payload.get('added_at'))
        track = track_from_payload(payload)
    return PlayRecord(track=track, played_at=played_at)


def tracks_from_payloads(payloads: Optional[Iterable[Any]]) -> List[Track]:
    tracks = []
    for payload in payloads or []:
        if not _has_identity(payload):
            logger.warning(f"Invalid track data skipped: {payload!r:.120}")
            continue
        tracks.append(track_from_payload(payload))
    return tracks


def artists_from_payloads(payloads: Optional[Iterable[Any]]) -> List[Artist]:
    artists = []
    for payload in payloads or []:
        if not _has_identity(payload):
            logger.warning(f"Invalid artist data skipped: {payload!r:.120}")
            continue
        artists.append(artist_from_payload(payload))
    return artists


def play_records_from_payloads(payloads: Optional[Iterable[Any]]) -> List[PlayRecord]:
    records = []
    for payload in payloads or []:
        if not isinstance(payload, Mapping):
            continue
        inner = payload.get('track')
        if not _has_identity(inner if isinstance(inner, Mapping) else payload):
            logger.warning(f"Invalid play record skipped: {payload!r:.120}")
            continue
        records.append(play_record_from_payload(payload))
    return records


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_short_hash(data: str) -> str:
    """Short, non-cryptographic display hash (31-multiplier, 32-bit signed)."""
    value = 0
    for char in data or "":
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return _to_base36(abs(value))


def sanitize_user(payload: Mapping[str, Any]) -> User:
    """Reduce a profile payload to the minimum the dashboard keeps."""
    display_name = payload.get('display_name') or ''
    country = payload.get('country') or ''
    images = _images(payload.get('images'))
    return User(
        id=generate_short_hash(str(payload.get('id') or '')),
        display_name=display_name[:MAX_DISPLAY_NAME] or 'User',
        has_image=bool(images),
        country=country[:2] or 'US',
        images=images,
    )


user_from_payload = sanitize_user
