"""Bundled listening history for the sandbox source.

Rows are kept as Spotify-shaped payloads and pass through the same
normalization as live responses. Timestamps are stored as offsets and
anchored when the dataset is built, so the windows always have something in
them regardless of when the sandbox runs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from soundscope.domain.entities import Artist, PlayRecord, Track
from soundscope.domain.normalization import artists_from_payloads, play_records_from_payloads, tracks_from_payloads

IMAGE_BASE_URL = 'https://i.scdn.co/image/'

SANDBOX_USER = {
    'id': 'sandbox-listener-0001',
    'display_name': 'Sandbox Listener',
    'country': 'GB',
    'images': [],
}

# id, name, genres, popularity, followers, days since followed
ARTISTS: List[Tuple[str, str, List[str], int, int, int]] = [
    ('sbx-ar-01', 'The Paper Lanterns', ['indie rock', 'alternative rock'], 78, 1_240_000, 3),
    ('sbx-ar-02', 'Mira Vale', ['dream pop', 'shoegaze'], 64, 310_000, 12),
    ('sbx-ar-03', 'Northbound Static', ['synthpop', 'electronic'], 71, 820_000, 25),
    ('sbx-ar-04', 'Celia Ortega Quartet', ['jazz', 'latin jazz'], 52, 95_000, 40),
    ('sbx-ar-05', 'Ojo Blanco', ['neo soul', 'r&b'], 69, 540_000, 5),
    ('sbx-ar-06', 'K-Ridge', ['hip hop', 'rap'], 85, 4_300_000, 18),
    ('sbx-ar-07', 'Low Orbit', ['ambient', 'electronic'], 47, 61_000, 75),
    ('sbx-ar-08', 'Hollow Pines', ['folk', 'indie folk'], 58, 188_000, 120),
    ('sbx-ar-09', 'Aurelian Strings', ['classical', 'contemporary classical'], 44, 72_000, 300),
    ('sbx-ar-10', 'Tessellate', ['techno', 'electronic'], 63, 260_000, 9),
    ('sbx-ar-11', 'Dua Marrow', ['house', 'dance pop'], 80, 2_100_000, 33),
    ('sbx-ar-12', 'Velvet Thursday', ['r&b', 'soul'], 74, 990_000, 150),
    ('sbx-ar-13', 'Gravel & Gold', ['alternative rock', 'indie rock'], 61, 205_000, 210),
    ('sbx-ar-14', 'Sundial Youth', ['shoegaze', 'noise pop'], 39, 28_000, 400),
    ('sbx-ar-15', 'Bedroom Harbor', ['lo-fi', 'chillhop'], 55, 430_000, 2),
    ('sbx-ar-16', 'Ninefold Sky', ['post-rock', 'instrumental rock'], 49, 97_000, 500),
    ('sbx-ar-17', 'Tape Hiss Club', ['trip hop', 'electronic'], 57, 150_000, 60),
    ('sbx-ar-18', 'Marisol', ['latin pop', 'reggaeton'], 83, 3_800_000, 14),
    ('sbx-ar-19', 'Ghost Relay', ['synthwave', 'synthpop'], 60, 230_000, 95),
    ('sbx-ar-20', 'Elm & Ivory', ['folk', 'singer-songwriter'], 51, 84_000, 700),
    ('sbx-ar-21', 'Concrete Psalms', ['hip hop', 'conscious hip hop'], 66, 610_000, 45),
    ('sbx-ar-22', 'Blue Meridian', ['jazz', 'jazz fusion'], 46, 43_000, 1_100),
    ('sbx-ar-23', 'Kite Festival', ['indie pop', 'dream pop'], 68, 380_000, 7),
    ('sbx-ar-24', 'Oskar Lind', ['classical', 'neoclassical'], 59, 270_000, 240),
]

# id, name, artist ids, album, release date, duration ms, popularity, days since saved, cover
TRACKS: List[Tuple[str, str, List[str], str, str, int, int, int, bool]] = [
    ('sbx-tr-001', 'Lantern Light', ['sbx-ar-01'], 'Paper Houses', '2023-04-14', 214_000, 76, 2, True),
    ('sbx-tr-002', 'Cardboard Kings', ['sbx-ar-01'], 'Paper Houses', '2023-04-14', 187_500, 68, 20, True),
    ('sbx-tr-003', 'Glass Lake', ['sbx-ar-02'], 'Soft Focus', '2022-09-02', 262_300, 61, 6, False),
    ('sbx-tr-004', 'Underwater Choir', ['sbx-ar-02'], 'Soft Focus', '2022-09-02', 301_100, 55, 48, False),
    ('sbx-tr-005', 'Signal Fade', ['sbx-ar-03'], 'Cold Frequencies', '2024-01-19', 198_000, 72, 4, True),
    ('sbx-tr-006', 'Neon Commute', ['sbx-ar-03'], 'Cold Frequencies', '2024-01-19', 205_400, 66, 31, True),
    ('sbx-tr-007', 'Blue Hour Samba', ['sbx-ar-04'], 'Live at the Harbor', '2021-06-11', 412_000, 48, 85, False),
    ('sbx-tr-008', 'Cafe Tres', ['sbx-ar-04'], 'Live at the Harbor', '2021-06-11', 356_000, 44, 160, False),
    ('sbx-tr-009', 'Slow Burn', ['sbx-ar-05'], 'Sunday Service', '2023-11-03', 233_000, 70, 1, True),
    ('sbx-tr-010', 'Honey Static', ['sbx-ar-05', 'sbx-ar-12'], 'Sunday Service', '2023-11-03', 221_000, 73, 9, True),
    ('sbx-tr-011', 'Ridge Line', ['sbx-ar-06'], 'Elevation', '2024-03-08', 176_000, 88, 3, True),
    ('sbx-tr-012', 'No Ceiling', ['sbx-ar-06', 'sbx-ar-21'], 'Elevation', '2024-03-08', 192_000, 84, 15, True),
    ('sbx-tr-013', 'Perigee', ['sbx-ar-07'], 'Drift Studies', '2020-02-28', 545_000, 41, 200, False),
    ('sbx-tr-014', 'Apogee', ['sbx-ar-07'], 'Drift Studies', '2020-02-28', 498_000, 39, 330, False),
    ('sbx-tr-015', 'Cedar Smoke', ['sbx-ar-08'], 'Woodgrain', '2022-05-20', 244_000, 57, 110, True),
    ('sbx-tr-016', 'Creek Bed', ['sbx-ar-08', 'sbx-ar-20'], 'Woodgrain', '2022-05-20', 268_000, 53, 260, True),
    ('sbx-tr-017', 'Nocturne in Grey', ['sbx-ar-09'], 'Quiet Rooms', '2019-10-04', 389_000, 42, 420, False),
    ('sbx-tr-018', 'Etude for Rain', ['sbx-ar-09'], 'Quiet Rooms', '2019-10-04', 274_000, 40, 610, False),
    ('sbx-tr-019', 'Lattice', ['sbx-ar-10'], 'Geometry', '2023-07-07', 366_000, 62, 8, True),
    ('sbx-tr-020', 'Vertex', ['sbx-ar-10'], 'Geometry', '2023-07-07', 402_000, 58, 52, True),
    ('sbx-tr-021', 'Marrow Bones', ['sbx-ar-11'], 'Club Anatomy', '2024-05-17', 189_000, 82, 5, True),
    ('sbx-tr-022', 'Pulse Check', ['sbx-ar-11'], 'Club Anatomy', '2024-05-17', 201_000, 79, 22, True),
    ('sbx-tr-023', 'Thursday Velvet', ['sbx-ar-12'], 'Late Bloom', '2021-12-10', 238_000, 75, 140, True),
    ('sbx-tr-024', 'Porch Light', ['sbx-ar-12'], 'Late Bloom', '2021-12-10', 226_500, 71, 190, True),
    ('sbx-tr-025', 'Gold Teeth', ['sbx-ar-13'], 'Quarry', '2020-08-21', 207_000, 60, 230, False),
    ('sbx-tr-026', 'Gravel Road', ['sbx-ar-13', 'sbx-ar-01'], 'Quarry', '2020-08-21', 219_000, 63, 27, False),
    ('sbx-tr-027', 'Sunspots', ['sbx-ar-14'], 'Overexposed', '2018-03-30', 312_000, 37, 450, False),
    ('sbx-tr-028', 'Feedback Bloom', ['sbx-ar-14'], 'Overexposed', '2018-03-30', 287_000, 35, 800, False),
    ('sbx-tr-029', 'Harbor Nap', ['sbx-ar-15'], 'Low Tide Tapes', '2024-02-02', 142_000, 56, 1, True),
    ('sbx-tr-030', 'Rain on the Desk', ['sbx-ar-15'], 'Low Tide Tapes', '2024-02-02', 131_000, 54, 11, True),
    ('sbx-tr-031', 'Ninth Sky', ['sbx-ar-16'], 'Cartography', '2017-11-17', 611_000, 47, 900, False),
    ('sbx-tr-032', 'Map Edges', ['sbx-ar-16'], 'Cartography', '2017-11-17', 574_000, 45, 520, False),
    ('sbx-tr-033', 'Worn Cassette', ['sbx-ar-17'], 'Magnetic', '2022-10-28', 256_000, 58, 70, True),
    ('sbx-tr-034', 'Hiss and Hum', ['sbx-ar-17'], 'Magnetic', '2022-10-28', 243_000, 52, 100, True),
    ('sbx-tr-035', 'Marea Alta', ['sbx-ar-18'], 'Costa', '2024-06-21', 183_000, 86, 2, True),
    ('sbx-tr-036', 'Noche de Sal', ['sbx-ar-18', 'sbx-ar-11'], 'Costa', '2024-06-21', 196_000, 81, 13, True),
    ('sbx-tr-037', 'Relay Station', ['sbx-ar-19'], 'Night Drive', '2021-04-09', 248_000, 59, 96, False),
    ('sbx-tr-038', 'Chrome Horizon', ['sbx-ar-19'], 'Night Drive', '2021-04-09', 262_000, 57, 170, False),
    ('sbx-tr-039', 'Ivory Keys', ['sbx-ar-20'], 'Handmade', '2019-05-24', 201_000, 49, 710, True),
    ('sbx-tr-040', 'Elm Street Lullaby', ['sbx-ar-20'], 'Handmade', '2019-05-24', 188_000, 46, 1_000, True),
    ('sbx-tr-041', 'Psalm for Concrete', ['sbx-ar-21'], 'Foundations', '2023-02-17', 224_000, 67, 44, True),
    ('sbx-tr-042', 'Rebar', ['sbx-ar-21'], 'Foundations', '2023-02-17', 203_000, 62, 88, True),
    ('sbx-tr-043', 'Meridian Line', ['sbx-ar-22'], 'Longitude', '2016-09-09', 455_000, 43, 1_200, False),
    ('sbx-tr-044', 'Tropic of Blue', ['sbx-ar-22'], 'Longitude', '2016-09-09', 398_000, 41, 1_500, False),
    ('sbx-tr-045', 'Paper Kites', ['sbx-ar-23'], 'Festival Season', '2024-04-26', 209_000, 69, 4, False),
    ('sbx-tr-046', 'String Theory', ['sbx-ar-23'], 'Festival Season', '2024-04-26', 197_000, 65, 19, False),
    ('sbx-tr-047', 'Fjord', ['sbx-ar-24'], 'Nordic Hours', '2022-01-14', 283_000, 60, 245, True),
    ('sbx-tr-048', 'Midnight Sun', ['sbx-ar-24'], 'Nordic Hours', '2022-01-14', 317_000, 58, 365, True),
    ('sbx-tr-049', 'Static Bloom', ['sbx-ar-03', 'sbx-ar-02'], 'Crossed Wires', '2024-08-02', 231_000, 64, 10, False),
    ('sbx-tr-050', 'After Hours Session', ['sbx-ar-04', 'sbx-ar-22'], 'Late Set', '2023-09-15', 433_000, 50, 35, False),
    ('sbx-tr-051', 'Cipher', ['sbx-ar-06'], 'Elevation (Deluxe)', '2024-09-13', 168_000, 77, 0, True),
    ('sbx-tr-052', 'Lo-Fi Lanterns', ['sbx-ar-15', 'sbx-ar-01'], 'Low Tide Tapes', '2024-02-02', 155_000, 53, 58, True),
]

# track id, hours since played
PLAYS: List[Tuple[str, int]] = [
    ('sbx-tr-051', 1), ('sbx-tr-011', 2), ('sbx-tr-035', 3), ('sbx-tr-009', 5),
    ('sbx-tr-001', 7), ('sbx-tr-011', 20), ('sbx-tr-029', 22), ('sbx-tr-021', 26),
    ('sbx-tr-005', 30), ('sbx-tr-045', 45), ('sbx-tr-011', 50), ('sbx-tr-003', 70),
    ('sbx-tr-010', 74), ('sbx-tr-035', 96), ('sbx-tr-019', 120), ('sbx-tr-012', 150),
    ('sbx-tr-036', 170), ('sbx-tr-030', 200), ('sbx-tr-049', 230), ('sbx-tr-001', 260),
    ('sbx-tr-046', 300), ('sbx-tr-022', 340), ('sbx-tr-002', 400), ('sbx-tr-026', 460),
    ('sbx-tr-006', 520), ('sbx-tr-050', 600), ('sbx-tr-041', 700), ('sbx-tr-004', 800),
    ('sbx-tr-020', 900), ('sbx-tr-052', 1_000), ('sbx-tr-033', 1_200), ('sbx-tr-007', 1_400),
    ('sbx-tr-042', 1_600), ('sbx-tr-037', 1_900), ('sbx-tr-034', 2_100), ('sbx-tr-015', 2_400),
]


@dataclass(frozen=True)
class SandboxDataset:
    anchor: datetime
    tracks: Tuple[Track, ...] = ()
    artists: Tuple[Artist, ...] = ()
    plays: Tuple[PlayRecord, ...] = ()
    user: Dict[str, Any] = field(default_factory=lambda: dict(SANDBOX_USER))

    def __post_init__(self):
        object.__setattr__(self, 'tracks', tuple(self.tracks))
        object.__setattr__(self, 'artists', tuple(self.artists))
        object.__setattr__(self, 'plays', tuple(self.plays))


def _iso(moment: datetime) -> str:
    return moment.isoformat().replace('+00:00', 'Z')


def _image(item_id: str) -> List[Dict[str, Any]]:
    return [{'url': f"{IMAGE_BASE_URL}{item_id}", 'height': 640, 'width': 640}]


def artist_payloads(anchor: datetime) -> List[Dict[str, Any]]:
    return [
        {
            'id': artist_id,
            'name': name,
            'genres': list(genres),
            'popularity': popularity,
            'followers': {'total': followers},
            'images': _image(artist_id),
            'added_at': _iso(anchor - timedelta(days=days_ago)),
        }
        for artist_id, name, genres, popularity, followers, days_ago in ARTISTS
    ]


def track_payloads(anchor: datetime) -> List[Dict[str, Any]]:
    names = {artist_id: name for artist_id, name, *_ in ARTISTS}
    payloads = []
    for track_id, name, artist_ids, album, release, duration, popularity, days_ago, cover in TRACKS:
        album_id = 'sbx-al-' + track_id[-3:]
        payloads.append({
            'id': track_id,
            'name': name,
            'artists': [{'id': artist_id, 'name': names[artist_id]} for artist_id in artist_ids],
            'album': {
                'id': album_id,
                'name': album,
                'release_date': release,
                'images': _image(album_id) if cover else [],
            },
            'duration_ms': duration,
            'popularity': popularity,
            'added_at': _iso(anchor - timedelta(days=days_ago)),
        })
    return payloads


def play_payloads(anchor: datetime, tracks: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
    by_id = {payload['id']: payload for payload in (tracks or track_payloads(anchor))}
    return [
        {'track': by_id[track_id], 'played_at': _iso(anchor - timedelta(hours=hours_ago))}
        for track_id, hours_ago in PLAYS
    ]


def build_dataset(anchor: Optional[datetime] = None) -> SandboxDataset:
    """Build the fixture records with every offset resolved against ``anchor``."""
    anchor = anchor or datetime.now(timezone.utc)
    if anchor.tzinfo is None:
        anchor = anchor.replace(tzinfo=timezone.utc)

    tracks = track_payloads(anchor)
    return SandboxDataset(
        anchor=anchor,
        tracks=tracks_from_payloads(tracks),
        artists=artists_from_payloads(artist_payloads(anchor)),
        plays=play_records_from_payloads(play_payloads(anchor, tracks)),
    )
