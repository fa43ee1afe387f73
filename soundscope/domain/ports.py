from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Union

from .entities import (
    Artist,
    GenreAggregate,
    LibraryStats,
    PlayRecord,
    TimeDimension,
    Track,
    User,
)

TimeRange = Union[str, TimeDimension, None]


class DataSource(Protocol):
    """Port every listening-data source satisfies.

    The presentation layer talks only to this contract, so the live Spotify
    source and the sandbox fixture source are interchangeable. Implementations
    map provider payloads into domain entities before returning them.
    """

    async def get_top_tracks(self, limit: int = 50, time_range: TimeRange = None) -> List[Track]:
        """Return up to ``limit`` top tracks for the given range."""

    async def get_top_artists(self, limit: int = 50, time_range: TimeRange = None) -> List[Artist]:
        """Return up to ``limit`` top artists for the given range."""

    async def get_recently_played(self, limit: int = 50) -> List[PlayRecord]:
        """Return up to ``limit`` listen events, newest first."""

    def get_stats(self) -> LibraryStats:
        """Return pre-computed library statistics (may be a placeholder)."""

    def get_genre_analysis(self) -> List[GenreAggregate]:
        """Return pre-computed genre aggregates (may be empty)."""

    def clear_cache(self) -> None:
        """Invalidate any response cache held by the source."""


class AuthProvider(Protocol):
    """Port for the current user/session capability set."""

    async def login(self) -> None:
        """Authenticate the listener."""

    def logout(self) -> None:
        """Forget the current session."""

    async def refresh_token(self) -> None:
        """Renew the session credentials if the provider has any."""

    def get_user(self) -> Optional[User]:
        """Return the signed-in user, or None."""

    def is_loading(self) -> bool:
        """True while a login is in progress."""

    def get_error(self) -> Optional[str]:
        """Return the last auth error message, if any."""

    def clear_error(self) -> None:
        """Reset the last auth error."""


class CatalogClient(Protocol):
    """Remote catalog consumed by the live data source."""

    def top_tracks(self, time_range: str, limit: int) -> List[Track]:
        """Fetch the listener's top tracks for a Spotify time range."""

    def top_artists(self, time_range: str, limit: int) -> List[Artist]:
        """Fetch the listener's top artists for a Spotify time range."""

    def recently_played(self, limit: int) -> List[PlayRecord]:
        """Fetch recent listen events."""

    def clear_cache(self) -> None:
        """Drop memoized responses."""


class AlbumArtLookup(Protocol):
    """External cover-art lookup. Raises on failure."""

    def lookup(self, artist: str, album: Optional[str] = None, size: str = "large") -> str:
        """Return an image URL for the artist/album pair."""


class AuthBackend(Protocol):
    """External authorization subsystem wrapped by the live auth provider."""

    def login(self) -> Dict[str, Any]:
        """Run the authorization flow and return token info."""

    def logout(self) -> None:
        """Discard the current token."""

    def refresh(self) -> Dict[str, Any]:
        """Refresh the access token and return the new token info."""

    def current_user(self) -> Dict[str, Any]:
        """Return the raw profile payload of the signed-in user."""
