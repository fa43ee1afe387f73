import logging
from enum import Enum
from typing import Optional, Tuple, Union

import spotipy
from spotipy.oauth2 import SpotifyOAuth

from soundscope.crosscutting.config import ConfigManager, get_config_manager
from soundscope.domain.ports import AuthProvider, DataSource
from soundscope.infrastructure.auth.sandbox import SandboxAuthProvider
from soundscope.infrastructure.auth.spotify import SpotifyAuthProvider, SpotipyAuthBackend, create_spotify_oauth
from soundscope.infrastructure.providers.album_art import AlbumArtService, LastFmAlbumArt
from soundscope.infrastructure.providers.sandbox import SandboxDataSource
from soundscope.infrastructure.providers.spotify import SpotifyCatalog, SpotifyDataSource

logger = logging.getLogger(__name__)


class SourceMode(str, Enum):
    LIVE = "live"
    SANDBOX = "sandbox"


def as_source_mode(mode: Union[str, SourceMode, None], config: Optional[ConfigManager] = None) -> SourceMode:
    if mode is None:
        mode = (config or get_config_manager()).get_source_mode()
    try:
        return SourceMode(mode)
    except ValueError:
        raise ValueError(f"Unknown source mode: {mode!r}") from None


def create_album_art_service(config: ConfigManager) -> AlbumArtService:
    api_key = config.get_lastfm_api_key()
    lookup = LastFmAlbumArt(api_key) if api_key else None
    if lookup is None:
        logger.debug("LASTFM_API_KEY not set, album art falls back to the placeholder")
    return AlbumArtService(lookup, config.get_placeholder_image())


def create_data_source(mode: Union[str, SourceMode, None] = None,
                       config: Optional[ConfigManager] = None,
                       client: Optional[spotipy.Spotify] = None,
                       oauth: Optional[SpotifyOAuth] = None) -> DataSource:
    """Build the data source for an explicit mode.

    ``client`` lets callers inject a ready ``spotipy.Spotify`` for live mode.
    Otherwise one is built over ``oauth``, or over a new OAuth manager from
    the Spotify client configuration.
    """
    config = config or get_config_manager()
    mode = as_source_mode(mode, config)

    if mode is SourceMode.LIVE:
        if client is None:
            client = spotipy.Spotify(auth_manager=oauth or create_spotify_oauth(config), requests_timeout=15)
        logger.info("Using live Spotify data source")
        return SpotifyDataSource(SpotifyCatalog(client))

    artwork = create_album_art_service(config)
    logger.info("Using sandbox data source")
    return SandboxDataSource(artwork=artwork, prefetch_artwork=bool(config.get_lastfm_api_key()))


def create_auth_provider(mode: Union[str, SourceMode, None] = None,
                         config: Optional[ConfigManager] = None,
                         oauth: Optional[SpotifyOAuth] = None) -> AuthProvider:
    config = config or get_config_manager()
    mode = as_source_mode(mode, config)

    if mode is SourceMode.LIVE:
        return SpotifyAuthProvider(SpotipyAuthBackend(oauth or create_spotify_oauth(config)))
    return SandboxAuthProvider()


def create_session(mode: Union[str, SourceMode, None] = None,
                   config: Optional[ConfigManager] = None) -> Tuple[AuthProvider, DataSource]:
    """Build an auth provider and a data source that share one login.

    In live mode both sit on the same ``SpotifyOAuth``, so the token obtained
    by ``login()`` is the one the data source sends.
    """
    config = config or get_config_manager()
    mode = as_source_mode(mode, config)

    oauth = create_spotify_oauth(config) if mode is SourceMode.LIVE else None
    return create_auth_provider(mode, config, oauth=oauth), create_data_source(mode, config, oauth=oauth)
