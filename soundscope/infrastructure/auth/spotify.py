import asyncio
import logging
from typing import Any, Dict, Optional

import requests
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from soundscope.crosscutting.config import ConfigManager
from soundscope.crosscutting.logging import log_error
from soundscope.domain.entities import User
from soundscope.domain.errors import PermanentFailure, SoundScopeError
from soundscope.domain.normalization import sanitize_user
from soundscope.domain.ports import AuthBackend, AuthProvider

logger = logging.getLogger(__name__)

AUTH_ERRORS = (SpotifyException, SpotifyOauthError, requests.exceptions.RequestException, SoundScopeError)


def create_spotify_oauth(config: ConfigManager, open_browser: bool = True) -> SpotifyOAuth:
    """Build the spotipy OAuth manager. Tokens are kept in memory only."""
    client_config = config.get_spotify_client_config()
    return SpotifyOAuth(
        client_id=client_config['client_id'],
        client_secret=client_config['client_secret'],
        redirect_uri=client_config['redirect_uri'],
        scope=config.get_spotify_scope_string(),
        cache_handler=MemoryCacheHandler(),
        open_browser=open_browser,
    )


class SpotipyAuthBackend(AuthBackend):
    """AuthBackend over ``spotipy.oauth2.SpotifyOAuth``."""

    def __init__(self, oauth: SpotifyOAuth, requests_timeout: int = 15):
        self._oauth = oauth
        self._requests_timeout = requests_timeout

    def _cached_token(self) -> Optional[Dict[str, Any]]:
        return self._oauth.validate_token(self._oauth.cache_handler.get_cached_token())

    def login(self) -> Dict[str, Any]:
        token_info = self._cached_token()
        if token_info:
            return token_info

        # Runs the interactive authorization flow and stores the token in the cache handler
        self._oauth.get_access_token(as_dict=False)
        token_info = self._oauth.cache_handler.get_cached_token()
        if not token_info:
            raise PermanentFailure("Spotify authorization did not return a token")
        return token_info

    def logout(self) -> None:
        self._oauth.cache_handler.save_token_to_cache(None)

    def refresh(self) -> Dict[str, Any]:
        token_info = self._oauth.cache_handler.get_cached_token()
        if not token_info or not token_info.get('refresh_token'):
            raise PermanentFailure("No refresh token available; log in first")
        return self._oauth.refresh_access_token(token_info['refresh_token'])

    def current_user(self) -> Dict[str, Any]:
        client = spotipy.Spotify(auth_manager=self._oauth, requests_timeout=self._requests_timeout)
        return client.current_user()


class SpotifyAuthProvider(AuthProvider):
    """Session state on top of an AuthBackend.

    Failures never propagate out of ``login``/``refresh_token``; they are
    logged and kept as the message returned by ``get_error``.
    """

    def __init__(self, backend: AuthBackend):
        self._backend = backend
        self._user: Optional[User] = None
        self._loading = False
        self._error: Optional[str] = None

    async def login(self) -> None:
        self._loading = True
        self._error = None
        try:
            await asyncio.to_thread(self._backend.login)
            profile = await asyncio.to_thread(self._backend.current_user)
            self._user = sanitize_user(profile or {})
            logger.info(f"Spotify login succeeded for user {self._user.id}")
        except AUTH_ERRORS as e:
            self._user = None
            self._error = f"Login failed: {e}"
            log_error(logger, "Spotify login failed", e)
        finally:
            self._loading = False

    def logout(self) -> None:
        self._backend.logout()
        self._user = None
        self._error = None
        logger.info("Spotify session cleared")

    async def refresh_token(self) -> None:
        try:
            await asyncio.to_thread(self._backend.refresh)
            logger.debug("Spotify access token refreshed")
        except AUTH_ERRORS as e:
            self._error = f"Token refresh failed: {e}"
            log_error(logger, "Spotify token refresh failed", e)

    def get_user(self) -> Optional[User]:
        return self._user

    def is_loading(self) -> bool:
        return self._loading

    def get_error(self) -> Optional[str]:
        return self._error

    def clear_error(self) -> None:
        self._error = None
