import os
from typing import Dict, Any, Optional
from pathlib import Path

from dotenv import dotenv_values


DEFAULT_SOURCE_MODE = 'sandbox'
DEFAULT_PLACEHOLDER_IMAGE = 'https://placehold.co/300x300?text=No+Cover'
SOURCE_MODES = ('live', 'sandbox')


class ConfigError(Exception):
    """Configuration error."""
    pass


class ConfigManager:
    """Reads application settings from ``<config_dir>/.env`` and the environment.

    Process environment variables win over values from the file. Nothing is
    written back; tokens live only in memory for the lifetime of the process.
    """

    def __init__(self, config_dir: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / '.soundscope'
        self.env_file = self.config_dir / '.env'
        self._environ = environ if environ is not None else os.environ

    def get_spotify_scopes(self) -> list:
        """Get minimal required Spotify scopes."""
        return [
            'user-top-read',              # Top tracks and artists
            'user-read-recently-played',  # Listening history
            'user-read-private',          # Profile for the signed-in user
        ]

    def get_spotify_scope_string(self) -> str:
        return ' '.join(self.get_spotify_scopes())

    def validate_spotify_scopes(self, scopes: str) -> bool:
        """Validate that provided scopes include all required ones."""
        provided_scopes = set(scopes.split())
        required_scopes = set(self.get_spotify_scopes())

        return required_scopes.issubset(provided_scopes)

    def get_missing_spotify_scopes(self, scopes: str) -> list:
        provided_scopes = set(scopes.split())
        return [scope for scope in self.get_spotify_scopes() if scope not in provided_scopes]

    def load_env_vars(self) -> Dict[str, str]:
        """Load variables from the .env file, then overlay the process environment."""
        env_vars: Dict[str, str] = {}

        if self.env_file.exists():
            try:
                values = dotenv_values(self.env_file)
            except (OSError, UnicodeDecodeError) as e:
                raise ConfigError(f"Failed to load .env file {self.env_file}: {e}")
            env_vars.update({k: v for k, v in values.items() if v is not None})

        for key, value in self._environ.items():
            if key.startswith(('SPOTIFY_', 'LASTFM_', 'SOUNDSCOPE_')):
                env_vars[key] = value

        return env_vars

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.load_env_vars().get(key)
        return value if value else default

    def get_spotify_client_config(self) -> Dict[str, str]:
        """Get Spotify client configuration."""
        env_vars = self.load_env_vars()

        client_id = env_vars.get('SPOTIFY_CLIENT_ID')
        client_secret = env_vars.get('SPOTIFY_CLIENT_SECRET')
        redirect_uri = env_vars.get('SPOTIFY_REDIRECT_URI')

        if not client_id:
            raise ConfigError("SPOTIFY_CLIENT_ID not found in environment")
        if not client_secret:
            raise ConfigError("SPOTIFY_CLIENT_SECRET not found in environment")
        if not redirect_uri:
            raise ConfigError("SPOTIFY_REDIRECT_URI not found in environment")

        return {
            'client_id': client_id,
            'client_secret': client_secret,
            'redirect_uri': redirect_uri
        }

    def get_lastfm_api_key(self) -> Optional[str]:
        """Last.fm key for cover lookups. Optional: without it covers stay as placeholders."""
        return self.get('LASTFM_API_KEY')

    def get_source_mode(self) -> str:
        mode = (self.get('SOUNDSCOPE_SOURCE', DEFAULT_SOURCE_MODE) or '').strip().lower()
        if mode not in SOURCE_MODES:
            raise ConfigError(f"SOUNDSCOPE_SOURCE must be one of {', '.join(SOURCE_MODES)}, got {mode!r}")
        return mode

    def get_placeholder_image(self) -> str:
        return self.get('SOUNDSCOPE_PLACEHOLDER_IMAGE', DEFAULT_PLACEHOLDER_IMAGE)

    def get_log_level(self) -> str:
        return self.get('SOUNDSCOPE_LOG_LEVEL', 'INFO').upper()

    def validate_configuration(self) -> Dict[str, bool]:
        """Validate that all required configuration is present."""
        env_vars = self.load_env_vars()

        return {
            'spotify_client_id': bool(env_vars.get('SPOTIFY_CLIENT_ID')),
            'spotify_client_secret': bool(env_vars.get('SPOTIFY_CLIENT_SECRET')),
            'spotify_redirect_uri': bool(env_vars.get('SPOTIFY_REDIRECT_URI')),
            'lastfm_api_key': bool(env_vars.get('LASTFM_API_KEY')),
        }

    def get_config_summary(self) -> Dict[str, Any]:
        """Get configuration summary (without sensitive data)."""
        validation = self.validate_configuration()

        return {
            'config_dir': str(self.config_dir),
            'env_file': str(self.env_file),
            'validation': validation,
            'spotify_scopes': self.get_spotify_scopes(),
            'source_mode': self.get('SOUNDSCOPE_SOURCE', DEFAULT_SOURCE_MODE),
            'live_ready': all(validation[k] for k in (
                'spotify_client_id', 'spotify_client_secret', 'spotify_redirect_uri')),
        }


# Global instance
config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    """Get global config manager instance."""
    return config_manager


def setup_config(config_dir: Optional[str] = None) -> ConfigManager:
    """Setup configuration with custom directory."""
    global config_manager
    config_manager = ConfigManager(config_dir)
    return config_manager
