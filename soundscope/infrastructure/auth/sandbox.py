import asyncio
import logging
from typing import Any, Mapping, Optional

from soundscope.domain.entities import User
from soundscope.domain.normalization import sanitize_user
from soundscope.domain.ports import AuthProvider
from soundscope.infrastructure.providers.sandbox_data import SANDBOX_USER

logger = logging.getLogger(__name__)

LOGIN_DELAY_SECONDS = 0.5


class SandboxAuthProvider(AuthProvider):
    """Always-available session for the sandbox source.

    Starts signed in as the sandbox listener.
    """

    def __init__(self, login_delay: float = LOGIN_DELAY_SECONDS,
                 profile: Optional[Mapping[str, Any]] = None):
        self._login_delay = login_delay
        self._profile = dict(profile or SANDBOX_USER)
        self._user: Optional[User] = sanitize_user(self._profile)
        self._loading = False
        self._error: Optional[str] = None

    async def login(self) -> None:
        self._loading = True
        self._error = None
        try:
            if self._login_delay > 0:
                await asyncio.sleep(self._login_delay)
            self._user = sanitize_user(self._profile)
            logger.info(f"Sandbox login for user {self._user.id}")
        finally:
            self._loading = False

    def logout(self) -> None:
        self._user = None
        logger.info("Sandbox session cleared")

    async def refresh_token(self) -> None:
        # No credentials to renew
        return None

    def get_user(self) -> Optional[User]:
        return self._user

    def is_loading(self) -> bool:
        return self._loading

    def get_error(self) -> Optional[str]:
        return self._error

    def clear_error(self) -> None:
        self._error = None
