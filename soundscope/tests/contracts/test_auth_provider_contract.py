from typing import Any, Dict, List

import pytest

from soundscope.domain.entities import User
from soundscope.domain.ports import AuthBackend, AuthProvider
from soundscope.infrastructure.auth.sandbox import SandboxAuthProvider
from soundscope.infrastructure.auth.spotify import SpotifyAuthProvider


class FakeBackend(AuthBackend):
    def __init__(self) -> None:
        self.logged_in = False

    def login(self) -> Dict[str, Any]:
        self.logged_in = True
        return {'access_token': 'x', 'refresh_token': 'y'}

    def logout(self) -> None:
        self.logged_in = False

    def refresh(self) -> Dict[str, Any]:
        return {'access_token': 'z'}

    def current_user(self) -> Dict[str, Any]:
        return {'id': 'listener', 'display_name': 'Listener', 'country': 'SE'}


def _providers() -> List[AuthProvider]:
    return [SpotifyAuthProvider(FakeBackend()), SandboxAuthProvider(login_delay=0)]


@pytest.mark.asyncio
@pytest.mark.parametrize("provider", _providers(), ids=['live', 'sandbox'])
async def test_login_logout_cycle(provider):
    await provider.login()

    assert isinstance(provider.get_user(), User)
    assert provider.is_loading() is False
    assert provider.get_error() is None

    await provider.refresh_token()
    assert provider.get_error() is None

    provider.logout()
    assert provider.get_user() is None

    provider.clear_error()
    assert provider.get_error() is None
