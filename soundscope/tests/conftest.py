import os
import sys
from datetime import datetime, timezone

import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()


ENV_PREFIXES = ('SPOTIFY_', 'LASTFM_', 'SOUNDSCOPE_')


@pytest.fixture(autouse=True)
def _clear_soundscope_env():
    """Keep developer credentials and overrides out of the tests.

    Tests that need a variable set it explicitly (patch.dict or monkeypatch).
    """
    backup = {k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIXES)}
    for k in backup:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k in [k for k in os.environ if k.startswith(ENV_PREFIXES)]:
            os.environ.pop(k, None)
        os.environ.update(backup)


@pytest.fixture
def fixed_now():
    return datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)
