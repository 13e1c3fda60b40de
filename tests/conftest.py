import importlib
import sys
from pathlib import Path

import pytest

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from fakes import FakeNetflix  # noqa: E402


@pytest.fixture
def fresh_config(monkeypatch):
    """
    Reload config after clearing credential variables so the host environment does not leak in.
    """
    for key in ("NETFLIX_EMAIL", "NETFLIX_PASSWORD", "NETFLIX_COOKIE"):
        monkeypatch.delenv(key, raising=False)
    import netflix_session.config as config

    importlib.reload(config)
    return config


@pytest.fixture
def fake():
    return FakeNetflix()


@pytest.fixture
def netflix(fake):
    """Unauthenticated client talking to the fake front end."""
    from netflix_session.client import NetflixClient

    client = NetflixClient(client=fake.client(), cookie="")
    yield client
    client.close()


@pytest.fixture
def logged_in(netflix, fake):
    """Client bootstrapped from an existing session cookie; recorded requests are reset."""
    from netflix_session.session import Credentials

    netflix.login(Credentials(cookie="NetflixId=abc; SecureNetflixId=def"))
    fake.requests.clear()
    return netflix
