"""Pytest configuration for cliplink tests."""
import sys
from pathlib import Path

# Flat layout: make the top-level modules importable without installing
_PROJECT_ROOT = Path(__file__).parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))

import pytest
from fastapi.testclient import TestClient

from cliplink_server import DEFAULT_CONFIG, create_app
from id_allocator import CLIPBOARD_KEY
from kv_store import MemoryStore
from share_manager import ShareManager

START_MS = 1_750_000_000_000


class FakeClock:
    """Millisecond clock the tests move by hand."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, minutes: float = 0, ms: int = 0) -> None:
        self.now += int(minutes * 60_000) + ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def manager(store, clock):
    return ShareManager(store, clock=clock)


@pytest.fixture
def clipboard(store):
    """Put text on the clipboard; shares snapshot whatever is there."""
    def _set(text: str) -> None:
        store.put(CLIPBOARD_KEY, text)
    return _set


@pytest.fixture
def config():
    return {
        **DEFAULT_CONFIG,
        "persistence": False,
        "username": "admin",
        "password": "hunter2",
        "secure_cookies": False,
        "public_url": "https://clip.example.com",
    }


@pytest.fixture
def app(config, store, clock):
    return create_app(config, store=store, clock=clock)


@pytest.fixture
def anon_client(app):
    return TestClient(app)


@pytest.fixture
def client(app):
    """TestClient holding a logged-in administrator session."""
    client = TestClient(app)
    resp = client.post(
        "/login",
        data={"username": "admin", "password": "hunter2"},
        follow_redirects=False,
    )
    assert resp.status_code == 302
    return client
