"""
Test configuration — ensures repo root is in sys.path + determinism guards.

Every test runs against a fixed clock (Wednesday 2025-03-12, 10:00 UTC) and
an isolated METRONOME_HOME, so nothing reads the developer's real settings.
"""

import os
import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import metronome.* and tests.fixtures.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from metronome.client import MetronomeClient  # noqa: E402
from metronome.config import Settings  # noqa: E402
from metronome.notices import NoticeBoard  # noqa: E402
from metronome.store import EntityStore  # noqa: E402
from tests.fixtures import NOW, FakeCollaborator, seed_rows  # noqa: E402


# =============================================================================
# DETERMINISM GUARD: isolate settings from the developer machine
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Point METRONOME_HOME at a temp dir and clear METRONOME_* overrides."""
    monkeypatch.setenv("METRONOME_HOME", str(tmp_path / "home"))
    for key in list(os.environ):
        if key.startswith("METRONOME_") and key != "METRONOME_HOME":
            monkeypatch.delenv(key, raising=False)
    return tmp_path / "home"


class FakeMonotonic:
    """Hand-driven monotonic clock for notice expiry."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def monotonic():
    return FakeMonotonic()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def collaborator():
    return FakeCollaborator(seed_rows())


@pytest.fixture
def make_client(collaborator):
    """Factory: a MetronomeClient wired to the fake collaborator.

    Build it inside the coroutine under test so it binds to that event loop.
    """

    def factory() -> MetronomeClient:
        return MetronomeClient(transport=collaborator.transport())

    return factory


@pytest.fixture
def store():
    return EntityStore()


@pytest.fixture
def notices(monotonic):
    return NoticeBoard(clock=monotonic)
