"""Pytest configuration and shared fixtures for branchwatch tests."""

import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from branchwatch.backends.base import PaneInspector
from branchwatch.backends.tmux import TmuxError
from branchwatch.models.session import SessionRecord
from branchwatch.services.session_registry import SessionRegistry


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeInspector(PaneInspector):
    """In-memory PaneInspector driven by the test."""

    def __init__(self):
        self.outputs: dict[str, str] = {}
        self.dead: set[str] = set()
        self.broken: set[str] = set()
        self.attached_ttys: dict[str, str] = {}
        self.input_ages: dict[str, int | None] = {}
        self.capture_calls = 0

    def session_exists(self, name: str) -> bool:
        if name in self.broken:
            raise TmuxError("has-session", "server not responding")
        return name not in self.dead

    def capture_pane(self, name: str, lines: int = 50) -> str:
        self.capture_calls += 1
        if name not in self.outputs:
            raise TmuxError("capture-pane", "can't find pane")
        return self.outputs[name]

    def is_attached(self, name: str) -> bool:
        return name in self.attached_ttys

    def attached_client_tty(self, name: str) -> str:
        return self.attached_ttys.get(name, "")

    def seconds_since_last_input(self, name: str) -> int | None:
        return self.input_ages.get(name)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for state files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def registry(temp_dir):
    """Create a SessionRegistry with temporary storage."""
    return SessionRegistry(temp_dir / "sessions.yaml")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def inspector():
    return FakeInspector()


@pytest.fixture
def make_record():
    """Factory for SessionRecords on distinct branches."""

    def _make(branch: str = "feature/login", **overrides) -> SessionRecord:
        record = SessionRecord.new(branch, "/repo", f"/repo-worktrees/{branch}")
        return record.model_copy(update=overrides)

    return _make
