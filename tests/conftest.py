"""Shared pytest configuration and fixtures for tests."""

import sys
import io
from pathlib import Path

import pytest

# Fix Windows console encoding
if sys.platform == "win32":
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8')
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8')

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from duely.core import service  # noqa: E402


@pytest.fixture(autouse=True)
def temp_db(monkeypatch, tmp_path):
    """Use a temporary database (and log dir) for every test."""
    db_path = tmp_path / "test_duely.db"
    monkeypatch.setenv("DUELY_DB_PATH", str(db_path))
    monkeypatch.setenv("DUELY_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("DUELY_USER", raising=False)
    monkeypatch.delenv("DUELY_RETENTION_DAYS", raising=False)
    yield db_path


@pytest.fixture
def owner():
    return "alice"


@pytest.fixture
def make_task(owner):
    """Create a task for `owner` with explicit dates (no dependence on the clock)."""

    def _make(title="Task", start="2025-01-01", end="2025-01-10", owner_id=None, **kwargs):
        return service.create_task(
            owner_id or owner, title, start_date=start, end_date=end, **kwargs
        )

    return _make
