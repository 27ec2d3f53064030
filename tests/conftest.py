"""Pytest configuration for planpilot tests."""

from contextlib import contextmanager
from pathlib import Path

import pytest
from loguru import logger

from planpilot.core.db import Db, open_db
from planpilot.core.store import PlanStore

logger.remove()

SESSION_A = "session-a"
SESSION_B = "session-b"


def pytest_collection_modifyitems(config, items):
    """Mark tests by directory, then set per-marker timeouts: unit=1s, integration=5s."""
    for item in items:
        parts = Path(str(item.fspath)).parts
        if "unit" in parts:
            item.add_marker(pytest.mark.unit)
        elif "integration" in parts:
            item.add_marker(pytest.mark.integration)

        if "unit" in item.keywords:
            item.add_marker(pytest.mark.timeout(1))
        elif "integration" in item.keywords:
            item.add_marker(pytest.mark.timeout(5))


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep every test away from the real ~/.claude and ~/.planpilot."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("PLANPILOT_CONFIG", str(tmp_path / "planpilot.yml"))
    for name in ("PLANPILOT_HOME", "PLANPILOT_LOG_LEVEL", "CLAUDE_PLUGIN_ROOT"):
        monkeypatch.delenv(name, raising=False)
    yield
    logger.remove()


@pytest.fixture
def db(tmp_path):
    """Store for SESSION_A in a temporary directory."""
    database = Db(tmp_path / "store" / "planpilot.db", SESSION_A)
    database.initialize()
    yield database
    database.close()


@pytest.fixture
def store(db):
    return PlanStore(db)


@pytest.fixture
def claude_home(tmp_path):
    return tmp_path / ".claude"


@pytest.fixture
def session_store(claude_home):
    """Open the shared store as a given session, one "invocation" per block."""

    @contextmanager
    def _open(session_id):
        with open_db(claude_home, session_id) as database:
            yield PlanStore(database)

    return _open
