"""Pytest configuration and fixtures for do-in-time tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from do_in_time.db import create_engine, create_session_factory
from do_in_time.db.models import Base
from do_in_time.models.task import BrowserType, Task
from do_in_time.services.browser import BrowserLauncher
from do_in_time.services.events import TaskEventBroadcaster
from do_in_time.services.executor import TaskExecutor
from do_in_time.services.task_store import TaskStore


@pytest.fixture
async def db_engine(tmp_path):
    """Create a file-backed SQLite database engine for testing."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session_factory(db_engine):
    """Create a session factory for testing."""
    return create_session_factory(db_engine)


@pytest.fixture
async def db_session(session_factory):
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def broadcaster():
    """Create a fresh TaskEventBroadcaster instance."""
    return TaskEventBroadcaster()


@pytest.fixture
def store(session_factory, broadcaster):
    """Create a TaskStore backed by the test database."""
    return TaskStore(session_factory, broadcaster=broadcaster)


@pytest.fixture
def mock_launcher():
    """Create a mock BrowserLauncher."""
    launcher = MagicMock(spec=BrowserLauncher)
    launcher.open = AsyncMock()
    launcher.close_by_url = AsyncMock()
    launcher.close_all = AsyncMock()
    launcher.default_browser = AsyncMock(return_value=BrowserType.FIREFOX)
    launcher.installed_browsers.return_value = [BrowserType.CHROME, BrowserType.FIREFOX]
    return launcher


@pytest.fixture
def executor(store, mock_launcher, broadcaster):
    """Create a TaskExecutor with a mock launcher."""
    return TaskExecutor(store, mock_launcher, broadcaster=broadcaster)


@pytest.fixture
def utcnow():
    """Current time truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


@pytest.fixture
def make_task(utcnow):
    """Build an unsaved Task, defaulting to a one-shot Chrome open in an hour."""

    def _make_task(**overrides) -> Task:
        values = {
            "name": "Standup",
            "browser": BrowserType.CHROME,
            "url": "https://meet.example.com/standup",
            "start_time": utcnow + timedelta(hours=1),
        }
        values.update(overrides)
        return Task(**values)

    return _make_task
