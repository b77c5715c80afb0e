"""Shared test fixtures and configuration.

Sets up fake environment variables so standup.config doesn't sys.exit(),
and provides common fixtures like a temp DB.
"""

import os

# Patch env vars BEFORE any standup imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("LLM_API_KEY", "")
os.environ.setdefault("LLM_PROVIDER", "gemini")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("DEFAULT_TZ", "America/Bogota")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")

from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest


def local_epoch(year, month, day, hour, minute=0, tz="America/Bogota"):
    """Epoch seconds of a wall-clock time in the given timezone."""
    return int(datetime(year, month, day, hour, minute, tzinfo=ZoneInfo(tz)).timestamp())


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_standup.db")


@pytest.fixture
def standup_db(tmp_db_path):
    """Return a StandupDB instance backed by a temp file."""
    from standup.data.db import StandupDB
    return StandupDB(db_path=tmp_db_path)


@pytest.fixture
def notifier():
    """NotificationPort double recording every send."""
    mock = MagicMock()
    mock.send_text = AsyncMock()
    mock.send_chunks = AsyncMock()
    return mock


@pytest.fixture
def at():
    """Build epoch seconds from a local wall-clock time: at(2025, 3, 10, 8, 5)."""
    return local_epoch
