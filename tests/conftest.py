"""Shared test fixtures and configuration.

Sets up fake environment variables before any elepad import, and provides
common fixtures like temp databases.
"""

import os

# Patch env vars BEFORE any elepad imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:fake-token-for-tests")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("TIMEZONE", "-03:00")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")

import pytest


@pytest.fixture
def activity_db(tmp_path):
    """Return an ActivityDB instance backed by a temp file."""
    from elepad.data.db import ActivityDB
    return ActivityDB(db_path=str(tmp_path / "test_activities.db"))


@pytest.fixture
def notification_db(tmp_path):
    """Return a NotificationDB instance backed by a temp file."""
    from elepad.data.db import NotificationDB
    return NotificationDB(db_path=str(tmp_path / "test_notifications.db"))


@pytest.fixture
def utc_minus_3():
    """The historical fixed UTC-3 zone."""
    from elepad.core.civil_date import resolve_timezone
    return resolve_timezone("-03:00")
