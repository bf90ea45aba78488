"""SQLite activity store adapter — implements ActivityStorePort.

Wraps a synchronous ActivityDB; every read runs in a worker thread so the
scan can issue its reads concurrently without blocking the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime

from elepad.data.db import ActivityDB
from elepad.data.models import RecurringActivity, SingleOccurrenceActivity
from elepad.ports.activity_port import StorageError

logger = logging.getLogger(__name__)


class SQLiteActivityStore:
    """SQLite implementation of ActivityStorePort."""

    def __init__(self, db: ActivityDB) -> None:
        self._db = db

    async def _run(self, what: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as exc:
            logger.error("Activity store: %s failed: %s", what, exc)
            raise StorageError(f"{what} failed: {exc}") from exc

    async def fetch_single_due(
        self, window_start: datetime, window_end: datetime
    ) -> list[SingleOccurrenceActivity]:
        return await self._run(
            "single-occurrence query", self._db.list_single_due, window_start, window_end,
        )

    async def fetch_recurring_candidates(
        self, upper_bound: datetime
    ) -> list[RecurringActivity]:
        return await self._run(
            "recurring query", self._db.list_recurring_candidates, upper_bound,
        )

    async def fetch_completed_ids(self, completed_date: str) -> set[str]:
        return await self._run(
            "completions query", self._db.completed_activity_ids, completed_date,
        )
