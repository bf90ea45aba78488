"""Activity store port — abstract interface for the reminder scan's reads.

Core modules depend on this protocol, never on a specific database.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from elepad.data.models import RecurringActivity, SingleOccurrenceActivity


class StorageError(Exception):
    """Raised when any activity store operation fails."""


class ActivityStorePort(Protocol):
    """Reads needed by one reminder scan tick."""

    async def fetch_single_due(
        self, window_start: datetime, window_end: datetime
    ) -> list[SingleOccurrenceActivity]: ...

    async def fetch_recurring_candidates(
        self, upper_bound: datetime
    ) -> list[RecurringActivity]: ...

    async def fetch_completed_ids(self, completed_date: str) -> set[str]: ...
