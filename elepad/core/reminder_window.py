"""Notification window — should today's occurrence be reminded about now?

A scan tick at `now` reminds about everything starting in the half-open
window [now + 1h, now + 2h). Recurring activities keep the wall-clock time
of their first occurrence, so today's occurrence is rebuilt from today's
UTC date and the UTC hour:minute of `starts_at`.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from elepad.core.civil_date import as_utc

WINDOW_START = timedelta(hours=1)
WINDOW_END = timedelta(hours=2)

# Consecutive ticks cover adjoining windows, no gaps or overlaps.
SCAN_INTERVAL = WINDOW_END - WINDOW_START


def notification_window(now: datetime) -> tuple[datetime, datetime]:
    """Return the (inclusive start, exclusive end) reminder window in UTC."""
    now = as_utc(now)
    return now + WINDOW_START, now + WINDOW_END


def todays_occurrence(starts_at: datetime, now: datetime) -> datetime:
    """Today's (UTC date of `now`) instant at the activity's UTC hour:minute."""
    now = as_utc(now)
    starts_at = as_utc(starts_at)
    return now.replace(
        hour=starts_at.hour, minute=starts_at.minute, second=0, microsecond=0,
    )


def in_notification_window(starts_at: datetime, now: datetime) -> bool:
    """True if today's occurrence of `starts_at` falls in the current window."""
    window_start, window_end = notification_window(now)
    return window_start <= todays_occurrence(starts_at, now) < window_end
