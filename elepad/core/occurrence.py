"""Occurrence matcher — does a recurring activity happen on a given day?

All arithmetic is on local civil dates, never on instants, so the answer
does not depend on the time of day of the check. The rules are deliberately
literal:

- DAILY with BYDAY fires on every listed weekday; INTERVAL is ignored.
- MONTHLY fires only on the start's day-of-month; short months are skipped.
- YEARLY fires only on the start's (month, day); a Feb 29 start only
  recurs in leap years.
- The end date itself is still an occurrence day.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, tzinfo

from elepad.core.civil_date import as_utc, to_civil_date
from elepad.core.rrule import WEEKDAY_CODES
from elepad.data.models import (
    Activity,
    RecurrenceRule,
    RecurringActivity,
    SingleOccurrenceActivity,
)

logger = logging.getLogger(__name__)


def _weekday_code(day: date) -> str:
    return WEEKDAY_CODES[day.weekday()]


def occurs_on(
    rule: RecurrenceRule | None,
    starts_at: datetime,
    ends_at: datetime | None,
    day: date,
    tz: tzinfo | None = None,
) -> bool:
    """Return True if a series anchored at `starts_at` has an occurrence on `day`.

    Args:
        rule: Parsed recurrence rule; None never matches.
        starts_at: First occurrence instant (UTC).
        ends_at: Optional last instant; the series stays active through its
                 local civil day.
        day: Candidate local civil date.
        tz: Local zone used to turn the anchors into civil dates.
    """
    if rule is None:
        return False

    start = to_civil_date(starts_at, tz)
    if day < start:
        return False

    if ends_at is not None and day > to_civil_date(ends_at, tz):
        return False

    days_diff = (day - start).days
    interval = rule.interval

    if rule.frequency == "DAILY":
        if rule.by_weekday:
            return _weekday_code(day) in rule.by_weekday
        return days_diff % interval == 0

    if rule.frequency == "WEEKLY":
        week_index = days_diff // 7
        if week_index % interval != 0:
            return False
        if rule.by_weekday:
            return _weekday_code(day) in rule.by_weekday
        return day.weekday() == start.weekday()

    if rule.frequency == "MONTHLY":
        months_diff = (day.year - start.year) * 12 + (day.month - start.month)
        if months_diff < 0 or months_diff % interval != 0:
            return False
        return day.day == start.day

    if rule.frequency == "YEARLY":
        years_diff = day.year - start.year
        if years_diff < 0 or years_diff % interval != 0:
            return False
        return (day.month, day.day) == (start.month, start.day)

    return False


def activities_on(
    activities: list[Activity],
    day: date,
    tz: tzinfo | None = None,
) -> list[Activity]:
    """Return the activities that take place on local `day`, earliest first.

    Single-occurrence activities match their own civil date; recurring ones
    go through `occurs_on`. Ordering uses the UTC time of day, which is the
    time every recurrence keeps.
    """
    result: list[Activity] = []
    for activity in activities:
        if isinstance(activity, RecurringActivity):
            if occurs_on(activity.rule, activity.starts_at, activity.ends_at, day, tz):
                result.append(activity)
        elif isinstance(activity, SingleOccurrenceActivity):
            if to_civil_date(activity.starts_at, tz) == day:
                result.append(activity)

    result.sort(key=lambda a: as_utc(a.starts_at).time())
    logger.debug("%d of %d activities occur on %s", len(result), len(activities), day)
    return result
