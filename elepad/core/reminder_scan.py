"""
Elepad Reminders — Hourly reminder scan.

One tick: read the candidate activities, decide which ones occur today
inside the [now+1h, now+2h) window and are not completed yet, and send an
`activity_reminder` notification to each assignee.

The scan is stateless and provider-agnostic: it depends on the
ActivityStorePort and NotificationPort protocols, which are passed in on
every call. Running it twice in the same window yields the same due set.

Run one tick from cron with:

    python -m elepad.core.reminder_scan
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timezone, tzinfo
from typing import TYPE_CHECKING

from elepad.core.civil_date import as_utc, resolve_timezone, to_civil_date
from elepad.core.occurrence import occurs_on
from elepad.core.reminder_window import in_notification_window, notification_window
from elepad.data.models import (
    Activity,
    NotificationRequest,
    RecurringActivity,
    ScanResult,
)

if TYPE_CHECKING:
    from elepad.ports.activity_port import ActivityStorePort
    from elepad.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pure selection
# ---------------------------------------------------------------------------


def select_due_recurring(
    candidates: list[RecurringActivity],
    now: datetime,
    today: date,
    completed_ids: set[str],
    tz: tzinfo | None = None,
) -> list[RecurringActivity]:
    """Filter recurring candidates down to the ones to remind about now."""
    due: list[RecurringActivity] = []
    for activity in candidates:
        if activity.rule is None:
            logger.debug("Activity %s has no usable rule (%r), skipped",
                         activity.id, activity.rule_text)
            continue
        if not occurs_on(activity.rule, activity.starts_at, activity.ends_at, today, tz):
            continue
        if not in_notification_window(activity.starts_at, now):
            continue
        if activity.id in completed_ids:
            logger.debug("Activity %s already completed on %s", activity.id, today)
            continue
        due.append(activity)
    return due


def build_reminder(activity: Activity) -> NotificationRequest:
    """Build the reminder notification for an activity with an assignee."""
    return NotificationRequest(
        user_id=activity.assigned_to,
        event_type="activity_reminder",
        entity_type="activity",
        entity_id=activity.id,
        title=activity.title,
        body=activity.description,
    )


# ---------------------------------------------------------------------------
# Tick
# ---------------------------------------------------------------------------


async def run_reminder_scan(
    store: ActivityStorePort,
    notifier: NotificationPort,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> ScanResult:
    """Run one reminder tick and return what happened.

    Never raises for storage or delivery problems: a failed read aborts
    this tick only (the next scheduled tick tries again), and a failed
    dispatch is logged without affecting the other reminders.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    now = as_utc(now)
    if tz is None:
        from elepad.config import settings
        tz = resolve_timezone(settings.TIMEZONE)

    window_start, window_end = notification_window(now)
    today = to_civil_date(now, tz)

    # 1. Independent reads, issued together
    try:
        single_due, recurring, completed_ids = await asyncio.gather(
            store.fetch_single_due(window_start, window_end),
            store.fetch_recurring_candidates(window_end),
            store.fetch_completed_ids(today.isoformat()),
        )
    except Exception as exc:
        logger.error("Reminder scan aborted, storage read failed: %s", exc)
        return ScanResult(aborted=True)

    # 2. Evaluate recurring series
    recurring_due = select_due_recurring(recurring, now, today, completed_ids, tz)
    due: list[Activity] = [*single_due, *recurring_due]

    # 3. Dispatch, all-settle
    targets = [a for a in due if a.assigned_to]
    outcomes = await asyncio.gather(
        *(notifier.create_notification(build_reminder(a)) for a in targets),
        return_exceptions=True,
    )

    failed = 0
    for activity, outcome in zip(targets, outcomes):
        if isinstance(outcome, Exception):
            failed += 1
            logger.error(
                "Failed to send reminder for activity %s to %s: %s",
                activity.id, activity.assigned_to, outcome,
            )

    result = ScanResult(due=due, dispatched=len(targets) - failed, failed=failed)
    logger.info(
        "Reminder scan %s: %d single + %d recurring due, %d sent, %d failed",
        now.isoformat(timespec="minutes"), len(single_due), len(recurring_due),
        result.dispatched, result.failed,
    )
    return result


# ---------------------------------------------------------------------------
# Cron entry point
# ---------------------------------------------------------------------------


async def _scan_once() -> ScanResult:
    """Run a single tick against the configured database."""
    from elepad.adapters.sqlite_store import SQLiteActivityStore
    from elepad.adapters.telegram_notifier import TelegramNotifier
    from elepad.config import settings
    from elepad.data.db import ActivityDB, NotificationDB

    store = SQLiteActivityStore(ActivityDB())
    notification_db = NotificationDB()

    token = settings.TELEGRAM_BOT_TOKEN
    if not token or token.startswith("your-"):
        logger.warning("No Telegram token configured, reminders go to the inbox only")
        return await run_reminder_scan(store, TelegramNotifier(None, notification_db))

    from telegram import Bot

    async with Bot(token) as bot:
        return await run_reminder_scan(store, TelegramNotifier(bot, notification_db))


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    asyncio.run(_scan_once())
