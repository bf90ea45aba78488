"""
Elepad Reminders — SQLite storage.

Activities, the frequency catalog and per-day completions live in one
database; the notification inbox and Telegram chat links live alongside.
Instants are stored as UTC ISO-8601 strings with second precision, so
plain string comparison orders them correctly.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

from elepad.core.civil_date import as_utc
from elepad.core.rrule import parse_rule
from elepad.data.models import (
    Activity,
    ActivityCompletion,
    Frequency,
    Notification,
    NotificationRequest,
    RecurringActivity,
    SingleOccurrenceActivity,
)

logger = logging.getLogger(__name__)


def to_db_instant(instant: datetime) -> str:
    """Serialize an instant in the sortable form used by every table."""
    return as_utc(instant).replace(microsecond=0).isoformat()


def _window_bound(instant: datetime) -> str:
    """Serialize a query bound, rounding sub-second instants up.

    Stored instants are whole seconds, so `starts_at >= ceil(x)` and
    `starts_at < ceil(x)` are exact for any `x`.
    """
    instant = as_utc(instant)
    if instant.microsecond:
        instant = instant.replace(microsecond=0) + timedelta(seconds=1)
    return instant.isoformat()


def from_db_instant(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    return as_utc(datetime.fromisoformat(raw))


def _now() -> str:
    return to_db_instant(datetime.now(timezone.utc))


def _new_id() -> str:
    return str(uuid.uuid4())


class _SQLiteDB:
    """Shared connection handling; subclasses create their own tables."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from elepad.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        raise NotImplementedError


class ActivityDB(_SQLiteDB):
    """SQLite-backed storage for activities, frequencies and completions."""

    _SELECT_ACTIVITY = """
        SELECT a.*, f.rrule AS rrule
        FROM activities a
        LEFT JOIN frequencies f ON f.id = a.frequency_id
    """

    def _init_db(self) -> None:
        """Create the activity tables if they don't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS frequencies (
                    id     TEXT PRIMARY KEY,
                    label  TEXT NOT NULL,
                    rrule  TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS activities (
                    id            TEXT    PRIMARY KEY,
                    title         TEXT    NOT NULL,
                    description   TEXT,
                    starts_at     TEXT    NOT NULL,
                    ends_at       TEXT,
                    completed     INTEGER NOT NULL DEFAULT 0,
                    created_by    TEXT    NOT NULL,
                    assigned_to   TEXT,
                    frequency_id  TEXT REFERENCES frequencies(id),
                    created_at    TEXT    NOT NULL,
                    updated_at    TEXT    NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS activity_completions (
                    id              TEXT PRIMARY KEY,
                    activity_id     TEXT NOT NULL,
                    user_id         TEXT NOT NULL,
                    completed_date  TEXT NOT NULL,
                    created_at      TEXT NOT NULL,
                    UNIQUE (activity_id, user_id, completed_date)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_activities_starts_at ON activities (starts_at)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_completions_date "
                "ON activity_completions (completed_date)"
            )
        logger.debug("Activity tables initialized at %s", self._db_path)

    # -- rows -----------------------------------------------------------------

    @staticmethod
    def _row_to_activity(row: sqlite3.Row) -> Activity:
        common = dict(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            starts_at=from_db_instant(row["starts_at"]),
            ends_at=from_db_instant(row["ends_at"]),
            created_by=row["created_by"],
            assigned_to=row["assigned_to"],
            completed=bool(row["completed"]),
        )
        if row["frequency_id"] is None:
            return SingleOccurrenceActivity(**common)
        return RecurringActivity(
            frequency_id=row["frequency_id"],
            rule_text=row["rrule"],
            rule=parse_rule(row["rrule"]),
            **common,
        )

    @staticmethod
    def _row_to_completion(row: sqlite3.Row) -> ActivityCompletion:
        return ActivityCompletion(
            id=row["id"],
            activity_id=row["activity_id"],
            user_id=row["user_id"],
            completed_date=row["completed_date"],
            created_at=row["created_at"],
        )

    # -- frequencies ----------------------------------------------------------

    def add_frequency(self, label: str, rrule: str | None = None) -> Frequency:
        """Insert a catalog entry such as ("Every Monday", "FREQ=WEEKLY;BYDAY=MO")."""
        frequency = Frequency(id=_new_id(), label=label, rrule=rrule)
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO frequencies (id, label, rrule) VALUES (?, ?, ?)",
                (frequency.id, frequency.label, frequency.rrule),
            )
        logger.info("Frequency added: %s '%s' (%s)", frequency.id, label, rrule)
        return frequency

    def get_frequency(self, frequency_id: str) -> Frequency | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM frequencies WHERE id = ?", (frequency_id,)
            ).fetchone()
        if row is None:
            return None
        return Frequency(id=row["id"], label=row["label"], rrule=row["rrule"])

    def list_frequencies(self) -> list[Frequency]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM frequencies ORDER BY label").fetchall()
        return [Frequency(id=r["id"], label=r["label"], rrule=r["rrule"]) for r in rows]

    # -- activities -----------------------------------------------------------

    def add_activity(
        self,
        title: str,
        starts_at: datetime,
        created_by: str,
        description: str | None = None,
        ends_at: datetime | None = None,
        frequency_id: str | None = None,
        assigned_to: str | None = None,
    ) -> Activity:
        """Insert a new, not yet completed activity."""
        activity_id = _new_id()
        now = _now()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO activities
                    (id, title, description, starts_at, ends_at, completed,
                     created_by, assigned_to, frequency_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, 0, ?, ?, ?, ?, ?)
                """,
                (
                    activity_id, title, description,
                    to_db_instant(starts_at),
                    to_db_instant(ends_at) if ends_at is not None else None,
                    created_by, assigned_to, frequency_id, now, now,
                ),
            )
        logger.info("Activity added: %s '%s' at %s", activity_id, title, starts_at)
        activity = self.get_activity(activity_id)
        if activity is None:
            raise RuntimeError(f"Activity {activity_id} missing right after insert")
        return activity

    def get_activity(self, activity_id: str) -> Activity | None:
        """Fetch a single activity by ID, with its rule resolved."""
        with self._connect() as conn:
            row = conn.execute(
                self._SELECT_ACTIVITY + " WHERE a.id = ?", (activity_id,)
            ).fetchone()
        if row is None:
            return None
        return self._row_to_activity(row)

    def set_completed(self, activity_id: str, completed: bool = True) -> None:
        """Flag a single-occurrence activity as (not) completed."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE activities SET completed = ?, updated_at = ? WHERE id = ?",
                (int(completed), _now(), activity_id),
            )
        if cursor.rowcount == 0:
            raise ValueError(f"Activity {activity_id} not found")
        logger.info("Activity %s completed=%s", activity_id, completed)

    def delete_activity(self, activity_id: str) -> bool:
        """Delete an activity and its completion history."""
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM activity_completions WHERE activity_id = ?", (activity_id,),
            )
            cursor = conn.execute("DELETE FROM activities WHERE id = ?", (activity_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Activity %s deleted", activity_id)
        return deleted

    def list_single_due(
        self, window_start: datetime, window_end: datetime,
    ) -> list[SingleOccurrenceActivity]:
        """Open one-off activities starting in [window_start, window_end)."""
        with self._connect() as conn:
            rows = conn.execute(
                self._SELECT_ACTIVITY
                + """
                WHERE a.completed = 0
                  AND a.frequency_id IS NULL
                  AND a.starts_at >= ?
                  AND a.starts_at < ?
                ORDER BY a.starts_at
                """,
                (_window_bound(window_start), _window_bound(window_end)),
            ).fetchall()
        return [self._row_to_activity(r) for r in rows]

    def list_recurring_candidates(self, upper_bound: datetime) -> list[RecurringActivity]:
        """Open recurring activities whose series started by `upper_bound`."""
        with self._connect() as conn:
            rows = conn.execute(
                self._SELECT_ACTIVITY
                + """
                WHERE a.completed = 0
                  AND a.frequency_id IS NOT NULL
                  AND a.starts_at <= ?
                ORDER BY a.starts_at
                """,
                (to_db_instant(upper_bound),),
            ).fetchall()
        return [self._row_to_activity(r) for r in rows]

    def list_for_user(self, user_id: str) -> list[Activity]:
        """Activities assigned to or created by a user."""
        with self._connect() as conn:
            rows = conn.execute(
                self._SELECT_ACTIVITY
                + " WHERE a.assigned_to = ? OR a.created_by = ? ORDER BY a.starts_at",
                (user_id, user_id),
            ).fetchall()
        return [self._row_to_activity(r) for r in rows]

    # -- completions ----------------------------------------------------------

    def toggle_completion(
        self, activity_id: str, user_id: str, completed_date: str,
    ) -> tuple[bool, ActivityCompletion | None]:
        """Mark a day's occurrence done, or undo it if it was already done.

        Returns (completed, completion) where completion is None after undo.
        """
        with self._connect() as conn:
            existing = conn.execute(
                """
                SELECT id FROM activity_completions
                WHERE activity_id = ? AND user_id = ? AND completed_date = ?
                """,
                (activity_id, user_id, completed_date),
            ).fetchone()

            if existing is not None:
                conn.execute(
                    "DELETE FROM activity_completions WHERE id = ?", (existing["id"],),
                )
                logger.info("Completion of %s on %s undone by %s",
                            activity_id, completed_date, user_id)
                return False, None

            completion = ActivityCompletion(
                id=_new_id(),
                activity_id=activity_id,
                user_id=user_id,
                completed_date=completed_date,
                created_at=_now(),
            )
            conn.execute(
                """
                INSERT INTO activity_completions
                    (id, activity_id, user_id, completed_date, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    completion.id, completion.activity_id, completion.user_id,
                    completion.completed_date, completion.created_at,
                ),
            )
        logger.info("Activity %s completed on %s by %s", activity_id, completed_date, user_id)
        return True, completion

    def is_completed(self, activity_id: str, user_id: str, completed_date: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT 1 FROM activity_completions
                WHERE activity_id = ? AND user_id = ? AND completed_date = ?
                """,
                (activity_id, user_id, completed_date),
            ).fetchone()
        return row is not None

    def list_completions(self, completed_date: str) -> list[ActivityCompletion]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM activity_completions WHERE completed_date = ?",
                (completed_date,),
            ).fetchall()
        return [self._row_to_completion(r) for r in rows]

    def completed_activity_ids(self, completed_date: str) -> set[str]:
        """IDs of activities completed by anyone on a civil date."""
        return {c.activity_id for c in self.list_completions(completed_date)}


class NotificationDB(_SQLiteDB):
    """SQLite-backed notification inbox and Telegram chat links."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS notifications (
                    id           TEXT    PRIMARY KEY,
                    user_id      TEXT    NOT NULL,
                    actor_id     TEXT,
                    event_type   TEXT    NOT NULL,
                    entity_type  TEXT    NOT NULL,
                    entity_id    TEXT    NOT NULL,
                    title        TEXT    NOT NULL,
                    body         TEXT,
                    read         INTEGER NOT NULL DEFAULT 0,
                    created_at   TEXT    NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS chat_links (
                    user_id     TEXT    NOT NULL,
                    chat_id     INTEGER NOT NULL,
                    created_at  TEXT    NOT NULL,
                    PRIMARY KEY (user_id, chat_id)
                )
            """)
        logger.debug("Notification tables initialized at %s", self._db_path)

    @staticmethod
    def _row_to_notification(row: sqlite3.Row) -> Notification:
        return Notification(
            id=row["id"],
            user_id=row["user_id"],
            actor_id=row["actor_id"],
            event_type=row["event_type"],
            entity_type=row["entity_type"],
            entity_id=row["entity_id"],
            title=row["title"],
            body=row["body"],
            read=bool(row["read"]),
            created_at=row["created_at"],
        )

    # -- inbox ----------------------------------------------------------------

    def create_notifications(
        self, requests: list[NotificationRequest],
    ) -> list[Notification]:
        """Insert several notifications in one transaction."""
        if not requests:
            return []

        created_at = _now()
        notifications = [
            Notification(
                id=_new_id(),
                user_id=req.user_id,
                actor_id=req.actor_id,
                event_type=req.event_type,
                entity_type=req.entity_type,
                entity_id=req.entity_id,
                title=req.title,
                body=req.body,
                read=False,
                created_at=created_at,
            )
            for req in requests
        ]
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO notifications
                    (id, user_id, actor_id, event_type, entity_type,
                     entity_id, title, body, read, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?)
                """,
                [
                    (n.id, n.user_id, n.actor_id, n.event_type, n.entity_type,
                     n.entity_id, n.title, n.body, n.created_at)
                    for n in notifications
                ],
            )
        logger.info("%d notification(s) created", len(notifications))
        return notifications

    def create_notification(self, request: NotificationRequest) -> Notification:
        return self.create_notifications([request])[0]

    def list_for_user(
        self, user_id: str, limit: int = 50, offset: int = 0,
    ) -> list[Notification]:
        """Newest notifications first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM notifications WHERE user_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?
                """,
                (user_id, limit, offset),
            ).fetchall()
        return [self._row_to_notification(r) for r in rows]

    def list_unread(self, user_id: str) -> list[Notification]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM notifications WHERE user_id = ? AND read = 0
                ORDER BY created_at DESC, rowid DESC
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_notification(r) for r in rows]

    def mark_as_read(self, notification_id: str, user_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE notifications SET read = 1 WHERE id = ? AND user_id = ?",
                (notification_id, user_id),
            )
        return cursor.rowcount > 0

    def mark_all_as_read(self, user_id: str) -> int:
        """Mark every unread notification of a user as read; returns how many."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE notifications SET read = 1 WHERE user_id = ? AND read = 0",
                (user_id,),
            )
        return cursor.rowcount

    def unread_count(self, user_id: str) -> int:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS n FROM notifications WHERE user_id = ? AND read = 0",
                (user_id,),
            ).fetchone()
        return row["n"]

    def delete_notification(self, notification_id: str, user_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM notifications WHERE id = ? AND user_id = ?",
                (notification_id, user_id),
            )
        return cursor.rowcount > 0

    # -- chat links -----------------------------------------------------------

    def link_chat(self, user_id: str, chat_id: int) -> None:
        """Deliver a user's notifications to a Telegram chat.

        A chat follows one user at a time; linking it again replaces the
        previous link.
        """
        with self._connect() as conn:
            conn.execute("DELETE FROM chat_links WHERE chat_id = ?", (chat_id,))
            conn.execute(
                "INSERT INTO chat_links (user_id, chat_id, created_at) VALUES (?, ?, ?)",
                (user_id, chat_id, _now()),
            )
        logger.info("Chat %d linked to user %s", chat_id, user_id)

    def unlink_chat(self, chat_id: int) -> bool:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM chat_links WHERE chat_id = ?", (chat_id,))
        unlinked = cursor.rowcount > 0
        if unlinked:
            logger.info("Chat %d unlinked", chat_id)
        return unlinked

    def chats_for_user(self, user_id: str) -> list[int]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT chat_id FROM chat_links WHERE user_id = ? ORDER BY rowid",
                (user_id,),
            ).fetchall()
        return [r["chat_id"] for r in rows]

    def user_for_chat(self, chat_id: int) -> str | None:
        """The Elepad user a chat is linked to, if any."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT user_id FROM chat_links WHERE chat_id = ?", (chat_id,),
            ).fetchone()
        return row["user_id"] if row else None
