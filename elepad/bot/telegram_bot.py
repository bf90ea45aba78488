"""
Elepad Reminders — Telegram Bot.

Hosts the hourly reminder scan on the bot's job queue and gives family
members a small chat surface: link the chat to an Elepad user, see today's
activities, tick today's occurrence as done, and read the notification
inbox.

Security-first: when ALLOWED_USER_IDS is set, other users are silently
ignored.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timedelta, timezone, tzinfo
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable, Coroutine

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CommandHandler,
    ContextTypes,
)

from elepad.config import settings
from elepad.core.civil_date import as_utc, resolve_timezone, to_civil_date
from elepad.core.occurrence import activities_on
from elepad.data.models import RecurringActivity

if TYPE_CHECKING:
    from elepad.data.db import ActivityDB, NotificationDB
    from elepad.ports.activity_port import ActivityStorePort
    from elepad.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

_NOT_LINKED = "This chat isn't linked yet. Send /start <your-elepad-user-id> first."


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from users outside the allow-list.

    An empty ALLOWED_USER_IDS lets everyone through.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not settings.ALLOWED_USER_IDS:
            return await func(update, context)
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


async def _require_linked_user(
    update: Update, context: ContextTypes.DEFAULT_TYPE, command: str,
) -> str | None:
    """Return the Elepad user linked to this chat, or reply and return None."""
    notification_db: NotificationDB = context.bot_data["notification_db"]
    try:
        user_id = notification_db.user_for_chat(update.effective_chat.id)
    except Exception as exc:
        logger.error("%s link lookup error: %s", command, exc)
        await update.message.reply_text("Couldn't look up this chat. Please try again later.")
        return None

    if user_id is None:
        await update.message.reply_text(_NOT_LINKED)
    return user_id


def _local_time(instant: datetime, tz: tzinfo) -> str:
    return as_utc(instant).astimezone(tz).strftime("%H:%M")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start [user_id] — welcome text, or link this chat to a user."""
    if not context.args:
        await update.message.reply_text(
            "Welcome to Elepad Reminders!\n\n"
            "Link this chat with /start <your-elepad-user-id> and I'll send you "
            "a reminder about an hour before each activity.\n\n"
            "Type /help for the full command list."
        )
        return

    user_id = context.args[0].strip()
    notification_db: NotificationDB = context.bot_data["notification_db"]
    try:
        notification_db.link_chat(user_id, update.effective_chat.id)
    except Exception as exc:
        logger.error("/start link error: %s", exc)
        await update.message.reply_text("Couldn't link this chat. Please try again later.")
        return

    await update.message.reply_text(
        f"Linked! Reminders for {user_id} will arrive in this chat."
    )


@authorized_only
async def cmd_stop(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /stop — stop delivering reminders to this chat."""
    notification_db: NotificationDB = context.bot_data["notification_db"]
    try:
        unlinked = notification_db.unlink_chat(update.effective_chat.id)
    except Exception as exc:
        logger.error("/stop unlink error: %s", exc)
        await update.message.reply_text("Couldn't unlink this chat. Please try again later.")
        return

    if unlinked:
        await update.message.reply_text("Done. This chat won't receive reminders anymore.")
    else:
        await update.message.reply_text("This chat wasn't linked.")


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "Available commands:\n"
        "/start <user-id> — Link this chat to your Elepad user\n"
        "/stop — Unlink this chat\n"
        "/today — Today's activities\n"
        "/done <activity-id> — Mark today's occurrence done (again to undo)\n"
        "/notifications — Show unread notifications\n"
        "/help — Show this message"
    )


@authorized_only
async def cmd_today(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /today — list today's activities for the linked user."""
    user_id = await _require_linked_user(update, context, "/today")
    if user_id is None:
        return

    activity_db: ActivityDB = context.bot_data["activity_db"]
    tz: tzinfo = context.bot_data["tz"]
    today = to_civil_date(datetime.now(timezone.utc), tz)

    try:
        todays = activities_on(activity_db.list_for_user(user_id), today, tz)
        completed_ids = activity_db.completed_activity_ids(today.isoformat())
    except Exception as exc:
        logger.error("/today error: %s", exc)
        await update.message.reply_text("Couldn't load today's activities. Please try again later.")
        return

    if not todays:
        await update.message.reply_text("No activities scheduled for today.")
        return

    lines = [f"Today ({today.isoformat()}):"]
    for activity in todays:
        if isinstance(activity, RecurringActivity):
            done = activity.id in completed_ids
        else:
            done = activity.completed
        mark = "✅" if done else "•"
        lines.append(
            f"{mark} {_local_time(activity.starts_at, tz)}  {activity.title}  [{activity.id}]"
        )
    await update.message.reply_text("\n".join(lines))


@authorized_only
async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /done <activity_id> — toggle today's completion."""
    user_id = await _require_linked_user(update, context, "/done")
    if user_id is None:
        return

    if not context.args:
        await update.message.reply_text("Usage: /done <activity-id>\nUse /today to see IDs.")
        return

    activity_id = context.args[0].strip()
    activity_db: ActivityDB = context.bot_data["activity_db"]
    tz: tzinfo = context.bot_data["tz"]
    today = to_civil_date(datetime.now(timezone.utc), tz).isoformat()

    try:
        activity = activity_db.get_activity(activity_id)
        if activity is None:
            await update.message.reply_text(f"No activity with ID {activity_id}.")
            return

        if isinstance(activity, RecurringActivity):
            completed, _ = activity_db.toggle_completion(activity.id, user_id, today)
        else:
            completed = not activity.completed
            activity_db.set_completed(activity.id, completed)
    except Exception as exc:
        logger.error("/done error: %s", exc)
        await update.message.reply_text(f"Couldn't update activity {activity_id}. Please try again.")
        return

    if completed:
        await update.message.reply_text(f"✅ '{activity.title}' marked as done for today.")
    else:
        await update.message.reply_text(f"↩️ '{activity.title}' is open again.")


@authorized_only
async def cmd_notifications(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /notifications — show unread notifications and mark them read."""
    user_id = await _require_linked_user(update, context, "/notifications")
    if user_id is None:
        return

    notification_db: NotificationDB = context.bot_data["notification_db"]
    try:
        unread = notification_db.list_unread(user_id)
        if unread:
            notification_db.mark_all_as_read(user_id)
    except Exception as exc:
        logger.error("/notifications error: %s", exc)
        await update.message.reply_text("Couldn't load notifications. Please try again later.")
        return

    if not unread:
        await update.message.reply_text("No unread notifications.")
        return

    lines = [f"{len(unread)} unread:"]
    for notification in unread:
        line = f"• {notification.title}"
        if notification.body:
            line += f" — {notification.body}"
        lines.append(line)
    await update.message.reply_text("\n".join(lines))


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


def build_app(
    activity_db: ActivityDB | None = None,
    notification_db: NotificationDB | None = None,
    store: ActivityStorePort | None = None,
    notifier: NotificationPort | None = None,
) -> Application:
    """Build and configure the Telegram Application with all handlers.

    Args:
        activity_db: Activity storage. Defaults to ActivityDB at DATABASE_PATH.
        notification_db: Inbox storage. Defaults to NotificationDB at DATABASE_PATH.
        store: Storage port for the scan. Defaults to SQLiteActivityStore.
        notifier: Notification port. Defaults to TelegramNotifier
                  (created from the bot instance after app is built).
    """
    app = ApplicationBuilder().token(settings.TELEGRAM_BOT_TOKEN).build()

    # Wire default adapters if not provided
    if activity_db is None:
        from elepad.data.db import ActivityDB
        activity_db = ActivityDB()

    if notification_db is None:
        from elepad.data.db import NotificationDB
        notification_db = NotificationDB()

    if store is None:
        from elepad.adapters.sqlite_store import SQLiteActivityStore
        store = SQLiteActivityStore(activity_db)

    if notifier is None:
        from elepad.adapters.telegram_notifier import TelegramNotifier
        notifier = TelegramNotifier(app.bot, notification_db)

    tz = resolve_timezone(settings.TIMEZONE)

    # Store collaborators in bot_data for handler access
    app.bot_data["activity_db"] = activity_db
    app.bot_data["notification_db"] = notification_db
    app.bot_data["tz"] = tz

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("stop", cmd_stop))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("today", cmd_today))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CommandHandler("notifications", cmd_notifications))

    _setup_reminder_scan(app, store, notifier, tz)

    logger.info("Telegram bot application built with %d handlers", len(app.handlers[0]))
    return app


def _next_whole_hour(now: datetime) -> datetime:
    return now.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def _setup_reminder_scan(
    app: Application,
    store: ActivityStorePort,
    notifier: NotificationPort,
    tz: tzinfo,
) -> None:
    """Register the repeating reminder scan, first run at the next whole hour."""
    from elepad.core.reminder_scan import run_reminder_scan
    from elepad.core.reminder_window import SCAN_INTERVAL

    async def _reminder_job_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
        await run_reminder_scan(store, notifier, tz=tz)

    first = _next_whole_hour(datetime.now(timezone.utc))
    app.job_queue.run_repeating(
        _reminder_job_callback,
        interval=SCAN_INTERVAL,
        first=first,
        name="reminder_scan",
    )

    logger.info(
        "Reminder scan scheduled every %s starting %s",
        SCAN_INTERVAL,
        first.isoformat(timespec="minutes"),
    )


def main() -> None:
    """Entry point: build the app and start polling."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    if not settings.TELEGRAM_BOT_TOKEN or settings.TELEGRAM_BOT_TOKEN.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    logger.info("Starting Elepad reminder bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
