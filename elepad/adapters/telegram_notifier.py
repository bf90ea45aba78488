"""Telegram notification adapter — implements NotificationPort.

Every notification is first stored in the inbox, then pushed to each
Telegram chat linked to the recipient. Without a bot the adapter only
writes the inbox. SQLite calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from telegram.error import TelegramError

from elepad.data.models import NotificationRequest

if TYPE_CHECKING:
    from telegram import Bot

    from elepad.data.db import NotificationDB

logger = logging.getLogger(__name__)


def format_message(request: NotificationRequest) -> str:
    """Plain-text chat message for a notification."""
    if request.body:
        return f"🔔 {request.title}\n{request.body}"
    return f"🔔 {request.title}"


class TelegramNotifier:
    """Inbox + Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot | None, db: NotificationDB) -> None:
        self._bot = bot
        self._db = db

    async def create_notification(self, request: NotificationRequest) -> None:
        await asyncio.to_thread(self._db.create_notification, request)

        if self._bot is None:
            return

        text = format_message(request)
        chat_ids = await asyncio.to_thread(self._db.chats_for_user, request.user_id)
        for chat_id in chat_ids:
            try:
                await self._bot.send_message(chat_id=chat_id, text=text)
            except TelegramError as exc:
                logger.warning(
                    "Telegram delivery to chat %d for user %s failed: %s",
                    chat_id, request.user_id, exc,
                )
