"""Notification port — abstract interface for creating user notifications.

Core modules depend on this protocol, never on a specific delivery channel.
"""

from __future__ import annotations

from typing import Protocol

from elepad.data.models import NotificationRequest


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def create_notification(self, request: NotificationRequest) -> None: ...
