"""
Elepad Reminders — Data Models.

Activities are what families schedule for an elder. An activity either
happens once or repeats on a recurrence rule taken from the frequency
catalog; the two shapes are separate types so callers never re-check
`frequency_id` by hand.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Union

FrequencyName = Literal["DAILY", "WEEKLY", "MONTHLY", "YEARLY"]

EventType = Literal[
    "mention", "achievement", "activity_reminder", "activity_assigned", "reaction",
]
EntityType = Literal["memory", "activity", "puzzle", "achievement"]


@dataclass(frozen=True)
class RecurrenceRule:
    """Parsed form of a `FREQ=...;INTERVAL=...;BYDAY=...` string."""

    frequency: FrequencyName
    interval: int = 1
    by_weekday: frozenset[str] = field(default_factory=frozenset)


@dataclass
class Frequency:
    """A named entry of the frequency catalog, e.g. "Every Monday"."""

    id: str
    label: str
    rrule: str | None = None


@dataclass
class SingleOccurrenceActivity:
    """An activity that happens exactly once, at `starts_at`."""

    id: str
    title: str
    starts_at: datetime               # aware, UTC
    created_by: str
    description: str | None = None
    ends_at: datetime | None = None
    assigned_to: str | None = None
    completed: bool = False


@dataclass
class RecurringActivity:
    """An activity repeating on a rule; `starts_at` anchors date and time of day.

    `rule` is parsed once from `rule_text` when the row is loaded and is
    None when the frequency carries no usable rule.
    """

    id: str
    title: str
    starts_at: datetime               # aware, UTC
    created_by: str
    frequency_id: str
    rule_text: str | None = None
    rule: RecurrenceRule | None = None
    description: str | None = None
    ends_at: datetime | None = None   # series active through this local day
    assigned_to: str | None = None
    completed: bool = False


Activity = Union[SingleOccurrenceActivity, RecurringActivity]


@dataclass
class ActivityCompletion:
    """Records that one occurrence of an activity was done on a civil day."""

    id: str
    activity_id: str
    user_id: str
    completed_date: str               # ISO date YYYY-MM-DD
    created_at: str = ""


@dataclass
class NotificationRequest:
    """Everything the dispatcher needs to create one notification."""

    user_id: str
    event_type: EventType
    entity_type: EntityType
    entity_id: str
    title: str
    body: str | None = None
    actor_id: str | None = None


@dataclass
class Notification:
    """A stored inbox entry."""

    id: str
    user_id: str
    event_type: str
    entity_type: str
    entity_id: str
    title: str
    body: str | None = None
    actor_id: str | None = None
    read: bool = False
    created_at: str = ""


@dataclass
class ScanResult:
    """Outcome of one reminder scan tick."""

    due: list[Activity] = field(default_factory=list)
    dispatched: int = 0
    failed: int = 0
    aborted: bool = False
