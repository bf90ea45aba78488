"""Recurrence rule parser for the frequency catalog.

Only a small RRULE subset is understood:

    FREQ=<DAILY|WEEKLY|MONTHLY|YEARLY>[;INTERVAL=<int>][;BYDAY=<MO,TU,...>]

Each field is found by searching for its token, so order does not matter
and any other RRULE parts (COUNT, UNTIL, BYMONTHDAY...) are ignored.
"""

from __future__ import annotations

import re

from elepad.data.models import RecurrenceRule

FREQUENCIES = ("DAILY", "WEEKLY", "MONTHLY", "YEARLY")

# Index matches date.weekday(): Monday is 0
WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

_FREQ_RE = re.compile(r"FREQ=([A-Z]+)")
_INTERVAL_RE = re.compile(r"INTERVAL=([^;]*)")
_BYDAY_RE = re.compile(r"BYDAY=([^;]*)")


def _parse_interval(raw: str | None) -> int:
    if raw is None:
        return 1
    try:
        interval = int(raw.strip())
    except ValueError:
        return 1
    return interval if interval >= 1 else 1


def parse_rule(text: str | None) -> RecurrenceRule | None:
    """Parse a rule string, or return None when it has no usable FREQ.

    A missing or non-numeric INTERVAL becomes 1. BYDAY codes are kept as
    written; codes that are not two-letter weekdays simply never match.
    """
    if not text:
        return None

    freq_match = _FREQ_RE.search(text)
    if freq_match is None or freq_match.group(1) not in FREQUENCIES:
        return None

    interval_match = _INTERVAL_RE.search(text)
    interval = _parse_interval(interval_match.group(1) if interval_match else None)

    by_weekday: frozenset[str] = frozenset()
    byday_match = _BYDAY_RE.search(text)
    if byday_match:
        by_weekday = frozenset(
            code.strip() for code in byday_match.group(1).split(",") if code.strip()
        )

    return RecurrenceRule(
        frequency=freq_match.group(1),
        interval=interval,
        by_weekday=by_weekday,
    )


def format_rule(rule: RecurrenceRule) -> str:
    """Render a rule in canonical form, omitting defaults."""
    parts = [f"FREQ={rule.frequency}"]
    if rule.interval != 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.by_weekday:
        ordered = sorted(
            rule.by_weekday,
            key=lambda c: (
                WEEKDAY_CODES.index(c) if c in WEEKDAY_CODES else len(WEEKDAY_CODES), c,
            ),
        )
        parts.append("BYDAY=" + ",".join(ordered))
    return ";".join(parts)
