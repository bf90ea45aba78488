"""Civil-date normalization — UTC instants to local calendar days and back.

The reminder logic reasons about "today" as a calendar day in the family's
local zone. The historical deployment used a constant UTC-3 offset without
DST; that is still the default, but any fixed offset or IANA zone name can
be configured through the TIMEZONE setting.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "-03:00"

_OFFSET_RE = re.compile(r"^(?:UTC|GMT)?\s*([+-])(\d{1,2})(?::?(\d{2}))?$", re.IGNORECASE)


def resolve_timezone(name: str | None = None) -> tzinfo:
    """Turn a TIMEZONE setting into a tzinfo.

    Accepts fixed offsets ("-03:00", "UTC-3", "GMT+05:30", "+0200"),
    "UTC"/"Z", or an IANA identifier such as "America/Argentina/Buenos_Aires".
    Raises ValueError for anything else.
    """
    if name is None:
        name = DEFAULT_TIMEZONE
    raw = name.strip()
    if raw.upper() in ("UTC", "GMT", "Z"):
        return timezone.utc

    match = _OFFSET_RE.match(raw)
    if match:
        sign, hours, minutes = match.groups()
        offset = timedelta(hours=int(hours), minutes=int(minutes or 0))
        if offset >= timedelta(hours=24):
            raise ValueError(f"UTC offset out of range: {name!r}")
        return timezone(-offset if sign == "-" else offset)

    try:
        return ZoneInfo(raw)
    except (KeyError, ValueError) as exc:
        raise ValueError(f"Unknown time zone: {name!r}") from exc


def as_utc(instant: datetime) -> datetime:
    """Normalize an instant to aware UTC; naive values are taken as UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_civil_date(instant: datetime, tz: tzinfo | None = None) -> date:
    """Return the local calendar day on which `instant` falls."""
    if tz is None:
        tz = resolve_timezone()
    return as_utc(instant).astimezone(tz).date()


def local_midnight_utc(day: date, tz: tzinfo | None = None) -> datetime:
    """Return the UTC instant at which local `day` begins."""
    if tz is None:
        tz = resolve_timezone()
    return datetime.combine(day, time(0, 0), tzinfo=tz).astimezone(timezone.utc)
