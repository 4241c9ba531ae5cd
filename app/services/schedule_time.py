"""
Free-text date/time parsing for scheduled payments.

Every parser returns ``None`` rather than guessing when the input cannot be
understood, so the chat flow can re-prompt with the draft intact.
"""
from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo

_WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}

_MONTHS = {
    name: idx
    for idx, names in enumerate(
        (
            ("january", "jan"),
            ("february", "feb"),
            ("march", "mar"),
            ("april", "apr"),
            ("may",),
            ("june", "jun"),
            ("july", "jul"),
            ("august", "aug"),
            ("september", "sep", "sept"),
            ("october", "oct"),
            ("november", "nov"),
            ("december", "dec"),
        ),
        start=1,
    )
    for name in names
}

_IN_RE = re.compile(r"^in\s+(\d+)\s*(day|days|week|weeks)$")
_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_MONTH_DAY_RE = re.compile(r"^([a-z]+)\s+(\d{1,2})(?:st|nd|rd|th)?$")
_TIME_RE = re.compile(r"^(?:at\s+)?(\d{1,2})(?::(\d{2}))?\s*(am|pm)?$")


def parse_schedule_date(text: str | None, *, today: date) -> date | None:
    if not text:
        return None
    value = " ".join(text.lower().split())

    if value == "today":
        return today
    if value == "tomorrow":
        return today + timedelta(days=1)

    if value.startswith("next "):
        target = _WEEKDAYS.get(value[5:].strip())
        if target is None:
            return None
        days_ahead = target - today.weekday()
        if days_ahead <= 0:
            days_ahead += 7
        return today + timedelta(days=days_ahead)

    match = _IN_RE.match(value)
    if match:
        count = int(match.group(1))
        unit_days = 7 if match.group(2).startswith("week") else 1
        return today + timedelta(days=count * unit_days)

    match = _ISO_RE.match(value)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None

    match = _MONTH_DAY_RE.match(value)
    if match and match.group(1) in _MONTHS:
        month = _MONTHS[match.group(1)]
        try:
            candidate = date(today.year, month, int(match.group(2)))
            if candidate < today:
                candidate = date(today.year + 1, month, int(match.group(2)))
        except ValueError:
            return None
        return candidate

    return None


def parse_schedule_time(text: str | None) -> time | None:
    if not text:
        return None
    match = _TIME_RE.match(" ".join(text.lower().split()))
    if not match:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    period = match.group(3)
    if minutes > 59:
        return None
    if period:
        if not 1 <= hours <= 12:
            return None
        if period == "pm" and hours != 12:
            hours += 12
        elif period == "am" and hours == 12:
            hours = 0
    elif hours > 23:
        return None
    return time(hours, minutes)


def combine_schedule(
    date_text: str | None,
    time_text: str | None,
    *,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> datetime | None:
    """
    Resolve a free-text date and time into an absolute, timezone-aware instant.

    A time that has already passed today rolls forward one day ("today at 9am"
    sent at 10am means tomorrow). A date before today is rejected.
    """
    now = (now or datetime.now(tz)).astimezone(tz)
    day = parse_schedule_date(date_text, today=now.date())
    at = parse_schedule_time(time_text)
    if day is None or at is None or day < now.date():
        return None

    scheduled = datetime.combine(day, at, tzinfo=tz)
    if scheduled <= now:
        scheduled += timedelta(days=1)
    return scheduled
