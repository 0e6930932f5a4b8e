"""
Calendar and wall-clock helpers.

The shop runs in a single timezone. Dates are pendulum ``Date`` objects,
instants are pendulum ``DateTime`` objects in the shop timezone, and
configured times of day are ``HH:mm`` strings.
"""

from datetime import date, datetime, time, timedelta
from typing import Iterator

import pendulum
from pendulum import Date, DateTime

from .exceptions import InvalidInput

SUNDAY = 0


def parse_hhmm(value: str) -> time:
    """
    Parse a 24-hour ``HH:mm`` string.

    Raises:
        ValueError: If the string is not a valid time of day
    """
    try:
        hour_part, minute_part = value.strip().split(":")
        return time(hour=int(hour_part), minute=int(minute_part))
    except (AttributeError, ValueError) as exc:
        raise ValueError(f"Expected a time in HH:mm format, got {value!r}") from exc


def format_hhmm(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def shop_weekday(day: date) -> int:
    """Weekday number with 0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


def coerce_date(value: date | str) -> Date:
    """
    Normalise a date-like value to a pendulum ``Date``.

    Accepts ``date``/``datetime`` objects (time of day is dropped) and
    ``YYYY-MM-DD`` strings.

    Raises:
        InvalidInput: If the value cannot be read as a calendar date
    """
    if isinstance(value, datetime):
        return pendulum.date(value.year, value.month, value.day)
    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            parsed = pendulum.from_format(value.strip(), "YYYY-MM-DD")
        except ValueError as exc:
            raise InvalidInput(f"Malformed date {value!r}, expected YYYY-MM-DD") from exc
        return parsed.date()
    raise InvalidInput(f"Unsupported date value: {value!r}")


def at_time(day: date, time_of_day: time, tz: str) -> DateTime:
    """Combine a calendar date and a wall-clock time into a local instant."""
    return pendulum.datetime(
        day.year, day.month, day.day,
        time_of_day.hour, time_of_day.minute,
        tz=tz,
    )


def day_bounds(day: date, tz: str) -> tuple[DateTime, DateTime]:
    """Return ``[midnight, next midnight)`` for the given date."""
    start = pendulum.datetime(day.year, day.month, day.day, tz=tz)
    return start, start.add(days=1)


def next_aligned_instant(now: DateTime, cadence_minutes: int) -> DateTime:
    """
    Round ``now`` up to the next cadence boundary counted from midnight.

    An instant already on a boundary is returned unchanged (seconds and
    microseconds included), so 10:15:00 stays 10:15 while 10:15:01 becomes
    10:30 for a 15 minute cadence.
    """
    step = timedelta(minutes=cadence_minutes)
    elapsed = timedelta(
        hours=now.hour,
        minutes=now.minute,
        seconds=now.second,
        microseconds=now.microsecond,
    )
    ticks, remainder = divmod(elapsed, step)
    if remainder:
        ticks += 1

    hours, minutes = divmod(ticks * cadence_minutes, 60)
    if hours >= 24:
        return now.start_of("day").add(days=1)
    return now.set(hour=hours, minute=minutes, second=0, microsecond=0)


def iter_dates(start: date, end: date) -> Iterator[Date]:
    """Yield every calendar date in ``[start, end]``."""
    current = coerce_date(start)
    last = coerce_date(end)
    while current <= last:
        yield current
        current = current.add(days=1)


def month_range(day: date) -> tuple[Date, Date]:
    """First and last date of the month containing ``day``."""
    current = coerce_date(day)
    return current.start_of("month"), current.end_of("month")
