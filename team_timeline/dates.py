"""Calendar arithmetic at day granularity.

Everything here is pure: dates in, dates (or plain values) out. Month and year
steps clamp to the end of the month the way ``dateutil.relativedelta`` does,
so Jan 31 + 1 month is Feb 29 in a leap year and Feb 28 otherwise.
"""
from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple

from dateutil.relativedelta import relativedelta

from .errors import InvalidDateError

_MONTH_ABBR = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
TASK_BAR_GAP = 4  # pixels trimmed from a bar so neighbours don't touch


def add_days(value: date, amount: int) -> date:
    return value + timedelta(days=amount)


def add_weeks(value: date, amount: int) -> date:
    return value + timedelta(weeks=amount)


def add_months(value: date, amount: int) -> date:
    return value + relativedelta(months=amount)


def add_years(value: date, amount: int) -> date:
    return value + relativedelta(years=amount)


def sub_days(value: date, amount: int) -> date:
    return add_days(value, -amount)


def sub_weeks(value: date, amount: int) -> date:
    return add_weeks(value, -amount)


def sub_months(value: date, amount: int) -> date:
    return add_months(value, -amount)


def sub_years(value: date, amount: int) -> date:
    return add_years(value, -amount)


def days_between(start: date, end: date) -> int:
    """Signed, exclusive day difference: ``days_between(d, d) == 0``."""
    return (end - start).days


def overlaps(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Return True when two inclusive ranges share at least one day."""
    return start_a <= end_b and end_a >= start_b


def parse_date(text: str) -> date:
    """Parse a strict ``YYYY-MM-DD`` string."""
    raw = text.strip() if isinstance(text, str) else ""
    if len(raw) != 10:
        raise InvalidDateError(f"Invalid date: {text!r}")
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise InvalidDateError(f"Invalid date: {text!r}") from exc


def to_iso(value: date) -> str:
    return value.isoformat()


def _short(value: date) -> str:
    return f"{_MONTH_ABBR[value.month - 1]} {value.day}"


def format_range(start: date, end: date) -> str:
    """Human readable label for a task's date range."""
    if start == end:
        return f"{_short(start)}, {start.year}"
    if start.year == end.year and start.month == end.month:
        return f"{_short(start)} - {end.day}, {end.year}"
    if start.year == end.year:
        return f"{_short(start)} - {_short(end)}, {end.year}"
    return f"{_short(start)}, {start.year} - {_short(end)}, {end.year}"


def default_repeat_until(start: date) -> date:
    """Suggested end date for the repeat form: tomorrow, capped at month end."""
    following = add_days(start, 1)
    if following.month == start.month and following.year == start.year:
        return following
    return date(start.year, start.month, calendar.monthrange(start.year, start.month)[1])


def visible_days(
    anchor: date,
    ranges: Iterable[Tuple[date, date]] = (),
    *,
    week_aligned: bool = False,
) -> List[date]:
    """Days shown on the timeline: a year either side of the anchor and all tasks."""
    lowest = anchor
    highest = anchor
    for start, end in ranges:
        lowest = min(lowest, start)
        highest = max(highest, end)

    range_start = sub_years(lowest, 1)
    range_end = add_years(highest, 1)
    if week_aligned:
        range_start = sub_days(range_start, range_start.weekday())
        range_end = add_days(range_end, 6 - range_end.weekday())

    return [add_days(range_start, offset) for offset in range(days_between(range_start, range_end) + 1)]


def task_position(
    start: date,
    end: date,
    first_day: date,
    last_day: date,
    day_width: int,
) -> Optional[Tuple[int, int]]:
    """Pixel ``(left, width)`` of a bar, or None when it falls outside the view."""
    if end < first_day or start > last_day:
        return None
    left = days_between(first_day, start) * day_width
    width = (days_between(start, end) + 1) * day_width - TASK_BAR_GAP
    return left, width
