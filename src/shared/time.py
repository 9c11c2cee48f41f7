from __future__ import annotations

from datetime import date, datetime, timedelta
from enum import Enum
from typing import List, Union

from src.core.errors import BadRequestError
from src.shared.base import FrozenSchema

MONTH_LABELS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

Instant = Union[date, datetime]


class WindowKind(str, Enum):
    TODAY = "today"
    THIS_WEEK = "this_week"
    THIS_MONTH = "this_month"
    THIS_YEAR = "this_year"
    PREVIOUS_MONTH = "previous_month"


class WeekStart(str, Enum):
    SUNDAY = "sunday"
    MONDAY = "monday"


class TimeWindow(FrozenSchema):
    start: date
    end: date

    def contains(self, value: date) -> bool:
        return self.start <= value < self.end


def to_calendar_date(now: Instant) -> date:
    """Normalize an instant to its calendar date (midnight)."""
    if isinstance(now, datetime):
        return now.date()
    return now


def month_start(value: date) -> date:
    return date(value.year, value.month, 1)


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1)


def month_label(value: date) -> str:
    return MONTH_LABELS[value.month - 1]


def week_start_date(today: date, week_start: WeekStart = WeekStart.SUNDAY) -> date:
    if week_start == WeekStart.MONDAY:
        offset = today.weekday()
    else:
        # date.weekday() is 0 for Monday; shift so Sunday is day 0.
        offset = (today.weekday() + 1) % 7
    return today - timedelta(days=offset)


def resolve_window(
    now: Instant, kind: WindowKind, week_start: WeekStart = WeekStart.SUNDAY
) -> TimeWindow:
    today = to_calendar_date(now)
    tomorrow = today + timedelta(days=1)
    if kind == WindowKind.TODAY:
        return TimeWindow(start=today, end=tomorrow)
    if kind == WindowKind.THIS_WEEK:
        return TimeWindow(start=week_start_date(today, week_start), end=tomorrow)
    if kind == WindowKind.THIS_MONTH:
        return TimeWindow(start=month_start(today), end=tomorrow)
    if kind == WindowKind.THIS_YEAR:
        return TimeWindow(start=date(today.year, 1, 1), end=tomorrow)
    if kind == WindowKind.PREVIOUS_MONTH:
        current = month_start(today)
        return TimeWindow(start=add_months(current, -1), end=current)
    raise BadRequestError(f"Unsupported window kind: {kind}")


def trailing_months(now: Instant, months: int) -> List[date]:
    if months < 1:
        raise BadRequestError("Trailing window needs at least one month")
    current = month_start(to_calendar_date(now))
    return [add_months(current, offset) for offset in range(-(months - 1), 1)]


def parse_window_kind(value: str) -> WindowKind:
    try:
        return WindowKind(value.strip().lower())
    except ValueError as exc:
        raise BadRequestError(f"Unsupported time window: {value}") from exc


def parse_week_start(value: str) -> WeekStart:
    try:
        return WeekStart(value.strip().lower())
    except ValueError as exc:
        raise BadRequestError(f"Unsupported week start: {value}") from exc
