from __future__ import annotations

import calendar
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

ZERO = Decimal("0")


def parse_calendar_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if len(text) == 10:
        try:
            return date.fromisoformat(text)
        except ValueError:
            return None
    # Anything longer must be a full timestamp: YYYY-MM-DD, then "T" or a space.
    if len(text) < 10 or text[10] not in ("T", " "):
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def to_decimal(value: Any) -> Decimal:
    """Coerce a loose numeric field; anything unusable contributes zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return ZERO
    if not amount.is_finite() or amount < 0:
        return ZERO
    return amount


class RecurringDate(BaseModel):
    """Month/day of an annual event plus the origin year it counts from."""

    model_config = ConfigDict(frozen=True)

    year: int
    month: int
    day: int

    @classmethod
    def parse(cls, value: Any) -> Optional["RecurringDate"]:
        if isinstance(value, RecurringDate):
            return value
        if isinstance(value, (date, datetime)):
            return cls(year=value.year, month=value.month, day=value.day)
        if not isinstance(value, str):
            return None
        date_part = value.strip().replace("T", " ").split(" ", 1)[0]
        parts = date_part.split("-")
        if len(parts) != 3:
            return None
        try:
            year, month, day = (int(part) for part in parts)
        except ValueError:
            return None
        if not 1 <= month <= 12:
            return None
        # Validate against a leap year so Feb 29 birthdays survive any origin year.
        if not 1 <= day <= calendar.monthrange(2000, month)[1]:
            return None
        return cls(year=year, month=month, day=day)

    def in_year(self, year: int) -> date:
        try:
            return date(year, self.month, self.day)
        except ValueError:
            # Feb 29 outside a leap year.
            return date(year, 2, 28)


class DatedMetricRecord(BaseModel):
    id: str
    occurred_on: date
    actor_id: Optional[str] = None
    amount: Decimal = ZERO
    quantity: Decimal = ZERO
    group_id: Optional[str] = None
    is_cancelled: bool = False

    @field_validator("occurred_on", mode="before")
    @classmethod
    def _parse_occurred_on(cls, value: Any) -> date:
        parsed = parse_calendar_date(value)
        if parsed is None:
            raise ValueError("occurred_on is not a calendar date")
        return parsed

    @field_validator("amount", "quantity", mode="before")
    @classmethod
    def _coerce_numeric(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @field_validator("actor_id", "group_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        if value in (None, ""):
            return None
        return str(value)


class Actor(BaseModel):
    id: str
    display_name: str = ""
    avatar_ref: Optional[str] = None
    role: Optional[str] = None
    manager_id: Optional[str] = None
    is_active: bool = True
    birth_date: Optional[RecurringDate] = None
    marriage_anniversary: Optional[RecurringDate] = None
    joining_date: Optional[RecurringDate] = None

    @field_validator("birth_date", "marriage_anniversary", "joining_date", mode="before")
    @classmethod
    def _parse_recurring(cls, value: Any) -> Optional[RecurringDate]:
        return RecurringDate.parse(value)

    @field_validator("manager_id", "avatar_ref", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Optional[str]:
        if value in (None, ""):
            return None
        return str(value)


class TargetRecord(BaseModel):
    actor_id: str
    period_start: date
    period_kind: str = "monthly"
    amount: Decimal = ZERO
    quantity: Decimal = ZERO

    @field_validator("period_start", mode="before")
    @classmethod
    def _parse_period_start(cls, value: Any) -> date:
        parsed = parse_calendar_date(value)
        if parsed is None:
            raise ValueError("period_start is not a calendar date")
        return parsed

    @field_validator("period_kind")
    @classmethod
    def _check_period_kind(cls, value: str) -> str:
        if value not in ("monthly", "yearly"):
            raise ValueError("period_kind must be monthly or yearly")
        return value

    @field_validator("amount", "quantity", mode="before")
    @classmethod
    def _coerce_numeric(cls, value: Any) -> Decimal:
        return to_decimal(value)


class Project(BaseModel):
    id: str
    name: str
    image_ref: Optional[str] = None
    is_active: bool = True


def select_amount(record: DatedMetricRecord) -> Decimal:
    return record.amount


def select_quantity(record: DatedMetricRecord) -> Decimal:
    return record.quantity
