from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from src.core.errors import ContractViolationError
from src.models.records import ZERO, DatedMetricRecord, select_amount, to_decimal
from src.schemas.dashboard import MonthlyBucket
from src.shared.time import (
    Instant,
    TimeWindow,
    add_months,
    month_label,
    month_start,
    to_calendar_date,
    trailing_months,
)

HUNDRED = Decimal("100")

MetricSelector = Callable[[DatedMetricRecord], object]


def sum_in_window(
    records: Iterable[DatedMetricRecord],
    window: TimeWindow,
    selector: MetricSelector = select_amount,
) -> Decimal:
    _require(records, "records")
    total = ZERO
    for record in records:
        if window.contains(record.occurred_on):
            total += to_decimal(selector(record))
    return total


def count_in_window(records: Iterable[DatedMetricRecord], window: TimeWindow) -> int:
    _require(records, "records")
    return sum(1 for record in records if window.contains(record.occurred_on))


def growth_percent(current: Decimal, previous: Decimal) -> Decimal:
    current = to_decimal(current)
    previous = to_decimal(previous)
    if previous == 0:
        return HUNDRED if current > 0 else ZERO
    return (current - previous) / previous * HUNDRED


def achievement_percent(achieved: Decimal, target: Decimal) -> Decimal:
    target = to_decimal(target)
    if target == 0:
        return ZERO
    return to_decimal(achieved) / target * HUNDRED


def build_monthly_buckets(
    primary: Iterable[DatedMetricRecord],
    secondary: Iterable[DatedMetricRecord],
    year_start: date,
    now: Instant,
    primary_selector: MetricSelector = select_amount,
    secondary_selector: MetricSelector = select_amount,
) -> List[MonthlyBucket]:
    """One bucket per month from ``year_start`` through the month of ``now``.

    Records dated after ``now`` are not counted.
    """
    today = to_calendar_date(now)
    months: List[date] = []
    cursor = month_start(year_start)
    while cursor <= today:
        months.append(cursor)
        cursor = add_months(cursor, 1)
    return _fold_buckets(
        primary,
        secondary,
        months,
        TimeWindow(start=year_start, end=today + timedelta(days=1)),
        primary_selector,
        secondary_selector,
    )


def build_trailing_buckets(
    primary: Iterable[DatedMetricRecord],
    secondary: Iterable[DatedMetricRecord],
    now: Instant,
    months: int,
    primary_selector: MetricSelector = select_amount,
    secondary_selector: MetricSelector = select_amount,
) -> List[MonthlyBucket]:
    periods = trailing_months(now, months)
    today = to_calendar_date(now)
    return _fold_buckets(
        primary,
        secondary,
        periods,
        TimeWindow(start=periods[0], end=today + timedelta(days=1)),
        primary_selector,
        secondary_selector,
    )


def _fold_buckets(
    primary: Iterable[DatedMetricRecord],
    secondary: Iterable[DatedMetricRecord],
    months: Sequence[date],
    covered: TimeWindow,
    primary_selector: MetricSelector,
    secondary_selector: MetricSelector,
) -> List[MonthlyBucket]:
    _require(primary, "primary")
    _require(secondary, "secondary")
    counts: Dict[date, int] = {month: 0 for month in months}
    primary_totals: Dict[date, Decimal] = {month: ZERO for month in months}
    secondary_totals: Dict[date, Decimal] = {month: ZERO for month in months}

    for record in primary:
        key = _bucket_key(record, covered, counts)
        if key is not None:
            counts[key] += 1
            primary_totals[key] += to_decimal(primary_selector(record))
    for record in secondary:
        key = _bucket_key(record, covered, counts)
        if key is not None:
            secondary_totals[key] += to_decimal(secondary_selector(record))

    return [
        MonthlyBucket(
            period_start=month,
            label=month_label(month),
            count=counts[month],
            primary_amount=primary_totals[month],
            secondary_amount=secondary_totals[month],
        )
        for month in months
    ]


def _bucket_key(
    record: DatedMetricRecord, covered: TimeWindow, buckets: Dict[date, int]
) -> Optional[date]:
    if not covered.contains(record.occurred_on):
        return None
    key = month_start(record.occurred_on)
    # Unknown month keys are dropped rather than creating new buckets.
    return key if key in buckets else None


def _require(records: Optional[Iterable[object]], name: str) -> None:
    if records is None:
        raise ContractViolationError(name)
