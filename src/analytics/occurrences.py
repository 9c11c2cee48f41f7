from __future__ import annotations

from datetime import date
from typing import Iterable, List, NamedTuple, Optional

from src.core.errors import ContractViolationError
from src.models.records import Actor, RecurringDate
from src.schemas.dashboard import Celebrations, OccurrenceEvent

BIRTHDAY = "birthday"
MARRIAGE_ANNIVERSARY = "marriage_anniversary"
WORK_ANNIVERSARY = "work_anniversary"
KIND_ORDER = {BIRTHDAY: 0, MARRIAGE_ANNIVERSARY: 1, WORK_ANNIVERSARY: 2}
DEFAULT_LOOKAHEAD_DAYS = 30


class Occurrence(NamedTuple):
    date: date
    days_until: int


def next_occurrence(source: RecurringDate | date, today: date) -> Occurrence:
    """Next date on or after ``today`` that falls on ``source``'s month and day.

    Feb 29 resolves to Feb 28 in years without one.
    """
    recurring = source if isinstance(source, RecurringDate) else RecurringDate.parse(source)
    candidate = recurring.in_year(today.year)
    if candidate < today:
        candidate = recurring.in_year(today.year + 1)
    return Occurrence(date=candidate, days_until=(candidate - today).days)


def years_completed(source: RecurringDate | date, occurrence: date) -> int:
    return occurrence.year - source.year


def upcoming_events(
    actors: Iterable[Actor],
    today: date,
    lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS,
) -> List[OccurrenceEvent]:
    if actors is None:
        raise ContractViolationError("profiles")
    events: List[OccurrenceEvent] = []
    for actor in actors:
        if not actor.is_active or not actor.display_name:
            continue
        for kind, source in (
            (BIRTHDAY, actor.birth_date),
            (MARRIAGE_ANNIVERSARY, actor.marriage_anniversary),
            (WORK_ANNIVERSARY, actor.joining_date),
        ):
            if source is None:
                continue
            event = _build_event(actor, kind, source, today, lookahead_days)
            if event is not None:
                events.append(event)
    return sorted(
        events,
        key=lambda event: (
            event.days_until,
            event.display_name,
            event.actor_id,
            KIND_ORDER[event.kind],
        ),
    )


def celebrations_by_kind(events: Iterable[OccurrenceEvent], limit: int = 5) -> Celebrations:
    grouped = {BIRTHDAY: [], MARRIAGE_ANNIVERSARY: [], WORK_ANNIVERSARY: []}
    for event in events:
        grouped[event.kind].append(event)
    return Celebrations(
        birthdays=tuple(grouped[BIRTHDAY][:limit]),
        marriage_anniversaries=tuple(grouped[MARRIAGE_ANNIVERSARY][:limit]),
        work_anniversaries=tuple(grouped[WORK_ANNIVERSARY][:limit]),
    )


def _build_event(
    actor: Actor,
    kind: str,
    source: RecurringDate,
    today: date,
    lookahead_days: int,
) -> Optional[OccurrenceEvent]:
    occurrence = next_occurrence(source, today)
    if not 0 <= occurrence.days_until <= lookahead_days:
        return None
    completed = years_completed(source, occurrence.date)
    if kind == WORK_ANNIVERSARY and completed < 1:
        return None
    return OccurrenceEvent(
        actor_id=actor.id,
        display_name=actor.display_name,
        avatar_ref=actor.avatar_ref,
        kind=kind,
        next_occurrence=occurrence.date,
        days_until=occurrence.days_until,
        years_completed=completed if completed >= 1 else None,
    )
