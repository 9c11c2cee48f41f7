from __future__ import annotations

from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from src.core.errors import ContractViolationError
from src.models.records import ZERO, DatedMetricRecord, to_decimal
from src.schemas.dashboard import LeaderboardEntry
from src.shared.time import TimeWindow

DEFAULT_TOP_N = 5
UNKNOWN_NAME = "Unknown"

GroupSelector = Callable[[DatedMetricRecord], Optional[str]]
MetricSelector = Callable[[DatedMetricRecord], object]
RecordPredicate = Callable[[DatedMetricRecord], bool]
EntryLabels = Mapping[str, Tuple[str, Optional[str]]]


def select_actor(record: DatedMetricRecord) -> Optional[str]:
    return record.actor_id


def select_group(record: DatedMetricRecord) -> Optional[str]:
    return record.group_id


def rank_leaderboard(
    records: Iterable[DatedMetricRecord],
    metric_selector: MetricSelector,
    group_selector: GroupSelector = select_actor,
    top_n: int = DEFAULT_TOP_N,
    window: Optional[TimeWindow] = None,
    predicate: Optional[RecordPredicate] = None,
    labels: Optional[EntryLabels] = None,
) -> List[LeaderboardEntry]:
    """Sum a metric per group and rank the groups, highest first.

    Ties are broken by group key so the result does not depend on the order
    of ``records``.
    """
    if records is None:
        raise ContractViolationError("records")
    totals: Dict[str, Decimal] = {}
    for record in records:
        if window is not None and not window.contains(record.occurred_on):
            continue
        if predicate is not None and not predicate(record):
            continue
        key = group_selector(record)
        if not key:
            continue
        totals[key] = totals.get(key, ZERO) + to_decimal(metric_selector(record))

    ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))[:top_n]
    labels = labels or {}
    entries: List[LeaderboardEntry] = []
    for rank, (key, value) in enumerate(ranked, start=1):
        display_name, avatar_ref = labels.get(key, (UNKNOWN_NAME, None))
        entries.append(
            LeaderboardEntry(
                actor_id=key,
                display_name=display_name or UNKNOWN_NAME,
                avatar_ref=avatar_ref,
                metric_value=value,
                rank=rank,
            )
        )
    return entries
