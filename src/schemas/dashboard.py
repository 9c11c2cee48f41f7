from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ConfigDict, Field

from src.shared.base import BaseSchema, FrozenSchema
from src.shared.time import TimeWindow


class RawSnapshot(BaseSchema):
    """Source rows as the record store returns them (table column names)."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    sales: Optional[List[Dict[str, Any]]] = None
    payments: Optional[List[Dict[str, Any]]] = None
    targets: Optional[List[Dict[str, Any]]] = None
    profiles: Optional[List[Dict[str, Any]]] = None
    projects: List[Dict[str, Any]] = Field(default_factory=list)


class DashboardFilters(BaseSchema):
    # Keep query parameter names in snake_case for API contract consistency.
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    scope: Optional[str] = Field(default=None, pattern="^(individual|team|organization)$")
    lookahead_days: Optional[int] = Field(default=None, ge=0, le=366)
    top_n: Optional[int] = Field(default=None, ge=1, le=100)
    trailing_months: Optional[int] = Field(default=None, ge=1, le=24)
    week_start: Optional[str] = Field(default=None, pattern="^(sunday|monday)$")
    leaderboard_role: str = Field(default="all", pattern="^(all|sales_executive|team_leader)$")
    windows: List[str] = Field(
        default_factory=lambda: ["today", "this_week", "this_month", "this_year"]
    )


class DashboardComposeRequest(BaseSchema):
    viewer_id: str
    as_of: Optional[datetime] = None
    filters: DashboardFilters = Field(default_factory=DashboardFilters)
    snapshot: RawSnapshot


class MonthlyBucket(FrozenSchema):
    period_start: date
    label: str
    count: int = 0
    primary_amount: Decimal = Decimal("0")
    secondary_amount: Decimal = Decimal("0")


class LeaderboardEntry(FrozenSchema):
    actor_id: str
    display_name: str
    avatar_ref: Optional[str] = None
    metric_value: Decimal
    rank: int = Field(ge=1)


class Leaderboard(FrozenSchema):
    metric: str
    window_kind: str
    window: TimeWindow
    entries: Tuple[LeaderboardEntry, ...]


class OccurrenceEvent(FrozenSchema):
    actor_id: str
    display_name: str
    avatar_ref: Optional[str] = None
    kind: str
    next_occurrence: date
    days_until: int = Field(ge=0)
    years_completed: Optional[int] = Field(default=None, ge=1)


class Celebrations(FrozenSchema):
    birthdays: Tuple[OccurrenceEvent, ...]
    marriage_anniversaries: Tuple[OccurrenceEvent, ...]
    work_anniversaries: Tuple[OccurrenceEvent, ...]


class TargetAchievement(FrozenSchema):
    period_kind: str
    metric: str
    target: Decimal
    achieved: Decimal
    achievement_pct: Decimal
    shortfall: Decimal


class TargetStatusRow(FrozenSchema):
    actor_id: str
    display_name: str
    role: Optional[str] = None
    target_amount: Decimal
    achieved_amount: Decimal
    shortfall: Decimal
    achievement_pct: Decimal


class DashboardKpis(FrozenSchema):
    today_sales_count: int
    monthly_sales_count: int
    monthly_revenue: Decimal
    monthly_area: Decimal
    monthly_collections: Decimal
    ytd_sales_count: int
    ytd_revenue: Decimal
    ytd_area: Decimal
    ytd_collections: Decimal
    previous_month_sales_count: int
    previous_month_revenue: Decimal
    sales_growth_pct: Decimal
    revenue_growth_pct: Decimal
    targets: Tuple[TargetAchievement, ...]


class ChartSeries(FrozenSchema):
    year_to_date: Tuple[MonthlyBucket, ...]
    trailing: Tuple[MonthlyBucket, ...]
    area_vs_target: Tuple[MonthlyBucket, ...]


class IngestionDiagnostics(FrozenSchema):
    sales_rejected: int = 0
    payments_rejected: int = 0
    targets_rejected: int = 0
    profiles_rejected: int = 0
    projects_rejected: int = 0

    @property
    def total_rejected(self) -> int:
        return (
            self.sales_rejected
            + self.payments_rejected
            + self.targets_rejected
            + self.profiles_rejected
            + self.projects_rejected
        )


class DashboardBundle(FrozenSchema):
    viewer_id: str
    scope: str
    as_of_date: date
    # None for organization scope (no actor filter).
    actor_ids: Optional[Tuple[str, ...]] = None
    kpis: DashboardKpis
    chart_series: ChartSeries
    leaderboards: Tuple[Leaderboard, ...]
    project_leaderboard: Tuple[LeaderboardEntry, ...]
    target_status: Tuple[TargetStatusRow, ...]
    upcoming_events: Tuple[OccurrenceEvent, ...]
    celebrations: Celebrations
    diagnostics: IngestionDiagnostics
