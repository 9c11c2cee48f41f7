from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_dashboard_service
from src.schemas.dashboard import DashboardBundle, DashboardComposeRequest, DashboardFilters
from src.services.dashboard_service import DashboardService
from src.shared.response import Meta, ResponseEnvelope

router = APIRouter(prefix="/dashboards", tags=["dashboards"])

DEFAULT_WINDOWS = ["today", "this_week", "this_month", "this_year"]


def get_dashboard_filters(
    scope: str | None = Query(default=None, pattern="^(individual|team|organization)$"),
    lookahead_days: int | None = Query(default=None, ge=0, le=366),
    top_n: int | None = Query(default=None, ge=1, le=100),
    trailing_months: int | None = Query(default=None, ge=1, le=24),
    week_start: str | None = Query(default=None, pattern="^(sunday|monday)$"),
    leaderboard_role: str = Query(default="all", pattern="^(all|sales_executive|team_leader)$"),
    windows: List[str] = Query(default=DEFAULT_WINDOWS),
) -> DashboardFilters:
    return DashboardFilters(
        scope=scope,
        lookahead_days=lookahead_days,
        top_n=top_n,
        trailing_months=trailing_months,
        week_start=week_start,
        leaderboard_role=leaderboard_role,
        windows=windows,
    )


def _build_meta(bundle: DashboardBundle, filters: DashboardFilters, source: str) -> Meta:
    rejected = bundle.diagnostics.total_rejected
    return Meta(
        as_of_date=bundle.as_of_date.isoformat(),
        source=source,
        time_window=",".join(filters.windows),
        calculation_version="v1",
        scope=bundle.scope,
        rejected_records=rejected,
        degraded=rejected > 0,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


@router.post("/compose")
def compose_dashboard(
    request: DashboardComposeRequest,
    service: DashboardService = Depends(get_dashboard_service),
) -> ResponseEnvelope[DashboardBundle]:
    now = request.as_of or datetime.now()
    data = service.compose_snapshot(request.snapshot, request.viewer_id, request.filters, now)
    return ResponseEnvelope(data=data, meta=_build_meta(data, request.filters, "snapshot"))


@router.get("/{viewer_id}")
def viewer_dashboard(
    viewer_id: str,
    as_of: datetime | None = Query(default=None),
    filters: DashboardFilters = Depends(get_dashboard_filters),
    service: DashboardService = Depends(get_dashboard_service),
) -> ResponseEnvelope[DashboardBundle]:
    now = as_of or datetime.now()
    data = service.get_dashboard(viewer_id, filters, now)
    return ResponseEnvelope(
        data=data, meta=_build_meta(data, filters, "profiles,sales,payments,targets,projects")
    )
