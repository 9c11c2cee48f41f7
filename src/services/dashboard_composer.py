from __future__ import annotations

from datetime import date
from decimal import Decimal, localcontext
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from src.analytics.aggregation import (
    achievement_percent,
    build_monthly_buckets,
    build_trailing_buckets,
    count_in_window,
    growth_percent,
    sum_in_window,
)
from src.analytics.ingest import RecordSnapshot
from src.analytics.leaderboard import rank_leaderboard, select_group
from src.analytics.occurrences import celebrations_by_kind, upcoming_events
from src.core.config import Settings, get_settings
from src.core.errors import BadRequestError, NotFoundError
from src.models.records import (
    ZERO,
    Actor,
    DatedMetricRecord,
    TargetRecord,
    select_amount,
    select_quantity,
)
from src.schemas.dashboard import (
    ChartSeries,
    DashboardBundle,
    DashboardFilters,
    DashboardKpis,
    Leaderboard,
    TargetAchievement,
    TargetStatusRow,
)
from src.shared.time import (
    Instant,
    TimeWindow,
    WindowKind,
    month_start,
    parse_week_start,
    parse_window_kind,
    resolve_window,
    to_calendar_date,
)

SCOPE_INDIVIDUAL = "individual"
SCOPE_TEAM = "team"
SCOPE_ORGANIZATION = "organization"
INDIVIDUAL_ROLES = {"sales_executive", "driver"}
TEAM_ROLES = {"team_leader"}
PERCENT_QUANTUM = Decimal("0.01")
LEADERBOARD_METRICS = (("revenue", select_amount), ("area", select_quantity))


class DashboardComposer:
    """Builds the dashboard bundle for one viewer from a record snapshot.

    Role scope is decided here only; the analytics functions it calls are
    role-agnostic.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self.settings = settings or get_settings()

    def compose(
        self,
        snapshot: RecordSnapshot,
        viewer_id: str,
        filters: DashboardFilters,
        now: Instant,
    ) -> DashboardBundle:
        today = to_calendar_date(now)
        week_start = parse_week_start(filters.week_start or self.settings.dashboard_week_start)
        lookahead_days = self._pick(filters.lookahead_days, self.settings.dashboard_lookahead_days)
        top_n = self._pick(filters.top_n, self.settings.dashboard_leaderboard_top_n)
        trailing = self._pick(filters.trailing_months, self.settings.dashboard_trailing_months)
        leaderboard_kinds = self._parse_windows(filters.windows)

        actors_by_id = {actor.id: actor for actor in snapshot.actors}
        viewer = actors_by_id.get(viewer_id)
        scope = self.resolve_scope(viewer, viewer_id, filters.scope)
        actor_ids = self.resolve_actor_ids(scope, viewer, snapshot.actors)

        all_sales = [sale for sale in snapshot.sales if not sale.is_cancelled]
        sales = self._in_scope(all_sales, actor_ids)
        payments = self._in_scope(snapshot.payments, actor_ids)
        targets = [
            target
            for target in snapshot.targets
            if actor_ids is None or target.actor_id in actor_ids
        ]
        windows = {
            kind: resolve_window(today, kind, week_start)
            for kind in set(leaderboard_kinds)
            | {WindowKind.TODAY, WindowKind.THIS_MONTH, WindowKind.THIS_YEAR, WindowKind.PREVIOUS_MONTH}
        }

        year_start = windows[WindowKind.THIS_YEAR].start
        chart_series = ChartSeries(
            year_to_date=tuple(build_monthly_buckets(sales, payments, year_start, today)),
            trailing=tuple(build_trailing_buckets(sales, payments, today, trailing)),
            area_vs_target=tuple(
                build_monthly_buckets(
                    sales,
                    self._monthly_target_records(targets),
                    year_start,
                    today,
                    primary_selector=select_quantity,
                    secondary_selector=select_quantity,
                )
            ),
        )

        # Individual viewers compete against the whole organization.
        ranking_sales = all_sales if scope == SCOPE_INDIVIDUAL else sales
        events = upcoming_events(snapshot.actors, today, lookahead_days)
        return DashboardBundle(
            viewer_id=viewer_id,
            scope=scope,
            as_of_date=today,
            actor_ids=tuple(sorted(actor_ids)) if actor_ids is not None else None,
            kpis=self._build_kpis(sales, payments, targets, windows),
            chart_series=chart_series,
            leaderboards=self._build_leaderboards(
                ranking_sales, actors_by_id, leaderboard_kinds, windows, top_n, filters.leaderboard_role
            ),
            project_leaderboard=tuple(
                rank_leaderboard(
                    sales,
                    select_quantity,
                    group_selector=select_group,
                    top_n=self.settings.dashboard_project_top_n,
                    window=windows[WindowKind.THIS_YEAR],
                    labels={project.id: (project.name, project.image_ref) for project in snapshot.projects},
                )
            ),
            target_status=self._build_target_status(
                sales, targets, actors_by_id, actor_ids, windows[WindowKind.THIS_MONTH]
            ),
            upcoming_events=tuple(events),
            celebrations=celebrations_by_kind(events, self.settings.dashboard_celebrations_limit),
            diagnostics=snapshot.diagnostics,
        )

    def resolve_scope(
        self, viewer: Optional[Actor], viewer_id: str, requested: Optional[str]
    ) -> str:
        if requested == SCOPE_ORGANIZATION:
            return SCOPE_ORGANIZATION
        if viewer is None:
            raise NotFoundError(f"Viewer {viewer_id} not found")
        if requested:
            return requested
        if viewer.role in INDIVIDUAL_ROLES:
            return SCOPE_INDIVIDUAL
        if viewer.role in TEAM_ROLES:
            return SCOPE_TEAM
        return SCOPE_ORGANIZATION

    def resolve_actor_ids(
        self, scope: str, viewer: Optional[Actor], actors: Iterable[Actor]
    ) -> Optional[frozenset[str]]:
        if scope == SCOPE_ORGANIZATION:
            return None
        if viewer is None:
            raise NotFoundError("Viewer not found")
        if scope == SCOPE_INDIVIDUAL:
            return frozenset({viewer.id})
        team = {actor.id for actor in actors if actor.is_active and actor.manager_id == viewer.id}
        team.add(viewer.id)
        return frozenset(team)

    def _build_kpis(
        self,
        sales: Sequence[DatedMetricRecord],
        payments: Sequence[DatedMetricRecord],
        targets: Sequence[TargetRecord],
        windows: Dict[WindowKind, TimeWindow],
    ) -> DashboardKpis:
        month = windows[WindowKind.THIS_MONTH]
        year = windows[WindowKind.THIS_YEAR]
        previous = windows[WindowKind.PREVIOUS_MONTH]

        monthly_count = count_in_window(sales, month)
        monthly_revenue = sum_in_window(sales, month, select_amount)
        monthly_area = sum_in_window(sales, month, select_quantity)
        ytd_revenue = sum_in_window(sales, year, select_amount)
        ytd_area = sum_in_window(sales, year, select_quantity)
        previous_count = count_in_window(sales, previous)
        previous_revenue = sum_in_window(sales, previous, select_amount)

        monthly_targets = [t for t in targets if self._is_monthly_target_for(t, month.start)]
        yearly_targets = self._yearly_targets(targets, year.start.year)
        target_rows = (
            self._achievement("monthly", "revenue", monthly_targets, monthly_revenue),
            self._achievement("monthly", "area", monthly_targets, monthly_area),
            self._achievement("yearly", "revenue", yearly_targets, ytd_revenue),
            self._achievement("yearly", "area", yearly_targets, ytd_area),
        )
        return DashboardKpis(
            today_sales_count=count_in_window(sales, windows[WindowKind.TODAY]),
            monthly_sales_count=monthly_count,
            monthly_revenue=monthly_revenue,
            monthly_area=monthly_area,
            monthly_collections=sum_in_window(payments, month, select_amount),
            ytd_sales_count=count_in_window(sales, year),
            ytd_revenue=ytd_revenue,
            ytd_area=ytd_area,
            ytd_collections=sum_in_window(payments, year, select_amount),
            previous_month_sales_count=previous_count,
            previous_month_revenue=previous_revenue,
            sales_growth_pct=self._round_pct(growth_percent(Decimal(monthly_count), Decimal(previous_count))),
            revenue_growth_pct=self._round_pct(growth_percent(monthly_revenue, previous_revenue)),
            targets=target_rows,
        )

    def _build_leaderboards(
        self,
        sales: Sequence[DatedMetricRecord],
        actors_by_id: Dict[str, Actor],
        kinds: Sequence[WindowKind],
        windows: Dict[WindowKind, TimeWindow],
        top_n: int,
        role: str,
    ) -> Tuple[Leaderboard, ...]:
        labels = {actor.id: (actor.display_name, actor.avatar_ref) for actor in actors_by_id.values()}
        predicate = None if role == "all" else self._role_predicate(actors_by_id, role)
        leaderboards: List[Leaderboard] = []
        for metric, selector in LEADERBOARD_METRICS:
            for kind in kinds:
                entries = rank_leaderboard(
                    sales,
                    selector,
                    top_n=top_n,
                    window=windows[kind],
                    predicate=predicate,
                    labels=labels,
                )
                leaderboards.append(
                    Leaderboard(
                        metric=metric,
                        window_kind=kind.value,
                        window=windows[kind],
                        entries=tuple(entries),
                    )
                )
        return tuple(leaderboards)

    def _build_target_status(
        self,
        sales: Sequence[DatedMetricRecord],
        targets: Sequence[TargetRecord],
        actors_by_id: Dict[str, Actor],
        actor_ids: Optional[frozenset[str]],
        month: TimeWindow,
    ) -> Tuple[TargetStatusRow, ...]:
        target_by_actor: Dict[str, Decimal] = {}
        for target in targets:
            if self._is_monthly_target_for(target, month.start):
                target_by_actor[target.actor_id] = target_by_actor.get(target.actor_id, ZERO) + target.amount
        achieved_by_actor: Dict[str, Decimal] = {}
        for sale in sales:
            if sale.actor_id and month.contains(sale.occurred_on):
                achieved_by_actor[sale.actor_id] = achieved_by_actor.get(sale.actor_id, ZERO) + sale.amount

        if actor_ids is None:
            member_ids = set(target_by_actor) | set(achieved_by_actor)
        else:
            member_ids = {
                actor_id
                for actor_id in actor_ids
                if actor_id in actors_by_id and actors_by_id[actor_id].is_active
            }
        rows: List[TargetStatusRow] = []
        for actor_id in member_ids:
            actor = actors_by_id.get(actor_id)
            target = target_by_actor.get(actor_id, ZERO)
            achieved = achieved_by_actor.get(actor_id, ZERO)
            rows.append(
                TargetStatusRow(
                    actor_id=actor_id,
                    display_name=actor.display_name if actor and actor.display_name else "Unknown",
                    role=actor.role if actor else None,
                    target_amount=target,
                    achieved_amount=achieved,
                    shortfall=max(ZERO, target - achieved),
                    achievement_pct=self._round_pct(achievement_percent(achieved, target)),
                )
            )
        return tuple(sorted(rows, key=lambda row: (row.display_name, row.actor_id)))

    def _achievement(
        self, period_kind: str, metric: str, targets: Sequence[TargetRecord], achieved: Decimal
    ) -> TargetAchievement:
        selector = (lambda t: t.amount) if metric == "revenue" else (lambda t: t.quantity)
        target = sum((selector(t) for t in targets), ZERO)
        return TargetAchievement(
            period_kind=period_kind,
            metric=metric,
            target=target,
            achieved=achieved,
            achievement_pct=self._round_pct(achievement_percent(achieved, target)),
            shortfall=max(ZERO, target - achieved),
        )

    @staticmethod
    def _role_predicate(
        actors_by_id: Dict[str, Actor], role: str
    ) -> Callable[[DatedMetricRecord], bool]:
        def matches(record: DatedMetricRecord) -> bool:
            actor = actors_by_id.get(record.actor_id or "")
            return actor is not None and actor.role == role

        return matches

    @staticmethod
    def _yearly_targets(targets: Sequence[TargetRecord], year: int) -> List[TargetRecord]:
        # Actors with an explicit yearly target use it; the rest add up their monthly ones.
        yearly = [t for t in targets if t.period_kind == "yearly" and t.period_start.year == year]
        covered = {t.actor_id for t in yearly}
        monthly = [
            t
            for t in targets
            if t.period_kind == "monthly" and t.period_start.year == year and t.actor_id not in covered
        ]
        return yearly + monthly

    @staticmethod
    def _is_monthly_target_for(target: TargetRecord, period: date) -> bool:
        return target.period_kind == "monthly" and month_start(target.period_start) == period

    @staticmethod
    def _monthly_target_records(targets: Sequence[TargetRecord]) -> List[DatedMetricRecord]:
        return [
            DatedMetricRecord(
                id=f"target:{target.actor_id}:{target.period_start.isoformat()}",
                occurred_on=month_start(target.period_start),
                actor_id=target.actor_id,
                amount=target.amount,
                quantity=target.quantity,
            )
            for target in targets
            if target.period_kind == "monthly"
        ]

    @staticmethod
    def _in_scope(
        records: Iterable[DatedMetricRecord], actor_ids: Optional[frozenset[str]]
    ) -> List[DatedMetricRecord]:
        if actor_ids is None:
            return list(records)
        return [record for record in records if record.actor_id in actor_ids]

    @staticmethod
    def _parse_windows(values: Sequence[str]) -> List[WindowKind]:
        kinds: List[WindowKind] = []
        for value in values:
            kind = parse_window_kind(value)
            if kind == WindowKind.PREVIOUS_MONTH:
                raise BadRequestError("Leaderboards cover to-date windows only")
            if kind not in kinds:
                kinds.append(kind)
        return kinds

    @staticmethod
    def _pick(value: Optional[int], default: int) -> int:
        return default if value is None else value

    @staticmethod
    def _round_pct(value: Decimal) -> Decimal:
        # Two decimal places must fit in the context precision for huge amounts.
        with localcontext() as ctx:
            ctx.prec = max(ctx.prec, value.adjusted() + 3)
            return value.quantize(PERCENT_QUANTUM)
