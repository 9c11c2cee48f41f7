from __future__ import annotations

from src.analytics.ingest import build_snapshot
from src.repositories.dashboard_repository import DashboardRepository
from src.schemas.dashboard import DashboardBundle, DashboardFilters, RawSnapshot
from src.services.dashboard_composer import DashboardComposer
from src.shared.time import Instant


class DashboardService:
    def __init__(self, repository: DashboardRepository, composer: DashboardComposer) -> None:
        self.repository = repository
        self.composer = composer

    def get_dashboard(
        self, viewer_id: str, filters: DashboardFilters, now: Instant
    ) -> DashboardBundle:
        raw = self.repository.load_snapshot()
        return self.compose_snapshot(raw, viewer_id, filters, now)

    def compose_snapshot(
        self, raw: RawSnapshot, viewer_id: str, filters: DashboardFilters, now: Instant
    ) -> DashboardBundle:
        snapshot = build_snapshot(raw)
        return self.composer.compose(snapshot, viewer_id, filters, now)
