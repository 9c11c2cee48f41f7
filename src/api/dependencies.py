from __future__ import annotations

from functools import lru_cache

from src.core.config import get_settings
from src.repositories.dashboard_repository import DashboardRepository
from src.services.dashboard_composer import DashboardComposer
from src.services.dashboard_service import DashboardService


@lru_cache
def get_dashboard_repository() -> DashboardRepository:
    return DashboardRepository()


def get_dashboard_composer() -> DashboardComposer:
    return DashboardComposer(settings=get_settings())


def get_dashboard_service() -> DashboardService:
    return DashboardService(
        repository=get_dashboard_repository(),
        composer=get_dashboard_composer(),
    )
