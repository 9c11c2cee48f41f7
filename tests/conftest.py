from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from src.analytics.ingest import RecordSnapshot, build_snapshot
from src.api.dependencies import get_dashboard_service
from src.core.config import Settings
from src.main import create_app
from src.schemas.dashboard import RawSnapshot
from src.services.dashboard_composer import DashboardComposer
from src.services.dashboard_service import DashboardService


def build_raw_snapshot() -> RawSnapshot:
    return RawSnapshot(
        profiles=[
            {
                "id": "admin-1",
                "full_name": "Asha Admin",
                "role": "admin",
                "image_url": "https://cdn.example.com/asha.png",
                "dob": "1985-02-20",
                "joining_date": "2020-03-01",
                "is_active": True,
            },
            {
                "id": "tl-1",
                "full_name": "Tara Lead",
                "role": "team_leader",
                "joining_date": "2022-02-25",
                "is_active": True,
            },
            {
                "id": "se-1",
                "full_name": "Sam Exec",
                "role": "sales_executive",
                "reporting_manager_id": "tl-1",
                "dob": "1990-02-29",
                "marriage_anniversary": "2015-03-10",
                "is_active": True,
            },
            {
                "id": "se-2",
                "full_name": "Bea Exec",
                "role": "sales_executive",
                "reporting_manager_id": "tl-1",
                "joining_date": "2024-01-10",
                "is_active": True,
            },
            {
                "id": "se-3",
                "full_name": "Cal Exec",
                "role": "sales_executive",
                "dob": "1992-02-15",
                "is_active": True,
            },
            {
                "id": "old-1",
                "full_name": "Old Timer",
                "role": "sales_executive",
                "reporting_manager_id": "tl-1",
                "dob": "1980-02-16",
                "is_active": False,
            },
        ],
        sales=[
            _sale("s1", "2024-01-05", "se-1", 100, 10, "p1"),
            _sale("s2", "2024-02-10", "se-1", 200, 20, "p1"),
            _sale("s3", "2024-02-12", "se-2", 300, 30, "p2"),
            _sale("s4", "2024-02-15T09:30:00Z", "se-3", 150, 15, "p2"),
            _sale("s5", "2024-02-11", "se-2", 999, 99, "p2", status="cancelled"),
            _sale("s6", "not-a-date", "se-1", 500, 50, "p1"),
            _sale("s7", "2023-12-20", "se-1", 50, 5, "p1"),
            _sale("s8", "2024-01-20", "tl-1", 400, 40, "p1"),
        ],
        payments=[
            {"id": "pay-1", "sale_id": "s1", "payment_date": "2024-01-15", "amount": 40},
            {"id": "pay-2", "sale_id": "s3", "payment_date": "2024-02-13", "amount": "120.00"},
            {"id": "pay-3", "sale_id": "s2", "payment_date": "2024-13-40", "amount": 80},
        ],
        targets=[
            {
                "user_id": "se-1",
                "period_type": "monthly",
                "start_date": "2024-02-01",
                "target_amount": 400,
                "target_sqft": 40,
            },
            {
                "user_id": "se-2",
                "period_type": "monthly",
                "start_date": "2024-02-01",
                "target_amount": 0,
                "target_sqft": 0,
            },
            {
                "user_id": "tl-1",
                "period_type": "yearly",
                "start_date": "2024-01-01",
                "target_amount": 5000,
                "target_sqft": 500,
            },
        ],
        projects=[
            {"id": "p1", "name": "Green Acres", "site_photos": ["https://cdn.example.com/p1.jpg"]},
            {"id": "p2", "name": "Lake View", "site_photos": []},
        ],
    )


def _sale(
    sale_id: str,
    sale_date: str,
    executive_id: str,
    revenue: int,
    area: int,
    project_id: str,
    status: str = "booked",
) -> dict:
    return {
        "id": sale_id,
        "sale_date": sale_date,
        "sales_executive_id": executive_id,
        "total_revenue": revenue,
        "area_sqft": area,
        "project_id": project_id,
        "metadata": {"booking_status": status},
    }


class StubDashboardRepository:
    def __init__(self, raw: RawSnapshot) -> None:
        self.raw = raw
        self.load_calls = 0

    def load_snapshot(self) -> RawSnapshot:
        self.load_calls += 1
        return self.raw


@pytest.fixture()
def raw_snapshot() -> RawSnapshot:
    return build_raw_snapshot()


@pytest.fixture()
def record_snapshot(raw_snapshot: RawSnapshot) -> RecordSnapshot:
    return build_snapshot(raw_snapshot)


@pytest.fixture()
def composer() -> DashboardComposer:
    return DashboardComposer(settings=Settings())


@pytest.fixture()
def stub_repository(raw_snapshot: RawSnapshot) -> StubDashboardRepository:
    return StubDashboardRepository(raw_snapshot)


@pytest.fixture()
def client(stub_repository: StubDashboardRepository, composer: DashboardComposer) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_dashboard_service] = lambda: DashboardService(
        repository=stub_repository,
        composer=composer,
    )
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
