from __future__ import annotations

from decimal import Decimal

from fastapi.testclient import TestClient

from src.api.dependencies import get_dashboard_service
from src.main import create_app
from src.services.dashboard_composer import DashboardComposer
from src.services.dashboard_service import DashboardService


AS_OF = "2024-02-15T10:00:00"


def _compose_body(raw_snapshot, viewer_id: str = "admin-1", **filters) -> dict:
    return {
        "viewerId": viewer_id,
        "asOf": AS_OF,
        "filters": filters,
        "snapshot": raw_snapshot.model_dump(mode="json"),
    }


def test_compose_returns_camel_case_bundle(client, raw_snapshot) -> None:
    response = client.post("/api/v1/dashboards/compose", json=_compose_body(raw_snapshot))
    assert response.status_code == 200
    payload = response.json()

    kpis = payload["data"]["kpis"]
    assert Decimal(str(kpis["ytdRevenue"])) == Decimal("1150")
    assert kpis["monthlySalesCount"] == 3
    assert payload["data"]["scope"] == "organization"
    assert payload["data"]["actorIds"] is None
    assert [bucket["label"] for bucket in payload["data"]["chartSeries"]["yearToDate"]] == ["Jan", "Feb"]

    meta = payload["meta"]
    assert meta["source"] == "snapshot"
    assert meta["asOfDate"] == "2024-02-15"
    assert meta["rejectedRecords"] == 2
    assert meta["degraded"] is True


def test_compose_applies_request_filters(client, raw_snapshot) -> None:
    body = _compose_body(raw_snapshot, viewer_id="tl-1", topN=1, windows=["this_year"])
    response = client.post("/api/v1/dashboards/compose", json=body)
    assert response.status_code == 200
    data = response.json()["data"]

    assert data["scope"] == "team"
    assert data["actorIds"] == ["se-1", "se-2", "tl-1"]
    assert len(data["leaderboards"]) == 2
    assert all(len(leaderboard["entries"]) == 1 for leaderboard in data["leaderboards"])
    assert data["leaderboards"][0]["entries"][0]["actorId"] == "tl-1"


def test_compose_missing_collection_is_not_ready(client, raw_snapshot) -> None:
    body = _compose_body(raw_snapshot)
    body["snapshot"]["payments"] = None
    response = client.post("/api/v1/dashboards/compose", json=body)
    assert response.status_code == 503
    error = response.json()["error"]
    assert error["code"] == "data_not_ready"
    assert error["details"] == {"collection": "payments"}


def test_compose_rejects_unknown_snapshot_collection(client, raw_snapshot) -> None:
    body = _compose_body(raw_snapshot)
    body["snapshot"]["leads"] = []
    response = client.post("/api/v1/dashboards/compose", json=body)
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_viewer_dashboard_reads_repository(client, stub_repository) -> None:
    response = client.get("/api/v1/dashboards/se-1", params={"as_of": AS_OF})
    assert response.status_code == 200
    payload = response.json()

    assert stub_repository.load_calls == 1
    assert payload["data"]["scope"] == "individual"
    assert payload["data"]["actorIds"] == ["se-1"]
    assert Decimal(str(payload["data"]["kpis"]["monthlyRevenue"])) == Decimal("200")
    assert payload["meta"]["source"] == "profiles,sales,payments,targets,projects"
    assert payload["meta"]["scope"] == "individual"
    assert payload["meta"]["timeWindow"] == "today,this_week,this_month,this_year"


def test_viewer_dashboard_query_filters(client) -> None:
    response = client.get(
        "/api/v1/dashboards/admin-1",
        params={
            "as_of": AS_OF,
            "lookahead_days": 7,
            "windows": ["this_month"],
            "leaderboard_role": "sales_executive",
        },
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert [event["displayName"] for event in data["upcomingEvents"]] == ["Cal Exec", "Asha Admin"]
    assert {leaderboard["windowKind"] for leaderboard in data["leaderboards"]} == {"this_month"}
    revenue = data["leaderboards"][0]
    assert [entry["actorId"] for entry in revenue["entries"]] == ["se-2", "se-1", "se-3"]


def test_viewer_dashboard_unknown_viewer(client) -> None:
    response = client.get("/api/v1/dashboards/nobody", params={"as_of": AS_OF})
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "not_found"


def test_viewer_dashboard_unknown_window(client) -> None:
    response = client.get(
        "/api/v1/dashboards/admin-1", params={"as_of": AS_OF, "windows": ["fortnight"]}
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "bad_request"


def test_viewer_dashboard_invalid_query(client) -> None:
    response = client.get(
        "/api/v1/dashboards/admin-1", params={"scope": "galaxy", "top_n": 0}
    )
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


def test_viewer_dashboard_without_data_store_is_not_ready(raw_snapshot) -> None:
    class EmptyRepository:
        def load_snapshot(self):
            return raw_snapshot.model_copy(update={"profiles": None})

    app = create_app()
    app.dependency_overrides[get_dashboard_service] = lambda: DashboardService(
        repository=EmptyRepository(),
        composer=DashboardComposer(),
    )
    try:
        response = TestClient(app).get("/api/v1/dashboards/admin-1")
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 503
    assert response.json()["error"]["details"] == {"collection": "profiles"}
