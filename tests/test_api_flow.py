from __future__ import annotations

from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from app import create_app


DEMO_TENANT = "demo-company"
SALES = {"X-Tenant-Id": DEMO_TENANT, "X-Role": "sales", "X-User-Id": "rep-7"}


def _build_client(settings, **overrides) -> TestClient:
    app = create_app(replace(settings, seed_demo_data=True, demo_tenant_id=DEMO_TENANT, **overrides))
    return TestClient(app)


def _create_plan(client: TestClient, resource_ids, start: str, end: str) -> str:
    response = client.post(
        "/plans",
        json={
            "plan_name": "Festive push",
            "client_name": "Acme Foods",
            "start_date": start,
            "end_date": end,
        },
        headers=SALES,
    )
    assert response.status_code == 201
    plan_id = response.json()["id"]
    for resource_id in resource_ids:
        added = client.post(
            f"/plans/{plan_id}/items",
            json={"resource_id": resource_id, "sales_price": 60000},
            headers=SALES,
        )
        assert added.status_code == 200
    return plan_id


def test_health_reports_version(settings) -> None:
    with _build_client(settings) as client:
        response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "version": settings.app_version}


def test_plan_to_campaign_flow(settings) -> None:
    with _build_client(settings) as client:
        plan_id = _create_plan(client, ["HYD-HOD-0001", "HYD-UNI-0001"], "2024-03-01", "2024-03-30")
        assert plan_id.startswith("PLAN-")

        approved = client.post(f"/plans/{plan_id}/status", json={"status": "Approved"}, headers=SALES)
        assert approved.status_code == 200
        assert approved.json()["status"] == "Approved"
        assert len(approved.json()["items"]) == 2

        converted = client.post(f"/plans/{plan_id}/convert", headers=SALES)
        assert converted.status_code == 200
        body = converted.json()
        campaign_id = body["campaign_id"]
        assert body["already_converted"] is False
        assert body["completed_steps"][-1] == "finalize_plan"
        assert len(body["completed_steps"]) == 8
        assert body["campaign"]["total_amount"] == 120000.0

        campaign = client.get(f"/campaigns/{campaign_id}", headers={**SALES, "X-Role": "finance"})
        assert campaign.status_code == 200
        assert campaign.json()["source_plan_id"] == plan_id
        assert {asset["resource_id"] for asset in campaign.json()["assets"]} == {
            "HYD-HOD-0001",
            "HYD-UNI-0001",
        }

        availability = client.post(
            "/availability",
            json={"start_date": "2024-03-10", "end_date": "2024-03-20", "city": "Hyderabad"},
            headers=SALES,
        )
        assert availability.status_code == 200
        summary = availability.json()["summary"]
        assert summary["booked_count"] == 2
        assert summary["available_count"] == 2

        repeated = client.post(f"/plans/{plan_id}/convert", headers=SALES)
        assert repeated.status_code == 200
        assert repeated.json()["already_converted"] is True
        assert repeated.json()["campaign_id"] == campaign_id

        locked = client.post(
            f"/plans/{plan_id}/items",
            json={"resource_id": "HYD-BQS-0001"},
            headers=SALES,
        )
        assert locked.status_code == 400


def test_overlapping_conversion_returns_conflict_detail(settings) -> None:
    with _build_client(settings) as client:
        first = _create_plan(client, ["BEN-HOD-0001"], "2024-05-01", "2024-05-31")
        second = _create_plan(client, ["BEN-HOD-0001", "BEN-CM-0001"], "2024-05-10", "2024-05-25")

        assert client.post(f"/plans/{first}/convert", headers=SALES).status_code == 200
        response = client.post(f"/plans/{second}/convert", headers=SALES)

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert [item["resource_id"] for item in detail["conflicting_resources"]] == ["BEN-HOD-0001"]
    assert detail["conflicting_resources"][0]["availability_status"] == "booked"


def test_invalid_window_and_unknown_plan(settings) -> None:
    with _build_client(settings) as client:
        invalid = client.post(
            "/availability",
            json={"start_date": "2024-03-31", "end_date": "2024-03-01"},
            headers=SALES,
        )
        missing = client.post("/plans/PLAN-000000-9999/convert", headers=SALES)
        converted_status = client.post(
            "/plans/PLAN-000000-9999/status", json={"status": "Converted"}, headers=SALES
        )

    assert invalid.status_code == 400
    assert missing.status_code == 404
    assert converted_status.status_code == 422


@pytest.mark.parametrize(
    ("headers", "body_tenant"),
    [
        ({"X-Role": "sales"}, None),
        ({"X-Tenant-Id": DEMO_TENANT, "X-Role": "intern"}, None),
        ({"X-Tenant-Id": DEMO_TENANT, "X-Role": "viewer"}, None),
        (SALES, "someone-else"),
    ],
)
def test_availability_rejects_callers_without_access(settings, headers, body_tenant) -> None:
    payload = {"start_date": "2024-03-01", "end_date": "2024-03-31"}
    if body_tenant:
        payload["tenant_id"] = body_tenant

    with _build_client(settings) as client:
        response = client.post("/availability", json=payload, headers=headers)

    assert response.status_code == 403


def test_bearer_token_is_enforced_when_configured(settings) -> None:
    payload = {"start_date": "2024-03-01", "end_date": "2024-03-31"}
    with _build_client(settings, api_token="s3cret") as client:
        missing = client.post("/availability", json=payload, headers=SALES)
        wrong = client.post(
            "/availability",
            json=payload,
            headers={**SALES, "Authorization": "Bearer nope"},
        )
        accepted = client.post(
            "/availability",
            json=payload,
            headers={**SALES, "Authorization": "Bearer s3cret"},
        )

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert accepted.status_code == 200
    assert accepted.json()["summary"]["total_assets"] == 8


def test_utilization_report_endpoint(settings) -> None:
    with _build_client(settings) as client:
        plan_id = _create_plan(client, ["HYD-HOD-0001"], "2024-03-01", "2024-03-10")
        client.post(f"/plans/{plan_id}/convert", headers=SALES)
        response = client.get(
            "/utilization",
            params={"start_date": "2024-03-01", "end_date": "2024-03-10"},
            headers=SALES,
        )

    assert response.status_code == 200
    summary = response.json()["summary"]
    assert summary["total_assets"] == 8
    assert summary["booked_assets"] == 1
    assert summary["total_revenue"] == 20000.0
