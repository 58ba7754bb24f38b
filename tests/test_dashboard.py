"""
Tests del dashboard.
"""

from datetime import date, timedelta
from decimal import Decimal

from tests.conftest import auth_headers

API = "/api/v1/dashboard"


async def test_dashboard_empty(client, auditor_user, test_unit):
    response = await client.get(API, headers=auth_headers(auditor_user))
    assert response.status_code == 200
    body = response.json()
    assert body["stats"] == {
        "active_lots": 0,
        "low_stock_lots": 0,
        "expiring_soon_lots": 0,
        "consumptions_today": 0,
    }
    assert body["recent_activity"] == []
    assert [u["unit_name"] for u in body["stock_by_unit"]] == [test_unit.name]
    assert body["stock_by_unit"][0]["availability_percentage"] == 0.0


async def test_dashboard_stats(make_lot, client, technician_user, other_unit):
    lot = await make_lot(initial_quantity="100")
    await make_lot(initial_quantity="15")
    await make_lot(expiry_date=(date.today() + timedelta(days=10)).isoformat())
    await make_lot(unit_id=str(other_unit.id), initial_quantity="40")

    await client.post(
        f"/api/v1/lots/{lot['id']}/consume", json={"quantity": "20"}, headers=auth_headers(technician_user)
    )

    response = await client.get(API, headers=auth_headers(technician_user))
    assert response.status_code == 200
    body = response.json()
    assert body["stats"]["active_lots"] == 4
    assert body["stats"]["low_stock_lots"] == 1
    assert body["stats"]["expiring_soon_lots"] == 1
    assert body["stats"]["consumptions_today"] == 1

    by_unit = {u["unit_name"]: u for u in body["stock_by_unit"]}
    central = by_unit["Laboratório Central"]
    assert central["lots"] == 3
    assert Decimal(central["total_quantity"]) == Decimal("195")
    assert central["availability_percentage"] == 100.0
    assert Decimal(by_unit["Unidade Norte"]["total_quantity"]) == Decimal("40")


async def test_dashboard_reserved_stock(make_lot, client, technician_user, test_exam_type, test_unit):
    await make_lot(initial_quantity="50")
    await client.post(
        "/api/v1/appointments",
        json={
            "exam_type_id": str(test_exam_type.id),
            "unit_id": str(test_unit.id),
            "patient_name": "Paulo Prado",
            "scheduled_date": "2099-01-01T09:00:00+00:00",
        },
        headers=auth_headers(technician_user),
    )

    body = (await client.get(API, headers=auth_headers(technician_user))).json()
    central = body["stock_by_unit"][0]
    assert Decimal(central["reserved_quantity"]) == Decimal("5")
    assert Decimal(central["available_quantity"]) == Decimal("45")
    assert central["availability_percentage"] == 90.0


async def test_recent_activity_limit(make_lot, client, technician_user):
    lot = await make_lot()
    for _ in range(3):
        await client.post(
            f"/api/v1/lots/{lot['id']}/consume", json={"quantity": "1"}, headers=auth_headers(technician_user)
        )

    body = (await client.get(f"{API}?recent=2", headers=auth_headers(technician_user))).json()
    assert len(body["recent_activity"]) == 2
    assert all(item["lot_number"] == lot["lot_number"] for item in body["recent_activity"])


async def test_dashboard_requires_auth(client):
    response = await client.get(API)
    assert response.status_code in (401, 403)
