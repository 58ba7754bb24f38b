"""
Tests de etiquetas QR y del escáner.
"""

import json
from datetime import date, timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from app.core.exceptions import ValidationException
from app.models.reagent_lot import ReagentLot
from app.services.qr_service import parse_payload
from tests.conftest import auth_headers

SCAN = "/api/v1/scanner/scan"


async def test_qr_png_is_rendered_and_recorded(make_lot, client, technician_user):
    lot = await make_lot(lot_number="QR-001")

    response = await client.get(
        f"/api/v1/lots/{lot['id']}/qr?reason=Etiqueta danificada", headers=auth_headers(technician_user)
    )
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.content.startswith(b"\x89PNG\r\n\x1a\n")
    assert "qr-QR-001.png" in response.headers["content-disposition"]

    history = await client.get(f"/api/v1/lots/{lot['id']}/qr/history", headers=auth_headers(technician_user))
    assert history.status_code == 200
    records = history.json()
    assert len(records) == 1
    assert records[0]["print_reason"] == "Etiqueta danificada"
    assert records[0]["printed_by"] == str(technician_user.id)


async def test_scan_returns_current_lot_state(make_lot, client, technician_user):
    lot = await make_lot(initial_quantity="40")
    await client.post(
        f"/api/v1/lots/{lot['id']}/consume", json={"quantity": "10"}, headers=auth_headers(technician_user)
    )

    response = await client.post(
        SCAN, json={"payload": json.dumps(lot["qr_code_data"])}, headers=auth_headers(technician_user)
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["lot"]["id"] == lot["id"]
    assert Decimal(body["lot"]["current_quantity"]) == Decimal("30")
    assert body["expired"] is False
    assert body["expiring_soon"] is False
    assert body["payload_mismatch"] is False


async def test_scan_flags_expiring_soon(make_lot, client, technician_user):
    lot = await make_lot(expiry_date=(date.today() + timedelta(days=7)).isoformat())
    response = await client.post(
        SCAN, json={"payload": json.dumps(lot["qr_code_data"])}, headers=auth_headers(technician_user)
    )
    assert response.json()["expiring_soon"] is True


async def test_scan_flags_expired_lot(make_lot, client, technician_user, db_session):
    lot = await make_lot()
    db_lot = await db_session.get(ReagentLot, UUID(lot["id"]))
    db_lot.expiry_date = date.today() - timedelta(days=3)
    await db_session.flush()

    response = await client.post(
        SCAN, json={"payload": json.dumps(lot["qr_code_data"])}, headers=auth_headers(technician_user)
    )
    body = response.json()
    assert body["expired"] is True
    assert body["expiring_soon"] is False
    assert body["lot"]["stock_status"] == "expired"


async def test_scan_flags_payload_mismatch(make_lot, client, technician_user):
    lot = await make_lot(lot_number="REAL-1")
    payload = dict(lot["qr_code_data"], lot="FORJADO-9")

    response = await client.post(SCAN, json={"payload": json.dumps(payload)}, headers=auth_headers(technician_user))
    assert response.status_code == 200
    assert response.json()["payload_mismatch"] is True


async def test_scan_unknown_lot_returns_404(client, technician_user):
    payload = json.dumps({"id": str(uuid4()), "lot": "X"})
    response = await client.post(SCAN, json={"payload": payload}, headers=auth_headers(technician_user))
    assert response.status_code == 404


async def test_scan_invalid_payload_returns_422(client, technician_user):
    response = await client.post(SCAN, json={"payload": "not-json"}, headers=auth_headers(technician_user))
    assert response.status_code == 422


@pytest.mark.parametrize(
    "raw",
    [
        "{broken",
        "[1, 2, 3]",
        '{"lot": "A1"}',
        '{"id": "not-a-uuid"}',
    ],
)
def test_parse_payload_rejects_garbage(raw):
    with pytest.raises(ValidationException):
        parse_payload(raw)


def test_parse_payload_accepts_minimal_payload():
    lot_id = str(uuid4())
    assert parse_payload(json.dumps({"id": lot_id}))["id"] == lot_id
