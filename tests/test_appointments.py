"""
Tests de agendamientos: reserva FEFO, faltantes, consumo contra reserva
y liberación al cancelar, completar o expirar.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from app.models.appointment import ReagentReservation, ReservationStatus
from app.models.reagent_lot import ReagentLot
from app.services import reservation_service
from tests.conftest import auth_headers

API = "/api/v1/appointments"


def _appointment_body(exam_type, unit, **overrides) -> dict:
    body = {
        "exam_type_id": str(exam_type.id),
        "unit_id": str(unit.id),
        "patient_name": "Maria Souza",
        "scheduled_date": (datetime.now(timezone.utc) + timedelta(days=1)).isoformat(),
    }
    body.update(overrides)
    return body


async def _lot(client, user, lot_id) -> dict:
    response = await client.get(f"/api/v1/lots/{lot_id}", headers=auth_headers(user))
    return response.json()


async def test_create_appointment_reserves_fefo_lot(
    make_lot, client, technician_user, test_exam_type, test_unit
):
    later = await make_lot(expiry_date=(date.today() + timedelta(days=200)).isoformat())
    sooner = await make_lot(expiry_date=(date.today() + timedelta(days=60)).isoformat())

    response = await client.post(
        API, json=_appointment_body(test_exam_type, test_unit), headers=auth_headers(technician_user)
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["status"] == "scheduled"
    assert body["shortages"] == []
    assert len(body["reservations"]) == 1

    reservation = body["reservations"][0]
    assert reservation["reagent_lot_id"] == sooner["id"]
    assert Decimal(reservation["quantity_reserved"]) == Decimal("5")
    assert reservation["status"] == "active"

    sooner_now = await _lot(client, technician_user, sooner["id"])
    assert Decimal(sooner_now["reserved_quantity"]) == Decimal("5")
    assert Decimal(sooner_now["available_quantity"]) == Decimal("95")
    later_now = await _lot(client, technician_user, later["id"])
    assert Decimal(later_now["reserved_quantity"]) == 0


async def test_create_appointment_skips_lots_without_enough_available(
    make_lot, client, technician_user, test_exam_type, test_unit
):
    small = await make_lot(initial_quantity="3", expiry_date=(date.today() + timedelta(days=20)).isoformat())
    big = await make_lot(initial_quantity="50", expiry_date=(date.today() + timedelta(days=90)).isoformat())

    response = await client.post(
        API, json=_appointment_body(test_exam_type, test_unit), headers=auth_headers(technician_user)
    )
    body = response.json()
    assert body["reservations"][0]["reagent_lot_id"] == big["id"]
    assert Decimal((await _lot(client, technician_user, small["id"]))["reserved_quantity"]) == 0


async def test_create_appointment_reports_shortage(
    make_lot, client, technician_user, test_exam_type, test_unit, test_reagent
):
    await make_lot(initial_quantity="2")

    response = await client.post(
        API, json=_appointment_body(test_exam_type, test_unit), headers=auth_headers(technician_user)
    )
    assert response.status_code == 201
    body = response.json()
    assert body["reservations"] == []
    assert len(body["shortages"]) == 1
    shortage = body["shortages"][0]
    assert shortage["reagent_id"] == str(test_reagent.id)
    assert shortage["reagent_name"] == test_reagent.name
    assert Decimal(shortage["required_quantity"]) == Decimal("5")
    assert Decimal(shortage["best_available"]) == Decimal("2")


async def test_reservations_are_scoped_to_unit(
    make_lot, client, technician_user, test_exam_type, other_unit
):
    await make_lot()
    response = await client.post(
        API, json=_appointment_body(test_exam_type, other_unit), headers=auth_headers(technician_user)
    )
    body = response.json()
    assert body["reservations"] == []
    assert len(body["shortages"]) == 1


async def test_reserved_quantity_is_not_consumable_by_others(
    make_lot, client, technician_user, test_exam_type, test_unit
):
    lot = await make_lot(initial_quantity="10")
    await client.post(API, json=_appointment_body(test_exam_type, test_unit), headers=auth_headers(technician_user))

    response = await client.post(
        f"/api/v1/lots/{lot['id']}/consume", json={"quantity": "6"}, headers=auth_headers(technician_user)
    )
    assert response.status_code == 422

    response = await client.post(
        f"/api/v1/lots/{lot['id']}/consume", json={"quantity": "5"}, headers=auth_headers(technician_user)
    )
    assert response.status_code == 200


async def test_consume_against_appointment_fulfils_reservation(
    make_lot, client, technician_user, test_exam_type, test_unit
):
    lot = await make_lot(initial_quantity="5")
    appointment = (
        await client.post(API, json=_appointment_body(test_exam_type, test_unit), headers=auth_headers(technician_user))
    ).json()
    assert len(appointment["reservations"]) == 1

    response = await client.post(
        f"/api/v1/lots/{lot['id']}/consume",
        json={"quantity": "5", "appointment_id": appointment["id"]},
        headers=auth_headers(technician_user),
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert Decimal(body["lot"]["current_quantity"]) == 0
    assert Decimal(body["lot"]["reserved_quantity"]) == 0
    assert body["log"]["appointment_id"] == appointment["id"]

    detail = (await client.get(f"{API}/{appointment['id']}", headers=auth_headers(technician_user))).json()
    assert detail["reservations"][0]["status"] == "fulfilled"


async def test_cancel_releases_reservations(
    make_lot, client, technician_user, test_exam_type, test_unit
):
    lot = await make_lot(initial_quantity="20")
    appointment = (
        await client.post(API, json=_appointment_body(test_exam_type, test_unit), headers=auth_headers(technician_user))
    ).json()

    response = await client.patch(
        f"{API}/{appointment['id']}/status",
        json={"status": "cancelled", "notes": "Paciente desmarcou"},
        headers=auth_headers(technician_user),
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["status"] == "cancelled"
    assert body["reservations"][0]["status"] == "released"
    assert Decimal((await _lot(client, technician_user, lot["id"]))["reserved_quantity"]) == 0

    consume = await client.post(
        f"/api/v1/lots/{lot['id']}/consume",
        json={"quantity": "1", "appointment_id": appointment["id"]},
        headers=auth_headers(technician_user),
    )
    assert consume.status_code == 422


async def test_complete_sets_completed_by(
    make_lot, client, technician_user, test_exam_type, test_unit
):
    await make_lot()
    appointment = (
        await client.post(API, json=_appointment_body(test_exam_type, test_unit), headers=auth_headers(technician_user))
    ).json()

    started = await client.patch(
        f"{API}/{appointment['id']}/status", json={"status": "in_progress"}, headers=auth_headers(technician_user)
    )
    assert started.json()["reservations"][0]["status"] == "active"

    done = await client.patch(
        f"{API}/{appointment['id']}/status", json={"status": "completed"}, headers=auth_headers(technician_user)
    )
    body = done.json()
    assert body["status"] == "completed"
    assert body["completed_by"] == str(technician_user.id)
    assert body["reservations"][0]["status"] == "released"


async def test_invalid_transition_is_rejected(
    client, technician_user, test_exam_type, test_unit
):
    appointment = (
        await client.post(API, json=_appointment_body(test_exam_type, test_unit), headers=auth_headers(technician_user))
    ).json()
    await client.patch(
        f"{API}/{appointment['id']}/status", json={"status": "cancelled"}, headers=auth_headers(technician_user)
    )

    response = await client.patch(
        f"{API}/{appointment['id']}/status", json={"status": "in_progress"}, headers=auth_headers(technician_user)
    )
    assert response.status_code == 422


async def test_list_appointments_search(client, technician_user, test_exam_type, test_unit):
    await client.post(
        API, json=_appointment_body(test_exam_type, test_unit, patient_name="João Lima"),
        headers=auth_headers(technician_user),
    )
    await client.post(
        API, json=_appointment_body(test_exam_type, test_unit, patient_name="Carla Dias"),
        headers=auth_headers(technician_user),
    )

    response = await client.get(f"{API}?search=joão", headers=auth_headers(technician_user))
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["patient_name"] == "João Lima"

    response = await client.get(f"{API}?search=glicemia", headers=auth_headers(technician_user))
    assert response.json()["total"] == 2


async def test_auditor_cannot_create_appointment(client, auditor_user, test_exam_type, test_unit):
    response = await client.post(
        API, json=_appointment_body(test_exam_type, test_unit), headers=auth_headers(auditor_user)
    )
    assert response.status_code == 403


async def test_expired_reservations_are_released(
    make_lot, client, technician_user, test_exam_type, test_unit, db_session
):
    lot = await make_lot(initial_quantity="10")
    await client.post(API, json=_appointment_body(test_exam_type, test_unit), headers=auth_headers(technician_user))

    released = await reservation_service.release_expired_reservations(
        db_session, now=datetime.now(timezone.utc) + timedelta(hours=25)
    )
    assert released == 1

    db_lot = await db_session.get(ReagentLot, UUID(lot["id"]))
    await db_session.refresh(db_lot)
    assert db_lot.reserved_quantity == 0

    result = await db_session.execute(select(ReagentReservation))
    reservation = result.scalars().one()
    assert reservation.status == ReservationStatus.EXPIRED


async def test_fresh_reservations_survive_sweep(
    make_lot, client, technician_user, test_exam_type, test_unit, db_session
):
    await make_lot(initial_quantity="10")
    await client.post(API, json=_appointment_body(test_exam_type, test_unit), headers=auth_headers(technician_user))

    released = await reservation_service.release_expired_reservations(db_session)
    assert released == 0
