"""
Tests de gamificación: reglas de puntos, niveles, rachas y conquistas.
"""

from datetime import date

from app.models.reagent_lot import ConsumptionAction
from app.services import gamification_service
from app.services.gamification_service import (
    _advance_streak,
    level_for,
    level_info,
    points_for,
)
from tests.conftest import auth_headers

API = "/api/v1/gamification"


# ── Reglas puras ─────────────────────────────────────


def test_points_per_action():
    assert points_for(ConsumptionAction.REGISTER) == 10
    assert points_for(ConsumptionAction.CONSUME) == 5
    assert points_for(ConsumptionAction.TRANSFER) == 5
    assert points_for(ConsumptionAction.ADJUST) == 2
    assert points_for(ConsumptionAction.DISPOSE) == 8


def test_critical_lots_double_points():
    assert points_for(ConsumptionAction.CONSUME, is_critical=True) == 10
    assert points_for(ConsumptionAction.REGISTER, is_critical=True) == 20


def test_level_thresholds():
    assert level_for(0) == "Iniciante"
    assert level_for(99) == "Iniciante"
    assert level_for(100) == "Aprendiz"
    assert level_for(1999) == "Especialista"
    assert level_for(5000) == "Lenda"


def test_level_progress():
    info = level_info(200)
    assert info.name == "Aprendiz"
    assert info.next_level == "Competente"
    assert info.next_level_points == 300
    assert info.progress_percentage == 50.0

    top = level_info(9000)
    assert top.name == "Lenda"
    assert top.next_level is None
    assert top.progress_percentage == 100.0


def test_streak_advances_on_consecutive_days():
    streak = _advance_streak({}, date(2026, 3, 1))
    assert streak == {"daily": 1, "last_active": "2026-03-01"}

    streak = _advance_streak(streak, date(2026, 3, 2))
    assert streak["daily"] == 2

    same_day = _advance_streak(streak, date(2026, 3, 2))
    assert same_day["daily"] == 2

    broken = _advance_streak(streak, date(2026, 3, 5))
    assert broken == {"daily": 1, "last_active": "2026-03-05"}


# ── Otorgamiento ─────────────────────────────────────


async def test_first_registration_unlocks_achievement(make_lot, client, technician_user):
    await make_lot()

    response = await client.get(f"{API}/me", headers=auth_headers(technician_user))
    assert response.status_code == 200
    profile = response.json()
    # 10 del registro + 50 de la conquista
    assert profile["total_points"] == 60
    assert profile["daily_streak"] == 1
    unlocked = {a["id"] for a in profile["achievements"] if a["unlocked"]}
    assert unlocked == {"first_registration"}


async def test_register_response_reports_points_and_achievement(client, technician_user, test_reagent, test_unit):
    response = await client.post(
        "/api/v1/lots",
        json={
            "reagent_id": str(test_reagent.id),
            "unit_id": str(test_unit.id),
            "lot_number": "PTS-1",
            "initial_quantity": "10",
            "expiry_date": "2099-01-01",
        },
        headers=auth_headers(technician_user),
    )
    body = response.json()
    assert body["points_awarded"] == 10
    assert body["log"]["points_awarded"] == 10
    assert body["achievements_unlocked"] == ["first_registration"]


async def test_accuracy_master_after_ten_consumptions(make_lot, client, technician_user):
    lot = await make_lot(initial_quantity="100")
    unlocked_on = None
    for i in range(10):
        response = await client.post(
            f"/api/v1/lots/{lot['id']}/consume", json={"quantity": "1"}, headers=auth_headers(technician_user)
        )
        if response.json()["achievements_unlocked"]:
            unlocked_on = i
            assert response.json()["achievements_unlocked"] == ["accuracy_master"]
    assert unlocked_on == 9

    profile = (await client.get(f"{API}/me", headers=auth_headers(technician_user))).json()
    # 10 + 50 + 10 * 5 + 100
    assert profile["total_points"] == 210
    assert profile["level"]["name"] == "Aprendiz"


async def test_no_points_without_user(db_session):
    points, earned = await gamification_service.award_points(db_session, None, ConsumptionAction.CONSUME)
    assert points == 0
    assert earned == []


async def test_ranking_orders_by_points(make_lot, client, technician_user, manager_user):
    await make_lot()
    lot = await make_lot()
    await client.post(
        f"/api/v1/lots/{lot['id']}/adjust",
        json={"counted_quantity": "99", "reason": "Conferência"},
        headers=auth_headers(manager_user),
    )

    response = await client.get(f"{API}/ranking", headers=auth_headers(manager_user))
    assert response.status_code == 200
    ranking = response.json()
    assert [entry["user_id"] for entry in ranking] == [str(technician_user.id), str(manager_user.id)]
    assert ranking[0]["position"] == 1
    assert ranking[0]["total_points"] == 70
    assert ranking[1]["total_points"] == 2
    assert ranking[0]["initials"] == "TT"


async def test_achievement_catalog(client, auditor_user):
    response = await client.get(f"{API}/achievements", headers=auth_headers(auditor_user))
    assert response.status_code == 200
    ids = [a["id"] for a in response.json()]
    assert "first_registration" in ids
    assert "streak_champion" in ids


async def test_profile_of_unknown_user_is_404(client, auditor_user):
    response = await client.get(
        f"{API}/users/00000000-0000-0000-0000-000000000000", headers=auth_headers(auditor_user)
    )
    assert response.status_code == 404
