"""
Tests de autenticación y de la gestión de usuarios (solo admin).
"""

from sqlalchemy import select

from app.auth.jwt import create_refresh_token, decode_token
from app.models.audit_log import AuditLog
from tests.conftest import TEST_PASSWORD, auth_headers

AUTH = "/api/v1/auth"
USERS = "/api/v1/users"


# ── Login ────────────────────────────────────────────


async def test_login_success(client, technician_user, test_unit):
    response = await client.post(
        f"{AUTH}/login", json={"email": technician_user.email, "password": TEST_PASSWORD}
    )
    assert response.status_code == 200
    data = response.json()
    assert data["tokens"]["access_token"]
    assert data["tokens"]["refresh_token"]
    assert data["tokens"]["token_type"] == "bearer"
    assert data["user"]["email"] == technician_user.email
    assert data["user"]["role"] == "technician"
    assert data["user"]["unit_name"] == test_unit.name


async def test_access_token_is_scoped_to_unit(client, technician_user, test_unit):
    response = await client.post(
        f"{AUTH}/login", json={"email": technician_user.email, "password": TEST_PASSWORD}
    )
    claims = decode_token(response.json()["tokens"]["access_token"])
    assert claims["unit_id"] == str(test_unit.id)
    assert claims["role"] == "technician"
    assert claims["type"] == "access"

    refresh_claims = decode_token(response.json()["tokens"]["refresh_token"])
    assert "unit_id" not in refresh_claims


async def test_login_audit_keeps_only_valid_ip(client, technician_user, db_session):
    for forwarded in ("2001:db8::1", "no-es-una-ip" * 10):
        response = await client.post(
            f"{AUTH}/login",
            json={"email": technician_user.email, "password": TEST_PASSWORD},
            headers={"X-Forwarded-For": forwarded},
        )
        assert response.status_code == 200

    result = await db_session.execute(
        select(AuditLog.ip_address).where(AuditLog.action == "login")
    )
    assert set(result.scalars().all()) == {"2001:db8::1", None}


async def test_login_wrong_password(client, technician_user):
    response = await client.post(
        f"{AUTH}/login", json={"email": technician_user.email, "password": "WrongPass999"}
    )
    assert response.status_code == 401


async def test_login_unknown_email(client):
    response = await client.post(
        f"{AUTH}/login", json={"email": "nadie@test.com", "password": TEST_PASSWORD}
    )
    assert response.status_code == 401


async def test_access_token_from_login_works(client, manager_user):
    login = await client.post(
        f"{AUTH}/login", json={"email": manager_user.email, "password": TEST_PASSWORD}
    )
    token = login.json()["tokens"]["access_token"]

    response = await client.get(f"{AUTH}/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    me = response.json()
    assert me["email"] == manager_user.email
    assert me["initials"] == "GG"
    assert me["role"] == "manager"


async def test_me_rejects_garbage_token(client):
    response = await client.get(f"{AUTH}/me", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


async def test_me_rejects_refresh_token(client, technician_user):
    token = create_refresh_token(technician_user.id)
    response = await client.get(f"{AUTH}/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


# ── Refresh ──────────────────────────────────────────


async def test_refresh_issues_new_pair(client, technician_user):
    response = await client.post(
        f"{AUTH}/refresh", json={"refresh_token": create_refresh_token(technician_user.id)}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["access_token"]
    assert body["refresh_token"]


async def test_refresh_rejects_access_token(client, technician_user):
    access = auth_headers(technician_user)["Authorization"].removeprefix("Bearer ")
    response = await client.post(f"{AUTH}/refresh", json={"refresh_token": access})
    assert response.status_code == 401


async def test_refresh_rejects_inactive_user(client, technician_user, db_session):
    technician_user.is_active = False
    await db_session.flush()

    response = await client.post(
        f"{AUTH}/refresh", json={"refresh_token": create_refresh_token(technician_user.id)}
    )
    assert response.status_code == 401


# ── Cambio de contraseña ────────────────────────────


async def test_change_password_mismatch(client, technician_user):
    response = await client.put(
        f"{AUTH}/change-password",
        json={
            "current_password": TEST_PASSWORD,
            "new_password": "NuevaClave123",
            "confirm_password": "OtraClave123",
        },
        headers=auth_headers(technician_user),
    )
    assert response.status_code == 422


async def test_change_password_wrong_current(client, technician_user):
    response = await client.put(
        f"{AUTH}/change-password",
        json={
            "current_password": "Incorrecta1",
            "new_password": "NuevaClave123",
            "confirm_password": "NuevaClave123",
        },
        headers=auth_headers(technician_user),
    )
    assert response.status_code == 401


async def test_change_password_success(client, technician_user):
    response = await client.put(
        f"{AUTH}/change-password",
        json={
            "current_password": TEST_PASSWORD,
            "new_password": "NuevaClave123",
            "confirm_password": "NuevaClave123",
        },
        headers=auth_headers(technician_user),
    )
    assert response.status_code == 200

    old = await client.post(
        f"{AUTH}/login", json={"email": technician_user.email, "password": TEST_PASSWORD}
    )
    assert old.status_code == 401
    new = await client.post(
        f"{AUTH}/login", json={"email": technician_user.email, "password": "NuevaClave123"}
    )
    assert new.status_code == 200


# ── Usuarios ─────────────────────────────────────────


async def test_admin_creates_user(client, admin_user, test_unit):
    response = await client.post(
        USERS,
        json={
            "email": "nova@test.com",
            "password": "SenhaForte1",
            "full_name": "Nora Nova",
            "role": "technician",
            "unit_id": str(test_unit.id),
        },
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["initials"] == "NN"
    assert body["unit_name"] == test_unit.name
    assert body["is_active"] is True

    login = await client.post(f"{AUTH}/login", json={"email": "nova@test.com", "password": "SenhaForte1"})
    assert login.status_code == 200


async def test_create_user_duplicate_email(client, admin_user, technician_user):
    response = await client.post(
        USERS,
        json={"email": technician_user.email, "password": "SenhaForte1", "full_name": "Outra Pessoa"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 409


async def test_create_user_unknown_unit(client, admin_user):
    response = await client.post(
        USERS,
        json={
            "email": "semunidade@test.com",
            "password": "SenhaForte1",
            "full_name": "Sem Unidade",
            "unit_id": "00000000-0000-0000-0000-000000000000",
        },
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 404


async def test_non_admin_cannot_manage_users(client, technician_user, manager_user):
    assert (await client.get(USERS, headers=auth_headers(technician_user))).status_code == 403
    response = await client.post(
        USERS,
        json={"email": "x@test.com", "password": "SenhaForte1", "full_name": "Xis"},
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 403


async def test_list_users_filters(client, admin_user, technician_user, auditor_user):
    response = await client.get(f"{USERS}?role=auditor", headers=auth_headers(admin_user))
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["email"] == auditor_user.email

    response = await client.get(f"{USERS}?search=tânia", headers=auth_headers(admin_user))
    assert [u["email"] for u in response.json()["items"]] == [technician_user.email]


async def test_admin_cannot_deactivate_self(client, admin_user):
    response = await client.patch(
        f"{USERS}/{admin_user.id}/active", json={"is_active": False}, headers=auth_headers(admin_user)
    )
    assert response.status_code == 409

    response = await client.put(
        f"{USERS}/{admin_user.id}", json={"is_active": False}, headers=auth_headers(admin_user)
    )
    assert response.status_code == 409


async def test_deactivated_user_cannot_log_in(client, admin_user, technician_user):
    response = await client.patch(
        f"{USERS}/{technician_user.id}/active", json={"is_active": False}, headers=auth_headers(admin_user)
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    login = await client.post(
        f"{AUTH}/login", json={"email": technician_user.email, "password": TEST_PASSWORD}
    )
    assert login.status_code == 401


async def test_update_user_role(client, admin_user, technician_user):
    response = await client.put(
        f"{USERS}/{technician_user.id}",
        json={"role": "manager", "full_name": "Tânia Gestora"},
        headers=auth_headers(admin_user),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["role"] == "manager"
    assert body["full_name"] == "Tânia Gestora"
