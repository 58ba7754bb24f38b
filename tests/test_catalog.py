"""
Tests del catálogo: unidades, fabricantes, reactivos y tipos de examen.
"""

from decimal import Decimal

from tests.conftest import auth_headers

API = "/api/v1"


async def test_manager_creates_unit(client, manager_user):
    response = await client.post(
        f"{API}/units",
        json={"name": "Unidade Sul", "location": "Bloco D", "contact_info": {"ramal": "2231"}},
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["name"] == "Unidade Sul"
    assert body["contact_info"] == {"ramal": "2231"}
    assert body["is_active"] is True


async def test_technician_cannot_write_catalog(client, technician_user):
    response = await client.post(
        f"{API}/reagents", json={"name": "Ureia UV"}, headers=auth_headers(technician_user)
    )
    assert response.status_code == 403


async def test_duplicate_names_are_case_insensitive(client, manager_user):
    first = await client.post(
        f"{API}/manufacturers", json={"name": "Bioclin"}, headers=auth_headers(manager_user)
    )
    assert first.status_code == 201

    second = await client.post(
        f"{API}/manufacturers", json={"name": "BIOCLIN"}, headers=auth_headers(manager_user)
    )
    assert second.status_code == 409


async def test_create_and_get_reagent(client, manager_user, technician_user):
    response = await client.post(
        f"{API}/reagents",
        json={
            "name": "Colesterol Total",
            "unit_measure": "unidades",
            "minimum_stock": "200",
            "storage_conditions": "2-8 °C",
        },
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 201, response.text
    reagent = response.json()
    assert reagent["unit_measure"] == "unidades"
    assert Decimal(reagent["minimum_stock"]) == Decimal("200")

    fetched = await client.get(f"{API}/reagents/{reagent['id']}", headers=auth_headers(technician_user))
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Colesterol Total"


async def test_list_reagents_search_and_active_filter(client, manager_user, test_reagent):
    created = await client.post(
        f"{API}/reagents", json={"name": "Triglicerides"}, headers=auth_headers(manager_user)
    )
    await client.put(
        f"{API}/reagents/{created.json()['id']}", json={"is_active": False}, headers=auth_headers(manager_user)
    )

    response = await client.get(f"{API}/reagents?search=trig", headers=auth_headers(manager_user))
    assert response.json()["total"] == 1

    response = await client.get(f"{API}/reagents?is_active=true", headers=auth_headers(manager_user))
    assert [r["name"] for r in response.json()["items"]] == [test_reagent.name]


async def test_reagent_identity_locked_once_lots_exist(make_lot, client, manager_user, test_reagent):
    await make_lot()

    rename = await client.put(
        f"{API}/reagents/{test_reagent.id}", json={"name": "Glicose HK"}, headers=auth_headers(manager_user)
    )
    assert rename.status_code == 409

    unit_change = await client.put(
        f"{API}/reagents/{test_reagent.id}", json={"unit_measure": "unidades"}, headers=auth_headers(manager_user)
    )
    assert unit_change.status_code == 409

    stock = await client.put(
        f"{API}/reagents/{test_reagent.id}", json={"minimum_stock": "35"}, headers=auth_headers(manager_user)
    )
    assert stock.status_code == 200
    assert Decimal(stock.json()["minimum_stock"]) == Decimal("35")


async def test_rename_reagent_without_lots(client, manager_user, test_reagent):
    response = await client.put(
        f"{API}/reagents/{test_reagent.id}", json={"name": "Glicose HK"}, headers=auth_headers(manager_user)
    )
    assert response.status_code == 200
    assert response.json()["name"] == "Glicose HK"


async def test_update_reagent_rejects_explicit_null(client, manager_user, test_reagent):
    for field in ("name", "minimum_stock", "is_active"):
        response = await client.put(
            f"{API}/reagents/{test_reagent.id}", json={field: None}, headers=auth_headers(manager_user)
        )
        assert response.status_code == 422, field


async def test_create_exam_type(client, manager_user, test_reagent):
    response = await client.post(
        f"{API}/exam-types",
        json={
            "name": "Curva Glicêmica",
            "required_reagents": [{"reagent_id": str(test_reagent.id), "quantity": "15"}],
        },
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 201, response.text
    body = response.json()
    assert len(body["required_reagents"]) == 1
    assert body["required_reagents"][0]["reagent_id"] == str(test_reagent.id)
    assert Decimal(body["required_reagents"][0]["quantity"]) == Decimal("15")


async def test_exam_type_with_unknown_reagent(client, manager_user):
    response = await client.post(
        f"{API}/exam-types",
        json={
            "name": "Hemograma",
            "required_reagents": [{"reagent_id": "00000000-0000-0000-0000-000000000000", "quantity": "1"}],
        },
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 404


async def test_exam_type_with_repeated_reagent(client, manager_user, test_reagent):
    requirement = {"reagent_id": str(test_reagent.id), "quantity": "1"}
    response = await client.post(
        f"{API}/exam-types",
        json={"name": "Duplicado", "required_reagents": [requirement, requirement]},
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 422


async def test_exam_type_requires_positive_quantity(client, manager_user, test_reagent):
    response = await client.post(
        f"{API}/exam-types",
        json={"name": "Zero", "required_reagents": [{"reagent_id": str(test_reagent.id), "quantity": "0"}]},
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 422


async def test_exam_type_quantity_limited_to_cents(client, manager_user, test_reagent):
    response = await client.post(
        f"{API}/exam-types",
        json={"name": "Fino", "required_reagents": [{"reagent_id": str(test_reagent.id), "quantity": "0.004"}]},
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 422

    response = await client.put(
        f"{API}/reagents/{test_reagent.id}",
        json={"minimum_stock": "100000000000"},
        headers=auth_headers(manager_user),
    )
    assert response.status_code == 422


async def test_list_and_get_units(client, auditor_user, test_unit, other_unit):
    response = await client.get(f"{API}/units", headers=auth_headers(auditor_user))
    assert response.status_code == 200
    assert response.json()["total"] == 2

    response = await client.get(f"{API}/units/{test_unit.id}", headers=auth_headers(auditor_user))
    assert response.json()["name"] == test_unit.name

    missing = await client.get(
        f"{API}/units/00000000-0000-0000-0000-000000000000", headers=auth_headers(auditor_user)
    )
    assert missing.status_code == 404


async def test_deactivate_unit(client, manager_user, other_unit):
    response = await client.put(
        f"{API}/units/{other_unit.id}", json={"is_active": False}, headers=auth_headers(manager_user)
    )
    assert response.status_code == 200
    assert response.json()["is_active"] is False
