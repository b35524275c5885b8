from decimal import Decimal

import pytest

from conftest import FAMILY_PAYLOAD


async def test_create_family_links_parents_and_child(client, admin_headers, family):
    created = family["family"]

    assert len(created["parents"]) == 2
    assert created["primary_parent"]["email"] == "priya@example.com"
    assert created["primary_parent"]["has_billing_responsibility"] is True
    assert created["children"][0]["status"] == "ACTIVE"
    assert Decimal(created["total_monthly_rate"]) == Decimal("1150.00")
    assert created["all_accounts_active"] is True
    # Default password is the child's birth month and year
    assert {c["password"] for c in family["passwords"]} == {"032021"}

    child_id = created["children"][0]["id"]
    detail = await client.get(f"/api/children/{child_id}", headers=admin_headers)
    assert detail.status_code == 200
    assert detail.json()["emergency_contacts"][0]["name"] == "Nani Sharma"


async def test_duplicate_parent_email_is_rejected(client, admin_headers, family):
    response = await client.post("/api/families", json=FAMILY_PAYLOAD, headers=admin_headers)

    assert response.status_code == 400
    assert "already in use" in response.json()["error"]


async def test_deactivating_family_blocks_parent_login(client, admin_headers, family):
    family_id = family["family"]["id"]

    response = await client.patch(
        f"/api/families/{family_id}/status", json={"is_active": False}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["parents_updated"] == 2

    login = await client.post(
        "/api/auth/login", json={"email": "raj@example.com", "password": "032021"}
    )
    assert login.status_code == 401


@pytest.mark.parametrize("delete_parents", [False, True])
async def test_delete_family_cascades(client, admin_headers, family, delete_parents):
    family_id = family["family"]["id"]
    child_id = family["family"]["children"][0]["id"]
    parent_ids = [p["id"] for p in family["family"]["parents"]]

    response = await client.delete(
        f"/api/families/{family_id}",
        params={"delete_parents": str(delete_parents).lower()},
        headers=admin_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["children_deleted"] == 1
    assert (await client.get(f"/api/children/{child_id}", headers=admin_headers)).status_code == 404
    assert (await client.get(f"/api/families/{family_id}", headers=admin_headers)).status_code == 404

    parent_status = (await client.get(f"/api/parents/{parent_ids[0]}", headers=admin_headers)).status_code
    if delete_parents:
        assert body["parents_deleted"] == 2
        assert parent_status == 404
        login = await client.post(
            "/api/auth/login", json={"email": "priya@example.com", "password": "032021"}
        )
        assert login.status_code == 401
    else:
        assert body["parents_detached"] == 2
        assert parent_status == 200
