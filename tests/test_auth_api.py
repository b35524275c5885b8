from daycare.models import UserRole

from conftest import make_user


async def test_login_returns_token_and_user(client, db):
    await make_user(db, "director@test.local", UserRole.ADMIN, password="director123")

    response = await client.post(
        "/api/auth/login", json={"email": "Director@Test.local ", "password": "director123"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert body["user"]["role"] == "ADMIN"

    me = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == "director@test.local"


async def test_login_rejects_wrong_password(client, db):
    await make_user(db, "director@test.local", UserRole.ADMIN, password="director123")

    response = await client.post(
        "/api/auth/login", json={"email": "director@test.local", "password": "nope"}
    )

    assert response.status_code == 401


async def test_inactive_account_cannot_log_in(client, db):
    await make_user(db, "former@test.local", UserRole.EDUCATOR, password="educator123", is_active=False)

    response = await client.post(
        "/api/auth/login", json={"email": "former@test.local", "password": "educator123"}
    )

    assert response.status_code == 401


async def test_missing_token_and_wrong_role(client, educator_headers):
    response = await client.get("/api/invoices")
    assert response.status_code in (401, 403)

    response = await client.get("/api/invoices", headers=educator_headers)
    assert response.status_code == 403


async def test_parent_login_carries_parent_id(client, family):
    response = await client.post(
        "/api/auth/login", json={"email": "priya@example.com", "password": "032021"}
    )

    assert response.status_code == 200
    user = response.json()["user"]
    assert user["role"] == "PARENT"
    assert user["parent_id"] == family["family"]["primary_parent"]["id"]
    assert user["must_reset_password"] is True
