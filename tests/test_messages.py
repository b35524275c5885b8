import pytest

from daycare.services.message_service import parse_read_flag


@pytest.mark.parametrize(
    "value, expected",
    [
        (True, True),
        (False, False),
        (1, True),
        (0, False),
        ("yes", True),
        (" TRUE ", True),
        ("0", False),
        ("no", False),
        ("maybe", None),
        (None, None),
    ],
)
def test_parse_read_flag(value, expected):
    assert parse_read_flag(value) == expected


async def _parent_headers(client, email="priya@example.com"):
    login = await client.post("/api/auth/login", json={"email": email, "password": "032021"})
    assert login.status_code == 200, login.text
    return {"Authorization": f"Bearer {login.json()['token']}"}


async def test_broadcast_reaches_every_linked_parent(client, admin_headers, family):
    response = await client.post(
        "/api/messages/send",
        json={"recipient_type": "all", "message": "Closed Friday for PD day"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["count"] == 2

    headers = await _parent_headers(client, "raj@example.com")
    inbox = await client.get("/api/parent/messages", headers=headers)
    assert inbox.json()[0]["subject"] == "Message from Daycare"
    assert inbox.json()[0]["staff_name"] == "Ada Admin"


async def test_direct_message_requires_parent(client, admin_headers, family):
    missing_id = await client.post(
        "/api/messages/send",
        json={"recipient_type": "parent", "message": "Hello"},
        headers=admin_headers,
    )
    unknown = await client.post(
        "/api/messages/send",
        json={"recipient_type": "parent", "parent_id": 9999, "message": "Hello"},
        headers=admin_headers,
    )
    blank = await client.post(
        "/api/messages/send",
        json={"recipient_type": "all", "message": "   "},
        headers=admin_headers,
    )

    assert missing_id.status_code == 400
    assert unknown.status_code == 404
    assert blank.status_code == 400


async def test_parent_read_all_clears_unread(client, admin_headers, family):
    parent_id = family["family"]["primary_parent"]["id"]
    for text in ("Picture day", "Bring boots"):
        await client.post(
            "/api/messages/send",
            json={"recipient_type": "parent", "parent_id": parent_id, "message": text},
            headers=admin_headers,
        )
    headers = await _parent_headers(client)

    unread = await client.get("/api/parent/messages/unread-count", headers=headers)
    assert unread.json()["count"] == 2

    cleared = await client.patch("/api/parent/messages/read-all", headers=headers)
    assert cleared.json()["updated"] == 2
    unread = await client.get("/api/parent/messages/unread-count", headers=headers)
    assert unread.json()["count"] == 0


async def test_parent_reply_lands_in_staff_inbox(client, admin, admin_headers, family):
    headers = await _parent_headers(client)

    sent = await client.post(
        "/api/parent/messages", json={"message": "Arjun has a dentist visit"}, headers=headers
    )
    assert sent.status_code == 201
    assert sent.json()["to_user_id"] == admin.id
    assert sent.json()["subject"] == "Message from Parent"

    inbox = await client.get("/api/messages/inbox", headers=admin_headers)
    assert inbox.json()[0]["parent_name"] == "Priya Sharma"
    assert (await client.get("/api/messages/unread-count", headers=admin_headers)).json()["count"] == 1

    read = await client.patch(
        "/api/messages/bulk-update", json={"ids": [sent.json()["id"]], "is_read": "yes"}, headers=admin_headers
    )
    assert read.json()["updated"] == 1
    assert (await client.get("/api/messages/unread-count", headers=admin_headers)).json()["count"] == 0


async def test_bulk_update_rejects_unknown_flag(client, admin_headers):
    response = await client.patch(
        "/api/messages/bulk-update", json={"ids": [1], "is_read": "maybe"}, headers=admin_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "is_read must be true or false"
