from decimal import Decimal

from daycare.models import UserRole

from conftest import auth_headers, make_user


async def _request(client, headers, request_type="VACATION", start="2026-07-06", end="2026-07-08", **fields):
    return await client.post(
        "/api/time-off-requests",
        json={"start_date": start, "end_date": end, "request_type": request_type, **fields},
        headers=headers,
    )


async def test_approving_vacation_deducts_days(client, db, admin_headers):
    staff = await make_user(
        db,
        "leave@test.local",
        UserRole.EDUCATOR,
        vacation_days_remaining=Decimal("10"),
        sick_days_remaining=Decimal("5"),
    )
    headers = auth_headers(staff)

    created = await _request(client, headers, reason="Family trip")
    assert created.status_code == 201, created.text
    assert created.json()["status"] == "PENDING"
    assert Decimal(created.json()["days"]) == Decimal("3")

    approved = await client.post(
        f"/api/time-off-requests/{created.json()['id']}/approve", headers=admin_headers
    )
    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"

    await db.refresh(staff)
    assert staff.vacation_days_remaining == Decimal("7")
    assert staff.sick_days_remaining == Decimal("5")

    again = await client.post(
        f"/api/time-off-requests/{created.json()['id']}/approve", headers=admin_headers
    )
    assert again.status_code == 400
    assert again.json()["error"] == "Request already processed"


async def test_hourly_sick_leave_counts_part_of_a_day(client, db, admin_headers):
    staff = await make_user(db, "sick@test.local", UserRole.EDUCATOR, sick_days_remaining=Decimal("2"))

    created = await _request(
        client, auth_headers(staff), "SICK", start="2026-07-06", end="2026-07-06", hours="4"
    )
    await client.post(f"/api/time-off-requests/{created.json()['id']}/approve", headers=admin_headers)

    await db.refresh(staff)
    assert staff.sick_days_remaining == Decimal("1.5")


async def test_rejected_and_unpaid_requests_keep_balances(client, db, admin_headers):
    staff = await make_user(db, "unpaid@test.local", UserRole.EDUCATOR, vacation_days_remaining=Decimal("4"))
    headers = auth_headers(staff)
    unpaid = (await _request(client, headers, "UNPAID")).json()
    vacation = (await _request(client, headers)).json()

    await client.post(f"/api/time-off-requests/{unpaid['id']}/approve", headers=admin_headers)
    rejected = await client.post(
        f"/api/time-off-requests/{vacation['id']}/reject",
        json={"reason": "Short staffed that week"},
        headers=admin_headers,
    )
    assert rejected.json()["status"] == "REJECTED"
    assert rejected.json()["review_note"] == "Short staffed that week"

    await db.refresh(staff)
    assert staff.vacation_days_remaining == Decimal("4")

    pending = await client.get(
        "/api/time-off-requests", params={"status": "PENDING"}, headers=admin_headers
    )
    assert pending.json() == []


async def test_request_dates_are_validated(client, educator_headers):
    backwards = await _request(client, educator_headers, start="2026-07-08", end="2026-07-06")
    hourly_range = await _request(client, educator_headers, hours="3")

    assert backwards.status_code == 400
    assert backwards.json()["error"] == "Start date cannot be after end date"
    assert hourly_range.status_code == 400
    assert hourly_range.json()["error"] == "Hourly requests must be a single date"


async def test_only_own_pending_requests_can_be_cancelled(client, db, admin_headers, educator_headers):
    other = await make_user(db, "other@test.local", UserRole.EDUCATOR)
    mine = (await _request(client, educator_headers)).json()
    approved = (await _request(client, educator_headers, "UNPAID")).json()
    await client.post(f"/api/time-off-requests/{approved['id']}/approve", headers=admin_headers)

    not_owner = await client.delete(f"/api/time-off-requests/{mine['id']}", headers=auth_headers(other))
    already_reviewed = await client.delete(
        f"/api/time-off-requests/{approved['id']}", headers=educator_headers
    )
    cancelled = await client.delete(f"/api/time-off-requests/{mine['id']}", headers=educator_headers)

    assert not_owner.status_code == 404
    assert already_reviewed.status_code == 404
    assert cancelled.status_code == 200
    remaining = await client.get("/api/time-off-requests/mine", headers=educator_headers)
    assert [r["id"] for r in remaining.json()] == [approved["id"]]


async def test_parents_cannot_request_time_off(client, family):
    response = await client.post(
        "/api/auth/login", json={"email": "priya@example.com", "password": "032021"}
    )
    token = response.json()["token"]

    denied = await _request(client, {"Authorization": f"Bearer {token}"})

    assert denied.status_code == 403
