from daycare.models import UserRole

from conftest import auth_headers, make_user


def _shift(user_id, day="2026-03-02", start="07:30", end="15:30"):
    return {"user_id": user_id, "shift_date": day, "start_time": start, "end_time": end}


async def test_create_and_accept_shift(client, admin_headers, educator, educator_headers):
    created = await client.post("/api/schedules", json=_shift(educator.id), headers=admin_headers)
    assert created.status_code == 201
    assert created.json()["status"] == "PENDING"
    assert created.json()["user_name"] == "Eve Educator"

    mine = await client.get("/api/schedules/mine", headers=educator_headers)
    assert [s["id"] for s in mine.json()] == [created.json()["id"]]

    declined = await client.post(
        f"/api/schedules/{created.json()['id']}/respond",
        json={"status": "DECLINED", "reason": "Doctor appointment"},
        headers=educator_headers,
    )
    assert declined.json()["status"] == "DECLINED"
    assert declined.json()["decline_reason"] == "Doctor appointment"


async def test_shift_times_must_be_ordered(client, admin_headers, educator):
    response = await client.post(
        "/api/schedules", json=_shift(educator.id, start="15:00", end="09:00"), headers=admin_headers
    )

    assert response.status_code == 422


async def test_only_active_educators_can_be_scheduled(client, db, admin, admin_headers):
    former = await make_user(db, "former@test.local", UserRole.EDUCATOR, is_active=False)

    inactive = await client.post("/api/schedules", json=_shift(former.id), headers=admin_headers)
    not_educator = await client.post("/api/schedules", json=_shift(admin.id), headers=admin_headers)

    assert inactive.status_code == 400
    assert not_educator.status_code == 404


async def test_educator_cannot_answer_someone_elses_shift(client, db, admin_headers, educator):
    other = await make_user(db, "other@test.local", UserRole.EDUCATOR)
    shift = (await client.post("/api/schedules", json=_shift(educator.id), headers=admin_headers)).json()

    response = await client.post(
        f"/api/schedules/{shift['id']}/respond", json={"status": "ACCEPTED"}, headers=auth_headers(other)
    )

    assert response.status_code == 404


async def test_recurring_shifts_fall_on_weekday(client, admin_headers, educator):
    response = await client.post(
        "/api/schedules/recurring",
        json={
            "user_id": educator.id,
            "weekday": 2,
            "start_time": "08:00",
            "end_time": "16:00",
            "start_date": "2026-03-02",
            "end_date": "2026-03-31",
        },
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert [s["shift_date"] for s in response.json()] == [
        "2026-03-04",
        "2026-03-11",
        "2026-03-18",
        "2026-03-25",
    ]
