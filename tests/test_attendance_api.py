import pytest

DAY = "2026-03-02"


async def _create_child(client, headers, first_name="Mia"):
    response = await client.post(
        "/api/children",
        json={"first_name": first_name, "last_name": "Lopez", "date_of_birth": "2022-01-20"},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _check_in(client, headers, child_id, day=DAY, at="08:15", **fields):
    return await client.post(
        "/api/attendance/check-in",
        json={"child_id": child_id, "attendance_date": day, "check_in_time": at, **fields},
        headers=headers,
    )


async def _schedule(client, admin_headers, educator, day=DAY):
    response = await client.post(
        "/api/schedules",
        json={"user_id": educator.id, "shift_date": day, "start_time": "07:30", "end_time": "15:30"},
        headers=admin_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_check_in_and_out_merges_notes(client, admin_headers):
    child = await _create_child(client, admin_headers)

    checked_in = await _check_in(
        client, admin_headers, child["id"], parent_name="Ana Lopez", notes="Slept badly"
    )
    assert checked_in.status_code == 200
    assert checked_in.json()["status"] == "PRESENT"
    assert checked_in.json()["parent_dropped_off"] == "Ana Lopez"

    checked_out = await client.post(
        "/api/attendance/check-out",
        json={"child_id": child["id"], "attendance_date": DAY, "check_out_time": "16:45", "notes": "Ate well"},
        headers=admin_headers,
    )
    body = checked_out.json()
    assert checked_out.status_code == 200
    assert body["check_out_time"] == "16:45:00"
    assert body["drop_off_note"] == "Slept badly"
    assert body["pick_up_note"] == "Ate well"


async def test_check_out_without_check_in_is_not_found(client, admin_headers):
    child = await _create_child(client, admin_headers)

    response = await client.post(
        "/api/attendance/check-out",
        json={"child_id": child["id"], "attendance_date": DAY, "check_out_time": "16:00"},
        headers=admin_headers,
    )

    assert response.status_code == 404


async def test_check_out_after_absence_is_rejected(client, admin_headers):
    child = await _create_child(client, admin_headers)
    await _check_in(client, admin_headers, child["id"])

    absent = await client.post(
        "/api/attendance/mark-absent",
        json={"child_id": child["id"], "attendance_date": DAY, "status": "SICK", "notes": "Fever"},
        headers=admin_headers,
    )
    assert absent.json()["status"] == "SICK"
    assert absent.json()["check_in_time"] is None
    assert absent.json()["general_notes"] == "Fever"

    response = await client.post(
        "/api/attendance/check-out",
        json={"child_id": child["id"], "attendance_date": DAY, "check_out_time": "16:00"},
        headers=admin_headers,
    )
    assert response.status_code == 400


async def test_check_out_before_check_in_is_rejected(client, admin_headers):
    child = await _create_child(client, admin_headers)
    await _check_in(client, admin_headers, child["id"], at="09:00")

    response = await client.post(
        "/api/attendance/check-out",
        json={"child_id": child["id"], "attendance_date": DAY, "check_out_time": "08:30"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Check-out time cannot be earlier than check-in time"


async def test_mark_absent_rejects_present_status(client, admin_headers):
    child = await _create_child(client, admin_headers)

    response = await client.post(
        "/api/attendance/mark-absent",
        json={"child_id": child["id"], "attendance_date": DAY, "status": "PRESENT"},
        headers=admin_headers,
    )

    assert response.status_code == 400


async def test_educator_needs_shift_on_the_day(client, admin_headers, educator, educator_headers):
    child = await _create_child(client, admin_headers)

    denied = await _check_in(client, educator_headers, child["id"])
    assert denied.status_code == 403

    await _schedule(client, admin_headers, educator)
    allowed = await _check_in(client, educator_headers, child["id"])
    assert allowed.status_code == 200
    assert allowed.json()["checked_in_by"] == educator.id


async def test_compliance_counts_only_accepted_shifts(client, admin_headers, educator, educator_headers):
    for name in ("Mia", "Leo", "Zoe"):
        child = await _create_child(client, admin_headers, name)
        await _check_in(client, admin_headers, child["id"])
    shift = await _schedule(client, admin_headers, educator)

    params = {"date": DAY, "ratio_kids": 4, "ratio_staff": 1}
    pending = await client.get("/api/attendance/compliance", params=params, headers=admin_headers)
    assert pending.json()["kids_present"] == 3
    assert pending.json()["required_staff"] == 1
    assert pending.json()["staff_scheduled"] == 0
    assert pending.json()["in_compliance"] is False

    accepted = await client.post(
        f"/api/schedules/{shift['id']}/respond", json={"status": "ACCEPTED"}, headers=educator_headers
    )
    assert accepted.json()["status"] == "ACCEPTED"

    response = await client.get("/api/attendance/compliance", params=params, headers=admin_headers)
    assert response.json()["staff_scheduled"] == 1
    assert response.json()["in_compliance"] is True


@pytest.mark.parametrize(
    "params",
    [{"ratio_kids": 0}, {"ratio_kids": "nan"}, {"ratio_staff": "inf"}, {"ratio_staff": -1}],
)
async def test_compliance_rejects_non_positive_ratio(client, admin_headers, params):
    response = await client.get("/api/attendance/compliance", params=params, headers=admin_headers)

    assert response.status_code == 400
    assert "must be a positive number" in response.json()["error"]


async def test_report_counts_days_per_child(client, admin_headers):
    child = await _create_child(client, admin_headers)
    await _check_in(client, admin_headers, child["id"], day="2026-03-02")
    await client.post(
        "/api/attendance/mark-absent",
        json={"child_id": child["id"], "attendance_date": "2026-03-03"},
        headers=admin_headers,
    )

    response = await client.get(
        "/api/attendance/report",
        params={"start_date": "2026-03-01", "end_date": "2026-03-31"},
        headers=admin_headers,
    )

    row = response.json()[0]
    assert row["total_days"] == 2
    assert row["present_days"] == 1
    assert row["absent_days"] == 1
    assert row["attendance_rate"] == 50.0
