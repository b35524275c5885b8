from decimal import Decimal

from daycare.models import PayFrequency, PaymentType, UserRole

from conftest import make_user


async def _create_period(client, headers, start="2026-03-01", end="2026-03-14", **fields):
    response = await client.post(
        "/api/pay-periods",
        json={"name": f"{start} to {end}", "start_date": start, "end_date": end, **fields},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _log_hours(client, headers, **fields):
    response = await client.post("/api/time-entries", json=fields, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_total_hours_derived_from_shift_times(client, educator_headers):
    entry = await _log_hours(
        client, educator_headers, entry_date="2026-03-03", start_time="08:00", end_time="15:30"
    )

    assert Decimal(entry["total_hours"]) == Decimal("7.50")
    assert entry["status"] == "PENDING"


async def test_end_before_start_is_rejected(client, educator_headers):
    response = await client.post(
        "/api/time-entries",
        json={"entry_date": "2026-03-03", "start_time": "15:00", "end_time": "08:00"},
        headers=educator_headers,
    )

    assert response.status_code == 400


async def test_approved_hours_flow_into_close_preview_and_close(
    client, admin_headers, educator_headers
):
    period = await _create_period(client, admin_headers, frequency="BI_WEEKLY")
    approved = await _log_hours(client, educator_headers, entry_date="2026-03-03", total_hours="8")
    await _log_hours(client, educator_headers, entry_date="2026-03-04", total_hours="6")
    outside = await _log_hours(client, educator_headers, entry_date="2026-03-20", total_hours="5")

    preview = await client.get(f"/api/pay-periods/{period['id']}/close-preview", headers=admin_headers)
    assert Decimal(preview.json()["payouts"][0]["gross_amount"]) == Decimal("0.00")

    for entry in (approved, outside):
        response = await client.post(f"/api/time-entries/{entry['id']}/approve", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "APPROVED"

    preview = await client.get(f"/api/pay-periods/{period['id']}/close-preview", headers=admin_headers)
    line = preview.json()["payouts"][0]
    assert Decimal(line["total_hours"]) == Decimal("8.00")
    assert Decimal(line["gross_amount"]) == Decimal("160.00")

    closed = await client.post(f"/api/pay-periods/{period['id']}/close", headers=admin_headers)
    assert closed.status_code == 200
    assert closed.json()["payouts_created"] == 1
    assert closed.json()["period"]["status"] == "CLOSED"
    assert Decimal(closed.json()["total_net"]) == Decimal("160.00")

    payouts = await client.get(f"/api/pay-periods/{period['id']}/payouts", headers=admin_headers)
    assert [Decimal(p["net_amount"]) for p in payouts.json()] == [Decimal("160.00")]

    again = await client.post(f"/api/pay-periods/{period['id']}/close", headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["error"] == "Pay period already closed"


async def test_closed_period_locks_time_entries(client, admin_headers, educator_headers):
    pending = await _log_hours(client, educator_headers, entry_date="2026-03-05", total_hours="4")
    period = await _create_period(client, admin_headers)
    await client.post(f"/api/pay-periods/{period['id']}/close", headers=admin_headers)

    create = await client.post(
        "/api/time-entries", json={"entry_date": "2026-03-06", "total_hours": "4"}, headers=educator_headers
    )
    assert create.status_code == 400

    edit = await client.put(
        f"/api/time-entries/{pending['id']}", json={"total_hours": "5"}, headers=educator_headers
    )
    assert edit.status_code == 400

    review = await client.post(f"/api/time-entries/{pending['id']}/approve", headers=admin_headers)
    assert review.status_code == 400


async def test_reviewed_entries_cannot_be_edited(client, admin_headers, educator_headers):
    entry = await _log_hours(client, educator_headers, entry_date="2026-03-03", total_hours="8")
    rejected = await client.post(
        f"/api/time-entries/{entry['id']}/reject", json={"reason": "Wrong day"}, headers=admin_headers
    )
    assert rejected.json()["rejection_reason"] == "Wrong day"

    edit = await client.put(
        f"/api/time-entries/{entry['id']}", json={"total_hours": "7"}, headers=educator_headers
    )
    delete = await client.delete(f"/api/time-entries/{entry['id']}", headers=educator_headers)

    assert edit.status_code == 400
    assert delete.status_code == 400


async def test_batch_approve_counts_pending_entries(client, admin_headers, educator_headers):
    first = await _log_hours(client, educator_headers, entry_date="2026-03-03", total_hours="8")
    second = await _log_hours(client, educator_headers, entry_date="2026-03-04", total_hours="8")

    response = await client.post(
        "/api/time-entries/batch-approve", json={"ids": [first["id"], second["id"]]}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["approved"] == 2


async def test_overlapping_period_is_rejected(client, admin_headers):
    await _create_period(client, admin_headers)

    response = await client.post(
        "/api/pay-periods",
        json={"name": "Overlap", "start_date": "2026-03-10", "end_date": "2026-03-24"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Pay period overlaps with existing period"


async def test_salaried_staff_paid_salary_and_frequency_filters(client, db, admin_headers, educator):
    await make_user(
        db,
        "monthly@test.local",
        UserRole.EDUCATOR,
        payment_type=PaymentType.SALARY,
        salary_amount=Decimal("3000.00"),
        pay_frequency=PayFrequency.MONTHLY,
    )
    period = await _create_period(
        client, admin_headers, start="2026-03-01", end="2026-03-31", frequency="MONTHLY"
    )

    preview = await client.get(f"/api/pay-periods/{period['id']}/close-preview", headers=admin_headers)

    lines = preview.json()["payouts"]
    assert len(lines) == 1
    assert lines[0]["payment_type"] == "SALARY"
    assert Decimal(lines[0]["gross_amount"]) == Decimal("3000.00")


async def test_generate_skips_existing_periods(client, admin_headers):
    await _create_period(client, admin_headers, start="2026-01-01", end="2026-01-31")

    response = await client.post(
        "/api/pay-periods/generate",
        json={"frequency": "MONTHLY", "start_date": "2026-01-01"},
        headers=admin_headers,
    )

    assert response.status_code == 201
    assert [p["name"] for p in response.json()][0] == "February 2026"
    assert len(response.json()) == 5


async def test_export_excel(client, admin_headers, educator):
    period = await _create_period(client, admin_headers)

    response = await client.get(f"/api/pay-periods/{period['id']}/export/excel", headers=admin_headers)

    assert response.status_code == 200
    assert "payroll_2026-03-01_2026-03-14.xlsx" in response.headers["content-disposition"]
    assert response.content[:2] == b"PK"
