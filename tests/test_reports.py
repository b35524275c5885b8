from datetime import date
from decimal import Decimal

import pytest

from daycare.services.report_service import ReportService, aging_bucket, revenue_period


@pytest.mark.parametrize(
    "days, bucket",
    [(-3, "Current"), (0, "Current"), (1, "1-30 days"), (30, "1-30 days"), (45, "31-60 days"),
     (90, "61-90 days"), (91, "90+ days")],
)
def test_aging_bucket(days, bucket):
    assert aging_bucket(days) == bucket


def test_revenue_period_labels():
    day = date(2026, 1, 1)

    assert revenue_period(day, "day") == "2026-01-01"
    assert revenue_period(day, "week") == "2026-01"
    assert revenue_period(day, "month") == "2026-01"
    # ISO week belongs to the previous year
    assert revenue_period(date(2027, 1, 1), "week") == "2026-53"


async def _sent_invoice_with_payments(client, headers, family, *payments):
    parent_id = family["family"]["primary_parent"]["id"]
    invoice = await client.post(
        "/api/invoices",
        json={
            "parent_id": parent_id,
            "invoice_date": "2026-03-01",
            "due_date": "2026-03-16",
            "tax_enabled": False,
            "line_items": [{"description": "March tuition", "amount": "1000.00"}],
        },
        headers=headers,
    )
    invoice_id = invoice.json()["id"]
    await client.post(f"/api/invoices/{invoice_id}/send", headers=headers)
    for paid_on, amount in payments:
        response = await client.post(
            f"/api/invoices/{invoice_id}/payments",
            json={"amount": amount, "payment_date": paid_on},
            headers=headers,
        )
        assert response.status_code == 200, response.text
    return invoice.json()


async def test_revenue_grouped_by_month_and_week(client, admin_headers, family):
    await _sent_invoice_with_payments(
        client, admin_headers, family, ("2026-03-05", "400.00"), ("2026-03-10", "200.00")
    )

    monthly = await client.get(
        "/api/reports/financial/revenue", params={"group_by": "month"}, headers=admin_headers
    )
    [march] = monthly.json()["periods"]
    assert march["period"] == "2026-03"
    assert march["payment_count"] == 2
    assert Decimal(str(march["total_revenue"])) == Decimal("600")
    assert Decimal(str(march["avg_payment"])) == Decimal("300")

    weekly = await client.get(
        "/api/reports/financial/revenue", params={"group_by": "week"}, headers=admin_headers
    )
    assert [row["period"] for row in weekly.json()["periods"]] == ["2026-11", "2026-10"]


async def test_revenue_rejects_unknown_grouping(client, admin_headers):
    response = await client.get(
        "/api/reports/financial/revenue", params={"group_by": "year"}, headers=admin_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "group_by must be one of: day, week, month"


async def test_outstanding_and_aging(client, db, admin_headers, family):
    invoice = await _sent_invoice_with_payments(client, admin_headers, family, ("2026-03-05", "250.00"))

    outstanding = await client.get("/api/reports/financial/outstanding", headers=admin_headers)
    [row] = outstanding.json()
    assert row["parent_name"] == "Priya Sharma"
    assert Decimal(str(row["total_outstanding"])) == Decimal("750")

    report = await ReportService(db).aging(as_of=date(2026, 4, 1))
    [line] = report["invoices"]
    assert line["invoice_id"] == invoice["id"]
    assert line["days_overdue"] == 16
    assert line["aging_bucket"] == "1-30 days"
    assert report["totals"]["1-30 days"] == Decimal("750.00")
    assert report["totals"]["Current"] == Decimal("0.00")


async def test_waitlist_report_uses_primary_contact(client, admin_headers, family):
    parent_id = family["family"]["primary_parent"]["id"]
    await client.post(
        "/api/children",
        json={
            "first_name": "Kavya",
            "last_name": "Sharma",
            "date_of_birth": "2025-06-01",
            "status": "WAITLIST",
            "parent_ids": [parent_id],
        },
        headers=admin_headers,
    )

    response = await client.get("/api/reports/enrollment/waitlist", headers=admin_headers)

    [row] = response.json()
    assert row["child_name"] == "Kavya Sharma"
    assert row["waitlist_priority"] == 1
    assert row["email"] == "priya@example.com"


async def test_enrollment_summary_by_status(client, admin_headers, family):
    response = await client.get("/api/reports/enrollment/summary", headers=admin_headers)

    [active] = response.json()
    assert active["status"] == "ACTIVE"
    assert active["count"] == 1
    assert Decimal(str(active["total_monthly_revenue"])) == Decimal("1150")


async def test_payment_history_export(client, admin_headers, family):
    await _sent_invoice_with_payments(client, admin_headers, family, ("2026-03-05", "100.00"))

    response = await client.get(
        "/api/reports/financial/payment-history/export/excel",
        params={"start_date": "2026-03-01", "end_date": "2026-03-31"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert "payments_2026-03-01_2026-03-31.xlsx" in response.headers["content-disposition"]
