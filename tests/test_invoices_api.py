from decimal import Decimal


def _parent_id(family):
    return family["family"]["primary_parent"]["id"]


async def _create_invoice(client, headers, parent_id, **fields):
    payload = {
        "parent_id": parent_id,
        "invoice_date": "2026-03-01",
        "due_date": "2026-03-16",
        "line_items": [
            {"description": "March tuition", "quantity": 1, "rate": "1000.00"},
            {"description": "Field trip", "amount": "50.00"},
        ],
        **fields,
    }
    response = await client.post("/api/invoices", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_invoice_total_is_line_sum_plus_tax(client, admin_headers, family):
    invoice = await _create_invoice(client, admin_headers, _parent_id(family), tax_rate="0.05")

    assert invoice["invoice_number"] == "INV-202603-001"
    assert invoice["status"] == "DRAFT"
    assert Decimal(invoice["subtotal"]) == Decimal("1050.00")
    assert Decimal(invoice["tax_amount"]) == Decimal("52.50")
    assert Decimal(invoice["total_amount"]) == Decimal("1102.50")
    assert Decimal(invoice["balance_due"]) == Decimal(invoice["total_amount"])


async def test_invoice_numbers_sequence_per_month(client, admin_headers, family):
    parent_id = _parent_id(family)
    first = await _create_invoice(client, admin_headers, parent_id)
    second = await _create_invoice(client, admin_headers, parent_id)
    april = await _create_invoice(
        client, admin_headers, parent_id, invoice_date="2026-04-01", due_date="2026-04-16"
    )

    assert first["invoice_number"] == "INV-202603-001"
    assert second["invoice_number"] == "INV-202603-002"
    assert april["invoice_number"] == "INV-202604-001"


async def test_total_includes_tax_mode(client, admin_headers, family):
    invoice = await _create_invoice(
        client, admin_headers, _parent_id(family), tax_rate="0.05", pricing_mode="TOTAL_INCLUDES_TAX"
    )

    assert Decimal(invoice["total_amount"]) == Decimal("1050.00")
    assert Decimal(invoice["subtotal"]) == Decimal("1000.00")
    assert Decimal(invoice["tax_amount"]) == Decimal("50.00")


async def test_payments_move_invoice_to_partial_then_paid(client, admin_headers, family):
    invoice = await _create_invoice(client, admin_headers, _parent_id(family), tax_enabled=False)
    invoice_id = invoice["id"]

    draft_payment = await client.post(
        f"/api/invoices/{invoice_id}/payments",
        json={"amount": "100.00", "payment_date": "2026-03-05"},
        headers=admin_headers,
    )
    assert draft_payment.status_code == 400

    sent = await client.post(f"/api/invoices/{invoice_id}/send", headers=admin_headers)
    assert sent.json()["status"] == "SENT"

    partial = await client.post(
        f"/api/invoices/{invoice_id}/payments",
        json={"amount": "400.00", "payment_date": "2026-03-05", "payment_method": "e-transfer"},
        headers=admin_headers,
    )
    assert partial.status_code == 200
    assert partial.json()["status"] == "PARTIAL"
    assert Decimal(partial.json()["balance_due"]) == Decimal("650.00")

    too_much = await client.post(
        f"/api/invoices/{invoice_id}/payments",
        json={"amount": "700.00", "payment_date": "2026-03-06"},
        headers=admin_headers,
    )
    assert too_much.status_code == 400

    paid = await client.post(
        f"/api/invoices/{invoice_id}/payments",
        json={"amount": "650.00", "payment_date": "2026-03-10"},
        headers=admin_headers,
    )
    body = paid.json()
    assert body["status"] == "PAID"
    assert Decimal(body["balance_due"]) == Decimal("0.00")
    assert len(body["payments"]) == 2


async def test_invoice_with_payments_cannot_be_deleted(client, admin_headers, family):
    invoice = await _create_invoice(client, admin_headers, _parent_id(family), tax_enabled=False)
    await client.post(f"/api/invoices/{invoice['id']}/send", headers=admin_headers)
    await client.post(
        f"/api/invoices/{invoice['id']}/payments",
        json={"amount": "10.00", "payment_date": "2026-03-05"},
        headers=admin_headers,
    )

    response = await client.delete(f"/api/invoices/{invoice['id']}", headers=admin_headers)

    assert response.status_code == 409


async def test_apply_credit_requires_balance(client, admin_headers, family):
    parent_id = _parent_id(family)
    invoice = await _create_invoice(client, admin_headers, parent_id, tax_enabled=False)
    await client.post(f"/api/invoices/{invoice['id']}/send", headers=admin_headers)

    insufficient = await client.post(
        f"/api/invoices/{invoice['id']}/apply-credit", json={"amount": "25.00"}, headers=admin_headers
    )
    assert insufficient.status_code == 400

    added = await client.post(
        f"/api/parents/{parent_id}/credits",
        json={"amount": "100.00", "description": "Referral bonus"},
        headers=admin_headers,
    )
    assert added.status_code == 200

    applied = await client.post(
        f"/api/invoices/{invoice['id']}/apply-credit", json={"amount": "25.00"}, headers=admin_headers
    )
    assert applied.status_code == 200
    assert Decimal(applied.json()["balance_due"]) == Decimal("1025.00")
    assert applied.json()["status"] == "PARTIAL"


async def test_overdue_sweep_marks_past_due_invoices(client, admin_headers, family):
    parent_id = _parent_id(family)
    past_due = await _create_invoice(client, admin_headers, parent_id)
    draft = await _create_invoice(client, admin_headers, parent_id)
    await client.post(f"/api/invoices/{past_due['id']}/send", headers=admin_headers)

    response = await client.post(
        "/api/invoices/mark-overdue", params={"as_of": "2026-04-01"}, headers=admin_headers
    )

    assert response.json()["updated"] == 1
    overdue = await client.get(f"/api/invoices/{past_due['id']}", headers=admin_headers)
    assert overdue.json()["status"] == "OVERDUE"
    still_draft = await client.get(f"/api/invoices/{draft['id']}", headers=admin_headers)
    assert still_draft.json()["status"] == "DRAFT"


async def test_parent_portal_hides_drafts(client, admin_headers, family):
    parent_id = _parent_id(family)
    sent = await _create_invoice(client, admin_headers, parent_id, tax_enabled=False)
    await _create_invoice(client, admin_headers, parent_id, tax_enabled=False)
    await client.post(f"/api/invoices/{sent['id']}/send", headers=admin_headers)

    login = await client.post(
        "/api/auth/login", json={"email": "priya@example.com", "password": "032021"}
    )
    headers = {"Authorization": f"Bearer {login.json()['token']}"}

    invoices = await client.get("/api/parent/invoices", headers=headers)
    assert [i["id"] for i in invoices.json()] == [sent["id"]]

    dashboard = await client.get("/api/parent/dashboard", headers=headers)
    assert dashboard.status_code == 200
    assert Decimal(dashboard.json()["outstanding_balance"]) == Decimal("1050.00")
    assert dashboard.json()["children_count"] == 1


async def test_partly_paid_invoice_stays_overdue(client, admin_headers, family):
    invoice = await _create_invoice(client, admin_headers, _parent_id(family), tax_enabled=False)
    await client.post(f"/api/invoices/{invoice['id']}/send", headers=admin_headers)
    await client.post(
        f"/api/invoices/{invoice['id']}/payments",
        json={"amount": "100.00", "payment_date": "2026-03-05"},
        headers=admin_headers,
    )

    swept = await client.post(
        "/api/invoices/mark-overdue", params={"as_of": "2026-04-01"}, headers=admin_headers
    )
    assert swept.json()["updated"] == 1

    detail = await client.get(f"/api/invoices/{invoice['id']}", headers=admin_headers)
    assert detail.json()["status"] == "OVERDUE"
    listed = await client.get("/api/invoices", headers=admin_headers)
    assert [i["status"] for i in listed.json()] == ["OVERDUE"]

    settled = await client.post(
        f"/api/invoices/{invoice['id']}/payments",
        json={"amount": "950.00", "payment_date": "2026-04-02"},
        headers=admin_headers,
    )
    assert settled.json()["status"] == "PAID"


async def test_credit_cannot_be_applied_to_draft(client, admin_headers, family):
    parent_id = _parent_id(family)
    invoice = await _create_invoice(client, admin_headers, parent_id, tax_enabled=False)
    await client.post(
        f"/api/parents/{parent_id}/credits",
        json={"amount": "50.00", "description": "Sibling discount"},
        headers=admin_headers,
    )

    response = await client.post(
        f"/api/invoices/{invoice['id']}/apply-credit", json={"amount": "50.00"}, headers=admin_headers
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Send the invoice before applying credit"
    detail = await client.get(f"/api/invoices/{invoice['id']}", headers=admin_headers)
    assert detail.json()["status"] == "DRAFT"
    assert Decimal(detail.json()["amount_paid"]) == Decimal("0.00")


async def test_update_rejects_null_on_required_fields(client, admin_headers, family):
    invoice = await _create_invoice(client, admin_headers, _parent_id(family))

    for field in ("due_date", "tax_rate"):
        response = await client.patch(
            f"/api/invoices/{invoice['id']}", json={field: None}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == f"{field} cannot be null"
