PDF_BYTES = b"%PDF-1.4 immunization record"

OTHER_FAMILY = {
    "parent1": {"first_name": "Lena", "last_name": "Okafor", "email": "lena@example.com"},
    "child": {"first_name": "Tobi", "last_name": "Okafor", "date_of_birth": "2022-05-01"},
}


async def _login(client, email, password):
    login = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert login.status_code == 200, login.text
    return {"Authorization": f"Bearer {login.json()['token']}"}


async def _upload(client, headers, name, **links):
    response = await client.post(
        "/api/files/upload",
        files={"file": (name, PDF_BYTES, "application/pdf")},
        data={key: str(value) for key, value in links.items()},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_parent_sees_documents_for_own_family(client, admin_headers, family):
    child_id = family["family"]["children"][0]["id"]
    parent_id = family["family"]["primary_parent"]["id"]
    for_child = await _upload(client, admin_headers, "immunization.pdf", linked_child_id=child_id)
    for_parent = await _upload(client, admin_headers, "tax-receipt.pdf", linked_parent_id=parent_id)
    await _upload(client, admin_headers, "staff-handbook.pdf")

    priya = await _login(client, "priya@example.com", "032021")
    listed = await client.get("/api/parent/documents", headers=priya)
    assert sorted(d["id"] for d in listed.json()) == sorted([for_child["id"], for_parent["id"]])

    child_docs = await client.get(f"/api/parent/documents/child/{child_id}", headers=priya)
    assert [d["original_filename"] for d in child_docs.json()] == ["immunization.pdf"]

    # The second parent shares the child but not the parent-only receipt
    raj = await _login(client, "raj@example.com", "032021")
    raj_docs = await client.get("/api/parent/documents", headers=raj)
    assert [d["id"] for d in raj_docs.json()] == [for_child["id"]]

    download = await client.get(f"/api/parent/documents/{for_child['id']}/download", headers=raj)
    assert download.status_code == 200
    assert download.content == PDF_BYTES


async def test_parent_cannot_reach_another_familys_documents(client, admin_headers, family):
    created = await client.post("/api/families", json=OTHER_FAMILY, headers=admin_headers)
    assert created.status_code == 201, created.text
    other_child_id = created.json()["family"]["children"][0]["id"]
    private = await _upload(client, admin_headers, "tobi-allergy-plan.pdf", linked_child_id=other_child_id)

    priya = await _login(client, "priya@example.com", "032021")

    download = await client.get(f"/api/parent/documents/{private['id']}/download", headers=priya)
    assert download.status_code == 404
    child_docs = await client.get(f"/api/parent/documents/child/{other_child_id}", headers=priya)
    assert child_docs.status_code == 404
    listed = await client.get("/api/parent/documents", headers=priya)
    assert listed.json() == []

    lena = await _login(client, "lena@example.com", "052022")
    allowed = await client.get(f"/api/parent/documents/{private['id']}/download", headers=lena)
    assert allowed.status_code == 200


async def test_staff_token_cannot_use_parent_documents(client, admin_headers):
    response = await client.get("/api/parent/documents", headers=admin_headers)

    assert response.status_code == 403
