from pathlib import Path

from daycare.models import Document

PDF_BYTES = b"%PDF-1.4 enrollment form"


async def _upload(client, headers, name="enrollment.pdf", content=PDF_BYTES, mime="application/pdf", **form):
    return await client.post(
        "/api/files/upload",
        files={"file": (name, content, mime)},
        data=form,
        headers=headers,
    )


async def test_upload_list_and_download(client, admin_headers):
    response = await _upload(
        client, admin_headers, category="Enrollment", tags='["forms", "2026"]', description="Signed form"
    )
    assert response.status_code == 201, response.text
    document = response.json()
    assert document["tags"] == ["forms", "2026"]
    assert document["file_size"] == len(PDF_BYTES)

    listed = await client.get("/api/files", params={"search": "forms"}, headers=admin_headers)
    assert [d["id"] for d in listed.json()] == [document["id"]]

    categories = await client.get("/api/files/categories", headers=admin_headers)
    assert categories.json() == ["Enrollment"]

    download = await client.get(f"/api/files/{document['id']}/download", headers=admin_headers)
    assert download.status_code == 200
    assert download.content == PDF_BYTES


async def test_upload_rejects_unsupported_type(client, admin_headers):
    response = await _upload(client, admin_headers, name="run.sh", content=b"echo hi", mime="text/x-sh")

    assert response.status_code == 400
    assert "Invalid file type" in response.json()["error"]


async def test_upload_checks_linked_child(client, admin_headers):
    response = await _upload(client, admin_headers, linked_child_id="999")

    assert response.status_code == 404


async def test_update_metadata(client, admin_headers):
    document = (await _upload(client, admin_headers, tags="a, b")).json()
    assert document["tags"] == ["a", "b"]

    response = await client.patch(
        f"/api/files/{document['id']}",
        json={"category": "Medical", "tags": ["allergy"]},
        headers=admin_headers,
    )
    assert response.json()["category"] == "Medical"
    assert response.json()["tags"] == ["allergy"]

    empty = await client.patch(f"/api/files/{document['id']}", json={}, headers=admin_headers)
    assert empty.status_code == 400


async def test_delete_removes_file_from_disk(client, db, admin_headers):
    document = (await _upload(client, admin_headers)).json()
    stored = await db.get(Document, document["id"])
    path = Path(stored.file_path)
    assert path.exists()

    response = await client.delete(f"/api/files/{document['id']}", headers=admin_headers)

    assert response.status_code == 200
    assert not path.exists()
    missing = await client.get(f"/api/files/{document['id']}/download", headers=admin_headers)
    assert missing.status_code == 404
