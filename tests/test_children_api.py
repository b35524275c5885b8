from pathlib import Path

import pytest

from daycare.models import Child
from daycare.services.child_service import ChildService
from daycare.services.storage import StoredFile


async def _create_child(client, headers, first_name, **fields):
    payload = {"first_name": first_name, "last_name": "Kid", "date_of_birth": "2022-05-01", **fields}
    response = await client.post("/api/children", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def _waitlist(client, headers):
    response = await client.get("/api/children", params={"status": "WAITLIST"}, headers=headers)
    assert response.status_code == 200
    return [(child["first_name"], child["waitlist_priority"]) for child in response.json()]


async def test_waitlist_appends_in_order(client, admin_headers):
    await _create_child(client, admin_headers, "Ava", status="WAITLIST")
    await _create_child(client, admin_headers, "Ben", status="WAITLIST")
    active = await _create_child(client, admin_headers, "Cal")

    assert active["waitlist_priority"] is None
    assert await _waitlist(client, admin_headers) == [("Ava", 1), ("Ben", 2)]


async def test_enrolling_from_waitlist_closes_the_gap(client, admin_headers):
    ava = await _create_child(client, admin_headers, "Ava", status="WAITLIST")
    await _create_child(client, admin_headers, "Ben", status="WAITLIST")
    await _create_child(client, admin_headers, "Cleo", status="WAITLIST")

    response = await client.patch(
        f"/api/children/{ava['id']}", json={"status": "ACTIVE"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["waitlist_priority"] is None
    assert await _waitlist(client, admin_headers) == [("Ben", 1), ("Cleo", 2)]


async def test_deleting_waitlisted_child_resequences(client, admin_headers):
    await _create_child(client, admin_headers, "Ava", status="WAITLIST")
    ben = await _create_child(client, admin_headers, "Ben", status="WAITLIST")
    await _create_child(client, admin_headers, "Cleo", status="WAITLIST")

    response = await client.delete(f"/api/children/{ben['id']}", headers=admin_headers)

    assert response.status_code == 200
    assert await _waitlist(client, admin_headers) == [("Ava", 1), ("Cleo", 2)]


async def test_link_parent_twice_conflicts(client, admin_headers, family):
    parent_id = family["family"]["parents"][0]["id"]
    child = await _create_child(client, admin_headers, "Dev", parent_ids=[parent_id])

    assert child["parents"][0]["is_primary_contact"] is True

    response = await client.post(
        f"/api/children/{child['id']}/parents", json={"parent_id": parent_id}, headers=admin_headers
    )
    assert response.status_code == 409


async def test_photo_upload_rejects_unsupported_type(client, admin_headers):
    child = await _create_child(client, admin_headers, "Eli")

    response = await client.post(
        f"/api/children/{child['id']}/photo",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert "Invalid file type" in response.json()["error"]


async def test_photo_upload_and_download(client, admin_headers):
    child = await _create_child(client, admin_headers, "Fay")

    upload = await client.post(
        f"/api/children/{child['id']}/photo",
        files={"file": ("fay.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
        headers=admin_headers,
    )
    assert upload.status_code == 200
    assert upload.json()["has_photo"] is True

    download = await client.get(f"/api/children/{child['id']}/photo", headers=admin_headers)
    assert download.status_code == 200
    assert download.content.startswith(b"\x89PNG")


async def test_photo_is_stored_with_extension_of_its_type(client, db, admin_headers):
    child = await _create_child(client, admin_headers, "Gus")

    upload = await client.post(
        f"/api/children/{child['id']}/photo",
        files={"file": ("gus.html", b"\x89PNG\r\n\x1a\nfake", "image/png")},
        headers=admin_headers,
    )
    assert upload.status_code == 200

    stored = await db.get(Child, child["id"])
    assert Path(stored.photo_path).suffix == ".png"


async def test_failed_photo_save_removes_stored_file(client, db, admin, admin_headers, tmp_path, monkeypatch):
    child = await _create_child(client, admin_headers, "Ivy")
    photo = tmp_path / "ivy.png"
    photo.write_bytes(b"\x89PNG\r\n\x1a\nfake")
    stored = StoredFile(
        original_filename="ivy.png",
        stored_filename=photo.name,
        path=str(photo),
        size=photo.stat().st_size,
        mime_type="image/png",
    )

    async def failing_commit():
        raise RuntimeError("database went away")

    monkeypatch.setattr(db, "commit", failing_commit)
    with pytest.raises(RuntimeError):
        await ChildService(db).set_photo(child["id"], stored, admin)

    assert not photo.exists()


async def test_update_rejects_null_name(client, admin_headers):
    child = await _create_child(client, admin_headers, "Hal", notes="Naps at noon")

    rejected = await client.patch(
        f"/api/children/{child['id']}", json={"first_name": None}, headers=admin_headers
    )
    assert rejected.status_code == 400
    assert rejected.json()["error"] == "first_name cannot be null"

    cleared = await client.patch(f"/api/children/{child['id']}", json={"notes": None}, headers=admin_headers)
    assert cleared.status_code == 200
    assert cleared.json()["notes"] is None
    assert cleared.json()["first_name"] == "Hal"
