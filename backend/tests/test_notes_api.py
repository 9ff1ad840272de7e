"""HTTP tests for /api/notes."""

import io

from fastapi.testclient import TestClient

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _create(client: TestClient, headers, **body):
    payload = {"title": "Trip", "content": "Pack the tent"}
    payload.update(body)
    resp = client.post("/api/notes", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_requires_authentication(client: TestClient):
    resp = client.get("/api/notes")
    assert resp.status_code == 401


def test_create_note(client: TestClient, auth_headers):
    note = _create(client, auth_headers, tags=["travel", " "])

    assert note["sync_version"] == 1
    assert note["sync_status"] == "pending"
    assert note["tags"] == ["travel"]
    assert note["excerpt"] == "Pack the tent"
    assert note["is_deleted"] is False


def test_create_note_validation(client: TestClient, auth_headers):
    resp = client.post("/api/notes", json={"title": "", "content": "x"}, headers=auth_headers)
    assert resp.status_code == 400

    resp = client.post("/api/notes", json={"title": "only title"}, headers=auth_headers)
    assert resp.status_code == 422


def test_list_pins_first_then_newest(client: TestClient, auth_headers):
    old = _create(client, auth_headers, title="Old")
    pinned = _create(client, auth_headers, title="Pinned")
    newest = _create(client, auth_headers, title="Newest")
    client.put(f"/api/notes/{pinned['id']}", json={"is_pinned": True}, headers=auth_headers)
    client.put(f"/api/notes/{newest['id']}", json={"content": "touched"}, headers=auth_headers)

    resp = client.get("/api/notes", headers=auth_headers)

    assert resp.status_code == 200
    data = resp.json()
    assert [n["id"] for n in data["notes"]] == [pinned["id"], newest["id"], old["id"]]
    assert data["pagination"] == {"page": 1, "limit": 20, "total": 3, "pages": 1}


def test_list_filters(client: TestClient, auth_headers):
    _create(client, auth_headers, title="Recipe", tags=["food"])
    archived = _create(client, auth_headers, title="Old plan")
    client.put(f"/api/notes/{archived['id']}", json={"is_archived": True}, headers=auth_headers)

    search = client.get("/api/notes", params={"search": "recipe"}, headers=auth_headers).json()
    only_archived = client.get("/api/notes", params={"archived": True}, headers=auth_headers).json()

    assert [n["title"] for n in search["notes"]] == ["Recipe"]
    assert [n["id"] for n in only_archived["notes"]] == [archived["id"]]


def test_update_bumps_version_and_checks_expected(client: TestClient, auth_headers):
    note = _create(client, auth_headers)

    resp = client.put(f"/api/notes/{note['id']}", json={"title": "Trip v2", "expected_version": 1}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["sync_version"] == 2

    stale = client.put(f"/api/notes/{note['id']}", json={"title": "Trip v?", "expected_version": 1}, headers=auth_headers)
    assert stale.status_code == 409

    current = client.get(f"/api/notes/{note['id']}", headers=auth_headers).json()
    assert current["title"] == "Trip v2"


def test_other_users_note_is_hidden(client: TestClient, auth_headers, other_auth_headers):
    note = _create(client, auth_headers)

    assert client.get(f"/api/notes/{note['id']}", headers=other_auth_headers).status_code == 404
    assert client.put(f"/api/notes/{note['id']}", json={"title": "x"}, headers=other_auth_headers).status_code == 404
    assert client.delete(f"/api/notes/{note['id']}", headers=other_auth_headers).status_code == 404


def test_soft_delete_and_restore(client: TestClient, auth_headers):
    note = _create(client, auth_headers)

    deleted = client.delete(f"/api/notes/{note['id']}", headers=auth_headers)
    assert deleted.status_code == 200
    assert deleted.json()["is_deleted"] is True

    assert client.get("/api/notes", headers=auth_headers).json()["notes"] == []
    trash = client.get("/api/notes", params={"deleted": True}, headers=auth_headers).json()
    assert [n["id"] for n in trash["notes"]] == [note["id"]]

    restored = client.put(f"/api/notes/{note['id']}/restore", headers=auth_headers)
    assert restored.json()["is_deleted"] is False
    assert restored.json()["sync_version"] == 3


def test_pending_endpoint(client: TestClient, auth_headers):
    note = _create(client, auth_headers)
    client.put(f"/api/notes/{note['id']}", json={"content": "edited"}, headers=auth_headers)
    _create(client, auth_headers, title="Second")

    resp = client.get("/api/notes/sync/pending", params={"lastSyncVersion": 1}, headers=auth_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert [n["id"] for n in body["items"]] == [note["id"]]
    assert body["new_watermark"] == 2

    bad = client.get("/api/notes/sync/pending", params={"lastSyncVersion": -1}, headers=auth_headers)
    assert bad.status_code == 400


def test_image_upload_and_removal(client: TestClient, auth_headers):
    note = _create(client, auth_headers)

    resp = client.post(
        f"/api/notes/{note['id']}/images",
        files=[("images", ("tent.png", io.BytesIO(PNG_BYTES), "image/png"))],
        headers=auth_headers,
    )
    assert resp.status_code == 200, resp.text
    updated = resp.json()
    assert updated["sync_version"] == 2
    assert len(updated["images"]) == 1
    image = updated["images"][0]
    assert image["filename"] == "tent.png"
    assert image["size"] == len(PNG_BYTES)
    assert image["url"].startswith("/static/uploads/")

    bad_index = client.delete(f"/api/notes/{note['id']}/images/5", headers=auth_headers)
    assert bad_index.status_code == 400

    removed = client.delete(f"/api/notes/{note['id']}/images/0", headers=auth_headers)
    assert removed.status_code == 200
    assert removed.json()["url"] == image["url"]

    after = client.get(f"/api/notes/{note['id']}", headers=auth_headers).json()
    assert after["images"] == []
    assert after["sync_version"] == 3


def test_image_upload_rejects_non_images(client: TestClient, auth_headers):
    note = _create(client, auth_headers)

    resp = client.post(
        f"/api/notes/{note['id']}/images",
        files=[("images", ("notes.txt", io.BytesIO(b"hello"), "text/plain"))],
        headers=auth_headers,
    )

    assert resp.status_code == 400
    assert client.get(f"/api/notes/{note['id']}", headers=auth_headers).json()["sync_version"] == 1


def test_image_upload_size_limit(client: TestClient, auth_headers, monkeypatch):
    monkeypatch.setenv("MAX_IMAGE_BYTES", "10")
    note = _create(client, auth_headers)

    resp = client.post(
        f"/api/notes/{note['id']}/images",
        files=[("images", ("big.png", io.BytesIO(PNG_BYTES), "image/png"))],
        headers=auth_headers,
    )

    assert resp.status_code == 413
