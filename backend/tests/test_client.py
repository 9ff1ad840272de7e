"""NoteSyncClient against the in-process app."""

import pytest
from fastapi.testclient import TestClient

from notesync.client import APIResponseError
from notesync.client import AuthenticationError
from notesync.client import NoteSyncClient


@pytest.fixture
def api(client: TestClient):
    with NoteSyncClient(client=client) as sync_client:
        yield sync_client


def test_session_round_trip(api: NoteSyncClient, client: TestClient, token, auth_headers):
    note = client.post("/api/notes", json={"title": "Phone note", "content": "x"}, headers=auth_headers).json()

    record = api.create_sync_record(
        token, sync_type="manual", direction="upload", device_info={"device_type": "mobile"}
    )
    assert record["status"] == "pending"

    done = api.update_sync_record(token, record["id"], status="completed", sync_details={"total_items": 1})
    assert done["status"] == "completed"
    assert done["sync_details"]["total_items"] == 1

    listing = api.list_sync_records(token, status="completed")
    assert [r["id"] for r in listing["records"]] == [record["id"]]

    changes = api.pending_changes(token, "notes", last_sync_version=0)
    assert [n["id"] for n in changes["items"]] == [note["id"]]
    assert changes["items"][0]["sync_status"] == "synced"


def test_tokens_are_per_call(api: NoteSyncClient, client: TestClient, auth_headers, token, other_token):
    client.post("/api/notes", json={"title": "Alice only", "content": "x"}, headers=auth_headers)

    assert len(api.full_snapshot(token)["notes"]) == 1
    assert api.full_snapshot(other_token)["notes"] == []


def test_resolve_conflicts(api: NoteSyncClient, client: TestClient, auth_headers, token):
    note = client.post("/api/notes", json={"title": "Laptop", "content": "x"}, headers=auth_headers).json()

    results = api.resolve_conflicts(token, [{"type": "note", "id": note["id"], "resolution": "duplicate"}])

    assert results[0]["status"] == "success"
    assert results[0]["duplicate_id"] != note["id"]


def test_bad_token_raises_authentication_error(api: NoteSyncClient):
    with pytest.raises(AuthenticationError) as exc_info:
        api.full_snapshot("garbage")

    assert exc_info.value.status_code == 401


def test_error_responses_carry_detail(api: NoteSyncClient, token):
    with pytest.raises(APIResponseError) as exc_info:
        api.update_sync_record(token, 999, status="completed")

    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "Sync record not found"
