"""Sync session lifecycle and post-sync reconciliation."""

from datetime import datetime
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from notesync.crud import crud
from notesync.errors import NotFound
from notesync.errors import ValidationError
from notesync.models.enums import SyncRecordStatus
from notesync.models.enums import SyncStatus
from notesync.services import sync_records

T0 = datetime(2024, 3, 1, 9, 30, 0)


def _open(db, user, **kwargs):
    params = {"sync_type": "incremental", "direction": "bidirectional", "now": T0}
    params.update(kwargs)
    return sync_records.create_record(db, user_id=user.id, **params)


def test_new_record_is_pending_with_zero_counters(db_session: Session, user):
    record = _open(db_session, user, device_info={"device_name": "Pixel", "device_type": "mobile", "extra": "x"})

    assert record.status == SyncRecordStatus.PENDING
    assert record.start_time == T0
    assert record.end_time is None
    assert record.duration == 0
    assert record.sync_details == {
        "total_items": 0,
        "successful_items": 0,
        "failed_items": 0,
        "conflict_items": 0,
    }
    assert record.device_info == {"device_name": "Pixel", "device_type": "mobile"}


@pytest.mark.parametrize(
    "kwargs",
    [
        {"sync_type": None},
        {"sync_type": "sometimes"},
        {"direction": ""},
        {"direction": "sideways"},
        {"device_info": {"device_type": "toaster"}},
    ],
)
def test_bad_create_arguments_are_rejected(db_session: Session, user, kwargs):
    with pytest.raises(ValidationError):
        _open(db_session, user, **kwargs)


def test_completion_sets_end_time_and_duration(db_session: Session, user):
    record = _open(db_session, user)

    done = sync_records.update_record(
        db_session,
        user_id=user.id,
        record_id=record.id,
        status="completed",
        now=T0 + timedelta(milliseconds=500),
    )

    assert done.status == SyncRecordStatus.COMPLETED
    assert done.end_time == T0 + timedelta(milliseconds=500)
    assert done.duration == 500


def test_in_progress_does_not_end_the_session(db_session: Session, user):
    record = _open(db_session, user)

    running = sync_records.update_record(db_session, user_id=user.id, record_id=record.id, status="in_progress")

    assert running.status == SyncRecordStatus.IN_PROGRESS
    assert running.end_time is None


def test_completion_reconciles_pending_items_only(db_session: Session, user, other_user, sample_note, sample_category):
    broken = crud.create_note(db_session, owner_id=user.id, title="Broken", content="upload failed")
    broken.sync_status = SyncStatus.FAILED
    foreign = crud.create_note(db_session, owner_id=other_user.id, title="Bob's", content="untouched")
    db_session.commit()

    record = _open(db_session, user)
    finished_at = T0 + timedelta(seconds=3)
    sync_records.update_record(
        db_session, user_id=user.id, record_id=record.id, status="completed", now=finished_at
    )

    for row in (sample_note, sample_category, broken, foreign, user):
        db_session.refresh(row)

    assert sample_note.sync_status == SyncStatus.SYNCED
    assert sample_category.sync_status == SyncStatus.SYNCED
    assert broken.sync_status == SyncStatus.FAILED
    assert foreign.sync_status == SyncStatus.PENDING
    assert sample_note.sync_version == 1
    assert user.last_sync_time == finished_at


def test_failed_session_does_not_reconcile(db_session: Session, user, sample_note):
    record = _open(db_session, user)

    failed = sync_records.update_record(
        db_session, user_id=user.id, record_id=record.id, status="failed", error_message="network down"
    )

    db_session.refresh(sample_note)
    assert failed.status == SyncRecordStatus.FAILED
    assert failed.error_message == "network down"
    assert failed.end_time is not None
    assert sample_note.sync_status == SyncStatus.PENDING


def test_terminal_record_cannot_change_status(db_session: Session, user):
    record = _open(db_session, user)
    sync_records.update_record(db_session, user_id=user.id, record_id=record.id, status="failed")

    with pytest.raises(ValidationError):
        sync_records.update_record(db_session, user_id=user.id, record_id=record.id, status="completed")


def test_repeating_terminal_status_is_a_no_op(db_session: Session, user, sample_note):
    record = _open(db_session, user)
    first_end = T0 + timedelta(seconds=1)
    sync_records.update_record(db_session, user_id=user.id, record_id=record.id, status="completed", now=first_end)

    crud.update_note(db_session, owner_id=user.id, note_id=sample_note.id, title="Edited later")
    again = sync_records.update_record(
        db_session, user_id=user.id, record_id=record.id, status="completed", now=first_end + timedelta(seconds=9)
    )

    db_session.refresh(sample_note)
    assert again.end_time == first_end
    assert again.duration == 1000
    assert sample_note.sync_status == SyncStatus.PENDING


def test_sync_details_are_merged_field_by_field(db_session: Session, user):
    record = _open(db_session, user)

    sync_records.update_record(
        db_session, user_id=user.id, record_id=record.id, sync_details={"total_items": 5, "successful_items": 4}
    )
    updated = sync_records.update_record(
        db_session, user_id=user.id, record_id=record.id, sync_details={"failed_items": 1, "successful_items": 3}
    )

    assert updated.sync_details == {
        "total_items": 5,
        "successful_items": 3,
        "failed_items": 1,
        "conflict_items": 0,
    }


@pytest.mark.parametrize("details", [{"bogus": 1}, {"total_items": -1}, {"failed_items": "two"}])
def test_bad_sync_details_are_rejected(db_session: Session, user, details):
    record = _open(db_session, user)

    with pytest.raises(ValidationError):
        sync_records.update_record(db_session, user_id=user.id, record_id=record.id, sync_details=details)


def test_foreign_record_is_not_found(db_session: Session, user, other_user):
    record = _open(db_session, user)

    with pytest.raises(NotFound):
        sync_records.update_record(db_session, user_id=other_user.id, record_id=record.id, status="completed")


def test_list_records_newest_first_with_pagination(db_session: Session, user, other_user):
    ids = [_open(db_session, user).id for _ in range(3)]
    _open(db_session, other_user)
    sync_records.update_record(db_session, user_id=user.id, record_id=ids[0], status="failed")

    page_one, pagination = sync_records.list_records(db_session, user_id=user.id, page=1, limit=2)
    page_two, _ = sync_records.list_records(db_session, user_id=user.id, page=2, limit=2)
    failed, failed_pagination = sync_records.list_records(db_session, user_id=user.id, status="failed")

    assert [r.id for r in page_one + page_two] == list(reversed(ids))
    assert pagination == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert [r.id for r in failed] == [ids[0]]
    assert failed_pagination["limit"] == 20


def test_list_records_rejects_bad_paging(db_session: Session, user):
    with pytest.raises(ValidationError):
        sync_records.list_records(db_session, user_id=user.id, page=0)
    with pytest.raises(ValidationError):
        sync_records.list_records(db_session, user_id=user.id, limit=1000)


def test_reconcile_returns_flip_counts(db_session: Session, user, sample_note, sample_category):
    crud.create_note(db_session, owner_id=user.id, title="Another", content="body")

    counts = sync_records.reconcile(db_session, user.id)
    db_session.commit()

    assert counts == (2, 1)
    assert sync_records.reconcile(db_session, user.id) == (0, 0)
