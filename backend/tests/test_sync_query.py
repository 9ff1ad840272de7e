"""Incremental pull and full snapshot."""

import pytest
from sqlalchemy.orm import Session

from notesync.crud import crud
from notesync.errors import NotFound
from notesync.errors import ValidationError
from notesync.models.enums import EntityKind
from notesync.services.sync_query import full_snapshot
from notesync.services.sync_query import parse_kind
from notesync.services.sync_query import pending_changes


def _note(db, owner_id, title):
    return crud.create_note(db, owner_id=owner_id, title=title, content=f"{title} body")


def test_create_edit_then_pull_above_one(db_session: Session, user):
    note = _note(db_session, user.id, "Draft")
    crud.update_note(db_session, owner_id=user.id, note_id=note.id, content="edited")

    changes = pending_changes(db_session, user.id, EntityKind.NOTE, 1)

    assert [n.id for n in changes.items] == [note.id]
    assert changes.new_watermark == 2


def test_items_are_ordered_by_version_then_id(db_session: Session, user):
    first = _note(db_session, user.id, "First")
    second = _note(db_session, user.id, "Second")
    third = _note(db_session, user.id, "Third")
    crud.update_note(db_session, owner_id=user.id, note_id=first.id, title="First again")

    changes = pending_changes(db_session, user.id, "notes", 0)

    assert [(n.id, n.sync_version) for n in changes.items] == [
        (second.id, 1),
        (third.id, 1),
        (first.id, 2),
    ]
    assert changes.new_watermark == 2


def test_pull_is_idempotent(db_session: Session, user):
    _note(db_session, user.id, "One")
    _note(db_session, user.id, "Two")

    first = pending_changes(db_session, user.id, EntityKind.NOTE, 0)
    second = pending_changes(db_session, user.id, EntityKind.NOTE, 0)

    assert [n.id for n in first.items] == [n.id for n in second.items]
    assert first.new_watermark == second.new_watermark


def test_nothing_new_keeps_watermark(db_session: Session, user):
    _note(db_session, user.id, "One")

    changes = pending_changes(db_session, user.id, EntityKind.NOTE, 7)

    assert changes.items == []
    assert changes.new_watermark == 7


def test_missing_watermark_means_everything(db_session: Session, user):
    _note(db_session, user.id, "One")

    changes = pending_changes(db_session, user.id, EntityKind.NOTE)

    assert len(changes.items) == 1
    assert changes.new_watermark == 1


def test_soft_deleted_notes_are_pulled(db_session: Session, sample_note, user):
    crud.set_note_deleted(db_session, owner_id=user.id, note_id=sample_note.id, deleted=True)

    changes = pending_changes(db_session, user.id, EntityKind.NOTE, 1)

    assert [n.id for n in changes.items] == [sample_note.id]
    assert changes.items[0].is_deleted is True


def test_pull_never_crosses_users(db_session: Session, user, other_user):
    _note(db_session, other_user.id, "Not yours")
    mine = _note(db_session, user.id, "Mine")

    changes = pending_changes(db_session, user.id, EntityKind.NOTE, 0)

    assert [n.id for n in changes.items] == [mine.id]


def test_category_pull(db_session: Session, sample_category, user):
    changes = pending_changes(db_session, user.id, EntityKind.CATEGORY, 0)

    assert [c.id for c in changes.items] == [sample_category.id]
    assert changes.new_watermark == 1


def test_negative_watermark_is_rejected(db_session: Session, user):
    with pytest.raises(ValidationError):
        pending_changes(db_session, user.id, EntityKind.NOTE, -1)


def test_unknown_user_is_not_found(db_session: Session):
    with pytest.raises(NotFound):
        pending_changes(db_session, 999, EntityKind.NOTE, 0)


@pytest.mark.parametrize("raw", ["note", "notes", "Notes", "category", "categories"])
def test_parse_kind_accepts_aliases(raw):
    assert parse_kind(raw) in (EntityKind.NOTE, EntityKind.CATEGORY)


def test_parse_kind_rejects_unknown():
    with pytest.raises(ValidationError):
        parse_kind("tags")


def test_full_snapshot_skips_deleted_notes(db_session: Session, sample_note, sample_category, user):
    keep = _note(db_session, user.id, "Keep")
    crud.update_note(db_session, owner_id=user.id, note_id=keep.id, title="Keep v2")
    crud.set_note_deleted(db_session, owner_id=user.id, note_id=sample_note.id, deleted=True)

    snapshot = full_snapshot(db_session, user.id)

    assert snapshot["user"].id == user.id
    assert [n.id for n in snapshot["notes"]] == [keep.id]
    assert [c.id for c in snapshot["categories"]] == [sample_category.id]
    assert snapshot["sync_version"] == {"categories": 1, "notes": 2}
    assert snapshot["sync_time"] is not None


def test_full_snapshot_of_empty_account(db_session: Session, user):
    snapshot = full_snapshot(db_session, user.id)

    assert snapshot["notes"] == []
    assert snapshot["categories"] == []
    assert snapshot["sync_version"] == {"categories": 0, "notes": 0}
