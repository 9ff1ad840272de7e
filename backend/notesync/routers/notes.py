"""Note CRUD, image attachments and the incremental pull for notes."""

import math
from typing import List
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import File
from fastapi import Query
from fastapi import UploadFile
from fastapi import status
from sqlalchemy.orm import Session

from notesync.crud import crud
from notesync.database import get_db
from notesync.dependencies.auth import get_current_user
from notesync.errors import NotFound
from notesync.models.enums import EntityKind
from notesync.schemas.schemas import NoteCreate
from notesync.schemas.schemas import NoteImage
from notesync.schemas.schemas import NoteList
from notesync.schemas.schemas import NoteOut
from notesync.schemas.schemas import NoteUpdate
from notesync.schemas.schemas import PendingNotesOut
from notesync.services import image_store
from notesync.services.sync_query import pending_changes

router = APIRouter(tags=["notes"], dependencies=[Depends(get_current_user)])


# ---------------------------------------------------------------------------
# Incremental pull – declared before "/{note_id}" so the literal path wins
# ---------------------------------------------------------------------------


@router.get("/sync/pending", response_model=PendingNotesOut)
def read_pending_notes(
    last_sync_version: int = Query(0, alias="lastSyncVersion"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Notes changed since *lastSyncVersion*, deleted ones included."""

    changes = pending_changes(db, current_user.id, EntityKind.NOTE, last_sync_version)
    return {"items": changes.items, "new_watermark": changes.new_watermark}


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.get("/", response_model=NoteList)
@router.get("", response_model=NoteList)
def read_notes(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[int] = None,
    search: Optional[str] = None,
    pinned: Optional[bool] = None,
    archived: Optional[bool] = None,
    deleted: bool = False,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    notes, total = crud.get_notes(
        db,
        current_user.id,
        skip=(page - 1) * limit,
        limit=limit,
        category_id=category,
        search=search,
        pinned=pinned,
        archived=archived,
        deleted=deleted,
    )
    return {
        "notes": notes,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
    }


@router.post("/", response_model=NoteOut, status_code=status.HTTP_201_CREATED)
@router.post("", response_model=NoteOut, status_code=status.HTTP_201_CREATED)
def create_note(
    body: NoteCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return crud.create_note(
        db,
        owner_id=current_user.id,
        title=body.title,
        content=body.content,
        category_id=body.category_id,
        tags=body.tags,
    )


@router.get("/{note_id}", response_model=NoteOut)
def read_note(note_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    note = crud.get_note(db, current_user.id, note_id)
    if note is None:
        raise NotFound("Note", note_id)
    return note


@router.put("/{note_id}", response_model=NoteOut)
def update_note(
    note_id: int,
    patch: NoteUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Partial update; only the fields present in the body change.

    Sending ``"category_id": null`` moves the note out of its category.
    """

    extra = {}
    if "category_id" in patch.model_fields_set:
        extra["category_id"] = patch.category_id

    return crud.update_note(
        db,
        owner_id=current_user.id,
        note_id=note_id,
        title=patch.title,
        content=patch.content,
        tags=patch.tags,
        is_pinned=patch.is_pinned,
        is_archived=patch.is_archived,
        expected_version=patch.expected_version,
        **extra,
    )


@router.delete("/{note_id}", response_model=NoteOut)
def delete_note(
    note_id: int,
    expected_version: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Soft delete: the note stays visible to the pending-changes pull."""

    return crud.set_note_deleted(
        db, owner_id=current_user.id, note_id=note_id, deleted=True, expected_version=expected_version
    )


@router.put("/{note_id}/restore", response_model=NoteOut)
def restore_note(
    note_id: int,
    expected_version: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return crud.set_note_deleted(
        db, owner_id=current_user.id, note_id=note_id, deleted=False, expected_version=expected_version
    )


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


@router.post("/{note_id}/images", response_model=NoteOut)
def upload_note_images(
    note_id: int,
    images: List[UploadFile] = File(...),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    if crud.get_note(db, current_user.id, note_id) is None:
        raise NotFound("Note", note_id)

    stored = image_store.store_note_images(current_user.id, images)
    return crud.add_note_images(db, owner_id=current_user.id, note_id=note_id, images=stored)


@router.delete("/{note_id}/images/{index}", response_model=NoteImage)
def delete_note_image(
    note_id: int,
    index: int,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    removed = crud.remove_note_image(db, owner_id=current_user.id, note_id=note_id, index=index)
    image_store.delete_stored_image(removed)
    return removed
