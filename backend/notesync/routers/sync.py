"""Multi-device sync endpoints.

Session bookkeeping (``/sync/record``), the full snapshot for a fresh
device, conflict resolution and a kind-generic incremental pull.
"""

from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import status
from sqlalchemy.orm import Session

from notesync.database import get_db
from notesync.dependencies.auth import get_current_user
from notesync.models.enums import EntityKind
from notesync.schemas.schemas import CategoryOut
from notesync.schemas.schemas import ConflictRequest
from notesync.schemas.schemas import ConflictResolutionOut
from notesync.schemas.schemas import FullSyncOut
from notesync.schemas.schemas import NoteOut
from notesync.schemas.schemas import SyncRecordCreate
from notesync.schemas.schemas import SyncRecordList
from notesync.schemas.schemas import SyncRecordOut
from notesync.schemas.schemas import SyncRecordUpdate
from notesync.services import sync_records
from notesync.services.conflict_resolution import resolve_batch
from notesync.services.sync_query import full_snapshot
from notesync.services.sync_query import parse_kind
from notesync.services.sync_query import pending_changes

router = APIRouter(tags=["sync"], dependencies=[Depends(get_current_user)])


# ---------------------------------------------------------------------------
# Sync sessions
# ---------------------------------------------------------------------------


@router.post("/record", response_model=SyncRecordOut, status_code=status.HTTP_201_CREATED)
def create_sync_record(
    body: SyncRecordCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    return sync_records.create_record(
        db,
        user_id=current_user.id,
        sync_type=body.sync_type,
        direction=body.direction,
        device_info=body.device_info.model_dump(exclude_none=True) if body.device_info else None,
    )


@router.put("/record/{record_id}", response_model=SyncRecordOut)
@router.patch("/record/{record_id}", response_model=SyncRecordOut)
def update_sync_record(
    record_id: int,
    body: SyncRecordUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Report progress; moving to ``completed`` confirms all pending items."""

    return sync_records.update_record(
        db,
        user_id=current_user.id,
        record_id=record_id,
        status=body.status,
        sync_details=body.sync_details,
        error_message=body.error_message,
    )


@router.get("/records", response_model=SyncRecordList)
def read_sync_records(
    status_filter: Optional[str] = Query(None, alias="status"),
    page: int = 1,
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    records, pagination = sync_records.list_records(
        db, user_id=current_user.id, status=status_filter, page=page, limit=limit
    )
    return {"records": records, "pagination": pagination}


# ---------------------------------------------------------------------------
# Data transfer
# ---------------------------------------------------------------------------


@router.get("/full", response_model=FullSyncOut)
def read_full_snapshot(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    return full_snapshot(db, current_user.id)


@router.post("/resolve-conflicts", response_model=ConflictResolutionOut)
def resolve_conflicts(
    body: ConflictRequest,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Apply per-item policies; one failing item never blocks the others."""

    return {"results": resolve_batch(db, current_user.id, body.conflicts)}


@router.get("/pending/{kind}")
def read_pending(
    kind: str,
    last_sync_version: int = Query(0, alias="lastSyncVersion"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Incremental pull for ``notes`` or ``categories``."""

    entity_kind = parse_kind(kind)
    changes = pending_changes(db, current_user.id, entity_kind, last_sync_version)
    schema = NoteOut if entity_kind == EntityKind.NOTE else CategoryOut

    return {
        "kind": entity_kind.value,
        "items": [schema.model_validate(item).model_dump(mode="json") for item in changes.items],
        "new_watermark": changes.new_watermark,
    }
