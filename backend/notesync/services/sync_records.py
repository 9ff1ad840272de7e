"""Sync session bookkeeping and post-sync reconciliation.

A client opens a :class:`~notesync.models.sync.SyncRecord` when it starts
syncing, reports progress counters while it runs and finally moves the record
into ``completed`` or ``failed``.  Completing a session is the only trigger for
:func:`reconcile`, which confirms every pending note and category of the user.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

from sqlalchemy.orm import Session

from notesync.config import get_settings
from notesync.database import commit_or_raise
from notesync.errors import NotFound
from notesync.errors import ValidationError
from notesync.models.enums import DeviceType
from notesync.models.enums import SyncDirection
from notesync.models.enums import SyncRecordStatus
from notesync.models.enums import SyncStatus
from notesync.models.enums import SyncType
from notesync.models.models import Category
from notesync.models.models import Note
from notesync.models.models import User
from notesync.models.sync import SYNC_DETAIL_FIELDS
from notesync.models.sync import SyncRecord
from notesync.models.sync import empty_sync_details
from notesync.utils.time import utc_now_naive

logger = logging.getLogger(__name__)

MAX_PAGE_LIMIT = 100
_DEVICE_INFO_FIELDS = ("device_name", "device_type", "client_version")


def _parse_enum(enum_cls, value, label: str):
    if value is None or value == "":
        raise ValidationError(f"{label} is required")
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(f"Invalid {label} '{value}'; expected one of: {allowed}") from None


def _clean_device_info(device_info: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not device_info:
        return {}
    cleaned = {key: device_info[key] for key in _DEVICE_INFO_FIELDS if device_info.get(key) is not None}
    if "device_type" in cleaned:
        cleaned["device_type"] = _parse_enum(DeviceType, cleaned["device_type"], "device_type").value
    return cleaned


def _clean_sync_details(sync_details: Dict[str, Any]) -> Dict[str, int]:
    cleaned = {}
    for key, value in sync_details.items():
        if key not in SYNC_DETAIL_FIELDS:
            raise ValidationError(f"Unknown sync_details field '{key}'")
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValidationError(f"sync_details.{key} must be a non-negative integer")
        cleaned[key] = value
    return cleaned


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


def reconcile(db: Session, user_id: int) -> Tuple[int, int]:
    """Flip the user's pending notes and categories to ``synced``.

    Items in ``failed`` stay failed and no version changes.  The caller owns
    the transaction; nothing is committed here.  Returns the number of notes
    and categories that were flipped.
    """

    counts = []
    for model in (Note, Category):
        flipped = (
            db.query(model)
            .filter(model.owner_id == user_id, model.sync_status == SyncStatus.PENDING)
            .update({model.sync_status: SyncStatus.SYNCED}, synchronize_session="fetch")
        )
        counts.append(flipped)

    notes_flipped, categories_flipped = counts
    logger.info(f"Reconciled user {user_id}: {notes_flipped} note(s), {categories_flipped} category(ies) synced")
    return notes_flipped, categories_flipped


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


def create_record(
    db: Session,
    *,
    user_id: int,
    sync_type,
    direction,
    device_info: Optional[Dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> SyncRecord:
    """Open a new sync session in ``pending`` with zeroed counters."""

    parsed_type = _parse_enum(SyncType, sync_type, "sync_type")
    parsed_direction = _parse_enum(SyncDirection, direction, "direction")

    record = SyncRecord(
        user_id=user_id,
        sync_type=parsed_type,
        direction=parsed_direction,
        status=SyncRecordStatus.PENDING,
        device_info=_clean_device_info(device_info),
        sync_details=empty_sync_details(),
        start_time=now or utc_now_naive(),
    )
    db.add(record)
    commit_or_raise(db, "create sync record")
    db.refresh(record)

    logger.info(
        f"Sync record {record.id} opened for user {user_id} ({parsed_type.value}, {parsed_direction.value})"
    )
    return record


def get_record(db: Session, *, user_id: int, record_id: int) -> Optional[SyncRecord]:
    return db.query(SyncRecord).filter(SyncRecord.id == record_id, SyncRecord.user_id == user_id).first()


def update_record(
    db: Session,
    *,
    user_id: int,
    record_id: int,
    status=None,
    sync_details: Optional[Dict[str, Any]] = None,
    error_message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> SyncRecord:
    """Apply a progress report to a sync session.

    ``end_time`` is written on the first arrival in a terminal status.  A
    terminal record cannot move to a different status; repeating the same
    terminal status changes nothing.  Completing a session reconciles the
    user's entities and stamps ``User.last_sync_time`` in the same commit.
    """

    record = get_record(db, user_id=user_id, record_id=record_id)
    if record is None:
        raise NotFound("Sync record", record_id)

    now = now or utc_now_naive()
    current = SyncRecordStatus(record.status)

    # Validate everything before touching the row.
    new_status = _parse_enum(SyncRecordStatus, status, "status") if status is not None else None
    details = _clean_sync_details(sync_details) if sync_details else {}

    if new_status is not None and current.is_terminal and new_status != current:
        raise ValidationError(f"Sync record {record_id} is already {current.value} and cannot become {new_status.value}")

    if new_status is not None and new_status != current:
        record.status = new_status
        if new_status.is_terminal and record.end_time is None:
            record.end_time = now

        if new_status == SyncRecordStatus.COMPLETED:
            reconcile(db, user_id)
            user = db.query(User).filter(User.id == user_id).first()
            if user is not None:
                user.last_sync_time = now

        logger.info(f"Sync record {record_id}: {current.value} -> {new_status.value}")

    if details:
        merged = dict(record.sync_details or empty_sync_details())
        merged.update(details)
        record.sync_details = merged

    if error_message is not None:
        record.error_message = error_message

    commit_or_raise(db, "update sync record")
    db.refresh(record)

    if record.status == SyncRecordStatus.FAILED and error_message:
        logger.warning(f"Sync record {record_id} failed: {error_message}")
    return record


def list_records(
    db: Session,
    *,
    user_id: int,
    status=None,
    page: int = 1,
    limit: Optional[int] = None,
) -> Tuple[List[SyncRecord], Dict[str, int]]:
    """Newest-first page of the user's sync records plus pagination info."""

    if limit is None:
        limit = get_settings().sync_records_page_limit
    if page < 1:
        raise ValidationError("page must be >= 1")
    if limit < 1 or limit > MAX_PAGE_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_LIMIT}")

    query = db.query(SyncRecord).filter(SyncRecord.user_id == user_id)
    if status is not None:
        query = query.filter(SyncRecord.status == _parse_enum(SyncRecordStatus, status, "status"))

    total = query.count()
    records = (
        query.order_by(SyncRecord.created_at.desc(), SyncRecord.id.desc()).offset((page - 1) * limit).limit(limit).all()
    )

    pagination = {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if total else 0,
    }
    return records, pagination


__all__ = [
    "reconcile",
    "create_record",
    "get_record",
    "update_record",
    "list_records",
]
