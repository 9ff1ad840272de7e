"""Apply client-chosen policies to divergent notes and categories.

A batch is processed item by item.  Each item runs inside its own SAVEPOINT
so a failing item rolls back alone and is reported in its result entry while
the rest of the batch still lands.  Results are returned in input order.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from notesync.config import get_settings
from notesync.crud import crud
from notesync.database import commit_or_raise
from notesync.errors import ConflictItemError
from notesync.errors import NotFound
from notesync.errors import NoteSyncError
from notesync.errors import ValidationError
from notesync.models.enums import ConflictResolution
from notesync.models.enums import EntityKind
from notesync.models.models import Category
from notesync.models.models import Note
from notesync.services.versioning import apply_mutation
from notesync.services.versioning import make_excerpt
from notesync.services.versioning import mark_synced
from notesync.utils.time import utc_now_naive

logger = logging.getLogger(__name__)

# clientVersion keys accepted per kind, mapped onto column names.  Both the
# wire (camelCase) and the column spelling are accepted.
_NOTE_FIELDS = {
    "title": "title",
    "content": "content",
    "tags": "tags",
    "categoryId": "category_id",
    "category_id": "category_id",
    "isPinned": "is_pinned",
    "is_pinned": "is_pinned",
    "isArchived": "is_archived",
    "is_archived": "is_archived",
}
_CATEGORY_FIELDS = {
    "name": "name",
    "color": "color",
    "icon": "icon",
}

_TEXT_FIELDS = {"title", "content", "name", "color", "icon"}
# Blank values for these would leave the entity without a required field.
_REQUIRED_TEXT = {"title", "content", "name"}
_FLAG_FIELDS = {"is_pinned", "is_archived"}


def _check_field(column: str, value: Any) -> None:
    if column in _TEXT_FIELDS:
        if not isinstance(value, str):
            raise ConflictItemError(f"clientVersion.{column} must be a string")
        if column in _REQUIRED_TEXT and not value.strip():
            raise ConflictItemError(f"clientVersion.{column} cannot be empty")
    elif column in _FLAG_FIELDS:
        if not isinstance(value, bool):
            raise ConflictItemError(f"clientVersion.{column} must be a boolean")
    elif column == "tags":
        if value is not None and (not isinstance(value, list) or not all(isinstance(t, str) for t in value)):
            raise ConflictItemError("clientVersion.tags must be a list of strings")
    elif column == "category_id":
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            raise ConflictItemError("clientVersion.categoryId must be an integer or null")


def _client_fields(client_version: Any, mapping: Dict[str, str]) -> Dict[str, Any]:
    """Pick the known keys out of *client_version* and type-check them."""

    if client_version is None:
        return {}
    if not isinstance(client_version, dict):
        raise ConflictItemError("clientVersion must be an object")
    fields = {mapping[key]: value for key, value in client_version.items() if key in mapping}
    for column, value in fields.items():
        _check_field(column, value)
    return fields


# ---------------------------------------------------------------------------
# Per-kind handlers
# ---------------------------------------------------------------------------


def _overwrite_note(db: Session, user_id: int, note: Note, fields: Dict[str, Any]) -> None:
    crud.validate_note_fields(fields.get("title"), fields.get("content"), creating=False)

    if "title" in fields:
        note.title = fields["title"].strip()
    if "content" in fields:
        note.content = fields["content"].strip()
        note.excerpt = make_excerpt(note.content)
    if "category_id" in fields:
        crud.check_category_owner(db, user_id, fields["category_id"])
        note.category_id = fields["category_id"]
    if "tags" in fields:
        note.tags = [t.strip() for t in (fields["tags"] or []) if t.strip()]
    if "is_pinned" in fields:
        note.is_pinned = fields["is_pinned"]
    if "is_archived" in fields:
        note.is_archived = fields["is_archived"]


def _duplicate_note(db: Session, user_id: int, note: Note, fields: Dict[str, Any], now: datetime) -> Note:
    suffix = get_settings().duplicate_title_suffix
    base_title = str(fields.get("title") or note.title).strip()
    title = base_title[: crud.TITLE_MAX_LENGTH - len(suffix)] + suffix

    category_id = fields.get("category_id", note.category_id)
    crud.check_category_owner(db, user_id, category_id)

    copy = crud.build_note(
        owner_id=user_id,
        title=title,
        content=str(fields.get("content") or note.content),
        category_id=category_id,
        tags=fields.get("tags", list(note.tags or [])),
        is_pinned=fields.get("is_pinned", note.is_pinned),
        is_archived=fields.get("is_archived", note.is_archived),
        now=now,
    )
    db.add(copy)
    return copy


def _resolve_note(db: Session, user_id: int, conflict: Dict[str, Any], resolution: ConflictResolution, now: datetime):
    note = crud.get_note(db, user_id, conflict.get("id"))
    if note is None:
        raise NotFound("Note", conflict.get("id"))

    fields = _client_fields(conflict.get("clientVersion"), _NOTE_FIELDS)
    extra: Dict[str, Any] = {}

    if resolution == ConflictResolution.USE_CLIENT:
        _overwrite_note(db, user_id, note, fields)
        apply_mutation(note, now)
    elif resolution == ConflictResolution.DUPLICATE:
        copy = _duplicate_note(db, user_id, note, fields, now)
        db.flush()
        extra["duplicate_id"] = copy.id

    mark_synced(note)
    return extra


def _resolve_category(
    db: Session, user_id: int, conflict: Dict[str, Any], resolution: ConflictResolution, now: datetime
):
    if resolution == ConflictResolution.DUPLICATE:
        raise ConflictItemError("Resolution 'duplicate' is only supported for notes")

    category: Optional[Category] = crud.get_category(db, user_id, conflict.get("id"))
    if category is None:
        raise NotFound("Category", conflict.get("id"))

    if resolution == ConflictResolution.USE_CLIENT:
        fields = _client_fields(conflict.get("clientVersion"), _CATEGORY_FIELDS)
        crud.validate_category_fields(fields.get("name"), fields.get("color"))

        name = fields.get("name")
        if name and name.strip() != category.name:
            if crud.get_category_by_name(db, user_id, name) is not None:
                raise ConflictItemError("A category with this name already exists")
            category.name = name.strip()
        if fields.get("color"):
            category.color = fields["color"].strip()
        if fields.get("icon"):
            category.icon = fields["icon"].strip()
        apply_mutation(category, now)

    mark_synced(category)
    return {}


_HANDLERS = {
    EntityKind.NOTE: _resolve_note,
    EntityKind.CATEGORY: _resolve_category,
}


def _resolve_one(db: Session, user_id: int, conflict: Any, now: datetime) -> Dict[str, Any]:
    if not isinstance(conflict, dict):
        raise ConflictItemError("Conflict entry must be an object")

    try:
        kind = EntityKind(conflict.get("type"))
    except ValueError:
        raise ConflictItemError(f"Unsupported conflict type '{conflict.get('type')}'") from None

    try:
        resolution = ConflictResolution(conflict.get("resolution"))
    except ValueError:
        raise ConflictItemError(f"Unsupported resolution '{conflict.get('resolution')}'") from None

    return _HANDLERS[kind](db, user_id, conflict, resolution, now)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve_batch(
    db: Session,
    user_id: int,
    conflicts: Any,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """Resolve *conflicts* for *user_id* and return one result per entry.

    Only a malformed request (not a list, or an empty list) raises; every
    per-item problem becomes ``{"status": "error", "error": ...}``.
    """

    if not isinstance(conflicts, list) or not conflicts:
        raise ValidationError("conflicts must be a non-empty array")

    now = now or utc_now_naive()
    results: List[Dict[str, Any]] = []

    for conflict in conflicts:
        entry = conflict if isinstance(conflict, dict) else {}
        result: Dict[str, Any] = {"type": entry.get("type"), "id": entry.get("id")}
        try:
            with db.begin_nested():
                result.update(_resolve_one(db, user_id, conflict, now))
            result["status"] = "success"
        except (NoteSyncError, SQLAlchemyError) as exc:
            message = exc.message if isinstance(exc, NoteSyncError) else "Failed to store resolution"
            logger.warning(f"Conflict for {result['type']} {result['id']} of user {user_id} not resolved: {exc}")
            result["status"] = "error"
            result["error"] = message
        except Exception as exc:
            logger.error(
                f"Unexpected failure resolving {result['type']} {result['id']} of user {user_id}: {exc}",
                exc_info=True,
            )
            result["status"] = "error"
            result["error"] = "Failed to resolve conflict"
        results.append(result)

    commit_or_raise(db, "resolve conflicts")

    succeeded = sum(1 for r in results if r["status"] == "success")
    logger.info(f"Resolved {succeeded}/{len(results)} conflict(s) for user {user_id}")
    return results


__all__ = ["resolve_batch"]
