"""Read side of multi-device sync.

Clients remember the highest ``sync_version`` they have seen per entity kind
(their *watermark*) and ask for everything above it.  Both functions here are
read-only; calling them twice in a row returns the same answer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Dict
from typing import List
from typing import Optional
from typing import Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from notesync.errors import NotFound
from notesync.errors import ValidationError
from notesync.models.enums import EntityKind
from notesync.models.models import Category
from notesync.models.models import Note
from notesync.models.models import User
from notesync.utils.time import utc_now

logger = logging.getLogger(__name__)

_MODELS = {
    EntityKind.NOTE: Note,
    EntityKind.CATEGORY: Category,
}

# URL segments used by ``/sync/pending/{kind}``.
_KIND_ALIASES = {
    "note": EntityKind.NOTE,
    "notes": EntityKind.NOTE,
    "category": EntityKind.CATEGORY,
    "categories": EntityKind.CATEGORY,
}


@dataclass
class PendingChanges:
    items: List[Any] = field(default_factory=list)
    new_watermark: int = 0


def parse_kind(kind: Union[str, EntityKind]) -> EntityKind:
    """Map ``"notes"``/``"category"``/... onto :class:`EntityKind`."""

    if isinstance(kind, EntityKind):
        return kind
    resolved = _KIND_ALIASES.get(str(kind).strip().lower())
    if resolved is None:
        raise ValidationError(f"Unknown entity kind '{kind}'")
    return resolved


def _require_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFound("User", user_id)
    return user


def pending_changes(
    db: Session,
    user_id: int,
    kind: Union[str, EntityKind],
    since_version: Optional[int] = None,
) -> PendingChanges:
    """Entities of *kind* owned by *user_id* whose version is above *since_version*.

    Soft-deleted notes are part of the result so other devices learn about the
    deletion.  Items come back in ascending version order (id breaks ties) and
    ``new_watermark`` is the highest version returned, or *since_version*
    itself when nothing changed.
    """

    since_version = 0 if since_version is None else since_version
    if since_version < 0:
        raise ValidationError("lastSyncVersion must be a non-negative integer")

    entity_kind = parse_kind(kind)
    _require_user(db, user_id)

    model = _MODELS[entity_kind]
    items = (
        db.query(model)
        .filter(model.owner_id == user_id, model.sync_version > since_version)
        .order_by(model.sync_version.asc(), model.id.asc())
        .all()
    )

    watermark = max((item.sync_version for item in items), default=since_version)
    logger.debug(f"pending {entity_kind.value}s for user {user_id} since {since_version}: {len(items)} item(s)")
    return PendingChanges(items=items, new_watermark=watermark)


def _max_version(db: Session, model, user_id: int, *criteria) -> int:
    value = db.query(func.max(model.sync_version)).filter(model.owner_id == user_id, *criteria).scalar()
    return value or 0


def full_snapshot(db: Session, user_id: int) -> Dict[str, Any]:
    """Everything a fresh device needs: all categories and all live notes."""

    user = _require_user(db, user_id)

    categories = (
        db.query(Category).filter(Category.owner_id == user_id).order_by(Category.created_at, Category.id).all()
    )
    notes = (
        db.query(Note)
        .filter(Note.owner_id == user_id, Note.is_deleted.is_(False))
        .order_by(Note.last_modified.desc(), Note.id.desc())
        .all()
    )

    return {
        "user": user,
        "categories": categories,
        "notes": notes,
        "sync_version": {
            "categories": _max_version(db, Category, user_id),
            "notes": _max_version(db, Note, user_id, Note.is_deleted.is_(False)),
        },
        "sync_time": utc_now(),
    }


__all__ = [
    "PendingChanges",
    "parse_kind",
    "pending_changes",
    "full_snapshot",
]
