"""Versioning contract shared by notes and categories.

Every write path goes through one of the helpers below instead of touching
``sync_version``/``sync_status`` directly:

* :func:`init_versioned` – a freshly created entity is version 1, pending.
* :func:`apply_mutation` – any content change bumps the version by exactly one
  and marks the entity pending again.
* :func:`mark_synced` – a confirmation that changes nothing but the status.

Keeping the rules here means a router cannot forget to advance sync state
when it edits content.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Optional

from notesync.errors import VersionConflict
from notesync.models.enums import SyncStatus
from notesync.models.models import Note
from notesync.utils.time import utc_now_naive

EXCERPT_LENGTH = 200

_TAG_RE = re.compile(r"<[^>]*>")


def make_excerpt(content: Optional[str]) -> Optional[str]:
    """Strip markup from *content* and cut it to a short preview."""

    if not content:
        return None
    plain = _TAG_RE.sub("", content)
    if len(plain) > EXCERPT_LENGTH:
        return plain[:EXCERPT_LENGTH] + "..."
    return plain


def _stamp(entity, now: datetime) -> None:
    entity.updated_at = now
    if isinstance(entity, Note):
        entity.last_modified = now


def init_versioned(entity, now: Optional[datetime] = None):
    """Prepare a new, not yet persisted entity: version 1, pending."""

    now = now or utc_now_naive()
    entity.sync_version = 1
    entity.sync_status = SyncStatus.PENDING
    entity.created_at = now
    _stamp(entity, now)
    return entity


def apply_mutation(entity, now: Optional[datetime] = None):
    """Record a content change on *entity*.

    Must be called in the same session as the change itself so both land in
    a single commit.
    """

    now = now or utc_now_naive()
    entity.sync_version = (entity.sync_version or 0) + 1
    entity.sync_status = SyncStatus.PENDING
    _stamp(entity, now)
    return entity


def mark_synced(entity):
    """Flag *entity* as confirmed by the client; content and version stay put."""

    entity.sync_status = SyncStatus.SYNCED
    return entity


def check_expected_version(entity, expected_version: Optional[int], kind: str) -> None:
    """Reject a write whose caller saw a different ``sync_version``.

    ``expected_version=None`` opts out and keeps last-writer-wins.
    """

    if expected_version is None:
        return
    if entity.sync_version != expected_version:
        raise VersionConflict(kind, entity.id, expected_version, entity.sync_version)


__all__ = [
    "make_excerpt",
    "init_versioned",
    "apply_mutation",
    "mark_synced",
    "check_expected_version",
]
