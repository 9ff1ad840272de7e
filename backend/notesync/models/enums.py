"""Shared *Enum* definitions for SQLAlchemy & Pydantic models.

The Enums inherit from ``str`` so that:

* JSON serialisation remains unchanged (values render as plain strings).
* Equality checks against raw literals (``status == "pending"``) keep working.
"""

from __future__ import annotations

from enum import Enum


class SyncStatus(str, Enum):
    """Per-entity synchronisation state."""

    SYNCED = "synced"
    PENDING = "pending"
    FAILED = "failed"


class SyncType(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"
    MANUAL = "manual"
    AUTO = "auto"


class SyncRecordStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SyncRecordStatus.COMPLETED, SyncRecordStatus.FAILED)


class SyncDirection(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
    BIDIRECTIONAL = "bidirectional"


class DeviceType(str, Enum):
    MOBILE = "mobile"
    TABLET = "tablet"
    DESKTOP = "desktop"
    WEB = "web"


class EntityKind(str, Enum):
    """Versioned entity kinds exposed by the pending-changes query."""

    NOTE = "note"
    CATEGORY = "category"


class ConflictResolution(str, Enum):
    USE_SERVER = "useServer"
    USE_CLIENT = "useClient"
    DUPLICATE = "duplicate"


__all__ = [
    "SyncStatus",
    "SyncType",
    "SyncRecordStatus",
    "SyncDirection",
    "DeviceType",
    "EntityKind",
    "ConflictResolution",
]
