"""Sync session model.

One :class:`SyncRecord` row is written per sync session a client runs.  The
row tracks the session's outcome counters and timing; it never stores the
entities themselves.
"""

from sqlalchemy import JSON
from sqlalchemy import Column
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey
from sqlalchemy import Index
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy.ext.mutable import MutableDict
from sqlalchemy.orm import relationship

from notesync.database import Base
from notesync.models.enums import SyncDirection
from notesync.models.enums import SyncRecordStatus
from notesync.models.enums import SyncType
from notesync.utils.time import millis_between
from notesync.utils.time import utc_now_naive

SYNC_DETAIL_FIELDS = ("total_items", "successful_items", "failed_items", "conflict_items")


def empty_sync_details() -> dict:
    return {field: 0 for field in SYNC_DETAIL_FIELDS}


class SyncRecord(Base):
    """A single sync session started by one of the user's devices.

    ``end_time`` is written once, on the first transition into a terminal
    status.  ``duration`` is derived from ``start_time``/``end_time`` and is
    not a column.
    """

    __tablename__ = "sync_records"
    __table_args__ = (
        Index("ix_sync_records_user_created", "user_id", "created_at"),
        Index("ix_sync_records_user_status", "user_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Ownership
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    user = relationship("User", backref="sync_records")

    sync_type = Column(SAEnum(SyncType, native_enum=False, name="sync_type_enum"), nullable=False)
    status = Column(
        SAEnum(SyncRecordStatus, native_enum=False, name="sync_record_status_enum"),
        nullable=False,
        default=SyncRecordStatus.PENDING.value,
    )
    direction = Column(SAEnum(SyncDirection, native_enum=False, name="sync_direction_enum"), nullable=False)

    # {"device_name", "device_type", "client_version"} – informational only
    device_info = Column(MutableDict.as_mutable(JSON), nullable=False, default=dict)
    sync_details = Column(MutableDict.as_mutable(JSON), nullable=False, default=empty_sync_details)

    start_time = Column(DateTime, nullable=True)
    end_time = Column(DateTime, nullable=True)
    error_message = Column(String, nullable=True)

    created_at = Column(DateTime, default=utc_now_naive, nullable=False)

    @property
    def duration(self) -> int:
        """Milliseconds between start and end, 0 while the session is open."""

        if self.start_time is None or self.end_time is None:
            return 0
        return millis_between(self.start_time, self.end_time)
