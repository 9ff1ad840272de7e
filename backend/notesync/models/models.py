from sqlalchemy import JSON
from sqlalchemy import Boolean
from sqlalchemy import Column
from sqlalchemy import DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey
from sqlalchemy import Index
from sqlalchemy import Integer
from sqlalchemy import String
from sqlalchemy import Text
from sqlalchemy import UniqueConstraint
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.orm import declared_attr
from sqlalchemy.orm import relationship

# Local helpers / enums
from notesync.database import Base
from notesync.models.enums import SyncStatus
from notesync.utils.time import utc_now_naive

# ---------------------------------------------------------------------------
# Authentication – User table
# ---------------------------------------------------------------------------


class User(Base):
    """Application user.

    Every note, category and sync record belongs to exactly one user; all
    sync queries are scoped by ``users.id``.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    # Core identity ----------------------------------------------------------
    username = Column(String(20), unique=True, nullable=False, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Relative URL under /static/uploads, set by the avatar upload route.
    avatar_url = Column(String, nullable=True)

    # -------------------------------------------------------------------
    # Multi-device sync
    # -------------------------------------------------------------------
    sync_enabled = Column(Boolean, default=False, nullable=False)
    # Stamped when a sync session transitions into ``completed``.
    last_sync_time = Column(DateTime, nullable=True)

    # Timestamps -------------------------------------------------------------
    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    updated_at = Column(DateTime, default=utc_now_naive, onupdate=utc_now_naive, nullable=False)


# ---------------------------------------------------------------------------
# Versioned entities
# ---------------------------------------------------------------------------


class VersionedMixin:
    """Columns shared by every entity that participates in multi-device sync.

    ``sync_version`` starts at 1 and only ever moves forward; the helpers in
    :mod:`notesync.services.versioning` are the single place that touches
    these columns.
    """

    sync_status = Column(
        SAEnum(SyncStatus, native_enum=False, name="sync_status_enum"),
        nullable=False,
        default=SyncStatus.PENDING.value,
    )
    sync_version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=utc_now_naive, nullable=False)
    updated_at = Column(DateTime, default=utc_now_naive, nullable=False)

    @declared_attr
    def owner_id(cls):  # noqa: N805 – SQLAlchemy declared_attr signature
        return Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)


class Category(VersionedMixin, Base):
    __tablename__ = "categories"
    __table_args__ = (
        # Category names are unique per user, not globally.
        UniqueConstraint("owner_id", "name", name="uq_categories_owner_name"),
        Index("ix_categories_owner_version", "owner_id", "sync_version"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    color = Column(String(7), nullable=False, default="#e5e7eb")
    icon = Column(String, nullable=False, default="folder")
    is_default = Column(Boolean, nullable=False, default=False)

    owner = relationship("User", backref="categories")
    notes = relationship("Note", back_populates="category")


class Note(VersionedMixin, Base):
    __tablename__ = "notes"
    __table_args__ = (
        Index("ix_notes_owner_version", "owner_id", "sync_version"),
        Index("ix_notes_owner_deleted", "owner_id", "is_deleted"),
        Index("ix_notes_owner_modified", "owner_id", "last_modified"),
    )

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    # Plain-text preview derived from *content* on every write.
    excerpt = Column(String(203), nullable=True)

    category_id = Column(Integer, ForeignKey("categories.id", ondelete="SET NULL"), nullable=True)
    tags = Column(MutableList.as_mutable(JSON), nullable=False, default=list)

    is_pinned = Column(Boolean, nullable=False, default=False)
    is_archived = Column(Boolean, nullable=False, default=False)
    # Soft delete so other devices learn about the deletion through the
    # pending-changes query.
    is_deleted = Column(Boolean, nullable=False, default=False)

    # List of {"url", "filename", "size", "uploaded_at"} dicts.
    images = Column(MutableList.as_mutable(JSON), nullable=False, default=list)

    last_modified = Column(DateTime, default=utc_now_naive, nullable=False)

    owner = relationship("User", backref="notes")
    category = relationship("Category", back_populates="notes")
