"""CRUD helpers for users, notes and categories.

Every helper that changes note or category content calls
:func:`notesync.services.versioning.apply_mutation` before committing, so the
sync version always moves together with the content.  Lookups are scoped by
``owner_id``; a row owned by someone else behaves exactly like a missing row.
"""

import re
from datetime import datetime
from typing import Any
from typing import Dict
from typing import Iterable
from typing import List
from typing import Optional
from typing import Tuple

from sqlalchemy import Text
from sqlalchemy import cast
from sqlalchemy import func
from sqlalchemy import or_
from sqlalchemy.orm import Session

from notesync.database import commit_or_raise
from notesync.errors import NotFound
from notesync.errors import ValidationError
from notesync.models.models import Category
from notesync.models.models import Note

# NOTE: For return type hints we avoid the newer *PEP 604* union syntax
# ``User | None`` because the SQLAlchemy DeclarativeMeta proxy that backs the
# ``User`` model overrides the bitwise OR operator.
from notesync.models.models import User
from notesync.services.versioning import apply_mutation
from notesync.services.versioning import check_expected_version
from notesync.services.versioning import init_versioned
from notesync.services.versioning import make_excerpt
from notesync.utils.crypto import hash_password
from notesync.utils.time import utc_now_naive

TITLE_MAX_LENGTH = 255
CATEGORY_NAME_MAX_LENGTH = 50
DEFAULT_CATEGORY_COLOR = "#e5e7eb"
DEFAULT_CATEGORY_ICON = "folder"

_HEX_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


# ------------------------------------------------------------
# User CRUD operations
# ------------------------------------------------------------


def get_user(db: Session, user_id: int) -> Optional[User]:
    """Return user by primary key."""
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Return user by e-mail address (case-insensitive)."""
    return db.query(User).filter(User.email == email.strip().lower()).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username.strip()).first()


def create_user(db: Session, *, username: str, email: str, password: str) -> User:
    """Insert new user row.

    Raises ``ValidationError`` when the username or e-mail is already taken.
    """
    username = username.strip()
    email = email.strip().lower()

    if get_user_by_username(db, username) is not None:
        raise ValidationError("Username already exists")
    if get_user_by_email(db, email) is not None:
        raise ValidationError("Email already exists")

    new_user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
    )
    db.add(new_user)
    commit_or_raise(db, "create user")
    db.refresh(new_user)
    return new_user


def update_user(
    db: Session,
    user_id: int,
    *,
    username: Optional[str] = None,
    sync_enabled: Optional[bool] = None,
    avatar_url: Optional[str] = None,
) -> Optional[User]:
    """Partial update for the *User* table.

    Only the provided fields are modified – `None` leaves the column unchanged.
    Returns the updated user row or ``None`` if the record was not found.
    """

    user = get_user(db, user_id)
    if user is None:
        return None

    if username is not None and username.strip() != user.username:
        if get_user_by_username(db, username) is not None:
            raise ValidationError("Username already exists")
        user.username = username.strip()
    if sync_enabled is not None:
        user.sync_enabled = sync_enabled
    if avatar_url is not None:
        user.avatar_url = avatar_url

    user.updated_at = utc_now_naive()
    commit_or_raise(db, "update user")
    db.refresh(user)
    return user


# ------------------------------------------------------------
# Category CRUD operations
# ------------------------------------------------------------


def validate_category_fields(name: Optional[str], color: Optional[str]) -> None:
    if name is not None:
        if not name.strip():
            raise ValidationError("Category name is required")
        if len(name.strip()) > CATEGORY_NAME_MAX_LENGTH:
            raise ValidationError(f"Category name cannot exceed {CATEGORY_NAME_MAX_LENGTH} characters")
    if color is not None and not _HEX_COLOR_RE.match(color.strip()):
        raise ValidationError("Color must be a hex value like #a1b2c3")


def get_category(db: Session, owner_id: int, category_id: int) -> Optional[Category]:
    return db.query(Category).filter(Category.id == category_id, Category.owner_id == owner_id).first()


def get_category_by_name(db: Session, owner_id: int, name: str) -> Optional[Category]:
    return db.query(Category).filter(Category.owner_id == owner_id, Category.name == name.strip()).first()


def get_categories(db: Session, owner_id: int) -> List[Category]:
    """All categories of *owner_id*, oldest first."""
    return (
        db.query(Category).filter(Category.owner_id == owner_id).order_by(Category.created_at, Category.id).all()
    )


def count_notes_in_category(db: Session, owner_id: int, category_id: int) -> int:
    return (
        db.query(func.count(Note.id))
        .filter(Note.owner_id == owner_id, Note.category_id == category_id, Note.is_deleted.is_(False))
        .scalar()
    )


def note_counts_by_category(db: Session, owner_id: int) -> Dict[int, int]:
    """``{category_id: live note count}`` for every non-empty category."""

    rows = (
        db.query(Note.category_id, func.count(Note.id))
        .filter(Note.owner_id == owner_id, Note.is_deleted.is_(False), Note.category_id.isnot(None))
        .group_by(Note.category_id)
        .all()
    )
    return {category_id: count for category_id, count in rows}


def _build_category(owner_id: int, name: str, color: Optional[str], icon: Optional[str], now: datetime) -> Category:
    category = Category(
        owner_id=owner_id,
        name=name.strip(),
        color=(color or DEFAULT_CATEGORY_COLOR).strip(),
        icon=(icon or DEFAULT_CATEGORY_ICON).strip(),
    )
    return init_versioned(category, now)


def create_category(
    db: Session,
    *,
    owner_id: int,
    name: str,
    color: Optional[str] = None,
    icon: Optional[str] = None,
) -> Category:
    validate_category_fields(name, color)
    if get_category_by_name(db, owner_id, name) is not None:
        raise ValidationError("A category with this name already exists")

    category = _build_category(owner_id, name, color, icon, utc_now_naive())
    db.add(category)
    commit_or_raise(db, "create category")
    db.refresh(category)
    return category


def create_categories(db: Session, *, owner_id: int, items: Iterable[Dict[str, Any]]) -> List[Category]:
    """Create several categories in one commit; all names must be free."""

    items = list(items)
    if not items:
        raise ValidationError("Provide at least one category")

    names = [(item.get("name") or "").strip() for item in items]
    for item in items:
        validate_category_fields(item.get("name") or "", item.get("color"))
    if len(set(names)) != len(names):
        raise ValidationError("Duplicate category names in request")

    existing = db.query(Category).filter(Category.owner_id == owner_id, Category.name.in_(names)).all()
    if existing:
        taken = ", ".join(sorted(c.name for c in existing))
        raise ValidationError(f"These category names already exist: {taken}")

    now = utc_now_naive()
    created = [_build_category(owner_id, item["name"], item.get("color"), item.get("icon"), now) for item in items]
    db.add_all(created)
    commit_or_raise(db, "create categories")
    for category in created:
        db.refresh(category)
    return created


def update_category(
    db: Session,
    *,
    owner_id: int,
    category_id: int,
    name: Optional[str] = None,
    color: Optional[str] = None,
    icon: Optional[str] = None,
    expected_version: Optional[int] = None,
) -> Category:
    category = get_category(db, owner_id, category_id)
    if category is None:
        raise NotFound("Category", category_id)
    if category.is_default:
        raise ValidationError("The default category cannot be modified")
    check_expected_version(category, expected_version, "Category")
    validate_category_fields(name, color)

    if name is not None and name.strip() != category.name:
        if get_category_by_name(db, owner_id, name) is not None:
            raise ValidationError("A category with this name already exists")
        category.name = name.strip()
    if color:
        category.color = color.strip()
    if icon:
        category.icon = icon.strip()

    apply_mutation(category)
    commit_or_raise(db, "update category")
    db.refresh(category)
    return category


def delete_category(db: Session, *, owner_id: int, category_id: int) -> None:
    """Hard-delete an empty, non-default category."""

    category = get_category(db, owner_id, category_id)
    if category is None:
        raise NotFound("Category", category_id)
    if category.is_default:
        raise ValidationError("The default category cannot be deleted")

    live_notes = count_notes_in_category(db, owner_id, category_id)
    if live_notes > 0:
        raise ValidationError(
            f"This category still contains {live_notes} note(s); move or delete them before removing it"
        )

    # Soft-deleted notes still point at the category; detaching them is a
    # content change like any other.
    now = utc_now_naive()
    for note in db.query(Note).filter(Note.owner_id == owner_id, Note.category_id == category_id).all():
        note.category_id = None
        apply_mutation(note, now)

    db.delete(category)
    commit_or_raise(db, "delete category")


# ------------------------------------------------------------
# Note CRUD operations
# ------------------------------------------------------------


def validate_note_fields(title: Optional[str], content: Optional[str], *, creating: bool) -> None:
    if creating and (not title or not title.strip() or not content or not content.strip()):
        raise ValidationError("Note title and content are required")
    if title is not None and len(title.strip()) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title cannot exceed {TITLE_MAX_LENGTH} characters")


def check_category_owner(db: Session, owner_id: int, category_id: Optional[int]) -> None:
    if category_id is not None and get_category(db, owner_id, category_id) is None:
        raise NotFound("Category", category_id)


def get_note(db: Session, owner_id: int, note_id: int) -> Optional[Note]:
    return db.query(Note).filter(Note.id == note_id, Note.owner_id == owner_id).first()


def get_notes(
    db: Session,
    owner_id: int,
    *,
    skip: int = 0,
    limit: int = 20,
    category_id: Optional[int] = None,
    search: Optional[str] = None,
    pinned: Optional[bool] = None,
    archived: Optional[bool] = None,
    deleted: bool = False,
) -> Tuple[List[Note], int]:
    """Return one page of notes plus the total match count.

    Pinned notes come first, then the most recently modified.
    """

    query = db.query(Note).filter(Note.owner_id == owner_id, Note.is_deleted.is_(deleted))

    if category_id is not None:
        query = query.filter(Note.category_id == category_id)
    if pinned is not None:
        query = query.filter(Note.is_pinned.is_(pinned))
    if archived is not None:
        query = query.filter(Note.is_archived.is_(archived))
    if search:
        pattern = f"%{search}%"
        # Tags are stored as JSON; a text match on the serialised list is
        # enough for a substring search.
        query = query.filter(
            or_(
                Note.title.ilike(pattern),
                Note.content.ilike(pattern),
                cast(Note.tags, Text).ilike(pattern),
            )
        )

    total = query.count()
    notes = query.order_by(Note.is_pinned.desc(), Note.last_modified.desc(), Note.id.desc()).offset(skip).limit(limit).all()
    return notes, total


def build_note(
    *,
    owner_id: int,
    title: str,
    content: str,
    category_id: Optional[int] = None,
    tags: Optional[List[str]] = None,
    is_pinned: bool = False,
    is_archived: bool = False,
    now: Optional[datetime] = None,
) -> Note:
    """Instantiate a version-1 note without touching the session."""

    note = Note(
        owner_id=owner_id,
        title=title.strip(),
        content=content.strip(),
        excerpt=make_excerpt(content.strip()),
        category_id=category_id,
        tags=[t.strip() for t in (tags or []) if t and t.strip()],
        is_pinned=bool(is_pinned),
        is_archived=bool(is_archived),
        is_deleted=False,
        images=[],
    )
    return init_versioned(note, now)


def create_note(
    db: Session,
    *,
    owner_id: int,
    title: str,
    content: str,
    category_id: Optional[int] = None,
    tags: Optional[List[str]] = None,
) -> Note:
    validate_note_fields(title, content, creating=True)
    check_category_owner(db, owner_id, category_id)

    note = build_note(owner_id=owner_id, title=title, content=content, category_id=category_id, tags=tags)
    db.add(note)
    commit_or_raise(db, "create note")
    db.refresh(note)
    return note


_UNSET: Any = object()


def update_note(
    db: Session,
    *,
    owner_id: int,
    note_id: int,
    title: Optional[str] = None,
    content: Optional[str] = None,
    category_id: Any = _UNSET,
    tags: Optional[List[str]] = None,
    is_pinned: Optional[bool] = None,
    is_archived: Optional[bool] = None,
    expected_version: Optional[int] = None,
) -> Note:
    """Partial note update.

    ``category_id`` uses a sentinel so callers can move a note out of its
    category by passing ``None`` explicitly.
    """

    note = get_note(db, owner_id, note_id)
    if note is None:
        raise NotFound("Note", note_id)
    check_expected_version(note, expected_version, "Note")
    validate_note_fields(title, content, creating=False)

    if title is not None and title.strip():
        note.title = title.strip()
    if content is not None and content.strip():
        note.content = content.strip()
        note.excerpt = make_excerpt(note.content)
    if category_id is not _UNSET:
        check_category_owner(db, owner_id, category_id)
        note.category_id = category_id
    if tags is not None:
        note.tags = [t.strip() for t in tags if t and t.strip()]
    if is_pinned is not None:
        note.is_pinned = is_pinned
    if is_archived is not None:
        note.is_archived = is_archived

    apply_mutation(note)
    commit_or_raise(db, "update note")
    db.refresh(note)
    return note


def set_note_deleted(
    db: Session,
    *,
    owner_id: int,
    note_id: int,
    deleted: bool,
    expected_version: Optional[int] = None,
) -> Note:
    """Soft-delete (``deleted=True``) or restore a note."""

    note = get_note(db, owner_id, note_id)
    if note is None:
        raise NotFound("Note", note_id)
    check_expected_version(note, expected_version, "Note")

    note.is_deleted = deleted
    apply_mutation(note)
    commit_or_raise(db, "delete note" if deleted else "restore note")
    db.refresh(note)
    return note


def add_note_images(db: Session, *, owner_id: int, note_id: int, images: List[Dict[str, Any]]) -> Note:
    note = get_note(db, owner_id, note_id)
    if note is None:
        raise NotFound("Note", note_id)

    note.images.extend(images)
    apply_mutation(note)
    commit_or_raise(db, "add note images")
    db.refresh(note)
    return note


def remove_note_image(db: Session, *, owner_id: int, note_id: int, index: int) -> Dict[str, Any]:
    """Detach the image at *index* and return its metadata."""

    note = get_note(db, owner_id, note_id)
    if note is None:
        raise NotFound("Note", note_id)
    if index < 0 or index >= len(note.images):
        raise ValidationError("Invalid image index")

    removed = dict(note.images.pop(index))
    apply_mutation(note)
    commit_or_raise(db, "remove note image")
    return removed
