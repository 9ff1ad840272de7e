"""Category CRUD and the incremental pull for categories."""

from typing import List

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from fastapi import status
from sqlalchemy.orm import Session

from notesync.crud import crud
from notesync.database import get_db
from notesync.dependencies.auth import get_current_user
from notesync.errors import NotFound
from notesync.models.enums import EntityKind
from notesync.schemas.schemas import CategoryBatchCreate
from notesync.schemas.schemas import CategoryCreate
from notesync.schemas.schemas import CategoryOut
from notesync.schemas.schemas import CategoryUpdate
from notesync.schemas.schemas import PendingCategoriesOut
from notesync.services.sync_query import pending_changes

router = APIRouter(tags=["categories"], dependencies=[Depends(get_current_user)])


def _with_count(category, count: int) -> CategoryOut:
    out = CategoryOut.model_validate(category)
    out.note_count = count
    return out


@router.get("/sync/pending", response_model=PendingCategoriesOut)
def read_pending_categories(
    last_sync_version: int = Query(0, alias="lastSyncVersion"),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    changes = pending_changes(db, current_user.id, EntityKind.CATEGORY, last_sync_version)
    return {"items": changes.items, "new_watermark": changes.new_watermark}


@router.get("/", response_model=List[CategoryOut])
@router.get("", response_model=List[CategoryOut])
def read_categories(db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    """All categories, oldest first, each with its live note count."""

    counts = crud.note_counts_by_category(db, current_user.id)
    return [_with_count(c, counts.get(c.id, 0)) for c in crud.get_categories(db, current_user.id)]


@router.post("/", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
@router.post("", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
def create_category(
    body: CategoryCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    category = crud.create_category(
        db, owner_id=current_user.id, name=body.name, color=body.color, icon=body.icon
    )
    return _with_count(category, 0)


@router.post("/batch", response_model=List[CategoryOut], status_code=status.HTTP_201_CREATED)
def create_categories(
    body: CategoryBatchCreate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Create several categories at once; the whole batch fails on any clash."""

    created = crud.create_categories(
        db, owner_id=current_user.id, items=[item.model_dump() for item in body.categories]
    )
    return [_with_count(c, 0) for c in created]


@router.get("/{category_id}", response_model=CategoryOut)
def read_category(category_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    category = crud.get_category(db, current_user.id, category_id)
    if category is None:
        raise NotFound("Category", category_id)
    return _with_count(category, crud.count_notes_in_category(db, current_user.id, category_id))


@router.put("/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    patch: CategoryUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    category = crud.update_category(
        db,
        owner_id=current_user.id,
        category_id=category_id,
        name=patch.name,
        color=patch.color,
        icon=patch.icon,
        expected_version=patch.expected_version,
    )
    return _with_count(category, crud.count_notes_in_category(db, current_user.id, category_id))


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(category_id: int, db: Session = Depends(get_db), current_user=Depends(get_current_user)):
    crud.delete_category(db, owner_id=current_user.id, category_id=category_id)
