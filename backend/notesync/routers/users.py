"""User profile routes.

Only *self-service* endpoints are exposed ("/users/me").  All routes require
authentication, so the `get_current_user` dependency supplies the active user.
"""

from fastapi import APIRouter
from fastapi import Depends
from fastapi import File
from fastapi import HTTPException
from fastapi import UploadFile
from fastapi import status
from sqlalchemy.orm import Session

from notesync.crud import crud
from notesync.database import get_db

# Auth guard ---------------------------------------------------------------
from notesync.dependencies.auth import get_current_user
from notesync.schemas.schemas import SyncSettingsUpdate
from notesync.schemas.schemas import UserOut
from notesync.schemas.schemas import UserUpdate
from notesync.services import image_store

router = APIRouter(tags=["users"], dependencies=[Depends(get_current_user)])


# ---------------------------------------------------------------------------
# /users/me – retrieve current profile
# ---------------------------------------------------------------------------


@router.get("/users/me", response_model=UserOut)
def read_current_user(current_user=Depends(get_current_user)):
    """Return the authenticated user's profile."""

    return current_user


# ---------------------------------------------------------------------------
# /users/me – partial update
# ---------------------------------------------------------------------------


@router.put("/users/me", response_model=UserOut)
def update_current_user(
    patch: UserUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    updated = crud.update_user(db, current_user.id, username=patch.username)

    if updated is None:
        # Should not happen if auth dependency returned a valid row.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    return updated


@router.put("/users/me/sync-settings", response_model=UserOut)
def update_sync_settings(
    patch: SyncSettingsUpdate,
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Turn multi-device sync on or off for the current user."""

    updated = crud.update_user(db, current_user.id, sync_enabled=patch.sync_enabled)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return updated


# ---------------------------------------------------------------------------
# /users/me/avatar – upload profile picture
# ---------------------------------------------------------------------------


@router.post("/users/me/avatar", response_model=UserOut)
def upload_avatar(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user=Depends(get_current_user),
):
    """Store a new avatar and replace the previous one."""

    previous = current_user.avatar_url
    url = image_store.store_avatar_for_user(current_user.id, file)

    updated = crud.update_user(db, current_user.id, avatar_url=url)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    if previous:
        image_store.delete_stored_image({"url": previous})
    return updated
