from datetime import datetime
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import Field

from notesync.models.enums import SyncDirection
from notesync.models.enums import SyncRecordStatus
from notesync.models.enums import SyncStatus
from notesync.models.enums import SyncType

# ------------------------------------------------------------
# Authentication schemas
# ------------------------------------------------------------


class UserRegister(BaseModel):
    username: str = Field(min_length=3, max_length=20)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(min_length=6)


class UserLogin(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: int
    username: str
    email: str
    avatar_url: Optional[str] = None
    is_active: bool
    sync_enabled: bool
    last_sync_time: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


# User profile update schema (partial)
class UserUpdate(BaseModel):
    username: Optional[str] = Field(default=None, min_length=3, max_length=20)


class SyncSettingsUpdate(BaseModel):
    sync_enabled: bool


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until expiry


class RegisterOut(BaseModel):
    user: UserOut
    access_token: str
    token_type: str = "bearer"
    expires_in: int


# ------------------------------------------------------------
# Category schemas
# ------------------------------------------------------------


class CategoryCreate(BaseModel):
    name: str
    color: Optional[str] = None
    icon: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    expected_version: Optional[int] = None


class CategoryBatchCreate(BaseModel):
    categories: List[CategoryCreate]


class CategoryOut(BaseModel):
    id: int
    name: str
    color: str
    icon: str
    is_default: bool
    sync_status: SyncStatus
    sync_version: int
    created_at: datetime
    updated_at: datetime
    note_count: Optional[int] = None

    class Config:
        from_attributes = True


# ------------------------------------------------------------
# Note schemas
# ------------------------------------------------------------


class NoteImage(BaseModel):
    url: str
    filename: str
    size: int
    uploaded_at: Optional[str] = None


class NoteCreate(BaseModel):
    title: str
    content: str
    category_id: Optional[int] = None
    tags: List[str] = []


class NoteUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category_id: Optional[int] = None
    tags: Optional[List[str]] = None
    is_pinned: Optional[bool] = None
    is_archived: Optional[bool] = None
    expected_version: Optional[int] = None


class NoteOut(BaseModel):
    id: int
    title: str
    content: str
    excerpt: Optional[str] = None
    category_id: Optional[int] = None
    tags: List[str] = []
    is_pinned: bool
    is_archived: bool
    is_deleted: bool
    images: List[NoteImage] = []
    sync_status: SyncStatus
    sync_version: int
    last_modified: datetime
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class NoteList(BaseModel):
    notes: List[NoteOut]
    pagination: Pagination


# ------------------------------------------------------------
# Sync schemas
# ------------------------------------------------------------


class PendingNotesOut(BaseModel):
    items: List[NoteOut]
    new_watermark: int


class PendingCategoriesOut(BaseModel):
    items: List[CategoryOut]
    new_watermark: int


class DeviceInfo(BaseModel):
    device_name: Optional[str] = None
    device_type: Optional[str] = None
    client_version: Optional[str] = None


class SyncDetails(BaseModel):
    total_items: int = 0
    successful_items: int = 0
    failed_items: int = 0
    conflict_items: int = 0


class SyncRecordCreate(BaseModel):
    # Plain strings so the service layer reports bad values as 400s.
    sync_type: Optional[str] = None
    direction: Optional[str] = None
    device_info: Optional[DeviceInfo] = None


class SyncRecordUpdate(BaseModel):
    status: Optional[str] = None
    sync_details: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None


class SyncRecordOut(BaseModel):
    id: int
    sync_type: SyncType
    status: SyncRecordStatus
    direction: SyncDirection
    device_info: Dict[str, Any] = {}
    sync_details: SyncDetails
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: int = 0
    error_message: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class SyncRecordList(BaseModel):
    records: List[SyncRecordOut]
    pagination: Pagination


class SyncVersions(BaseModel):
    categories: int
    notes: int


class FullSyncOut(BaseModel):
    user: UserOut
    categories: List[CategoryOut]
    notes: List[NoteOut]
    sync_version: SyncVersions
    sync_time: datetime


class ConflictRequest(BaseModel):
    # Items are validated one by one by the resolver, so keep them loose.
    conflicts: Any = None


class ConflictResult(BaseModel):
    type: Optional[str] = None
    id: Optional[Any] = None
    status: str
    error: Optional[str] = None
    duplicate_id: Optional[int] = None


class ConflictResolutionOut(BaseModel):
    results: List[ConflictResult]
