"""Database models for the application."""

from .models import Category
from .models import Note
from .models import User
from .sync import SyncRecord

__all__ = [
    "Category",
    "Note",
    "SyncRecord",
    "User",
]
