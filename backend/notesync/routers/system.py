"""System endpoints (public).

Provides unauthenticated JSON endpoints so clients can discover runtime flags
and check readiness before they start a sync session.
"""

import logging
from typing import Any
from typing import Dict

from fastapi import APIRouter
from fastapi import status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from notesync import __version__
from notesync.config import get_settings
from notesync.database import get_session_factory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/info", status_code=status.HTTP_200_OK)
def system_info() -> Dict[str, Any]:
    """Return non-sensitive runtime switches."""

    settings = get_settings()
    return {
        "version": __version__,
        "auth_disabled": settings.auth_disabled,
        "max_image_bytes": settings.max_image_bytes,
        "max_images_per_upload": settings.max_images_per_upload,
    }


@router.get("/health", status_code=status.HTTP_200_OK)
def health() -> Dict[str, Any]:
    """Lightweight readiness check: reports whether the database answers."""

    db_ok = True
    try:
        session_factory = get_session_factory()
        with session_factory() as s:
            s.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error(f"Health check database query failed: {exc}")
        db_ok = False

    return {
        "status": "ok" if db_ok else "degraded",
        "database": "ok" if db_ok else "unavailable",
    }
