"""Note image and avatar upload helper.

Validates uploaded files and writes them below ``UPLOAD_DIR/<user_id>/`` so
the *routers* layer only deals with HTTP concerns.  The returned metadata
dicts are what gets appended to ``Note.images``.
"""

from __future__ import annotations

# Standard library
import logging
import uuid
from pathlib import Path

# typing order per Ruff
from typing import Any
from typing import Dict
from typing import Final
from typing import List

# Third-party
from fastapi import UploadFile
from fastapi import status
from fastapi.exceptions import HTTPException

from notesync.config import get_settings
from notesync.utils.time import utc_now_naive

logger = logging.getLogger(__name__)

# Constants ------------------------------------------------------------------

ALLOWED_MIME: Final[Dict[str, str]] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}

PUBLIC_PREFIX: Final[str] = "/static/uploads"


def upload_root() -> Path:
    """Directory that backs ``/static/uploads``; created on demand."""

    root = Path(get_settings().upload_dir)
    root.mkdir(parents=True, exist_ok=True)
    return root


# Helper functions -----------------------------------------------------------


def _read_validated(upload: UploadFile, max_bytes: int) -> bytes:
    """Return the raw bytes of *upload* after the MIME and size guards."""

    if upload.content_type not in ALLOWED_MIME:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported image type")
    raw = upload.file.read()
    if len(raw) > max_bytes:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File too large")
    return raw


def _write(dest_path: Path, raw: bytes) -> None:
    try:
        dest_path.write_bytes(raw)
    except OSError as exc:  # pragma: no cover
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to store image: {exc}",
        ) from exc


# Public API -----------------------------------------------------------------


def store_note_images(user_id: int, uploads: List[UploadFile]) -> List[Dict[str, Any]]:
    """Validate *uploads*, persist them and return image metadata.

    All files are checked before anything is written, so a rejected batch
    leaves nothing behind on disk.
    """

    settings = get_settings()

    # 1) Basic guards ---------------------------------------------------------
    if not uploads:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No images uploaded")
    if len(uploads) > settings.max_images_per_upload:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"At most {settings.max_images_per_upload} images per upload",
        )

    payloads = [(upload, _read_validated(upload, settings.max_image_bytes)) for upload in uploads]

    # 2) Persist to UPLOAD_DIR/<user_id> --------------------------------------
    user_dir = upload_root() / str(user_id)
    user_dir.mkdir(parents=True, exist_ok=True)

    stored = []
    for upload, raw in payloads:
        unique_name = f"{uuid.uuid4().hex}.{ALLOWED_MIME[upload.content_type]}"
        dest_path: Path = user_dir / unique_name
        _write(dest_path, raw)

        stored.append(
            {
                "url": f"{PUBLIC_PREFIX}/{user_id}/{unique_name}",
                "filename": upload.filename or unique_name,
                "size": len(raw),
                "uploaded_at": utc_now_naive().isoformat(),
            }
        )

    logger.info(f"Stored {len(stored)} image(s) for user {user_id}")
    return stored


def store_avatar_for_user(user_id: int, upload: UploadFile) -> str:
    """Validate *upload*, store it as the avatar of *user_id* and return its URL.

    The URL is relative ("/static/uploads/<user_id>/avatar-...") so the
    router can store it verbatim on the user row.
    """

    raw = _read_validated(upload, get_settings().max_image_bytes)

    user_dir = upload_root() / str(user_id)
    user_dir.mkdir(parents=True, exist_ok=True)

    unique_name = f"avatar-{uuid.uuid4().hex}.{ALLOWED_MIME[upload.content_type]}"
    _write(user_dir / unique_name, raw)

    logger.info(f"Stored avatar for user {user_id}")
    return f"{PUBLIC_PREFIX}/{user_id}/{unique_name}"


def delete_stored_image(image: Dict[str, Any]) -> bool:
    """Remove the file behind *image* if it lives under the upload root.

    Returns ``True`` when a file was deleted.
    """

    url = image.get("url") or ""
    if not url.startswith(PUBLIC_PREFIX + "/"):
        return False

    root = upload_root().resolve()
    path = (root / url[len(PUBLIC_PREFIX) + 1 :]).resolve()
    if root not in path.parents:
        logger.warning(f"Refusing to delete image outside upload root: {url}")
        return False

    if not path.exists():
        logger.info(f"Image file already gone: {url}")
        return False

    path.unlink()
    return True


__all__ = [
    "ALLOWED_MIME",
    "store_note_images",
    "store_avatar_for_user",
    "delete_stored_image",
]
