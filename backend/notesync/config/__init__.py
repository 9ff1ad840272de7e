"""Centralised configuration helper.

This module eliminates scattered ``os.getenv`` calls by exposing a **single**
:class:`Settings` instance (retrieved via :func:`get_settings`).  Values are
read from the process environment after the project ``.env`` file (or
``.env.test`` when ``NODE_ENV=test``) has been loaded with *python-dotenv*.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

# ``_REPO_ROOT`` points to the top-level repository directory.  This file is
# located at ``backend/notesync/config/__init__.py``.

_REPO_ROOT = Path(__file__).resolve().parents[3]


def _truthy(value: str | None) -> bool:  # noqa: D401 – small helper
    """Return *True* when *value* looks like an affirmative string."""

    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:  # noqa: D401 – simple data container
    """Lightweight settings container populated from environment variables."""

    # Runtime flags -----------------------------------------------------
    testing: bool
    auth_disabled: bool

    # Auth ---------------------------------------------------------------
    jwt_secret: str
    access_token_ttl_minutes: int

    # Database ---------------------------------------------------------
    database_url: str

    # Misc
    log_level: str
    environment: Any
    allowed_cors_origins: str

    # Image uploads ------------------------------------------------------
    upload_dir: str
    max_image_bytes: int
    max_images_per_upload: int

    # Sync ----------------------------------------------------------------
    duplicate_title_suffix: str
    sync_records_page_limit: int

    # Helper for tests to override values at runtime -------------------
    def override(self, **kwargs: Any) -> None:  # pragma: no cover – test util
        for key, value in kwargs.items():
            if not hasattr(self, key):  # pragma: no cover – safety
                raise AttributeError(f"Settings has no attribute '{key}'")
            setattr(self, key, value)


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def _load_settings() -> Settings:  # noqa: D401 – helper
    """Populate :class:`Settings` from environment variables."""

    node_env = os.getenv("NODE_ENV", "development")

    if node_env == "test":
        env_path = _REPO_ROOT / ".env.test"
        if not env_path.exists():
            env_path = _REPO_ROOT / ".env"  # Fallback to main .env
    else:
        env_path = _REPO_ROOT / ".env"

    if env_path.exists():
        # Explicit process variables win over the file so test runners can
        # force TESTING / DATABASE_URL before import.
        load_dotenv(env_path, override=False)

    testing = _truthy(os.getenv("TESTING"))

    return Settings(
        testing=testing,
        auth_disabled=_truthy(os.getenv("AUTH_DISABLED")),
        jwt_secret=os.getenv("JWT_SECRET", "dev-secret"),
        access_token_ttl_minutes=int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", str(7 * 24 * 60))),
        database_url=os.getenv("DATABASE_URL", ""),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        environment=os.getenv("ENVIRONMENT"),
        allowed_cors_origins=os.getenv("ALLOWED_CORS_ORIGINS", ""),
        upload_dir=os.getenv("UPLOAD_DIR", str(_REPO_ROOT / "static" / "uploads")),
        max_image_bytes=int(os.getenv("MAX_IMAGE_BYTES", str(5 * 1024 * 1024))),
        max_images_per_upload=int(os.getenv("MAX_IMAGES_PER_UPLOAD", "5")),
        duplicate_title_suffix=os.getenv("DUPLICATE_TITLE_SUFFIX", " (copy)"),
        sync_records_page_limit=int(os.getenv("SYNC_RECORDS_PAGE_LIMIT", "20")),
    )


# ------------------------------------------------------------------
# Runtime validation – fail fast when *required* secrets are missing.
# ------------------------------------------------------------------


def _validate_required(settings: Settings) -> None:  # noqa: D401 – helper
    """Abort startup when mandatory configuration is missing.

    Tokens signed with the placeholder secret would be forgeable, so outside
    of tests (and the explicit dev bypass) a real ``JWT_SECRET`` is required.
    """

    if settings.testing or settings.auth_disabled:
        return

    weak = settings.jwt_secret.strip() in {"", "dev-secret"} or len(settings.jwt_secret) < 16
    if weak:
        raise RuntimeError(
            "CRITICAL: JWT_SECRET must be set (>=16 chars, not 'dev-secret').\n"
            "Set it in your .env file or deployment environment."
        )


def get_settings() -> Settings:  # noqa: D401 – public accessor
    """Return :class:`Settings` instance loaded from environment."""

    settings = _load_settings()
    _validate_required(settings)
    return settings


__all__ = [
    "Settings",
    "get_settings",
]
