"""Authentication strategy abstraction.

Authentication sits behind a small *strategy* interface so the logic can be
swapped depending on the runtime configuration (development bypass vs. JWT
validation):

• The branch is decided once at *startup*, never per request.
• Tests can monkey-patch :pydata:`notesync.dependencies.auth._strategy` to
  inject custom behaviour.
"""

from __future__ import annotations

import secrets
from abc import ABC
from abc import abstractmethod
from typing import Any

from fastapi import HTTPException
from fastapi import Request
from fastapi import status
from jose import JWTError
from jose import jwt
from sqlalchemy.orm import Session

from notesync.config import get_settings
from notesync.crud import crud

JWT_ALGORITHM = "HS256"


def decode_access_token(token: str, secret: str) -> dict[str, Any]:
    """Validate signature and expiry of *token*; raise ``JWTError`` otherwise."""

    return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])


# ---------------------------------------------------------------------------
# Strategy base-class
# ---------------------------------------------------------------------------


class AuthStrategy(ABC):
    """Pluggable authentication backend (strategy pattern)."""

    @abstractmethod
    def get_current_user(self, request: Request, db: Session):  # noqa: D401 – abstract
        """Return the authenticated user or raise **401**."""


# ---------------------------------------------------------------------------
# Development-mode bypass
# ---------------------------------------------------------------------------


class DevAuthStrategy(AuthStrategy):
    """Bypass all checks – used when *AUTH_DISABLED* is true."""

    DEV_EMAIL = "dev@local"
    DEV_USERNAME = "dev"

    def _get_or_create_dev_user(self, db: Session):
        user = crud.get_user_by_email(db, self.DEV_EMAIL)
        if user is not None:
            return user

        # Nobody logs in as the dev user, so the password is throwaway.
        return crud.create_user(
            db,
            username=self.DEV_USERNAME,
            email=self.DEV_EMAIL,
            password=secrets.token_urlsafe(16),
        )

    def get_current_user(self, request: Request, db: Session):  # noqa: D401 – impl
        # Header present or not, every request is the dev user.
        return self._get_or_create_dev_user(db)


# ---------------------------------------------------------------------------
# HS256 JWT validation (production)
# ---------------------------------------------------------------------------


class JWTAuthStrategy(AuthStrategy):
    """Production strategy that validates HS256 tokens."""

    def __init__(self):
        self._secret = get_settings().jwt_secret

    def get_current_user(self, request: Request, db: Session):  # noqa: D401 – impl
        auth_header: str | None = request.headers.get("Authorization")
        if not auth_header or not auth_header.lower().startswith("bearer "):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

        token = auth_header[7:].strip()
        if not token:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

        try:
            payload = decode_access_token(token, self._secret)
        except JWTError:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

        try:
            user_id_int = int(payload.get("sub"))
        except (TypeError, ValueError):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject")

        user = crud.get_user(db, user_id_int)
        if user is None or not getattr(user, "is_active", True):
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found or inactive")

        return user


# Public re-exports ---------------------------------------------------------


__all__ = [
    "AuthStrategy",
    "DevAuthStrategy",
    "JWTAuthStrategy",
    "decode_access_token",
]
