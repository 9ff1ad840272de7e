"""FastAPI dependency that exposes the *current user*.

The heavy lifting (development bypass vs. JWT validation) is implemented in
strategy classes under :pymod:`notesync.auth.strategy`.  At *import time* we
pick the concrete implementation based on :pydata:`settings.auth_disabled` so
that the request handlers themselves remain branch-free.
"""

from __future__ import annotations

from fastapi import Depends
from fastapi import HTTPException
from fastapi import Request
from fastapi import status
from sqlalchemy.orm import Session

from notesync.auth.strategy import DevAuthStrategy
from notesync.auth.strategy import JWTAuthStrategy
from notesync.config import get_settings
from notesync.database import get_db

# Settings ------------------------------------------------------------------

_settings = get_settings()

# Tests patch this constant to toggle dev ↔ prod behaviour.
AUTH_DISABLED: bool = _settings.auth_disabled  # noqa: N816

# ---------------------------------------------------------------------------
# Strategy selector – returns singleton per mode, toggles when flag patched.
# ---------------------------------------------------------------------------


_strategy_cache: dict[str, object] = {}


def _get_strategy():  # noqa: D401 – internal helper
    """Return *singleton* strategy instance based on ``AUTH_DISABLED`` flag."""

    if AUTH_DISABLED:
        if "dev" not in _strategy_cache:
            _strategy_cache["dev"] = DevAuthStrategy()
        return _strategy_cache["dev"]  # type: ignore[return-value]

    if "jwt" not in _strategy_cache:
        _strategy_cache["jwt"] = JWTAuthStrategy()
    return _strategy_cache["jwt"]  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Public dependencies
# ---------------------------------------------------------------------------


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """Return the authenticated *User* row or raise **401**."""

    if "Authorization" not in request.headers and not AUTH_DISABLED:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _get_strategy().get_current_user(request, db)


# Expose the strategy getter for testing monkey-patching
_strategy = _get_strategy

__all__ = [
    "get_current_user",
    "_strategy",  # exported for test monkey-patching
]
