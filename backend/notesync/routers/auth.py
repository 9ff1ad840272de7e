"""Authentication routes: e-mail/password registration and login."""

from datetime import timedelta
from typing import Optional

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi import status
from jose import jwt
from sqlalchemy.orm import Session

from notesync.auth.strategy import JWT_ALGORITHM
from notesync.config import get_settings
from notesync.crud import crud
from notesync.database import get_db
from notesync.schemas.schemas import RegisterOut
from notesync.schemas.schemas import TokenOut
from notesync.schemas.schemas import UserLogin
from notesync.schemas.schemas import UserRegister
from notesync.utils.crypto import verify_password
from notesync.utils.time import utc_now

router = APIRouter(prefix="/auth", tags=["auth"])


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _token_ttl() -> timedelta:
    return timedelta(minutes=get_settings().access_token_ttl_minutes)


def issue_access_token(user_id: int, email: str, expires_delta: Optional[timedelta] = None) -> str:
    """Return signed HS256 access token."""

    expiry = utc_now() + (expires_delta or _token_ttl())

    # ``exp`` is an integer UNIX timestamp.
    payload = {
        "sub": str(user_id),
        "email": email,
        "exp": int(expiry.timestamp()),
    }
    return jwt.encode(payload, get_settings().jwt_secret, algorithm=JWT_ALGORITHM)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/register", response_model=RegisterOut, status_code=status.HTTP_201_CREATED)
def register(body: UserRegister, db: Session = Depends(get_db)):
    """Create an account and return it together with a fresh access token."""

    user = crud.create_user(db, username=body.username, email=body.email, password=body.password)
    ttl = _token_ttl()

    return {
        "user": user,
        "access_token": issue_access_token(user.id, user.email, ttl),
        "token_type": "bearer",
        "expires_in": int(ttl.total_seconds()),
    }


@router.post("/login", response_model=TokenOut)
def login(body: UserLogin, db: Session = Depends(get_db)) -> TokenOut:
    user = crud.get_user_by_email(db, body.email)
    if user is None or not verify_password(body.password, user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is disabled")

    ttl = _token_ttl()
    return TokenOut(access_token=issue_access_token(user.id, user.email, ttl), expires_in=int(ttl.total_seconds()))
