"""Password hashing helpers.

Passwords are stored as ``pbkdf2_sha256$<iterations>$<salt>$<hash>`` strings
so the work factor can be raised later without invalidating old rows.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Final

_ALGORITHM: Final[str] = "pbkdf2_sha256"
_ITERATIONS: Final[int] = 260_000


def hash_password(password: str, *, iterations: int = _ITERATIONS) -> str:
    """Return a salted PBKDF2-SHA256 digest string for *password*."""

    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations).hex()
    return f"{_ALGORITHM}${iterations}${salt}${digest}"


def verify_password(password: str, encoded: str) -> bool:
    """Constant-time check of *password* against an :func:`hash_password` string."""

    try:
        algorithm, iterations, salt, digest = encoded.split("$", 3)
    except ValueError:
        return False
    if algorithm != _ALGORITHM:
        return False

    candidate = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations)).hex()
    return hmac.compare_digest(candidate, digest)


__all__ = [
    "hash_password",
    "verify_password",
]
