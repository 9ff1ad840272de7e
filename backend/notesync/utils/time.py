"""Timezone helpers – a single UTC-aware *now()* for the whole backend.

Database columns are naive ``DateTime`` values interpreted as UTC, so most
call-sites want :pyfunc:`utc_now_naive`.  Sync-session durations are reported
in milliseconds, computed by :pyfunc:`millis_between`.
"""

from datetime import datetime
from datetime import timezone


def utc_now() -> datetime:  # noqa: D401 – simple utility
    """Return *aware* current time in UTC."""

    return datetime.now(timezone.utc)


def utc_now_naive() -> datetime:  # noqa: D401 – simple utility
    """Return *naive* current time in UTC for database compatibility."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def millis_between(start: datetime, end: datetime) -> int:
    """Whole milliseconds elapsed from *start* to *end*."""

    delta = end - start
    return (delta.days * 86_400_000) + (delta.seconds * 1000) + (delta.microseconds // 1000)


__all__ = ["utc_now", "utc_now_naive", "millis_between"]
