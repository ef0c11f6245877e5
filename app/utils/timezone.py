"""
app/utils/timezone.py — UTC clock helpers
All lifecycle timestamps are timezone-aware UTC.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

import pytz

UTC = pytz.utc

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones."""
    if dt.tzinfo is None:
        return UTC.localize(dt)
    return dt.astimezone(UTC)


def to_iso(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with a trailing Z, or None."""
    if dt is None:
        return None
    return ensure_utc(dt).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
