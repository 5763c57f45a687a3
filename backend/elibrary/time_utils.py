from __future__ import annotations

import time
from datetime import date, datetime, timezone
from typing import Optional


# Every stored timestamp is naive UTC; the "Z" suffix is added on the way out.


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def epoch_ms() -> int:
    """Milliseconds since the epoch, used to prefix stored upload names."""
    return int(time.time() * 1000)


def _to_naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a client-supplied due date or timestamp.

    Accepts a bare date ("2026-11-01", midnight UTC), a naive datetime
    (taken as UTC) or an offset / "Z" datetime (converted to UTC).
    Blank input gives None; malformed input raises ValueError.
    """
    if value is None or not value.strip():
        return None
    s = value.strip()

    if len(s) == 10:
        d = date.fromisoformat(s)
        return datetime(d.year, d.month, d.day)

    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    return _to_naive_utc(datetime.fromisoformat(s))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """'2026-11-01T09:30:00Z' (seconds precision); None passes through."""
    if dt is None:
        return None
    return _to_naive_utc(dt).replace(microsecond=0).isoformat() + "Z"
