from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional

DAY_MS = 86_400_000
WEEK_MS = 7 * DAY_MS


def now_ms() -> int:
    """Server-side 'now' as epoch milliseconds."""
    return int(time.time() * 1000)


def from_epoch_ms(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def to_utc_z(value: Optional[int]) -> Optional[str]:
    """
    Serializes epoch milliseconds to ISO-8601 with trailing 'Z'.
    """
    dt = from_epoch_ms(value)
    if dt is None:
        return None
    return dt.replace(microsecond=0).isoformat().replace("+00:00", "Z")


def parse_date_ms(value: Optional[str]) -> Optional[int]:
    """
    Parse an ISO-8601 date or datetime string into epoch milliseconds.

    - None / "" -> None
    - "YYYY-MM-DD" is midnight UTC
    - naive datetimes are interpreted as UTC
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
