from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
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

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """Shop timezone by IANA name; unknown or empty names fall back to UTC."""
    if not name or name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


def is_known_timezone(name: str) -> bool:
    if name.upper() == "UTC":
        return True
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def to_local(dt: datetime, tz: tzinfo) -> datetime:
    """UTC-naive -> aware local datetime in tz."""
    return dt.replace(tzinfo=timezone.utc).astimezone(tz)


def local_to_utc_naive(dt: datetime) -> datetime:
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def local_day_start(now: datetime, tz: tzinfo) -> datetime:
    """Start of the local calendar day containing `now` (UTC-naive in, UTC-naive out)."""
    local = to_local(now, tz)
    return local_to_utc_naive(local.replace(hour=0, minute=0, second=0, microsecond=0))


def local_month_start(now: datetime, tz: tzinfo) -> datetime:
    local = to_local(now, tz)
    return local_to_utc_naive(local.replace(day=1, hour=0, minute=0, second=0, microsecond=0))


def local_date(dt: datetime, tz: tzinfo):
    return to_local(dt, tz).date()


def days_between(later: datetime, earlier: datetime) -> float:
    return (later - earlier) / timedelta(days=1)
