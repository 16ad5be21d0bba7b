# ================================
# file: studyhall/utils/datetime.py
# ================================
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from studyhall.core.config import settings

def utcnow() -> datetime:
    # naive UTC, matches TIMESTAMP WITHOUT TIME ZONE columns
    return datetime.now(timezone.utc).replace(tzinfo=None)

def _zone(tz_name: Optional[str]) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name or settings.DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("UTC")

def local_day(ts: datetime, tz_name: Optional[str]) -> date:
    """Calendar day of a naive-UTC timestamp as seen in the library's timezone."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(_zone(tz_name)).date()

def library_today(tz_name: Optional[str]) -> date:
    return local_day(utcnow(), tz_name)

def iso(v) -> Optional[str]:
    if v is None:
        return None
    return v.isoformat()

def parse_iso_date(s: Optional[str]) -> Optional[date]:
    if s in (None, ""):
        return None
    if isinstance(s, datetime):
        return s.date()
    if isinstance(s, date):
        return s
    try:
        return date.fromisoformat(str(s).strip()[:10])
    except ValueError:
        return None
