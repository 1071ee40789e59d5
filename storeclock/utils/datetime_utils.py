"""
Timezone-aware datetime helpers.
- Store and compute in UTC in DB.
- Day/week/month attribution for summaries uses the configured local timezone.
"""
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

UTC = timezone.utc


def now_utc() -> datetime:
    """Current time in UTC (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """If dt is naive, treat as UTC and return timezone-aware UTC. If already aware, convert to UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    else:
        dt = dt.astimezone(UTC)
    return dt


def get_zone(name: Optional[str] = None) -> ZoneInfo:
    """ZoneInfo for `name`, defaulting to settings.TZ."""
    if name is None:
        from storeclock.core.config import settings
        name = settings.TZ
    return ZoneInfo(name)


def local_date(dt: datetime, tz: ZoneInfo) -> date:
    """Calendar date of an instant in the given zone. Naive datetimes are treated as UTC."""
    return ensure_utc(dt).astimezone(tz).date()


def local_midnight_utc(d: date, tz: ZoneInfo) -> datetime:
    """UTC instant of local midnight at the start of `d`."""
    return datetime.combine(d, time.min, tzinfo=tz).astimezone(UTC)


def date_range_to_utc(from_date: date, to_date: date, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    """Inclusive local date range -> half-open UTC interval [start, end)."""
    return local_midnight_utc(from_date, tz), local_midnight_utc(to_date + timedelta(days=1), tz)


def iso_8601_utc(dt: Optional[datetime]) -> Optional[str]:
    """ISO-8601 with Z for UTC."""
    if dt is None:
        return None
    s = ensure_utc(dt).isoformat()
    if s.endswith("+00:00"):
        s = s[:-6] + "Z"
    return s
