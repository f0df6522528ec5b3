"""Time helpers shared by the server and the client timer."""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as returned by SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_date(value: datetime, tz: ZoneInfo) -> date:
    """Calendar day of ``value`` in ``tz``."""
    return as_utc(value).astimezone(tz).date()


def local_midnight(day: date, tz: ZoneInfo) -> datetime:
    """Start of ``day`` in ``tz``, as an aware UTC datetime."""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(timezone.utc)


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """[start, end) of a calendar day in ``tz``."""
    return local_midnight(day, tz), local_midnight(day + timedelta(days=1), tz)


def fmt_mmss(seconds: int) -> str:
    """Format seconds as MM:SS."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02}:{seconds % 60:02}"
