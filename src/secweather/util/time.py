from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from ..models import NarratorMode

JST = ZoneInfo("Asia/Tokyo")
REVIEW_HOUR = 18


def now_utc() -> datetime:
    return datetime.now(UTC)


def to_local(dt: datetime, tz: ZoneInfo = JST) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(tz)


def date_key(day: date | datetime) -> str:
    if isinstance(day, datetime):
        day = day.date()
    return day.isoformat()


def narrator_mode(now: datetime) -> NarratorMode:
    """Evening runs look back on the day, earlier ones look ahead."""
    return "review" if now.hour >= REVIEW_HOUR else "forecast"


def local_midnight(now: datetime, days_back: int = 0) -> datetime:
    start = now - timedelta(days=days_back)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)
