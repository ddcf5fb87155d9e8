"""Conversions between the business's local wall clock and naive-UTC columns."""
from datetime import UTC, date, datetime, time, timedelta
from functools import lru_cache
from zoneinfo import ZoneInfo

from salon.core.config import settings


@lru_cache
def business_zone(name: str | None = None) -> ZoneInfo:
    return ZoneInfo(name or settings.business_timezone)


def utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Aware datetimes are converted to UTC; naive ones are taken as local business time."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=business_zone())
    return dt.astimezone(UTC).replace(tzinfo=None)


def from_naive_utc(dt: datetime) -> datetime:
    """Stored naive UTC -> aware datetime in the business zone."""
    return dt.replace(tzinfo=UTC).astimezone(business_zone())


def local_midnight(day: date) -> datetime:
    return datetime.combine(day, time(0, 0), tzinfo=business_zone())


def local_day_window_utc(day: date) -> tuple[datetime, datetime]:
    """[start, end) of a local calendar day as naive UTC bounds."""
    start = local_midnight(day)
    end = local_midnight(day + timedelta(days=1))
    return to_naive_utc(start), to_naive_utc(end)


def local_month_window_utc(year: int, month: int) -> tuple[datetime, datetime]:
    first = date(year, month, 1)
    next_first = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)
    return to_naive_utc(local_midnight(first)), to_naive_utc(local_midnight(next_first))


def to_local_date(dt: datetime) -> date:
    return from_naive_utc(dt).date()
