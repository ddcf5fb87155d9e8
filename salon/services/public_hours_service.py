"""Start times the salon advertises to clients on days an admin has opened.

Each public hour hangs off an open availability record. An hour is offered only
while both the hour and its day are marked available.
"""
import logging
from collections import defaultdict
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon.core.timeutils import local_day_window_utc, to_local_date, utc_naive_now
from salon.models.availability import Availability
from salon.models.public_hour import PublicHour
from salon.services.availability_service import enable_date, normalize_admin_date

logger = logging.getLogger(__name__)


class PublicHourError(Exception):
    pass


class DuplicatePublicHourError(PublicHourError):
    pass


async def _hour_exists(session: AsyncSession, availability_id: int, hour: str, exclude_id: int | None = None) -> bool:
    q = select(PublicHour.id).where(PublicHour.availability_id == availability_id, PublicHour.hour == hour)
    if exclude_id is not None:
        q = q.where(PublicHour.id != exclude_id)
    return (await session.execute(q.limit(1))).first() is not None


async def create_public_hour(
    session: AsyncSession, availability_id: int, hour: str, is_available: bool = True
) -> PublicHour:
    if not await session.get(Availability, availability_id):
        raise PublicHourError("Availability record not found")
    if await _hour_exists(session, availability_id, hour):
        raise DuplicatePublicHourError(f"{hour} is already published for that day")
    public_hour = PublicHour(availability_id=availability_id, hour=hour, is_available=is_available)
    session.add(public_hour)
    await session.flush()
    await session.refresh(public_hour)
    logger.info("Public hour %s created for availability %s", hour, availability_id)
    return public_hour


async def publish_hours(session: AsyncSession, day: date, hours: list[str]) -> tuple[Availability, list[PublicHour]]:
    """Open `day` and make every hour in `hours` public; existing hours are re-enabled."""
    availability = await enable_date(session, normalize_admin_date(day))
    result = await session.execute(
        select(PublicHour).where(PublicHour.availability_id == availability.id, PublicHour.hour.in_(hours))
    )
    existing = {ph.hour: ph for ph in result.scalars().all()}
    published: list[PublicHour] = []
    now = utc_naive_now()
    for hour in sorted(set(hours)):
        public_hour = existing.get(hour)
        if public_hour is None:
            public_hour = PublicHour(availability_id=availability.id, hour=hour)
        elif not public_hour.is_available:
            public_hour.is_available = True
            public_hour.updated_at = now
        session.add(public_hour)
        published.append(public_hour)
    await session.flush()
    logger.info("Published %d hour(s) for %s", len(published), day.isoformat())
    return availability, published


async def list_by_range(
    session: AsyncSession, start: date, end: date
) -> list[tuple[PublicHour, Availability]]:
    """Offered hours on local days start..end inclusive, ordered by day then hour."""
    if start > end:
        raise PublicHourError("startDate must not be after endDate")
    window_start, _ = local_day_window_utc(start)
    _, window_end = local_day_window_utc(end)
    result = await session.execute(
        select(PublicHour, Availability)
        .join(Availability, Availability.id == PublicHour.availability_id)
        .where(
            Availability.date >= window_start,
            Availability.date < window_end,
            Availability.is_available == True,  # noqa: E712
            PublicHour.is_available == True,  # noqa: E712
        )
        .order_by(Availability.date, PublicHour.hour)
    )
    return [(ph, a) for ph, a in result.all()]


async def list_by_date(session: AsyncSession, day: date) -> list[tuple[PublicHour, Availability]]:
    return await list_by_range(session, day, day)


async def hours_grouped_by_date(session: AsyncSession, start: date, end: date) -> dict[str, list[str]]:
    """{"2026-03-16": ["09:00", "10:30"], ...} keyed by local calendar day."""
    grouped: dict[str, list[str]] = defaultdict(list)
    for public_hour, availability in await list_by_range(session, start, end):
        grouped[to_local_date(availability.date).isoformat()].append(public_hour.hour)
    return {day: sorted(hours) for day, hours in grouped.items()}


async def is_public_hour_available(session: AsyncSession, day: date, hour: str) -> bool:
    return any(ph.hour == hour for ph, _ in await list_by_date(session, day))


async def update_public_hour(
    session: AsyncSession, public_hour_id: int, hour: str | None = None, is_available: bool | None = None
) -> PublicHour | None:
    public_hour = await session.get(PublicHour, public_hour_id)
    if not public_hour:
        return None
    if hour is not None and hour != public_hour.hour:
        if await _hour_exists(session, public_hour.availability_id, hour, exclude_id=public_hour.id):
            raise DuplicatePublicHourError(f"{hour} is already published for that day")
        public_hour.hour = hour
    if is_available is not None:
        public_hour.is_available = is_available
    public_hour.updated_at = utc_naive_now()
    session.add(public_hour)
    await session.flush()
    return public_hour


async def delete_public_hour(session: AsyncSession, public_hour_id: int) -> bool:
    public_hour = await session.get(PublicHour, public_hour_id)
    if not public_hour:
        return False
    await session.delete(public_hour)
    await session.flush()
    return True

