"""Bookable-slot computation and blocked-date (availability record) administration."""
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from salon.core.config import Settings, settings
from salon.core.timeutils import (
    business_zone,
    from_naive_utc,
    local_day_window_utc,
    local_midnight,
    local_month_window_utc,
    to_local_date,
    to_naive_utc,
    utc_naive_now,
)
from salon.models.appointment import Appointment, AppointmentStatus
from salon.models.availability import Availability
from salon.models.catalog import Service
from salon.models.public_hour import PublicHour

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


class SlotUnavailableError(Exception):
    """The requested start time is not a bookable slot."""


@dataclass(frozen=True)
class TimeSlot:
    start: datetime  # aware, business zone
    end: datetime


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime


@dataclass(frozen=True)
class BusinessHours:
    open_at: time
    close_at: time
    break_start: time
    break_end: time
    closed_weekdays: frozenset[int]
    step_minutes: int = 15
    blocked_span_minutes: int = 60
    block_whole_day: bool = False

    @classmethod
    def from_settings(cls, s: Settings = settings) -> "BusinessHours":
        return cls(
            open_at=time(s.business_open_hour, s.business_open_minute),
            close_at=time(s.business_close_hour, s.business_close_minute),
            break_start=time(s.break_start_hour, s.break_start_minute),
            break_end=time(s.break_end_hour, s.break_end_minute),
            closed_weekdays=frozenset(s.closed_weekdays_set),
            step_minutes=s.slot_step_minutes,
            blocked_span_minutes=s.blocked_span_minutes,
            block_whole_day=s.block_whole_day,
        )


def _overlaps(start: datetime, end: datetime, other_start: datetime, other_end: datetime) -> bool:
    return start < other_end and other_start < end


def compute_slots(
    day: date,
    duration: int,
    appointments: Iterable[BusyInterval],
    blocks: Iterable[datetime],
    hours: BusinessHours,
) -> list[TimeSlot]:
    """Walk the business day in fixed steps and keep every candidate that fits.

    `appointments` and `blocks` are aware datetimes. A candidate `[cursor, cursor+duration)`
    is rejected if it overlaps the break, a blocked span, an appointment, or runs past close.
    """
    if duration <= 0:
        raise ValueError("duration must be a positive number of minutes")
    if day.weekday() in hours.closed_weekdays:
        return []
    blocks = list(blocks)
    if hours.block_whole_day and blocks:
        return []

    tz = business_zone()
    open_at = datetime.combine(day, hours.open_at, tzinfo=tz)
    close_at = datetime.combine(day, hours.close_at, tzinfo=tz)
    break_start = datetime.combine(day, hours.break_start, tzinfo=tz)
    break_end = datetime.combine(day, hours.break_end, tzinfo=tz)
    span = timedelta(minutes=hours.blocked_span_minutes)
    busy = [(b, b + span) for b in blocks] + [(a.start, a.end) for a in appointments]

    length = timedelta(minutes=duration)
    step = timedelta(minutes=hours.step_minutes)
    slots: list[TimeSlot] = []
    cursor = open_at
    while cursor < close_at:
        end = cursor + length
        if (
            end <= close_at
            and not _overlaps(cursor, end, break_start, break_end)
            and not any(_overlaps(cursor, end, s, e) for s, e in busy)
        ):
            slots.append(TimeSlot(start=cursor, end=end))
        cursor += step
    return slots


async def _load_busy_appointments(
    session: AsyncSession,
    start_inclusive: datetime,
    end_exclusive: datetime,
    exclude_id: int | None = None,
) -> list[BusyInterval]:
    q = (
        select(Appointment.date, Service.duration)
        .outerjoin(Service, Service.id == Appointment.service_id)
        .where(
            Appointment.date >= start_inclusive,
            Appointment.date < end_exclusive,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
    )
    if exclude_id is not None:
        q = q.where(Appointment.id != exclude_id)
    result = await session.execute(q)
    busy: list[BusyInterval] = []
    for starts_at, minutes in result.all():
        start = from_naive_utc(starts_at)
        busy.append(BusyInterval(start, start + timedelta(minutes=minutes or settings.default_duration_minutes)))
    return busy


async def _load_blocked_times(
    session: AsyncSession, start_inclusive: datetime, end_exclusive: datetime
) -> list[datetime]:
    result = await session.execute(
        select(Availability.date).where(
            Availability.date >= start_inclusive,
            Availability.date < end_exclusive,
            Availability.is_available == False,  # noqa: E712
        )
    )
    return [from_naive_utc(row[0]) for row in result.all()]


async def get_available_slots(
    session: AsyncSession,
    day: date,
    duration: int | None = None,
    hours: BusinessHours | None = None,
    exclude_appointment_id: int | None = None,
) -> list[TimeSlot]:
    """Bookable slots for a local calendar day, ordered by start time."""
    duration = settings.default_duration_minutes if duration is None else duration
    hours = hours or BusinessHours.from_settings()
    if day.weekday() in hours.closed_weekdays:
        return []
    start_utc, end_utc = local_day_window_utc(day)
    appointments = await _load_busy_appointments(session, start_utc, end_utc, exclude_appointment_id)
    blocks = await _load_blocked_times(session, start_utc, end_utc)
    return compute_slots(day, duration, appointments, blocks, hours)


async def is_slot_bookable(
    session: AsyncSession,
    start_utc: datetime,
    duration: int,
    exclude_appointment_id: int | None = None,
) -> bool:
    """True if a slot of `duration` starting at naive-UTC `start_utc` is offered."""
    local_start = from_naive_utc(start_utc)
    slots = await get_available_slots(
        session,
        local_start.date(),
        duration,
        exclude_appointment_id=exclude_appointment_id,
    )
    return any(slot.start == local_start for slot in slots)


# --- Blocked-date administration ---


def normalize_admin_date(value: date | datetime) -> datetime:
    """A bare date means local midnight of that day; datetimes are kept. Returns naive UTC."""
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return to_naive_utc(local_midnight(value))


async def _find_record_for_day(session: AsyncSession, when: datetime) -> Availability | None:
    result = await session.execute(
        select(Availability)
        .where(Availability.date >= when, Availability.date < when + _ONE_DAY)
        .order_by(Availability.date)
        .limit(1)
    )
    return result.scalar_one_or_none()


async def enable_date(session: AsyncSession, when: datetime) -> Availability:
    """Open the day starting at `when`. Already-open records come back unchanged."""
    existing = await _find_record_for_day(session, when)
    if existing:
        if not existing.is_available:
            existing.is_available = True
            existing.updated_at = utc_naive_now()
            session.add(existing)
            await session.flush()
            logger.info("Availability %s reopened", existing.id)
        return existing
    record = Availability(date=when, is_available=True)
    session.add(record)
    await session.flush()
    await session.refresh(record)
    logger.info("Availability created (open) for %s", when.isoformat())
    return record


async def disable_date(session: AsyncSession, when: datetime) -> Availability:
    """Close the day starting at `when`; one record per day, repeated calls are no-ops."""
    existing = await _find_record_for_day(session, when)
    if existing:
        if existing.is_available:
            existing.is_available = False
            existing.updated_at = utc_naive_now()
            session.add(existing)
            await session.flush()
            logger.info("Availability %s closed", existing.id)
        return existing
    record = Availability(date=when, is_available=False)
    session.add(record)
    await session.flush()
    await session.refresh(record)
    logger.info("Availability created (closed) for %s", when.isoformat())
    return record


async def enable_date_range(session: AsyncSession, start: date, end: date) -> list[Availability]:
    if start > end:
        raise ValueError("start date must not be after end date")
    enabled: list[Availability] = []
    current = start
    while current <= end:
        enabled.append(await enable_date(session, normalize_admin_date(current)))
        current += _ONE_DAY
    return enabled


async def _delete_public_hours(session: AsyncSession, availability_id: int) -> None:
    await session.execute(delete(PublicHour).where(PublicHour.availability_id == availability_id))


async def remove_date(session: AsyncSession, when: datetime) -> bool:
    existing = await _find_record_for_day(session, when)
    if not existing:
        return False
    await _delete_public_hours(session, existing.id)
    await session.delete(existing)
    await session.flush()
    return True


async def delete_availability(session: AsyncSession, availability_id: int) -> bool:
    record = await session.get(Availability, availability_id)
    if not record:
        return False
    await _delete_public_hours(session, record.id)
    await session.delete(record)
    await session.flush()
    return True


async def list_availability_in_month(
    session: AsyncSession, year: int, month: int, is_available: bool | None = None
) -> list[Availability]:
    start, end = local_month_window_utc(year, month)
    q = select(Availability).where(Availability.date >= start, Availability.date < end)
    if is_available is not None:
        q = q.where(Availability.is_available == is_available)
    result = await session.execute(q.order_by(Availability.date))
    return list(result.scalars().all())


async def list_available_dates(session: AsyncSession, year: int, month: int) -> list[str]:
    """ISO dates (local calendar) of explicitly opened days in the month."""
    records = await list_availability_in_month(session, year, month, is_available=True)
    return sorted({to_local_date(r.date).isoformat() for r in records})
