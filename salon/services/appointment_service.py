import logging
from datetime import date, datetime

from sqlalchemy import func, or_, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from salon.core.config import settings
from salon.core.timeutils import local_day_window_utc, to_local_date, to_naive_utc, utc_naive_now
from salon.models.appointment import Appointment, AppointmentStatus
from salon.models.catalog import Service
from salon.services.availability_service import SlotUnavailableError, is_slot_bookable

logger = logging.getLogger(__name__)

# High bits namespace the advisory lock so it cannot collide with other per-day locks
_BOOKING_LOCK_NAMESPACE = 0x5A1 << 32


async def _lock_booking_day(session: AsyncSession, day: date) -> None:
    """Serialize bookings for one local day until the transaction ends (PostgreSQL only).

    SQLite already serializes writers, so nothing is needed there.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    key = _BOOKING_LOCK_NAMESPACE + int(day.strftime("%Y%m%d"))
    await session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})


async def create_appointment(
    session: AsyncSession,
    client_name: str,
    client_phone: str,
    service_id: int,
    starts_at: datetime,
    client_email: str | None = None,
    notes: str | None = None,
) -> tuple[Appointment, Service] | None:
    """Book a PENDING appointment. Returns None when the service does not exist.

    The availability check and the insert share the caller's transaction; raises
    SlotUnavailableError when the start time is not an offered slot.
    """
    service = await session.get(Service, service_id)
    if not service or not service.is_active:
        return None
    start = to_naive_utc(starts_at)
    await _lock_booking_day(session, to_local_date(start))
    if not await is_slot_bookable(session, start, service.duration):
        raise SlotUnavailableError("Slot not available")
    appointment = Appointment(
        client_name=client_name,
        client_phone=client_phone,
        client_email=client_email,
        service_id=service.id,
        date=start,
        notes=notes,
        status=AppointmentStatus.PENDING,
    )
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    logger.info("Appointment %s booked for %s (service %s)", appointment.id, start.isoformat(), service.id)
    return appointment, service


async def get_appointment(session: AsyncSession, appointment_id: int) -> tuple[Appointment, Service | None] | None:
    result = await session.execute(
        select(Appointment, Service)
        .outerjoin(Service, Service.id == Appointment.service_id)
        .where(Appointment.id == appointment_id)
    )
    row = result.first()
    return (row[0], row[1]) if row else None


async def list_appointments(
    session: AsyncSession,
    page: int = 1,
    limit: int = 10,
    status: AppointmentStatus | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    search: str | None = None,
) -> tuple[list[tuple[Appointment, Service | None]], int]:
    """Page of appointments ordered by date, plus the total matching count."""
    filters = []
    if status:
        filters.append(Appointment.status == status)
    if start_date:
        filters.append(Appointment.date >= local_day_window_utc(start_date)[0])
    if end_date:
        filters.append(Appointment.date < local_day_window_utc(end_date)[1])
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                Appointment.client_name.ilike(pattern),
                Appointment.client_phone.like(pattern),
                Appointment.client_email.ilike(pattern),
            )
        )

    total = await session.scalar(select(func.count()).select_from(Appointment).where(*filters))
    result = await session.execute(
        select(Appointment, Service)
        .outerjoin(Service, Service.id == Appointment.service_id)
        .where(*filters)
        .order_by(Appointment.date)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return [(a, s) for a, s in result.all()], total or 0


async def update_appointment(
    session: AsyncSession,
    appointment_id: int,
    status: AppointmentStatus | None = None,
    starts_at: datetime | None = None,
) -> tuple[Appointment, Service | None] | None:
    """Admin status/date change. A new date, or reviving a cancelled booking, re-checks the slot."""
    found = await get_appointment(session, appointment_id)
    if not found:
        return None
    appointment, service = found
    new_start = to_naive_utc(starts_at) if starts_at else appointment.date
    reviving = (
        status is not None
        and status != AppointmentStatus.CANCELLED
        and appointment.status == AppointmentStatus.CANCELLED
    )
    moving = new_start != appointment.date
    final_status = status or appointment.status
    if (moving or reviving) and final_status != AppointmentStatus.CANCELLED:
        await _lock_booking_day(session, to_local_date(new_start))
        duration = service.duration if service else None
        if not await is_slot_bookable(
            session, new_start, duration or settings.default_duration_minutes, exclude_appointment_id=appointment.id
        ):
            raise SlotUnavailableError("Slot not available")
    appointment.date = new_start
    appointment.status = final_status
    appointment.updated_at = utc_naive_now()
    session.add(appointment)
    await session.flush()
    return appointment, service


async def delete_appointment(session: AsyncSession, appointment_id: int) -> bool:
    appointment = await session.get(Appointment, appointment_id)
    if not appointment:
        return False
    await session.delete(appointment)
    await session.flush()
    return True
