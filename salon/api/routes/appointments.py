import logging
from datetime import date

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon.api.deps import get_session, require_admin
from salon.api.schemas.appointment import (
    AppointmentCreateIn,
    AppointmentListOut,
    AppointmentOut,
    AppointmentUpdateIn,
    ServiceSummary,
)
from salon.api.schemas.common import Pagination
from salon.core.config import settings
from salon.core.duration import format_duration
from salon.models.appointment import Appointment, AppointmentStatus
from salon.models.catalog import Service
from salon.services.appointment_service import (
    create_appointment,
    delete_appointment,
    get_appointment,
    list_appointments,
    update_appointment,
)
from salon.services.availability_service import SlotUnavailableError
from salon.services.email_service import (
    send_admin_new_booking_email,
    send_booking_received_email,
    send_cancellation_email,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])

_SLOT_TAKEN = "The selected time is no longer available"


def _to_out(a: Appointment, service: Service | None) -> AppointmentOut:
    summary = None
    if service is not None:
        summary = ServiceSummary(
            id=service.id,
            name=service.name,
            duration=format_duration(service.duration),
            price=service.price,
        )
    return AppointmentOut(
        id=a.id,
        client_name=a.client_name,
        client_phone=a.client_phone,
        client_email=a.client_email,
        service_id=a.service_id,
        service=summary,
        date=a.date,
        status=a.status,
        notes=a.notes,
        created_at=a.created_at,
        updated_at=a.updated_at,
    )


def _duration_of(service: Service | None) -> int:
    return service.duration if service and service.duration else settings.default_duration_minutes


@router.post("", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: AppointmentCreateIn,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
) -> AppointmentOut:
    try:
        booked = await create_appointment(
            session,
            client_name=body.client_name,
            client_phone=body.client_phone,
            client_email=body.client_email,
            service_id=body.service_id,
            starts_at=body.date,
            notes=body.notes,
        )
    except SlotUnavailableError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_SLOT_TAKEN)
    if not booked:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    appointment, service = booked
    # Emails go out after the response (sync SMTP)
    if appointment.client_email:
        background_tasks.add_task(
            send_booking_received_email,
            to_email=appointment.client_email,
            client_name=appointment.client_name,
            service_name=service.name,
            start_utc=appointment.date,
            duration_minutes=_duration_of(service),
        )
    background_tasks.add_task(
        send_admin_new_booking_email,
        client_name=appointment.client_name,
        client_phone=appointment.client_phone,
        service_name=service.name,
        start_utc=appointment.date,
        duration_minutes=_duration_of(service),
        notes=appointment.notes,
    )
    return _to_out(appointment, service)


@router.get("", response_model=AppointmentListOut, dependencies=[Depends(require_admin)])
async def list_all(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    search: str | None = Query(None, max_length=100),
    session: AsyncSession = Depends(get_session),
) -> AppointmentListOut:
    rows, total = await list_appointments(
        session,
        page=page,
        limit=limit,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return AppointmentListOut(
        data=[_to_out(a, s) for a, s in rows],
        pagination=Pagination.build(total, page, limit),
    )


@router.get("/{appointment_id}", response_model=AppointmentOut, dependencies=[Depends(require_admin)])
async def get_one(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
) -> AppointmentOut:
    found = await get_appointment(session, appointment_id)
    if not found:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    return _to_out(*found)


@router.put("/{appointment_id}", response_model=AppointmentOut, dependencies=[Depends(require_admin)])
async def update_one(
    appointment_id: int,
    body: AppointmentUpdateIn,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
) -> AppointmentOut:
    before = await get_appointment(session, appointment_id)
    if not before:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
    previous_status = before[0].status
    try:
        appointment, service = await update_appointment(
            session, appointment_id, status=body.status, starts_at=body.date
        )
    except SlotUnavailableError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=_SLOT_TAKEN)
    if (
        appointment.status == AppointmentStatus.CANCELLED
        and previous_status != AppointmentStatus.CANCELLED
        and appointment.client_email
    ):
        background_tasks.add_task(
            send_cancellation_email,
            to_email=appointment.client_email,
            client_name=appointment.client_name,
            service_name=service.name if service else "",
            start_utc=appointment.date,
            duration_minutes=_duration_of(service),
        )
    logger.info("Appointment %s updated (status %s)", appointment.id, appointment.status.value)
    return _to_out(appointment, service)


@router.delete("/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
async def delete_one(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    if not await delete_appointment(session, appointment_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Appointment not found")
