from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon.api.deps import get_session, require_admin
from salon.api.schemas.availability import (
    AvailabilityDateIn,
    AvailabilityOut,
    AvailabilityRangeIn,
    AvailabilityRecordIn,
    SlotOut,
)
from salon.core.config import settings
from salon.services import availability_service as availability

router = APIRouter(prefix="/availability", tags=["availability"])
admin_router = APIRouter(
    prefix="/availability/admin",
    tags=["availability"],
    dependencies=[Depends(require_admin)],
)


@router.get("", response_model=list[SlotOut])
async def available_slots(
    date_param: date = Query(..., alias="date"),
    duration: int = Query(settings.default_duration_minutes, gt=0, le=12 * 60),
    session: AsyncSession = Depends(get_session),
) -> list[SlotOut]:
    """Bookable slots for a local calendar day, ordered by start time."""
    slots = await availability.get_available_slots(session, date_param, duration)
    return [SlotOut.from_slot(s.start, s.end) for s in slots]


@router.get("/dates", response_model=list[str])
async def available_dates(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    session: AsyncSession = Depends(get_session),
) -> list[str]:
    return await availability.list_available_dates(session, year, month)


@admin_router.get("", response_model=list[AvailabilityOut])
async def list_month(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000, le=2100),
    is_available: bool | None = Query(None, alias="isAvailable"),
    session: AsyncSession = Depends(get_session),
) -> list[AvailabilityOut]:
    records = await availability.list_availability_in_month(session, year, month, is_available)
    return [AvailabilityOut.model_validate(r) for r in records]


@admin_router.post("", response_model=AvailabilityOut)
async def set_availability(
    body: AvailabilityRecordIn,
    session: AsyncSession = Depends(get_session),
) -> AvailabilityOut:
    when = availability.normalize_admin_date(body.when())
    if body.is_available:
        record = await availability.enable_date(session, when)
    else:
        record = await availability.disable_date(session, when)
    return AvailabilityOut.model_validate(record)


@admin_router.post("/enable", response_model=AvailabilityOut)
async def enable(
    body: AvailabilityDateIn,
    session: AsyncSession = Depends(get_session),
) -> AvailabilityOut:
    record = await availability.enable_date(session, availability.normalize_admin_date(body.when()))
    return AvailabilityOut.model_validate(record)


@admin_router.post("/disable", response_model=AvailabilityOut)
async def disable(
    body: AvailabilityDateIn,
    session: AsyncSession = Depends(get_session),
) -> AvailabilityOut:
    record = await availability.disable_date(session, availability.normalize_admin_date(body.when()))
    return AvailabilityOut.model_validate(record)


@admin_router.post("/enable-range", response_model=list[AvailabilityOut])
async def enable_range(
    body: AvailabilityRangeIn,
    session: AsyncSession = Depends(get_session),
) -> list[AvailabilityOut]:
    try:
        records = await availability.enable_date_range(session, body.start_date, body.end_date)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return [AvailabilityOut.model_validate(r) for r in records]


@admin_router.post("/remove")
async def remove(
    body: AvailabilityDateIn,
    session: AsyncSession = Depends(get_session),
) -> dict:
    removed = await availability.remove_date(session, availability.normalize_admin_date(body.when()))
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No availability record for that date")
    return {"message": "Availability record removed"}


@admin_router.delete("/{availability_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_record(
    availability_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    if not await availability.delete_availability(session, availability_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Availability record not found")
