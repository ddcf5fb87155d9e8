from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon.api.deps import get_session, require_admin
from salon.api.schemas.public_hours import (
    HOUR_PATTERN,
    HourCheckOut,
    PublicHourIn,
    PublicHourOut,
    PublicHourUpdateIn,
    PublicHourWithDayOut,
    PublishHoursIn,
    PublishHoursOut,
)
from salon.core.timeutils import to_local_date
from salon.models.availability import Availability
from salon.models.public_hour import PublicHour
from salon.services import public_hours_service as public_hours

router = APIRouter(prefix="/public-hours", tags=["public-hours"])
admin_router = APIRouter(prefix="/public-hours", tags=["public-hours"], dependencies=[Depends(require_admin)])


def _with_day(public_hour: PublicHour, availability: Availability) -> PublicHourWithDayOut:
    return PublicHourWithDayOut.model_validate(
        {**public_hour.model_dump(), "date": to_local_date(availability.date).isoformat()}
    )


async def _range(session: AsyncSession, start: date, end: date) -> list[tuple[PublicHour, Availability]]:
    try:
        return await public_hours.list_by_range(session, start, end)
    except public_hours.PublicHourError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e


# --- Client-facing ---


@router.get("/client/grouped", response_model=dict[str, list[str]])
async def client_grouped(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    session: AsyncSession = Depends(get_session),
) -> dict[str, list[str]]:
    if start_date > end_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="startDate must not be after endDate")
    return await public_hours.hours_grouped_by_date(session, start_date, end_date)


@router.get("/client/date/{day}", response_model=list[str])
async def client_hours_for_day(day: date, session: AsyncSession = Depends(get_session)) -> list[str]:
    return sorted(ph.hour for ph, _ in await public_hours.list_by_date(session, day))


@router.get("/client/check/{day}/{hour}", response_model=HourCheckOut)
async def client_check(
    day: date,
    hour: str = Path(..., pattern=HOUR_PATTERN),
    session: AsyncSession = Depends(get_session),
) -> HourCheckOut:
    available = await public_hours.is_public_hour_available(session, day, hour)
    return HourCheckOut(date=day.isoformat(), hour=hour, is_available=available)


# --- Admin ---


@admin_router.post("", response_model=PublicHourOut, status_code=status.HTTP_201_CREATED)
async def create_public_hour(body: PublicHourIn, session: AsyncSession = Depends(get_session)) -> PublicHourOut:
    try:
        public_hour = await public_hours.create_public_hour(
            session, body.availability_id, body.hour, body.is_available
        )
    except public_hours.DuplicatePublicHourError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    except public_hours.PublicHourError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e)) from e
    return PublicHourOut.model_validate(public_hour)


@admin_router.post("/multiple", response_model=PublishHoursOut)
async def publish_hours(body: PublishHoursIn, session: AsyncSession = Depends(get_session)) -> PublishHoursOut:
    """Open the day if needed and publish every listed hour on it."""
    availability, published = await public_hours.publish_hours(session, body.date, body.hours)
    return PublishHoursOut(
        availability_id=availability.id,
        date=body.date.isoformat(),
        public_hours=[PublicHourOut.model_validate(ph) for ph in published],
    )


@admin_router.get("/date/{day}", response_model=list[PublicHourWithDayOut])
async def hours_for_day(day: date, session: AsyncSession = Depends(get_session)) -> list[PublicHourWithDayOut]:
    return [_with_day(ph, a) for ph, a in await _range(session, day, day)]


@admin_router.get("/range", response_model=list[PublicHourWithDayOut])
async def hours_in_range(
    start_date: date = Query(..., alias="startDate"),
    end_date: date = Query(..., alias="endDate"),
    session: AsyncSession = Depends(get_session),
) -> list[PublicHourWithDayOut]:
    return [_with_day(ph, a) for ph, a in await _range(session, start_date, end_date)]


@admin_router.put("/{public_hour_id}", response_model=PublicHourOut)
async def update_public_hour(
    public_hour_id: int,
    body: PublicHourUpdateIn,
    session: AsyncSession = Depends(get_session),
) -> PublicHourOut:
    try:
        public_hour = await public_hours.update_public_hour(session, public_hour_id, body.hour, body.is_available)
    except public_hours.DuplicatePublicHourError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    if not public_hour:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Public hour not found")
    return PublicHourOut.model_validate(public_hour)


@admin_router.delete("/{public_hour_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_public_hour(public_hour_id: int, session: AsyncSession = Depends(get_session)) -> None:
    if not await public_hours.delete_public_hour(session, public_hour_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Public hour not found")
