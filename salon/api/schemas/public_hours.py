from datetime import date
from typing import Annotated

from pydantic import Field

from salon.api.schemas.common import CamelModel, UtcDatetime

HOUR_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
Hour = Annotated[str, Field(pattern=HOUR_PATTERN)]


class PublicHourIn(CamelModel):
    availability_id: int
    hour: Hour
    is_available: bool = True


class PublicHourUpdateIn(CamelModel):
    hour: Hour | None = None
    is_available: bool | None = None


class PublishHoursIn(CamelModel):
    """Local calendar `date` and the "HH:MM" start times to offer on it."""

    date: date
    hours: list[Hour] = Field(min_length=1, max_length=96)


class PublicHourOut(CamelModel):
    id: int
    availability_id: int
    hour: str
    is_available: bool
    created_at: UtcDatetime
    updated_at: UtcDatetime


class PublicHourWithDayOut(PublicHourOut):
    date: str  # local YYYY-MM-DD of the parent availability record


class PublishHoursOut(CamelModel):
    availability_id: int
    date: str
    public_hours: list[PublicHourOut]


class HourCheckOut(CamelModel):
    date: str
    hour: str
    is_available: bool
