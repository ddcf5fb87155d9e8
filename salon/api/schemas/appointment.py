from datetime import datetime
from decimal import Decimal

from pydantic import EmailStr, Field, field_validator

from salon.api.schemas.common import CamelModel, Pagination, UtcDatetime
from salon.core.timeutils import to_naive_utc, utc_naive_now
from salon.models.appointment import AppointmentStatus


class AppointmentCreateIn(CamelModel):
    client_name: str = Field(min_length=2, max_length=100)
    client_phone: str = Field(pattern=r"^\+?[\d\s-]{7,20}$")
    client_email: EmailStr | None = None
    service_id: int
    # Naive values are read as local salon time
    date: datetime
    notes: str | None = Field(default=None, max_length=500)

    @field_validator("date")
    @classmethod
    def _not_in_past(cls, v: datetime) -> datetime:
        if to_naive_utc(v) < utc_naive_now():
            raise ValueError("Appointments cannot be booked in the past")
        return v


class AppointmentUpdateIn(CamelModel):
    status: AppointmentStatus | None = None
    date: datetime | None = None


class ServiceSummary(CamelModel):
    id: int
    name: str
    duration: str
    price: Decimal


class AppointmentOut(CamelModel):
    id: int
    client_name: str
    client_phone: str
    client_email: str | None = None
    service_id: int
    service: ServiceSummary | None = None
    date: UtcDatetime
    status: AppointmentStatus
    notes: str | None = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


class AppointmentListOut(CamelModel):
    data: list[AppointmentOut]
    pagination: Pagination
