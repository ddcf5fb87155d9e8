from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from salon.core.timeutils import utc_naive_now


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: int | None = Field(default=None, primary_key=True)
    client_name: str
    client_phone: str
    client_email: str | None = None
    service_id: int = Field(foreign_key="services.id", index=True)
    date: datetime = Field(sa_type=DateTime(), index=True)  # naive UTC start
    status: AppointmentStatus = Field(default=AppointmentStatus.PENDING, index=True)
    notes: str | None = None
    created_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
