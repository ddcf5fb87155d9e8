from datetime import datetime

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel

from salon.core.timeutils import utc_naive_now


class PublicHour(SQLModel, table=True):
    """A start time ("HH:MM", local) the salon advertises on an opened day."""
    __tablename__ = "public_hours"
    __table_args__ = (UniqueConstraint("availability_id", "hour", name="uq_public_hours_availability_hour"),)
    id: int | None = Field(default=None, primary_key=True)
    availability_id: int = Field(foreign_key="availability.id", index=True)
    hour: str
    is_available: bool = True
    created_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
