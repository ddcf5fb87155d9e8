from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from salon.core.timeutils import utc_naive_now


class Availability(SQLModel, table=True):
    """Admin override for a calendar day: explicitly open or closed."""
    __tablename__ = "availability"
    id: int | None = Field(default=None, primary_key=True)
    date: datetime = Field(sa_type=DateTime(), index=True)  # naive UTC
    is_available: bool = True
    created_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
