from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from salon.core.timeutils import utc_naive_now


class Review(SQLModel, table=True):
    __tablename__ = "reviews"
    id: int | None = Field(default=None, primary_key=True)
    client_name: str
    rating: int
    comment: str
    is_approved: bool = False
    is_read: bool = False
    created_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime(), index=True)
