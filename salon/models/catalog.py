from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from salon.core.timeutils import utc_naive_now


class Category(SQLModel, table=True):
    __tablename__ = "categories"
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    order: int = 0
    created_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())


class Service(SQLModel, table=True):
    """A bookable salon service (manicure, gel, acrylic set, ...)."""
    __tablename__ = "services"
    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    description: str = ""
    price: Decimal = Field(max_digits=10, decimal_places=2)
    offer_price: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    duration: int = 60  # minutes
    category_id: int = Field(foreign_key="categories.id", index=True)
    is_active: bool = True
    is_highlight: bool = False
    has_offer: bool = False
    order: int = 0
    created_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
    updated_at: datetime = Field(default_factory=utc_naive_now, sa_type=DateTime())
