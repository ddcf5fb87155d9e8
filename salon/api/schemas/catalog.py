from decimal import Decimal
from typing import Annotated

from pydantic import AfterValidator, Field, field_validator, model_validator

from salon.api.schemas.common import CamelModel, Pagination, UtcDatetime
from salon.core.duration import format_duration, is_valid_duration


def _check_duration(v: str) -> str:
    if not is_valid_duration(v):
        raise ValueError('Duration must be "H:MM" or decimal hours')
    return v


DurationText = Annotated[str, AfterValidator(_check_duration)]


class CategoryIn(CamelModel):
    name: str = Field(min_length=1, max_length=100)


class CategoryUpdateIn(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    order: int | None = Field(default=None, ge=0)


class CategoryOrderItem(CamelModel):
    id: int
    order: int = Field(ge=0)


class CategoryOrderIn(CamelModel):
    categories: list[CategoryOrderItem]


class CategoryOut(CamelModel):
    id: int
    name: str
    order: int
    services_count: int = 0
    created_at: UtcDatetime
    updated_at: UtcDatetime


class ServiceImage(CamelModel):
    id: int
    url: str
    title: str | None = None


class ServiceIn(CamelModel):
    name: str = Field(min_length=1, max_length=120)
    description: str = ""
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    duration: DurationText
    category_id: int
    is_active: bool = True
    is_highlight: bool = False
    has_offer: bool = False
    offer_price: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    image_ids: list[int] = []

    @model_validator(mode="after")
    def _offer(self) -> "ServiceIn":
        if self.has_offer:
            if self.offer_price is None:
                raise ValueError("offerPrice is required when hasOffer is true")
            if self.offer_price >= self.price:
                raise ValueError("offerPrice must be lower than price")
        return self


class ServiceUpdateIn(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    description: str | None = None
    price: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    duration: DurationText | None = None
    category_id: int | None = None
    is_active: bool | None = None
    is_highlight: bool | None = None
    has_offer: bool | None = None
    offer_price: Decimal | None = Field(default=None, gt=0, max_digits=10, decimal_places=2)
    order: int | None = Field(default=None, ge=0)
    image_ids: list[int] | None = None


class ServiceOut(CamelModel):
    id: int
    name: str
    description: str
    price: Decimal
    offer_price: Decimal | None = None
    duration: str
    category_id: int
    is_active: bool
    is_highlight: bool
    has_offer: bool
    order: int
    images: list[ServiceImage] = []
    created_at: UtcDatetime
    updated_at: UtcDatetime

    @field_validator("duration", mode="before")
    @classmethod
    def _minutes_to_text(cls, v: int | str) -> str:
        return format_duration(v) if isinstance(v, int) else v


class ServiceListOut(CamelModel):
    data: list[ServiceOut]
    pagination: Pagination
