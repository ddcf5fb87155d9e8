from pydantic import Field

from salon.api.schemas.common import CamelModel, UtcDatetime


class ReviewIn(CamelModel):
    client_name: str = Field(min_length=2, max_length=100)
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=1, max_length=1000)


class ReviewOut(CamelModel):
    id: int
    client_name: str
    rating: int
    comment: str
    is_approved: bool
    is_read: bool
    created_at: UtcDatetime


class NotificationCounts(CamelModel):
    unread_reviews: int
    pending_reviews: int
    pending_appointments: int


class DashboardNotifications(CamelModel):
    counts: NotificationCounts
    recent_reviews: list[ReviewOut]


class MarkReadOut(CamelModel):
    type: str
    updated: int
