"""Admin dashboard notification summary."""
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from salon.models.appointment import Appointment, AppointmentStatus
from salon.models.review import Review

RECENT_REVIEWS_LIMIT = 5
MARKABLE_TYPES = ("reviews",)


async def get_dashboard_notifications(session: AsyncSession) -> dict:
    unread_reviews = await session.scalar(
        select(func.count(Review.id)).where(Review.is_read == False)  # noqa: E712
    )
    pending_reviews = await session.scalar(
        select(func.count(Review.id)).where(Review.is_approved == False)  # noqa: E712
    )
    pending_appointments = await session.scalar(
        select(func.count(Appointment.id)).where(Appointment.status == AppointmentStatus.PENDING)
    )
    result = await session.execute(
        select(Review)
        .where(Review.is_read == False)  # noqa: E712
        .order_by(Review.created_at.desc(), Review.id.desc())
        .limit(RECENT_REVIEWS_LIMIT)
    )
    return {
        "counts": {
            "unread_reviews": unread_reviews or 0,
            "pending_reviews": pending_reviews or 0,
            "pending_appointments": pending_appointments or 0,
        },
        "recent_reviews": list(result.scalars().all()),
    }


async def mark_all_as_read(session: AsyncSession, kind: str) -> int:
    """Mark every unread item of `kind` as read. Returns the number updated."""
    if kind not in MARKABLE_TYPES:
        raise ValueError(f"Unknown notification type: {kind}")
    result = await session.execute(
        update(Review).where(Review.is_read == False).values(is_read=True)  # noqa: E712
    )
    await session.flush()
    return result.rowcount or 0
