from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from salon.models.review import Review


async def list_reviews(session: AsyncSession, approved_only: bool = True) -> list[Review]:
    q = select(Review).order_by(Review.created_at.desc(), Review.id.desc())
    if approved_only:
        q = q.where(Review.is_approved == True)  # noqa: E712
    result = await session.execute(q)
    return list(result.scalars().all())


async def create_review(session: AsyncSession, client_name: str, rating: int, comment: str) -> Review:
    """New reviews wait for admin approval."""
    if not 1 <= rating <= 5:
        raise ValueError("Rating must be between 1 and 5")
    review = Review(client_name=client_name, rating=rating, comment=comment, is_approved=False)
    session.add(review)
    await session.flush()
    await session.refresh(review)
    return review


async def approve_review(session: AsyncSession, review_id: int) -> Review | None:
    review = await session.get(Review, review_id)
    if not review:
        return None
    review.is_approved = True
    session.add(review)
    await session.flush()
    return review


async def delete_review(session: AsyncSession, review_id: int) -> bool:
    review = await session.get(Review, review_id)
    if not review:
        return False
    await session.delete(review)
    await session.flush()
    return True
