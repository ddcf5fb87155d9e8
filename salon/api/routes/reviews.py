from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon.api.deps import get_session, require_admin
from salon.api.schemas.review import ReviewIn, ReviewOut
from salon.services import review_service

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.get("", response_model=list[ReviewOut])
async def list_approved(session: AsyncSession = Depends(get_session)) -> list[ReviewOut]:
    return [ReviewOut.model_validate(r) for r in await review_service.list_reviews(session)]


@router.get("/admin", response_model=list[ReviewOut], dependencies=[Depends(require_admin)])
async def list_all(session: AsyncSession = Depends(get_session)) -> list[ReviewOut]:
    reviews = await review_service.list_reviews(session, approved_only=False)
    return [ReviewOut.model_validate(r) for r in reviews]


@router.post("", response_model=ReviewOut, status_code=status.HTTP_201_CREATED)
async def create(body: ReviewIn, session: AsyncSession = Depends(get_session)) -> ReviewOut:
    review = await review_service.create_review(session, body.client_name, body.rating, body.comment)
    return ReviewOut.model_validate(review)


@router.put("/{review_id}/approve", response_model=ReviewOut, dependencies=[Depends(require_admin)])
async def approve(review_id: int, session: AsyncSession = Depends(get_session)) -> ReviewOut:
    review = await review_service.approve_review(session, review_id)
    if not review:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return ReviewOut.model_validate(review)


@router.delete("/{review_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
async def delete(review_id: int, session: AsyncSession = Depends(get_session)) -> None:
    if not await review_service.delete_review(session, review_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
