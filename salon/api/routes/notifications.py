from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon.api.deps import get_session, require_admin
from salon.api.schemas.review import DashboardNotifications, MarkReadOut, NotificationCounts, ReviewOut
from salon.services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"], dependencies=[Depends(require_admin)])


@router.get("/dashboard", response_model=DashboardNotifications)
async def dashboard(session: AsyncSession = Depends(get_session)) -> DashboardNotifications:
    summary = await notification_service.get_dashboard_notifications(session)
    return DashboardNotifications(
        counts=NotificationCounts(**summary["counts"]),
        recent_reviews=[ReviewOut.model_validate(r) for r in summary["recent_reviews"]],
    )


@router.put("/{kind}/read-all", response_model=MarkReadOut)
async def mark_all_read(kind: str, session: AsyncSession = Depends(get_session)) -> MarkReadOut:
    try:
        updated = await notification_service.mark_all_as_read(session, kind)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    return MarkReadOut(type=kind, updated=updated)
