from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon.api.deps import get_session, require_admin
from salon.api.schemas.catalog import ServiceIn, ServiceListOut, ServiceOut, ServiceUpdateIn
from salon.api.schemas.common import Pagination
from salon.core.duration import parse_duration
from salon.models.catalog import Service
from salon.models.image import Image
from salon.services import catalog_service as catalog

router = APIRouter(prefix="/services", tags=["services"])


def _to_out(service: Service, images: list[Image]) -> ServiceOut:
    return ServiceOut.model_validate(
        {
            **service.model_dump(),
            "images": [{"id": i.id, "url": i.url, "title": i.title} for i in images],
        }
    )


@router.get("", response_model=ServiceListOut)
async def list_services(
    category_id: int | None = Query(None, alias="categoryId"),
    is_active: bool | None = Query(None, alias="isActive"),
    is_highlight: bool | None = Query(None, alias="isHighlight"),
    has_offer: bool | None = Query(None, alias="hasOffer"),
    min_price: Decimal | None = Query(None, alias="minPrice", ge=0),
    max_price: Decimal | None = Query(None, alias="maxPrice", ge=0),
    search: str | None = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: Literal["order", "price", "name"] = Query("order", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("asc", alias="sortOrder"),
    session: AsyncSession = Depends(get_session),
) -> ServiceListOut:
    services, total = await catalog.list_services(
        session,
        category_id=category_id,
        is_active=is_active,
        is_highlight=is_highlight,
        has_offer=has_offer,
        min_price=min_price,
        max_price=max_price,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    images = await catalog.images_for_services(session, [s.id for s in services])
    return ServiceListOut(
        data=[_to_out(s, images.get(s.id, [])) for s in services],
        pagination=Pagination.build(total, page, limit),
    )


@router.get("/{service_id}", response_model=ServiceOut)
async def get_service(
    service_id: int,
    session: AsyncSession = Depends(get_session),
) -> ServiceOut:
    service = await catalog.get_service(session, service_id)
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    images = await catalog.images_for_services(session, [service.id])
    return _to_out(service, images[service.id])


@router.post(
    "",
    response_model=ServiceOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_service(
    body: ServiceIn,
    session: AsyncSession = Depends(get_session),
) -> ServiceOut:
    try:
        service = await catalog.create_service(
            session,
            name=body.name,
            description=body.description,
            price=body.price,
            duration=parse_duration(body.duration),
            category_id=body.category_id,
            is_active=body.is_active,
            is_highlight=body.is_highlight,
            has_offer=body.has_offer,
            offer_price=body.offer_price,
            image_ids=body.image_ids,
        )
    except catalog.CatalogError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    images = await catalog.images_for_services(session, [service.id])
    return _to_out(service, images[service.id])


@router.put("/{service_id}", response_model=ServiceOut, dependencies=[Depends(require_admin)])
async def update_service(
    service_id: int,
    body: ServiceUpdateIn,
    session: AsyncSession = Depends(get_session),
) -> ServiceOut:
    changes = body.model_dump(exclude_unset=True)
    if changes.get("duration") is not None:
        changes["duration"] = parse_duration(changes["duration"])
    try:
        service = await catalog.update_service(session, service_id, changes)
    except catalog.CatalogError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    if not service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    images = await catalog.images_for_services(session, [service.id])
    return _to_out(service, images[service.id])


@router.delete("/{service_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
async def delete_service(
    service_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    try:
        deleted = await catalog.delete_service(session, service_id)
    except catalog.ServiceInUseError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
