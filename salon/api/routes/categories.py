from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from salon.api.deps import get_session, require_admin
from salon.api.schemas.catalog import CategoryIn, CategoryOrderIn, CategoryOut, CategoryUpdateIn
from salon.models.catalog import Category
from salon.services import catalog_service as catalog

router = APIRouter(prefix="/categories", tags=["categories"])


def _to_out(category: Category, services_count: int = 0) -> CategoryOut:
    return CategoryOut.model_validate({**category.model_dump(), "services_count": services_count})


@router.get("", response_model=list[CategoryOut])
async def list_categories(session: AsyncSession = Depends(get_session)) -> list[CategoryOut]:
    return [_to_out(c, n) for c, n in await catalog.list_categories(session)]


@router.put("/order", response_model=list[CategoryOut], dependencies=[Depends(require_admin)])
async def reorder(
    body: CategoryOrderIn,
    session: AsyncSession = Depends(get_session),
) -> list[CategoryOut]:
    await catalog.reorder_categories(session, {item.id: item.order for item in body.categories})
    return [_to_out(c, n) for c, n in await catalog.list_categories(session)]


@router.get("/{category_id}", response_model=CategoryOut)
async def get_category(
    category_id: int,
    session: AsyncSession = Depends(get_session),
) -> CategoryOut:
    for category, count in await catalog.list_categories(session):
        if category.id == category_id:
            return _to_out(category, count)
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")


@router.post(
    "",
    response_model=CategoryOut,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
async def create_category(
    body: CategoryIn,
    session: AsyncSession = Depends(get_session),
) -> CategoryOut:
    try:
        category = await catalog.create_category(session, body.name)
    except catalog.DuplicateCategoryError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return _to_out(category)


@router.put("/{category_id}", response_model=CategoryOut, dependencies=[Depends(require_admin)])
async def update_category(
    category_id: int,
    body: CategoryUpdateIn,
    session: AsyncSession = Depends(get_session),
) -> CategoryOut:
    try:
        category = await catalog.update_category(session, category_id, name=body.name, order=body.order)
    except catalog.DuplicateCategoryError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    return await get_category(category_id, session)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[Depends(require_admin)])
async def delete_category(
    category_id: int,
    session: AsyncSession = Depends(get_session),
) -> None:
    try:
        deleted = await catalog.delete_category(session, category_id)
    except catalog.CategoryInUseError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
