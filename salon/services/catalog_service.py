import logging
from decimal import Decimal

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from salon.core.timeutils import utc_naive_now
from salon.models.appointment import Appointment
from salon.models.catalog import Category, Service
from salon.models.image import Image, ImageType

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Business-rule violation in the service catalog."""


class DuplicateCategoryError(CatalogError):
    pass


class CategoryInUseError(CatalogError):
    def __init__(self, services_count: int):
        super().__init__(f"Category is used by {services_count} services")
        self.services_count = services_count


class ServiceInUseError(CatalogError):
    def __init__(self, appointments_count: int):
        super().__init__(f"Service has {appointments_count} appointments; deactivate it instead")
        self.appointments_count = appointments_count


# --- Categories ---


async def list_categories(session: AsyncSession) -> list[tuple[Category, int]]:
    """All categories ordered by `order`, each with its number of services."""
    counts = (
        select(Service.category_id, func.count(Service.id).label("n"))
        .group_by(Service.category_id)
        .subquery()
    )
    result = await session.execute(
        select(Category, func.coalesce(counts.c.n, 0))
        .outerjoin(counts, counts.c.category_id == Category.id)
        .order_by(Category.order)
    )
    return [(c, n) for c, n in result.all()]


async def get_category(session: AsyncSession, category_id: int) -> Category | None:
    return await session.get(Category, category_id)


async def _category_by_name(session: AsyncSession, name: str) -> Category | None:
    result = await session.execute(select(Category).where(Category.name == name))
    return result.scalar_one_or_none()


async def create_category(session: AsyncSession, name: str) -> Category:
    name = name.strip()
    if await _category_by_name(session, name):
        raise DuplicateCategoryError(f'A category named "{name}" already exists')
    max_order = await session.scalar(select(func.max(Category.order)))
    category = Category(name=name, order=0 if max_order is None else max_order + 1)
    session.add(category)
    await session.flush()
    await session.refresh(category)
    logger.info("Category %s created: %s", category.id, category.name)
    return category


async def update_category(session: AsyncSession, category_id: int, name: str | None = None, order: int | None = None) -> Category | None:
    category = await session.get(Category, category_id)
    if not category:
        return None
    if name is not None and name.strip() != category.name:
        if await _category_by_name(session, name.strip()):
            raise DuplicateCategoryError(f'A category named "{name.strip()}" already exists')
        category.name = name.strip()
    if order is not None:
        category.order = order
    category.updated_at = utc_naive_now()
    session.add(category)
    await session.flush()
    return category


async def delete_category(session: AsyncSession, category_id: int) -> bool:
    category = await session.get(Category, category_id)
    if not category:
        return False
    in_use = await session.scalar(select(func.count(Service.id)).where(Service.category_id == category_id))
    if in_use:
        raise CategoryInUseError(in_use)
    await session.delete(category)
    await session.flush()
    return True


async def reorder_categories(session: AsyncSession, orders: dict[int, int]) -> list[Category]:
    """Apply {category_id: order}; unknown ids are ignored."""
    now = utc_naive_now()
    for category_id, order in orders.items():
        await session.execute(
            update(Category).where(Category.id == category_id).values(order=order, updated_at=now)
        )
    await session.flush()
    result = await session.execute(select(Category).order_by(Category.order))
    return list(result.scalars().all())


# --- Services ---

_SORT_COLUMNS = {"price": Service.price, "name": Service.name, "order": Service.order}


def _validate_offer(price: Decimal, has_offer: bool, offer_price: Decimal | None) -> None:
    if not has_offer:
        return
    if offer_price is None:
        raise CatalogError("Offer price is required when hasOffer is true")
    if offer_price >= price:
        raise CatalogError("Offer price must be lower than the regular price")


async def list_services(
    session: AsyncSession,
    category_id: int | None = None,
    is_active: bool | None = None,
    is_highlight: bool | None = None,
    has_offer: bool | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str = "order",
    sort_order: str = "asc",
) -> tuple[list[Service], int]:
    filters = []
    if category_id is not None:
        filters.append(Service.category_id == category_id)
    if is_active is not None:
        filters.append(Service.is_active == is_active)
    if is_highlight is not None:
        filters.append(Service.is_highlight == is_highlight)
    if has_offer is not None:
        filters.append(Service.has_offer == has_offer)
    if min_price is not None:
        filters.append(Service.price >= min_price)
    if max_price is not None:
        filters.append(Service.price <= max_price)
    if search:
        pattern = f"%{search.strip()}%"
        filters.append(or_(Service.name.ilike(pattern), Service.description.ilike(pattern)))

    column = _SORT_COLUMNS.get(sort_by, Service.order)
    ordering = column.desc() if sort_order == "desc" else column.asc()
    total = await session.scalar(select(func.count()).select_from(Service).where(*filters))
    result = await session.execute(
        select(Service).where(*filters).order_by(ordering).offset((page - 1) * limit).limit(limit)
    )
    return list(result.scalars().all()), total or 0


async def get_service(session: AsyncSession, service_id: int) -> Service | None:
    return await session.get(Service, service_id)


async def images_for_services(session: AsyncSession, service_ids: list[int]) -> dict[int, list[Image]]:
    if not service_ids:
        return {}
    result = await session.execute(
        select(Image).where(Image.service_id.in_(service_ids)).order_by(Image.order)
    )
    grouped: dict[int, list[Image]] = {sid: [] for sid in service_ids}
    for image in result.scalars().all():
        grouped[image.service_id].append(image)
    return grouped


async def _attach_images(session: AsyncSession, service_id: int, image_ids: list[int]) -> None:
    if not image_ids:
        return
    await session.execute(
        update(Image)
        .where(Image.id.in_(image_ids))
        .values(service_id=service_id, type=ImageType.SERVICE, updated_at=utc_naive_now())
    )


async def create_service(
    session: AsyncSession,
    name: str,
    description: str,
    price: Decimal,
    duration: int,
    category_id: int,
    is_active: bool = True,
    is_highlight: bool = False,
    has_offer: bool = False,
    offer_price: Decimal | None = None,
    image_ids: list[int] | None = None,
) -> Service:
    _validate_offer(price, has_offer, offer_price)
    if not await session.get(Category, category_id):
        raise CatalogError("Category not found")
    last_order = await session.scalar(
        select(func.max(Service.order)).where(Service.category_id == category_id)
    )
    service = Service(
        name=name,
        description=description,
        price=price,
        duration=duration,
        category_id=category_id,
        is_active=is_active,
        is_highlight=is_highlight,
        has_offer=has_offer,
        offer_price=offer_price if has_offer else None,
        order=0 if last_order is None else last_order + 1,
    )
    session.add(service)
    await session.flush()
    await _attach_images(session, service.id, image_ids or [])
    await session.refresh(service)
    logger.info("Service %s created: %s", service.id, service.name)
    return service


async def update_service(session: AsyncSession, service_id: int, changes: dict) -> Service | None:
    """Apply a partial update; `changes` uses model field names plus optional `image_ids`."""
    service = await session.get(Service, service_id)
    if not service:
        return None
    image_ids = changes.pop("image_ids", None)
    if "category_id" in changes and not await session.get(Category, changes["category_id"]):
        raise CatalogError("Category not found")
    for field, value in changes.items():
        setattr(service, field, value)
    if not service.has_offer:
        service.offer_price = None
    _validate_offer(service.price, service.has_offer, service.offer_price)
    service.updated_at = utc_naive_now()
    session.add(service)
    await session.flush()
    if image_ids is not None:
        await _attach_images(session, service.id, image_ids)
    return service


async def delete_service(session: AsyncSession, service_id: int) -> bool:
    service = await session.get(Service, service_id)
    if not service:
        return False
    booked = await session.scalar(select(func.count(Appointment.id)).where(Appointment.service_id == service_id))
    if booked:
        raise ServiceInUseError(booked)
    # Detach images so the cleanup job can treat them as orphans
    await session.execute(update(Image).where(Image.service_id == service_id).values(service_id=None))
    await session.delete(service)
    await session.flush()
    return True
