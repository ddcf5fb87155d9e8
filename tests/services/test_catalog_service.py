from datetime import datetime
from decimal import Decimal

import pytest

from salon.models.appointment import Appointment
from salon.models.image import Image, ImageType
from salon.services import catalog_service as catalog


async def seed(session):
    nails = await catalog.create_category(session, 'Uñas')
    feet = await catalog.create_category(session, 'Pedicure')
    await catalog.create_service(session, 'Gel', 'Esmaltado gel', Decimal('15.00'), 60, nails.id)
    await catalog.create_service(
        session, 'Acrílicas', 'Set completo', Decimal('35.00'), 120, nails.id,
        has_offer=True, offer_price=Decimal('30.00'), is_highlight=True,
    )
    await catalog.create_service(session, 'Spa de pies', 'Relajante', Decimal('25.00'), 90, feet.id, is_active=False)
    return nails, feet


def test_categories_get_increasing_order_and_counts(run_db) -> None:
    async def scenario(session):
        await seed(session)
        return await catalog.list_categories(session)

    rows = run_db(scenario)

    assert [(c.name, c.order, n) for c, n in rows] == [('Uñas', 0, 2), ('Pedicure', 1, 1)]


def test_duplicate_category_name_is_rejected(run_db) -> None:
    async def scenario(session):
        await catalog.create_category(session, 'Uñas')
        await catalog.create_category(session, ' Uñas ')

    with pytest.raises(catalog.DuplicateCategoryError):
        run_db(scenario)


def test_category_in_use_cannot_be_deleted(run_db) -> None:
    async def scenario(session):
        nails, _ = await seed(session)
        await catalog.delete_category(session, nails.id)

    with pytest.raises(catalog.CategoryInUseError) as exc_info:
        run_db(scenario)
    assert exc_info.value.services_count == 2


def test_reorder_categories(run_db) -> None:
    async def scenario(session):
        nails, feet = await seed(session)
        ordered = await catalog.reorder_categories(session, {nails.id: 5, feet.id: 1})
        return [c.name for c in ordered]

    assert run_db(scenario) == ['Pedicure', 'Uñas']


def test_service_order_is_per_category(run_db) -> None:
    async def scenario(session):
        await seed(session)
        services, _ = await catalog.list_services(session, sort_by='name')
        return {s.name: s.order for s in services}

    assert run_db(scenario) == {'Acrílicas': 1, 'Gel': 0, 'Spa de pies': 0}


@pytest.mark.parametrize(
    ('filters', 'expected'),
    [
        ({'is_active': True}, {'Gel', 'Acrílicas'}),
        ({'has_offer': True}, {'Acrílicas'}),
        ({'is_highlight': True}, {'Acrílicas'}),
        ({'min_price': Decimal('20'), 'max_price': Decimal('30')}, {'Spa de pies'}),
        ({'search': 'set'}, {'Acrílicas'}),
    ],
)
def test_list_services_filters(run_db, filters: dict, expected: set) -> None:
    async def scenario(session):
        await seed(session)
        services, total = await catalog.list_services(session, **filters)
        return {s.name for s in services}, total

    names, total = run_db(scenario)

    assert names == expected
    assert total == len(expected)


def test_list_services_sorts_and_paginates(run_db) -> None:
    async def scenario(session):
        await seed(session)
        page, total = await catalog.list_services(session, sort_by='price', sort_order='desc', limit=2)
        return [s.name for s in page], total

    assert run_db(scenario) == (['Acrílicas', 'Spa de pies'], 3)


@pytest.mark.parametrize('offer_price', [None, Decimal('15.00'), Decimal('20.00')])
def test_offer_must_be_below_price(run_db, offer_price) -> None:
    async def scenario(session):
        nails = await catalog.create_category(session, 'Uñas')
        await catalog.create_service(
            session, 'Gel', '', Decimal('15.00'), 60, nails.id, has_offer=True, offer_price=offer_price
        )

    with pytest.raises(catalog.CatalogError):
        run_db(scenario)


def test_create_service_attaches_images(run_db) -> None:
    async def scenario(session):
        nails = await catalog.create_category(session, 'Uñas')
        image = Image(url='https://example.com/a.webp', type=ImageType.TEMP)
        session.add(image)
        await session.flush()
        service = await catalog.create_service(
            session, 'Gel', '', Decimal('15.00'), 60, nails.id, image_ids=[image.id]
        )
        images = await catalog.images_for_services(session, [service.id])
        await session.refresh(image)
        return images[service.id], image

    attached, image = run_db(scenario)

    assert [i.id for i in attached] == [image.id]
    assert image.type == ImageType.SERVICE


def test_update_service_clears_offer_price_when_offer_removed(run_db) -> None:
    async def scenario(session):
        nails = await catalog.create_category(session, 'Uñas')
        service = await catalog.create_service(
            session, 'Gel', '', Decimal('15.00'), 60, nails.id, has_offer=True, offer_price=Decimal('12.00')
        )
        return await catalog.update_service(session, service.id, {'has_offer': False, 'duration': 75})

    service = run_db(scenario)

    assert service.offer_price is None
    assert service.duration == 75


def test_missing_records_return_falsy(run_db) -> None:
    async def scenario(session):
        return (
            await catalog.update_service(session, 42, {'name': 'x'}),
            await catalog.delete_service(session, 42),
            await catalog.delete_category(session, 42),
            await catalog.update_category(session, 42, name='x'),
        )

    assert run_db(scenario) == (None, False, False, None)


def test_service_with_appointments_cannot_be_deleted(run_db) -> None:
    async def scenario(session):
        nails = await catalog.create_category(session, 'Uñas')
        service = await catalog.create_service(session, 'Gel', '', Decimal('15.00'), 60, nails.id)
        session.add(Appointment(
            client_name='Ana', client_phone='0991234567', service_id=service.id,
            date=datetime(2026, 3, 16, 15, 0),
        ))
        await session.flush()
        await catalog.delete_service(session, service.id)

    with pytest.raises(catalog.ServiceInUseError) as exc_info:
        run_db(scenario)
    assert exc_info.value.appointments_count == 1
