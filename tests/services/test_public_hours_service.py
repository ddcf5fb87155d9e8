from datetime import date

import pytest
from sqlalchemy import select

from salon.models.public_hour import PublicHour
from salon.services import availability_service as availability
from salon.services import public_hours_service as public_hours
from salon.services.public_hours_service import DuplicatePublicHourError, PublicHourError

MONDAY = date(2030, 3, 18)
TUESDAY = date(2030, 3, 19)


def hours_on(rows) -> list[str]:
    return [ph.hour for ph, _ in rows]


def test_publishing_opens_the_day(run_db) -> None:
    async def scenario(session):
        record, published = await public_hours.publish_hours(session, MONDAY, ['10:00', '09:00', '10:00'])
        return record.is_available, [ph.hour for ph in published], hours_on(await public_hours.list_by_date(session, MONDAY))

    is_open, published, listed = run_db(scenario)

    assert is_open is True
    assert published == ['09:00', '10:00']
    assert listed == ['09:00', '10:00']


def test_republishing_reenables_without_duplicates(run_db) -> None:
    async def scenario(session):
        _, published = await public_hours.publish_hours(session, MONDAY, ['09:00'])
        await public_hours.update_public_hour(session, published[0].id, is_available=False)
        hidden = hours_on(await public_hours.list_by_date(session, MONDAY))
        _, again = await public_hours.publish_hours(session, MONDAY, ['09:00', '11:30'])
        return hidden, again[0].id == published[0].id, hours_on(await public_hours.list_by_date(session, MONDAY))

    hidden, same_row, listed = run_db(scenario)

    assert hidden == []
    assert same_row is True
    assert listed == ['09:00', '11:30']


def test_closed_day_hides_its_hours(run_db) -> None:
    async def scenario(session):
        await public_hours.publish_hours(session, MONDAY, ['09:00'])
        await availability.disable_date(session, availability.normalize_admin_date(MONDAY))
        return (
            hours_on(await public_hours.list_by_date(session, MONDAY)),
            await public_hours.is_public_hour_available(session, MONDAY, '09:00'),
        )

    assert run_db(scenario) == ([], False)


def test_grouped_by_local_day(run_db) -> None:
    async def scenario(session):
        await public_hours.publish_hours(session, MONDAY, ['15:00', '09:00'])
        await public_hours.publish_hours(session, TUESDAY, ['10:00'])
        return await public_hours.hours_grouped_by_date(session, MONDAY, TUESDAY)

    assert run_db(scenario) == {'2030-03-18': ['09:00', '15:00'], '2030-03-19': ['10:00']}


def test_single_hour_needs_an_existing_day(run_db) -> None:
    async def scenario(session):
        with pytest.raises(PublicHourError):
            await public_hours.create_public_hour(session, 999, '09:00')
        record = await availability.enable_date(session, availability.normalize_admin_date(MONDAY))
        created = await public_hours.create_public_hour(session, record.id, '09:00')
        with pytest.raises(DuplicatePublicHourError):
            await public_hours.create_public_hour(session, record.id, '09:00')
        return created.hour, await public_hours.is_public_hour_available(session, MONDAY, '09:00')

    assert run_db(scenario) == ('09:00', True)


def test_moving_onto_a_taken_hour_is_rejected(run_db) -> None:
    async def scenario(session):
        _, (nine, ten) = await public_hours.publish_hours(session, MONDAY, ['09:00', '10:00'])
        with pytest.raises(DuplicatePublicHourError):
            await public_hours.update_public_hour(session, nine.id, hour='10:00')
        moved = await public_hours.update_public_hour(session, nine.id, hour='08:30')
        missing = await public_hours.update_public_hour(session, 999, hour='08:00')
        return moved.hour, missing

    assert run_db(scenario) == ('08:30', None)


def test_removing_the_day_removes_its_hours(run_db) -> None:
    async def scenario(session):
        await public_hours.publish_hours(session, MONDAY, ['09:00'])
        removed = await availability.remove_date(session, availability.normalize_admin_date(MONDAY))
        return removed, (await session.execute(select(PublicHour))).all()

    assert run_db(scenario) == (True, [])


def test_inverted_range_is_rejected(run_db) -> None:
    async def scenario(session):
        with pytest.raises(PublicHourError):
            await public_hours.list_by_range(session, TUESDAY, MONDAY)

    run_db(scenario)
