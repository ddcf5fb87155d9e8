from dataclasses import replace
from datetime import date, datetime, time, timedelta

import pytest

from salon.core.timeutils import business_zone, to_naive_utc
from salon.models.appointment import Appointment, AppointmentStatus
from salon.models.availability import Availability
from salon.services import availability_service as availability
from salon.services.availability_service import BusinessHours, BusyInterval, compute_slots

MONDAY = date(2026, 3, 16)
SUNDAY = date(2026, 3, 15)

HOURS = BusinessHours(
    open_at=time(8, 0),
    close_at=time(18, 0),
    break_start=time(13, 0),
    break_end=time(14, 0),
    closed_weekdays=frozenset({6}),
)


def local(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=business_zone())


def starts(slots) -> list[time]:
    return [s.start.time() for s in slots]


def test_open_day_offers_thirty_hour_long_slots() -> None:
    slots = compute_slots(MONDAY, 60, [], [], HOURS)

    assert len(slots) == 30
    assert starts(slots)[0] == time(8, 0)
    assert starts(slots)[-1] == time(17, 0)
    assert all(s.end - s.start == timedelta(hours=1) for s in slots)


def test_slots_are_ordered_and_fifteen_minutes_apart() -> None:
    slots = compute_slots(MONDAY, 60, [], [], HOURS)

    morning = [s for s in slots if s.start < local(MONDAY, 13)]
    assert [b.start - a.start for a, b in zip(morning, morning[1:])] == [timedelta(minutes=15)] * 16


def test_no_slot_overlaps_lunch_break() -> None:
    slots = compute_slots(MONDAY, 60, [], [], HOURS)

    assert time(12, 0) in starts(slots)
    for t in (time(12, 15), time(12, 30), time(12, 45), time(13, 0), time(13, 30)):
        assert t not in starts(slots)
    assert time(14, 0) in starts(slots)


def test_slot_may_not_run_past_close() -> None:
    slots = compute_slots(MONDAY, 90, [], [], HOURS)

    assert starts(slots)[-1] == time(16, 30)
    assert len(slots) == 26


def test_closed_weekday_has_no_slots() -> None:
    assert compute_slots(SUNDAY, 60, [], [], HOURS) == []


@pytest.mark.parametrize('duration', [0, -15])
def test_non_positive_duration_is_rejected(duration: int) -> None:
    with pytest.raises(ValueError):
        compute_slots(MONDAY, duration, [], [], HOURS)


def test_appointment_blocks_every_overlapping_candidate() -> None:
    busy = [BusyInterval(local(MONDAY, 10), local(MONDAY, 11))]

    slots = compute_slots(MONDAY, 60, busy, [], HOURS)

    assert time(9, 0) in starts(slots)
    assert time(11, 0) in starts(slots)
    for t in (time(9, 15), time(9, 45), time(10, 0), time(10, 45)):
        assert t not in starts(slots)
    assert len(slots) == 23


def test_blocked_record_blocks_sixty_minutes_by_default() -> None:
    slots = compute_slots(MONDAY, 60, [], [local(MONDAY, 15)], HOURS)

    assert time(14, 0) in starts(slots)
    assert time(15, 0) not in starts(slots)
    assert time(16, 0) in starts(slots)
    assert len(slots) == 23


def test_blocked_record_can_close_whole_day() -> None:
    hours = replace(HOURS, block_whole_day=True)

    assert compute_slots(MONDAY, 60, [], [local(MONDAY, 15)], hours) == []


def test_get_available_slots_reads_appointments_and_blocks(run_db, make_service) -> None:
    async def scenario(session):
        service = await make_service(session, duration=60)
        session.add(Appointment(
            client_name='Ana', client_phone='0991234567', service_id=service.id,
            date=to_naive_utc(local(MONDAY, 10)), status=AppointmentStatus.CONFIRMED,
        ))
        session.add(Appointment(
            client_name='Eva', client_phone='0991234568', service_id=service.id,
            date=to_naive_utc(local(MONDAY, 8)), status=AppointmentStatus.CANCELLED,
        ))
        session.add(Availability(date=to_naive_utc(local(MONDAY, 16)), is_available=False))
        await session.flush()
        return await availability.get_available_slots(session, MONDAY, 60, hours=HOURS)

    slots = run_db(scenario)

    assert time(8, 0) in starts(slots)
    assert time(9, 0) in starts(slots)
    assert time(10, 0) not in starts(slots)
    assert time(9, 45) not in starts(slots)
    assert time(16, 0) not in starts(slots)
    assert len(slots) == 30 - 7 - 7


def test_appointment_span_uses_service_duration(run_db, make_service) -> None:
    async def scenario(session):
        service = await make_service(session, duration=120)
        session.add(Appointment(
            client_name='Ana', client_phone='0991234567', service_id=service.id,
            date=to_naive_utc(local(MONDAY, 8)),
        ))
        await session.flush()
        return await availability.get_available_slots(session, MONDAY, 60, hours=HOURS)

    slots = run_db(scenario)

    assert time(9, 45) not in starts(slots)
    assert starts(slots)[0] == time(10, 0)


def test_is_slot_bookable_requires_grid_start(run_db) -> None:
    async def scenario(session):
        on_grid = await availability.is_slot_bookable(session, to_naive_utc(local(MONDAY, 9, 15)), 60)
        off_grid = await availability.is_slot_bookable(session, to_naive_utc(local(MONDAY, 9, 10)), 60)
        return on_grid, off_grid

    assert run_db(scenario) == (True, False)


def test_disable_date_is_idempotent(run_db) -> None:
    async def scenario(session):
        when = availability.normalize_admin_date(MONDAY)
        first = await availability.disable_date(session, when)
        second = await availability.disable_date(session, when)
        records = await availability.list_availability_in_month(session, 2026, 3)
        return first, second, records

    first, second, records = run_db(scenario)

    assert first.id == second.id
    assert second.is_available is False
    assert len(records) == 1


def test_enable_date_reopens_closed_record(run_db) -> None:
    async def scenario(session):
        when = availability.normalize_admin_date(MONDAY)
        closed = await availability.disable_date(session, when)
        reopened = await availability.enable_date(session, when)
        again = await availability.enable_date(session, when)
        return closed.id, reopened, again

    closed_id, reopened, again = run_db(scenario)

    assert reopened.id == closed_id
    assert reopened.is_available is True
    assert again.id == closed_id


def test_bare_date_is_stored_as_local_midnight() -> None:
    stored = availability.normalize_admin_date(MONDAY)

    # Guayaquil is UTC-5 all year
    assert stored == datetime(2026, 3, 16, 5, 0)


def test_enable_date_range_is_inclusive_and_validated(run_db) -> None:
    async def scenario(session):
        records = await availability.enable_date_range(session, date(2026, 3, 16), date(2026, 3, 18))
        dates = await availability.list_available_dates(session, 2026, 3)
        return records, dates

    records, dates = run_db(scenario)

    assert len(records) == 3
    assert dates == ['2026-03-16', '2026-03-17', '2026-03-18']

    async def backwards(session):
        await availability.enable_date_range(session, date(2026, 3, 18), date(2026, 3, 16))

    with pytest.raises(ValueError):
        run_db(backwards)


def test_remove_and_delete_report_missing_records(run_db) -> None:
    async def scenario(session):
        when = availability.normalize_admin_date(MONDAY)
        record = await availability.disable_date(session, when)
        removed = await availability.remove_date(session, when)
        removed_again = await availability.remove_date(session, when)
        deleted = await availability.delete_availability(session, record.id)
        return removed, removed_again, deleted

    assert run_db(scenario) == (True, False, False)
