from datetime import datetime

import pytest

from salon.models.appointment import Appointment
from salon.services import notification_service, review_service


def test_new_reviews_wait_for_approval(run_db) -> None:
    async def scenario(session):
        review = await review_service.create_review(session, 'Ana', 5, 'Excelente')
        public_before = await review_service.list_reviews(session)
        await review_service.approve_review(session, review.id)
        public_after = await review_service.list_reviews(session)
        return review, public_before, public_after

    review, public_before, public_after = run_db(scenario)

    assert review.is_read is False
    assert public_before == []
    assert [r.id for r in public_after] == [review.id]


@pytest.mark.parametrize('rating', [0, 6])
def test_rating_out_of_range_is_rejected(run_db, rating: int) -> None:
    async def scenario(session):
        await review_service.create_review(session, 'Ana', rating, 'Hmm')

    with pytest.raises(ValueError):
        run_db(scenario)


def test_dashboard_counts_and_mark_read(run_db, make_service) -> None:
    async def scenario(session):
        service = await make_service(session)
        for i in range(7):
            await review_service.create_review(session, f'Cliente {i}', 4, 'Bien')
        session.add(Appointment(
            client_name='Ana', client_phone='0991234567', service_id=service.id,
            date=datetime(2026, 3, 16, 15, 0),
        ))
        await session.flush()
        before = await notification_service.get_dashboard_notifications(session)
        marked = await notification_service.mark_all_as_read(session, 'reviews')
        after = await notification_service.get_dashboard_notifications(session)
        return before, marked, after

    before, marked, after = run_db(scenario)

    assert before['counts'] == {'unread_reviews': 7, 'pending_reviews': 7, 'pending_appointments': 1}
    assert len(before['recent_reviews']) == 5
    assert marked == 7
    assert after['counts']['unread_reviews'] == 0
    assert after['recent_reviews'] == []


def test_unknown_notification_type_is_rejected(run_db) -> None:
    async def scenario(session):
        await notification_service.mark_all_as_read(session, 'appointments')

    with pytest.raises(ValueError):
        run_db(scenario)
