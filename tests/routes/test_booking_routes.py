BOOKING = {
    'clientName': 'Ana Pérez',
    'clientPhone': '+593 99 123 4567',
    'clientEmail': 'ana@gmail.com',
    'date': '2030-03-18T15:00:00Z',  # 10:00 in Guayaquil
    'notes': 'Primera vez',
}


def seed_service(db, make_service, duration: int = 60) -> int:
    async def scenario(session):
        return (await make_service(session, duration)).id

    return db(scenario)


def test_available_slots_are_camel_case(client) -> None:
    response = client.get('/api/availability', params={'date': '2030-03-18', 'duration': 60})

    assert response.status_code == 200
    slots = response.json()
    assert len(slots) == 30
    assert set(slots[0]) == {'date', 'startTime', 'endTime', 'available'}
    assert slots[0]['date'] == '2030-03-18'
    assert (slots[0]['startTime'], slots[0]['endTime']) == ('08:00', '09:00')
    assert (slots[-1]['startTime'], slots[-1]['endTime']) == ('17:00', '18:00')


def test_sunday_has_no_slots(client) -> None:
    response = client.get('/api/availability', params={'date': '2030-03-17'})

    assert response.status_code == 200
    assert response.json() == []


def test_invalid_duration_is_a_validation_error(client) -> None:
    response = client.get('/api/availability', params={'date': '2030-03-18', 'duration': 0})

    assert response.status_code == 400
    body = response.json()
    assert body['detail'] == 'Validation error'
    assert body['errors'][0]['field'] == 'duration'


def test_booking_then_double_booking(client, db, make_service) -> None:
    service_id = seed_service(db, make_service)

    first = client.post('/api/appointments', json={**BOOKING, 'serviceId': service_id})
    second = client.post('/api/appointments', json={**BOOKING, 'serviceId': service_id, 'clientName': 'Luisa'})

    assert first.status_code == 201
    body = first.json()
    assert body['status'] == 'PENDING'
    assert body['service']['duration'] == '1:00'
    assert body['date'].startswith('2030-03-18T15:00:00')
    assert second.status_code == 409
    assert second.json()['detail'] == 'The selected time is no longer available'

    slots = client.get('/api/availability', params={'date': '2030-03-18'}).json()
    assert len(slots) == 23


def test_booking_unknown_service(client) -> None:
    response = client.post('/api/appointments', json={**BOOKING, 'serviceId': 999})

    assert response.status_code == 404


def test_booking_rejects_bad_phone(client, db, make_service) -> None:
    service_id = seed_service(db, make_service)

    response = client.post('/api/appointments', json={**BOOKING, 'serviceId': service_id, 'clientPhone': 'call me'})

    assert response.status_code == 400
    assert response.json()['errors'][0]['field'] == 'clientPhone'


def test_cancel_frees_the_slot(client, db, make_service) -> None:
    service_id = seed_service(db, make_service)
    booked = client.post('/api/appointments', json={**BOOKING, 'serviceId': service_id}).json()

    cancelled = client.put(f'/api/appointments/{booked["id"]}', json={'status': 'CANCELLED'})
    rebooked = client.post('/api/appointments', json={**BOOKING, 'serviceId': service_id})

    assert cancelled.status_code == 200
    assert cancelled.json()['status'] == 'CANCELLED'
    assert rebooked.status_code == 201


def test_admin_list_is_paginated(client, db, make_service) -> None:
    service_id = seed_service(db, make_service)
    for hour in (13, 15, 16):
        client.post('/api/appointments', json={**BOOKING, 'serviceId': service_id, 'date': f'2030-03-18T{hour}:00:00Z'})

    response = client.get('/api/appointments', params={'limit': 2})

    assert response.status_code == 200
    body = response.json()
    assert len(body['data']) == 2
    assert body['pagination'] == {'total': 3, 'page': 1, 'limit': 2, 'totalPages': 2}


def test_disabled_day_blocks_booking(client, db, make_service) -> None:
    service_id = seed_service(db, make_service)

    disabled = client.post('/api/availability/admin/disable', json={'date': '2030-03-18T15:00:00Z'})
    booking = client.post('/api/appointments', json={**BOOKING, 'serviceId': service_id})
    removed = client.post('/api/availability/admin/remove', json={'date': '2030-03-18T15:00:00Z'})
    rebooked = client.post('/api/appointments', json={**BOOKING, 'serviceId': service_id})

    assert disabled.status_code == 200
    assert disabled.json()['isAvailable'] is False
    assert booking.status_code == 409
    assert removed.status_code == 200
    assert rebooked.status_code == 201


def test_admin_endpoints_require_a_token(anonymous_client) -> None:
    assert anonymous_client.get('/api/appointments').status_code == 401
    assert anonymous_client.post('/api/availability/admin/enable', json={'date': '2030-03-18'}).status_code == 401
    assert anonymous_client.get('/api/notifications/dashboard').status_code == 401


def test_booking_in_the_past_is_rejected(client, db, make_service) -> None:
    service_id = seed_service(db, make_service)

    response = client.post('/api/appointments', json={**BOOKING, 'serviceId': service_id, 'date': '2024-03-18T15:00:00Z'})

    assert response.status_code == 400
    assert response.json()['errors'][0]['field'] == 'date'


def test_booked_service_cannot_be_deleted(client, db, make_service) -> None:
    service_id = seed_service(db, make_service)
    client.post('/api/appointments', json={**BOOKING, 'serviceId': service_id})

    response = client.delete(f'/api/services/{service_id}')

    assert response.status_code == 409
    assert client.get(f'/api/services/{service_id}').status_code == 200
