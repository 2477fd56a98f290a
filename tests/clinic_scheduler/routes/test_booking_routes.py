import pytest
from pydantic import ValidationError

from clinic_scheduler.models.enums import Modality
from clinic_scheduler.routes.booking_routes import CreateBookingRequest

MONDAY = 1


@pytest.fixture
def service(make_service, make_window):
    make_window(MONDAY, Modality.ON_SITE, 9 * 60, 17 * 60, 60)
    return make_service(duration_minutes=60)


def book(client, headers, service_id: int, start_time: str = '09:00', booking_date: str = '2024-01-08'):
    return client.post(
        '/bookings',
        json={'service_id': service_id, 'date': booking_date, 'start_time': start_time, 'modality': 'on-site'},
        headers=headers,
    )


def test_create_booking_request_normalizes_notes() -> None:
    request = CreateBookingRequest(service_id=1, date='2024-01-08', start_time='09:00', modality='online', notes='   ')

    assert request.start_time == 540
    assert request.notes is None


def test_create_booking_request_rejects_long_notes() -> None:
    with pytest.raises(ValidationError):
        CreateBookingRequest(service_id=1, date='2024-01-08', start_time='09:00', modality='online', notes='x' * 601)


def test_create_booking_and_reject_double_booking(client, service, patient_headers, other_patient_headers) -> None:
    created = book(client, patient_headers, service.id)

    assert created.status_code == 201
    body = created.json()
    assert body['subject_id'] == 'patient@example.com'
    assert (body['start_time'], body['end_time']) == ('09:00', '10:00')
    assert body['status'] == 'pending'
    assert body['business_status'] == 'scheduled'

    taken = book(client, other_patient_headers, service.id)
    assert taken.status_code == 409
    assert taken.json()['detail']['code'] == 'slot_conflict'


def test_create_booking_outside_hours(client, service, patient_headers) -> None:
    response = book(client, patient_headers, service.id, start_time='16:30')

    assert response.status_code == 400
    assert response.json()['detail']['code'] == 'outside_working_hours'


@pytest.mark.parametrize('start_time', [9.5, None, [9]])
def test_create_booking_rejects_non_string_time(client, service, patient_headers, start_time) -> None:
    response = book(client, patient_headers, service.id, start_time=start_time)

    assert response.status_code == 422


def test_create_booking_requires_valid_token(client, service) -> None:
    response = book(client, {'Authorization': 'Bearer not-a-token'}, service.id)

    assert response.status_code == 401
    assert response.json()['detail'] == 'Invalid token'


def test_patients_only_see_their_own_bookings(client, service, patient_headers, other_patient_headers, admin_headers) -> None:
    mine = book(client, patient_headers, service.id, start_time='09:00').json()
    theirs = book(client, other_patient_headers, service.id, start_time='10:00').json()

    listed = client.get('/bookings', headers=patient_headers)
    assert [booking['id'] for booking in listed.json()] == [mine['id']]

    assert client.get(f"/bookings/{theirs['id']}", headers=patient_headers).status_code == 403
    assert client.get(f"/bookings/{theirs['id']}", headers=admin_headers).status_code == 200
    assert len(client.get('/bookings', headers=admin_headers).json()) == 2


def test_cancel_booking(client, service, patient_headers, other_patient_headers) -> None:
    booking = book(client, patient_headers, service.id).json()

    forbidden = client.post(f"/bookings/{booking['id']}/cancel", headers=other_patient_headers)
    assert forbidden.status_code == 403
    assert forbidden.json()['detail']['code'] == 'permission_denied'

    cancelled = client.post(f"/bookings/{booking['id']}/cancel", headers=patient_headers)
    assert cancelled.status_code == 200
    assert cancelled.json()['status'] == 'cancelled'
    assert book(client, other_patient_headers, service.id).status_code == 201


def test_admin_updates_statuses(client, service, patient_headers, admin_headers) -> None:
    booking = book(client, patient_headers, service.id).json()

    assert client.patch(f"/bookings/{booking['id']}/status", json={'status': 'confirmed'}, headers=patient_headers).status_code == 403

    confirmed = client.patch(f"/bookings/{booking['id']}/status", json={'status': 'confirmed'}, headers=admin_headers)
    assert confirmed.status_code == 200
    assert confirmed.json()['status'] == 'confirmed'

    invalid = client.patch(f"/bookings/{booking['id']}/status", json={'status': 'pending'}, headers=admin_headers)
    assert invalid.status_code == 409
    assert invalid.json()['detail']['code'] == 'invalid_status_transition'

    no_show = client.patch(
        f"/bookings/{booking['id']}/business-status", json={'business_status': 'no_show'}, headers=admin_headers,
    )
    assert no_show.status_code == 200
    assert no_show.json()['business_status'] == 'no_show'


def test_missing_booking_returns_404(client, admin_headers) -> None:
    response = client.get('/bookings/999', headers=admin_headers)

    assert response.status_code == 404
