from datetime import datetime, timedelta

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError

from beautyshop.models.appointment import STATUS_CANCELED, STATUS_COMPLETED, Appointment
from beautyshop.models.service import Service
from beautyshop.routes.common import DATABASE_UNAVAILABLE_DETAIL, SLOT_TAKEN_DETAIL
from beautyshop.routes.public_routes import PublicBookingRequest, book_appointment, get_master_data


def future(hour: int, minute: int = 0) -> datetime:
    return datetime(2099, 3, 25, hour, minute)


def booking(**fields) -> PublicBookingRequest:
    payload = {
        'clientName': 'Anna',
        'clientPhone': '+79991234567',
        'startTime': future(10),
        'endTime': future(11),
    }
    payload.update(fields)
    return PublicBookingRequest(**payload)


@pytest.fixture
def manicure(db, master) -> Service:
    service = Service(owner_id=master.id, name='Manicure', price=2000, duration_min=60, is_public=True)
    db.add(service)
    db.commit()
    db.refresh(service)
    return service


def test_get_master_data_returns_public_profile(db, master, manicure, make_appointment) -> None:
    hidden = Service(owner_id=master.id, name='Secret', price=1, duration_min=15, is_public=False)
    db.add(hidden)
    db.commit()
    upcoming = make_appointment(master, future(10), future(11))
    make_appointment(master, future(12), future(13), status=STATUS_CANCELED)
    make_appointment(master, future(14), future(15), status=STATUS_COMPLETED)
    make_appointment(master, datetime(2000, 1, 1, 10), datetime(2000, 1, 1, 11))

    response = get_master_data(slug='test-master', db=db)

    assert response.name == 'Test Master'
    assert response.booking_mode == 'TIME_SLOT'
    assert [service.name for service in response.services] == ['Manicure']
    assert [slot.id for slot in response.appointments] == [upcoming.id]


def test_get_master_data_returns_not_found_for_unknown_slug(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_master_data(slug='nobody', db=db)

    assert exception_info.value.status_code == 404


def test_book_appointment_creates_record(db, master) -> None:
    response = book_appointment(slug='test-master', data=booking(), db=db)

    assert response.appointment.owner_id == master.id
    assert db.query(Appointment).count() == 1


def test_book_appointment_rejects_taken_slot_without_write(db, master, make_appointment) -> None:
    make_appointment(master, future(10), future(11))

    with pytest.raises(HTTPException) as exception_info:
        book_appointment(slug='test-master', data=booking(startTime=future(10, 30), endTime=future(11, 30)), db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == SLOT_TAKEN_DETAIL
    assert db.query(Appointment).count() == 1


def test_book_appointment_allows_back_to_back(db, master, make_appointment) -> None:
    make_appointment(master, future(10), future(11))

    response = book_appointment(slug='test-master', data=booking(startTime=future(11), endTime=future(12)), db=db)

    assert response.appointment.start_time == future(11)


def test_book_appointment_ignores_other_masters_calendar(db, master, other_master, make_appointment) -> None:
    make_appointment(other_master, future(10), future(11))

    response = book_appointment(slug='test-master', data=booking(), db=db)

    assert response.appointment.owner_id == master.id


def test_book_appointment_uses_service_duration_and_price(db, master, manicure) -> None:
    response = book_appointment(slug='test-master', data=booking(serviceId=manicure.id, endTime=None), db=db)

    assert response.appointment.end_time == future(11)
    assert response.appointment.final_price == 2000


def test_book_appointment_rejects_private_service(db, master) -> None:
    hidden = Service(owner_id=master.id, name='Secret', price=1, duration_min=15, is_public=False)
    db.add(hidden)
    db.commit()

    with pytest.raises(HTTPException) as exception_info:
        book_appointment(slug='test-master', data=booking(serviceId=hidden.id), db=db)

    assert exception_info.value.status_code == 404


def test_book_appointment_requires_service_in_service_list_mode(db, master_factory) -> None:
    master_factory('list@example.com', 'list-master', booking_mode='SERVICE_LIST')

    with pytest.raises(HTTPException) as exception_info:
        book_appointment(slug='list-master', data=booking(), db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Please choose a service.'


def test_book_appointment_rejects_past_start(db, master) -> None:
    past = datetime.now() - timedelta(days=1)

    with pytest.raises(HTTPException) as exception_info:
        book_appointment(slug='test-master', data=booking(startTime=past, endTime=past + timedelta(hours=1)), db=db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Appointments must be scheduled in the future.'


def test_book_appointment_rejects_inverted_interval(db, master) -> None:
    with pytest.raises(HTTPException) as exception_info:
        book_appointment(slug='test-master', data=booking(startTime=future(11), endTime=future(10)), db=db)

    assert exception_info.value.status_code == 400
    assert db.query(Appointment).count() == 0


def test_book_appointment_returns_not_found_for_unknown_slug(db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        book_appointment(slug='nobody', data=booking(), db=db)

    assert exception_info.value.status_code == 404


def test_book_appointment_reports_storage_failure_as_unavailable(db, master) -> None:
    Appointment.__table__.drop(bind=db.get_bind())

    with pytest.raises(HTTPException) as exception_info:
        book_appointment(slug='test-master', data=booking(), db=db)

    assert exception_info.value.status_code == 503
    assert exception_info.value.detail == DATABASE_UNAVAILABLE_DETAIL
    assert isinstance(exception_info.value.__cause__, SQLAlchemyError)


def test_api_public_booking_scenario(api_client, master, make_appointment) -> None:
    make_appointment(master, future(9), future(10))
    make_appointment(master, future(14), future(15))

    accepted = api_client.post(
        '/api/public/test-master/book',
        json={
            'clientName': 'Anna',
            'clientPhone': '+79991234567',
            'startTime': '2099-03-25T10:00:00Z',
            'endTime': '2099-03-25T11:00:00Z',
        },
    )
    rejected = api_client.post(
        '/api/public/test-master/book',
        json={
            'clientName': 'Boris',
            'clientPhone': '+79991234568',
            'startTime': '2099-03-25T10:30:00Z',
            'endTime': '2099-03-25T11:30:00Z',
        },
    )
    profile = api_client.get('/api/public/test-master')

    assert accepted.status_code == 201
    assert rejected.status_code == 400
    assert rejected.json() == {'detail': SLOT_TAKEN_DETAIL}
    assert len(profile.json()['appointments']) == 3
    assert profile.json()['bookingMode'] == 'TIME_SLOT'
