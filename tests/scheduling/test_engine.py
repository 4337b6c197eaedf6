from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import SQLAlchemyError

from beautyshop.models.appointment import Appointment, STATUS_BOOKED, STATUS_CANCELED, STATUS_CONFIRMED
from beautyshop.scheduling.engine import (
    InvalidSlotError,
    find_conflicts,
    intervals_overlap,
    is_slot_available,
    normalize_interval,
    to_utc_naive,
)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, 25, hour, minute)


@pytest.fixture
def ten_to_eleven(master, make_appointment) -> Appointment:
    return make_appointment(master, at(10), at(11))


def test_empty_calendar_is_available(db, master) -> None:
    assert is_slot_available(db, master.id, at(10), at(11)) is True


def test_excluding_itself_makes_own_slot_available(db, master, ten_to_eleven) -> None:
    assert is_slot_available(db, master.id, at(10), at(11), exclude_appointment_id=ten_to_eleven.id) is True


def test_exact_duplicate_conflicts(db, master, ten_to_eleven) -> None:
    assert is_slot_available(db, master.id, at(10), at(11)) is False


@pytest.mark.parametrize(('start', 'end'), [(at(9), at(10)), (at(11), at(12))])
def test_back_to_back_slots_are_available(db, master, ten_to_eleven, start, end) -> None:
    assert is_slot_available(db, master.id, start, end) is True


@pytest.mark.parametrize(('start', 'end'), [(at(10, 30), at(11, 30)), (at(9, 30), at(10, 30))])
def test_partial_overlap_conflicts(db, master, ten_to_eleven, start, end) -> None:
    assert is_slot_available(db, master.id, start, end) is False


def test_new_slot_containing_existing_conflicts(db, master, ten_to_eleven) -> None:
    assert is_slot_available(db, master.id, at(9), at(12)) is False


def test_new_slot_inside_existing_conflicts(db, master, make_appointment) -> None:
    make_appointment(master, at(9), at(12))

    assert is_slot_available(db, master.id, at(10), at(11)) is False


def test_one_minute_overlap_conflicts(db, master, ten_to_eleven) -> None:
    assert is_slot_available(db, master.id, at(10, 59), at(12)) is False


def test_other_masters_appointments_never_conflict(db, master, other_master, ten_to_eleven) -> None:
    for start, end in [(at(10), at(11)), (at(9), at(12)), (at(10, 15), at(10, 45))]:
        assert is_slot_available(db, other_master.id, start, end) is True


def test_gap_between_two_appointments_is_available(db, master, make_appointment) -> None:
    make_appointment(master, at(9), at(10))
    make_appointment(master, at(11), at(12))

    assert is_slot_available(db, master.id, at(10), at(11)) is True


def test_unrelated_exclusion_id_does_not_hide_conflict(db, master, make_appointment, ten_to_eleven) -> None:
    unrelated = make_appointment(master, at(15), at(16))

    assert is_slot_available(db, master.id, at(10), at(11), exclude_appointment_id=unrelated.id) is False
    assert is_slot_available(db, master.id, at(10), at(11), exclude_appointment_id=999_999) is False


def test_exclusion_only_drops_the_named_appointment(db, master, make_appointment, ten_to_eleven) -> None:
    make_appointment(master, at(11), at(12))

    assert is_slot_available(db, master.id, at(10, 30), at(11, 30), exclude_appointment_id=ten_to_eleven.id) is False


def test_canceled_appointment_occupies_slot_by_default(db, master, make_appointment) -> None:
    make_appointment(master, at(10), at(11), status=STATUS_CANCELED)

    assert is_slot_available(db, master.id, at(10), at(11)) is False


def test_occupying_statuses_filter_frees_canceled_slot(db, master, make_appointment) -> None:
    make_appointment(master, at(10), at(11), status=STATUS_CANCELED)
    statuses = (STATUS_BOOKED, STATUS_CONFIRMED)

    assert is_slot_available(db, master.id, at(10), at(11), occupying_statuses=statuses) is True


def test_occupying_statuses_filter_still_blocks_booked_slot(db, master, ten_to_eleven) -> None:
    assert is_slot_available(db, master.id, at(10), at(11), occupying_statuses=[STATUS_BOOKED]) is False


def test_aware_instants_are_compared_in_utc(db, master, ten_to_eleven) -> None:
    plus_three = timezone(timedelta(hours=3))
    start = datetime(2024, 3, 25, 13, 0, tzinfo=plus_three)
    end = datetime(2024, 3, 25, 14, 0, tzinfo=plus_three)

    assert is_slot_available(db, master.id, start, end) is False
    assert is_slot_available(db, master.id, start + timedelta(hours=1), end + timedelta(hours=1)) is True


@pytest.mark.parametrize(('start', 'end'), [(at(11), at(10)), (at(10), at(10))])
def test_degenerate_interval_is_rejected(db, master, start, end) -> None:
    with pytest.raises(InvalidSlotError):
        is_slot_available(db, master.id, start, end)


def test_missing_owner_is_rejected(db) -> None:
    with pytest.raises(InvalidSlotError):
        is_slot_available(db, None, at(10), at(11))


def test_storage_failure_propagates_instead_of_reporting_taken_slot(db, master) -> None:
    Appointment.__table__.drop(bind=db.get_bind())

    with pytest.raises(SQLAlchemyError):
        is_slot_available(db, master.id, at(10), at(11))


def test_find_conflicts_returns_overlapping_appointments(db, master, make_appointment) -> None:
    first = make_appointment(master, at(9), at(10, 30))
    second = make_appointment(master, at(10, 30), at(12))
    make_appointment(master, at(12), at(13))

    conflicts = find_conflicts(db, master.id, at(10), at(11))

    assert {appointment.id for appointment in conflicts} == {first.id, second.id}


def test_intervals_overlap_uses_half_open_edges() -> None:
    assert intervals_overlap(at(10), at(11), at(10, 30), at(11, 30)) is True
    assert intervals_overlap(at(10), at(11), at(11), at(12)) is False
    assert intervals_overlap(at(11), at(12), at(10), at(11)) is False


def test_normalize_interval_converts_aware_values() -> None:
    start, end = normalize_interval(
        datetime(2024, 3, 25, 10, 0, tzinfo=timezone.utc),
        datetime(2024, 3, 25, 12, 0, tzinfo=timezone(timedelta(hours=1))),
    )

    assert start == at(10)
    assert end == at(11)
    assert to_utc_naive(at(10)) == at(10)
