"""Slot availability checks for a master's calendar.

Appointments occupy half-open intervals ``[start_time, end_time)``: an
appointment ending at 11:00 leaves 11:00 free for the next one. Every check is
scoped to a single owner, so two masters never conflict with each other.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from beautyshop.models.appointment import Appointment

logger = logging.getLogger(__name__)


class InvalidSlotError(ValueError):
    """Raised when a slot cannot be evaluated (no owner, empty or inverted interval)."""


def to_utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def normalize_interval(start_time: datetime, end_time: datetime) -> tuple[datetime, datetime]:
    if start_time is None or end_time is None:
        raise InvalidSlotError('Both start_time and end_time are required.')

    start_time = to_utc_naive(start_time)
    end_time = to_utc_naive(end_time)

    if end_time <= start_time:
        raise InvalidSlotError('end_time must be after start_time.')

    return start_time, end_time


def intervals_overlap(
    first_start: datetime,
    first_end: datetime,
    second_start: datetime,
    second_end: datetime,
) -> bool:
    return first_start < second_end and second_start < first_end


def _conflict_query(
    db: Session,
    owner_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_appointment_id: int | None,
    occupying_statuses: Iterable[str] | None,
):
    if owner_id is None:
        raise InvalidSlotError('owner_id is required.')

    start_time, end_time = normalize_interval(start_time, end_time)

    query = db.query(Appointment).filter(
        Appointment.owner_id == owner_id,
        Appointment.start_time < end_time,
        Appointment.end_time > start_time,
    )

    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)

    if occupying_statuses is not None:
        query = query.filter(Appointment.status.in_(list(occupying_statuses)))

    return query


def is_slot_available(
    db: Session,
    owner_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_appointment_id: int | None = None,
    occupying_statuses: Iterable[str] | None = None,
) -> bool:
    """Return True when no appointment of ``owner_id`` overlaps the interval.

    ``exclude_appointment_id`` drops one appointment from the conflict set, which
    is how a rescheduled appointment avoids clashing with its old time.
    ``occupying_statuses`` limits which statuses hold a slot; ``None`` means all
    of them do, canceled included.

    Storage errors are not caught here: a failed query must never read as a
    taken slot.
    """
    query = _conflict_query(db, owner_id, start_time, end_time, exclude_appointment_id, occupying_statuses)
    conflict_id = query.with_entities(Appointment.id).limit(1).scalar()

    if conflict_id is not None:
        logger.debug('Slot for owner %s conflicts with appointment %s', owner_id, conflict_id)
        return False

    return True


def find_conflicts(
    db: Session,
    owner_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_appointment_id: int | None = None,
    occupying_statuses: Iterable[str] | None = None,
) -> list[Appointment]:
    query = _conflict_query(db, owner_id, start_time, end_time, exclude_appointment_id, occupying_statuses)
    return query.all()
