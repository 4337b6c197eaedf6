"""Check-then-write sequences that create or move appointments.

Availability is checked and the write committed while holding the owner's
schedule lock, so two requests for the same master cannot both see a free slot
and both book it.
"""

import logging
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from datetime import datetime
from threading import Lock
from weakref import WeakValueDictionary

from sqlalchemy import text
from sqlalchemy.orm import Session

from beautyshop.models.appointment import Appointment
from beautyshop.scheduling.engine import find_conflicts, is_slot_available, normalize_interval

logger = logging.getLogger(__name__)

_registry_lock = Lock()
# Entries disappear once no request holds the lock.
_owner_locks: WeakValueDictionary = WeakValueDictionary()


class SlotUnavailableError(Exception):
    """Raised when the requested interval overlaps another appointment."""

    def __init__(self, owner_id: int, start_time: datetime, end_time: datetime):
        super().__init__(f'Slot {start_time.isoformat()} - {end_time.isoformat()} is taken for owner {owner_id}')
        self.owner_id = owner_id
        self.start_time = start_time
        self.end_time = end_time


def _lock_for_owner(owner_id: int) -> Lock:
    with _registry_lock:
        lock = _owner_locks.get(owner_id)
        if lock is None:
            lock = Lock()
            _owner_locks[owner_id] = lock
        return lock


def _log_rejection(
    db: Session,
    owner_id: int,
    start_time: datetime,
    end_time: datetime,
    occupying_statuses: Iterable[str] | None,
    exclude_appointment_id: int | None = None,
) -> None:
    conflicts = find_conflicts(
        db,
        owner_id,
        start_time,
        end_time,
        exclude_appointment_id=exclude_appointment_id,
        occupying_statuses=occupying_statuses,
    )
    logger.info(
        'Rejected slot %s - %s for owner %s: overlaps appointments %s',
        start_time.isoformat(),
        end_time.isoformat(),
        owner_id,
        sorted(conflict.id for conflict in conflicts),
    )


@contextmanager
def owner_schedule_lock(db: Session, owner_id: int):
    """Serialize schedule writes for one owner.

    The in-process lock covers request threads of this worker. On PostgreSQL a
    transaction-scoped advisory lock also covers other worker processes; it is
    released by the commit or rollback that ends the caller's transaction.
    """
    with _lock_for_owner(owner_id):
        if db.get_bind().dialect.name == 'postgresql':
            db.execute(text('SELECT pg_advisory_xact_lock(:key)'), {'key': owner_id})
        yield


def reserve_slot(
    db: Session,
    owner_id: int,
    start_time: datetime,
    end_time: datetime,
    build: Callable[[datetime, datetime], Appointment],
    occupying_statuses: Iterable[str] | None = None,
) -> Appointment:
    start_time, end_time = normalize_interval(start_time, end_time)

    try:
        with owner_schedule_lock(db, owner_id):
            if not is_slot_available(db, owner_id, start_time, end_time, occupying_statuses=occupying_statuses):
                _log_rejection(db, owner_id, start_time, end_time, occupying_statuses)
                raise SlotUnavailableError(owner_id, start_time, end_time)

            appointment = build(start_time, end_time)
            appointment.owner_id = owner_id
            db.add(appointment)
            db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(appointment)
    logger.info('Booked appointment %s for owner %s', appointment.id, owner_id)
    return appointment


def _needs_slot_check(
    appointment: Appointment,
    changes: dict,
    occupying_statuses: Iterable[str] | None,
) -> bool:
    time_changed = 'start_time' in changes or 'end_time' in changes

    if occupying_statuses is None:
        return time_changed

    statuses = set(occupying_statuses)
    if changes.get('status', appointment.status) not in statuses:
        return False

    return time_changed or appointment.status not in statuses


def update_appointment(
    db: Session,
    appointment: Appointment,
    changes: dict,
    occupying_statuses: Iterable[str] | None = None,
) -> Appointment:
    """Apply ``changes`` to ``appointment``, re-checking its slot when needed.

    A new time (or a status that starts occupying the slot again) is checked
    against the owner's other appointments. On conflict nothing is changed,
    including fields unrelated to time.

    The row is reloaded once the owner's lock is held, so the decision is made
    on the state other writers committed, not on what the caller loaded.
    """
    changes = dict(changes)

    try:
        with owner_schedule_lock(db, appointment.owner_id):
            db.refresh(appointment)
            check_slot = _needs_slot_check(appointment, changes, occupying_statuses)

            if check_slot or 'start_time' in changes or 'end_time' in changes:
                start_time, end_time = normalize_interval(
                    changes.get('start_time', appointment.start_time),
                    changes.get('end_time', appointment.end_time),
                )
                changes['start_time'] = start_time
                changes['end_time'] = end_time

            if check_slot and not is_slot_available(
                db,
                appointment.owner_id,
                changes['start_time'],
                changes['end_time'],
                exclude_appointment_id=appointment.id,
                occupying_statuses=occupying_statuses,
            ):
                _log_rejection(
                    db,
                    appointment.owner_id,
                    changes['start_time'],
                    changes['end_time'],
                    occupying_statuses,
                    exclude_appointment_id=appointment.id,
                )
                raise SlotUnavailableError(appointment.owner_id, changes['start_time'], changes['end_time'])

            for field, value in changes.items():
                setattr(appointment, field, value)
            db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(appointment)
    return appointment
